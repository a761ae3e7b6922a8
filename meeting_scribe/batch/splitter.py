"""
Splitting of recordings too large to send inline.

Audio the backend can decode is cut on frame boundaries and every part is
re-encoded as canonical 16-bit mono WAV, so each part is a playable file on
its own. Containers the backend cannot decode (WebM, AAC, ...) are cut into
raw byte ranges instead, the way the browser recorder uploads them.
"""

import logging
from typing import List, Optional

from ..audio.codec import BYTES_PER_SAMPLE, WAV_HEADER_BYTES, WaveformCodec
from ..audio.types import WAV_MIME_TYPE, AudioBuffer, AudioFile
from ..config import ConfigManager
from ..errors import ConfigurationError, DecodeError, ResourceExhaustionError
from .models import BatchItem

logger = logging.getLogger(__name__)

MEGABYTE = 1024 * 1024


def default_part_bytes() -> int:
    """SPLIT_CHUNK_MB, capped by the MAX_INLINE_AUDIO_MB upload limit."""
    chunk_mb = ConfigManager.get_float("SPLIT_CHUNK_MB")
    inline_mb = ConfigManager.get_int("MAX_INLINE_AUDIO_MB")
    return int(min(chunk_mb, inline_mb) * MEGABYTE)


class FileSplitter:
    """Turns one input file into the BatchItems queued for it."""

    def __init__(self, max_part_bytes: Optional[int] = None, codec: Optional[WaveformCodec] = None):
        """
        Initialize the splitter.

        Args:
            max_part_bytes: Largest part in bytes (default: from configuration)
            codec: Codec used to decode and re-encode audio parts

        Raises:
            ConfigurationError: If the part size cannot hold a single sample
        """
        self.max_part_bytes = max_part_bytes or default_part_bytes()
        if self.max_part_bytes < WAV_HEADER_BYTES + BYTES_PER_SAMPLE:
            raise ConfigurationError(f"Split part size of {self.max_part_bytes} bytes is too small")
        self.codec = codec or WaveformCodec()

    def split(self, file: AudioFile) -> List[BatchItem]:
        """
        Queue ``file`` whole, or as numbered parts if it is large audio.

        Parts share ``original_name`` and carry 1-based ``part_index`` and
        ``total_parts``; an unsplit file keeps ``part_index`` 0.
        """
        if not file.is_audio or file.size <= self.max_part_bytes:
            return [BatchItem(file)]

        try:
            buffer = self.codec.decode(file.data)
        except (DecodeError, ResourceExhaustionError) as e:
            logger.warning(f"Cannot decode {file.name} for splitting ({e}); cutting raw byte ranges")
            parts = self._split_bytes(file)
        else:
            parts = self._split_frames(file, buffer)

        logger.info(f"Split {file.name} ({file.size} bytes) into {len(parts)} part(s)")
        return [
            BatchItem(part, original_name=file.name, part_index=number, total_parts=len(parts))
            for number, part in enumerate(parts, start=1)
        ]

    def _split_frames(self, file: AudioFile, buffer: AudioBuffer) -> List[AudioFile]:
        frames_per_part = (self.max_part_bytes - WAV_HEADER_BYTES) // BYTES_PER_SAMPLE
        parts = []
        for number, start in enumerate(range(0, buffer.length, frames_per_part), start=1):
            chunk = AudioBuffer(buffer.samples[:, start:start + frames_per_part], buffer.sample_rate)
            parts.append(AudioFile(f"{file.stem}_part{number}.wav", self.codec.encode(chunk), WAV_MIME_TYPE))
        return parts

    def _split_bytes(self, file: AudioFile) -> List[AudioFile]:
        size = self.max_part_bytes
        extension = file.name[len(file.stem):]
        return [
            AudioFile(f"{file.stem}_part{number}{extension}", file.data[offset:offset + size], file.mime_type)
            for number, offset in enumerate(range(0, file.size, size), start=1)
        ]
