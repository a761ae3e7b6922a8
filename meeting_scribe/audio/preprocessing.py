"""
Audio pre-processing pipeline: decode, condition, encode.

Pre-processing is an optimization, not a correctness requirement. The caller
always gets a usable file back:
- nothing enabled: the original file, untouched
- decode failure: DecodeError (the file is not usable audio at all)
- resource failure while conditioning: the original file, unprocessed
- encoded result too large: EncodingTooLargeError (the caller must split)
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..errors import EncodingTooLargeError, ResourceExhaustionError
from .backend import AudioBackend, SoundfileBackend
from .codec import WaveformCodec
from .conditioner import SignalConditioner
from .types import WAV_MIME_TYPE, AudioFile, ProcessingOptions
from .utils import format_timestamp

logger = logging.getLogger(__name__)


@dataclass
class PreprocessResult:
    """Output file plus whether processing was partially or fully skipped."""

    file: AudioFile
    degraded: bool = False


class AudioPreprocessingPipeline:
    """Runs WaveformCodec.decode -> SignalConditioner -> WaveformCodec.encode."""

    def __init__(
        self,
        backend: Optional[AudioBackend] = None,
        codec: Optional[WaveformCodec] = None,
        conditioner: Optional[SignalConditioner] = None,
    ):
        self.backend = backend or (codec.backend if codec else SoundfileBackend())
        self.codec = codec or WaveformCodec(self.backend)
        self.conditioner = conditioner or SignalConditioner()

    def process(self, file: AudioFile, options: ProcessingOptions) -> AudioFile:
        """
        Process ``file`` according to ``options``.

        Args:
            file: Source audio file
            options: Enabled conditioning stages

        Returns:
            The processed canonical WAV file, or the original file when no
            stage is enabled or conditioning ran out of resources

        Raises:
            DecodeError: If the source cannot be decoded
            EncodingTooLargeError: If the processed audio is too large to encode
        """
        return self.process_with_status(file, options).file

    def process_with_status(self, file: AudioFile, options: ProcessingOptions) -> PreprocessResult:
        """Same as ``process`` but also reports whether the result is degraded."""
        if not options.needs_processing:
            return PreprocessResult(file=file)

        try:
            context = self.backend.open_context()
        except ResourceExhaustionError as e:
            logger.warning(f"Audio pre-processing unavailable for {file.name}, using original file: {e}")
            return PreprocessResult(file=file, degraded=True)

        with context:
            buffer = self.codec.decode(file.data, context)
            logger.info(
                f"Pre-processing {file.name}: {format_timestamp(buffer.duration)}, "
                f"{buffer.num_channels}ch @ {buffer.sample_rate} Hz"
            )

            try:
                result = self.conditioner.condition(buffer, options, context)
                data = self.codec.encode(result.buffer)
            except EncodingTooLargeError:
                raise
            except (ResourceExhaustionError, MemoryError) as e:
                logger.warning(f"Audio pre-processing failed for {file.name}, using original file: {e}")
                return PreprocessResult(file=file, degraded=True)

        processed = AudioFile(name=file.processed_name(), data=data, mime_type=WAV_MIME_TYPE)
        logger.info(
            f"Pre-processed {file.name} -> {processed.name}: {format_timestamp(result.buffer.duration)}, "
            f"{processed.size} bytes"
        )
        return PreprocessResult(file=processed, degraded=result.degraded)
