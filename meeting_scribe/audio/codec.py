"""
Conversion between container bytes and in-memory sample data.

Decoding goes through the injected AudioBackend. Encoding always produces the
canonical format sent to the remote service: single-channel, 16-bit linear
PCM in a 44-byte RIFF/WAVE header followed by little-endian samples.
"""

import io
import logging
import wave
from typing import Optional

import numpy as np

from ..errors import EncodingTooLargeError
from .backend import AudioBackend, AudioContext, SoundfileBackend
from .types import AudioBuffer
from .utils import downmix

logger = logging.getLogger(__name__)

WAV_HEADER_BYTES = 44
BYTES_PER_SAMPLE = 2
# Largest buffer the encoder will allocate (2 GiB)
MAX_ENCODED_BYTES = 2 * 1024 * 1024 * 1024


def float_to_pcm16(audio: np.ndarray) -> np.ndarray:
    """
    Convert float samples to signed 16-bit integers.

    Samples are clamped to [-1, 1]; negative values scale by 32768 and
    non-negative values by 32767 so both ends of the int16 range are reachable
    without overflow. Fractions are truncated toward zero.

    Args:
        audio: Mono float array

    Returns:
        Little-endian int16 array
    """
    clipped = np.clip(audio.astype(np.float64), -1.0, 1.0)
    scaled = np.where(clipped < 0, clipped * 32768.0, clipped * 32767.0)
    return np.trunc(scaled).astype("<i2")


class WaveformCodec:
    """Decode arbitrary containers and encode canonical mono PCM WAV."""

    def __init__(self, backend: Optional[AudioBackend] = None, max_bytes: int = MAX_ENCODED_BYTES):
        """
        Initialize the codec.

        Args:
            backend: Audio platform used for decoding (default: SoundfileBackend)
            max_bytes: Ceiling on encoded output size in bytes
        """
        self.backend = backend or SoundfileBackend()
        self.max_bytes = max_bytes

    def decode(self, data: bytes, context: Optional[AudioContext] = None) -> AudioBuffer:
        """
        Decode container bytes into an AudioBuffer.

        Uses ``context`` when given, otherwise opens and closes a context of
        its own.

        Raises:
            DecodeError: If the data is corrupt or the codec is unsupported
        """
        if context is not None:
            return context.decode(data)
        with self.backend.open_context() as own_context:
            return own_context.decode(data)

    def encoded_size(self, buffer: AudioBuffer) -> int:
        """Byte length ``encode`` would produce for ``buffer``."""
        return WAV_HEADER_BYTES + BYTES_PER_SAMPLE * buffer.length

    def encode(self, buffer: AudioBuffer) -> bytes:
        """
        Encode a buffer as canonical 16-bit mono WAV.

        Multi-channel buffers are averaged into one channel first.

        Args:
            buffer: Audio to encode

        Returns:
            WAV bytes, exactly ``44 + 2 * buffer.length`` long

        Raises:
            EncodingTooLargeError: If the result would exceed ``max_bytes``
        """
        size = self.encoded_size(buffer)
        if size > self.max_bytes:
            raise EncodingTooLargeError(
                f"Processed audio would be {size} bytes, above the {self.max_bytes} byte limit. "
                "Split the source file into smaller parts."
            )

        pcm = float_to_pcm16(downmix(buffer.samples))

        out = io.BytesIO()
        with wave.open(out, "wb") as wf:
            wf.setnchannels(1)
            wf.setsampwidth(BYTES_PER_SAMPLE)
            wf.setframerate(buffer.sample_rate)
            wf.writeframes(pcm.tobytes())

        logger.debug(f"Encoded {buffer.length} samples at {buffer.sample_rate} Hz ({size} bytes)")
        return out.getvalue()
