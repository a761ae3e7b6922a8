"""
Audio platform capability used by the codec and the conditioner.

Decoding and rendering are provided through short-lived contexts opened from
an AudioBackend. Contexts are a finite resource: a backend hands out at most
``max_contexts`` at a time and every context must be closed on every exit
path, which the pipeline guarantees by using them as context managers.

The default SoundfileBackend decodes any container libsndfile understands
(WAV, FLAC, OGG/Vorbis, MP3, ...) and renders by averaging channels and
resampling with linear interpolation.
"""

import io
import logging
import threading
from abc import ABC, abstractmethod

import numpy as np
import soundfile as sf

from ..errors import DecodeError, ResourceExhaustionError
from .types import AudioBuffer
from .utils import downmix, resample_linear

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONTEXTS = 6


class AudioContext(ABC):
    """An open decode/render session. Close it when done."""

    def __init__(self):
        self.closed = False

    @abstractmethod
    def decode(self, data: bytes) -> AudioBuffer:
        """Parse container bytes into an AudioBuffer."""

    @abstractmethod
    def render(self, buffer: AudioBuffer, target_rate: int, target_channels: int = 1) -> AudioBuffer:
        """Render ``buffer`` offline at ``target_rate`` with ``target_channels``."""

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> "AudioContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self.closed:
            self.close()


class AudioBackend(ABC):
    """Factory for AudioContext objects."""

    @abstractmethod
    def open_context(self) -> AudioContext:
        """Acquire a context. Raises ResourceExhaustionError if none is available."""


class SoundfileContext(AudioContext):
    """AudioContext backed by soundfile (libsndfile) and numpy."""

    def __init__(self, release):
        super().__init__()
        self._release = release

    def decode(self, data: bytes) -> AudioBuffer:
        if not data:
            raise DecodeError("Audio decoding failed: the file is empty.")
        try:
            audio, sample_rate = sf.read(io.BytesIO(data), dtype="float32", always_2d=True)
        except (sf.SoundFileError, RuntimeError, TypeError, ValueError) as e:
            raise DecodeError(
                "Audio decoding failed. The file may be corrupt or in an unsupported format."
            ) from e
        if audio.shape[0] == 0:
            raise DecodeError("Audio decoding failed: the file contains no samples.")
        # soundfile returns (frames, channels)
        buffer = AudioBuffer(np.ascontiguousarray(audio.T), int(sample_rate))
        logger.debug(f"Decoded {buffer.length} frames x {buffer.num_channels} channel(s) at {buffer.sample_rate} Hz")
        return buffer

    def render(self, buffer: AudioBuffer, target_rate: int, target_channels: int = 1) -> AudioBuffer:
        try:
            mono = downmix(buffer.samples)
            resampled = resample_linear(mono, buffer.sample_rate, target_rate)
            if target_channels > 1:
                samples = np.tile(resampled, (target_channels, 1))
            else:
                samples = resampled[np.newaxis, :]
        except MemoryError as e:
            raise ResourceExhaustionError(f"Not enough memory to render audio at {target_rate} Hz") from e
        return AudioBuffer(samples, target_rate)

    def close(self) -> None:
        if not self.closed:
            super().close()
            self._release()


class SoundfileBackend(AudioBackend):
    """Default backend with a bounded number of concurrently open contexts."""

    def __init__(self, max_contexts: int = DEFAULT_MAX_CONTEXTS):
        self.max_contexts = max_contexts
        self._slots = threading.BoundedSemaphore(max_contexts)
        self._lock = threading.Lock()
        self._open = 0

    @property
    def open_contexts(self) -> int:
        with self._lock:
            return self._open

    def open_context(self) -> AudioContext:
        if not self._slots.acquire(blocking=False):
            raise ResourceExhaustionError(f"Maximum number of audio contexts ({self.max_contexts}) already open")
        with self._lock:
            self._open += 1
        return SoundfileContext(self._release)

    def _release(self) -> None:
        with self._lock:
            self._open -= 1
        self._slots.release()
