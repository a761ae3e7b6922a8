"""
Data types shared by the audio pre-processing pipeline.
"""

import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import numpy as np

WAV_MIME_TYPE = "audio/wav"

# Recorder containers that mimetypes reports as video, or not at all
AUDIO_MIME_TYPES = {
    ".wav": WAV_MIME_TYPE,
    ".webm": "audio/webm",
    ".weba": "audio/webm",
    ".m4a": "audio/mp4",
    ".mp4": "audio/mp4",
    ".ogg": "audio/ogg",
    ".opus": "audio/ogg",
    ".flac": "audio/flac",
    ".mp3": "audio/mpeg",
}

PROCESSED_SUFFIX = "_processed.wav"


@dataclass
class AudioBuffer:
    """
    Decoded audio held in memory.

    ``samples`` has shape (channels, frames) and dtype float32 with values in
    [-1, 1]. All channels therefore have equal length by construction.
    """

    samples: np.ndarray
    sample_rate: int

    def __post_init__(self):
        samples = np.asarray(self.samples, dtype=np.float32)
        if samples.ndim == 1:
            samples = samples[np.newaxis, :]
        if samples.ndim != 2 or samples.shape[0] < 1:
            raise ValueError(f"AudioBuffer expects (channels, frames) samples, got shape {samples.shape}")
        if self.sample_rate <= 0:
            raise ValueError(f"Invalid sample rate: {self.sample_rate}")
        self.samples = samples

    @property
    def num_channels(self) -> int:
        return self.samples.shape[0]

    @property
    def length(self) -> int:
        """Number of frames per channel."""
        return self.samples.shape[1]

    @property
    def duration(self) -> float:
        return self.length / float(self.sample_rate)

    @classmethod
    def silent(cls, sample_rate: int, seconds: float = 1.0, channels: int = 1) -> "AudioBuffer":
        """Create a zero-filled buffer."""
        return cls(np.zeros((channels, int(seconds * sample_rate)), dtype=np.float32), sample_rate)


@dataclass(frozen=True)
class ProcessingOptions:
    """
    User-selected processing options.

    The four DSP toggles drive the SignalConditioner. ``identify_speakers`` and
    ``speaker_count`` only shape the remote transcription prompt.
    """

    convert_to_mono_16khz: bool = False
    noise_reduction: bool = False
    normalize_volume: bool = False
    remove_silence: bool = False
    identify_speakers: bool = False
    speaker_count: Optional[int] = None

    def __post_init__(self):
        if self.speaker_count is not None and self.speaker_count < 1:
            raise ValueError("speaker_count must be a positive integer")

    @property
    def needs_processing(self) -> bool:
        """True if any signal-conditioning stage is enabled."""
        return self.convert_to_mono_16khz or self.noise_reduction or self.normalize_volume or self.remove_silence


@dataclass
class AudioFile:
    """A named blob of bytes with a declared MIME type."""

    name: str
    data: bytes = field(repr=False)
    mime_type: str = "application/octet-stream"

    @classmethod
    def from_path(cls, path) -> "AudioFile":
        path = Path(path)
        mime_type = AUDIO_MIME_TYPES.get(path.suffix.lower())
        if mime_type is None:
            mime_type, _ = mimetypes.guess_type(path.name)
            if mime_type in ("audio/x-wav", "audio/wave"):
                mime_type = WAV_MIME_TYPE
            elif mime_type in ("video/webm", "video/mp4"):
                mime_type = "audio/" + mime_type.split("/", 1)[1]
        return cls(name=path.name, data=path.read_bytes(), mime_type=mime_type or "application/octet-stream")

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def stem(self) -> str:
        """Base name without the last extension."""
        base, dot, _ = self.name.rpartition(".")
        return base if dot and base else self.name

    @property
    def is_audio(self) -> bool:
        return self.mime_type.startswith("audio/")

    @property
    def is_text(self) -> bool:
        return self.mime_type.startswith("text/")

    def processed_name(self) -> str:
        return f"{self.stem}{PROCESSED_SUFFIX}"

    def write(self, path) -> Path:
        path = Path(path)
        path.write_bytes(self.data)
        return path
