"""
Numpy helpers shared by the backend, the conditioner and the CLI.
"""

import numpy as np


def format_timestamp(seconds: float) -> str:
    """Render a duration as MM:SS, or HH:MM:SS from one hour up."""
    total = int(seconds)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def downmix(samples: np.ndarray) -> np.ndarray:
    """
    Average all channels sample-by-sample into one.

    Args:
        samples: Audio array of shape (channels, frames)

    Returns:
        Mono float32 array of shape (frames,)
    """
    if samples.shape[0] == 1:
        return samples[0]
    return samples.mean(axis=0, dtype=np.float32)


def resample_linear(audio: np.ndarray, source_rate: int, target_rate: int) -> np.ndarray:
    """
    Resample a mono signal using linear interpolation.

    Args:
        audio: Mono audio array
        source_rate: Sample rate of ``audio`` in Hz
        target_rate: Desired sample rate in Hz

    Returns:
        Resampled float32 array of ``int(duration * target_rate)`` samples,
        never fewer than one
    """
    if source_rate == target_rate or len(audio) == 0:
        return audio.astype(np.float32, copy=False)

    duration = len(audio) / source_rate
    target_length = max(1, int(duration * target_rate))
    positions = np.arange(target_length, dtype=np.float64) * (source_rate / target_rate)
    return np.interp(positions, np.arange(len(audio), dtype=np.float64), audio).astype(np.float32)


def get_peak_level(audio: np.ndarray) -> float:
    """Largest absolute sample value (0.0 for empty input)."""
    if audio.size == 0:
        return 0.0
    return float(np.max(np.abs(audio)))


def get_audio_level(audio: np.ndarray) -> float:
    """
    Root-mean-square level of ``audio``.

    Accumulated in float64. Returns 0.0 for empty input.
    """
    if audio.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(audio, dtype=np.float64))))
