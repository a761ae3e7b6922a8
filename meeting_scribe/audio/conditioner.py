"""
Signal conditioning applied to decoded audio before transmission.

Stages run in a fixed order, each only when enabled in ProcessingOptions:

1. Resample & downmix to 16 kHz mono (offline render through the backend)
2. Silence removal (long quiet runs collapsed, speech kept with padding)
3. Noise reduction (simple amplitude gate, not spectral denoising)
4. Volume normalization (quiet recordings amplified to a target peak)

Resampling first gives the amplitude stages a canonical rate to work with.
A failed render is not fatal: the stage is skipped and the result is tagged
as degraded.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from ..errors import ResourceExhaustionError
from .backend import AudioContext
from .types import AudioBuffer, ProcessingOptions
from .utils import downmix, get_peak_level

logger = logging.getLogger(__name__)

TARGET_SAMPLE_RATE = 16000

SILENCE_THRESHOLD = 0.01  # -40 dBFS
MIN_SILENCE_SECONDS = 0.3
PADDING_SECONDS = 0.1

NOISE_GATE_THRESHOLD = 0.02  # -34 dBFS
NOISE_GATE_REDUCTION = 0.2

NORMALIZE_TARGET_PEAK = 0.95  # -0.44 dBFS
NORMALIZE_MIN_PEAK = 0.001


@dataclass
class ConditioningResult:
    """Conditioned audio plus whether any stage had to be skipped."""

    buffer: AudioBuffer
    degraded: bool = False


def find_sound_intervals(
    audio: np.ndarray, threshold: float, min_silence_samples: int
) -> List[Tuple[int, int]]:
    """
    Locate the sounding parts of a mono signal.

    Scans left to right: a sound interval starts at the first sample louder
    than ``threshold`` and ends where a quiet run (every sample below
    ``threshold``) of at least ``min_silence_samples`` begins. Shorter quiet
    runs stay inside the interval. Leading quiet samples are never included.

    Args:
        audio: Mono samples
        threshold: Absolute amplitude separating sound from silence
        min_silence_samples: Shortest quiet run that splits two intervals

    Returns:
        List of half-open ``(start, end)`` sample ranges, in order
    """
    magnitude = np.abs(audio)
    loud = np.flatnonzero(magnitude > threshold)
    if loud.size == 0:
        return []

    quiet = (magnitude < threshold).astype(np.int8)
    edges = np.diff(np.concatenate(([0], quiet, [0])))
    run_starts = np.flatnonzero(edges == 1)
    run_ends = np.flatnonzero(edges == -1)

    intervals = []
    start: Optional[int] = int(loud[0])
    for run_start, run_end in zip(run_starts, run_ends):
        if run_end <= start:
            continue
        if run_end - run_start < min_silence_samples:
            continue
        intervals.append((start, int(run_start)))
        next_loud = np.searchsorted(loud, run_end)
        if next_loud == loud.size:
            start = None
            break
        start = int(loud[next_loud])

    if start is not None:
        intervals.append((start, len(audio)))
    return intervals


def pad_intervals(intervals: List[Tuple[int, int]], padding: int, length: int) -> List[Tuple[int, int]]:
    """Widen each interval by ``padding`` samples, clamp to the signal and merge overlaps."""
    padded: List[Tuple[int, int]] = []
    for start, end in intervals:
        start, end = max(0, start - padding), min(length, end + padding)
        if padded and start <= padded[-1][1]:
            padded[-1] = (padded[-1][0], max(padded[-1][1], end))
        else:
            padded.append((start, end))
    return padded


class SignalConditioner:
    """Applies the enabled conditioning stages to an AudioBuffer."""

    def __init__(
        self,
        target_sample_rate: int = TARGET_SAMPLE_RATE,
        silence_threshold: float = SILENCE_THRESHOLD,
        min_silence_seconds: float = MIN_SILENCE_SECONDS,
        padding_seconds: float = PADDING_SECONDS,
        noise_threshold: float = NOISE_GATE_THRESHOLD,
        noise_reduction: float = NOISE_GATE_REDUCTION,
        target_peak: float = NORMALIZE_TARGET_PEAK,
    ):
        self.target_sample_rate = target_sample_rate
        self.silence_threshold = silence_threshold
        self.min_silence_seconds = min_silence_seconds
        self.padding_seconds = padding_seconds
        self.noise_threshold = noise_threshold
        self.noise_reduction = noise_reduction
        self.target_peak = target_peak

    def condition(
        self, buffer: AudioBuffer, options: ProcessingOptions, context: Optional[AudioContext] = None
    ) -> ConditioningResult:
        """
        Run every enabled stage in order.

        Args:
            buffer: Decoded audio (mutated in place by the amplitude stages)
            options: Which stages to run
            context: Open audio context, required for resampling

        Returns:
            ConditioningResult with the final buffer and a degraded flag
        """
        degraded = False

        if options.convert_to_mono_16khz:
            try:
                if context is None:
                    raise ResourceExhaustionError("No audio context available for rendering")
                buffer = self.resample(buffer, context)
            except ResourceExhaustionError as e:
                logger.warning(f"Offline audio rendering failed, skipping resampling: {e}")
                degraded = True

        if options.remove_silence:
            buffer = self.remove_silence(buffer)

        if options.noise_reduction:
            self.reduce_noise(buffer)

        if options.normalize_volume:
            self.normalize(buffer)

        return ConditioningResult(buffer=buffer, degraded=degraded)

    def resample(self, buffer: AudioBuffer, context: AudioContext) -> AudioBuffer:
        """Render to the target rate with a single channel."""
        rendered = context.render(buffer, self.target_sample_rate, 1)
        logger.debug(
            f"Resampled {buffer.num_channels}ch/{buffer.sample_rate} Hz -> 1ch/{rendered.sample_rate} Hz "
            f"({rendered.length} frames)"
        )
        return rendered

    def remove_silence(self, buffer: AudioBuffer) -> AudioBuffer:
        """
        Drop quiet runs longer than ``min_silence_seconds``.

        Each kept interval is widened by ``padding_seconds`` of the original
        signal on both sides so words are not clipped. An entirely silent
        input yields one second of silence instead of an empty buffer.
        """
        rate = buffer.sample_rate
        min_silence = int(self.min_silence_seconds * rate)
        padding = int(self.padding_seconds * rate)

        intervals = find_sound_intervals(downmix(buffer.samples), self.silence_threshold, min_silence)
        if not intervals:
            logger.info("Entire signal is below the silence threshold; keeping one second of silence")
            return AudioBuffer.silent(rate, 1.0, buffer.num_channels)

        padded = pad_intervals(intervals, padding, buffer.length)
        samples = np.concatenate([buffer.samples[:, start:end] for start, end in padded], axis=1)
        logger.debug(f"Silence removal kept {len(padded)} segment(s): {buffer.length} -> {samples.shape[1]} frames")
        return AudioBuffer(samples, rate)

    def reduce_noise(self, buffer: AudioBuffer) -> None:
        """Attenuate samples below the noise gate threshold (in place)."""
        samples = buffer.samples
        below = np.abs(samples) < self.noise_threshold
        samples[below] *= self.noise_reduction

    def normalize(self, buffer: AudioBuffer) -> None:
        """
        Scale a quiet recording so its peak reaches ``target_peak`` (in place).

        Near-silent buffers and buffers already at or above the target are
        left untouched; there is no downward gain.
        """
        peak = get_peak_level(buffer.samples)
        if peak <= NORMALIZE_MIN_PEAK or peak >= self.target_peak:
            return
        gain = self.target_peak / peak
        buffer.samples *= np.float32(gain)
        np.clip(buffer.samples, -1.0, 1.0, out=buffer.samples)
        logger.debug(f"Normalized peak {peak:.4f} -> {self.target_peak} (gain {gain:.2f})")
