"""
Audio pre-processing for speech-to-text transcription.

This package turns an uploaded recording into the canonical format sent to
the remote transcription service: 16-bit mono PCM WAV, optionally resampled
to 16 kHz, trimmed of long silences, noise-gated and peak-normalized.

Main components:
- WaveformCodec: container decoding and canonical WAV encoding
- SignalConditioner: the four conditioning stages
- AudioPreprocessingPipeline: decode -> condition -> encode with fallback
- SoundfileBackend: default decode/render platform (libsndfile + numpy)

Example usage:
    from meeting_scribe.audio import AudioFile, AudioPreprocessingPipeline, ProcessingOptions

    pipeline = AudioPreprocessingPipeline()
    options = ProcessingOptions(convert_to_mono_16khz=True, remove_silence=True)
    processed = pipeline.process(AudioFile.from_path("meeting.flac"), options)
"""

from .backend import AudioBackend, AudioContext, SoundfileBackend
from .codec import WaveformCodec, float_to_pcm16
from .conditioner import ConditioningResult, SignalConditioner, find_sound_intervals
from .preprocessing import AudioPreprocessingPipeline, PreprocessResult
from .types import AudioBuffer, AudioFile, ProcessingOptions
from .utils import format_timestamp, get_audio_level, get_peak_level

__all__ = [
    "AudioBackend",
    "AudioContext",
    "SoundfileBackend",
    "WaveformCodec",
    "float_to_pcm16",
    "ConditioningResult",
    "SignalConditioner",
    "find_sound_intervals",
    "AudioPreprocessingPipeline",
    "PreprocessResult",
    "AudioBuffer",
    "AudioFile",
    "ProcessingOptions",
    "format_timestamp",
    "get_audio_level",
    "get_peak_level",
]
