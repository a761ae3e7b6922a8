import io

import numpy as np
import pytest
import soundfile as sf

from meeting_scribe.audio import (
    AudioFile,
    AudioPreprocessingPipeline,
    ProcessingOptions,
    SignalConditioner,
    SoundfileBackend,
    WaveformCodec,
)
from meeting_scribe.errors import DecodeError, EncodingTooLargeError, ResourceExhaustionError

ALL_STAGES = ProcessingOptions(
    convert_to_mono_16khz=True, noise_reduction=True, normalize_volume=True, remove_silence=True
)


def read_wav(data):
    return sf.read(io.BytesIO(data), dtype="float32")


@pytest.fixture
def meeting_file(tone, wav_bytes):
    rate = 44100
    speech = tone(12.5, rate, amplitude=0.5)
    gap = np.zeros(5 * rate, dtype=np.float32)
    samples = np.concatenate([speech, gap, speech])
    return AudioFile(name="meeting.wav", data=wav_bytes(samples, rate), mime_type="audio/wav")


def test_no_options_returns_original_file_untouched(meeting_file):
    backend = SoundfileBackend()
    pipeline = AudioPreprocessingPipeline(backend)

    result = pipeline.process(meeting_file, ProcessingOptions(identify_speakers=True, speaker_count=3))

    assert result is meeting_file
    assert result.data == meeting_file.data
    assert backend.open_contexts == 0


def test_very_short_input_keeps_one_sample(wav_bytes):
    short = AudioFile("blip.wav", wav_bytes(np.array([0.25, -0.25], dtype=np.float32), 44100), "audio/wav")

    processed = AudioPreprocessingPipeline().process(short, ProcessingOptions(convert_to_mono_16khz=True))

    assert len(processed.data) == 46
    audio, rate = read_wav(processed.data)
    assert rate == 16000
    assert len(audio) == 1


def test_end_to_end_meeting_scenario(meeting_file):
    options = ProcessingOptions(convert_to_mono_16khz=True, remove_silence=True, normalize_volume=True)

    processed = AudioPreprocessingPipeline().process(meeting_file, options)

    assert processed.name == "meeting_processed.wav"
    assert processed.mime_type == "audio/wav"
    audio, rate = read_wav(processed.data)
    assert rate == 16000
    assert audio.ndim == 1
    duration = len(audio) / rate
    # 25 s of speech plus roughly 200 ms of padding around the removed gap
    assert 25.0 < duration < 25.5
    assert np.max(np.abs(audio)) == pytest.approx(0.95, abs=2e-3)
    assert len(processed.data) == 44 + 2 * len(audio)


def test_decode_failure_raises_and_releases_context():
    backend = SoundfileBackend()
    pipeline = AudioPreprocessingPipeline(backend)
    broken = AudioFile(name="broken.mp3", data=b"\x00\x01garbage" * 64, mime_type="audio/mpeg")

    with pytest.raises(DecodeError):
        pipeline.process(broken, ALL_STAGES)

    assert backend.open_contexts == 0


class ExhaustedConditioner(SignalConditioner):
    def condition(self, buffer, options, context=None):
        raise ResourceExhaustionError("cannot allocate audio buffer")


class OutOfMemoryConditioner(SignalConditioner):
    def remove_silence(self, buffer):
        raise MemoryError()


@pytest.mark.parametrize("conditioner", [ExhaustedConditioner(), OutOfMemoryConditioner()])
def test_resource_failure_falls_back_to_original(meeting_file, conditioner):
    backend = SoundfileBackend()
    pipeline = AudioPreprocessingPipeline(backend, conditioner=conditioner)

    result = pipeline.process_with_status(meeting_file, ALL_STAGES)

    assert result.file is meeting_file
    assert result.degraded
    assert backend.open_contexts == 0


def test_no_free_context_falls_back_to_original(meeting_file):
    backend = SoundfileBackend(max_contexts=1)
    held = backend.open_context()
    try:
        result = AudioPreprocessingPipeline(backend).process_with_status(meeting_file, ALL_STAGES)
    finally:
        held.close()

    assert result.file is meeting_file
    assert result.degraded
    assert backend.open_contexts == 0


def test_render_failure_still_produces_processed_file(meeting_file, failing_render_backend):
    options = ProcessingOptions(convert_to_mono_16khz=True, normalize_volume=True)

    result = AudioPreprocessingPipeline(failing_render_backend).process_with_status(meeting_file, options)

    assert result.degraded
    assert result.file.name == "meeting_processed.wav"
    _, rate = read_wav(result.file.data)
    assert rate == 44100
    assert failing_render_backend.open_contexts == 0


def test_oversized_encoding_is_surfaced(meeting_file):
    backend = SoundfileBackend()
    pipeline = AudioPreprocessingPipeline(backend, codec=WaveformCodec(backend, max_bytes=1024))

    with pytest.raises(EncodingTooLargeError):
        pipeline.process(meeting_file, ProcessingOptions(normalize_volume=True))

    assert backend.open_contexts == 0


@pytest.mark.parametrize(
    "name, mime_type",
    [
        ("call.webm", "audio/webm"),
        ("memo.m4a", "audio/mp4"),
        ("screen.MP4", "audio/mp4"),
        ("meeting.wav", "audio/wav"),
        ("meeting.flac", "audio/flac"),
        ("notes.txt", "text/plain"),
    ],
)
def test_from_path_reports_audio_mime_types(tmp_path, name, mime_type):
    path = tmp_path / name
    path.write_bytes(b"data")

    file = AudioFile.from_path(path)

    assert file.mime_type == mime_type
    assert file.is_audio == mime_type.startswith("audio/")
