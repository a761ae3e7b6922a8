import base64

import pytest

from meeting_scribe.audio import AudioFile, ProcessingOptions
from meeting_scribe.errors import (
    ConfigurationError,
    ExhaustedError,
    FatalRemoteError,
    PayloadTooLargeError,
    TransientRemoteError,
)
from meeting_scribe.llm import MeetingAssistant, MeetingDetails, strip_code_fences
from meeting_scribe.llm.client import audio_format


@pytest.fixture
def assistant_factory(fake_openai):
    def factory(keys="key-one,key-two", **kwargs):
        assistant = MeetingAssistant.from_config(keys, client_factory=fake_openai, **kwargs)
        assistant.executor._sleep = lambda seconds: None
        return assistant

    return factory


@pytest.fixture
def wav_file():
    return AudioFile(name="standup.wav", data=b"RIFF-fake-wave-bytes", mime_type="audio/wav")


def test_transcribe_sends_inline_audio(assistant_factory, fake_openai, wav_file):
    assistant = assistant_factory(language="English")

    assert assistant.transcribe(wav_file) == "transcript text"

    (client,) = fake_openai.instances
    assert client.api_key == "key-one"
    assert client.max_retries == 0
    assert client.timeout == 600.0
    assert client.base_url == "https://generativelanguage.googleapis.com/v1beta/openai/"
    request = client.calls[0]
    assert request["model"] == "gemini-2.0-flash"
    system, user = request["messages"]
    assert system["role"] == "system"
    audio_part, text_part = user["content"]
    assert audio_part["type"] == "input_audio"
    assert audio_part["input_audio"]["format"] == "wav"
    assert base64.b64decode(audio_part["input_audio"]["data"]) == wav_file.data
    assert "English" in text_part["text"]
    assert "[SPEAKER 1]" not in text_part["text"]


def test_transcribe_with_speaker_hint(assistant_factory, fake_openai, wav_file):
    assistant = assistant_factory()
    options = ProcessingOptions(identify_speakers=True, speaker_count=4)

    assistant.transcribe(wav_file, model="gemini-2.5-pro", options=options)

    request = fake_openai.instances[0].calls[0]
    prompt = request["messages"][1]["content"][1]["text"]
    assert request["model"] == "gemini-2.5-pro"
    assert "[SPEAKER 1]:" in prompt
    assert "approximately 4 speakers" in prompt


def test_oversized_audio_is_rejected_before_any_request(assistant_factory, fake_openai):
    assistant = assistant_factory(max_inline_bytes=10)
    big = AudioFile(name="long.mp3", data=b"x" * 11, mime_type="audio/mpeg")

    with pytest.raises(PayloadTooLargeError):
        assistant.transcribe(big)

    assert fake_openai.instances == []


def test_quota_on_first_key_switches_to_second(assistant_factory, fake_openai, wav_file):
    fake_openai.behaviour["key-one"] = TransientRemoteError("quota exceeded")
    assistant = assistant_factory()

    assert assistant.transcribe(wav_file) == "transcript text"
    assert [client.api_key for client in fake_openai.instances] == ["key-one", "key-two"]

    # clients are reused per credential
    assistant.transcribe(wav_file)
    assert len(fake_openai.instances) == 2
    assert len(fake_openai.instances[1].calls) == 2


def test_fallback_model_from_configuration(monkeypatch, assistant_factory, fake_openai, wav_file):
    monkeypatch.setenv("FALLBACK_MODELS", "gemini-2.5-pro:gemini-2.5-flash")
    fake_openai.behaviour["solo"] = TransientRemoteError("quota exceeded")
    assistant = assistant_factory(keys="solo", model="gemini-2.5-pro")

    with pytest.raises(ExhaustedError):
        assistant.transcribe(wav_file)

    models = [call["model"] for call in fake_openai.instances[0].calls]
    assert models == ["gemini-2.5-pro", "gemini-2.5-flash", "gemini-2.5-flash"]


def test_empty_response_is_fatal(assistant_factory, fake_openai, wav_file):
    fake_openai.default_reply = ""
    assistant = assistant_factory()

    with pytest.raises(FatalRemoteError):
        assistant.transcribe(wav_file)

    assert len(fake_openai.instances) == 1


def test_generate_minutes_strips_fences(assistant_factory, fake_openai):
    fake_openai.default_reply = "```html\n<!DOCTYPE html><html></html>\n```"
    assistant = assistant_factory(language="English")
    details = MeetingDetails(topic="Quarterly budget", chair="Ms. Lan")

    html = assistant.generate_minutes("We agreed on the budget.", details)

    assert html == "<!DOCTYPE html><html></html>"
    prompt = fake_openai.instances[0].calls[0]["messages"][1]["content"]
    assert "We agreed on the budget." in prompt
    assert "Topic: Quarterly budget" in prompt
    assert "Attendees: (not provided)" in prompt


def test_regenerate_minutes_includes_previous_html(assistant_factory, fake_openai):
    fake_openai.default_reply = "<html>v2</html>"
    assistant = assistant_factory()

    html = assistant.regenerate_minutes("text", MeetingDetails(), "<html>v1</html>", "Add an action item")

    assert html == "<html>v2</html>"
    prompt = fake_openai.instances[0].calls[0]["messages"][1]["content"]
    assert "<html>v1</html>" in prompt
    assert "Add an action item" in prompt


def test_identify_speakers(assistant_factory, fake_openai):
    fake_openai.default_reply = "[SPEAKER 1]: Hello\n[SPEAKER 2]: Hi"
    assistant = assistant_factory()

    assert assistant.identify_speakers("Hello Hi").startswith("[SPEAKER 1]:")
    assert "Hello Hi" in fake_openai.instances[0].calls[0]["messages"][0]["content"]


def test_missing_credentials_fail_fast():
    with pytest.raises(ConfigurationError):
        MeetingAssistant.from_config()


@pytest.mark.parametrize(
    "mime, expected",
    [
        ("audio/wav", "wav"),
        ("audio/x-wav", "wav"),
        ("audio/mpeg", "mp3"),
        ("audio/ogg", "ogg"),
        ("audio/x-flac", "flac"),
    ],
)
def test_audio_format(mime, expected):
    assert audio_format(mime) == expected


def test_strip_code_fences_leaves_plain_text():
    assert strip_code_fences("  <p>hi</p> ") == "<p>hi</p>"
    assert strip_code_fences("```\n<p>hi</p>\n```") == "<p>hi</p>"
