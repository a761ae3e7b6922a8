import io
from types import SimpleNamespace

import numpy as np
import pytest
import soundfile as sf

from meeting_scribe.audio.backend import AudioBackend, AudioContext, SoundfileBackend
from meeting_scribe.errors import ResourceExhaustionError

CONFIG_KEYS = [
    "API_KEY",
    "VITE_API_KEY",
    "LLM_API_BASE_URL",
    "LLM_MODEL",
    "FALLBACK_MODELS",
    "RETRY_DELAY_SECONDS",
    "REQUEST_TIMEOUT_SECONDS",
    "INTER_ITEM_DELAY_SECONDS",
    "MAX_INLINE_AUDIO_MB",
    "SPLIT_CHUNK_MB",
    "TRANSCRIPT_LANGUAGE",
    "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Isolate every test from the developer's environment and .env file."""
    for key in CONFIG_KEYS:
        monkeypatch.delenv(key, raising=False)


def make_tone(seconds, rate, freq=440.0, amplitude=1.0):
    t = np.arange(int(seconds * rate)) / rate
    return (amplitude * np.sin(2 * np.pi * freq * t)).astype(np.float32)


def make_wav(samples, rate):
    """Encode float samples (frames,) or (frames, channels) as a float WAV."""
    out = io.BytesIO()
    sf.write(out, samples, rate, format="WAV", subtype="FLOAT")
    return out.getvalue()


@pytest.fixture
def tone():
    return make_tone


@pytest.fixture
def wav_bytes():
    return make_wav


class FailingRenderContext(AudioContext):
    """Decodes like soundfile but cannot render."""

    def __init__(self, inner):
        super().__init__()
        self.inner = inner

    def decode(self, data):
        return self.inner.decode(data)

    def render(self, buffer, target_rate, target_channels=1):
        raise ResourceExhaustionError("offline rendering unavailable")

    def close(self):
        if not self.closed:
            super().close()
            self.inner.close()


class FailingRenderBackend(AudioBackend):
    def __init__(self):
        self.inner = SoundfileBackend()

    @property
    def open_contexts(self):
        return self.inner.open_contexts

    def open_context(self):
        return FailingRenderContext(self.inner.open_context())


@pytest.fixture
def failing_render_backend():
    return FailingRenderBackend()


class FakeCompletions:
    def __init__(self, owner):
        self.owner = owner

    def create(self, **kwargs):
        self.owner.calls.append(kwargs)
        behaviour = FakeOpenAI.behaviour.get(self.owner.api_key, FakeOpenAI.default_reply)
        if isinstance(behaviour, BaseException):
            raise behaviour
        message = SimpleNamespace(content=behaviour)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeOpenAI:
    """Stand-in for openai.OpenAI recording every request."""

    instances = []
    behaviour = {}
    default_reply = "transcript text"

    def __init__(self, api_key=None, base_url=None, timeout=None, max_retries=None):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max_retries
        self.calls = []
        self.chat = SimpleNamespace(completions=FakeCompletions(self))
        FakeOpenAI.instances.append(self)


@pytest.fixture
def fake_openai():
    FakeOpenAI.instances = []
    FakeOpenAI.behaviour = {}
    FakeOpenAI.default_reply = "transcript text"
    return FakeOpenAI
