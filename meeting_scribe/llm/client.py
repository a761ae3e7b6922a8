"""
Meeting transcription and minutes generation over an OpenAI-compatible API.

Every request goes through a ResilientExecutor, so all operations share the
same credential rotation and model fallback behaviour. By default the client
talks to Gemini's OpenAI-compatible endpoint; any other compatible endpoint
can be configured through LLM_API_BASE_URL.

Key features:
- Inline audio transcription with optional speaker diarization
- Speaker re-labelling of an existing transcript
- HTML meeting minutes generation and revision
- One lazily created OpenAI client per credential
"""

import base64
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from openai import OpenAI

from ..audio.types import AudioFile, ProcessingOptions
from ..config import ConfigManager
from ..errors import FatalRemoteError, PayloadTooLargeError
from . import prompts
from .credentials import CredentialPool
from .executor import ExecutorState, ResilientExecutor

logger = logging.getLogger(__name__)

DEFAULT_MAX_INLINE_BYTES = 15 * 1024 * 1024

_AUDIO_FORMATS = {
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/wave": "wav",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/x-flac": "flac",
}


@dataclass
class MeetingDetails:
    """Free-form metadata included in the minutes prompt."""

    time_and_place: str = ""
    attendees: str = ""
    chair: str = ""
    topic: str = ""


def audio_format(mime_type: str) -> str:
    """Map a MIME type to the ``input_audio`` format name."""
    mime_type = mime_type.lower()
    if mime_type in _AUDIO_FORMATS:
        return _AUDIO_FORMATS[mime_type]
    return mime_type.split("/", 1)[-1]


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```html ... ``` markdown fence."""
    text = text.strip()
    if text.startswith("```html"):
        text = text[len("```html"):]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


class MeetingAssistant:
    """
    Remote operations of the meeting assistant.

    Builds chat messages for each task and hands them to the executor, which
    calls back into ``_complete`` with the credential and model to use.
    """

    def __init__(
        self,
        executor: ResilientExecutor,
        model: Optional[str] = None,
        language: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_inline_bytes: Optional[int] = None,
        client_factory: Callable[..., Any] = OpenAI,
    ):
        """
        Initialize the assistant.

        Args:
            executor: Executor that owns credentials and retry policy
            model: Default model (default: LLM_MODEL setting)
            language: Output language (default: TRANSCRIPT_LANGUAGE setting)
            base_url: OpenAI-compatible endpoint (default: LLM_API_BASE_URL setting)
            timeout: Per-request timeout in seconds (default: REQUEST_TIMEOUT_SECONDS setting)
            max_inline_bytes: Largest audio payload sent inline
            client_factory: Callable building an OpenAI client
        """
        self.executor = executor
        self.model = ConfigManager.get("LLM_MODEL", model)
        self.language = ConfigManager.get("TRANSCRIPT_LANGUAGE", language)
        self.base_url = ConfigManager.get("LLM_API_BASE_URL", base_url)
        self.timeout = ConfigManager.get_float("REQUEST_TIMEOUT_SECONDS", timeout)
        if max_inline_bytes is None:
            max_inline_bytes = ConfigManager.get_int("MAX_INLINE_AUDIO_MB") * 1024 * 1024
        self.max_inline_bytes = max_inline_bytes
        self._client_factory = client_factory
        self._clients: Dict[str, Any] = {}

    @classmethod
    def from_config(cls, api_keys: Optional[str] = None, **kwargs) -> "MeetingAssistant":
        """
        Build an assistant, executor and credential pool from configuration.

        Raises:
            ConfigurationError: If no credentials are configured
        """
        pool = CredentialPool.from_config(api_keys)
        state = ExecutorState(pool, ConfigManager.fallback_models())
        executor = ResilientExecutor(state, retry_delay=ConfigManager.get_float("RETRY_DELAY_SECONDS"))
        return cls(executor, **kwargs)

    def _client_for(self, credential: str):
        """Lazily create (and cache) the client for a credential."""
        client = self._clients.get(credential)
        if client is None:
            # The executor owns retries; the SDK must not retry 429s on its own
            client = self._client_factory(
                api_key=credential, base_url=self.base_url, timeout=self.timeout, max_retries=0
            )
            self._clients[credential] = client
        return client

    def _complete(self, credential: str, model: str, messages: List[Dict[str, Any]]) -> str:
        """Remote operation handed to the executor."""
        client = self._client_for(credential)
        response = client.chat.completions.create(model=model, messages=messages)
        text = response.choices[0].message.content if response.choices else None
        if not text:
            raise FatalRemoteError(f"Model {model} returned an empty response")
        return text

    def _run(
        self,
        messages: List[Dict[str, Any]],
        model: Optional[str],
        cancel_check: Optional[Callable[[], bool]] = None,
    ) -> str:
        return self.executor.execute(self._complete, model or self.model, messages, cancel_check=cancel_check)

    def transcribe(
        self,
        file: AudioFile,
        model: Optional[str] = None,
        options: Optional[ProcessingOptions] = None,
        cancel_check: Optional[Callable[[], bool]] = None,
    ) -> str:
        """
        Transcribe an audio file.

        Args:
            file: Audio to send inline
            model: Model override
            options: Speaker identification settings
            cancel_check: Stops the retry loop once it returns True

        Returns:
            Transcript text

        Raises:
            PayloadTooLargeError: If the file exceeds the inline size limit
            OperationCancelled: If cancellation was requested between attempts
        """
        options = options or ProcessingOptions()
        if file.size > self.max_inline_bytes:
            raise PayloadTooLargeError(
                f"{file.name} is {file.size} bytes, above the {self.max_inline_bytes} byte inline limit. "
                "Try a smaller file or enable audio pre-processing."
            )

        logger.info(f"Transcribing {file.name} ({file.size} bytes, {file.mime_type})")
        messages = [
            {"role": "system", "content": prompts.TRANSCRIBER_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": [
                    {
                        "type": "input_audio",
                        "input_audio": {
                            "data": base64.b64encode(file.data).decode("ascii"),
                            "format": audio_format(file.mime_type),
                        },
                    },
                    {
                        "type": "text",
                        "text": prompts.transcription_prompt(
                            self.language, options.identify_speakers, options.speaker_count
                        ),
                    },
                ],
            },
        ]
        return self._run(messages, model, cancel_check)

    def identify_speakers(self, transcription: str, model: Optional[str] = None) -> str:
        """Re-label a transcript with ``[SPEAKER n]:`` turns."""
        messages = [{"role": "user", "content": prompts.speaker_identification_prompt(transcription, self.language)}]
        return self._run(messages, model)

    def generate_minutes(self, transcription: str, details: MeetingDetails, model: Optional[str] = None) -> str:
        """Generate HTML meeting minutes from a transcript."""
        messages = [
            {"role": "system", "content": prompts.SECRETARY_SYSTEM_PROMPT},
            {"role": "user", "content": prompts.minutes_prompt(transcription, details, self.language)},
        ]
        return strip_code_fences(self._run(messages, model))

    def regenerate_minutes(
        self,
        transcription: str,
        details: MeetingDetails,
        previous_html: str,
        edit_request: str,
        model: Optional[str] = None,
    ) -> str:
        """Revise previously generated minutes according to ``edit_request``."""
        messages = [
            {"role": "system", "content": prompts.SECRETARY_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": prompts.edit_minutes_prompt(
                    transcription, details, previous_html, edit_request, self.language
                ),
            },
        ]
        return strip_code_fences(self._run(messages, model))
