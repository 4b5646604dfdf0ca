"""Audio transcription through the OpenAI speech-to-text API."""

from __future__ import annotations

import logging
import os
from pathlib import PurePath

import openai

from ..classifier import normalize_content_type
from ..media import MediaDescriptor
from ..schema import BackendKind, ExtractionOutcome
from ..utils import BackendError, UnsupportedEncodingError, read_stream

logger = logging.getLogger(__name__)

SPEECH_MODEL_DEFAULT = "whisper-1"

# Content type -> upload format understood by the transcription API.
AUDIO_ENCODINGS: dict[str, str] = {
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/mpga": "mp3",
    "audio/wav": "wav",
    "audio/wave": "wav",
    "audio/x-wav": "wav",
    "audio/vnd.wave": "wav",
    "audio/flac": "flac",
    "audio/x-flac": "flac",
    "audio/mp4": "m4a",
    "audio/m4a": "m4a",
    "audio/x-m4a": "m4a",
    "audio/ogg": "ogg",
    "audio/webm": "webm",
}


def detect_audio_encoding(content_type: str | None) -> str:
    """Return the encoding hint for *content_type* or raise UnsupportedEncodingError."""

    encoding = AUDIO_ENCODINGS.get(normalize_content_type(content_type))
    if encoding is None:
        raise UnsupportedEncodingError(content_type)
    return encoding


def _is_configured() -> bool:
    return bool(os.environ.get("OPENAI_API_KEY"))


class SpeechBackend:
    """Transcribe audio; reports no confidence and is never rescored."""

    kind = BackendKind.SPEECH

    def __init__(
        self,
        model: str = SPEECH_MODEL_DEFAULT,
        language: str | None = "en",
        enabled: bool = True,
        max_bytes: int | None = None,
        client: openai.OpenAI | None = None,
    ) -> None:
        self.model = model
        self.language = language
        self.enabled = enabled
        self.max_bytes = max_bytes
        self._client = client

    def _get_client(self) -> openai.OpenAI:
        if self._client is None:
            if not _is_configured():
                raise BackendError("OPENAI_API_KEY is not set", backend=self.kind)
            self._client = openai.OpenAI()
        return self._client

    def extract(self, descriptor: MediaDescriptor) -> ExtractionOutcome:
        encoding = detect_audio_encoding(descriptor.content_type)
        if not self.enabled:
            raise BackendError("Speech transcription is disabled", backend=self.kind)
        client = self._get_client()

        try:
            with descriptor.open() as stream:
                audio = read_stream(stream, self.max_bytes)
        except OSError as exc:
            raise BackendError(f"Failed to read media: {exc}", backend=self.kind) from exc

        stem = PurePath(descriptor.filename or descriptor.id).stem or "audio"
        kwargs = {
            "model": self.model,
            "file": (f"{stem}.{encoding}", audio),
            "response_format": "text",
        }
        if self.language:
            kwargs["language"] = self.language
        try:
            response = client.audio.transcriptions.create(**kwargs)
        except openai.OpenAIError as exc:
            raise BackendError(f"Transcription failed: {exc}", backend=self.kind) from exc

        text = response if isinstance(response, str) else getattr(response, "text", "") or ""
        logger.info("Transcribed %s (%s): %d chars", descriptor.id, encoding, len(text))
        return ExtractionOutcome(
            text=text.strip(),
            confidence=None,
            backend=self.kind,
            note=f"Transcribed with {self.model} ({encoding}, language={self.language or 'auto'})",
        )
