"""Secondary OCR path: ask an OpenAI vision model to transcribe visible text.

Invoked by the orchestrator when Tesseract is unsure, but usable on its own.
The model gives no confidence, so outcomes carry ``confidence=None``.
"""

from __future__ import annotations

import base64
import io
import logging
import os

import openai
from pdf2image import convert_from_bytes
from PIL import Image, UnidentifiedImageError

from ..classifier import is_pdf, normalize_content_type
from ..media import MediaDescriptor
from ..schema import BackendKind, ExtractionOutcome
from ..utils import BackendError, read_stream

logger = logging.getLogger(__name__)

VLM_TIMEOUT_SEC = 30
VLM_MODEL_DEFAULT = "gpt-4o-mini"
VLM_MAX_PAGES = 5
NO_TEXT_SENTINEL = "NO_TEXT"

# Formats the vision endpoint accepts as-is; anything else is re-encoded to PNG.
PASSTHROUGH_IMAGE_TYPES = frozenset({"image/png", "image/jpeg", "image/gif", "image/webp"})

TRANSCRIBE_PROMPT = (
    "Transcribe all text visible in this image exactly as written, preserving "
    "line breaks and reading order. Do not describe the image or add commentary. "
    f"If there is no text, reply with {NO_TEXT_SENTINEL}."
)


def _pil_to_base64_png(image: Image.Image) -> str:
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode("utf-8")


def _strip_code_fence(text: str) -> str:
    if text.startswith("```"):
        lines = text.split("\n")
        if lines[0].startswith("```"):
            lines = lines[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        text = "\n".join(lines)
    return text.strip()


def _is_configured() -> bool:
    return bool(os.environ.get("OPENAI_API_KEY"))


class VisionFallbackBackend:
    """High-accuracy OCR through a vision-language model."""

    kind = BackendKind.VISION_FALLBACK

    def __init__(
        self,
        model: str = VLM_MODEL_DEFAULT,
        timeout_sec: int = VLM_TIMEOUT_SEC,
        enabled: bool = True,
        dpi: int = 200,
        max_pages: int = VLM_MAX_PAGES,
        max_bytes: int | None = None,
        client: openai.OpenAI | None = None,
    ) -> None:
        self.model = model
        self.timeout_sec = timeout_sec
        self.enabled = enabled
        self.dpi = dpi
        self.max_pages = max_pages
        self.max_bytes = max_bytes
        self._client = client

    def _get_client(self) -> openai.OpenAI:
        if self._client is None:
            if not _is_configured():
                raise BackendError("OPENAI_API_KEY is not set", backend=self.kind)
            self._client = openai.OpenAI()
        return self._client

    def extract(self, descriptor: MediaDescriptor) -> ExtractionOutcome:
        if not self.enabled:
            raise BackendError("Vision fallback is disabled", backend=self.kind)
        client = self._get_client()

        try:
            with descriptor.open() as stream:
                data = read_stream(stream, self.max_bytes)
        except OSError as exc:
            raise BackendError(f"Failed to read media: {exc}", backend=self.kind) from exc

        image_urls = self._image_urls(data, descriptor.content_type)
        content: list[dict] = [{"type": "text", "text": TRANSCRIBE_PROMPT}]
        content.extend({"type": "image_url", "image_url": {"url": url}} for url in image_urls)
        try:
            resp = client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": content}],
                timeout=self.timeout_sec,
            )
        except openai.OpenAIError as exc:
            raise BackendError(f"Vision request failed: {exc}", backend=self.kind) from exc

        text = ""
        if resp.choices and resp.choices[0].message.content:
            text = _strip_code_fence(resp.choices[0].message.content.strip())
        if text == NO_TEXT_SENTINEL:
            text = ""
        logger.info("Vision fallback for %s returned %d chars", descriptor.id, len(text))
        return ExtractionOutcome(
            text=text,
            confidence=None,
            backend=self.kind,
            note=f"Transcribed with {self.model} over {len(image_urls)} image(s)",
            page_count=len(image_urls),
        )

    def _image_urls(self, data: bytes, content_type: str | None) -> list[str]:
        normalized = normalize_content_type(content_type)
        if is_pdf(normalized):
            try:
                pages = convert_from_bytes(
                    data, dpi=self.dpi, first_page=1, last_page=self.max_pages
                )
            except Exception as exc:  # pragma: no cover - depends on system binaries
                raise BackendError(f"PDF rendering failed: {exc}", backend=self.kind) from exc
            return [f"data:image/png;base64,{_pil_to_base64_png(page)}" for page in pages]
        if normalized in PASSTHROUGH_IMAGE_TYPES:
            encoded = base64.b64encode(data).decode("utf-8")
            return [f"data:{normalized};base64,{encoded}"]
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
            raise BackendError(f"Image could not be decoded: {exc}", backend=self.kind) from exc
        return [f"data:image/png;base64,{_pil_to_base64_png(image.convert('RGB'))}"]
