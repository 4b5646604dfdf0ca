"""Pluggable text extraction backends.

Each module in this package wraps one existing engine behind the same
``extract(descriptor) -> ExtractionOutcome`` capability. Backends raise
``BackendError`` on failure and never return ``None``; every call opens its
own stream from the descriptor.
"""

from __future__ import annotations

import logging
from typing import Mapping, Protocol

from ..config import ConversionSettings
from ..media import MediaDescriptor
from ..schema import BackendKind, ExtractionOutcome

logger = logging.getLogger(__name__)


class TextExtractionBackend(Protocol):
    kind: BackendKind

    def extract(self, descriptor: MediaDescriptor) -> ExtractionOutcome: ...


def default_backends(settings: ConversionSettings) -> Mapping[BackendKind, TextExtractionBackend]:
    """Build the standard backend set from *settings*."""

    from .ocr import OcrBackend
    from .plain_text import PlainTextBackend
    from .speech import SpeechBackend
    from .vision import VisionFallbackBackend
    from .vision import _is_configured as vision_configured

    backends: dict[BackendKind, TextExtractionBackend] = {
        BackendKind.PLAIN_TEXT: PlainTextBackend(
            tika_server_endpoint=settings.tika_server_endpoint,
            tika_timeout_sec=settings.tika_timeout_sec,
            max_bytes=settings.max_file_size_bytes,
        ),
        BackendKind.OCR: OcrBackend(
            ocr_lang=settings.ocr_lang,
            tessdata_path=settings.tessdata_path,
            dpi=settings.ocr_dpi,
            max_pages=settings.ocr_max_pages,
            max_bytes=settings.max_file_size_bytes,
        ),
        BackendKind.SPEECH: SpeechBackend(
            model=settings.speech_model,
            language=settings.speech_language,
            enabled=settings.speech_enabled,
            max_bytes=settings.max_file_size_bytes,
        ),
    }
    # Registered only when it can actually run.
    if settings.vision_enabled and vision_configured():
        backends[BackendKind.VISION_FALLBACK] = VisionFallbackBackend(
            model=settings.vision_model,
            timeout_sec=settings.vision_timeout_sec,
            dpi=settings.ocr_dpi,
            max_bytes=settings.max_file_size_bytes,
        )
    else:
        logger.info("Vision fallback disabled or OPENAI_API_KEY unset; OCR results are kept as-is")
    return backends


__all__ = ["TextExtractionBackend", "default_backends"]
