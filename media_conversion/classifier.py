"""Content-type routing: map a MIME type to an extraction strategy."""

from __future__ import annotations

import logging

from .schema import ExtractionStrategy

logger = logging.getLogger(__name__)

MIME_TYPE_PDF = "application/pdf"

# Structured and text-bearing formats parsed without OCR.
TEXT_BASED_MIME_TYPES: frozenset[str] = frozenset(
    {
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/vnd.ms-powerpoint",
        "application/vnd.openxmlformats-officedocument.presentationml.presentation",
        "application/vnd.oasis.opendocument.text",
        "application/vnd.oasis.opendocument.spreadsheet",
        "application/vnd.oasis.opendocument.presentation",
        "application/rtf",
        "application/json",
        "application/xml",
        "application/xhtml+xml",
        "text/plain",
        "text/csv",
        "text/html",
        "text/xml",
        "text/markdown",
        "text/rtf",
    }
)

IMAGE_MIME_TYPES: frozenset[str] = frozenset(
    {
        "image/jpeg",
        "image/jpg",
        "image/pjpeg",
        "image/png",
        "image/tiff",
        "image/bmp",
        "image/x-ms-bmp",
        "image/gif",
        "image/webp",
    }
)


def normalize_content_type(content_type: str | None) -> str:
    """Lower-case a MIME type and drop any ``;`` parameters."""

    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def is_text_based(content_type: str | None) -> bool:
    normalized = normalize_content_type(content_type)
    return normalized in TEXT_BASED_MIME_TYPES or normalized.startswith("text/")


def is_image(content_type: str | None) -> bool:
    return normalize_content_type(content_type) in IMAGE_MIME_TYPES


def is_pdf(content_type: str | None) -> bool:
    return normalize_content_type(content_type) == MIME_TYPE_PDF


def is_audio(content_type: str | None) -> bool:
    # The whole audio family routes to speech so an unknown codec surfaces as
    # an encoding error instead of empty text from the structural parser.
    return normalize_content_type(content_type).startswith("audio/")


class MediaClassifier:
    """Pure, total classifier from content type to ``ExtractionStrategy``."""

    def classify(self, content_type: str | None) -> ExtractionStrategy:
        try:
            normalized = normalize_content_type(content_type)
        except (AttributeError, TypeError):
            logger.debug("Content type %r is not a string, defaulting to TEXT_ONLY", content_type)
            return ExtractionStrategy.TEXT_ONLY

        if not normalized:
            logger.debug("Content type is empty, defaulting to TEXT_ONLY")
            return ExtractionStrategy.TEXT_ONLY
        if is_text_based(normalized):
            return ExtractionStrategy.TEXT_ONLY
        if is_image(normalized):
            return ExtractionStrategy.OCR_WITH_FALLBACK
        if is_pdf(normalized):
            # Fast path; scanned PDFs need an explicit OCR override.
            return ExtractionStrategy.TEXT_ONLY
        if is_audio(normalized):
            return ExtractionStrategy.SPEECH
        logger.debug("Content type %s unknown, defaulting to TEXT_ONLY", normalized)
        return ExtractionStrategy.TEXT_ONLY


def classify(content_type: str | None) -> ExtractionStrategy:
    """Module-level shortcut for ``MediaClassifier().classify``."""

    return MediaClassifier().classify(content_type)
