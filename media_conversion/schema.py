"""Pydantic models for conversion outcomes and results."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class ExtractionStrategy(str, Enum):
    """Extraction pipeline chosen for a piece of media."""

    TEXT_ONLY = "TEXT_ONLY"
    OCR = "OCR"
    OCR_WITH_FALLBACK = "OCR_WITH_FALLBACK"
    SPEECH = "SPEECH"


class ConversionStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    NOT_SUPPORTED = "NOT_SUPPORTED"


class BackendKind(str, Enum):
    """Identifier tag reported by each extraction backend."""

    PLAIN_TEXT = "plain-text"
    OCR = "ocr"
    SPEECH = "speech"
    VISION_FALLBACK = "vision-fallback"


class ErrorCode(str, Enum):
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
    OVERSIZE_INPUT = "OVERSIZE_INPUT"
    BACKEND_FAILURE = "BACKEND_FAILURE"
    NO_CONTENT_EXTRACTED = "NO_CONTENT_EXTRACTED"
    CANCELLED = "CANCELLED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    DOCUMENT_NOT_FOUND = "DOCUMENT_NOT_FOUND"
    ACCESS_DENIED = "ACCESS_DENIED"
    LOOKUP_FAILED = "LOOKUP_FAILED"


class ExtractionOutcome(BaseModel):
    """What a single backend produced for one descriptor.

    ``confidence`` is ``None`` when the backend cannot estimate it; the
    orchestrator treats that as maximal uncertainty.
    """

    model_config = ConfigDict(frozen=True)

    text: str = ""
    confidence: int | None = Field(default=None, ge=0, le=100)
    backend: BackendKind
    note: str | None = None
    page_count: int | None = None

    @property
    def has_text(self) -> bool:
        return bool(self.text.strip())


class ConversionResult(BaseModel):
    """Outward-facing record of one conversion call."""

    model_config = ConfigDict(frozen=True)

    id: str
    extracted_text: str = ""
    status: ConversionStatus
    method: BackendKind | None = None
    strategy: ExtractionStrategy | None = None
    confidence: int | None = None
    used_fallback: bool = False
    elapsed_ms: int = 0
    error_code: ErrorCode | None = None
    error_message: str | None = None
    notes: List[str] = Field(default_factory=list)
    filename: str | None = None
    content_type: str | None = None
    page_count: int | None = None


class DocumentMetadata(BaseModel):
    """Document record returned by the upstream metadata service."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="documentId")
    filename: str | None = Field(default=None, alias="originalFileName")
    content_type: str | None = Field(default=None, alias="mimeType")
    created_at: datetime | None = Field(default=None, alias="createdAt")
    download_location: str = Field(alias="downloadUrl")
    size_bytes: int | None = Field(default=None, alias="sizeBytes")
