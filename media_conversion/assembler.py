"""Uniform construction of ``ConversionResult`` records for every outcome path."""

from __future__ import annotations

import time
from typing import Callable, Iterable

from .media import MediaDescriptor
from .schema import (
    BackendKind,
    ConversionResult,
    ConversionStatus,
    ErrorCode,
    ExtractionOutcome,
    ExtractionStrategy,
)
from .utils import ConversionError

ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.UNSUPPORTED_FORMAT: "Unsupported document format",
    ErrorCode.OVERSIZE_INPUT: "File size exceeds maximum limit",
    ErrorCode.BACKEND_FAILURE: "Document conversion failed",
    ErrorCode.NO_CONTENT_EXTRACTED: "No text content found in document",
    ErrorCode.CANCELLED: "Conversion cancelled by caller",
    ErrorCode.INTERNAL_ERROR: "Unexpected conversion error",
}


class ResultAssembler:
    """Builds immutable results; elapsed time is measured on a monotonic clock."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock

    def start(self) -> float:
        return self._clock()

    def _elapsed_ms(self, started: float) -> int:
        return max(0, int((self._clock() - started) * 1000))

    def success(
        self,
        descriptor: MediaDescriptor,
        started: float,
        outcome: ExtractionOutcome,
        strategy: ExtractionStrategy,
        confidence: int | None,
        used_fallback: bool = False,
        notes: Iterable[str] = (),
    ) -> ConversionResult:
        return ConversionResult(
            id=descriptor.id,
            extracted_text=outcome.text,
            status=ConversionStatus.SUCCESS,
            method=outcome.backend,
            strategy=strategy,
            confidence=confidence,
            used_fallback=used_fallback,
            elapsed_ms=self._elapsed_ms(started),
            notes=list(notes),
            filename=descriptor.filename,
            content_type=descriptor.content_type,
            page_count=outcome.page_count,
        )

    def failure(
        self,
        descriptor: MediaDescriptor,
        started: float,
        error: ConversionError,
        strategy: ExtractionStrategy | None = None,
        method: BackendKind | None = None,
        used_fallback: bool = False,
        notes: Iterable[str] = (),
    ) -> ConversionResult:
        return self._error_result(
            ConversionStatus.FAILED, descriptor, started, error,
            strategy, method, used_fallback, notes,
        )

    def not_supported(
        self,
        descriptor: MediaDescriptor,
        started: float,
        error: ConversionError,
        strategy: ExtractionStrategy | None = None,
        notes: Iterable[str] = (),
    ) -> ConversionResult:
        return self._error_result(
            ConversionStatus.NOT_SUPPORTED, descriptor, started, error,
            strategy, None, False, notes,
        )

    def _error_result(
        self,
        status: ConversionStatus,
        descriptor: MediaDescriptor,
        started: float,
        error: ConversionError,
        strategy: ExtractionStrategy | None,
        method: BackendKind | None,
        used_fallback: bool,
        notes: Iterable[str],
    ) -> ConversionResult:
        prefix = ERROR_MESSAGES.get(error.code, ERROR_MESSAGES[ErrorCode.INTERNAL_ERROR])
        detail = str(error)
        message = f"{prefix}: {detail}" if detail and detail != prefix else prefix
        return ConversionResult(
            id=descriptor.id,
            extracted_text="",
            status=status,
            method=method,
            strategy=strategy,
            confidence=None,
            used_fallback=used_fallback,
            elapsed_ms=self._elapsed_ms(started),
            error_code=error.code,
            error_message=message,
            notes=list(notes),
            filename=descriptor.filename,
            content_type=descriptor.content_type,
        )
