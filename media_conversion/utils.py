"""Error taxonomy and small helpers shared by the conversion pipeline."""

from __future__ import annotations

import shutil
from typing import BinaryIO, Iterable

from .schema import BackendKind, ErrorCode

READ_CHUNK_SIZE = 64 * 1024


class ConversionError(Exception):
    """Base exception for conversion errors."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR


class UnsupportedFormatError(ConversionError):
    """Raised when no strategy or backend can handle a content type."""

    code = ErrorCode.UNSUPPORTED_FORMAT


class OversizeInputError(ConversionError):
    """Raised when media exceeds the configured byte limit."""

    code = ErrorCode.OVERSIZE_INPUT


class NoContentExtractedError(ConversionError):
    """Raised when every attempted backend returned empty text."""

    code = ErrorCode.NO_CONTENT_EXTRACTED


class CancelledConversionError(ConversionError):
    """Raised when the caller abandoned the conversion."""

    code = ErrorCode.CANCELLED


class BackendError(ConversionError):
    """Raised by a backend on I/O, parse or remote-service failure.

    ``recoverable`` says whether a different backend could plausibly succeed
    on the same bytes.
    """

    code = ErrorCode.BACKEND_FAILURE

    def __init__(
        self,
        message: str,
        backend: BackendKind | None = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.backend = backend
        self.recoverable = recoverable

    def __str__(self) -> str:
        message = super().__str__()
        if self.backend is None:
            return message
        return f"{self.backend.value}: {message}"


class UnsupportedEncodingError(BackendError):
    """Raised when an audio content type has no known transcription encoding."""

    def __init__(self, content_type: str | None) -> None:
        super().__init__(
            f"Unsupported audio encoding for content type {content_type!r}",
            backend=BackendKind.SPEECH,
            recoverable=False,
        )
        self.content_type = content_type


class MissingDependencyError(BackendError):
    """Raised when required system binaries are missing."""


class DocumentLookupError(ConversionError):
    """Raised when the upstream metadata service cannot be queried."""

    code = ErrorCode.LOOKUP_FAILED


class DocumentNotFoundError(DocumentLookupError):
    code = ErrorCode.DOCUMENT_NOT_FOUND


class DocumentAccessDeniedError(DocumentLookupError):
    code = ErrorCode.ACCESS_DENIED


def read_stream(stream: BinaryIO, limit: int | None = None) -> bytes:
    """Read a non-seekable stream to the end in chunks, enforcing *limit*."""

    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = stream.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        total += len(chunk)
        if limit is not None and total > limit:
            raise OversizeInputError(
                f"Input exceeds limit of {limit} bytes."
            )
        chunks.append(chunk)
    return b"".join(chunks)


def check_binary_exists(binary_name: str) -> bool:
    """Return True if a binary is available on PATH."""

    return shutil.which(binary_name) is not None


def ensure_binaries(binaries: Iterable[str], backend: BackendKind) -> None:
    """Ensure all required binaries exist on PATH."""

    missing = [binary for binary in binaries if not check_binary_exists(binary)]
    if missing:
        raise MissingDependencyError(
            f"Missing required system binaries: {', '.join(missing)}",
            backend=backend,
            recoverable=True,
        )
