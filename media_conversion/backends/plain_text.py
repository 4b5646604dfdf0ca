"""Structural text extraction: direct decoding, PyMuPDF for PDFs, Apache Tika otherwise.

Structured formats either parse fully or fail, so confidence is fixed.
"""

from __future__ import annotations

import codecs
import logging
from typing import Any

import fitz  # PyMuPDF
from tika import parser

from ..classifier import is_pdf, normalize_content_type
from ..media import MediaDescriptor
from ..schema import BackendKind, ExtractionOutcome
from ..utils import BackendError, read_stream

logger = logging.getLogger(__name__)

FIXED_CONFIDENCE = 100

# Types whose bytes are already the text; no parser needed.
DIRECT_DECODE_MIME_TYPES: frozenset[str] = frozenset(
    {
        "text/plain",
        "text/csv",
        "text/markdown",
        "application/json",
    }
)


def content_type_charset(content_type: str | None) -> str | None:
    """Return the ``charset=`` parameter of a MIME type, if any."""

    if not content_type:
        return None
    for param in content_type.split(";")[1:]:
        key, _, value = param.partition("=")
        if key.strip().lower() == "charset":
            return value.strip().strip('"\'') or None
    return None


def decode_text(data: bytes, charset: str | None = None) -> str:
    """Decode bytes with the declared charset, else UTF-8 (BOM tolerant).

    Invalid sequences are replaced; an unknown or mismatched charset falls
    back to UTF-8.
    """
    if charset:
        try:
            encoding = codecs.lookup(charset).name
        except LookupError:
            logger.warning("Unknown charset %r; decoding as UTF-8", charset)
        else:
            if encoding == "utf-8":
                encoding = "utf-8-sig"
            try:
                return data.decode(encoding).replace("\r\n", "\n")
            except UnicodeDecodeError:
                logger.warning("Bytes are not valid %s; decoding as UTF-8", encoding)
    return data.decode("utf-8-sig", errors="replace").replace("\r\n", "\n")


def _split_pages(content: str) -> list[str]:
    """Split Tika content into pages using form-feed markers."""

    if not content:
        return []
    pages = content.split("\f")
    if pages and pages[-1].strip() == "":
        pages = pages[:-1]
    return [page.strip() for page in pages]


def extract_pdf_text(data: bytes) -> tuple[str, int]:
    """Extract the embedded text layer of a PDF held in memory.

    Returns ``(full_text, page_count)``.
    """
    doc = fitz.open(stream=data, filetype="pdf")
    parts: list[str] = []
    try:
        page_count = doc.page_count
        for page in doc:
            text = page.get_text().strip()
            if text:
                parts.append(text)
    finally:
        doc.close()
    return "\n".join(parts), page_count


def _tika_page_count(metadata: dict[str, Any]) -> int | None:
    raw = metadata.get("xmpTPg:NPages") or metadata.get("meta:page-count")
    if isinstance(raw, list):
        raw = raw[0] if raw else None
    try:
        return int(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None


class PlainTextBackend:
    """Fast structural parser for text-bearing formats."""

    kind = BackendKind.PLAIN_TEXT

    def __init__(
        self,
        tika_server_endpoint: str | None = None,
        tika_timeout_sec: int = 60,
        max_bytes: int | None = None,
    ) -> None:
        self.tika_server_endpoint = tika_server_endpoint
        self.tika_timeout_sec = tika_timeout_sec
        self.max_bytes = max_bytes

    def extract(self, descriptor: MediaDescriptor) -> ExtractionOutcome:
        try:
            with descriptor.open() as stream:
                data = read_stream(stream, self.max_bytes)
        except OSError as exc:
            raise BackendError(f"Failed to read media: {exc}", backend=self.kind) from exc

        content_type = normalize_content_type(descriptor.content_type)
        if content_type in DIRECT_DECODE_MIME_TYPES:
            charset = content_type_charset(descriptor.content_type)
            return ExtractionOutcome(
                text=decode_text(data, charset),
                confidence=FIXED_CONFIDENCE,
                backend=self.kind,
                note=f"Decoded as {charset or 'UTF-8'} text",
            )
        if is_pdf(content_type):
            return self._extract_pdf(data)
        return self._extract_with_tika(data, content_type)

    def _extract_pdf(self, data: bytes) -> ExtractionOutcome:
        try:
            text, page_count = extract_pdf_text(data)
        except Exception as exc:
            raise BackendError(f"PDF text extraction failed: {exc}", backend=self.kind) from exc
        note = "Extracted PDF text layer with PyMuPDF"
        if not text.strip():
            note = "PDF has no text layer; scanned PDFs need the OCR strategy"
        return ExtractionOutcome(
            text=text,
            confidence=FIXED_CONFIDENCE,
            backend=self.kind,
            note=note,
            page_count=page_count,
        )

    def _extract_with_tika(self, data: bytes, content_type: str) -> ExtractionOutcome:
        kwargs: dict[str, Any] = {
            "requestOptions": {"timeout": self.tika_timeout_sec},
        }
        if self.tika_server_endpoint:
            kwargs["serverEndpoint"] = self.tika_server_endpoint
        if content_type:
            kwargs["headers"] = {"Content-Type": content_type}
        try:
            parsed = parser.from_buffer(data, **kwargs)
        except Exception as exc:  # pragma: no cover - depends on Tika runtime
            raise BackendError(f"Tika extraction failed: {exc}", backend=self.kind) from exc

        status = parsed.get("status")
        if status is not None and status != 200:
            raise BackendError(f"Tika returned status {status}", backend=self.kind)
        content = (parsed.get("content") or "").replace("\r\n", "\n")
        pages = _split_pages(content)
        metadata = parsed.get("metadata") or {}
        logger.debug("Tika extracted %d chars from %d page(s)", len(content), len(pages))
        return ExtractionOutcome(
            text="\n".join(pages) if pages else content.strip(),
            confidence=FIXED_CONFIDENCE,
            backend=self.kind,
            note="Extracted using Apache Tika",
            page_count=_tika_page_count(metadata),
        )
