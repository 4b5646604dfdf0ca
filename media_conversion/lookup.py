"""HTTP client for the upstream document metadata service."""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from .media import MediaDescriptor, RequestContext
from .schema import DocumentMetadata
from .utils import DocumentAccessDeniedError, DocumentLookupError, DocumentNotFoundError

logger = logging.getLogger(__name__)


class DocumentLookupClient:
    """Resolve opaque document ids to metadata and downloadable descriptors.

    The tenant header is taken from the explicit ``RequestContext`` of each
    call, never from ambient state.
    """

    def __init__(
        self,
        base_url: str,
        document_endpoint: str = "/api/v1/documents/{document_id}",
        tenant_header: str = "X-Tenant-ID",
        timeout: float = 30.0,
        max_bytes: int | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.document_endpoint = document_endpoint
        self.tenant_header = tenant_header
        self.timeout = timeout
        self.max_bytes = max_bytes
        self._client = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def _headers(self, context: RequestContext | None) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if context is not None and context.tenant_id:
            headers[self.tenant_header] = context.tenant_id
        return headers

    def get_document(self, document_id: str, context: RequestContext | None = None) -> DocumentMetadata:
        if not document_id or not document_id.strip():
            raise ValueError("document_id cannot be empty")
        url = self.document_endpoint.replace("{document_id}", document_id)
        logger.info(
            "Getting document %s [tenant=%s]", document_id, context.tenant_id if context else None
        )
        try:
            response = self._client.get(url, headers=self._headers(context))
        except httpx.HTTPError as exc:
            raise DocumentLookupError(f"Failed to get document {document_id}: {exc}") from exc

        if response.status_code == 404:
            raise DocumentNotFoundError(f"Document not found: {document_id}")
        if response.status_code in (401, 403):
            raise DocumentAccessDeniedError(f"Access denied for document: {document_id}")
        if response.is_error:
            raise DocumentLookupError(
                f"Metadata service returned {response.status_code} for document {document_id}"
            )
        try:
            return DocumentMetadata.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise DocumentLookupError(f"Malformed metadata for document {document_id}: {exc}") from exc

    def content_length(self, url: str) -> int | None:
        """Declared size of *url* from a HEAD request, or None when unknown."""
        try:
            response = self._client.head(url, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Could not determine file size for %s: %s", url, exc)
            return None
        raw = response.headers.get("content-length")
        try:
            return int(raw) if raw is not None else None
        except ValueError:
            return None

    def descriptor_for(self, metadata: DocumentMetadata) -> MediaDescriptor:
        size = metadata.size_bytes
        if size is None:
            size = self.content_length(metadata.download_location)
        return MediaDescriptor.from_url(
            metadata.download_location,
            content_type=metadata.content_type,
            filename=metadata.filename,
            id=metadata.id,
            size_bytes=size,
            max_bytes=self.max_bytes,
            client=self._client,
            timeout=self.timeout,
        )
