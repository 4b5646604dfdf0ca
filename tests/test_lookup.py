"""Tests for media_conversion.lookup (httpx.MockTransport, no network)."""

from __future__ import annotations

import unittest

import httpx

from media_conversion.lookup import DocumentLookupClient
from media_conversion.media import RequestContext
from media_conversion.utils import (
    DocumentAccessDeniedError,
    DocumentLookupError,
    DocumentNotFoundError,
)

_METADATA = {
    "documentId": "doc-7",
    "originalFileName": "scan.png",
    "mimeType": "image/png",
    "createdAt": "2024-03-01T10:00:00Z",
    "downloadUrl": "http://files.local/doc-7",
    "sizeBytes": 5,
}


class TestDocumentLookupClient(unittest.TestCase):
    def setUp(self) -> None:
        self.requests: list[httpx.Request] = []
        self.responses: dict[str, httpx.Response] = {}

    def _handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = f"{request.method} {request.url.path}"
        return self.responses.get(key, httpx.Response(404))

    def _client(self) -> DocumentLookupClient:
        return DocumentLookupClient(
            "http://metadata.local",
            transport=httpx.MockTransport(self._handler),
            max_bytes=1024,
        )

    def test_get_document_sends_tenant_header(self) -> None:
        self.responses["GET /api/v1/documents/doc-7"] = httpx.Response(200, json=_METADATA)
        metadata = self._client().get_document("doc-7", RequestContext(tenant_id="acme"))

        self.assertEqual(metadata.id, "doc-7")
        self.assertEqual(metadata.filename, "scan.png")
        self.assertEqual(metadata.content_type, "image/png")
        self.assertEqual(metadata.size_bytes, 5)
        self.assertEqual(self.requests[0].headers["X-Tenant-ID"], "acme")

    def test_no_tenant_header_without_context(self) -> None:
        self.responses["GET /api/v1/documents/doc-7"] = httpx.Response(200, json=_METADATA)
        self._client().get_document("doc-7")
        self.assertNotIn("X-Tenant-ID", self.requests[0].headers)

    def test_not_found(self) -> None:
        with self.assertRaises(DocumentNotFoundError):
            self._client().get_document("missing")

    def test_access_denied(self) -> None:
        for status in (401, 403):
            with self.subTest(status=status):
                self.responses["GET /api/v1/documents/doc-7"] = httpx.Response(status)
                with self.assertRaises(DocumentAccessDeniedError):
                    self._client().get_document("doc-7")

    def test_server_error(self) -> None:
        self.responses["GET /api/v1/documents/doc-7"] = httpx.Response(500)
        with self.assertRaises(DocumentLookupError) as ctx:
            self._client().get_document("doc-7")
        self.assertNotIsInstance(ctx.exception, DocumentNotFoundError)

    def test_malformed_body(self) -> None:
        self.responses["GET /api/v1/documents/doc-7"] = httpx.Response(200, json={"unexpected": 1})
        with self.assertRaises(DocumentLookupError):
            self._client().get_document("doc-7")

    def test_transport_failure(self) -> None:
        def failing(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = DocumentLookupClient("http://metadata.local", transport=httpx.MockTransport(failing))
        with self.assertRaises(DocumentLookupError):
            client.get_document("doc-7")

    def test_empty_id_rejected(self) -> None:
        with self.assertRaises(ValueError):
            self._client().get_document("  ")

    def test_descriptor_for_downloads_content(self) -> None:
        self.responses["GET /api/v1/documents/doc-7"] = httpx.Response(200, json=_METADATA)
        self.responses["GET /doc-7"] = httpx.Response(200, content=b"\x89PNG")
        client = self._client()
        descriptor = client.descriptor_for(client.get_document("doc-7"))

        self.assertEqual(descriptor.id, "doc-7")
        self.assertEqual(descriptor.content_type, "image/png")
        self.assertEqual(descriptor.size_bytes, 5)
        self.assertEqual(descriptor.open().read(), b"\x89PNG")
        descriptor.close()

    def test_size_from_head_when_metadata_lacks_it(self) -> None:
        body = dict(_METADATA, sizeBytes=None)
        self.responses["GET /api/v1/documents/doc-7"] = httpx.Response(200, json=body)
        self.responses["HEAD /doc-7"] = httpx.Response(200, headers={"Content-Length": "2048"})
        client = self._client()
        descriptor = client.descriptor_for(client.get_document("doc-7"))
        self.assertEqual(descriptor.size_bytes, 2048)

    def test_unknown_size_is_permissive(self) -> None:
        body = dict(_METADATA, sizeBytes=None)
        self.responses["GET /api/v1/documents/doc-7"] = httpx.Response(200, json=body)
        self.responses["HEAD /doc-7"] = httpx.Response(500)
        client = self._client()
        descriptor = client.descriptor_for(client.get_document("doc-7"))
        self.assertIsNone(descriptor.size_bytes)


if __name__ == "__main__":
    unittest.main()
