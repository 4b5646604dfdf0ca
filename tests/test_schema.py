"""Tests for media_conversion.schema."""

from __future__ import annotations

import unittest

from pydantic import ValidationError

from media_conversion.schema import (
    BackendKind,
    ConversionResult,
    ConversionStatus,
    DocumentMetadata,
    ExtractionOutcome,
)


class TestExtractionOutcome(unittest.TestCase):
    def test_confidence_bounds(self) -> None:
        with self.assertRaises(ValidationError):
            ExtractionOutcome(text="x", confidence=101, backend=BackendKind.OCR)
        with self.assertRaises(ValidationError):
            ExtractionOutcome(text="x", confidence=-1, backend=BackendKind.OCR)

    def test_has_text_ignores_whitespace(self) -> None:
        self.assertFalse(ExtractionOutcome(text=" \n", backend=BackendKind.OCR).has_text)
        self.assertTrue(ExtractionOutcome(text=" a ", backend=BackendKind.OCR).has_text)

    def test_frozen(self) -> None:
        outcome = ExtractionOutcome(text="x", backend=BackendKind.OCR)
        with self.assertRaises(ValidationError):
            outcome.text = "y"


class TestConversionResult(unittest.TestCase):
    def test_json_uses_enum_values(self) -> None:
        result = ConversionResult(
            id="d", extracted_text="t", status=ConversionStatus.SUCCESS,
            method=BackendKind.VISION_FALLBACK, used_fallback=True,
        )
        data = result.model_dump(mode="json")
        self.assertEqual(data["status"], "SUCCESS")
        self.assertEqual(data["method"], "vision-fallback")
        self.assertEqual(data["notes"], [])


class TestDocumentMetadata(unittest.TestCase):
    def test_aliases(self) -> None:
        metadata = DocumentMetadata.model_validate(
            {"documentId": "a", "downloadUrl": "http://x/a", "mimeType": "text/plain"}
        )
        self.assertEqual(metadata.id, "a")
        self.assertEqual(metadata.content_type, "text/plain")
        self.assertIsNone(metadata.size_bytes)

    def test_populate_by_name(self) -> None:
        metadata = DocumentMetadata(id="b", download_location="http://x/b")
        self.assertEqual(metadata.download_location, "http://x/b")

    def test_download_url_required(self) -> None:
        with self.assertRaises(ValidationError):
            DocumentMetadata.model_validate({"documentId": "a"})


if __name__ == "__main__":
    unittest.main()
