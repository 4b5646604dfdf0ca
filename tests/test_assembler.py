"""Tests for media_conversion.assembler."""

from __future__ import annotations

import unittest

from media_conversion.assembler import ResultAssembler
from media_conversion.media import MediaDescriptor
from media_conversion.schema import (
    BackendKind,
    ConversionStatus,
    ErrorCode,
    ExtractionOutcome,
    ExtractionStrategy,
)
from media_conversion.utils import BackendError, OversizeInputError, UnsupportedFormatError


class _StepClock:
    def __init__(self, *values: float) -> None:
        self.values = list(values)

    def __call__(self) -> float:
        return self.values.pop(0)


class TestResultAssembler(unittest.TestCase):
    def setUp(self) -> None:
        self.descriptor = MediaDescriptor.from_bytes(b"abc", "image/png", filename="a.png", id="d1")

    def test_success_copies_outcome(self) -> None:
        assembler = ResultAssembler(clock=_StepClock(1.0, 1.5))
        started = assembler.start()
        outcome = ExtractionOutcome(text="hi", confidence=88, backend=BackendKind.OCR, page_count=2)
        result = assembler.success(
            self.descriptor, started, outcome, ExtractionStrategy.OCR_WITH_FALLBACK,
            confidence=88, notes=["n1"],
        )
        self.assertEqual(result.status, ConversionStatus.SUCCESS)
        self.assertEqual(result.extracted_text, "hi")
        self.assertEqual(result.method, BackendKind.OCR)
        self.assertEqual(result.confidence, 88)
        self.assertEqual(result.elapsed_ms, 500)
        self.assertEqual(result.page_count, 2)
        self.assertEqual(result.notes, ["n1"])
        self.assertIsNone(result.error_code)
        self.assertIsNone(result.error_message)

    def test_failure_uses_error_code_and_prefix(self) -> None:
        assembler = ResultAssembler(clock=_StepClock(0.0, 0.01))
        error = BackendError("engine crashed", backend=BackendKind.OCR)
        result = assembler.failure(
            self.descriptor, assembler.start(), error, method=BackendKind.OCR, used_fallback=True
        )
        self.assertEqual(result.status, ConversionStatus.FAILED)
        self.assertEqual(result.error_code, ErrorCode.BACKEND_FAILURE)
        self.assertEqual(result.error_message, "Document conversion failed: ocr: engine crashed")
        self.assertEqual(result.extracted_text, "")
        self.assertIsNone(result.confidence)
        self.assertTrue(result.used_fallback)

    def test_oversize_message(self) -> None:
        assembler = ResultAssembler(clock=_StepClock(0.0, 0.0))
        result = assembler.failure(self.descriptor, assembler.start(), OversizeInputError("too big"))
        self.assertEqual(result.error_code, ErrorCode.OVERSIZE_INPUT)
        self.assertTrue(result.error_message.startswith("File size exceeds maximum limit"))

    def test_not_supported(self) -> None:
        assembler = ResultAssembler(clock=_StepClock(0.0, 0.0))
        result = assembler.not_supported(
            self.descriptor, assembler.start(), UnsupportedFormatError("nope"),
            strategy=ExtractionStrategy.SPEECH,
        )
        self.assertEqual(result.status, ConversionStatus.NOT_SUPPORTED)
        self.assertEqual(result.error_code, ErrorCode.UNSUPPORTED_FORMAT)
        self.assertIsNone(result.method)
        self.assertFalse(result.used_fallback)

    def test_elapsed_never_negative(self) -> None:
        assembler = ResultAssembler(clock=_StepClock(5.0, 4.0))
        result = assembler.failure(self.descriptor, assembler.start(), OversizeInputError("x"))
        self.assertEqual(result.elapsed_ms, 0)


if __name__ == "__main__":
    unittest.main()
