"""Tests for media_conversion.config."""

from __future__ import annotations

import os
import unittest
from unittest.mock import patch

from media_conversion.config import (
    ConversionSettings,
    _env_bool,
    _env_int,
    load_settings,
    log_startup_config,
)


class TestEnvHelpers(unittest.TestCase):
    def test_env_int_clamps(self) -> None:
        with patch.dict(os.environ, {"TEST_INT": "500"}):
            self.assertEqual(_env_int("TEST_INT", 5, lo=0, hi=100), 100)

    def test_env_int_invalid_falls_back(self) -> None:
        with patch.dict(os.environ, {"TEST_INT": "not_a_number"}):
            self.assertEqual(_env_int("TEST_INT", 7), 7)

    def test_env_bool(self) -> None:
        with patch.dict(os.environ, {"TEST_BOOL": "Yes"}):
            self.assertTrue(_env_bool("TEST_BOOL"))
        with patch.dict(os.environ, {"TEST_BOOL": "off"}):
            self.assertFalse(_env_bool("TEST_BOOL", default=True))
        with patch.dict(os.environ, {"TEST_BOOL": "  "}):
            self.assertTrue(_env_bool("TEST_BOOL", default=True))


class TestLoadSettings(unittest.TestCase):
    def test_defaults(self) -> None:
        settings = ConversionSettings()
        self.assertEqual(settings.max_file_size_bytes, 20 * 1024 * 1024)
        self.assertEqual(settings.ocr_fallback_threshold, 75)
        self.assertEqual(settings.tenant_header, "X-Tenant-ID")

    def test_env_overrides(self) -> None:
        env = {
            "MAX_FILE_SIZE_BYTES": "1024",
            "OCR_FALLBACK_THRESHOLD": "60",
            "SPEECH_ENABLED": "false",
            "VISION_MODEL": "gpt-4o",
            "METADATA_SERVICE_URL": "http://metadata:8080",
        }
        with patch.dict(os.environ, env):
            settings = load_settings()
        self.assertEqual(settings.max_file_size_bytes, 1024)
        self.assertEqual(settings.ocr_fallback_threshold, 60)
        self.assertFalse(settings.speech_enabled)
        self.assertEqual(settings.vision_model, "gpt-4o")
        self.assertEqual(settings.metadata_service_url, "http://metadata:8080")

    def test_threshold_is_clamped(self) -> None:
        with patch.dict(os.environ, {"OCR_FALLBACK_THRESHOLD": "250"}):
            self.assertEqual(load_settings().ocr_fallback_threshold, 100)

    def test_log_startup_config_runs(self) -> None:
        # Should not raise.
        log_startup_config(ConversionSettings())


if __name__ == "__main__":
    unittest.main()
