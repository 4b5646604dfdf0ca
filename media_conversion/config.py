"""Centralized configuration for conversion limits, thresholds and engines.

All env-driven settings live here so there is a single source of truth.
``load_settings()`` gathers them into an immutable ``ConversionSettings``
that is handed to the orchestrator at construction time.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes")


def _env_int(name: str, default: int, lo: int = 1, hi: int = 10_000) -> int:
    try:
        return max(lo, min(hi, int(os.environ.get(name, str(default)))))
    except (TypeError, ValueError):
        return default


def _env_str(name: str, default: str | None = None) -> str | None:
    value = os.environ.get(name, "").strip()
    return value or default


UPLOAD_CHUNK_SIZE: int = 64 * 1024  # 64 KiB streaming chunks


@dataclass(frozen=True)
class ConversionSettings:
    """Runtime settings for one orchestrator instance."""

    max_file_size_bytes: int = 20 * 1024 * 1024
    ocr_fallback_threshold: int = 75
    ocr_lang: str = "eng"
    tessdata_path: str | None = None
    ocr_dpi: int = 300
    ocr_max_pages: int = 20
    speech_enabled: bool = True
    speech_model: str = "whisper-1"
    speech_language: str = "en"
    vision_enabled: bool = True
    vision_model: str = "gpt-4o-mini"
    vision_timeout_sec: int = 30
    tika_server_endpoint: str | None = None
    tika_timeout_sec: int = 60
    metadata_service_url: str | None = None
    metadata_document_endpoint: str = "/api/v1/documents/{document_id}"
    tenant_header: str = "X-Tenant-ID"
    async_workers: int = 1
    job_store_dir: str | None = None


def load_settings() -> ConversionSettings:
    """Build settings from the process environment."""

    return ConversionSettings(
        max_file_size_bytes=_env_int(
            "MAX_FILE_SIZE_BYTES", default=20 * 1024 * 1024, lo=1, hi=500 * 1024 * 1024,
        ),
        ocr_fallback_threshold=_env_int("OCR_FALLBACK_THRESHOLD", default=75, lo=0, hi=100),
        ocr_lang=_env_str("OCR_LANG", "eng"),
        tessdata_path=_env_str("TESSDATA_PATH"),
        ocr_dpi=_env_int("OCR_DPI", default=300, hi=1200),
        ocr_max_pages=_env_int("OCR_MAX_PAGES", default=20, hi=1000),
        speech_enabled=_env_bool("SPEECH_ENABLED", default=True),
        speech_model=_env_str("SPEECH_MODEL", "whisper-1"),
        speech_language=_env_str("SPEECH_LANGUAGE", "en"),
        vision_enabled=_env_bool("VISION_ENABLED", default=True),
        vision_model=_env_str("VISION_MODEL", "gpt-4o-mini"),
        vision_timeout_sec=_env_int("VISION_TIMEOUT_SEC", default=30, hi=600),
        tika_server_endpoint=_env_str("TIKA_SERVER_ENDPOINT"),
        tika_timeout_sec=_env_int("TIKA_TIMEOUT_SEC", default=60, hi=600),
        metadata_service_url=_env_str("METADATA_SERVICE_URL"),
        metadata_document_endpoint=_env_str(
            "METADATA_DOCUMENT_ENDPOINT", "/api/v1/documents/{document_id}"
        ),
        tenant_header=_env_str("TENANT_HEADER", "X-Tenant-ID"),
        async_workers=_env_int("ASYNC_WORKERS", default=1, hi=32),
        job_store_dir=_env_str("JOB_STORE_DIR"),
    )


SETTINGS: ConversionSettings = load_settings()


def log_startup_config(settings: ConversionSettings = SETTINGS) -> None:
    """Print one startup line summarising active configuration."""
    msg = (
        f"Media conversion config: "
        f"MAX_FILE_SIZE_BYTES={settings.max_file_size_bytes} "
        f"OCR_FALLBACK_THRESHOLD={settings.ocr_fallback_threshold} "
        f"OCR_LANG={settings.ocr_lang} OCR_DPI={settings.ocr_dpi} "
        f"OCR_MAX_PAGES={settings.ocr_max_pages} "
        f"SPEECH_ENABLED={settings.speech_enabled} SPEECH_MODEL={settings.speech_model} "
        f"VISION_ENABLED={settings.vision_enabled} VISION_MODEL={settings.vision_model} "
        f"TIKA_SERVER_ENDPOINT={settings.tika_server_endpoint or 'default'} "
        f"METADATA_SERVICE_URL={settings.metadata_service_url or 'unset'} "
        f"ASYNC_WORKERS={settings.async_workers}"
    )
    print(msg, flush=True)
    sys.stderr.write(msg + "\n")
    sys.stderr.flush()
