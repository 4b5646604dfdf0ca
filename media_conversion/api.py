"""FastAPI app for media-to-text conversion."""

from __future__ import annotations

import functools
import os
import tempfile
from pathlib import Path

from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from .config import SETTINGS, UPLOAD_CHUNK_SIZE, log_startup_config
from .job_store import store as job_store
from .lookup import DocumentLookupClient
from .media import MediaDescriptor, RequestContext
from .orchestrator import ConversionOrchestrator, get_orchestrator
from .schema import ExtractionStrategy
from .utils import DocumentAccessDeniedError, DocumentLookupError, DocumentNotFoundError
from .worker import enqueue as enqueue_job

app = FastAPI(title="Media Conversion Service")


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------
@app.on_event("startup")
def _startup() -> None:
    log_startup_config()


# ---------------------------------------------------------------------------
# Global error handler
# ---------------------------------------------------------------------------
@app.exception_handler(Exception)
async def _unhandled_exception_handler(request, exc: Exception):  # noqa: ARG001
    if isinstance(exc, HTTPException):
        raise exc
    return JSONResponse(
        status_code=500,
        content={"detail": str(exc) or "Internal server error"},
    )


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------
@functools.lru_cache(maxsize=1)
def get_lookup_client() -> DocumentLookupClient:
    if not SETTINGS.metadata_service_url:
        raise HTTPException(status_code=503, detail="Document metadata service is not configured.")
    return DocumentLookupClient(
        SETTINGS.metadata_service_url,
        document_endpoint=SETTINGS.metadata_document_endpoint,
        tenant_header=SETTINGS.tenant_header,
        max_bytes=SETTINGS.max_file_size_bytes,
    )


def _tenant_id(request: Request) -> str | None:
    value = request.headers.get(SETTINGS.tenant_header, "").strip()
    return value or None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
async def _stream_upload_to_temp(file: UploadFile) -> str:
    """Stream *file* to a temp file in chunks; enforce size limit. Returns path."""
    if not file.filename:
        raise HTTPException(status_code=400, detail="No file provided.")
    limit = SETTINGS.max_file_size_bytes
    total = 0
    tmp = tempfile.NamedTemporaryFile(delete=False, suffix=Path(file.filename).suffix)
    try:
        while True:
            chunk = await file.read(UPLOAD_CHUNK_SIZE)
            if not chunk:
                break
            total += len(chunk)
            if total > limit:
                raise HTTPException(
                    status_code=413,
                    detail=f"File too large (limit {limit // (1024 * 1024)} MB).",
                )
            tmp.write(chunk)
        tmp.flush()
    except Exception:
        tmp.close()
        os.unlink(tmp.name)
        raise
    finally:
        tmp.close()
    if total == 0:
        os.unlink(tmp.name)
        raise HTTPException(status_code=400, detail="Uploaded file is empty.")
    return tmp.name


def _upload_descriptor(temp_path: str, file: UploadFile) -> MediaDescriptor:
    return MediaDescriptor.from_path(
        temp_path, content_type=file.content_type, filename=file.filename
    )


# ---------------------------------------------------------------------------
# Health / config
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/config")
async def api_config():
    """Expose runtime limits to clients."""
    return {
        "max_file_size_bytes": SETTINGS.max_file_size_bytes,
        "ocr_fallback_threshold": SETTINGS.ocr_fallback_threshold,
        "speech_enabled": SETTINGS.speech_enabled,
        "vision_enabled": SETTINGS.vision_enabled,
        "strategies": [strategy.value for strategy in ExtractionStrategy],
    }


# ---------------------------------------------------------------------------
# Sync conversion endpoints
# ---------------------------------------------------------------------------
@app.post("/api/convert")
async def convert_endpoint(
    request: Request,
    file: UploadFile = File(...),
    strategy: ExtractionStrategy | None = None,
    orchestrator: ConversionOrchestrator = Depends(get_orchestrator),
):
    """Convert an uploaded file. The result carries its own status."""
    temp_path = await _stream_upload_to_temp(file)
    try:
        descriptor = _upload_descriptor(temp_path, file)
        context = RequestContext(tenant_id=_tenant_id(request))
        result = await run_in_threadpool(
            orchestrator.convert, descriptor, context, strategy
        )
        return result.model_dump(mode="json")
    finally:
        if os.path.exists(temp_path):
            os.remove(temp_path)


@app.get("/api/documents/{document_id}")
async def convert_document_endpoint(
    document_id: str,
    request: Request,
    strategy: ExtractionStrategy | None = None,
    orchestrator: ConversionOrchestrator = Depends(get_orchestrator),
    lookup: DocumentLookupClient = Depends(get_lookup_client),
):
    """Resolve *document_id* through the metadata service, then convert it."""
    tenant_id = _tenant_id(request)
    if tenant_id is None:
        raise HTTPException(status_code=400, detail=f"Missing {SETTINGS.tenant_header} header.")
    context = RequestContext(tenant_id=tenant_id)
    try:
        metadata = await run_in_threadpool(lookup.get_document, document_id, context)
    except DocumentNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except DocumentAccessDeniedError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    except DocumentLookupError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    descriptor = await run_in_threadpool(lookup.descriptor_for, metadata)
    result = await run_in_threadpool(orchestrator.convert, descriptor, context, strategy)
    return result.model_dump(mode="json")


# ---------------------------------------------------------------------------
# Async conversion endpoints
# ---------------------------------------------------------------------------
@app.post("/api/convert/async", status_code=202)
async def async_convert_endpoint(
    request: Request,
    file: UploadFile = File(...),
    strategy: ExtractionStrategy | None = None,
):
    """Accept a file and return 202 + job_id. Poll /api/convert/async/{job_id} for the result."""
    temp_path = await _stream_upload_to_temp(file)
    tenant_id = _tenant_id(request)
    job_id = job_store.create_job(tenant_id=tenant_id, filename=file.filename)
    enqueue_job(
        job_id,
        _upload_descriptor(temp_path, file),
        RequestContext(tenant_id=tenant_id),
        strategy=strategy,
        temp_path=temp_path,
    )
    return {"job_id": job_id, "status": "accepted"}


@app.get("/api/convert/async/{job_id}")
async def async_convert_status(job_id: str, request: Request):
    """Poll job status. Returns the result when completed, error when failed."""
    job = job_store.get_job(job_id, tenant_id=_tenant_id(request))
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found.")
    return job
