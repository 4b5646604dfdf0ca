"""Background worker for async conversion jobs.

Uses a small ThreadPoolExecutor so the ASGI event loop is not blocked. One
conversion occupies one worker thread from classification to assembly.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor

from .config import SETTINGS
from .media import MediaDescriptor, RequestContext
from .orchestrator import get_orchestrator
from .schema import ExtractionStrategy
from .job_store import store

logger = logging.getLogger(__name__)

_pool = ThreadPoolExecutor(max_workers=max(1, SETTINGS.async_workers))


def _run(
    job_id: str,
    descriptor: MediaDescriptor,
    context: RequestContext,
    strategy: ExtractionStrategy | None = None,
    temp_path: str | None = None,
) -> None:
    """Convert *descriptor* and record the result. Runs in a thread."""
    store.set_processing(job_id)
    try:
        result = get_orchestrator().convert(descriptor, context=context, strategy=strategy)
        store.set_completed(job_id, result)
    except Exception as exc:
        logger.exception("Conversion job %s crashed", job_id)
        store.set_failed(job_id, f"{type(exc).__name__}: {exc}")
    finally:
        # Temp upload written by the API layer.
        if temp_path:
            try:
                if os.path.exists(temp_path):
                    os.remove(temp_path)
            except OSError:
                logger.warning("Failed to remove temp file %s", temp_path)


def enqueue(
    job_id: str,
    descriptor: MediaDescriptor,
    context: RequestContext,
    strategy: ExtractionStrategy | None = None,
    temp_path: str | None = None,
) -> None:
    """Submit a conversion job to the background thread pool."""
    _pool.submit(_run, job_id, descriptor, context, strategy, temp_path)
