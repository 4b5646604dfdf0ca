"""Media descriptors and per-request context passed explicitly into conversions."""

from __future__ import annotations

import io
import logging
import tempfile
import threading
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Callable

import httpx

from .config import UPLOAD_CHUNK_SIZE
from .utils import OversizeInputError

logger = logging.getLogger(__name__)

# Downloads up to this size stay in memory before spilling to disk.
_SPOOL_MAX_BYTES = 8 * 1024 * 1024


@dataclass(frozen=True)
class MediaDescriptor:
    """One piece of media to convert.

    ``opener`` must return a fresh, independent, sequentially readable stream
    on every call so a fallback backend never depends on a stream the
    primary already consumed. Streams handed out by ``open()`` are tracked
    and released by ``close()``.
    """

    id: str
    filename: str | None
    content_type: str | None
    opener: Callable[[], BinaryIO] = field(repr=False)
    size_bytes: int | None = None
    _streams: list = field(default_factory=list, init=False, repr=False, compare=False)

    def open(self) -> BinaryIO:
        stream = self.opener()
        self._streams.append(stream)
        return stream

    def close(self) -> None:
        while self._streams:
            stream = self._streams.pop()
            try:
                stream.close()
            except OSError:
                logger.debug("Failed to close stream for %s", self.id)

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        content_type: str | None,
        filename: str | None = None,
        id: str | None = None,
    ) -> "MediaDescriptor":
        return cls(
            id=id or uuid.uuid4().hex,
            filename=filename,
            content_type=content_type,
            opener=lambda: io.BytesIO(data),
            size_bytes=len(data),
        )

    @classmethod
    def from_path(
        cls,
        path: str | Path,
        content_type: str | None,
        id: str | None = None,
        filename: str | None = None,
    ) -> "MediaDescriptor":
        file_path = Path(path).expanduser().resolve()
        return cls(
            id=id or uuid.uuid4().hex,
            filename=filename or file_path.name,
            content_type=content_type,
            opener=lambda: open(file_path, "rb"),
            size_bytes=file_path.stat().st_size,
        )

    @classmethod
    def from_url(
        cls,
        url: str,
        content_type: str | None,
        filename: str | None = None,
        id: str | None = None,
        size_bytes: int | None = None,
        max_bytes: int | None = None,
        client: httpx.Client | None = None,
        timeout: float = 60.0,
    ) -> "MediaDescriptor":
        """Descriptor whose every ``open()`` re-downloads *url*."""

        def _open() -> BinaryIO:
            return _download(url, max_bytes=max_bytes, client=client, timeout=timeout)

        return cls(
            id=id or uuid.uuid4().hex,
            filename=filename,
            content_type=content_type,
            opener=_open,
            size_bytes=size_bytes,
        )


def _download(
    url: str,
    max_bytes: int | None,
    client: httpx.Client | None,
    timeout: float,
) -> BinaryIO:
    """Stream *url* into a spooled temp file; raise OSError on transport errors."""
    spool = tempfile.SpooledTemporaryFile(max_size=_SPOOL_MAX_BYTES)
    total = 0
    try:
        if client is not None:
            stream_ctx = client.stream("GET", url, timeout=timeout, follow_redirects=True)
        else:
            stream_ctx = httpx.stream("GET", url, timeout=timeout, follow_redirects=True)
        with stream_ctx as response:
            response.raise_for_status()
            for chunk in response.iter_bytes(UPLOAD_CHUNK_SIZE):
                total += len(chunk)
                if max_bytes is not None and total > max_bytes:
                    raise OversizeInputError(
                        f"Download exceeds limit of {max_bytes} bytes."
                    )
                spool.write(chunk)
    except httpx.HTTPError as exc:
        spool.close()
        raise OSError(f"Download failed: {exc}") from exc
    except OversizeInputError:
        spool.close()
        raise
    spool.seek(0)
    return spool


@dataclass(frozen=True)
class RequestContext:
    """Tenant and request identity for one conversion call.

    ``cancel_event`` lets a transport signal that the caller went away; the
    orchestrator checks it between backend calls.
    """

    tenant_id: str | None = None
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    cancel_event: threading.Event | None = field(default=None, repr=False, compare=False)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()
