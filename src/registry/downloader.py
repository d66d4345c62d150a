"""Streaming archive download over aiohttp."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional, Tuple

import aiohttp

from constants import Constants
from common.errors import InstallError, OperationCancelledError
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


class ArchiveFetcher:
    """Download package tarballs to disk with progress and cancellation.

    A session is opened lazily and reused until ``close()``.
    """

    def __init__(
        self,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = 300,
        chunk_size: int = Constants.DOWNLOAD_CHUNK_SIZE,
    ):
        self._auth = aiohttp.BasicAuth(username, password or "") if username else None
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._chunk_size = chunk_size
        self._session: Optional[aiohttp.ClientSession] = None

    async def start(self) -> None:
        """Open the HTTP session."""
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                auth=self._auth,
                headers={"User-Agent": Constants.USER_AGENT},
            )

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "ArchiveFetcher":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def fetch(
        self,
        url: str,
        destination: Path,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Path:
        """Stream ``url`` into ``destination``.

        Progress is reported as a fraction in ``0..1`` after every chunk when
        the server sends a Content-Length, and once with 1.0 at the end. The
        cancellation event is checked before the request and between chunks;
        a partial file is removed on any failure.

        Raises:
            OperationCancelledError: if ``cancel_event`` is set.
            InstallError: on transport or HTTP errors.
        """
        if cancel_event is not None and cancel_event.is_set():
            raise OperationCancelledError("download cancelled")
        await self.start()
        assert self._session is not None

        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        target = safe_url(url)
        if is_debug_enabled(logger):
            logger.debug(
                "Archive download",
                extra=extra_context(event="download_start", component="downloader", action="GET", target=target),
            )

        try:
            with Timer() as timer:
                received, total = await self._stream(url, destination, on_progress, cancel_event)
        except OperationCancelledError:
            destination.unlink(missing_ok=True)
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            destination.unlink(missing_ok=True)
            raise InstallError(f"download failed: {target}: {exc or type(exc).__name__}") from exc

        if on_progress is not None:
            on_progress(1.0)
        logger.debug(
            "Archive downloaded",
            extra=extra_context(
                event="download_done",
                component="downloader",
                target=target,
                outcome="success",
                bytes=received,
                expected=total,
                duration_ms=timer.duration_ms(),
            ),
        )
        return destination

    async def _stream(
        self,
        url: str,
        destination: Path,
        on_progress: Optional[ProgressCallback],
        cancel_event: Optional[asyncio.Event],
    ) -> Tuple[int, Optional[int]]:
        assert self._session is not None
        async with self._session.get(url) as response:
            if response.status != 200:
                raise InstallError(f"download failed: {safe_url(url)}: HTTP {response.status}")
            total = response.content_length
            received = 0
            with open(destination, "wb") as handle:
                async for chunk in response.content.iter_chunked(self._chunk_size):
                    if cancel_event is not None and cancel_event.is_set():
                        raise OperationCancelledError("download cancelled")
                    await asyncio.to_thread(handle.write, chunk)
                    received += len(chunk)
                    if on_progress is not None and total:
                        on_progress(min(received / total, 1.0))
        return received, total
