from __future__ import annotations

import asyncio
import logging
import os
import re
from collections.abc import Callable
from pathlib import Path

import httpx
from tqdm import tqdm

from fraudshield.config import settings
from fraudshield.services.errors import TransferPaused

logger = logging.getLogger(__name__)

_CONTENT_RANGE_TOTAL = re.compile(r"/(\d+)\s*$")


def _make_tqdm_class(on_progress: Callable[[float], None] | None):
    """Create a tqdm subclass that reports the per-file fraction instead of drawing."""

    class ProgressCapture(tqdm):
        def __init__(self, *args, **kwargs):
            # Force disable=False; tqdm disables itself in non-TTY environments,
            # which stops self.n from being tracked
            kwargs["disable"] = False
            super().__init__(*args, **kwargs)

        def update(self, n=1):
            super().update(n)
            if self.total and on_progress is not None:
                on_progress(min(self.n / self.total, 1.0))

        def display(self, *args, **kwargs):
            pass  # suppress terminal output

    return ProgressCapture


def _expected_size(response: httpx.Response, offset: int) -> int | None:
    if response.status_code == 206:
        match = _CONTENT_RANGE_TOTAL.search(response.headers.get("content-range", ""))
        if match:
            return int(match.group(1))
    length = response.headers.get("content-length")
    if length is None:
        return None
    return int(length) + offset


class ResumableTransfer:
    """Streams one remote file to ``dest`` through a resumable partial file.

    Bytes land in ``partial`` and are renamed onto ``dest`` only once the
    stream is complete, so ``dest`` never holds a truncated file. A transfer
    that is paused keeps ``partial``; the next transfer for the same file
    resumes it with a Range request.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        dest: Path,
        partial: Path,
        on_progress: Callable[[float], None] | None = None,
        chunk_size: int | None = None,
    ) -> None:
        self.client = client
        self.url = url
        self.dest = dest
        self.partial = partial
        self.on_progress = on_progress
        self.chunk_size = chunk_size or settings.download_chunk_size
        self._paused = False

    @property
    def paused(self) -> bool:
        return self._paused

    def pause(self) -> None:
        self._paused = True

    async def run(self) -> Path:
        await asyncio.to_thread(self.partial.parent.mkdir, parents=True, exist_ok=True)
        offset = await asyncio.to_thread(self._partial_size)
        headers = {"Range": f"bytes={offset}-"} if offset else {}
        if offset:
            logger.info("Resuming %s from byte %d", self.url, offset)

        async with self.client.stream(
            "GET", self.url, headers=headers, follow_redirects=True
        ) as response:
            if offset and response.status_code == 416:
                # Partial file already holds every byte
                logger.info("Partial file for %s is already complete", self.url)
            else:
                response.raise_for_status()
                if offset and response.status_code != 206:
                    logger.info("Server ignored range for %s, restarting", self.url)
                    offset = 0
                await self._stream_body(response, offset)

        await asyncio.to_thread(os.replace, self.partial, self.dest)
        return self.dest

    def _partial_size(self) -> int:
        return self.partial.stat().st_size if self.partial.exists() else 0

    async def _stream_body(self, response: httpx.Response, offset: int) -> None:
        expected = _expected_size(response, offset)
        bar_class = _make_tqdm_class(self.on_progress)
        mode = "ab" if offset else "wb"
        fh = await asyncio.to_thread(open, self.partial, mode)
        try:
            with bar_class(
                total=expected, initial=offset, unit="B", unit_scale=True, desc=self.dest.name
            ) as bar:
                async for chunk in response.aiter_bytes(self.chunk_size):
                    if self._paused:
                        raise TransferPaused(f"Transfer of {self.dest.name} paused")
                    await asyncio.to_thread(fh.write, chunk)
                    bar.update(len(chunk))
        finally:
            # Bytes written so far stay in the partial file for the next resume
            await asyncio.to_thread(fh.close)
