"""
Download session ownership and cancellation.

At most one DownloadSession is unfinished at a time. Cancellation is
cooperative: a flag polled at every per-file boundary plus an abort signal
that interrupts whatever network await is in flight (see DownloadSession.guard).
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import TYPE_CHECKING, Any, TypeVar

from fraudshield.config import settings
from fraudshield.services.errors import DownloadCancelled, DownloadInProgressError

if TYPE_CHECKING:
    from fraudshield.services.transfer import ResumableTransfer

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DownloadSession:
    def __init__(self, preset_name: str = "", variant: str = "") -> None:
        self.preset_name = preset_name
        self.variant = variant
        self.cancelled = False
        self.finished = False
        self.active_transfer: ResumableTransfer | None = None
        self._abort: asyncio.Event | None = asyncio.Event()

    @property
    def active(self) -> bool:
        return not self.finished

    def abort(self) -> None:
        if self._abort is not None:
            self._abort.set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise DownloadCancelled()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable``, cancelling it if the abort signal fires first."""
        if self._abort is None:
            return await awaitable
        if self._abort.is_set():
            raise DownloadCancelled()

        work = asyncio.ensure_future(awaitable)
        aborted = asyncio.ensure_future(self._abort.wait())
        try:
            done, _ = await asyncio.wait(
                {work, aborted}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            aborted.cancel()

        if work in done:
            return work.result()

        work.cancel()
        try:
            await work
        except asyncio.CancelledError:
            logger.info("Aborted in-flight operation for %s", self.preset_name)
        raise DownloadCancelled()

    def finish(self) -> None:
        self.finished = True
        self.active_transfer = None
        self._abort = None


class DownloadController:
    """Owns the single global download session."""

    def __init__(self) -> None:
        self._session: DownloadSession | None = None
        self._task: asyncio.Task[Any] | None = None

    @property
    def session(self) -> DownloadSession | None:
        return self._session

    def is_active(self) -> bool:
        return self._session is not None and self._session.active

    def begin(self, preset_name: str = "", variant: str = "") -> DownloadSession:
        if self.is_active():
            raise DownloadInProgressError("Download already in progress")
        # Fresh flag and abort signal: stale cancellation must not leak in.
        self._session = DownloadSession(preset_name, variant)
        self._task = None
        return self._session

    def attach(self, task: asyncio.Task[Any]) -> None:
        self._task = task
        task.add_done_callback(lambda _: self._drop_task(task))

    def _drop_task(self, task: asyncio.Task[Any]) -> None:
        if self._task is task:
            self._task = None

    def request_cancel(self) -> None:
        session = self._session
        if session is None:
            return
        session.cancelled = True
        session.abort()

    async def cancel(self) -> None:
        session = self._session
        if session is None or not session.active:
            return

        logger.info("Cancelling download for %s", session.preset_name)
        try:
            self.request_cancel()
            transfer = session.active_transfer
            if transfer is not None:
                transfer.pause()
                logger.info("Paused active transfer %s", transfer.url)
            await asyncio.sleep(settings.cancel_settle_seconds)
        except Exception:
            logger.exception("Failed to cancel download")
        finally:
            session.active_transfer = None

    def reset(self) -> None:
        """Hard reset without waiting; fallback for when cancel() fails."""
        session = self._session
        if session is not None:
            session.cancelled = True
            session.abort()
            session.finish()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
