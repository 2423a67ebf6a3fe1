from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from fraudshield.models.download import (
    AcquisitionEvent,
    DownloadProgress,
    DownloadState,
    FileCompleted,
    FilesNotFound,
    FileStarted,
    ProgressChanged,
    SessionCancelled,
    SessionCompleted,
    SessionFailed,
    StatusChanged,
)

logger = logging.getLogger(__name__)

Listener = Callable[[AcquisitionEvent], None]


class EventBus:
    """Ordered fan-out of acquisition events plus a folded progress snapshot."""

    def __init__(self) -> None:
        self._queues: list[asyncio.Queue[AcquisitionEvent]] = []
        self._listeners: list[Listener] = []
        self._progress = DownloadProgress()

    def snapshot(self) -> DownloadProgress:
        return self._progress.model_copy()

    def reset(self, preset_name: str, variant: str) -> None:
        self._progress = DownloadProgress(
            state=DownloadState.RESOLVING,
            preset_name=preset_name,
            variant=variant,
        )

    def subscribe(self) -> asyncio.Queue[AcquisitionEvent]:
        queue: asyncio.Queue[AcquisitionEvent] = asyncio.Queue()
        self._queues.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[AcquisitionEvent]) -> None:
        if queue in self._queues:
            self._queues.remove(queue)

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def publish(self, event: AcquisitionEvent) -> None:
        self._apply(event)
        for listener in list(self._listeners):
            listener(event)
        for queue in list(self._queues):
            queue.put_nowait(event)

    # convenience wrappers used by the acquisition code

    def status(self, text: str) -> None:
        logger.debug("status: %s", text)
        self.publish(StatusChanged(status=text))

    def progress(self, fraction: float) -> None:
        self.publish(ProgressChanged(fraction=fraction))

    def _apply(self, event: AcquisitionEvent) -> None:
        p = self._progress
        if isinstance(event, StatusChanged):
            p.status = event.status
        elif isinstance(event, ProgressChanged):
            p.progress = max(0.0, min(1.0, event.fraction))
        elif isinstance(event, FileStarted):
            p.state = DownloadState.DOWNLOADING
            p.file_index = event.index
            p.file_count = event.total
            p.progress = 0.0
        elif isinstance(event, FileCompleted):
            p.file_index = event.index
            p.file_count = event.total
        elif isinstance(event, SessionCompleted):
            p.state = DownloadState.COMPLETE
            p.progress = 1.0
        elif isinstance(event, SessionFailed):
            p.state = DownloadState.ERROR
            p.error = event.reason
        elif isinstance(event, SessionCancelled):
            p.state = DownloadState.CANCELLED
            p.error = "Download cancelled"
        elif isinstance(event, FilesNotFound):
            p.state = DownloadState.NOT_FOUND
            p.progress = 1.0

    def set_state(self, state: DownloadState) -> None:
        self._progress.state = state
