from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path, PurePosixPath
from urllib.parse import unquote, urlparse

import httpx

from fraudshield.models.download import FileCompleted, FileStarted
from fraudshield.services.cache_inspector import partial_dir, preset_dir
from fraudshield.services.errors import DownloadCancelled, ErrorKind
from fraudshield.services.events import EventBus
from fraudshield.services.lifecycle import DownloadSession
from fraudshield.services.transfer import ResumableTransfer

logger = logging.getLogger(__name__)


def _basename(url: str) -> str:
    return unquote(PurePosixPath(urlparse(url).path).name)


def _is_valid_json(path: Path) -> bool:
    try:
        json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return False
    return True


class FetchEngine:
    """Per-file fetch/validate/skip logic for one preset's local directory."""

    def __init__(
        self,
        session: DownloadSession,
        preset_name: str,
        client: httpx.AsyncClient,
        bus: EventBus,
        file_count: int = 0,
    ) -> None:
        self.session = session
        self.preset_name = preset_name
        self.client = client
        self.bus = bus
        self.file_count = file_count
        self.satisfied = 0

    @property
    def model_dir(self) -> Path:
        return preset_dir(self.preset_name)

    async def fetch_one(self, url: str) -> Path:
        local_dir = self.model_dir
        await asyncio.to_thread(local_dir.mkdir, parents=True, exist_ok=True)
        filename = _basename(url)
        local_path = local_dir / filename

        if local_path.exists():
            if local_path.suffix == ".json" and not await asyncio.to_thread(
                _is_valid_json, local_path
            ):
                logger.warning(
                    "Invalid JSON in %s, deleting for redownload",
                    local_path,
                    extra={"error_kind": ErrorKind.VALIDATION_FAILURE},
                )
                await asyncio.to_thread(local_path.unlink, missing_ok=True)
            if local_path.exists():
                self.satisfied += 1
                total = max(self.satisfied, self.file_count)
                logger.info("File exists locally: %s", local_path)
                self.bus.status(f"File {self.satisfied}/{total} already downloaded")
                self.bus.publish(
                    FileCompleted(
                        index=self.satisfied,
                        total=total,
                        filename=filename,
                        cached=True,
                    )
                )
                return local_path

        if self.session.cancelled:
            logger.info("Download cancelled before starting %s", filename)
            raise DownloadCancelled()

        index = self.satisfied + 1
        total = max(index, self.file_count)
        self.bus.status(f"Downloading file {index}/{total}...")
        self.bus.publish(FileStarted(index=index, total=total, filename=filename))
        logger.info("Downloading %s", url)

        transfer = ResumableTransfer(
            self.client,
            url,
            local_path,
            partial_dir(self.preset_name) / filename,
            on_progress=self._on_progress,
        )
        self.session.active_transfer = transfer
        try:
            await self.session.guard(transfer.run())
        except DownloadCancelled:
            raise
        except Exception as e:
            if self.session.cancelled:
                raise DownloadCancelled() from e
            raise
        finally:
            if self.session.active_transfer is transfer:
                self.session.active_transfer = None

        if self.session.cancelled:
            # Bytes landed, but the session no longer wants them reported
            logger.info("Download cancelled after %s completed", filename)
            raise DownloadCancelled()

        self.satisfied += 1
        self.bus.progress(0.0)
        self.bus.status(f"File {self.satisfied}/{total} downloaded successfully")
        self.bus.publish(
            FileCompleted(index=self.satisfied, total=total, filename=filename)
        )
        return local_path

    async def fetch_all(self, urls: list[str]) -> None:
        for url in urls:
            self.session.raise_if_cancelled()
            await self.fetch_one(url)
        self.session.raise_if_cancelled()

    def _on_progress(self, fraction: float) -> None:
        if self.session.cancelled:
            return
        self.bus.progress(fraction)
