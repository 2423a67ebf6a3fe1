from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

import httpx
from huggingface_hub import hf_hub_url

from fraudshield.config import settings
from fraudshield.models.download import (
    AcquisitionOutcome,
    DownloadProgress,
    DownloadState,
    FilesNotFound,
    SessionCancelled,
    SessionCompleted,
    SessionFailed,
)
from fraudshield.models.preset import Preset
from fraudshield.services.errors import DownloadCancelled, ErrorKind
from fraudshield.services.events import EventBus
from fraudshield.services.fetch_engine import FetchEngine
from fraudshield.services.inference import InferenceEngine, OnnxTextGeneration
from fraudshield.services.lifecycle import DownloadController, DownloadSession
from fraudshield.services.manifest import resolve_required_files

logger = logging.getLogger(__name__)

controller = DownloadController()
events = EventBus()
engine: InferenceEngine = OnnxTextGeneration()


def http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.http_timeout)


def get_download_progress() -> DownloadProgress:
    return events.snapshot()


def is_downloading() -> bool:
    return controller.is_active()


async def run_acquisition(
    session: DownloadSession,
    preset: Preset,
    variant: str | None,
    *,
    bus: EventBus,
    inference: InferenceEngine,
    client: httpx.AsyncClient | None = None,
    on_complete: Callable[[], None] | None = None,
) -> AcquisitionOutcome:
    """Resolve, fetch and hand a preset variant to the inference engine.

    Cancellation and failures end up as status text, a terminal event and the
    returned outcome. Only task cancellation is re-raised, after publishing
    the cancelled terminal event.
    """
    bus.reset(preset.name, variant or "")
    bus.status("Initializing...")
    try:
        if client is None:
            async with http_client() as own_client:
                return await _acquire(
                    session, preset, variant, own_client, bus, inference, on_complete
                )
        return await _acquire(session, preset, variant, client, bus, inference, on_complete)
    except DownloadCancelled:
        logger.info("Model loading cancelled for %s", preset.name)
        return _cancelled(bus)
    except asyncio.CancelledError:
        # Hard reset cancelled the task; subscribers still need a terminal event
        logger.info("Model loading task cancelled for %s", preset.name)
        _cancelled(bus)
        raise
    except Exception as e:
        if session.cancelled:
            logger.info("Model loading cancelled for %s (%s)", preset.name, e)
            return _cancelled(bus)
        message = str(e) or "Unknown error"
        logger.error(
            "Error loading model %s: %s",
            preset.name,
            message,
            extra={"error_kind": getattr(e, "kind", ErrorKind.TRANSFER_FAILURE)},
        )
        bus.status(f"Error: {message}")
        bus.publish(SessionFailed(reason=message))
        return AcquisitionOutcome.FAILED
    finally:
        session.finish()


async def _acquire(
    session: DownloadSession,
    preset: Preset,
    variant: str | None,
    client: httpx.AsyncClient,
    bus: EventBus,
    inference: InferenceEngine,
    on_complete: Callable[[], None] | None,
) -> AcquisitionOutcome:
    bus.status("Checking model files...")
    required = await resolve_required_files(client, preset.model, variant, session)

    if session.cancelled:
        return _cancelled(bus)
    if not required:
        logger.warning("No required files found for %s with format %s", preset.model, variant)
        bus.progress(1.0)
        bus.status("Required files not found")
        bus.publish(FilesNotFound())
        return AcquisitionOutcome.NOT_FOUND

    fetcher = FetchEngine(session, preset.name, client, bus, file_count=len(required))
    urls = [
        hf_hub_url(preset.model, name, endpoint=settings.hub_endpoint)
        for name in required
    ]

    bus.status("Downloading model files...")
    await fetcher.fetch_all(urls)

    bus.set_state(DownloadState.LOADING)
    bus.status("Loading model...")
    session.raise_if_cancelled()

    model_dir = fetcher.model_dir
    logger.info("Using model path: %s", model_dir)
    await inference.init(
        preset.model,
        model_dir,
        preset.variant_asset_path(variant or ""),
        fetch=fetcher.fetch_one,
        **preset.options,
    )

    session.raise_if_cancelled()
    bus.progress(1.0)
    bus.status("Model loaded successfully")
    bus.publish(SessionCompleted(model_dir=str(model_dir)))
    if on_complete is not None:
        on_complete()
    logger.info("Loaded %s (%s)", preset.name, variant)
    return AcquisitionOutcome.LOADED


def _cancelled(bus: EventBus) -> AcquisitionOutcome:
    bus.status("Download cancelled")
    bus.publish(SessionCancelled())
    return AcquisitionOutcome.CANCELLED


async def load_model(
    preset: Preset,
    variant: str | None,
    *,
    client: httpx.AsyncClient | None = None,
    on_complete: Callable[[], None] | None = None,
    download_controller: DownloadController | None = None,
    bus: EventBus | None = None,
    inference: InferenceEngine | None = None,
) -> AcquisitionOutcome:
    ctl = download_controller or controller
    session = ctl.begin(preset.name, variant or "")
    return await run_acquisition(
        session,
        preset,
        variant,
        bus=bus or events,
        inference=inference or engine,
        client=client,
        on_complete=on_complete,
    )


def start_load(
    preset: Preset,
    variant: str,
    on_complete: Callable[[], None] | None = None,
) -> asyncio.Task[AcquisitionOutcome]:
    """Begin a session synchronously and run the acquisition in the background."""
    session = controller.begin(preset.name, variant)
    task = asyncio.create_task(
        run_acquisition(
            session,
            preset,
            variant,
            bus=events,
            inference=engine,
            on_complete=on_complete,
        ),
        name=f"load-{preset.name}",
    )
    controller.attach(task)
    return task


async def cancel_download() -> None:
    await controller.cancel()


def reset_download() -> None:
    controller.reset()
