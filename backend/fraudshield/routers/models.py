import json

from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse

from fraudshield.models.download import (
    TERMINAL_EVENTS,
    DownloadProgress,
    LoadModelRequest,
)
from fraudshield.models.preset import Variant
from fraudshield.services import model_loader
from fraudshield.services.catalog import get_preset
from fraudshield.services.errors import DownloadInProgressError

router = APIRouter()


@router.post("/load")
async def load_model(body: LoadModelRequest):
    preset = await get_preset(body.preset_name)
    if preset is None:
        raise HTTPException(404, f"Unknown preset: {body.preset_name}")
    if body.variant not in {v.value for v in Variant}:
        raise HTTPException(400, f"Unknown variant: {body.variant}")
    if model_loader.is_downloading():
        raise HTTPException(409, "Download already in progress")

    try:
        model_loader.start_load(preset, body.variant)
    except DownloadInProgressError as e:
        raise HTTPException(409, str(e)) from e
    return {"status": "started", "preset_name": preset.name, "variant": body.variant}


@router.get("/load/events")
async def load_events_sse():
    """SSE stream of acquisition events; ends after a terminal event."""
    queue = model_loader.events.subscribe()

    async def event_generator():
        try:
            # Late subscribers still learn where things stand
            snapshot = model_loader.get_download_progress()
            yield f"data: {json.dumps({'type': 'snapshot', **snapshot.model_dump(mode='json')})}\n\n"
            if not model_loader.is_downloading():
                return
            while True:
                event = await queue.get()
                yield f"data: {event.model_dump_json()}\n\n"
                if isinstance(event, TERMINAL_EVENTS):
                    break
        finally:
            model_loader.events.unsubscribe(queue)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get("/load/status", response_model=DownloadProgress)
async def get_load_status():
    """Single poll endpoint (fallback if SSE is problematic)."""
    return model_loader.get_download_progress()


@router.post("/load/cancel")
async def cancel_load():
    if not model_loader.is_downloading():
        return {"status": "idle"}
    await model_loader.cancel_download()
    return {"status": "cancelled"}


@router.post("/load/reset")
async def reset_load():
    model_loader.reset_download()
    return {"status": "reset"}
