from fastapi import APIRouter, HTTPException

from fraudshield.models.download import VariantStatus
from fraudshield.models.preset import Preset
from fraudshield.services import model_loader
from fraudshield.services.cache_inspector import variant_statuses
from fraudshield.services.catalog import fetch_presets, get_preset
from fraudshield.services.deletion import delete_variant

router = APIRouter()


async def _require_preset(name: str) -> Preset:
    preset = await get_preset(name)
    if preset is None:
        raise HTTPException(404, f"Unknown preset: {name}")
    return preset


@router.get("/", response_model=list[Preset])
async def list_presets():
    return await fetch_presets()


@router.get("/{name}/variants", response_model=list[VariantStatus])
async def list_variants(name: str):
    preset = await _require_preset(name)
    try:
        return variant_statuses(preset.name, model_loader.controller)
    except ValueError as e:
        raise HTTPException(400, str(e)) from e


@router.delete("/{name}/variants/{variant}", status_code=204)
async def delete_preset_variant(name: str, variant: str):
    preset = await _require_preset(name)
    session = model_loader.controller.session
    if session is not None and session.active and session.preset_name == preset.name:
        raise HTTPException(409, "Download in progress for this preset")
    if not delete_variant(variant, preset.name):
        raise HTTPException(500, "Failed to delete model files")
