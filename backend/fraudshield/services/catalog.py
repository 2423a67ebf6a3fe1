"""
Remote catalog of model presets.

The catalog is a static JSON array fetched from ``settings.presets_url``.
Every successful fetch is copied into the local key/value store so the app
still has a catalog when offline.
"""
from __future__ import annotations

import json
import logging

import httpx
from pydantic import TypeAdapter, ValidationError

from fraudshield.config import settings
from fraudshield.db.sqlite import get_db, get_setting, is_initialized, set_setting
from fraudshield.models.preset import Preset
from fraudshield.services.errors import ErrorKind

logger = logging.getLogger(__name__)

_CATALOG = {"error_kind": ErrorKind.CATALOG_UNAVAILABLE}

_preset_list = TypeAdapter(list[Preset])

# Last catalog seen, keyed by preset name
_catalog: dict[str, Preset] = {}


def _remember(presets: list[Preset]) -> list[Preset]:
    _catalog.clear()
    _catalog.update({p.name: p for p in presets})
    return presets


async def fetch_presets(client: httpx.AsyncClient | None = None) -> list[Preset]:
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=settings.http_timeout) as own_client:
                res = await own_client.get(settings.presets_url, follow_redirects=True)
        else:
            res = await client.get(settings.presets_url, follow_redirects=True)
        res.raise_for_status()
        raw = res.json()
        presets = _preset_list.validate_python(raw)
    except (httpx.HTTPError, ValueError) as e:
        # ValidationError and JSONDecodeError are both ValueErrors
        logger.warning("Error fetching presets (%s), using cached copy", e, extra=_CATALOG)
        return _remember(await load_cached_presets())

    await _store_cache(presets)
    return _remember(presets)


async def load_cached_presets() -> list[Preset]:
    if not is_initialized():
        return []

    cached: str | None = None
    async for db in get_db():
        cached = await get_setting(db, settings.presets_cache_key)
    if not cached:
        return []

    try:
        return _preset_list.validate_json(cached)
    except ValidationError as e:
        logger.error("Error using cached presets: %s", e, extra=_CATALOG)
        return []


async def _store_cache(presets: list[Preset]) -> None:
    if not is_initialized():
        return
    payload = json.dumps([p.model_dump(by_alias=True) for p in presets])
    async for db in get_db():
        await set_setting(db, settings.presets_cache_key, payload)


async def get_preset(name: str) -> Preset | None:
    if name not in _catalog:
        await fetch_presets()
    return _catalog.get(name)


def cached_catalog() -> list[Preset]:
    return list(_catalog.values())
