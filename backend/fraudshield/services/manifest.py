from __future__ import annotations

import logging

import httpx

from fraudshield.config import settings
from fraudshield.models.preset import STRUCTURAL_FILES
from fraudshield.services.errors import ErrorKind
from fraudshield.services.lifecycle import DownloadSession

logger = logging.getLogger(__name__)

_MANIFEST = {"error_kind": ErrorKind.MANIFEST_UNAVAILABLE}


def listing_url(model_id: str) -> str:
    return f"{settings.hub_endpoint.rstrip('/')}/api/models/{model_id}"


async def resolve_required_files(
    client: httpx.AsyncClient,
    model_id: str,
    variant: str | None,
    session: DownloadSession | None = None,
) -> list[str]:
    """
    Ask the hub which of the files a variant needs actually exist.

    Returns the structural files plus the exact ``variant`` weights file, in
    the order the remote listing gives them. Any failure returns an empty list.
    Raises DownloadCancelled if the session's abort signal fires in flight.
    """
    if not variant or (session is not None and session.cancelled):
        return []

    try:
        request = client.get(listing_url(model_id))
        res = await (session.guard(request) if session is not None else request)
    except httpx.HTTPError as e:
        logger.error("Error fetching file list for %s: %s", model_id, e, extra=_MANIFEST)
        return []

    if res.status_code != 200:
        logger.error(
            "Failed to fetch model metadata for %s (HTTP %d)",
            model_id,
            res.status_code,
            extra=_MANIFEST,
        )
        return []

    try:
        data = res.json()
    except ValueError:
        logger.error("Invalid JSON in file listing for %s", model_id, extra=_MANIFEST)
        return []

    siblings = data.get("siblings") if isinstance(data, dict) else None
    if not isinstance(siblings, list):
        logger.error(
            "Invalid response format from file listing for %s", model_id, extra=_MANIFEST
        )
        return []

    wanted = set(STRUCTURAL_FILES) | {variant}
    required = [
        s["rfilename"]
        for s in siblings
        if isinstance(s, dict)
        and isinstance(s.get("rfilename"), str)
        and s["rfilename"] in wanted
    ]
    logger.info("Required files for %s (%s): %s", model_id, variant, required)
    return required
