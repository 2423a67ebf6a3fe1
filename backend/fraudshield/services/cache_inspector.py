"""
Live view of what is downloaded.

"Downloaded" is always a filesystem predicate: a variant counts as present
iff its weights file and the three structural files exist under the preset's
directory. Only existence is checked here; JSON validation happens in the
fetch engine when a file is about to be reused.
"""
from __future__ import annotations

from pathlib import Path

from fraudshield.config import settings
from fraudshield.models.download import BadgeState, VariantStatus
from fraudshield.models.preset import Variant, required_local_files
from fraudshield.services.lifecycle import DownloadController

PARTIAL_DIRNAME = ".partial"


def _check_segment(name: str) -> str:
    if not name or name in (".", "..") or "/" in name or "\\" in name:
        raise ValueError(f"Invalid path segment: {name!r}")
    return name


def preset_dir(preset_name: str) -> Path:
    return settings.fraudshield_models_dir / _check_segment(preset_name)


def partial_dir(preset_name: str) -> Path:
    return settings.fraudshield_models_dir / PARTIAL_DIRNAME / _check_segment(preset_name)


def is_variant_downloaded(preset_name: str, variant: str) -> bool:
    local_dir = preset_dir(preset_name)
    if not local_dir.is_dir():
        return False
    return all((local_dir / name).exists() for name in required_local_files(variant))


def variants_present(preset_name: str) -> set[str]:
    return {v.value for v in Variant if is_variant_downloaded(preset_name, v.value)}


def download_badge(
    preset_name: str, variant: str, controller: DownloadController | None = None
) -> BadgeState:
    session = controller.session if controller is not None else None
    if (
        session is not None
        and session.active
        and session.preset_name == preset_name
        and session.variant == variant
    ):
        return BadgeState.DOWNLOADING
    if is_variant_downloaded(preset_name, variant):
        return BadgeState.DOWNLOADED
    return BadgeState.AVAILABLE


def variant_statuses(
    preset_name: str, controller: DownloadController | None = None
) -> list[VariantStatus]:
    present = variants_present(preset_name)
    return [
        VariantStatus(
            variant=v.value,
            label=v.label,
            downloaded=v.value in present,
            badge=download_badge(preset_name, v.value, controller),
        )
        for v in Variant
    ]
