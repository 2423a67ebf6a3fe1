from __future__ import annotations

import logging
from collections.abc import Callable

from fraudshield.services.cache_inspector import partial_dir, preset_dir
from fraudshield.services.errors import ErrorKind

logger = logging.getLogger(__name__)


def delete_variant(
    variant: str,
    preset_name: str,
    callback: Callable[[], None] | None = None,
) -> bool:
    """
    Remove a downloaded variant's weights file.

    Structural files (config/tokenizer) are kept for the next variant of the
    same preset. Returns True and invokes ``callback`` on success; on failure
    logs and returns False without invoking it.
    """
    try:
        if not variant or variant in (".", "..") or "/" in variant or "\\" in variant:
            raise ValueError(f"Invalid variant file name: {variant!r}")
        model_path = preset_dir(preset_name) / variant
        logger.info("Deleting model files from: %s", model_path)
        model_path.unlink(missing_ok=True)
        (partial_dir(preset_name) / variant).unlink(missing_ok=True)
    except (OSError, ValueError) as e:
        logger.error(
            "Error deleting model files for %s/%s: %s",
            preset_name,
            variant,
            e,
            extra={"error_kind": ErrorKind.DELETION_FAILURE},
        )
        return False

    logger.info("Model files deleted successfully")
    if callback is not None:
        callback()
    return True
