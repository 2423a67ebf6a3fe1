"""
Boundary to the on-device inference engine.

The acquisition code only needs ``init``: it hands over the local model
directory, the asset path inside the model repo, and its own ``fetch`` so any
extra file the engine wants goes through the same cache and validation.

The default engine opens an onnxruntime session over the weights file.
onnxruntime is imported lazily; install the ``inference`` extra to use it.
"""
from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, Protocol

from huggingface_hub import hf_hub_url

from fraudshield.config import settings
from fraudshield.services.errors import EngineUnavailableError

logger = logging.getLogger(__name__)

FetchFn = Callable[[str], Awaitable[Path]]


class InferenceEngine(Protocol):
    async def init(
        self,
        model_id: str,
        model_dir: Path,
        asset_path: str,
        *,
        fetch: FetchFn,
        **options: Any,
    ) -> None: ...


class OnnxTextGeneration:
    def __init__(self) -> None:
        self.session: Any | None = None
        self.model_dir: Path | None = None
        self.options: dict[str, Any] = {}

    @property
    def is_ready(self) -> bool:
        return self.session is not None

    async def init(
        self,
        model_id: str,
        model_dir: Path,
        asset_path: str,
        *,
        fetch: FetchFn,
        **options: Any,
    ) -> None:
        weights = await fetch(
            hf_hub_url(model_id, asset_path, endpoint=settings.hub_endpoint)
        )

        config_path = model_dir / "config.json"
        try:
            json.loads(config_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise EngineUnavailableError(f"Unreadable model config: {config_path}") from e

        def _load() -> Any:
            import onnxruntime as ort  # type: ignore[import]

            return ort.InferenceSession(str(weights))

        try:
            self.session = await asyncio.to_thread(_load)
        except ImportError as e:
            self.session = None
            raise EngineUnavailableError(
                "onnxruntime is required for on-device inference. "
                "Install with `pip install fraudshield[inference]`"
            ) from e
        except Exception as e:
            self.session = None
            raise EngineUnavailableError(f"Failed to load ONNX model: {e}") from e

        self.model_dir = model_dir
        self.options = dict(options)
        logger.info("Inference session ready for %s (%s)", model_id, weights.name)
