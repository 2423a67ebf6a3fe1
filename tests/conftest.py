import json
from pathlib import Path

import httpx
import pytest

from fraudshield.config import settings
from fraudshield.models.preset import Preset

HUB = "https://hub.test"

STRUCTURAL_BODIES = {
    "config.json": json.dumps({"model_type": "qwen2"}).encode(),
    "tokenizer_config.json": json.dumps({"model_max_length": 512}).encode(),
    "tokenizer.json": json.dumps({"version": "1.0"}).encode(),
}


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path: Path, monkeypatch):
    """Point every cache and store at tmp_path and drop the cancel settle delay."""
    monkeypatch.setattr(settings, "fraudshield_models_dir", tmp_path / "models")
    monkeypatch.setattr(settings, "fraudshield_data_dir", tmp_path / "data")
    monkeypatch.setattr(settings, "hub_endpoint", HUB)
    monkeypatch.setattr(settings, "presets_url", "https://catalog.test/presets.json")
    monkeypatch.setattr(settings, "cancel_settle_seconds", 0.0)
    monkeypatch.setattr(settings, "download_chunk_size", 4)
    yield


@pytest.fixture
def tiny_preset() -> Preset:
    return Preset(name="tiny", model="org/tiny", onnx_path="dir")


class FakeHub:
    """In-memory stand-in for the hub's listing and resolve endpoints."""

    def __init__(self, model_id: str = "org/tiny", listing=None, files=None):
        self.model_id = model_id
        self.listing = listing
        self.files: dict[str, bytes] = dict(STRUCTURAL_BODIES)
        self.files["model_q4.onnx"] = b"onnx-weights-q4"
        if files:
            self.files.update(files)
        self.listing_status = 200
        self.requests: list[httpx.Request] = []
        self.gates: dict[str, object] = {}

    @property
    def file_requests(self) -> list[str]:
        return [
            r.url.path.rsplit("/", 1)[-1]
            for r in self.requests
            if "/resolve/main/" in r.url.path
        ]

    def siblings(self) -> list[dict]:
        names = self.listing if self.listing is not None else list(self.files)
        return [{"rfilename": n} for n in names]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == f"/api/models/{self.model_id}":
            if self.listing_status != 200:
                return httpx.Response(self.listing_status, json={"error": "nope"})
            return httpx.Response(200, json={"siblings": self.siblings()})

        prefix = f"/{self.model_id}/resolve/main/"
        if path.startswith(prefix):
            name = path[len(prefix):]
            gate = self.gates.get(name)
            if gate is not None:
                await gate.wait()
            if name not in self.files:
                return httpx.Response(404)
            body = self.files[name]
            range_header = request.headers.get("range")
            if range_header:
                start = int(range_header.split("=")[1].rstrip("-"))
                if start >= len(body):
                    return httpx.Response(416)
                return httpx.Response(
                    206,
                    content=body[start:],
                    headers={"Content-Range": f"bytes {start}-{len(body) - 1}/{len(body)}"},
                )
            return httpx.Response(200, content=body)
        return httpx.Response(404)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def hub() -> FakeHub:
    return FakeHub(
        listing=[
            "config.json",
            "tokenizer.json",
            "tokenizer_config.json",
            "model_q4.onnx",
            "README.md",
        ]
    )


class FakeEngine:
    def __init__(self, fetch_extra: bool = False, error: Exception | None = None):
        self.calls: list[tuple] = []
        self.fetch_extra = fetch_extra
        self.error = error

    async def init(self, model_id, model_dir, asset_path, *, fetch, **options):
        self.calls.append((model_id, Path(model_dir), asset_path, options))
        if self.fetch_extra:
            await fetch(f"{HUB}/{model_id}/resolve/main/{asset_path}")
        if self.error is not None:
            raise self.error


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()
