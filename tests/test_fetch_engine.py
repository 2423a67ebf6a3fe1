import asyncio
import json

import httpx
import pytest

from fraudshield.models.download import FileCompleted, FileStarted, ProgressChanged
from fraudshield.services.cache_inspector import partial_dir, preset_dir
from fraudshield.services.errors import DownloadCancelled, ErrorKind, TransferPaused
from fraudshield.services.events import EventBus
from fraudshield.services.fetch_engine import FetchEngine
from fraudshield.services.lifecycle import DownloadController, DownloadSession

from conftest import HUB, FakeHub


def _url(name):
    return f"{HUB}/org/tiny/resolve/main/{name}"


def _run_fetch(hub, urls, session=None, file_count=None):
    bus = EventBus()
    seen = []
    bus.add_listener(seen.append)

    async def run():
        s = session or DownloadSession("tiny", "model_q4.onnx")
        async with hub.client() as client:
            engine = FetchEngine(s, "tiny", client, bus, file_count=file_count or len(urls))
            await engine.fetch_all(urls)
            return engine

    engine = asyncio.run(run())
    return engine, bus, seen


def test_downloads_into_preset_dir():
    hub = FakeHub()
    engine, bus, seen = _run_fetch(hub, [_url("config.json"), _url("model_q4.onnx")])

    local = preset_dir("tiny")
    assert (local / "config.json").read_bytes() == hub.files["config.json"]
    assert (local / "model_q4.onnx").read_bytes() == b"onnx-weights-q4"
    assert engine.satisfied == 2
    assert bus.snapshot().status == "File 2/2 downloaded successfully"
    assert not (partial_dir("tiny") / "model_q4.onnx").exists()


def test_progress_is_per_file_and_resets():
    hub = FakeHub()
    _, _, seen = _run_fetch(hub, [_url("model_q4.onnx"), _url("config.json")])

    fractions = [e.fraction for e in seen if isinstance(e, ProgressChanged)]
    assert all(0.0 <= f <= 1.0 for f in fractions)
    # each file climbs to 1.0 then resets to 0 before the next one starts
    assert fractions.count(1.0) == 2
    assert fractions[-1] == 0.0
    started = [e.index for e in seen if isinstance(e, FileStarted)]
    assert started == [1, 2]


def test_existing_files_are_not_refetched():
    hub = FakeHub()
    local = preset_dir("tiny")
    local.mkdir(parents=True)
    (local / "config.json").write_bytes(hub.files["config.json"])
    (local / "model_q4.onnx").write_bytes(b"already here")

    _, bus, seen = _run_fetch(hub, [_url("config.json"), _url("model_q4.onnx")])

    assert hub.file_requests == []
    assert (local / "model_q4.onnx").read_bytes() == b"already here"
    cached = [e for e in seen if isinstance(e, FileCompleted)]
    assert [e.cached for e in cached] == [True, True]
    assert bus.snapshot().status == "File 2/2 already downloaded"


def test_corrupt_json_is_deleted_and_refetched(caplog):
    hub = FakeHub()
    local = preset_dir("tiny")
    local.mkdir(parents=True)
    (local / "tokenizer.json").write_text("{truncated")
    (local / "config.json").write_bytes(hub.files["config.json"])

    _run_fetch(hub, [_url("config.json"), _url("tokenizer.json")])

    assert hub.file_requests == ["tokenizer.json"]
    assert json.loads((local / "tokenizer.json").read_text()) == {"version": "1.0"}
    kinds = [getattr(r, "error_kind", None) for r in caplog.records]
    assert ErrorKind.VALIDATION_FAILURE in kinds


def test_cancelled_session_starts_no_transfer():
    hub = FakeHub()
    session = DownloadSession("tiny", "model_q4.onnx")
    session.cancelled = True

    with pytest.raises(DownloadCancelled):
        _run_fetch(hub, [_url("config.json")], session=session)
    assert hub.file_requests == []


def test_cancel_after_bytes_land_is_still_cancelled():
    hub = FakeHub()
    session = DownloadSession("tiny", "model_q4.onnx")
    bus = EventBus()

    def cancel_on_progress(event):
        if isinstance(event, ProgressChanged) and event.fraction >= 1.0:
            session.cancelled = True

    bus.add_listener(cancel_on_progress)

    async def run():
        async with hub.client() as client:
            engine = FetchEngine(session, "tiny", client, bus, file_count=2)
            await engine.fetch_all([_url("config.json"), _url("tokenizer.json")])

    with pytest.raises(DownloadCancelled):
        asyncio.run(run())
    assert hub.file_requests == ["config.json"]
    assert bus.snapshot().status.startswith("Downloading file 1/2")


def test_resumes_partial_transfer_with_range():
    hub = FakeHub(files={"model_q4.onnx": b"0123456789"})
    partial = partial_dir("tiny") / "model_q4.onnx"
    partial.parent.mkdir(parents=True)
    partial.write_bytes(b"01234")

    _run_fetch(hub, [_url("model_q4.onnx")])

    resolve_requests = [r for r in hub.requests if "/resolve/main/" in r.url.path]
    assert resolve_requests[0].headers["range"] == "bytes=5-"
    assert (preset_dir("tiny") / "model_q4.onnx").read_bytes() == b"0123456789"
    assert not partial.exists()


def test_complete_partial_is_promoted_on_416():
    hub = FakeHub(files={"model_q4.onnx": b"0123"})
    partial = partial_dir("tiny") / "model_q4.onnx"
    partial.parent.mkdir(parents=True)
    partial.write_bytes(b"0123")

    _run_fetch(hub, [_url("model_q4.onnx")])

    assert (preset_dir("tiny") / "model_q4.onnx").read_bytes() == b"0123"


def test_server_ignoring_range_restarts_file():
    body = b"abcdefgh"

    def handler(request):
        return httpx.Response(200, content=body)

    partial = partial_dir("tiny") / "model_q4.onnx"
    partial.parent.mkdir(parents=True)
    partial.write_bytes(b"stale")

    async def run():
        session = DownloadSession("tiny", "model_q4.onnx")
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            engine = FetchEngine(session, "tiny", client, EventBus(), file_count=1)
            return await engine.fetch_one(_url("model_q4.onnx"))

    path = asyncio.run(run())
    assert path.read_bytes() == body


def test_transfer_error_propagates_unchanged():
    hub = FakeHub()

    with pytest.raises(httpx.HTTPStatusError):
        _run_fetch(hub, [_url("config.json"), _url("missing.onnx"), _url("tokenizer.json")])
    assert hub.file_requests == ["config.json", "missing.onnx"]
    assert not (preset_dir("tiny") / "missing.onnx").exists()


def test_extra_files_past_the_list_keep_a_sane_count():
    hub = FakeHub(files={"extra.onnx_data": b"xx"})
    _, bus, _ = _run_fetch(hub, [_url("config.json"), _url("extra.onnx_data")], file_count=1)
    assert bus.snapshot().status == "File 2/2 downloaded successfully"


def _stalling_hub(body, release, requests):
    """Serves the first chunk of ``body`` and holds the rest until ``release``."""

    async def stream():
        yield body[:4]
        await release.wait()
        yield body[4:]

    async def handler(request):
        requests.append(request)
        return httpx.Response(
            200, content=stream(), headers={"Content-Length": str(len(body))}
        )

    return httpx.MockTransport(handler)


def _interrupt_mid_file(interrupt):
    """Start fetching model_q4.onnx and call ``interrupt`` once bytes land."""
    body = b"0123456789ab"
    release = asyncio.Event()
    requests = []
    controller = DownloadController()
    bus = EventBus()
    seen = []
    bus.add_listener(seen.append)

    async def run():
        session = controller.begin("tiny", "model_q4.onnx")
        async with httpx.AsyncClient(transport=_stalling_hub(body, release, requests)) as client:
            engine = FetchEngine(session, "tiny", client, bus, file_count=1)
            task = asyncio.create_task(engine.fetch_one(_url("model_q4.onnx")))
            while not any(isinstance(e, ProgressChanged) and e.fraction > 0 for e in seen):
                await asyncio.sleep(0.005)
            await interrupt(controller, session)
            release.set()
            await task

    return body, run, requests


def test_cancel_mid_file_keeps_partial_for_resume():
    async def cancel(controller, session):
        await controller.cancel()

    body, run, requests = _interrupt_mid_file(cancel)

    with pytest.raises(DownloadCancelled):
        asyncio.run(run())

    partial = partial_dir("tiny") / "model_q4.onnx"
    assert len(requests) == 1
    assert not (preset_dir("tiny") / "model_q4.onnx").exists()
    assert partial.read_bytes() == b"0123"

    hub = FakeHub(files={"model_q4.onnx": body})
    _run_fetch(hub, [_url("model_q4.onnx")])

    resolve_requests = [r for r in hub.requests if "/resolve/main/" in r.url.path]
    assert resolve_requests[0].headers["range"] == "bytes=4-"
    assert (preset_dir("tiny") / "model_q4.onnx").read_bytes() == body
    assert not partial.exists()


def test_paused_transfer_writes_nothing_more():
    async def pause(controller, session):
        session.active_transfer.pause()

    _, run, _ = _interrupt_mid_file(pause)

    with pytest.raises(TransferPaused):
        asyncio.run(run())

    assert not (preset_dir("tiny") / "model_q4.onnx").exists()
    assert (partial_dir("tiny") / "model_q4.onnx").read_bytes() == b"0123"
