from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from app.results import ErrorKind
from app.session_state import JsonFileStorage, SessionState
from reflux_core.models import Output, Placement


def _seed(manager, output_id: str, remote_job_id, status: str = "processing", **fields) -> Output:
    output = Output(
        id=output_id,
        status=status,
        placement=Placement(remote_job_id=remote_job_id),
        **fields,
    )
    manager.registry.add(output)
    return output


def _jobs(*items):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=list(items))

    return handler


def _reload(state_path) -> SessionState:
    return SessionState(JsonFileStorage(state_path)).load()


@pytest.mark.asyncio
async def test_create_sizes_output_from_aspect_ratio(make_manager, state_path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        return httpx.Response(201, json={"id": "j1", "status": "starting", "input": body["input"]})

    manager, api, _ = make_manager(handler)

    result = await manager.create_output({"prompt": "cat", "aspectRatio": "4:3"})

    assert result.ok
    output = result.output
    assert output.id == "output-j1"
    assert output.status == "starting"
    assert output.result is None
    assert output.remote_job_id == "j1"
    assert (output.placement.x, output.placement.y, output.placement.rotation) == (0, 0, 0)
    assert output.placement.width == 300
    assert output.placement.height == 225
    assert json.loads(api.requests[0].content)["replicate_api_token"] == "r8_test_token"

    assert _reload(state_path).registry.get("output-j1") == output


@pytest.mark.asyncio
async def test_create_uses_request_input_when_echo_missing(make_manager) -> None:
    manager, _, _ = make_manager(
        lambda request: httpx.Response(201, json={"id": "j1", "status": "starting"})
    )

    result = await manager.create_output({"prompt": "dog", "aspect_ratio": "9:16"})

    assert result.output.input == {"prompt": "dog", "aspect_ratio": "9:16"}
    assert result.output.placement.width == 300
    assert result.output.placement.height == pytest.approx(300 * 16 / 9)


@pytest.mark.asyncio
async def test_create_failure_leaves_registry_untouched(make_manager) -> None:
    manager, _, _ = make_manager(lambda request: httpx.Response(200, json={"error": "no credit"}))

    result = await manager.create_output({"prompt": "cat"})

    assert not result.ok
    assert result.error.kind is ErrorKind.REMOTE_SERVICE
    assert "no credit" in result.error.message
    assert len(manager.registry) == 0


@pytest.mark.asyncio
async def test_create_rejects_non_object_input(make_manager) -> None:
    manager, api, _ = make_manager(lambda request: httpx.Response(500))

    result = await manager.create_output(["not", "a", "dict"])

    assert result.error.kind is ErrorKind.VALIDATION
    assert api.requests == []


@pytest.mark.asyncio
async def test_shared_job_updates_every_output(make_manager) -> None:
    manager, api, assets = make_manager(
        _jobs({"id": "job1", "status": "succeeded", "output": "https://cdn.test/r.png"})
    )
    _seed(manager, "a", "job1")
    _seed(manager, "b", "job1", status="starting")

    report = await manager.poll_incomplete()

    assert report.ok
    assert report.requested_ids == ["job1"]
    assert report.updated_ids == ["a", "b"]
    a, b = manager.registry.get("a"), manager.registry.get("b")
    assert a.status == b.status == "succeeded"
    assert a.result == b.result
    assert a.result.startswith("data:image/png;base64,")
    assert len(api.requests) == 1
    assert api.requests[0].url.params["ids"] == "job1"
    assert len(assets.requests) == 1


@pytest.mark.asyncio
async def test_poll_without_incomplete_outputs_makes_no_request(make_manager) -> None:
    manager, api, _ = make_manager(lambda request: httpx.Response(500))
    _seed(manager, "done", "j1", status="succeeded")
    _seed(manager, "broken", "j2", status="failed")

    report = await manager.poll_incomplete()

    assert report.ok
    assert not report.request_made
    assert api.requests == []


@pytest.mark.asyncio
async def test_poll_failure_applies_nothing(make_manager) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    manager, _, _ = make_manager(handler)
    _seed(manager, "a", "j1")
    _seed(manager, "b", "j2", status="starting")
    before = manager.outputs

    report = await manager.poll_incomplete()

    assert not report.ok
    assert report.errors[0].kind is ErrorKind.REMOTE_SERVICE
    assert report.updated_ids == []
    assert manager.outputs == before


@pytest.mark.asyncio
async def test_poll_discards_outputs_without_remote_job_id(make_manager) -> None:
    manager, api, _ = make_manager(_jobs({"id": "j1", "status": "processing"}))
    _seed(manager, "orphan", None)
    _seed(manager, "a", "j1", status="starting")

    report = await manager.poll_incomplete()

    assert report.discarded == 1
    assert "orphan" not in manager.registry
    assert manager.registry.get("a").status == "processing"
    assert len(api.requests) == 1


@pytest.mark.asyncio
async def test_canceled_outputs_stay_in_polling_set(make_manager) -> None:
    manager, api, _ = make_manager(_jobs({"id": "j1", "status": "canceled"}))
    _seed(manager, "a", "j1", status="canceled")
    _seed(manager, "b", "j2", status="succeeded")

    report = await manager.poll_incomplete()

    assert report.requested_ids == ["j1"]
    assert [o.id for o in manager.incomplete_outputs] == ["a"]


@pytest.mark.asyncio
async def test_existing_result_is_not_overwritten(make_manager) -> None:
    manager, _, assets = make_manager(
        _jobs({"id": "j1", "status": "processing", "output": "https://cdn.test/new.png"})
    )
    _seed(manager, "a", "j1", result="data:image/png;base64,b2xk")

    await manager.poll_incomplete()

    assert manager.registry.get("a").result == "data:image/png;base64,b2xk"
    assert assets.requests == []


@pytest.mark.asyncio
async def test_conversion_failure_keeps_previous_result(make_manager) -> None:
    manager, _, _ = make_manager(
        _jobs({"id": "j1", "status": "succeeded", "output": "https://cdn.test/gone.png"}),
        asset_handler=lambda request: httpx.Response(404),
    )
    _seed(manager, "a", "j1")

    report = await manager.poll_incomplete()

    output = manager.registry.get("a")
    assert output.status == "succeeded"
    assert output.result is None
    assert [e.kind for e in report.errors] == [ErrorKind.CONVERSION]
    assert report.errors[0].remote_job_id == "j1"


@pytest.mark.asyncio
async def test_partial_conversion_keeps_fallback_refs(make_manager) -> None:
    def assets(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/bad.png":
            return httpx.Response(500)
        return httpx.Response(200, content=b"img")

    refs = ["https://cdn.test/good.png", "https://cdn.test/bad.png"]
    manager, _, _ = make_manager(
        _jobs({"id": "j1", "status": "succeeded", "output": refs}), asset_handler=assets
    )
    _seed(manager, "a", "j1")

    report = await manager.poll_incomplete()

    result = manager.registry.get("a").result
    assert result[0].startswith("data:image/png;base64,")
    assert result[1] == "https://cdn.test/bad.png"
    assert len(report.errors) == 1


@pytest.mark.asyncio
async def test_missing_input_echo_keeps_previous_input(make_manager) -> None:
    manager, _, _ = make_manager(_jobs({"id": "j1", "status": "processing"}))
    _seed(manager, "a", "j1", status="starting", input={"prompt": "cat"})

    await manager.poll_incomplete()

    assert manager.registry.get("a").input == {"prompt": "cat"}


@pytest.mark.asyncio
async def test_overlapping_poll_is_skipped(make_manager) -> None:
    release = asyncio.Event()

    async def handler(request: httpx.Request) -> httpx.Response:
        await release.wait()
        return httpx.Response(200, json=[{"id": "j1", "status": "processing"}])

    manager, api, _ = make_manager(handler)
    _seed(manager, "a", "j1", status="starting")

    first = asyncio.create_task(manager.poll_incomplete())
    await asyncio.sleep(0)
    while not api.requests:
        await asyncio.sleep(0)
    assert manager.is_polling

    second = await manager.poll_incomplete()
    assert second.skipped
    assert not second.request_made

    release.set()
    report = await first

    assert report.updated_ids == ["a"]
    assert len(api.requests) == 1
    assert not manager.is_polling


@pytest.mark.asyncio
async def test_edits_during_poll_are_preserved(make_manager) -> None:
    release = asyncio.Event()

    async def handler(request: httpx.Request) -> httpx.Response:
        await release.wait()
        return httpx.Response(
            200,
            json=[{"id": "j1", "status": "succeeded"}, {"id": "j2", "status": "succeeded"}],
        )

    manager, api, _ = make_manager(handler)
    _seed(manager, "a", "j1")
    _seed(manager, "b", "j2")

    task = asyncio.create_task(manager.poll_incomplete())
    while not api.requests:
        await asyncio.sleep(0)

    manager.remove_output("a")
    manager.update_placement("b", 40, 50, 90)
    release.set()
    report = await task

    assert "a" not in manager.registry
    assert report.updated_ids == ["b"]
    b = manager.registry.get("b")
    assert b.status == "succeeded"
    assert (b.placement.x, b.placement.y, b.placement.rotation) == (40, 50, 90)


def test_update_placement_keeps_size_unless_given(make_manager, state_path) -> None:
    manager, _, _ = make_manager(lambda request: httpx.Response(500))
    _seed(manager, "a", "j1")

    moved = manager.update_placement("a", 10, 20, 45)
    assert moved.placement.width == 300
    assert moved.placement.height == 300

    resized = manager.update_placement("a", 10, 20, 45, width=0, height=120)
    assert resized.placement.width == 0
    assert resized.placement.height == 120
    assert resized.placement.remote_job_id == "j1"

    assert manager.update_placement("missing", 1, 2, 3) is None
    assert _reload(state_path).registry.get("a").placement == resized.placement


def test_remove_output_accepts_single_id_and_lists(make_manager, state_path) -> None:
    manager, _, _ = make_manager(lambda request: httpx.Response(500))
    for output_id in ("a", "b", "c"):
        _seed(manager, output_id, f"j-{output_id}")

    assert manager.remove_output("a") == 1
    assert manager.remove_output(["b", "zzz"]) == 1
    assert manager.registry.ids() == ["c"]
    assert _reload(state_path).registry.ids() == ["c"]


def test_reset_keeps_credential(make_manager, state_path) -> None:
    manager, _, _ = make_manager(lambda request: httpx.Response(500))
    _seed(manager, "a", "j1")

    manager.reset()

    reloaded = _reload(state_path)
    assert len(reloaded.registry) == 0
    assert reloaded.credential == "r8_test_token"


def test_set_credential_persists(make_manager, state_path) -> None:
    manager, _, _ = make_manager(lambda request: httpx.Response(500))

    manager.set_credential("r8_other")
    assert _reload(state_path).credential == "r8_other"

    manager.set_credential("")
    assert _reload(state_path).credential is None


def _read_only(*args, **kwargs):
    raise PermissionError("read-only")


@pytest.mark.asyncio
async def test_create_reports_failed_save(make_manager, state_path, monkeypatch) -> None:
    manager, _, _ = make_manager(
        lambda request: httpx.Response(201, json={"id": "j1", "status": "starting"})
    )
    monkeypatch.setattr(manager.state.storage, "update", _read_only)

    result = await manager.create_output({"aspect_ratio": "1:1"})

    assert not result.ok
    assert result.error.kind is ErrorKind.PERSISTENCE
    assert result.error.output_id == "output-j1"
    assert result.output.id == "output-j1"
    assert manager.registry.ids() == ["output-j1"]
    assert not state_path.exists()

    monkeypatch.undo()
    manager.set_credential("r8_test_token")
    assert _reload(state_path).registry.ids() == ["output-j1"]


@pytest.mark.asyncio
async def test_poll_reports_failed_save(make_manager, monkeypatch) -> None:
    manager, _, _ = make_manager(_jobs({"id": "j1", "status": "succeeded"}))
    _seed(manager, "a", "j1")
    _seed(manager, "orphan", None)
    monkeypatch.setattr(manager.state.storage, "update", _read_only)

    report = await manager.poll_incomplete()

    assert report.updated_ids == ["a"]
    assert report.discarded == 1
    assert [e.kind for e in report.errors] == [ErrorKind.PERSISTENCE]
    assert manager.registry.get("a").status == "succeeded"


def test_sync_mutations_survive_failed_save(make_manager, monkeypatch) -> None:
    manager, _, _ = make_manager(lambda request: httpx.Response(500))
    _seed(manager, "a", "j1")
    _seed(manager, "b", "j2")
    monkeypatch.setattr(manager.state.storage, "update", _read_only)

    assert manager.update_placement("a", 1, 2, 3).placement.x == 1
    assert manager.remove_output("b") == 1
    manager.set_credential("r8_new")
    manager.reset()

    assert len(manager.registry) == 0
    assert manager.state.credential == "r8_new"


@pytest.mark.asyncio
async def test_poll_saves_after_discarding_only(make_manager, state_path) -> None:
    manager, api, _ = make_manager(lambda request: httpx.Response(500))
    _seed(manager, "orphan", None)
    _seed(manager, "done", "j1", status="succeeded")
    manager.state.save()

    report = await manager.poll_incomplete()

    assert report.discarded == 1
    assert api.requests == []
    assert _reload(state_path).registry.ids() == ["done"]
