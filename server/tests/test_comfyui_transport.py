from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from app.models.generation import GenerationParams
from app.services.comfyui_transport import ComfyUITransport
from app.services.errors import BackendError, NetworkError
from app.services.workflow import build_workflow


def _run(coro):  # noqa: ANN001
    return asyncio.run(coro)


def _transport(handler) -> ComfyUITransport:  # noqa: ANN001
    return ComfyUITransport(
        base_url="http://comfy:8188/",
        client_id="dream-tests",
        transport=httpx.MockTransport(handler),
    )


def _job():
    return build_workflow(GenerationParams(prompt="p", width=64, height=64, frame_count=2, seed=1))


def test_submit_posts_workflow_and_client_id() -> None:
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"prompt_id": "job-1", "number": 4, "node_errors": {}})

    handle = _run(_transport(handler).submit(_job()))

    assert handle.job_id == "job-1"
    assert handle.queue_position == 4
    assert seen["url"] == "http://comfy:8188/prompt"
    body = seen["body"]
    assert body["client_id"] == "dream-tests"
    assert body["prompt"]["5"]["class_type"] == "KSampler"


def test_submit_surfaces_node_errors_as_backend_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"prompt_id": "job-1", "number": 0, "node_errors": {"5": "bad"}})

    with pytest.raises(BackendError) as excinfo:
        _run(_transport(handler).submit(_job()))
    assert excinfo.value.detail == {"5": "bad"}


def test_non_success_status_raises_backend_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "out of memory"})

    with pytest.raises(BackendError) as excinfo:
        _run(_transport(handler).history("job-1"))
    assert excinfo.value.status_code == 500
    assert excinfo.value.detail == {"error": "out of memory"}


def test_connection_failure_raises_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(NetworkError):
        _run(_transport(handler).queue_state())


def test_queue_state_parses_running_and_pending_entries() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/queue"
        return httpx.Response(
            200,
            json={
                "queue_running": [[7, "other", {}, {}, []]],
                "queue_pending": [[8, "mine", {}, {}, []], "garbage"],
            },
        )

    state = _run(_transport(handler).queue_state())
    assert state.running == ((7, "other"),)
    assert state.pending == ((8, "mine"),)
    assert state.position_of("other") == 0
    assert state.position_of("mine") == 1
    assert state.position_of("unknown") is None


def test_history_returns_empty_mapping_for_unknown_job() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/history/job-9"
        return httpx.Response(200, json={})

    assert _run(_transport(handler).history("job-9")) == {}


def test_submit_rejects_non_numeric_queue_number() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"prompt_id": "job-1", "number": "soon", "node_errors": {}})

    with pytest.raises(BackendError):
        _run(_transport(handler).submit(_job()))
