"""HTTP transport for a ComfyUI job-queue server."""
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from app.models.generation import JobHandle, QueueState
from app.services.errors import BackendError, NetworkError
from app.services.workflow import JobDescription

logger = logging.getLogger(__name__)


def _queue_entries(raw: Any) -> tuple[tuple[int, str], ...]:
    entries: list[tuple[int, str]] = []
    if not isinstance(raw, list):
        return ()
    for item in raw:
        if isinstance(item, (list, tuple)) and len(item) >= 2:
            entries.append((item[0], str(item[1])))
    return tuple(entries)


class ComfyUITransport:
    """Submit, queue and history calls. Stateless; no retries."""

    def __init__(
        self,
        *,
        base_url: str,
        client_id: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._client_id = client_id
        self._timeout = timeout
        self._transport = transport

    @property
    def base_url(self) -> str:
        return self._base_url

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self._base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.request(method, url, **kwargs)
                resp.raise_for_status()
                return resp.json()
        except httpx.HTTPStatusError as exc:
            detail: Any
            try:
                detail = exc.response.json()
            except ValueError:
                detail = exc.response.text
            raise BackendError(
                f"ComfyUI API error: {exc.response.status_code} {exc.response.reason_phrase}",
                status_code=exc.response.status_code,
                detail=detail,
            ) from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"ComfyUI unreachable at {url}: {exc}") from exc
        except ValueError as exc:
            raise BackendError(f"ComfyUI returned invalid JSON from {path}") from exc

    async def submit(self, job: JobDescription) -> JobHandle:
        data = await self._request(
            "POST",
            "/prompt",
            json={"prompt": job.to_payload(), "client_id": self._client_id},
        )
        node_errors = data.get("node_errors") if isinstance(data, dict) else None
        if node_errors:
            raise BackendError("ComfyUI rejected the workflow", detail=node_errors)
        prompt_id = data.get("prompt_id") if isinstance(data, dict) else None
        if not prompt_id:
            raise BackendError("ComfyUI response did not include a prompt_id", detail=data)
        try:
            queue_position = int(data.get("number") or 0)
        except (TypeError, ValueError) as exc:
            raise BackendError("ComfyUI returned a non-numeric queue number", detail=data) from exc
        handle = JobHandle(job_id=str(prompt_id), queue_position=queue_position)
        logger.info("Queued ComfyUI prompt %s at position %s", handle.job_id, handle.queue_position)
        return handle

    async def queue_state(self) -> QueueState:
        data = await self._request("GET", "/queue")
        if not isinstance(data, dict):
            return QueueState()
        return QueueState(
            running=_queue_entries(data.get("queue_running")),
            pending=_queue_entries(data.get("queue_pending")),
        )

    async def history(self, job_id: str) -> dict[str, Any]:
        data = await self._request("GET", f"/history/{job_id}")
        return data if isinstance(data, dict) else {}
