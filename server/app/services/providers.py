"""Video generation providers: local ComfyUI, hosted Seedream, and a mock."""
from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from enum import Enum
from functools import partial
from typing import Any, Optional

import httpx
from typing_extensions import assert_never

from app.config import Settings
from app.models.generation import GenerationParams, GenerationResult, GenerationStatus
from app.services.comfyui_transport import ComfyUITransport
from app.services.errors import BackendError, ConfigurationError, NetworkError, TransportError
from app.services.polling import CANCELLED_MESSAGE, Clock, JobPoller, PollContext
from app.services.result_extractor import extract_media
from app.services.workflow import build_workflow

logger = logging.getLogger(__name__)


class VideoProvider(ABC):
    """Anything that can turn generation parameters into a finished result."""

    name: str = "provider"

    @abstractmethod
    async def generate_and_wait(
        self,
        params: GenerationParams,
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> GenerationResult:
        """Generate a video and wait for a settled result. Never raises for backend states."""
        ...


class ComfyUIProvider(VideoProvider):
    name = "comfyui"

    def __init__(
        self,
        transport: ComfyUITransport,
        *,
        max_wait: float = 300.0,
        poll_interval: float = 2.0,
        wait_for_completion: bool = False,
        clock: Optional[Clock] = None,
    ):
        self._transport = transport
        self._max_wait = max_wait
        self._poll_interval = poll_interval
        self._wait_for_completion = wait_for_completion
        self._clock = clock

    async def check(
        self, ctx: PollContext, node_order: tuple[str, ...] = ()
    ) -> Optional[GenerationResult]:
        """One poll: history first, then the shared queue."""

        history = await self._transport.history(ctx.job_id)
        record = history.get(ctx.job_id)
        if isinstance(record, dict):
            status = record.get("status")
            if not isinstance(status, dict):
                status = {}
            if status.get("completed"):
                media = extract_media(self._transport.base_url, record.get("outputs"), node_order)
                return GenerationResult(
                    id=ctx.job_id,
                    status=GenerationStatus.COMPLETED,
                    media_url=media.media_url,
                    auxiliary_media=media.auxiliary_media,
                )
            if status.get("status_str") == "error":
                raw_messages = status.get("messages")
                if not isinstance(raw_messages, list):
                    raw_messages = []
                messages = [str(m) for m in raw_messages]
                return GenerationResult.failed(ctx.job_id, ", ".join(messages) or "Generation failed")

        queue = await self._transport.queue_state()
        position = queue.position_of(ctx.job_id)
        if position is None:
            return None
        # Queue position is known but not reflected in progress.
        logger.debug("Job %s at queue position %d", ctx.job_id, position)
        return GenerationResult(
            id=ctx.job_id,
            status=GenerationStatus.PROCESSING,
            progress=ctx.remaining_progress,
        )

    async def await_result(
        self,
        job_id: str,
        *,
        max_wait: Optional[float] = None,
        poll_interval: Optional[float] = None,
        node_order: tuple[str, ...] = (),
        cancel: Optional[asyncio.Event] = None,
    ) -> GenerationResult:
        poller = JobPoller(partial(self.check, node_order=node_order), clock=self._clock)
        return await poller.await_result(
            job_id,
            max_wait=self._max_wait if max_wait is None else max_wait,
            poll_interval=self._poll_interval if poll_interval is None else poll_interval,
            stop_on_progress=not self._wait_for_completion,
            cancel=cancel,
        )

    async def generate_and_wait(
        self,
        params: GenerationParams,
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> GenerationResult:
        workflow = build_workflow(params)
        try:
            handle = await self._transport.submit(workflow)
        except TransportError as exc:
            logger.error("ComfyUI submission failed: %s", exc)
            return GenerationResult.failed(f"comfyui-{int(time.time() * 1000)}", str(exc))
        return await self.await_result(handle.job_id, node_order=tuple(workflow), cancel=cancel)


class SeedreamProvider(VideoProvider):
    """Hosted Seedream text-to-video API."""

    name = "seedream"

    def __init__(
        self,
        *,
        api_url: str,
        api_key: Optional[str],
        model: str = "dream-loop-v1",
        quality: str = "high",
        duration: int = 15,
        max_wait: float = 180.0,
        poll_interval: float = 5.0,
        timeout: float = 60.0,
        clock: Optional[Clock] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise ConfigurationError("SEEDREAM_API_KEY environment variable is required")
        raw_base = (api_url or "").strip()
        if not raw_base.startswith(("http://", "https://")):
            raise ConfigurationError("SEEDREAM_API_URL must include http/https scheme")
        self._base_url = raw_base.rstrip("/")
        self._api_key = api_key
        self._model = model
        self._quality = quality
        self._duration = duration
        self._max_wait = max_wait
        self._poll_interval = poll_interval
        self._timeout = timeout
        self._clock = clock
        self._transport = transport

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {self._api_key}"}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.request(method, f"{self._base_url}{path}", headers=headers, **kwargs)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as exc:
            raise BackendError(
                f"Seedream API error: {exc.response.status_code} {exc.response.reason_phrase}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Seedream unreachable: {exc}") from exc
        except ValueError as exc:
            raise BackendError(f"Seedream returned invalid JSON from {path}") from exc
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _coerce_result(data: dict[str, Any], fallback_id: str = "") -> GenerationResult:
        raw_status = str(data.get("status") or "pending").lower()
        try:
            status = GenerationStatus(raw_status)
        except ValueError:
            status = GenerationStatus.PROCESSING
        progress = data.get("progress")
        error = data.get("error") if isinstance(data.get("error"), str) else None
        if status is GenerationStatus.FAILED and not error:
            error = "Video generation failed"
        return GenerationResult(
            id=str(data.get("id") or fallback_id),
            status=status,
            media_url=data.get("videoUrl") or data.get("video_url"),
            progress=float(progress) if isinstance(progress, (int, float)) else None,
            error=error,
        )

    async def check(self, ctx: PollContext) -> GenerationResult:
        data = await self._request("GET", f"/status/{ctx.job_id}")
        return self._coerce_result(data, ctx.job_id)

    async def generate_and_wait(
        self,
        params: GenerationParams,
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> GenerationResult:
        body = {
            "prompt": params.prompt,
            "duration": params.frame_count or self._duration,
            "quality": self._quality,
            "model": self._model,
            "loop": True,
        }
        try:
            initial = self._coerce_result(await self._request("POST", "/generate", json=body))
        except TransportError as exc:
            logger.error("Seedream submission failed: %s", exc)
            return GenerationResult.failed(f"seedream-{int(time.time() * 1000)}", str(exc))

        if initial.status.is_terminal:
            return initial
        if not initial.id:
            return GenerationResult.failed("", "Seedream response did not include a job id")

        logger.info("Seedream job %s accepted", initial.id)
        poller = JobPoller(self.check, clock=self._clock)
        return await poller.await_result(
            initial.id,
            max_wait=self._max_wait,
            poll_interval=self._poll_interval,
            stop_on_progress=False,
            cancel=cancel,
        )


class MockVideoProvider(VideoProvider):
    """Returns a canned video after a simulated delay. No network I/O."""

    name = "mock"

    def __init__(
        self,
        *,
        delay: float = 3.0,
        video_url: str = "https://www.w3schools.com/html/mov_bbb.mp4",
    ):
        self._delay = delay
        self._video_url = video_url

    async def generate_and_wait(
        self,
        params: GenerationParams,
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> GenerationResult:
        if cancel is None:
            await asyncio.sleep(self._delay)
        else:
            try:
                await asyncio.wait_for(cancel.wait(), timeout=self._delay)
            except asyncio.TimeoutError:
                pass
            else:
                return GenerationResult.failed(f"mock-{int(time.time() * 1000)}", CANCELLED_MESSAGE)
        return GenerationResult(
            id=f"mock-{int(time.time() * 1000)}",
            status=GenerationStatus.COMPLETED,
            media_url=self._video_url,
        )


class ProviderKind(str, Enum):
    AUTO = "auto"
    COMFYUI = "comfyui"
    SEEDREAM = "seedream"
    MOCK = "mock"


async def probe_backend(
    base_url: str,
    *,
    timeout: float = 3.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> bool:
    """Return True when the ComfyUI queue endpoint answers successfully in time."""

    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            resp = await client.get(f"{base_url.rstrip('/')}/queue")
    except httpx.HTTPError as exc:
        logger.warning("ComfyUI not available at %s: %s", base_url, exc)
        return False
    if resp.is_success:
        return True
    logger.warning("ComfyUI not responding at %s (status %s)", base_url, resp.status_code)
    return False


def _comfyui_provider(settings: Settings) -> ComfyUIProvider:
    transport = ComfyUITransport(
        base_url=settings.comfyui_api_url,
        client_id=settings.comfyui_client_id,
    )
    return ComfyUIProvider(
        transport,
        max_wait=settings.comfyui_max_wait_seconds,
        poll_interval=settings.comfyui_poll_interval_seconds,
        wait_for_completion=settings.comfyui_wait_for_completion,
    )


def _mock_provider(settings: Settings) -> MockVideoProvider:
    return MockVideoProvider(delay=settings.mock_delay_seconds, video_url=settings.mock_video_url)


async def create_video_provider(settings: Settings) -> VideoProvider:
    """Pick a provider from ``VIDEO_PROVIDER``; ``auto`` probes ComfyUI first."""

    try:
        kind = ProviderKind(settings.video_provider.strip().lower())
    except ValueError as exc:
        raise ConfigurationError(f"Unknown VIDEO_PROVIDER: {settings.video_provider}") from exc

    if kind is ProviderKind.AUTO:
        if await probe_backend(settings.comfyui_api_url, timeout=settings.backend_probe_timeout_seconds):
            logger.info("Using ComfyUI provider at %s", settings.comfyui_api_url)
            return _comfyui_provider(settings)
        logger.info("Falling back to mock provider")
        return _mock_provider(settings)
    if kind is ProviderKind.COMFYUI:
        return _comfyui_provider(settings)
    if kind is ProviderKind.SEEDREAM:
        return SeedreamProvider(
            api_url=settings.seedream_api_url,
            api_key=settings.seedream_api_key,
            model=settings.seedream_model,
            quality=settings.seedream_quality,
            duration=settings.seedream_duration,
        )
    if kind is ProviderKind.MOCK:
        return _mock_provider(settings)
    assert_never(kind)
