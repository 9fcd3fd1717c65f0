"""Dream loop generation endpoint."""
from __future__ import annotations

import asyncio
import contextlib
import logging
from functools import partial
from typing import Any, Awaitable, Callable

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from ..config import Settings, get_settings
from ..models import schemas
from ..models.generation import GenerationParams, GenerationStatus
from ..services.errors import ValidationError
from ..services.prompt_engine import DreamElements, generate_loop_prompt, optimize_dream_elements
from ..services.providers import VideoProvider, create_video_provider
from ..services.workflow import DEFAULT_CFG_SCALE, DEFAULT_STEPS

logger = logging.getLogger(__name__)

router = APIRouter(tags=["generate"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


ProviderFactory = Callable[[], Awaitable[VideoProvider]]


def get_provider_factory(settings: Settings = Depends(get_settings)) -> ProviderFactory:
    """Defer provider resolution (and the ``auto`` probe) until the body is valid."""

    return partial(create_video_provider, settings)


def parse_elements(body: Any) -> DreamElements:
    """Require exactly three non-empty string elements."""

    try:
        payload = schemas.GenerateRequest.model_validate(body)
    except PydanticValidationError as exc:
        raise ValidationError("Please provide exactly 3 dream elements") from exc
    elements = payload.elements
    if not elements or len(elements) != 3:
        raise ValidationError("Please provide exactly 3 dream elements")
    for element in elements:
        if not isinstance(element, str) or not element.strip():
            raise ValidationError("All dream elements must be non-empty strings")
    return DreamElements(*elements)


async def _watch_disconnect(request: Request, cancel: asyncio.Event, interval: float = 1.0) -> None:
    while not cancel.is_set():
        if await request.is_disconnected():
            logger.info("Client disconnected; stopping generation wait")
            cancel.set()
            return
        await asyncio.sleep(interval)


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(schemas.ErrorResponse(error=message).model_dump(), status_code=status_code)


@router.post(
    "/generate",
    response_model=schemas.GenerateResponse,
    responses={400: {"model": schemas.ErrorResponse}, 500: {"model": schemas.ErrorResponse}},
)
async def generate_dream_loop(
    request: Request,
    settings: Settings = Depends(get_settings),
    provider_factory: ProviderFactory = Depends(get_provider_factory),
) -> Any:
    """Turn three dream elements into a looping video."""

    try:
        try:
            body = await request.json()
        except ValueError:
            return _error("Request body must be valid JSON", 400)

        try:
            raw_elements = parse_elements(body)
        except ValidationError as exc:
            return _error(str(exc), 400)

        elements = optimize_dream_elements(raw_elements)
        prompt = generate_loop_prompt(elements)
        logger.info("Generated prompt: %s", prompt)
        logger.info("Dream elements: %s", elements.as_dict())

        params = GenerationParams(
            prompt=prompt,
            width=settings.seedream_width,
            height=settings.seedream_height,
            frame_count=settings.seedream_duration,
            steps=DEFAULT_STEPS,
            cfg_scale=DEFAULT_CFG_SCALE,
            model_path=settings.seedream_model_path,
        )
        provider = await provider_factory()
        logger.info("Generating with %s provider", provider.name)
        cancel = asyncio.Event()
        watcher = asyncio.create_task(_watch_disconnect(request, cancel))
        try:
            result = await provider.generate_and_wait(params, cancel=cancel)
        finally:
            watcher.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await watcher

        if result.status is GenerationStatus.FAILED:
            return _error(result.error or "Video generation failed", 500)

        response = schemas.GenerateResponse(
            video_url=result.media_url,
            prompt=prompt,
            elements=elements.as_dict(),
            images=list(result.auxiliary_media),
            job_id=result.id,
            status=result.status.value,
            workflow_params=schemas.WorkflowParamsPayload(
                prompt=params.prompt,
                width=params.width,
                height=params.height,
                duration=params.frame_count,
                steps=DEFAULT_STEPS,
                cfg=DEFAULT_CFG_SCALE,
                model_path=settings.seedream_model_path,
            ),
        )
        return JSONResponse(response.model_dump(by_alias=True))
    except Exception as exc:
        logger.exception("Video generation error")
        return _error(f"Failed to generate dream loop: {exc}", 500)


@router.options("/generate")
async def generate_options() -> Response:
    return Response(status_code=200, headers=CORS_HEADERS)
