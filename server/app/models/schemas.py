"""Pydantic models describing request and response payloads."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, protected_namespaces=())


class GenerateRequest(BaseModel):
    """Incoming payload for a dream loop generation."""

    elements: Optional[List[Any]] = Field(default=None, description="Exactly three dream elements")


class WorkflowParamsPayload(_CamelModel):
    """Generation parameters echoed back to the client."""

    prompt: str
    width: int
    height: int
    duration: int = Field(..., description="Frame count; one generated frame per batch slot")
    steps: int
    cfg: float
    model_path: str = Field(..., serialization_alias="model_path")


class GenerateResponse(_CamelModel):
    """Response returned after a generation settles."""

    success: bool = True
    video_url: Optional[str] = Field(default=None, description="Animated media URL")
    prompt: str
    elements: Dict[str, str]
    images: List[str] = Field(default_factory=list)
    job_id: str
    status: str
    workflow_params: WorkflowParamsPayload


class ErrorResponse(BaseModel):
    error: str
