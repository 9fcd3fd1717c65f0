"""Configuration helpers for the dream loop service."""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    """Centralized environment-driven configuration.

    Values are read once at import time; tests reload this module after patching
    the environment.
    """

    # Local job-queue backend (ComfyUI)
    comfyui_api_url: str = os.getenv("COMFYUI_API_URL", "http://localhost:8188")
    comfyui_client_id: str = os.getenv("COMFYUI_CLIENT_ID", "seedream-client")
    comfyui_max_wait_seconds: float = float(os.getenv("COMFYUI_MAX_WAIT_SECONDS", "300"))
    comfyui_poll_interval_seconds: float = float(os.getenv("COMFYUI_POLL_INTERVAL_SECONDS", "2"))
    comfyui_wait_for_completion: bool = _env_bool("COMFYUI_WAIT_FOR_COMPLETION")

    # Generation parameters
    seedream_model_path: str = os.getenv("SEEDREAM_MODEL_PATH", "seedream-v1.safetensors")
    seedream_width: int = int(os.getenv("SEEDREAM_WIDTH", "1024"))
    seedream_height: int = int(os.getenv("SEEDREAM_HEIGHT", "576"))
    seedream_duration: int = int(os.getenv("SEEDREAM_DURATION", "15"))

    # Hosted video-generation service
    seedream_api_url: str = os.getenv("SEEDREAM_API_URL", "https://api.seedream.com/v1")
    seedream_api_key: Optional[str] = os.getenv("SEEDREAM_API_KEY")
    seedream_model: str = os.getenv("SEEDREAM_MODEL", "dream-loop-v1")
    seedream_quality: str = os.getenv("SEEDREAM_QUALITY", "high")

    # Provider selection: auto | comfyui | seedream | mock
    video_provider: str = os.getenv("VIDEO_PROVIDER", "auto")
    backend_probe_timeout_seconds: float = float(os.getenv("BACKEND_PROBE_TIMEOUT_SECONDS", "3"))
    mock_delay_seconds: float = float(os.getenv("MOCK_DELAY_SECONDS", "3"))
    mock_video_url: str = os.getenv("MOCK_VIDEO_URL", "https://www.w3schools.com/html/mov_bbb.mp4")

    log_level: str = os.getenv("LOG_LEVEL", "INFO")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance to avoid repeated environment reads."""

    return Settings()


settings = get_settings()
