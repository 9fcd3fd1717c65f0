"""Value types exchanged between the generation services and their callers."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class GenerationStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (GenerationStatus.COMPLETED, GenerationStatus.FAILED)


@dataclass(frozen=True)
class GenerationResult:
    """Snapshot of a generation request; every poll produces a fresh one."""

    id: str
    status: GenerationStatus
    media_url: Optional[str] = None
    progress: Optional[float] = None
    error: Optional[str] = None
    auxiliary_media: tuple[str, ...] = ()

    @classmethod
    def failed(cls, job_id: str, error: str) -> "GenerationResult":
        return cls(id=job_id, status=GenerationStatus.FAILED, error=error)


@dataclass(frozen=True)
class JobHandle:
    """Identifies one submitted job on the local backend."""

    job_id: str
    queue_position: int


@dataclass(frozen=True)
class QueueState:
    """Point-in-time view of the backend's shared queue as (priority, job_id) pairs."""

    running: tuple[tuple[int, str], ...] = ()
    pending: tuple[tuple[int, str], ...] = ()

    def position_of(self, job_id: str) -> Optional[int]:
        """Return 0 when running, 1-based position when pending, None when absent."""

        if any(entry_id == job_id for _, entry_id in self.running):
            return 0
        for index, (_, entry_id) in enumerate(self.pending):
            if entry_id == job_id:
                return index + 1
        return None


@dataclass(frozen=True)
class GenerationParams:
    """Inputs for one video generation."""

    prompt: str
    width: int
    height: int
    frame_count: int
    seed: Optional[int] = None
    steps: Optional[int] = None
    cfg_scale: Optional[float] = None
    model_path: Optional[str] = None
