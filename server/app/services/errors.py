"""Error taxonomy shared by the generation services and the HTTP boundary."""
from __future__ import annotations

from typing import Optional


class DreamLoopError(Exception):
    """Base class for all service errors."""


class ValidationError(DreamLoopError):
    """Malformed caller input, rejected at the HTTP boundary."""


class ConfigurationError(DreamLoopError, RuntimeError):
    """A provider cannot be constructed from the current settings."""


class TransportError(DreamLoopError):
    """A remote call to a generation backend did not succeed."""


class NetworkError(TransportError):
    """The backend could not be reached or did not answer in time."""


class BackendError(TransportError):
    """The backend answered with a non-success status."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, detail: object = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail
