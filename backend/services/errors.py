"""Error kinds raised by the assistant services."""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class ServiceError:
    """Structured error information carried by every AssistantError."""
    code: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)


class AssistantError(Exception):
    """Base exception for errors that map to a client-facing error envelope."""

    status_code = 500
    default_code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error = ServiceError(
            code=code or self.default_code,
            message=message,
            details=details or {}
        )
        super().__init__(message)


class ValidationError(AssistantError):
    """Missing or invalid client input. Not retryable."""

    status_code = 400
    default_code = "VALIDATION_ERROR"


class RemoteServiceError(AssistantError):
    """A transcription, generation or synthesis call failed."""

    default_code = "API_ERROR"

    @property
    def is_timeout(self) -> bool:
        return self.error.code == "TIMEOUT_ERROR"


class EncodingError(AssistantError):
    """External audio conversion failed."""

    default_code = "ENCODING_ERROR"


class StorageError(AssistantError):
    """Reading, writing or deleting an audio artifact failed."""

    default_code = "STORAGE_ERROR"
