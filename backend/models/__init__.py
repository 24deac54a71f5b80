"""Data models for the Voice Assistant backend."""
from .artifact import UploadedArtifact, NormalizedAudio
from .conversation import Exchange
from .turn import Turn, TurnKind, TurnStage, STAGE_STATUS
from .api import (
    TextQueryRequest,
    TextQueryResponse,
    VoiceQueryResponse,
    TranscriptionResponse,
    SuccessResponse,
    HealthResponse,
    ErrorResponse,
)

__all__ = [
    "UploadedArtifact",
    "NormalizedAudio",
    "Exchange",
    "Turn",
    "TurnKind",
    "TurnStage",
    "STAGE_STATUS",
    "TextQueryRequest",
    "TextQueryResponse",
    "VoiceQueryResponse",
    "TranscriptionResponse",
    "SuccessResponse",
    "HealthResponse",
    "ErrorResponse",
]
