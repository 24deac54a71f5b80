"""API request and response schemas."""
from typing import Optional
from pydantic import BaseModel, Field


class TextQueryRequest(BaseModel):
    """Body of POST /api/text-query. `query` is validated by the handler."""
    query: Optional[str] = None
    conversation_id: Optional[str] = Field(
        default=None,
        description="Isolated conversation to use; omit to share the default one"
    )


class TextQueryResponse(BaseModel):
    response: str
    type: str = "text"


class VoiceQueryResponse(BaseModel):
    response: str
    transcription: str
    audioUrl: str
    type: str = "voice"


class TranscriptionResponse(BaseModel):
    success: bool
    transcription: str


class SuccessResponse(BaseModel):
    success: bool = True


class HealthResponse(BaseModel):
    status: str = "ok"
    uptime: float


class ErrorResponse(BaseModel):
    """Client-facing error envelope."""
    error: str
    details: Optional[str] = None
