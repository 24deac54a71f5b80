"""Main entry point for the Voice Assistant API."""
import asyncio
import contextlib
import json
import logging
import time
from typing import Optional

from fastapi import FastAPI, File, Form, Request, UploadFile, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from starlette.background import BackgroundTask

from config import PORT, CORS_ORIGINS, UPLOAD_DIR, MEMORY_MAX_EXCHANGES
from models.api import (
    TextQueryRequest,
    TextQueryResponse,
    VoiceQueryResponse,
    TranscriptionResponse,
    SuccessResponse,
    HealthResponse,
    ErrorResponse,
)
from models.artifact import UploadedArtifact
from services.artifact_store import ArtifactStore
from services.audio_normalizer import AudioNormalizer
from services.conversation_memory import ConversationRegistry
from services.errors import AssistantError, ValidationError
from services.llm_client import LLMClient
from services.notifier import Notifier, Subscription, STOP_SPEECH
from services.speech_client import SpeechClient
from services.turn_orchestrator import TurnOrchestrator

# Initialize logging
logger = logging.getLogger(__name__)

START_TIME = time.monotonic()

# Initialize FastAPI app
app = FastAPI(
    title="Voice Assistant",
    description="Text and voice assistant backed by remote speech and language models",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize services (will be done on startup)
llm_client: LLMClient = None
speech_client: SpeechClient = None
audio_normalizer: AudioNormalizer = None
artifact_store: ArtifactStore = None
conversations: ConversationRegistry = None
notifier: Notifier = None
orchestrator: TurnOrchestrator = None


def init_services(**overrides) -> None:
    """
    Build the service graph into the module globals.

    Keyword arguments named after a global replace the default instance,
    which lets tests inject fakes for the remote clients and storage.
    """
    global llm_client, speech_client, audio_normalizer, artifact_store
    global conversations, notifier, orchestrator

    llm_client = overrides.get("llm_client") or LLMClient()
    logger.info("Initialized LLMClient")

    speech_client = overrides.get("speech_client") or SpeechClient()
    logger.info("Initialized SpeechClient")

    audio_normalizer = overrides.get("audio_normalizer") or AudioNormalizer()
    artifact_store = overrides.get("artifact_store") or ArtifactStore(UPLOAD_DIR)
    conversations = overrides.get("conversations") or ConversationRegistry(MEMORY_MAX_EXCHANGES)
    notifier = overrides.get("notifier") or Notifier()

    orchestrator = TurnOrchestrator(
        llm_client=llm_client,
        speech_client=speech_client,
        normalizer=audio_normalizer,
        artifacts=artifact_store,
        notifier=notifier,
        conversations=conversations
    )
    artifact_store.purge_expired()
    logger.info("All services initialized successfully")


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    logger.info("Initializing Voice Assistant services...")
    try:
        init_services()
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}", exc_info=True)
        raise


def _error_response(status_code: int, error: str, details: Optional[str] = None) -> JSONResponse:
    """Client-facing error envelope. Never carries a stack trace."""
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=error, details=details).model_dump())


def _failure_response(e: Exception, error: str, context: str) -> JSONResponse:
    """Log a handler failure and convert it into the error envelope."""
    if isinstance(e, ValidationError):
        logger.info(f"{context} rejected: {e.error.message}")
        return _error_response(400, e.error.message, _detail_text(e))
    if isinstance(e, AssistantError):
        logger.error(f"{context} error [{e.error.code}]: {e.error.message}")
        return _error_response(e.status_code, error, e.error.message)
    logger.error(f"Unexpected {context.lower()} error: {e}", exc_info=True)
    return _error_response(500, error, str(e))


def _detail_text(e: AssistantError) -> Optional[str]:
    if not e.error.details:
        return None
    return ", ".join(f"{key}={value}" for key, value in e.error.details.items())


async def _store_upload(audio: Optional[UploadFile]) -> Optional[UploadedArtifact]:
    if audio is None:
        return None
    try:
        return await artifact_store.save_upload(audio.file, audio.filename, audio.content_type)
    finally:
        await audio.close()


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Report malformed request bodies with the same envelope as other client errors."""
    logger.info(f"Malformed request to {request.url.path}: {exc.errors()}")
    return _error_response(400, "Invalid request", str(exc.errors()))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Last line of defense; handlers are expected to catch their own errors."""
    logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
    return _error_response(500, "Internal server error")


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Liveness check."""
    return HealthResponse(status="ok", uptime=round(time.monotonic() - START_TIME, 3))


@app.post("/api/text-query", response_model=TextQueryResponse)
async def text_query_endpoint(request: TextQueryRequest):
    """
    Answer a typed query using the shared (or requested) conversation memory.

    Returns:
        {response, type: "text"}; 400 when `query` is missing or blank
    """
    try:
        turn = await orchestrator.run_text_turn(request.query, conversation_id=request.conversation_id)
        return TextQueryResponse(response=turn.response_text)
    except Exception as e:
        return _failure_response(e, "Failed to process query", "Text query")


@app.post("/api/voice-query", response_model=VoiceQueryResponse)
async def voice_query_endpoint(
    audio: Optional[UploadFile] = File(None),
    language: Optional[str] = Form(None),
    voice: Optional[str] = Form(None),
    conversation_id: Optional[str] = Form(None)
):
    """
    Answer a recorded query.

    Transcribes the upload, generates a response, synthesizes speech and
    returns a single-use download URL for it.
    """
    artifact = None
    try:
        artifact = await _store_upload(audio)
        turn = await orchestrator.run_voice_turn(
            artifact,
            language=language,
            voice=voice,
            conversation_id=conversation_id
        )
        return VoiceQueryResponse(
            response=turn.response_text,
            transcription=turn.transcript,
            audioUrl=turn.audio_url
        )
    except Exception as e:
        if artifact is not None:
            await artifact_store.discard_async(artifact.path)
        return _failure_response(e, "Failed to process voice query", "Voice query")


@app.post("/api/test-transcription", response_model=TranscriptionResponse)
async def test_transcription_endpoint(
    audio: Optional[UploadFile] = File(None),
    language: Optional[str] = Form(None)
):
    """Diagnostic: transcribe an upload without generating a response."""
    artifact = None
    try:
        artifact = await _store_upload(audio)
        transcription = await orchestrator.transcribe_only(artifact, language=language)
        return TranscriptionResponse(success=True, transcription=transcription)
    except Exception as e:
        if artifact is not None:
            await artifact_store.discard_async(artifact.path)
        return _failure_response(e, "Transcription failed", "Transcription test")


@app.post("/api/clear-memory", response_model=SuccessResponse)
async def clear_memory_endpoint(conversation_id: Optional[str] = None):
    """Reset conversation memory (the shared one unless an id is given)."""
    try:
        conversations.clear(conversation_id)
        return SuccessResponse(success=True)
    except Exception as e:
        return _failure_response(e, "Failed to clear memory", "Clear memory")


@app.get("/download/{filename}")
async def download_endpoint(filename: str):
    """
    Stream a synthesized response once.

    The file is deleted after the response has been sent, so a second
    request for the same name gets 404.
    """
    path = artifact_store.resolve_download(filename)
    if path is None:
        return _error_response(404, "Audio file not found")

    async def _delete_after_send() -> None:
        await artifact_store.discard_async(path)
        logger.info(f"Audio file deleted: {filename}")

    return FileResponse(
        path,
        media_type="audio/mpeg",
        filename=filename,
        background=BackgroundTask(_delete_after_send)
    )


async def _forward_events(websocket: WebSocket, subscription: Subscription) -> None:
    """Drain a subscriber's queue onto its socket."""
    while True:
        message = await subscription.queue.get()
        await websocket.send_json(message)


@app.websocket("/ws")
async def notifications_websocket(websocket: WebSocket):
    """
    Real-time channel.

    Server frames: {"event": "speech-progress" | "speech-ready" | "speech-stopped", "data": {...}}
    Client frames: {"event": "stop-speech"} (or the bare string "stop-speech")
    """
    # Subscribe before accepting so the client never misses an event after connect
    subscription = notifier.subscribe()
    sender = None

    try:
        await websocket.accept()
        sender = asyncio.create_task(_forward_events(websocket, subscription))
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                break
            raw = frame.get("text")
            if raw is None:
                logger.debug(f"Ignoring binary frame from {subscription.client_id}")
                continue
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                message = {"event": raw.strip()}

            event = message.get("event") if isinstance(message, dict) else None
            if event == STOP_SPEECH:
                await notifier.stop_speech(subscription.client_id)
            else:
                logger.debug(f"Ignoring client event {event!r} from {subscription.client_id}")
    except WebSocketDisconnect:
        pass
    finally:
        notifier.unsubscribe(subscription.client_id)
        if sender is not None:
            sender.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await sender


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting Voice Assistant API on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
