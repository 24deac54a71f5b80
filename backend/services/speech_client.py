"""Speech client for OpenAI transcription and text-to-speech."""
import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, NoReturn, Optional

from openai import AsyncOpenAI
from openai import RateLimitError, AuthenticationError, APIError, APITimeoutError

from config import (
    OPENAI_API_KEY,
    TRANSCRIPTION_MODEL,
    TTS_MODEL,
    DEFAULT_VOICE,
    REMOTE_TIMEOUT_SECONDS,
)
from services.errors import RemoteServiceError, StorageError

logger = logging.getLogger(__name__)

AUTO_LANGUAGE = "auto"


@dataclass
class TranscriptionResult:
    """Text recognized from an audio artifact."""
    text: str
    language: Optional[str]
    latency_ms: int


@dataclass
class SpeechResult:
    """Synthesized audio."""
    audio_data: bytes
    voice: str
    latency_ms: int
    content_type: str = "audio/mpeg"


class SpeechClientError(RemoteServiceError):
    """Transcription or synthesis call failed."""


def transcription_language(language: Optional[str]) -> Optional[str]:
    """
    Map a caller's language hint to the value sent upstream.

    "auto" and empty hints return None so the service auto-detects; any
    other value passes through unchanged.
    """
    if not language or language == AUTO_LANGUAGE:
        return None
    return language


class SpeechClient:
    """Client for OpenAI audio endpoints (speech-to-text and text-to-speech)."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        transcription_model: str = TRANSCRIPTION_MODEL,
        tts_model: str = TTS_MODEL,
        timeout: float = REMOTE_TIMEOUT_SECONDS
    ):
        self.api_key = api_key or OPENAI_API_KEY
        if not self.api_key:
            raise ValueError("OPENAI_API_KEY must be provided or set in environment")

        self.transcription_model = transcription_model
        self.tts_model = tts_model
        self.timeout = timeout
        self.client = AsyncOpenAI(api_key=self.api_key, timeout=timeout)
        logger.info(
            f"SpeechClient initialized (stt={transcription_model}, tts={tts_model})"
        )

    async def transcribe(self, audio_path: Path, language: Optional[str] = None) -> TranscriptionResult:
        """
        Transcribe an audio file.

        Args:
            audio_path: mp3, wav or m4a file
            language: Optional ISO language hint; "auto" lets the service detect it

        Returns:
            TranscriptionResult

        Raises:
            StorageError: The audio file could not be read
            SpeechClientError: The transcription call failed
        """
        audio_path = Path(audio_path)
        try:
            audio_bytes = await asyncio.to_thread(audio_path.read_bytes)
        except OSError as e:
            logger.error(f"Cannot read audio for transcription: {audio_path}: {e}")
            raise StorageError(
                f"Failed to read audio file: {e}",
                details={"path": str(audio_path)}
            ) from e

        hint = transcription_language(language)
        params: Dict[str, Any] = {
            "file": (audio_path.name, audio_bytes),
            "model": self.transcription_model,
        }
        if hint is not None:
            params["language"] = hint

        start_time = time.time()
        try:
            transcription = await asyncio.wait_for(
                self.client.audio.transcriptions.create(**params),
                timeout=self.timeout
            )
        except Exception as e:
            self._fail("transcription", self.transcription_model, start_time, e)

        latency_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Transcribed {audio_path.name}: language={hint or AUTO_LANGUAGE}, "
            f"chars={len(transcription.text)}, latency={latency_ms}ms"
        )
        return TranscriptionResult(text=transcription.text, language=hint, latency_ms=latency_ms)

    async def synthesize(self, text: str, voice: Optional[str] = None) -> SpeechResult:
        """
        Convert text to mp3 speech.

        Args:
            text: Text to speak
            voice: Voice identifier; defaults to "alloy"

        Returns:
            SpeechResult with the mp3 bytes

        Raises:
            SpeechClientError: The synthesis call failed
        """
        voice = voice or DEFAULT_VOICE
        start_time = time.time()
        try:
            response = await asyncio.wait_for(
                self.client.audio.speech.create(
                    model=self.tts_model,
                    voice=voice,
                    input=text,
                ),
                timeout=self.timeout
            )
        except Exception as e:
            self._fail("synthesis", self.tts_model, start_time, e, voice=voice)

        latency_ms = int((time.time() - start_time) * 1000)
        audio_data = response.content
        logger.info(
            f"Synthesized speech: voice={voice}, bytes={len(audio_data)}, latency={latency_ms}ms"
        )
        return SpeechResult(audio_data=audio_data, voice=voice, latency_ms=latency_ms)

    def _fail(
        self,
        operation: str,
        model: str,
        start_time: float,
        original: Exception,
        **extra: Any
    ) -> NoReturn:
        """Classify an upstream failure, log it and raise SpeechClientError."""
        if isinstance(original, RateLimitError):
            code, message = "RATE_LIMIT_ERROR", "Rate limit exceeded. Please try again in a few moments."
        elif isinstance(original, AuthenticationError):
            code, message = "AUTHENTICATION_ERROR", "Authentication failed. Please check your API key."
        elif isinstance(original, (APITimeoutError, asyncio.TimeoutError)):
            code, message = "TIMEOUT_ERROR", f"Speech {operation} timed out. Please try again."
        elif isinstance(original, APIError):
            code, message = "API_ERROR", f"OpenAI API error: {str(original)}"
        else:
            code, message = "UNKNOWN_ERROR", f"Unexpected error during {operation}: {str(original)}"

        latency_ms = int((time.time() - start_time) * 1000)
        details: Dict[str, Any] = {
            "operation": operation,
            "model": model,
            "latency_ms": latency_ms,
            "original_error": str(original),
            **extra
        }
        logger.error(
            f"Speech {operation} failed [{code}]: model={model}, latency={latency_ms}ms, error={original}",
            exc_info=True,
            extra={"error_code": code, "error_details": details}
        )
        raise SpeechClientError(message, code=code, details=details) from original
