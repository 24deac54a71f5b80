"""Unit tests for SpeechClient."""
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

import pytest
from unittest.mock import AsyncMock, Mock, patch
from openai import RateLimitError, APITimeoutError
from services.speech_client import (
    SpeechClient,
    SpeechClientError,
    TranscriptionResult,
    SpeechResult,
    transcription_language,
)
from services.errors import StorageError


@pytest.fixture
def mock_openai():
    """Patch AsyncOpenAI and expose the audio endpoint mocks."""
    with patch('services.speech_client.AsyncOpenAI') as mock_openai_class:
        audio = mock_openai_class.return_value.audio
        audio.transcriptions.create = AsyncMock(return_value=Mock(text="hello world"))
        audio.speech.create = AsyncMock(return_value=Mock(content=b"ID3-mp3-bytes"))
        yield audio


@pytest.fixture
def audio_file(tmp_path):
    path = tmp_path / "clip.wav"
    path.write_bytes(b"RIFF....WAVE")
    return path


class TestTranscriptionLanguage:
    """Language hint mapping."""

    @pytest.mark.parametrize("hint", ["auto", "", None])
    def test_auto_detect_hints_are_omitted(self, hint):
        assert transcription_language(hint) is None

    @pytest.mark.parametrize("hint", ["en", "fr", "pt-BR"])
    def test_explicit_hints_pass_through(self, hint):
        assert transcription_language(hint) == hint


class TestSpeechClient:
    """Test suite for SpeechClient class."""

    def test_initialization_without_api_key_raises_error(self):
        """Test SpeechClient raises error when no API key provided."""
        with patch('services.speech_client.OPENAI_API_KEY', None):
            with pytest.raises(ValueError, match="OPENAI_API_KEY must be provided"):
                SpeechClient()

    @pytest.mark.asyncio
    async def test_transcribe_success(self, mock_openai, audio_file):
        """Test transcription returns the recognized text."""
        client = SpeechClient(api_key="test_key", transcription_model="whisper-1")
        result = await client.transcribe(audio_file, language="en")

        assert isinstance(result, TranscriptionResult)
        assert result.text == "hello world"
        assert result.language == "en"

        kwargs = mock_openai.transcriptions.create.call_args.kwargs
        assert kwargs["model"] == "whisper-1"
        assert kwargs["language"] == "en"
        assert kwargs["file"] == ("clip.wav", b"RIFF....WAVE")

    @pytest.mark.asyncio
    async def test_transcribe_auto_language_is_omitted(self, mock_openai, audio_file):
        """Test that "auto" is not sent upstream."""
        client = SpeechClient(api_key="test_key")
        await client.transcribe(audio_file, language="auto")

        assert "language" not in mock_openai.transcriptions.create.call_args.kwargs

    @pytest.mark.asyncio
    async def test_transcribe_missing_file(self, mock_openai, tmp_path):
        """Test that an unreadable file is a storage error, not a remote call."""
        client = SpeechClient(api_key="test_key")

        with pytest.raises(StorageError):
            await client.transcribe(tmp_path / "missing.wav")

        mock_openai.transcriptions.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_transcribe_rate_limit(self, mock_openai, audio_file):
        """Test that upstream failures become SpeechClientError."""
        mock_openai.transcriptions.create.side_effect = RateLimitError(
            message="Rate limit exceeded",
            response=Mock(status_code=429),
            body=None
        )
        client = SpeechClient(api_key="test_key")

        with pytest.raises(SpeechClientError) as exc_info:
            await client.transcribe(audio_file)

        assert exc_info.value.error.code == "RATE_LIMIT_ERROR"
        assert exc_info.value.error.details["operation"] == "transcription"

    @pytest.mark.asyncio
    async def test_synthesize_default_voice(self, mock_openai):
        """Test synthesis uses alloy when no voice is given."""
        client = SpeechClient(api_key="test_key", tts_model="tts-1")
        result = await client.synthesize("Hi there!")

        assert isinstance(result, SpeechResult)
        assert result.audio_data == b"ID3-mp3-bytes"
        assert result.voice == "alloy"
        mock_openai.speech.create.assert_awaited_once_with(model="tts-1", voice="alloy", input="Hi there!")

    @pytest.mark.asyncio
    async def test_synthesize_selected_voice(self, mock_openai):
        """Test synthesis passes the caller's voice through."""
        client = SpeechClient(api_key="test_key")
        result = await client.synthesize("Hi", voice="nova")

        assert result.voice == "nova"
        assert mock_openai.speech.create.call_args.kwargs["voice"] == "nova"

    @pytest.mark.asyncio
    async def test_synthesize_timeout(self, mock_openai):
        """Test that synthesis timeouts are distinguishable."""
        mock_openai.speech.create.side_effect = APITimeoutError(request=Mock())
        client = SpeechClient(api_key="test_key")

        with pytest.raises(SpeechClientError) as exc_info:
            await client.synthesize("Hi")

        assert exc_info.value.is_timeout
        assert exc_info.value.error.details["voice"] == "alloy"
