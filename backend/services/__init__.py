"""Services for the Voice Assistant backend."""
from .errors import AssistantError, ValidationError, RemoteServiceError, EncodingError, StorageError
from .conversation_memory import ConversationMemory, ConversationRegistry
from .audio_normalizer import AudioNormalizer
from .artifact_store import ArtifactStore
from .notifier import Notifier, Subscription
from .llm_client import LLMClient, LLMResponse, LLMError, LLMClientError
from .speech_client import SpeechClient, SpeechClientError, TranscriptionResult, SpeechResult
from .turn_orchestrator import TurnOrchestrator

__all__ = ['AssistantError', 'ValidationError', 'RemoteServiceError', 'EncodingError', 'StorageError', 'ConversationMemory', 'ConversationRegistry', 'AudioNormalizer', 'ArtifactStore', 'Notifier', 'Subscription', 'LLMClient', 'LLMResponse', 'LLMError', 'LLMClientError', 'SpeechClient', 'SpeechClientError', 'TranscriptionResult', 'SpeechResult', 'TurnOrchestrator']
