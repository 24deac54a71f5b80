"""
Turn orchestration for text and voice queries.

A turn moves through RECEIVED -> (TRANSCRIBING) -> GENERATING ->
(SYNTHESIZING) -> COMPLETED | FAILED. Entering each working stage
broadcasts a speech-progress event to every connected client. Memory is
only updated once generation has succeeded, and every temporary artifact
created for the turn is removed before the turn returns or fails.
"""
import logging
from pathlib import Path
from typing import List, Optional

from models.artifact import UploadedArtifact
from models.turn import Turn, TurnKind, TurnStage, STAGE_STATUS
from services.artifact_store import ArtifactStore
from services.audio_normalizer import AudioNormalizer
from services.conversation_memory import ConversationRegistry
from services.errors import ValidationError
from services.llm_client import LLMClient
from services.notifier import Notifier, SPEECH_PROGRESS, SPEECH_READY
from services.speech_client import SpeechClient

logger = logging.getLogger(__name__)


class TurnOrchestrator:
    """Runs one conversational turn against the remote services."""

    def __init__(
        self,
        llm_client: LLMClient,
        speech_client: SpeechClient,
        normalizer: AudioNormalizer,
        artifacts: ArtifactStore,
        notifier: Notifier,
        conversations: ConversationRegistry
    ):
        self.llm_client = llm_client
        self.speech_client = speech_client
        self.normalizer = normalizer
        self.artifacts = artifacts
        self.notifier = notifier
        self.conversations = conversations

    async def run_text_turn(self, query: Optional[str], conversation_id: Optional[str] = None) -> Turn:
        """
        Answer a typed query.

        Raises:
            ValidationError: `query` is missing or blank
            AssistantError: Any later stage failed
        """
        if not query or not query.strip():
            raise ValidationError("Missing query parameter")

        turn = Turn(kind=TurnKind.TEXT, raw_input=query, conversation_id=conversation_id)
        logger.info(f"Processing text query: {query[:100]}")
        try:
            await self._generate(turn, query)
        except Exception:
            self._mark_failed(turn)
            raise

        turn.stage = TurnStage.COMPLETED
        logger.info(f"Text response generated: {turn.response_text[:100]}")
        return turn

    async def run_voice_turn(
        self,
        artifact: Optional[UploadedArtifact],
        language: Optional[str] = None,
        voice: Optional[str] = None,
        conversation_id: Optional[str] = None
    ) -> Turn:
        """
        Answer a recorded query with text and synthesized speech.

        The upload and any normalized copy are always deleted. The response
        audio is left for the download endpoint.
        """
        self._require_artifact(artifact)
        turn = Turn(kind=TurnKind.VOICE, raw_input=artifact, conversation_id=conversation_id)
        logger.info(f"Processing voice query: {artifact.original_name}")

        temporary: List[Path] = [artifact.path]
        try:
            turn.transcript = await self._transcribe(turn, artifact, language, temporary)
            await self._generate(turn, turn.transcript)
            await self._synthesize(turn, voice)
        except Exception:
            self._mark_failed(turn)
            if turn.response_audio:
                temporary.append(self.artifacts.upload_dir / turn.response_audio)
            raise
        finally:
            await self.artifacts.discard_async(*temporary)

        turn.stage = TurnStage.COMPLETED
        await self.notifier.publish(SPEECH_READY, {"audioUrl": turn.audio_url})
        return turn

    async def transcribe_only(self, artifact: Optional[UploadedArtifact], language: Optional[str] = None) -> str:
        """Diagnostic transcription without generation, synthesis or memory changes."""
        self._require_artifact(artifact)
        turn = Turn(kind=TurnKind.VOICE, raw_input=artifact)
        logger.info(f"Testing transcription: {artifact.original_name}")

        temporary: List[Path] = [artifact.path]
        try:
            turn.transcript = await self._transcribe(turn, artifact, language, temporary)
        except Exception:
            self._mark_failed(turn)
            raise
        finally:
            await self.artifacts.discard_async(*temporary)

        turn.stage = TurnStage.COMPLETED
        return turn.transcript

    def _require_artifact(self, artifact: Optional[UploadedArtifact]) -> None:
        if artifact is None:
            raise ValidationError("No audio file uploaded")
        if not artifact.path.is_file():
            raise ValidationError(
                "Uploaded audio file is not readable",
                details={"file": artifact.original_name}
            )

    async def _enter(self, turn: Turn, stage: TurnStage) -> None:
        turn.stage = stage
        await self.notifier.publish(SPEECH_PROGRESS, {"status": STAGE_STATUS[stage]})

    async def _transcribe(
        self,
        turn: Turn,
        artifact: UploadedArtifact,
        language: Optional[str],
        temporary: List[Path]
    ) -> str:
        audio_path = artifact.path
        if self.normalizer.needs_normalization(audio_path):
            normalized = await self.normalizer.normalize(audio_path)
            if normalized.is_intermediate:
                temporary.append(normalized.path)
            audio_path = normalized.path

        await self._enter(turn, TurnStage.TRANSCRIBING)
        result = await self.speech_client.transcribe(audio_path, language=language)
        return result.text

    async def _generate(self, turn: Turn, query: str) -> None:
        memory = self.conversations.get(turn.conversation_id)

        await self._enter(turn, TurnStage.GENERATING)
        prompt = LLMClient.build_prompt(query, memory.render_history())
        response = await self.llm_client.generate(prompt)

        turn.response_text = response.text
        memory.append(query, response.text)

    async def _synthesize(self, turn: Turn, voice: Optional[str]) -> None:
        await self._enter(turn, TurnStage.SYNTHESIZING)
        speech = await self.speech_client.synthesize(turn.response_text, voice=voice)
        turn.response_audio = await self.artifacts.save_response_audio(speech.audio_data)

    @staticmethod
    def _mark_failed(turn: Turn) -> None:
        logger.warning(f"{turn.kind.value} turn failed during {turn.stage.value}")
        turn.stage = TurnStage.FAILED
