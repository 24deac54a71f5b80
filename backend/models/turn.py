"""Turn data models."""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from models.artifact import UploadedArtifact


class TurnKind(str, Enum):
    """Input kind of a turn."""
    TEXT = "text"
    VOICE = "voice"


class TurnStage(str, Enum):
    """Stages of the turn state machine."""
    RECEIVED = "received"
    TRANSCRIBING = "transcribing"
    GENERATING = "generating"
    SYNTHESIZING = "synthesizing"
    COMPLETED = "completed"
    FAILED = "failed"


# Status labels broadcast in speech-progress events
STAGE_STATUS = {
    TurnStage.TRANSCRIBING: "transcribing",
    TurnStage.GENERATING: "generating response",
    TurnStage.SYNTHESIZING: "generating speech",
}


@dataclass
class Turn:
    """One request/response cycle, populated as each remote call completes."""
    kind: TurnKind
    raw_input: Union[str, UploadedArtifact]
    conversation_id: Optional[str] = None
    stage: TurnStage = TurnStage.RECEIVED
    transcript: Optional[str] = None
    response_text: Optional[str] = None
    response_audio: Optional[str] = None  # file name served by /download

    @property
    def audio_url(self) -> Optional[str]:
        if self.response_audio is None:
            return None
        return f"/download/{self.response_audio}"
