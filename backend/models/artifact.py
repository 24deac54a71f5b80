"""Audio artifact data models."""
from dataclasses import dataclass
from pathlib import Path


@dataclass
class UploadedArtifact:
    """An uploaded audio file stored in the uploads directory."""
    path: Path
    original_name: str
    content_type: str
    size_bytes: int

    @property
    def extension(self) -> str:
        """Lower-case extension without the leading dot."""
        return self.path.suffix.lower().lstrip(".")


@dataclass
class NormalizedAudio:
    """
    Result of audio normalization.

    Attributes:
        path: File to hand to the transcription service
        mode: "unchanged" (already supported), "transcoded" (re-encoded by
            ffmpeg) or "relabeled" (bytes copied under an .mp3 name)
    """
    path: Path
    mode: str

    @property
    def is_intermediate(self) -> bool:
        """Whether `path` is a new file that the caller must clean up."""
        return self.mode != "unchanged"
