"""Audio artifact storage in the uploads directory."""
import asyncio
import logging
import time
import uuid
from pathlib import Path
from typing import BinaryIO, Optional

from config import UPLOAD_DIR, MAX_UPLOAD_BYTES, UPLOAD_EXTENSIONS, RESPONSE_AUDIO_TTL_SECONDS
from models.artifact import UploadedArtifact
from services.errors import StorageError, ValidationError

logger = logging.getLogger(__name__)

RESPONSE_PREFIX = "response-"
COPY_CHUNK_SIZE = 1024 * 1024


class ArtifactStore:
    """Manages uploaded audio and synthesized response audio on local disk."""

    def __init__(
        self,
        upload_dir: str = UPLOAD_DIR,
        max_upload_bytes: int = MAX_UPLOAD_BYTES,
        response_ttl_seconds: int = RESPONSE_AUDIO_TTL_SECONDS
    ):
        self.upload_dir = Path(upload_dir)
        self.max_upload_bytes = max_upload_bytes
        self.response_ttl_seconds = response_ttl_seconds

        if not self.upload_dir.exists():
            self.upload_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created upload directory: {self.upload_dir}")

    @staticmethod
    def upload_name(original_name: str, now_ms: Optional[int] = None, token: Optional[str] = None) -> str:
        """
        Build the stored file name for an upload.

        `<epoch-ms>-<token>-<original>`, with ".mp3" appended when the extension
        is not one we accept. The suffix is a label only; content is untouched.
        The random token keeps same-millisecond uploads of one name apart.
        """
        now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
        token = token or uuid.uuid4().hex[:6]
        safe_name = Path(original_name or "audio").name or "audio"
        name = f"{now_ms}-{token}-{safe_name}"
        if Path(name).suffix.lower().lstrip(".") not in UPLOAD_EXTENSIONS:
            name += ".mp3"
        return name

    async def save_upload(self, stream: BinaryIO, original_name: str, content_type: Optional[str]) -> UploadedArtifact:
        """
        Store an uploaded audio file.

        Args:
            stream: File object positioned at the start of the upload
            original_name: Client-supplied file name
            content_type: Client-supplied MIME type

        Returns:
            UploadedArtifact for the stored file

        Raises:
            ValidationError: Not an audio MIME type, or larger than the limit
            StorageError: Writing the file failed
        """
        if not content_type or not content_type.startswith("audio/"):
            raise ValidationError(
                "Only audio files are allowed",
                details={"content_type": content_type}
            )

        path = self.upload_dir / self.upload_name(original_name)
        try:
            size = await asyncio.to_thread(self._copy_limited, stream, path)
        except ValidationError:
            await self.discard_async(path)
            raise
        except OSError as e:
            await self.discard_async(path)
            logger.error(f"Failed to store upload {original_name}: {e}")
            raise StorageError(f"Failed to store uploaded file: {e}") from e

        logger.debug(f"Stored upload {path.name} ({size} bytes)")
        return UploadedArtifact(
            path=path,
            original_name=original_name,
            content_type=content_type,
            size_bytes=size
        )

    def _copy_limited(self, stream: BinaryIO, path: Path) -> int:
        size = 0
        with open(path, "wb") as out:
            while True:
                chunk = stream.read(COPY_CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > self.max_upload_bytes:
                    raise ValidationError(
                        "Audio file too large",
                        details={"max_bytes": self.max_upload_bytes}
                    )
                out.write(chunk)
        return size

    async def save_response_audio(self, audio_data: bytes) -> str:
        """
        Persist synthesized speech and return its download file name.

        Raises:
            StorageError: Writing the file failed
        """
        name = f"{RESPONSE_PREFIX}{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}.mp3"
        path = self.upload_dir / name
        try:
            await asyncio.to_thread(path.write_bytes, audio_data)
        except OSError as e:
            await self.discard_async(path)
            logger.error(f"Failed to write response audio: {e}")
            raise StorageError(f"Failed to save response audio: {e}") from e

        await self.purge_expired_async()
        return name

    def resolve_download(self, filename: str) -> Optional[Path]:
        """
        Path of a downloadable response, or None.

        Only synthesized response audio is downloadable; uploads and
        intermediates in the same directory belong to their turn.
        """
        if not filename or Path(filename).name != filename:
            return None
        if not filename.startswith(RESPONSE_PREFIX) or not filename.endswith(".mp3"):
            return None
        path = self.upload_dir / filename
        return path if path.is_file() else None

    def discard(self, *paths: Optional[Path]) -> None:
        """Delete artifacts, logging and swallowing failures."""
        for path in paths:
            if path is None:
                continue
            try:
                Path(path).unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Failed to delete artifact {path}: {e}")

    def purge_expired(self, now: Optional[float] = None) -> int:
        """Delete response audio older than the TTL. Returns how many were removed."""
        now = now if now is not None else time.time()
        removed = 0
        for path in self.upload_dir.glob(f"{RESPONSE_PREFIX}*.mp3"):
            try:
                if now - path.stat().st_mtime > self.response_ttl_seconds:
                    path.unlink()
                    removed += 1
            except OSError as e:
                logger.warning(f"Failed to purge {path.name}: {e}")
        if removed:
            logger.info(f"Purged {removed} expired response audio file(s)")
        return removed

    async def discard_async(self, *paths: Optional[Path]) -> None:
        """`discard` off the event loop."""
        await asyncio.to_thread(self.discard, *paths)

    async def purge_expired_async(self, now: Optional[float] = None) -> int:
        """`purge_expired` off the event loop."""
        return await asyncio.to_thread(self.purge_expired, now)
