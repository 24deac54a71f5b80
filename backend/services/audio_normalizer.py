"""
Audio normalization for the transcription service.

Uploads whose extension the transcription service does not accept are
re-encoded to mp3 with ffmpeg. Without ffmpeg the bytes are copied under an
.mp3 name (a degraded "relabeled" mode that relies on the service detecting
the real codec).
"""
import asyncio
import logging
import re
import shutil
from collections import deque
from pathlib import Path
from typing import Callable, Optional

from config import FFMPEG_PATH, TRANSCRIBABLE_EXTENSIONS
from models.artifact import NormalizedAudio
from services.errors import EncodingError, StorageError

logger = logging.getLogger(__name__)

# Called with (phase, percent); phase is one of the PHASE_* constants
ProgressCallback = Callable[[str, Optional[float]], None]

PHASE_START = "start"
PHASE_PROGRESS = "progress"
PHASE_END = "end"
PHASE_ERROR = "error"

DURATION_PATTERN = re.compile(r"Duration:\s*(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")
OUT_TIME_PATTERN = re.compile(r"^out_time_(?:ms|us)=(\d+)$")


def parse_duration(line: str) -> Optional[float]:
    """Extract the input duration in seconds from an ffmpeg banner line."""
    match = DURATION_PATTERN.search(line)
    if not match:
        return None
    hours, minutes, seconds = match.groups()
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def parse_out_time(line: str) -> Optional[float]:
    """Extract encoded position in seconds from an ffmpeg -progress line."""
    match = OUT_TIME_PATTERN.match(line)
    if not match:
        return None
    # ffmpeg reports microseconds under both key names
    return int(match.group(1)) / 1_000_000


class AudioNormalizer:
    """Convert uploaded audio into a format the transcription service accepts."""

    def __init__(self, encoder_path: Optional[str] = None):
        """
        Initialize the normalizer.

        Args:
            encoder_path: ffmpeg executable; defaults to FFMPEG_PATH or a PATH
                lookup. When none is found the normalizer runs in relabel mode.
        """
        self.encoder_path = encoder_path or FFMPEG_PATH or shutil.which("ffmpeg")
        if self.encoder_path:
            logger.info(f"FFmpeg path set successfully: {self.encoder_path}")
        else:
            logger.warning("FFmpeg not found, unsupported audio will be relabeled instead of converted")

    @property
    def has_encoder(self) -> bool:
        return bool(self.encoder_path)

    @staticmethod
    def needs_normalization(path: Path) -> bool:
        """Whether the transcription service would reject this file's extension."""
        return Path(path).suffix.lower().lstrip(".") not in TRANSCRIBABLE_EXTENSIONS

    async def normalize(
        self,
        input_path: Path,
        on_progress: Optional[ProgressCallback] = None
    ) -> NormalizedAudio:
        """
        Produce a file the transcription service accepts.

        Args:
            input_path: Uploaded audio file
            on_progress: Optional callback receiving encoder phases

        Returns:
            NormalizedAudio; `mode` tells whether a real conversion happened

        Raises:
            EncodingError: ffmpeg failed
            StorageError: The fallback copy failed
        """
        input_path = Path(input_path)
        if not self.needs_normalization(input_path):
            return NormalizedAudio(path=input_path, mode="unchanged")

        output_path = input_path.with_name(input_path.name + ".mp3")
        if self.has_encoder:
            await self._transcode(input_path, output_path, on_progress)
            return NormalizedAudio(path=output_path, mode="transcoded")

        await self._relabel(input_path, output_path)
        return NormalizedAudio(path=output_path, mode="relabeled")

    async def _transcode(
        self,
        input_path: Path,
        output_path: Path,
        on_progress: Optional[ProgressCallback]
    ) -> None:
        cmd = [
            self.encoder_path, "-hide_banner", "-nostdin", "-y",
            "-i", str(input_path),
            "-vn", "-codec:a", "libmp3lame", "-f", "mp3",
            "-nostats", "-progress", "pipe:2",
            str(output_path),
        ]

        def report(phase: str, percent: Optional[float] = None) -> None:
            if on_progress is not None:
                on_progress(phase, percent)

        logger.debug("FFmpeg started", extra={"cmd": " ".join(cmd)})
        report(PHASE_START)

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            report(PHASE_ERROR)
            logger.error(f"Audio conversion failed to start: {e}")
            raise EncodingError(
                f"Failed to start audio encoder: {e}",
                details={"input": str(input_path)}
            ) from e

        duration: Optional[float] = None
        diagnostics = deque(maxlen=10)
        async for raw_line in proc.stderr:
            line = raw_line.decode(errors="replace").strip()
            if not line:
                continue

            if duration is None:
                duration = parse_duration(line)

            position = parse_out_time(line)
            if position is not None:
                percent = min(100.0, position / duration * 100) if duration else None
                logger.debug("FFmpeg progress", extra={"percent": percent})
                report(PHASE_PROGRESS, percent)
            elif "=" not in line:
                diagnostics.append(line)

        returncode = await proc.wait()
        if returncode != 0:
            report(PHASE_ERROR)
            diagnostic = "\n".join(diagnostics) or f"ffmpeg exited with status {returncode}"
            logger.error(
                "Audio conversion failed",
                extra={"input": str(input_path), "returncode": returncode, "error": diagnostic}
            )
            output_path.unlink(missing_ok=True)
            raise EncodingError(
                f"Audio conversion failed: {diagnostic}",
                details={"input": str(input_path), "returncode": returncode}
            )

        report(PHASE_END, 100.0)
        logger.info("Audio converted", extra={"input": str(input_path), "output": str(output_path)})

    async def _relabel(self, input_path: Path, output_path: Path) -> None:
        try:
            await asyncio.to_thread(shutil.copyfile, input_path, output_path)
        except OSError as e:
            logger.error(f"Audio relabel failed: {e}")
            output_path.unlink(missing_ok=True)
            raise StorageError(
                f"Failed to copy audio file: {e}",
                details={"input": str(input_path)}
            ) from e

        logger.warning(
            "Audio relabeled without conversion (degraded mode)",
            extra={"input": str(input_path), "output": str(output_path)}
        )
