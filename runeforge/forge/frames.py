"""
Still-frame Capture

Captures one representative frame from a video as a JPEG data URL.

The full-resolution capture is time-boxed; when it does not finish in time the
ffmpeg process is killed and a 320x180 capture is attempted instead.
"""

import asyncio
import base64
import logging
import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from ..common.errors import FrameExtractionError

logger = logging.getLogger("runeforge.forge.frames")

LOW_RES_SCALE = "scale=320:180"

_VIDEO_SUFFIXES = {
    "video/mp4": ".mp4",
    "video/webm": ".webm",
    "video/quicktime": ".mov",
    "video/x-matroska": ".mkv",
    "video/x-msvideo": ".avi",
}


class FrameExtractor(ABC):
    """Capability that turns video bytes into a still-frame data URL."""

    @abstractmethod
    async def extract_still_frame(self, data: bytes, mime_type: str = "video/mp4") -> str:
        """Return a data:image/jpeg;base64 URL or raise FrameExtractionError."""
        pass


def _require_executable(name: str) -> str:
    path = shutil.which(name)
    if path is None:
        raise FrameExtractionError(f"Required executable not found in PATH: {name}")
    return path


def _write_temp_video(data: bytes, suffix: str) -> str:
    fd, path = tempfile.mkstemp(prefix="runeforge_", suffix=suffix)
    with os.fdopen(fd, "wb") as f:
        f.write(data)
    return path


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except OSError as e:
        logger.debug("Could not remove temp file %s: %s", path, e)


class FFmpegFrameExtractor(FrameExtractor):
    """FrameExtractor backed by the ffmpeg CLI."""

    def __init__(
        self,
        timeout: float = 1.5,
        fallback_timeout: float = 5.0,
        offset: float = 0.0,
        executable: str = "ffmpeg",
    ):
        self.timeout = timeout
        self.fallback_timeout = fallback_timeout
        self.offset = offset
        self.executable = executable

    def _command(self, ffmpeg: str, path: str, scale: Optional[str]) -> List[str]:
        cmd = [
            ffmpeg, "-hide_banner", "-loglevel", "error",
            "-ss", f"{self.offset:.3f}",
            "-i", path,
            "-frames:v", "1",
        ]
        if scale:
            cmd += ["-vf", scale]
        cmd += ["-f", "image2", "-c:v", "mjpeg", "pipe:1"]
        return cmd

    async def _run(self, cmd: List[str], timeout: float) -> Tuple[int, bytes, bytes]:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise
        return proc.returncode, stdout, stderr

    async def _capture(self, ffmpeg: str, path: str, scale: Optional[str], timeout: float) -> bytes:
        code, out, err = await self._run(self._command(ffmpeg, path, scale), timeout)
        if code != 0 or not out:
            raise FrameExtractionError(
                f"ffmpeg failed ({code}): {err.decode('utf-8', 'replace').strip()[:200]}"
            )
        return out

    async def extract_still_frame(self, data: bytes, mime_type: str = "video/mp4") -> str:
        if not data:
            raise FrameExtractionError("empty video payload")
        ffmpeg = _require_executable(self.executable)
        suffix = _VIDEO_SUFFIXES.get(mime_type, ".bin")
        path = await asyncio.to_thread(_write_temp_video, data, suffix)
        try:
            try:
                jpeg = await self._capture(ffmpeg, path, None, self.timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    "Frame capture exceeded %.1fs, retrying at low resolution", self.timeout
                )
                try:
                    jpeg = await self._capture(ffmpeg, path, LOW_RES_SCALE, self.fallback_timeout)
                except asyncio.TimeoutError as e:
                    raise FrameExtractionError("low-resolution frame capture timed out") from e
        finally:
            await asyncio.to_thread(_remove_quietly, path)

        logger.info("Captured still frame (%d bytes)", len(jpeg))
        return "data:image/jpeg;base64," + base64.b64encode(jpeg).decode("ascii")
