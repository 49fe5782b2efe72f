"""
Modality Extractor

Classifies an input file by MIME type and runs the one understanding call its
modality needs: caption for images, transcript for audio, still frame plus
caption for video, plain decoding for text.

Key Rules:
- extract() never raises
- Any exception or empty understanding result leaves the field empty and
  sets fallback
- Unknown MIME types produce an empty result without error
"""

import asyncio
import logging
import mimetypes
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from ..common.errors import InputError
from ..common.gateway import UnderstandingGateway, VIDEO_FRAME_PROMPT, DEFAULT_IMAGE_PROMPT, to_data_url
from ..common.language import language_label
from .frames import FrameExtractor

logger = logging.getLogger("runeforge.forge.extractor")


class ModalityKind(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"
    UNKNOWN = "unknown"


@dataclass
class InputFile:
    """One user-supplied file: name, MIME type and raw bytes"""
    name: str
    mime_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def suffix(self) -> str:
        return Path(self.name).suffix


@dataclass
class ExtractionResult:
    """Per-modality artifacts of one input file"""
    kind: ModalityKind = ModalityKind.UNKNOWN
    text_candidate: str = ""
    media_base64: str = ""
    still_frame: str = ""
    image_description: str = ""
    audio_transcript: str = ""
    video_summary: str = ""
    language: str = ""
    fallback: bool = False
    errors: List[str] = field(default_factory=list)

    def fail(self, stage: str, reason: str) -> None:
        self.fallback = True
        self.errors.append(f"{stage}: {reason}")


def guess_mime_type(name: str) -> str:
    mime_type, _ = mimetypes.guess_type(name)
    return mime_type or "application/octet-stream"


def classify(mime_type: str) -> ModalityKind:
    """Map a MIME type to its modality by prefix."""
    prefix = (mime_type or "").split("/", 1)[0].lower()
    try:
        return ModalityKind(prefix)
    except ValueError:
        return ModalityKind.UNKNOWN


async def load_input_file(path, mime_type: Optional[str] = None) -> InputFile:
    """Read a file from disk without blocking the event loop.

    Raises:
        InputError: the path does not exist or is not a file
    """
    path = Path(path)
    if not path.is_file():
        raise InputError(f"Input file not found: {path}")
    try:
        data = await asyncio.to_thread(path.read_bytes)
    except OSError as e:
        raise InputError(f"Cannot read input file {path}: {e}") from e
    return InputFile(name=path.name, mime_type=mime_type or guess_mime_type(path.name), data=data)


class ModalityExtractor:
    """
    Runs modality-specific understanding for a single file.

    Dependencies are injected: the gateway for captions/transcripts and the
    frame extractor for video stills.
    """

    def __init__(
        self,
        gateway: UnderstandingGateway,
        frame_extractor: Optional[FrameExtractor] = None,
    ):
        self._gateway = gateway
        self._frames = frame_extractor

    async def extract(self, file: InputFile) -> ExtractionResult:
        """Extract the artifacts of one file. Never raises."""
        kind = classify(file.mime_type)
        result = ExtractionResult(kind=kind)
        logger.info("Extracting %s (%s, %d bytes) as %s", file.name, file.mime_type, file.size, kind.value)

        handlers = {
            ModalityKind.TEXT: self._extract_text,
            ModalityKind.IMAGE: self._extract_image,
            ModalityKind.AUDIO: self._extract_audio,
            ModalityKind.VIDEO: self._extract_video,
        }
        handler = handlers.get(kind)
        if handler is None:
            logger.info("Unsupported MIME type %s, nothing extracted", file.mime_type)
            return result

        try:
            await handler(file, result)
        except Exception as e:
            logger.warning("%s extraction failed for %s: %s", kind.value, file.name, e)
            result.fail(kind.value, str(e))
        return result

    async def _extract_text(self, file: InputFile, result: ExtractionResult) -> None:
        text = file.data.decode("utf-8", errors="replace")
        result.text_candidate = text
        result.language = language_label(text)

    async def _extract_image(self, file: InputFile, result: ExtractionResult) -> None:
        result.media_base64 = to_data_url(file.data, file.mime_type)
        caption = await self._gateway.caption_image(image=result.media_base64, prompt=DEFAULT_IMAGE_PROMPT)
        if not caption:
            logger.warning("Image caption empty for %s", file.name)
            result.fail("image", "empty caption")
            return
        result.image_description = caption

    async def _extract_audio(self, file: InputFile, result: ExtractionResult) -> None:
        transcript = await self._gateway.transcribe_audio(file)
        if not transcript:
            logger.warning("Audio transcript empty for %s", file.name)
            result.fail("audio", "empty transcript")
            return
        result.audio_transcript = transcript

    async def _extract_video(self, file: InputFile, result: ExtractionResult) -> None:
        if self._frames is None:
            result.fail("video", "no frame extractor configured")
            return
        frame = await self._frames.extract_still_frame(file.data, file.mime_type)
        result.still_frame = frame
        summary = await self._gateway.caption_image(image=frame, prompt=VIDEO_FRAME_PROMPT)
        if not summary:
            logger.warning("Video frame caption empty for %s", file.name)
            result.fail("video", "empty frame caption")
            return
        result.video_summary = summary
