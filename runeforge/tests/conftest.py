"""Shared fixtures: an in-memory understanding gateway and frame extractor."""

from typing import Dict, List, Optional

import pytest

from runeforge.common.errors import FrameExtractionError, TransportError
from runeforge.common.gateway import TranscriptionOptions, UnderstandingBundle, UnderstandingGateway
from runeforge.common.llm_utils import ParsedResponse
from runeforge.forge.frames import FrameExtractor


class FakeGateway(UnderstandingGateway):
    """Scripted gateway. Set an attribute to an Exception to make that call raise."""

    name = "fake"

    def __init__(
        self,
        caption="",
        transcript="",
        interpretation: Optional[ParsedResponse] = None,
        embeddings: Optional[Dict[str, List[float]]] = None,
        default_embedding: Optional[List[float]] = None,
    ):
        self.caption = caption
        self.transcript = transcript
        self.interpretation = interpretation or ParsedResponse.unstructured(error="scripted")
        self.embeddings = embeddings or {}
        self.default_embedding = default_embedding or []
        self.calls: List[tuple] = []

    async def embed_text(self, text: str) -> List[float]:
        self.calls.append(("embed_text", text))
        value = self.embeddings.get(text, self.default_embedding)
        if isinstance(value, Exception):
            raise value
        return list(value)

    async def caption_image(self, image: str, prompt: Optional[str] = None) -> str:
        self.calls.append(("caption_image", prompt))
        if isinstance(self.caption, Exception):
            raise self.caption
        return self.caption

    async def transcribe_audio(self, file, options: Optional[TranscriptionOptions] = None) -> str:
        self.calls.append(("transcribe_audio", file.name))
        if isinstance(self.transcript, Exception):
            raise self.transcript
        return self.transcript

    async def interpret_bundle(self, bundle: UnderstandingBundle) -> ParsedResponse:
        self.calls.append(("interpret_bundle", bundle.name))
        if isinstance(self.interpretation, Exception):
            raise self.interpretation
        return self.interpretation


class FakeFrameExtractor(FrameExtractor):
    def __init__(self, frame="data:image/jpeg;base64,/9j/AA==", error: Optional[Exception] = None):
        self.frame = frame
        self.error = error

    async def extract_still_frame(self, data: bytes, mime_type: str = "video/mp4") -> str:
        if self.error is not None:
            raise self.error
        return self.frame


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def failing_caption_gateway():
    return FakeGateway(caption=TransportError("connection refused"))


@pytest.fixture
def fake_frames():
    return FakeFrameExtractor()


@pytest.fixture
def broken_frames():
    return FakeFrameExtractor(error=FrameExtractionError("ffmpeg not found"))


@pytest.fixture
def make_gateway():
    """Factory for scripted gateways."""
    return FakeGateway
