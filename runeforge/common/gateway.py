"""
Understanding Gateway

Client capability for the AI understanding calls the pipeline needs: text
embedding, image captioning, audio transcription and the composite
interpretation of a multimodal bundle into a nine-field record.

Variants:
- RemoteProvider: talks to the RuneForge proxy over HTTP (httpx)
- HeuristicFallback: local, no network; leaves everything to the heuristics

Every operation degrades to an empty result instead of raising.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, TYPE_CHECKING

import httpx

from .errors import ParseError, ProviderError, TransportError
from .llm_utils import ParsedResponse, ResponseKind, parse_structured

if TYPE_CHECKING:
    from .config import RuneForgeConfig
    from .schemas import Content
    from ..forge.extractor import InputFile

logger = logging.getLogger("runeforge.common.gateway")

DEFAULT_IMAGE_PROMPT = "Describe the main content of this image in 50 words or fewer."
VIDEO_FRAME_PROMPT = (
    "Describe the scene and the mood represented by this first frame of a video "
    "in 50 words or fewer."
)
DEFAULT_TRANSCRIPTION_PROMPT = (
    "Transcribe the audio content completely as plain text without any extra commentary."
)
SYSTEM_PROMPT = "Output strict JSON only. Do not add any explanation."

# Skeleton of the nine-field record, in the order the model should follow
RECORD_SKELETON = {
    "rune_name": "rune name",
    "category": "rune category",
    "core": {"intent": "", "essence": "", "purpose": ""},
    "content": {"text": "", "imageDesc": "", "audioText": "", "videoSummary": "", "videoFrame": ""},
    "metadata": {
        "language": "English",
        "emotion": "",
        "keywords": ["a", "b", "c"],
        "summary": "",
        "prompt": "",
        "_fallback": False,
    },
    "nine_turns": {
        "1_origin": "",
        "2_form": "",
        "3_name": "",
        "4_meaning": "",
        "5_function": "",
        "6_action": "",
        "7_tone": "",
        "8_structure": {
            "modalities": ["text", "image", "audio", "video"],
            "embedding_type": "text-embedding-004",
            "dimension": 768,
        },
        "9_evolution": {
            "version": "1.0",
            "update_logic": "regenerate automatically when the rune's semantics change",
        },
    },
    "context": {"source": "modal fusion", "references": [], "relations": []},
    "status": {"parsed": True, "processed": True, "validated": True},
}

INTERPRET_PROMPT = """You are the rune builder agent of the RuneForge semantic system.

Based on the content below, produce STRICT JSON (parseable by a JSON parser) with every
field present and in the same order as the example structure.

Rules:
- "1_origin" is the seed of intent, "2_form" the visual form, "3_name" the rune name
- "4_meaning" is the philosophical meaning in 30 words or fewer
- "5_function" and "6_action" describe the rune's role and what triggers it
- "7_tone" is the energetic tone (warm, calm, flowing, ...)
- Use empty strings or empty lists for anything you cannot determine

Rune name: {name}

Content:
{text}

Example structure:
{skeleton}"""


# ============================================================================
# Value objects
# ============================================================================

@dataclass
class UnderstandingBundle:
    """Modality artifacts gathered so far, handed to the composite call"""
    name: str = ""
    text: str = ""
    image_description: str = ""
    audio_transcript: str = ""
    video_summary: str = ""
    video_frame_image: str = ""
    language: str = ""

    @classmethod
    def from_content(cls, name: str, content: "Content", language: str = "") -> "UnderstandingBundle":
        return cls(
            name=name,
            text=content.text,
            image_description=content.image_description,
            audio_transcript=content.audio_transcript,
            video_summary=content.video_summary,
            video_frame_image=content.video_frame_image,
            language=language,
        )

    def combined_text(self) -> str:
        """Non-empty textual artifacts joined by newlines."""
        parts = [self.text, self.image_description, self.audio_transcript, self.video_summary]
        return "\n".join(p for p in parts if p)


@dataclass
class TranscriptionOptions:
    model: Optional[str] = None
    prompt: Optional[str] = None
    language: Optional[str] = None


def extract_text(data: Any) -> str:
    """Pull the generated text out of an OpenAI or Gemini response body."""
    if not isinstance(data, dict):
        return ""
    choices = data.get("choices")
    if isinstance(choices, list) and choices:
        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        if isinstance(message, dict) and message.get("content"):
            return str(message["content"])
    candidates = data.get("candidates")
    if isinstance(candidates, list) and candidates and isinstance(candidates[0], dict):
        parts = (candidates[0].get("content") or {}).get("parts")
        if isinstance(parts, list):
            texts = [str(p.get("text")) for p in parts if isinstance(p, dict) and p.get("text")]
            return "\n".join(texts)
    return ""


def error_message(data: Any) -> str:
    """Pull an error description out of a provider or proxy error body."""
    if not isinstance(data, dict):
        return ""
    error = data.get("error")
    if isinstance(error, dict):
        return str(error.get("message", ""))
    if error:
        return str(error)
    return ""


def build_interpret_prompt(bundle: UnderstandingBundle, text_limit: int = 1200) -> str:
    return INTERPRET_PROMPT.format(
        name=bundle.name or "untitled rune",
        text=bundle.combined_text()[:text_limit],
        skeleton=json.dumps(RECORD_SKELETON, ensure_ascii=False),
    )


# ============================================================================
# Gateway interface
# ============================================================================

class UnderstandingGateway(ABC):
    """
    Abstract understanding capability.

    Implementations must never raise out of these operations: failures are
    reported as empty results (or an UNSTRUCTURED ParsedResponse).
    """

    name = "abstract"

    @abstractmethod
    async def embed_text(self, text: str) -> List[float]:
        """Embedding vector for text, or [] on failure or blank input."""
        pass

    @abstractmethod
    async def caption_image(self, image: str, prompt: Optional[str] = None) -> str:
        """Caption for an image given as data URL or http(s) URL, or "" on failure."""
        pass

    @abstractmethod
    async def transcribe_audio(
        self,
        file: "InputFile",
        options: Optional[TranscriptionOptions] = None,
    ) -> str:
        """Transcript of an audio file, or "" on failure."""
        pass

    @abstractmethod
    async def interpret_bundle(self, bundle: UnderstandingBundle) -> ParsedResponse:
        """Structured understanding of the bundle. Never raises."""
        pass

    async def aclose(self) -> None:
        """Release transport resources."""
        return None


class HeuristicFallback(UnderstandingGateway):
    """Offline gateway: produces nothing, so every stage takes its fallback path."""

    name = "heuristic"

    async def embed_text(self, text: str) -> List[float]:
        return []

    async def caption_image(self, image: str, prompt: Optional[str] = None) -> str:
        return ""

    async def transcribe_audio(
        self,
        file: "InputFile",
        options: Optional[TranscriptionOptions] = None,
    ) -> str:
        return ""

    async def interpret_bundle(self, bundle: UnderstandingBundle) -> ParsedResponse:
        return ParsedResponse.unstructured(error="offline: no understanding provider")


class RemoteProvider(UnderstandingGateway):
    """
    Gateway backed by the RuneForge proxy.

    Only the composite interpret_bundle call is retried (once, after a fixed
    backoff); every other call is single-attempt.

    Usage:
        gateway = RemoteProvider("http://localhost:3001/api/gemini")
        caption = await gateway.caption_image(data_url)
        await gateway.aclose()
    """

    name = "remote"

    def __init__(
        self,
        base_url: str,
        http_client: Optional[httpx.AsyncClient] = None,
        chat_model: str = "gemini-2.5-flash",
        transcription_model: Optional[str] = None,
        timeout: float = 30.0,
        retry_backoff: float = 0.8,
        prompt_text_limit: int = 1200,
    ):
        self.base_url = base_url.rstrip("/")
        self.chat_model = chat_model
        self.transcription_model = transcription_model
        self.timeout = timeout
        self.retry_backoff = retry_backoff
        self.prompt_text_limit = prompt_text_limit
        self._client = http_client
        self._owns_client = http_client is None

    @property
    def http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout))
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Transport helpers (raise TransportError / ProviderError / ParseError)
    # ------------------------------------------------------------------

    @staticmethod
    def _decode(response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {"raw": response.text}
        return data if isinstance(data, dict) else {"raw": data}

    def _check(self, path: str, response: httpx.Response) -> Dict[str, Any]:
        data = self._decode(response)
        if response.is_error:
            detail = error_message(data) or extract_text(data) or response.text[:120]
            raise ProviderError(
                f"Proxy error {response.status_code} on {path}: {detail}",
                status_code=response.status_code,
            )
        return data

    async def _post_json(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self.http.post(f"{self.base_url}{path}", json=payload)
        except httpx.HTTPError as e:
            raise TransportError(f"POST {path} failed: {e!r}") from e
        return self._check(path, response)

    async def _post_multipart(
        self,
        path: str,
        files: Dict[str, Any],
        data: Dict[str, str],
    ) -> Dict[str, Any]:
        try:
            response = await self.http.post(f"{self.base_url}{path}", files=files, data=data)
        except httpx.HTTPError as e:
            raise TransportError(f"POST {path} failed: {e!r}") from e
        return self._check(path, response)

    @staticmethod
    def _require_structured(content: str) -> ParsedResponse:
        parsed = parse_structured(content)
        if parsed.kind == ResponseKind.UNSTRUCTURED:
            raise ParseError(parsed.error or "unusable response", raw=content)
        return parsed

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def embed_text(self, text: str) -> List[float]:
        if not text or not text.strip():
            return []
        try:
            data = await self._post_json("/embeddings", {"content": {"parts": [{"text": text}]}})
            values = (data.get("embedding") or {}).get("values")
            if values is None and isinstance(data.get("data"), list) and data["data"]:
                values = data["data"][0].get("embedding")
            if not isinstance(values, list):
                logger.warning("Embedding response carried no vector")
                return []
            return [float(v) for v in values]
        except Exception as e:
            logger.warning("embed_text failed: %s", e)
            return []

    async def caption_image(self, image: str, prompt: Optional[str] = None) -> str:
        if not image:
            logger.warning("caption_image called without an image")
            return ""
        payload = {
            "model": self.chat_model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt or DEFAULT_IMAGE_PROMPT},
                        {"type": "image_url", "image_url": {"url": image}},
                    ],
                }
            ],
        }
        try:
            data = await self._post_json("/vision", payload)
            caption = extract_text(data)
            logger.info("Vision response preview: %s", caption[:160])
            return caption
        except Exception as e:
            logger.warning("caption_image failed: %s", e)
            return ""

    async def transcribe_audio(
        self,
        file: "InputFile",
        options: Optional[TranscriptionOptions] = None,
    ) -> str:
        if file is None or not file.data:
            return ""
        options = options or TranscriptionOptions()
        form = {}
        model = options.model or self.transcription_model
        if model:
            form["model"] = model
        if options.prompt:
            form["prompt"] = options.prompt
        if options.language:
            form["language"] = options.language
        files = {"file": (file.name or "audio.wav", file.data, file.mime_type or "audio/wav")}
        try:
            data = await self._post_multipart("/audio/transcriptions", files, form)
            text = extract_text(data) or str(data.get("text") or "")
            if not text and isinstance(data.get("segments"), list):
                text = " ".join(str(s.get("text", "")) for s in data["segments"] if isinstance(s, dict))
            logger.info("Transcription preview: %s", text[:160])
            return text
        except Exception as e:
            logger.warning("transcribe_audio failed: %s", e)
            return ""

    async def interpret_bundle(self, bundle: UnderstandingBundle) -> ParsedResponse:
        try:
            prompt = build_interpret_prompt(bundle, self.prompt_text_limit)
            logger.info("Interpreting bundle %r (%d chars)", bundle.name, len(bundle.combined_text()))
            payload = {
                "model": self.chat_model,
                "messages": [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
            }
            try:
                data = await self._post_json("/generate", payload)
            except (TransportError, ProviderError) as e:
                logger.warning("First interpretation attempt failed: %s", e)
                await asyncio.sleep(self.retry_backoff)
                data = await self._post_json("/generate", payload)

            content = extract_text(data)
            logger.info("Interpretation response preview: %s", content[:160])
            return self._require_structured(content)
        except ParseError as e:
            logger.warning("Model returned no usable JSON: %s", e)
            return ParsedResponse.unstructured(raw=e.raw, error=str(e))
        except Exception as e:
            logger.warning("interpret_bundle failed: %s", e)
            return ParsedResponse.unstructured(error=str(e))


def to_data_url(data: bytes, mime_type: str) -> str:
    """Encode bytes as a base64 data URL."""
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type or 'application/octet-stream'};base64,{encoded}"


def build_gateway(
    config: "RuneForgeConfig",
    offline: bool = False,
    http_client: Optional[httpx.AsyncClient] = None,
) -> UnderstandingGateway:
    """Select the gateway variant for this run."""
    if offline:
        logger.info("Using offline heuristic gateway")
        return HeuristicFallback()
    return RemoteProvider(
        base_url=config.proxy.base_url,
        http_client=http_client,
        chat_model=config.models.chat_model,
        transcription_model=config.models.transcription_model,
        timeout=config.pipeline.request_timeout,
        retry_backoff=config.pipeline.retry_backoff,
        prompt_text_limit=config.pipeline.prompt_text_limit,
    )
