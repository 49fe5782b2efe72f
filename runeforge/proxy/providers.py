"""
Provider forwarders for the RuneForge proxy.

Thin REST clients for Google Gemini and OpenAI. They forward a request body
and hand back the provider's status code and JSON body unchanged; the only
transformation is turning OpenAI-style messages into Gemini contents.
"""

from __future__ import annotations

import base64
import binascii
import logging
import mimetypes
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import httpx

from ..common.errors import InputError, ProviderError, TransportError

logger = logging.getLogger("runeforge.proxy.providers")

DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
GEMINI_EMBEDDING_MODEL = "text-embedding-004"
DEFAULT_WHISPER_MODEL = "whisper-1"
DEFAULT_TRANSCRIPTION_PROMPT = (
    "Transcribe the audio content completely as plain text without any extra commentary."
)


@dataclass
class ForwardResponse:
    """Provider status code and decoded JSON body"""
    status_code: int
    body: Any


def _mime_from_url(url: str) -> str:
    mime_type, _ = mimetypes.guess_type(url.split("?", 1)[0])
    return mime_type or "application/octet-stream"


def decode_data_url(url: str) -> Tuple[str, str]:
    """Split a base64 data URL into (base64 data, mime type)."""
    header, sep, payload = url.partition(",")
    if not sep or ";base64" not in header:
        raise InputError("only base64 data URLs are supported")
    mime_type = header[len("data:"):].split(";", 1)[0] or "application/octet-stream"
    try:
        base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InputError(f"invalid base64 payload in data URL: {e}") from e
    return payload, mime_type


async def fetch_as_base64(url: str, client: httpx.AsyncClient) -> Tuple[str, str]:
    """Resolve an image reference to (base64 data, mime type).

    Data URLs are decoded in place; anything else is fetched.
    """
    if url.startswith("data:"):
        return decode_data_url(url)
    try:
        response = await client.get(url)
    except httpx.HTTPError as e:
        raise TransportError(f"fetching {url} failed: {e!r}") from e
    if response.is_error:
        raise TransportError(f"fetching {url} failed: {response.status_code}")
    content_type = response.headers.get("content-type", "").split(";", 1)[0].strip()
    if not content_type or content_type == "application/octet-stream":
        content_type = _mime_from_url(url)
    return base64.b64encode(response.content).decode("ascii"), content_type


async def messages_to_contents(
    messages: List[Dict[str, Any]],
    client: httpx.AsyncClient,
) -> List[Dict[str, Any]]:
    """
    Convert OpenAI-style chat messages into Gemini contents.

    System and user text become text parts; image_url and image_base64 items
    become inline_data parts. Everything goes into a single content turn.
    """
    parts: List[Dict[str, Any]] = []
    for message in messages:
        if not isinstance(message, dict):
            continue
        role = message.get("role")
        content = message.get("content")
        if role not in ("system", "user") or not content:
            continue
        if isinstance(content, str):
            parts.append({"text": content})
            continue
        if not isinstance(content, list):
            parts.append({"text": str(content)})
            continue
        for item in content:
            if not isinstance(item, dict):
                continue
            kind = item.get("type")
            if kind == "text" and item.get("text"):
                parts.append({"text": str(item["text"])})
            elif kind == "image_url":
                url = (item.get("image_url") or {}).get("url")
                if url:
                    data, mime_type = await fetch_as_base64(url, client)
                    parts.append({"inline_data": {"data": data, "mime_type": mime_type}})
            elif kind == "image_base64" and item.get("base64") and item.get("mime"):
                parts.append({"inline_data": {"data": item["base64"], "mime_type": item["mime"]}})
    return [{"parts": parts}]


class ProviderForwarder:
    """Shared transport for provider forwarders."""

    name = "abstract"

    def __init__(
        self,
        api_key: str = "",
        endpoint: str = "",
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
    ) -> None:
        self.api_key = api_key or ""
        self.endpoint = endpoint.rstrip("/")
        self._client = http_client
        self._owns_client = http_client is None
        self._timeout = timeout

        if not self.api_key:
            logger.warning("%s API key not configured; requests will be rejected upstream", self.name)

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _headers(self) -> Dict[str, str]:
        return {}

    async def _post(self, url: str, **kwargs: Any) -> ForwardResponse:
        try:
            response = await self.http.post(url, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"{self.name} request failed: {e!r}") from e
        logger.info("%s status: %s", self.name, response.status_code)
        try:
            body = response.json()
        except ValueError as e:
            raise ProviderError(
                f"{self.name} returned a non-JSON body ({response.status_code})",
                status_code=response.status_code,
            ) from e
        return ForwardResponse(status_code=response.status_code, body=body)


class GeminiForwarder(ProviderForwarder):
    """Google Generative Language REST API."""

    name = "gemini"

    def _headers(self) -> Dict[str, str]:
        return {"x-goog-api-key": self.api_key}

    def _model_url(self, model: str, method: str) -> str:
        return f"{self.endpoint}/models/{quote(model, safe='')}:{method}"

    async def build_contents(self, body: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Native contents when given, else converted messages.

        Raises:
            InputError: neither contents nor messages present
        """
        contents = body.get("contents")
        if isinstance(contents, list) and contents:
            return contents
        messages = body.get("messages")
        if isinstance(messages, list):
            return await messages_to_contents(messages, self.http)
        raise InputError("missing contents or messages")

    async def generate(self, contents: List[Dict[str, Any]], model: Optional[str] = None) -> ForwardResponse:
        url = self._model_url(model or DEFAULT_GEMINI_MODEL, "generateContent")
        return await self._post(url, json={"contents": contents})

    async def embed(self, body: Dict[str, Any]) -> ForwardResponse:
        content = body.get("content")
        if not (isinstance(content, dict) and content.get("parts")):
            content = {"parts": [{"text": str(body.get("text") or "")}]}
        url = self._model_url(GEMINI_EMBEDDING_MODEL, "embedContent")
        return await self._post(url, json={"content": content})

    async def transcribe(
        self,
        audio: bytes,
        mime_type: Optional[str] = None,
        model: Optional[str] = None,
        prompt: Optional[str] = None,
    ) -> ForwardResponse:
        parts = [
            {"text": prompt or DEFAULT_TRANSCRIPTION_PROMPT},
            {
                "inline_data": {
                    "data": base64.b64encode(audio).decode("ascii"),
                    "mime_type": mime_type or "audio/wav",
                }
            },
        ]
        return await self.generate([{"parts": parts}], model=model)


class OpenAIForwarder(ProviderForwarder):
    """OpenAI REST API passthrough."""

    name = "openai"

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    async def chat(self, body: Dict[str, Any]) -> ForwardResponse:
        return await self._post(f"{self.endpoint}/chat/completions", json=body)

    async def embeddings(self, body: Dict[str, Any]) -> ForwardResponse:
        return await self._post(f"{self.endpoint}/embeddings", json=body)

    async def transcribe(
        self,
        filename: str,
        audio: bytes,
        mime_type: Optional[str] = None,
        model: Optional[str] = None,
        prompt: Optional[str] = None,
        language: Optional[str] = None,
    ) -> ForwardResponse:
        form = {"model": model or DEFAULT_WHISPER_MODEL}
        if prompt:
            form["prompt"] = prompt
        if language:
            form["language"] = language
        files = {"file": (filename or "audio.wav", audio, mime_type or "audio/wav")}
        return await self._post(f"{self.endpoint}/audio/transcriptions", data=form, files=files)
