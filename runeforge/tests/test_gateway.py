"""Tests for the remote understanding gateway against a mocked proxy."""

import json
import logging

import httpx
import pytest

from runeforge.common.config import RuneForgeConfig
from runeforge.common.gateway import (
    HeuristicFallback,
    RemoteProvider,
    TranscriptionOptions,
    UnderstandingBundle,
    build_gateway,
    build_interpret_prompt,
    extract_text,
)
from runeforge.common.llm_utils import ResponseKind
from runeforge.forge.extractor import InputFile

BASE_URL = "http://proxy.test/api/gemini"


def _gemini_body(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def _provider(handler, **kwargs) -> RemoteProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    kwargs.setdefault("retry_backoff", 0)
    return RemoteProvider(BASE_URL, http_client=client, **kwargs)


class TestExtractText:
    def test_openai_body(self):
        assert extract_text({"choices": [{"message": {"content": "hi"}}]}) == "hi"

    def test_gemini_body_joins_parts(self):
        body = {"candidates": [{"content": {"parts": [{"text": "a"}, {"inline_data": {}}, {"text": "b"}]}}]}
        assert extract_text(body) == "a\nb"

    def test_unknown_body(self):
        assert extract_text({"error": "nope"}) == ""
        assert extract_text(None) == ""


class TestInterpretPrompt:
    def test_text_is_truncated(self):
        bundle = UnderstandingBundle(name="long", text="x" * 5000)
        prompt = build_interpret_prompt(bundle, 1200)
        assert "x" * 1200 in prompt
        assert "x" * 1201 not in prompt
        assert '"1_origin"' in prompt


class TestEmbedText:
    @pytest.mark.asyncio
    async def test_reads_gemini_embedding(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"embedding": {"values": [0.5, 0.25]}})

        provider = _provider(handler)
        assert await provider.embed_text("hello") == [0.5, 0.25]
        assert seen["path"] == "/api/gemini/embeddings"
        assert seen["body"] == {"content": {"parts": [{"text": "hello"}]}}

    @pytest.mark.asyncio
    async def test_reads_openai_embedding(self):
        provider = _provider(lambda r: httpx.Response(200, json={"data": [{"embedding": [1, 2]}]}))
        assert await provider.embed_text("hello") == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_blank_input_makes_no_request(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={})

        provider = _provider(handler)
        assert await provider.embed_text("   \n") == []
        assert calls == []

    @pytest.mark.asyncio
    async def test_provider_error_returns_empty(self, caplog):
        provider = _provider(lambda r: httpx.Response(401, json={"error": {"message": "bad key"}}))
        with caplog.at_level(logging.WARNING, logger="runeforge.common.gateway"):
            assert await provider.embed_text("hello") == []
        assert "bad key" in caplog.text


class TestCaptionImage:
    @pytest.mark.asyncio
    async def test_sends_openai_style_message(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_gemini_body("a red apple"))

        provider = _provider(handler)
        caption = await provider.caption_image("data:image/png;base64,AAAA", prompt="Describe")
        assert caption == "a red apple"
        parts = seen["body"]["messages"][0]["content"]
        assert parts[0] == {"type": "text", "text": "Describe"}
        assert parts[1]["image_url"]["url"] == "data:image/png;base64,AAAA"

    @pytest.mark.asyncio
    async def test_transport_error_returns_empty(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        provider = _provider(handler)
        assert await provider.caption_image("data:image/png;base64,AAAA") == ""


class TestTranscribeAudio:
    @pytest.mark.asyncio
    async def test_multipart_upload(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["content_type"] = request.headers["content-type"]
            seen["body"] = request.content
            return httpx.Response(200, json=_gemini_body("hello there"))

        provider = _provider(handler)
        audio = InputFile(name="clip.wav", mime_type="audio/wav", data=b"RIFFDATA")
        text = await provider.transcribe_audio(audio, TranscriptionOptions(language="en"))
        assert text == "hello there"
        assert seen["path"] == "/api/gemini/audio/transcriptions"
        assert seen["content_type"].startswith("multipart/form-data")
        assert b"RIFFDATA" in seen["body"]
        assert b'name="language"' in seen["body"]

    @pytest.mark.asyncio
    async def test_whisper_segments_fallback(self):
        body = {"segments": [{"text": "one"}, {"text": "two"}]}
        provider = _provider(lambda r: httpx.Response(200, json=body))
        audio = InputFile(name="clip.wav", mime_type="audio/wav", data=b"x")
        assert await provider.transcribe_audio(audio) == "one two"


class TestInterpretBundle:
    @pytest.mark.asyncio
    async def test_structured_response(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_gemini_body('{"rune_name": "dawn"}'))

        provider = _provider(handler)
        parsed = await provider.interpret_bundle(UnderstandingBundle(name="dawn", text="sunrise"))
        assert parsed.kind == ResponseKind.STRUCTURED
        assert parsed.data == {"rune_name": "dawn"}
        assert seen["body"]["messages"][0]["role"] == "system"

    @pytest.mark.asyncio
    async def test_retries_exactly_once(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(503, json={"error": "busy"})
            return httpx.Response(200, json=_gemini_body('noise {"category": "sky"} noise'))

        provider = _provider(handler)
        parsed = await provider.interpret_bundle(UnderstandingBundle(text="clouds"))
        assert len(calls) == 2
        assert parsed.kind == ResponseKind.RECOVERED
        assert parsed.data == {"category": "sky"}

    @pytest.mark.asyncio
    async def test_gives_up_after_second_failure(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500, json={"error": "down"})

        provider = _provider(handler)
        parsed = await provider.interpret_bundle(UnderstandingBundle(text="clouds"))
        assert len(calls) == 2
        assert parsed.kind == ResponseKind.UNSTRUCTURED
        assert "down" in parsed.error

    @pytest.mark.asyncio
    async def test_prose_response_is_unstructured(self):
        provider = _provider(lambda r: httpx.Response(200, json=_gemini_body("I like clouds.")))
        parsed = await provider.interpret_bundle(UnderstandingBundle(text="clouds"))
        assert parsed.kind == ResponseKind.UNSTRUCTURED

    @pytest.mark.asyncio
    async def test_unparseable_reply_keeps_raw_and_is_not_retried(self, caplog):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=_gemini_body("Just a poem about rain."))

        provider = _provider(handler)
        with caplog.at_level(logging.WARNING, logger="runeforge.common.gateway"):
            parsed = await provider.interpret_bundle(UnderstandingBundle(text="rain"))

        assert len(calls) == 1
        assert parsed.kind == ResponseKind.UNSTRUCTURED
        assert parsed.raw == "Just a poem about rain."
        assert parsed.error == "no JSON object in response"
        assert "no usable JSON" in caplog.text


class TestHeuristicFallback:
    @pytest.mark.asyncio
    async def test_everything_empty(self):
        gateway = HeuristicFallback()
        assert await gateway.embed_text("hello") == []
        assert await gateway.caption_image("data:") == ""
        parsed = await gateway.interpret_bundle(UnderstandingBundle(text="x"))
        assert parsed.kind == ResponseKind.UNSTRUCTURED


class TestBuildGateway:
    def test_offline(self):
        assert isinstance(build_gateway(RuneForgeConfig(), offline=True), HeuristicFallback)

    def test_remote_uses_config(self):
        config = RuneForgeConfig()
        config.proxy.base_url = "http://elsewhere:9/api/gemini/"
        config.pipeline.retry_backoff = 0.2
        gateway = build_gateway(config)
        assert isinstance(gateway, RemoteProvider)
        assert gateway.base_url == "http://elsewhere:9/api/gemini"
        assert gateway.retry_backoff == 0.2
