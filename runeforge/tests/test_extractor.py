"""Tests for modality extraction."""

import pytest

from runeforge.common.errors import InputError, TransportError
from runeforge.forge.extractor import (
    InputFile,
    ModalityExtractor,
    ModalityKind,
    classify,
    load_input_file,
)


class TestClassify:
    @pytest.mark.parametrize("mime,kind", [
        ("image/png", ModalityKind.IMAGE),
        ("audio/mpeg", ModalityKind.AUDIO),
        ("video/mp4", ModalityKind.VIDEO),
        ("text/plain", ModalityKind.TEXT),
        ("application/pdf", ModalityKind.UNKNOWN),
        ("", ModalityKind.UNKNOWN),
    ])
    def test_prefixes(self, mime, kind):
        assert classify(mime) == kind


class TestLoadInputFile:
    @pytest.mark.asyncio
    async def test_reads_bytes_and_guesses_mime(self, tmp_path):
        path = tmp_path / "note.txt"
        path.write_text("Hello world")
        file = await load_input_file(path)
        assert file.name == "note.txt"
        assert file.mime_type == "text/plain"
        assert file.data == b"Hello world"

    @pytest.mark.asyncio
    async def test_missing_file_raises(self, tmp_path):
        with pytest.raises(InputError):
            await load_input_file(tmp_path / "absent.png")


class TestModalityExtractor:
    @pytest.mark.asyncio
    async def test_text_needs_no_network(self, fake_gateway):
        extractor = ModalityExtractor(fake_gateway)
        result = await extractor.extract(InputFile("a.txt", "text/plain", "你好 world".encode("utf-8")))
        assert result.kind == ModalityKind.TEXT
        assert result.text_candidate == "你好 world"
        assert result.language == "Chinese"
        assert not result.fallback
        assert fake_gateway.calls == []

    @pytest.mark.asyncio
    async def test_undecodable_text_is_replaced(self, fake_gateway):
        result = await ModalityExtractor(fake_gateway).extract(InputFile("a.txt", "text/plain", b"ok \xff"))
        assert result.text_candidate == "ok �"

    @pytest.mark.asyncio
    async def test_image_caption(self, make_gateway):
        gateway = make_gateway(caption="a cat on a mat")
        result = await ModalityExtractor(gateway).extract(InputFile("cat.png", "image/png", b"\x89PNG"))
        assert result.image_description == "a cat on a mat"
        assert result.media_base64.startswith("data:image/png;base64,")
        assert not result.fallback

    @pytest.mark.asyncio
    async def test_image_caption_failure_degrades(self, failing_caption_gateway):
        result = await ModalityExtractor(failing_caption_gateway).extract(
            InputFile("cat.png", "image/png", b"\x89PNG")
        )
        assert result.image_description == ""
        assert result.fallback
        assert "connection refused" in result.errors[0]

    @pytest.mark.asyncio
    async def test_empty_caption_counts_as_failure(self, fake_gateway):
        result = await ModalityExtractor(fake_gateway).extract(InputFile("cat.png", "image/png", b"x"))
        assert result.fallback
        assert result.errors == ["image: empty caption"]

    @pytest.mark.asyncio
    async def test_audio_transcript(self, make_gateway):
        gateway = make_gateway(transcript="good morning")
        result = await ModalityExtractor(gateway).extract(InputFile("hi.wav", "audio/wav", b"RIFF"))
        assert result.audio_transcript == "good morning"
        assert gateway.calls == [("transcribe_audio", "hi.wav")]
        assert result.media_base64 == ""

    @pytest.mark.asyncio
    async def test_audio_failure_degrades(self, make_gateway):
        gateway = make_gateway(transcript=TransportError("timeout"))
        result = await ModalityExtractor(gateway).extract(InputFile("hi.wav", "audio/wav", b"RIFF"))
        assert result.audio_transcript == ""
        assert result.fallback

    @pytest.mark.asyncio
    async def test_video_frame_and_summary(self, make_gateway, fake_frames):
        gateway = make_gateway(caption="a quiet beach at dusk")
        result = await ModalityExtractor(gateway, fake_frames).extract(
            InputFile("clip.mp4", "video/mp4", b"\x00\x00")
        )
        assert result.still_frame == fake_frames.frame
        assert result.video_summary == "a quiet beach at dusk"
        assert result.image_description == ""
        assert "first frame" in gateway.calls[0][1]

    @pytest.mark.asyncio
    async def test_video_frame_failure_degrades(self, make_gateway, broken_frames):
        gateway = make_gateway(caption="unused")
        result = await ModalityExtractor(gateway, broken_frames).extract(
            InputFile("clip.mp4", "video/mp4", b"\x00")
        )
        assert result.still_frame == ""
        assert result.video_summary == ""
        assert result.fallback
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_unknown_mime_is_empty_without_error(self, fake_gateway):
        result = await ModalityExtractor(fake_gateway).extract(InputFile("a.pdf", "application/pdf", b"%PDF"))
        assert result.kind == ModalityKind.UNKNOWN
        assert not result.fallback
        assert result.errors == []

    @pytest.mark.asyncio
    async def test_never_raises(self, make_gateway, fake_frames):
        gateway = make_gateway(caption=RuntimeError("boom"), transcript=ValueError("bad"))
        extractor = ModalityExtractor(gateway, fake_frames)
        for mime in ("image/png", "audio/wav", "video/mp4"):
            result = await extractor.extract(InputFile("f", mime, b"data"))
            assert result.fallback
