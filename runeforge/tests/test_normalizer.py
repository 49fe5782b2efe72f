"""Tests for the schema normalizer: totality, precedence and idempotence."""

import pytest

from runeforge.common.gateway import UnderstandingBundle
from runeforge.common.llm_utils import ParsedResponse, ResponseKind
from runeforge.common.schemas import NineFieldRecord
from runeforge.forge.normalizer import SchemaNormalizer


FULL_RESPONSE = {
    "rune_name": "Morning Lamp",
    "category": "light",
    "core": {"intent": "illuminate", "essence": "warmth", "purpose": "guide"},
    "content": {"text": "model text", "imageDesc": "a brass lamp", "audioText": "", "videoSummary": "", "videoFrame": ""},
    "metadata": {
        "language": "English",
        "emotion": "calm",
        "keywords": ["lamp", "light"],
        "summary": "A lamp at dawn",
        "prompt": "brass lamp, soft light",
        "_fallback": False,
    },
    "nine_turns": {
        "1_origin": "fire",
        "2_form": "circle",
        "3_name": "Lamp",
        "4_meaning": "guidance",
        "5_function": "illuminate",
        "6_action": "on dusk",
        "7_tone": "warm",
        "8_structure": {"modalities": ["video"], "embedding_type": "text-embedding-004", "dimension": 768},
        "9_evolution": {"version": "2.0", "update_logic": "never"},
    },
    "context": {"source": "studio", "references": ["r1"], "relations": []},
    "status": {"parsed": True, "processed": True, "validated": True},
}


@pytest.fixture
def normalizer():
    return SchemaNormalizer()


def _bundle(**kwargs) -> UnderstandingBundle:
    kwargs.setdefault("name", "lamp.txt")
    return UnderstandingBundle(**kwargs)


class TestStructuredPath:
    def test_model_values_win(self, normalizer):
        result = normalizer.normalize_full(FULL_RESPONSE, _bundle(image_description="bundle caption"))
        record = result.record
        assert result.structured
        assert result.rune_name == "Morning Lamp"
        assert result.category == "light"
        assert record.core.intent == "illuminate"
        assert record.content.image_description == "a brass lamp"
        assert record.turns.evolution.version == "2.0"
        assert record.context.references == ["r1"]
        assert record.status.validated is True
        assert record.metadata.fallback_flag is False

    def test_body_text_prefers_bundle(self, normalizer):
        record = normalizer.normalize(FULL_RESPONSE, _bundle(text="extracted text"))
        assert record.content.text == "extracted text"

    def test_body_text_from_model_when_bundle_empty(self, normalizer):
        record = normalizer.normalize(FULL_RESPONSE, _bundle())
        assert record.content.text == "model text"

    def test_modalities_recomputed(self, normalizer):
        record = normalizer.normalize(FULL_RESPONSE, _bundle(text="hi"))
        assert record.turns.structure.modalities == ["text", "image"]

    def test_partial_response_is_backfilled(self, normalizer):
        raw = {"core": {"intent": "seek"}, "metadata": {"keywords": "a, bb ,c"}}
        bundle = _bundle(text="dawn light", audio_transcript="birds", language="English")
        result = normalizer.normalize_full(raw, bundle)
        record = result.record
        assert result.rune_name == "lamp.txt"
        assert result.category == "uncategorized"
        assert record.core.intent == "seek"
        assert record.core.essence == ""
        assert record.content.audio_transcript == "birds"
        assert record.metadata.keywords == ["a", "bb", "c"]
        assert record.metadata.language == "English"
        assert record.turns.name == "lamp.txt"
        assert record.context.source == "modal fusion"
        assert record.status.parsed and record.status.validated

    def test_wrong_types_fall_back(self, normalizer):
        raw = {
            "core": "not an object",
            "metadata": {"keywords": 42, "emotion": ["x"], "_fallback": "yes"},
            "nine_turns": {"8_structure": {"dimension": "huge"}},
            "status": {"validated": "true"},
        }
        record = normalizer.normalize(raw, _bundle(text="plain words here"))
        assert record.core.intent == ""
        assert record.metadata.emotion == ""
        assert record.metadata.fallback_flag is False
        assert record.metadata.keywords == ["plain", "words", "here"]
        assert record.turns.structure.dimension == 768
        assert record.status.validated is True

    def test_parsed_response_recovered(self, normalizer):
        raw = ParsedResponse(kind=ResponseKind.RECOVERED, data={"category": "sky"})
        result = normalizer.normalize_full(raw, _bundle())
        assert result.structured
        assert result.category == "sky"


class TestHeuristicPath:
    @pytest.mark.parametrize("raw", [None, {}, {"unrelated": 1}, ParsedResponse.unstructured("nope")])
    def test_unusable_raw_uses_heuristics(self, normalizer, raw):
        result = normalizer.normalize_full(raw, _bundle(text="What a wonderful algorithm"))
        record = result.record
        assert not result.structured
        assert record.metadata.fallback_flag is True
        assert record.status.validated is False
        assert record.core.intent == "express and share"
        assert record.core.essence == "technical content"
        assert record.metadata.emotion == "positive"
        assert record.metadata.language == "English"

    def test_summary_and_prompt_truncated(self, normalizer):
        text = "word " * 100
        record = normalizer.normalize(None, _bundle(text=text))
        assert record.metadata.summary == text[:180]
        assert record.metadata.prompt_seed == text[:120]
        assert len(record.metadata.keywords) <= 6

    def test_combined_text_joins_modalities(self, normalizer):
        record = normalizer.normalize(None, _bundle(image_description="red sky", audio_transcript="thunder"))
        assert record.metadata.summary == "red sky\nthunder"
        assert record.turns.structure.modalities == ["image", "audio"]

    def test_empty_bundle(self, normalizer):
        record = normalizer.normalize(None, _bundle())
        assert record.metadata.summary == ""
        assert record.metadata.keywords == []
        assert record.metadata.language == "unknown"
        assert record.turns.form == "symbol"
        assert record.turns.structure.modalities == []


class TestTotalityAndIdempotence:
    @pytest.mark.parametrize("raw", [
        None,
        {},
        {"core": None, "content": [], "metadata": "x", "nine_turns": 7, "context": None, "status": []},
        {"rune_name": 12, "category": None},
        FULL_RESPONSE,
    ])
    def test_always_fully_shaped(self, normalizer, raw):
        record = normalizer.normalize(raw, _bundle(text="hello"))
        assert isinstance(record, NineFieldRecord)
        dumped = record.model_dump(by_alias=True)
        assert set(dumped["nine_turns"]) == {
            "1_origin", "2_form", "3_name", "4_meaning", "5_function",
            "6_action", "7_tone", "8_structure", "9_evolution",
        }

    @pytest.mark.parametrize("raw", [None, FULL_RESPONSE, {"core": {"intent": "x"}}])
    def test_idempotent(self, normalizer, raw):
        first = normalizer.normalize(raw, _bundle(text="Hello world", image_description="a lamp"))
        bundle = UnderstandingBundle.from_content("lamp.txt", first.content, first.metadata.language)
        second = normalizer.normalize(first.model_dump(by_alias=True), bundle)
        assert second == first
