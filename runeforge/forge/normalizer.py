"""
Schema Normalizer

Turns whatever the understanding call produced into a fully-shaped
NineFieldRecord. Total: never raises, never leaves a key missing.

Paths:
- Structured: raw is a dict with at least one known top-level key. Each field
  is coerced to its schema type; absent, empty or wrongly-typed fields are
  backfilled from the bundle, else the schema default. Raw values win, except
  content.text which prefers the extracted body text.
- Heuristic: nothing usable came back. Lexicon rules and keyword frequency
  fill the record and the fallback flag is raised.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from ..common.config import PipelineConfig
from ..common.gateway import UnderstandingBundle
from ..common.heuristics import extract_keywords, simple_text_understanding
from ..common.language import language_label
from ..common.llm_utils import ParsedResponse
from ..common.schemas import (
    Content,
    Core,
    DEFAULT_CATEGORY,
    DEFAULT_DIMENSION,
    DEFAULT_EMBEDDING_MODEL,
    DEFAULT_RUNE_NAME,
    DEFAULT_UPDATE_RULE,
    EvolutionTurn,
    Metadata,
    NineFieldRecord,
    NineTurns,
    RuneContext,
    RuneStatus,
    StructureTurn,
)

logger = logging.getLogger("runeforge.forge.normalizer")

KNOWN_KEYS = ("rune_name", "category", "core", "content", "metadata", "nine_turns", "context", "status")

DEFAULT_SOURCE = "modal fusion"
SUMMARY_CHARS = 180
PROMPT_SEED_CHARS = 120

RawUnderstanding = Union[ParsedResponse, Dict[str, Any], None]


@dataclass
class NormalizationResult:
    """Normalized record plus the rune-level identity it implies"""
    record: NineFieldRecord
    rune_name: str
    category: str
    structured: bool

    @property
    def degraded(self) -> bool:
        return not self.structured


# ============================================================================
# Coercion helpers
# ============================================================================

def _text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def _pick(raw_value: Any, *fallbacks: str) -> str:
    """First non-empty of the coerced raw value and the fallbacks."""
    value = _text(raw_value)
    if value:
        return value
    for candidate in fallbacks:
        if candidate:
            return candidate
    return ""


def _string_list(value: Any) -> List[str]:
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, (list, tuple)):
        return []
    items = [_text(v).strip() for v in value]
    return [v for v in items if v]


def _flag(value: Any, default: bool) -> bool:
    return value if isinstance(value, bool) else default


def _positive_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def _section(raw: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = raw.get(key)
    return value if isinstance(value, dict) else {}


def _unwrap(raw: RawUnderstanding) -> Optional[Dict[str, Any]]:
    """The raw dict when it is usable for the structured path, else None."""
    if isinstance(raw, ParsedResponse):
        raw = raw.data if raw.is_usable else None
    if not isinstance(raw, dict):
        return None
    if not any(key in raw for key in KNOWN_KEYS):
        return None
    return raw


def _modalities(content: Content) -> List[str]:
    return NineFieldRecord(content=content).present_modalities()


class SchemaNormalizer:
    """Normalizes raw understanding into the nine-field record."""

    def __init__(self, config: Optional[PipelineConfig] = None):
        self._keyword_count = (config or PipelineConfig()).fallback_keyword_count

    def normalize(self, raw: RawUnderstanding, bundle: UnderstandingBundle) -> NineFieldRecord:
        """Total function from raw understanding to a fully-shaped record."""
        return self.normalize_full(raw, bundle).record

    def normalize_full(self, raw: RawUnderstanding, bundle: UnderstandingBundle) -> NormalizationResult:
        data = _unwrap(raw)
        try:
            if data is not None:
                return self._structured(data, bundle)
        except Exception as e:
            logger.warning("Structured normalization failed, using heuristics: %s", e)
        if isinstance(raw, ParsedResponse) and raw.error:
            logger.info("Heuristic normalization (%s)", raw.error)
        return self._heuristic(bundle)

    # ------------------------------------------------------------------
    # Structured path
    # ------------------------------------------------------------------

    def _structured(self, raw: Dict[str, Any], bundle: UnderstandingBundle) -> NormalizationResult:
        rune_name = _pick(raw.get("rune_name"), bundle.name, DEFAULT_RUNE_NAME)
        category = _pick(raw.get("category"), DEFAULT_CATEGORY)

        raw_core = _section(raw, "core")
        core = Core(
            intent=_pick(raw_core.get("intent")),
            essence=_pick(raw_core.get("essence")),
            purpose=_pick(raw_core.get("purpose")),
        )

        raw_content = _section(raw, "content")
        content = Content(
            text=bundle.text or _text(raw_content.get("text")),
            image_description=_pick(raw_content.get("imageDesc"), bundle.image_description),
            audio_transcript=_pick(raw_content.get("audioText"), bundle.audio_transcript),
            video_summary=_pick(raw_content.get("videoSummary"), bundle.video_summary),
            video_frame_image=_pick(raw_content.get("videoFrame"), bundle.video_frame_image),
        )

        raw_meta = _section(raw, "metadata")
        summary = _pick(raw_meta.get("summary"))
        keywords = _string_list(raw_meta.get("keywords"))
        if not keywords:
            keywords = extract_keywords(summary or content.text, self._keyword_count)
        metadata = Metadata(
            language=_pick(raw_meta.get("language"), bundle.language)
            or language_label(bundle.combined_text()),
            emotion=_pick(raw_meta.get("emotion")),
            keywords=keywords,
            summary=summary,
            prompt_seed=_pick(raw_meta.get("prompt")),
            fallback_flag=_flag(raw_meta.get("_fallback"), False),
        )

        raw_turns = _section(raw, "nine_turns")
        raw_structure = _section(raw_turns, "8_structure")
        raw_evolution = _section(raw_turns, "9_evolution")
        turns = NineTurns(
            origin=_pick(raw_turns.get("1_origin")),
            form=_pick(raw_turns.get("2_form")),
            name=_pick(raw_turns.get("3_name"), bundle.name, rune_name),
            meaning=_pick(raw_turns.get("4_meaning")),
            function=_pick(raw_turns.get("5_function")),
            action=_pick(raw_turns.get("6_action")),
            tone=_pick(raw_turns.get("7_tone")),
            structure=StructureTurn(
                modalities=_modalities(content),
                embedding_model=_pick(raw_structure.get("embedding_type"), DEFAULT_EMBEDDING_MODEL),
                dimension=_positive_int(raw_structure.get("dimension"), DEFAULT_DIMENSION),
            ),
            evolution=EvolutionTurn(
                version=_pick(raw_evolution.get("version"), "1.0"),
                update_rule=_pick(raw_evolution.get("update_logic"), DEFAULT_UPDATE_RULE),
            ),
        )

        raw_context = _section(raw, "context")
        context = RuneContext(
            source=_pick(raw_context.get("source"), DEFAULT_SOURCE),
            references=_string_list(raw_context.get("references")),
            relations=_string_list(raw_context.get("relations")),
        )

        raw_status = _section(raw, "status")
        status = RuneStatus(
            parsed=_flag(raw_status.get("parsed"), True),
            processed=_flag(raw_status.get("processed"), True),
            validated=_flag(raw_status.get("validated"), True),
        )

        record = NineFieldRecord(
            core=core,
            content=content,
            metadata=metadata,
            turns=turns,
            context=context,
            status=status,
        )
        return NormalizationResult(record=record, rune_name=rune_name, category=category, structured=True)

    # ------------------------------------------------------------------
    # Heuristic path
    # ------------------------------------------------------------------

    def _heuristic(self, bundle: UnderstandingBundle) -> NormalizationResult:
        combined = bundle.combined_text()
        basic = simple_text_understanding(combined)
        keywords = extract_keywords(combined, self._keyword_count)
        rune_name = bundle.name or DEFAULT_RUNE_NAME

        content = Content(
            text=bundle.text,
            image_description=bundle.image_description,
            audio_transcript=bundle.audio_transcript,
            video_summary=bundle.video_summary,
            video_frame_image=bundle.video_frame_image,
        )
        record = NineFieldRecord(
            core=Core(intent=basic.intent, essence=basic.essence, purpose=basic.purpose),
            content=content,
            metadata=Metadata(
                language=bundle.language or language_label(combined),
                emotion=basic.emotion,
                keywords=keywords,
                summary=combined[:SUMMARY_CHARS],
                prompt_seed=combined[:PROMPT_SEED_CHARS],
                fallback_flag=True,
            ),
            turns=NineTurns(
                origin=basic.intent,
                form=keywords[0] if keywords else "symbol",
                name=rune_name,
                meaning="multimodal semantic synthesis",
                function="spark and record meaning",
                action="triggered when a related topic comes up",
                tone=basic.emotion,
                structure=StructureTurn(modalities=_modalities(content)),
                evolution=EvolutionTurn(),
            ),
            context=RuneContext(source=DEFAULT_SOURCE),
            status=RuneStatus(parsed=True, processed=True, validated=False),
        )
        return NormalizationResult(
            record=record,
            rune_name=rune_name,
            category=DEFAULT_CATEGORY,
            structured=False,
        )
