"""
Rune Schema

The nine-field record ("nine-turn structure") every rune conforms to.

Core principle: the record is always fully shaped. Unknown or failed fields are
empty strings or empty lists, never missing keys. Field aliases are the names
used on the wire (provider prompt/response) and in persisted documents.
"""

import random
import string
import time
from datetime import datetime, timezone
from typing import List

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_EMBEDDING_MODEL = "text-embedding-004"
DEFAULT_DIMENSION = 768
DEFAULT_UPDATE_RULE = "regenerate automatically when the rune's semantics change"
DEFAULT_CATEGORY = "uncategorized"
DEFAULT_RUNE_NAME = "untitled rune"

# Canonical order of modalities in turns.structure.modalities
MODALITIES = ("text", "image", "audio", "video")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _WireModel(BaseModel):
    """Accepts Python names or wire aliases; dump with by_alias=True for the wire."""
    model_config = ConfigDict(populate_by_name=True)


# ============================================================================
# Sections
# ============================================================================

class Core(_WireModel):
    """Symbolic meaning of the rune"""
    intent: str = ""
    essence: str = ""
    purpose: str = ""


class Content(_WireModel):
    """Raw modal artifacts gathered for the rune"""
    text: str = ""
    image_description: str = Field(default="", alias="imageDesc")
    audio_transcript: str = Field(default="", alias="audioText")
    video_summary: str = Field(default="", alias="videoSummary")
    video_frame_image: str = Field(default="", alias="videoFrame", description="Still frame as a data URL")


class Metadata(_WireModel):
    language: str = ""
    emotion: str = ""
    keywords: List[str] = Field(default_factory=list)
    summary: str = Field(default="", description="Text used as the fifth embedding source")
    prompt_seed: str = Field(default="", alias="prompt")
    fallback_flag: bool = Field(default=False, alias="_fallback")


class StructureTurn(_WireModel):
    """8th turn: multimodal mapping and vector information"""
    modalities: List[str] = Field(default_factory=list)
    embedding_model: str = Field(default=DEFAULT_EMBEDDING_MODEL, alias="embedding_type")
    dimension: int = DEFAULT_DIMENSION


class EvolutionTurn(_WireModel):
    """9th turn: self-update logic and versioning"""
    version: str = "1.0"
    update_rule: str = Field(default=DEFAULT_UPDATE_RULE, alias="update_logic")


class NineTurns(_WireModel):
    """Nine keyed slots describing the rune from origin to evolution"""
    origin: str = Field(default="", alias="1_origin")
    form: str = Field(default="", alias="2_form")
    name: str = Field(default="", alias="3_name")
    meaning: str = Field(default="", alias="4_meaning")
    function: str = Field(default="", alias="5_function")
    action: str = Field(default="", alias="6_action")
    tone: str = Field(default="", alias="7_tone")
    structure: StructureTurn = Field(default_factory=StructureTurn, alias="8_structure")
    evolution: EvolutionTurn = Field(default_factory=EvolutionTurn, alias="9_evolution")


class RuneContext(_WireModel):
    source: str = ""
    references: List[str] = Field(default_factory=list)
    relations: List[str] = Field(default_factory=list)


class RuneStatus(_WireModel):
    parsed: bool = False
    processed: bool = False
    validated: bool = False


class NineFieldRecord(_WireModel):
    """The structured record: core, content, metadata, turns, context, status"""
    core: Core = Field(default_factory=Core)
    content: Content = Field(default_factory=Content)
    metadata: Metadata = Field(default_factory=Metadata)
    turns: NineTurns = Field(default_factory=NineTurns, alias="nine_turns")
    context: RuneContext = Field(default_factory=RuneContext)
    status: RuneStatus = Field(default_factory=RuneStatus)

    def present_modalities(self) -> List[str]:
        """Modalities that actually produced non-empty content, in canonical order."""
        content = self.content
        present = {
            "text": bool(content.text),
            "image": bool(content.image_description or content.video_frame_image),
            "audio": bool(content.audio_transcript),
            "video": bool(content.video_summary),
        }
        return [m for m in MODALITIES if present[m]]


# ============================================================================
# Main Schema
# ============================================================================

class Rune(_WireModel):
    """
    The unit of work and persistence: one pipeline run over one input file.

    The id is fixed at creation; name, category, nine_fields and vector may be
    mutated in place until the rune is persisted.
    """
    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    id: str = Field(default_factory=lambda: generate_rune_id(), frozen=True)
    name: str = DEFAULT_RUNE_NAME
    category: str = DEFAULT_CATEGORY
    nine_fields: NineFieldRecord = Field(default_factory=NineFieldRecord, alias="nineFields")
    vector: List[float] = Field(default_factory=list)
    fallback: bool = False
    version: str = "1.0"
    created_at: datetime = Field(default_factory=_utcnow)
    modified_at: datetime = Field(default_factory=_utcnow)

    @property
    def dimension(self) -> int:
        return len(self.vector)

    def touch(self) -> None:
        """Record a modification time."""
        self.modified_at = _utcnow()


def generate_rune_id() -> str:
    """Generate a unique rune id: rune_<epoch ms>_<9 base36 chars>"""
    alphabet = string.digits + string.ascii_lowercase
    suffix = "".join(random.choice(alphabet) for _ in range(9))
    return f"rune_{int(time.time() * 1000)}_{suffix}"
