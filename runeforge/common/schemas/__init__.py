"""
Rune Schemas

Nine-field rune record and its persisted/report renderings.
"""

from .rune import (
    Rune,
    NineFieldRecord,
    Core,
    Content,
    Metadata,
    NineTurns,
    StructureTurn,
    EvolutionTurn,
    RuneContext,
    RuneStatus,
    MODALITIES,
    DEFAULT_CATEGORY,
    DEFAULT_DIMENSION,
    DEFAULT_EMBEDDING_MODEL,
    DEFAULT_RUNE_NAME,
    DEFAULT_UPDATE_RULE,
    generate_rune_id,
)
from .templates import rune_to_document, rune_from_document, render_report, REPORT_TEMPLATE

__all__ = [
    "Rune",
    "NineFieldRecord",
    "Core",
    "Content",
    "Metadata",
    "NineTurns",
    "StructureTurn",
    "EvolutionTurn",
    "RuneContext",
    "RuneStatus",
    "MODALITIES",
    "DEFAULT_CATEGORY",
    "DEFAULT_DIMENSION",
    "DEFAULT_EMBEDDING_MODEL",
    "DEFAULT_RUNE_NAME",
    "DEFAULT_UPDATE_RULE",
    "generate_rune_id",
    "rune_to_document",
    "rune_from_document",
    "render_report",
    "REPORT_TEMPLATE",
]
