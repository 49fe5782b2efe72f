"""
Rune Document Templates

Renders a Rune to its persisted JSON document and to the short text report
shown to the user after a run, and loads documents back into Runes.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .rune import Rune


REPORT_TEMPLATE = """Rune: {name}
ID: {id}
Category: {category}
Intent: {intent}
Essence: {essence}
Emotion: {emotion}
Keywords: {keywords}
Modalities: {modalities}
Vector: {dimension} dims
Fallback: {fallback}"""


def rune_to_document(rune: "Rune", file_names: Optional[Iterable[str]] = None) -> Dict[str, Any]:
    """Build the persisted document for a rune.

    The nine-field sections keep their wire names so a document can be fed
    back to the normalizer unchanged.
    """
    record = rune.nine_fields.model_dump(mode="json", by_alias=True)
    names = list(file_names or [])
    return {
        "id": rune.id,
        "name": rune.name,
        "rune_name": rune.name,
        "category": rune.category,
        "version": rune.version,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "created_at": rune.created_at.isoformat(),
        "modified_at": rune.modified_at.isoformat(),
        **record,
        "vector": list(rune.vector),
        "embedding": {"dimension": len(rune.vector)},
        "_fallback": rune.fallback,
        "files": {
            "fileCount": len(names),
            "originalFiles": names,
        },
    }


def rune_from_document(document: Dict[str, Any]) -> "Rune":
    """Rebuild a Rune from a persisted document."""
    from .rune import NineFieldRecord, Rune

    record = NineFieldRecord.model_validate({
        key: document[key]
        for key in ("core", "content", "metadata", "nine_turns", "context", "status")
        if key in document
    })
    kwargs: Dict[str, Any] = {
        "id": document["id"],
        "name": document.get("rune_name") or document.get("name", ""),
        "category": document.get("category", ""),
        "nine_fields": record,
        "vector": document.get("vector", []),
        "fallback": bool(document.get("_fallback", False)),
        "version": document.get("version", "1.0"),
    }
    for key in ("created_at", "modified_at"):
        if document.get(key):
            kwargs[key] = document[key]
    return Rune(**kwargs)


def render_report(rune: "Rune") -> str:
    """Render the user-visible summary of a generated rune."""
    record = rune.nine_fields
    return REPORT_TEMPLATE.format(
        name=rune.name,
        id=rune.id,
        category=rune.category,
        intent=record.core.intent or "(none)",
        essence=record.core.essence or "(none)",
        emotion=record.metadata.emotion or "(none)",
        keywords=", ".join(record.metadata.keywords) or "(none)",
        modalities=", ".join(record.turns.structure.modalities) or "(none)",
        dimension=len(rune.vector),
        fallback="yes" if rune.fallback else "no",
    )
