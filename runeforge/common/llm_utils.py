"""Shared utilities for parsing model responses into structured data."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ResponseKind(str, Enum):
    """How much structure could be recovered from a model response"""
    STRUCTURED = "structured"    # the whole response parsed as a JSON object
    RECOVERED = "recovered"      # a JSON object was sliced out of surrounding prose
    UNSTRUCTURED = "unstructured"


@dataclass
class ParsedResponse:
    """Result of interpreting a model response."""
    kind: ResponseKind
    data: Dict[str, Any] = field(default_factory=dict)
    raw: str = ""
    error: Optional[str] = None

    @property
    def is_usable(self) -> bool:
        return self.kind != ResponseKind.UNSTRUCTURED and bool(self.data)

    @classmethod
    def unstructured(cls, raw: str = "", error: Optional[str] = None) -> "ParsedResponse":
        return cls(kind=ResponseKind.UNSTRUCTURED, raw=raw, error=error)


def _strip_code_fences(text: str) -> str:
    if text.startswith("```"):
        lines = text.split("\n")
        lines = [l for l in lines if not l.strip().startswith("```")]
        text = "\n".join(lines)
    return text


def _loads_object(text: str) -> Optional[dict]:
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None
    return value if isinstance(value, dict) else None


def parse_structured(raw: str) -> ParsedResponse:
    """Parse a JSON object from a model response.

    Tries in order:
    1. Strip markdown code fences, then json.loads  -> STRUCTURED
    2. Slice between the first '{' and the last '}' -> RECOVERED
    3. Give up                                      -> UNSTRUCTURED
    """
    if not raw or not raw.strip():
        return ParsedResponse.unstructured(raw or "", "empty response")

    text = _strip_code_fences(raw.strip())
    data = _loads_object(text)
    if data is not None:
        return ParsedResponse(kind=ResponseKind.STRUCTURED, data=data, raw=raw)

    start = raw.find("{")
    end = raw.rfind("}") + 1
    if start >= 0 and end > start:
        data = _loads_object(raw[start:end])
        if data is not None:
            return ParsedResponse(kind=ResponseKind.RECOVERED, data=data, raw=raw)

    return ParsedResponse.unstructured(raw, "no JSON object in response")
