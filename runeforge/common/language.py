"""
Language Detection

Character-class language labelling for rune text. No network call and no
statistical model: CJK ideographs mean Chinese, Latin letters without CJK mean
English, anything else is unknown.
"""

import re

# CJK Unified Ideographs and Extension A
_CJK_RE = re.compile(r'[\u3400-\u4DBF\u4E00-\u9FFF]')
_LATIN_RE = re.compile(r'[A-Za-z]')

CHINESE = "Chinese"
ENGLISH = "English"
UNKNOWN = "unknown"


def has_cjk(text: str) -> bool:
    """True if the text contains at least one CJK ideograph."""
    return bool(text) and _CJK_RE.search(text) is not None


def language_label(text: str) -> str:
    """Label the language of input text from its character classes.

    Args:
        text: Input text

    Returns:
        "Chinese", "English" or "unknown"; CJK wins over Latin when both are present
    """
    text = text or ""
    if has_cjk(text):
        return CHINESE
    if _LATIN_RE.search(text):
        return ENGLISH
    return UNKNOWN
