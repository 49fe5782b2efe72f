"""
Rule-based Understanding

Deterministic stand-ins for the model when it is unavailable: keyword
extraction by frequency and a small lexicon classifier for sentiment and topic.
Lexicons carry English and Chinese terms since rune text may be either.
"""

import re
from collections import Counter
from dataclasses import dataclass
from typing import List

POSITIVE_TERMS = [
    "good", "great", "excellent", "success", "happy", "beautiful", "love", "like", "wonderful",
    "好", "棒", "优秀", "成功", "快乐", "美好", "喜欢", "爱", "赞",
]
NEGATIVE_TERMS = [
    "bad", "poor", "fail", "failure", "sad", "pain", "hate", "awful", "terrible",
    "坏", "差", "失败", "悲伤", "痛苦", "讨厌", "恨", "糟",
]
TECHNICAL_TERMS = [
    "ai", "algorithm", "code", "program", "technology", "data", "model", "system",
    "compute", "network",
    "算法", "代码", "程序", "技术", "数据", "模型", "系统", "计算", "网络",
]
ARTISTIC_TERMS = [
    "art", "aesthetic", "design", "creative", "inspiration", "color", "colour", "picture",
    "music", "poem", "poetry", "painting",
    "艺术", "美学", "设计", "创意", "灵感", "色彩", "画面", "音乐", "诗歌", "美术",
]

# Anything that is neither a word character, whitespace nor a CJK ideograph
_NON_WORD_RE = re.compile(r'[^\u4e00-\u9fff\w\s]')
_WORD_RE = re.compile(r'[a-z0-9]+')


@dataclass(frozen=True)
class BasicUnderstanding:
    """Lexicon-derived replacement for the model's core/emotion fields"""
    intent: str
    essence: str
    purpose: str
    emotion: str


def extract_keywords(text: str, max_keywords: int = 8) -> List[str]:
    """Top-N tokens by frequency; ties keep first-occurrence order.

    Lower-cases, replaces non-word/non-CJK characters with spaces, splits on
    whitespace and drops tokens of length <= 1.
    """
    words = _NON_WORD_RE.sub(" ", str(text or "").lower()).split()
    counts = Counter(w for w in words if len(w) > 1)
    return [w for w, _ in counts.most_common(max_keywords)]


def _mentions(plain: str, terms: List[str]) -> bool:
    lowered = plain.lower()
    tokens = set(_WORD_RE.findall(lowered))
    for term in terms:
        if term.isascii():
            if term in tokens:
                return True
        elif term in plain:
            return True
    return False


def simple_text_understanding(text: str) -> BasicUnderstanding:
    """Classify sentiment and topic from keyword lexicons."""
    plain = (text or "").strip()
    if not plain:
        return BasicUnderstanding(
            intent="explore the unknown",
            essence="empty content",
            purpose="placeholder",
            emotion="neutral",
        )

    has_pos = _mentions(plain, POSITIVE_TERMS)
    has_neg = _mentions(plain, NEGATIVE_TERMS)
    emotion = "neutral"
    if has_pos and not has_neg:
        emotion = "positive"
    elif has_neg and not has_pos:
        emotion = "negative"

    essence = "text content"
    if _mentions(plain, TECHNICAL_TERMS):
        essence = "technical content"
    elif _mentions(plain, ARTISTIC_TERMS):
        essence = "artistic content"

    return BasicUnderstanding(
        intent="express and share",
        essence=essence,
        purpose="convey information or emotion",
        emotion=emotion,
    )
