"""
RuneForge Proxy

HTTP proxy that forwards understanding requests to Google Gemini and OpenAI.
"""

from .providers import ForwardResponse, GeminiForwarder, OpenAIForwarder, messages_to_contents

__all__ = [
    "ForwardResponse",
    "GeminiForwarder",
    "OpenAIForwarder",
    "messages_to_contents",
]
