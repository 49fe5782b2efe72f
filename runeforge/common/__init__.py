"""
RuneForge Common Module

Shared infrastructure for the forge pipeline and the proxy.
"""

from .config import RuneForgeConfig, load_config
from .errors import RuneForgeError
from .gateway import (
    UnderstandingGateway,
    UnderstandingBundle,
    TranscriptionOptions,
    RemoteProvider,
    HeuristicFallback,
    build_gateway,
)
from .llm_utils import ParsedResponse, ResponseKind

__all__ = [
    "RuneForgeConfig",
    "load_config",
    "RuneForgeError",
    "UnderstandingGateway",
    "UnderstandingBundle",
    "TranscriptionOptions",
    "RemoteProvider",
    "HeuristicFallback",
    "build_gateway",
    "ParsedResponse",
    "ResponseKind",
]
