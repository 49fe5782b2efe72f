"""
RuneForge

Multimodal rune generation: one input file (image, audio, video or text) is
understood by a generative-AI provider, normalized into the nine-field rune
record and fused into a single embedding vector.

Philosophy:
- Degrade, don't abort: every stage has a heuristic or placeholder fallback
- The nine-field record is always fully shaped
- The fallback flag records every degradation for later auditing
- Provider keys stay behind the proxy

Usage:
    from runeforge.common import load_config, build_gateway
    from runeforge.common.schemas import Rune, NineFieldRecord
    from runeforge.forge import RuneAssembler, load_input_file
"""

__version__ = "0.1.0"
