"""
Vector Fuser

Embeds each textual source of a record and averages the results into one
vector. When nothing could be embedded the rune still gets a vector: a
constant placeholder of the default dimension.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Tuple

import numpy as np

from ..common.gateway import UnderstandingGateway
from ..common.schemas import DEFAULT_DIMENSION, NineFieldRecord

logger = logging.getLogger("runeforge.forge.vector_fuser")

PLACEHOLDER_VALUE = 0.1


@dataclass
class FusionResult:
    vector: List[float]
    used_any_real_embedding: bool
    sources_embedded: List[str] = field(default_factory=list)

    @property
    def dimension(self) -> int:
        return len(self.vector)


def embedding_sources(record: NineFieldRecord) -> List[Tuple[str, str]]:
    """(source name, text) pairs in fusion order, blank texts dropped."""
    candidates = [
        ("text", record.content.text),
        ("image_description", record.content.image_description),
        ("audio_transcript", record.content.audio_transcript),
        ("video_summary", record.content.video_summary),
        ("summary", record.metadata.summary),
    ]
    return [(name, text) for name, text in candidates if text and text.strip()]


def mean_vector(vectors: List[List[float]]) -> List[float]:
    """Element-wise arithmetic mean in float64."""
    matrix = np.asarray(vectors, dtype=np.float64)
    return matrix.mean(axis=0).tolist()


class VectorFuser:
    """
    Fuses per-source embeddings by arithmetic mean.

    Args:
        gateway: Source of embeddings
        default_dimension: Placeholder length when nothing was embedded
        concurrent: Issue the embedding calls together instead of one by one
    """

    def __init__(
        self,
        gateway: UnderstandingGateway,
        default_dimension: int = DEFAULT_DIMENSION,
        concurrent: bool = False,
    ):
        self._gateway = gateway
        self._default_dimension = default_dimension
        self._concurrent = concurrent

    async def _embed(self, name: str, text: str) -> List[float]:
        try:
            vector = await self._gateway.embed_text(text)
        except Exception as e:
            logger.warning("Embedding of %s failed: %s", name, e)
            return []
        if not vector:
            logger.warning("Embedding of %s returned nothing", name)
        return vector

    async def fuse(self, record: NineFieldRecord) -> FusionResult:
        sources = embedding_sources(record)

        if self._concurrent:
            vectors = await asyncio.gather(*(self._embed(n, t) for n, t in sources))
        else:
            vectors = []
            for name, text in sources:
                vectors.append(await self._embed(name, text))

        accepted: List[List[float]] = []
        embedded: List[str] = []
        for (name, _), vector in zip(sources, vectors):
            if not vector:
                continue
            if accepted and len(vector) != len(accepted[0]):
                logger.warning(
                    "Skipping %s embedding: dimension %d != %d", name, len(vector), len(accepted[0])
                )
                continue
            accepted.append(vector)
            embedded.append(name)

        if not accepted:
            logger.warning(
                "No embeddings available, using %d-dim placeholder", self._default_dimension
            )
            return FusionResult(
                vector=[PLACEHOLDER_VALUE] * self._default_dimension,
                used_any_real_embedding=False,
            )

        logger.info("Fused %d embeddings (%s)", len(accepted), ", ".join(embedded))
        return FusionResult(
            vector=mean_vector(accepted),
            used_any_real_embedding=True,
            sources_embedded=embedded,
        )
