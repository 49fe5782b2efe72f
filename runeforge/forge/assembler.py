"""
Rune Assembler

Orchestrates one input file through the pipeline:

    CREATED -> MODALITY_EXTRACTED -> UNDERSTOOD -> VECTOR_FUSED -> PERSISTED

Stages run strictly in order. A failing stage degrades the rune (fallback
flag) instead of aborting; an unexpected exception stops progression and the
partial rune is returned with the last state reached. assemble() never raises.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..common.gateway import UnderstandingBundle, UnderstandingGateway
from ..common.schemas import Content, NineFieldRecord, Rune
from .extractor import ExtractionResult, InputFile, ModalityExtractor, ModalityKind
from .normalizer import SchemaNormalizer
from .persistence import PersistenceBackend, SaveResult
from .vector_fuser import VectorFuser

logger = logging.getLogger("runeforge.forge.assembler")


class PipelineState(str, Enum):
    CREATED = "created"
    MODALITY_EXTRACTED = "modality_extracted"
    UNDERSTOOD = "understood"
    VECTOR_FUSED = "vector_fused"
    PERSISTED = "persisted"


@dataclass
class AssemblyResult:
    rune: Rune
    state: PipelineState
    save_result: Optional[SaveResult] = None
    degraded_stages: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def saved(self) -> bool:
        return self.save_result is not None and self.save_result.success


def _merge_content(rune: Rune, extraction: ExtractionResult) -> None:
    content = rune.nine_fields.content
    if extraction.text_candidate:
        content.text = extraction.text_candidate
    if extraction.image_description:
        content.image_description = extraction.image_description
    if extraction.audio_transcript:
        content.audio_transcript = extraction.audio_transcript
    if extraction.video_summary:
        content.video_summary = extraction.video_summary
    if extraction.still_frame:
        content.video_frame_image = extraction.still_frame
    if extraction.kind == ModalityKind.TEXT and extraction.language:
        rune.nine_fields.metadata.language = extraction.language


def _keep_gathered(normalized: Content, gathered: Content) -> Content:
    """Normalized content, with gathered values filling the fields it left blank."""
    merged = normalized.model_copy()
    for name in Content.model_fields:
        if not getattr(merged, name) and getattr(gathered, name):
            setattr(merged, name, getattr(gathered, name))
    return merged


class RuneAssembler:
    """
    Builds one Rune from one input file.

    All collaborators are injected:
        assembler = RuneAssembler(gateway, extractor, normalizer, fuser, persistence)
        result = await assembler.assemble(input_file)
    """

    def __init__(
        self,
        gateway: UnderstandingGateway,
        extractor: ModalityExtractor,
        normalizer: SchemaNormalizer,
        fuser: VectorFuser,
        persistence: PersistenceBackend,
    ):
        self._gateway = gateway
        self._extractor = extractor
        self._normalizer = normalizer
        self._fuser = fuser
        self._persistence = persistence

    async def assemble(self, file: InputFile) -> AssemblyResult:
        rune = Rune(name=file.name, nine_fields=NineFieldRecord())
        result = AssemblyResult(rune=rune, state=PipelineState.CREATED)
        logger.info("Assembling rune %s from %s", rune.id, file.name)

        try:
            await self._run(file, result)
        except Exception as e:
            logger.error("Pipeline stopped at %s: %s", result.state.value, e)
            rune.fallback = True
            rune.nine_fields.metadata.fallback_flag = True
            result.error = str(e)
        return result

    async def _run(self, file: InputFile, result: AssemblyResult) -> None:
        rune = result.rune

        # Stage 1: modality extraction
        extraction = await self._extractor.extract(file)
        _merge_content(rune, extraction)
        if extraction.fallback:
            result.degraded_stages.append(PipelineState.MODALITY_EXTRACTED.value)
        result.state = PipelineState.MODALITY_EXTRACTED

        # Stage 2: composite understanding
        bundle = UnderstandingBundle.from_content(
            rune.name, rune.nine_fields.content, rune.nine_fields.metadata.language
        )
        try:
            raw = await self._gateway.interpret_bundle(bundle)
        except Exception as e:
            logger.warning("Understanding call raised: %s", e)
            raw = None
        normalized = self._normalizer.normalize_full(raw, bundle)
        gathered = rune.nine_fields.content
        record = normalized.record.model_copy(
            update={"content": _keep_gathered(normalized.record.content, gathered)}
        )
        record.turns.structure.modalities = record.present_modalities()
        rune.name = normalized.rune_name
        rune.category = normalized.category
        rune.nine_fields = record
        understanding_degraded = normalized.degraded or record.metadata.fallback_flag
        if understanding_degraded:
            result.degraded_stages.append(PipelineState.UNDERSTOOD.value)
        result.state = PipelineState.UNDERSTOOD

        # Stage 3: vector fusion
        fusion = await self._fuser.fuse(rune.nine_fields)
        rune.vector = fusion.vector
        if not fusion.used_any_real_embedding:
            result.degraded_stages.append(PipelineState.VECTOR_FUSED.value)
        rune.fallback = extraction.fallback or understanding_degraded or not fusion.used_any_real_embedding
        rune.nine_fields.metadata.fallback_flag = rune.fallback
        if fusion.used_any_real_embedding:
            rune.nine_fields.turns.structure.dimension = len(fusion.vector)
        rune.touch()
        result.state = PipelineState.VECTOR_FUSED
        logger.info(
            "Rune %s fused (%d dims, fallback=%s)", rune.id, len(rune.vector), rune.fallback
        )

        # Stage 4: persistence
        try:
            result.save_result = await self._persistence.save(rune, [file])
        except Exception as e:
            logger.error("Failed to persist rune %s: %s", rune.id, e)
            result.save_result = SaveResult(success=False, id=rune.id, error=str(e))
            return
        if not result.save_result.success:
            logger.error("Backend did not persist rune %s: %s", rune.id, result.save_result.error)
            return
        result.state = PipelineState.PERSISTED
