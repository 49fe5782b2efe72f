"""
RuneForge Pipeline

Modality extraction, normalization, vector fusion, assembly and persistence
of runes.
"""

from .assembler import RuneAssembler, AssemblyResult, PipelineState
from .extractor import ModalityExtractor, ExtractionResult, InputFile, load_input_file
from .frames import FrameExtractor, FFmpegFrameExtractor
from .normalizer import SchemaNormalizer
from .persistence import (
    PersistenceBackend,
    FilesystemBackend,
    ExportBackend,
    SaveResult,
    select_backend,
    load_rune,
)
from .vector_fuser import VectorFuser, FusionResult

__all__ = [
    "RuneAssembler",
    "AssemblyResult",
    "PipelineState",
    "ModalityExtractor",
    "ExtractionResult",
    "InputFile",
    "load_input_file",
    "FrameExtractor",
    "FFmpegFrameExtractor",
    "SchemaNormalizer",
    "PersistenceBackend",
    "FilesystemBackend",
    "ExportBackend",
    "SaveResult",
    "select_backend",
    "load_rune",
    "VectorFuser",
    "FusionResult",
]
