"""Multi-granularity, index-aligned token representation for text corpora."""

__version__ = "0.1.0"

from .alignment import align_bundle, align_offsets, build_alignments, ensure_lower_levels
from .bundle import Bundle
from .config import PreprocessConfig, get_default_config, load_config
from .data import TableWriter, load_bundle, save_bundle
from .errors import (
    LevelLookupError,
    MergeError,
    PreconditionError,
    StructuralInvariantError,
    TextStrataError,
)
from .merge import StreamingMerger, merge_bundles, merge_offsets
from .models import Corpus, CrossMap, LevelBundle, PipelineMetadata, TextChunk, Vocabulary
from .pipeline import (
    PreprocessPipeline,
    Preprocessor,
    build_preprocessor,
    preprocess_corpus,
    preprocess_corpus_streaming,
    preprocess_corpus_streaming_chunks,
    preprocess_corpus_streaming_full,
)
from .store import assemble_bundle, build_corpus

__all__ = [
    "align_bundle",
    "align_offsets",
    "build_alignments",
    "ensure_lower_levels",
    "Bundle",
    "PreprocessConfig",
    "get_default_config",
    "load_config",
    "TableWriter",
    "load_bundle",
    "save_bundle",
    "LevelLookupError",
    "MergeError",
    "PreconditionError",
    "StructuralInvariantError",
    "TextStrataError",
    "StreamingMerger",
    "merge_bundles",
    "merge_offsets",
    "Corpus",
    "CrossMap",
    "LevelBundle",
    "PipelineMetadata",
    "TextChunk",
    "Vocabulary",
    "PreprocessPipeline",
    "Preprocessor",
    "build_preprocessor",
    "preprocess_corpus",
    "preprocess_corpus_streaming",
    "preprocess_corpus_streaming_chunks",
    "preprocess_corpus_streaming_full",
    "assemble_bundle",
    "build_corpus",
]
