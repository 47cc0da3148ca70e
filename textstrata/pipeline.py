"""Main pipeline: raw sources to aligned multi-level bundles."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

from tqdm import tqdm

from .alignment import align_bundle
from .bundle import Bundle
from .config import PreprocessConfig
from .data.bundle_io import save_bundle
from .data.readers import (
    Source,
    as_file_path,
    chunk_documents,
    iter_sources,
    load_sources,
    stream_file_chunks,
)
from .merge import merge_bundles
from .models import TextChunk, Vocabulary
from .processing.segmentation import Segmenter
from .processing.vocabulary import build_vocabulary, count_token_frequencies
from .store import assemble_bundle

logger = logging.getLogger(__name__)

Sources = Union[Source, Iterable[Source]]


def _reusable(sources: Sources) -> Union[list, tuple]:
    """Sources as a sequence that can be iterated more than once."""
    if isinstance(sources, (str, Path)):
        return [sources]
    if isinstance(sources, (list, tuple)):
        return sources
    return list(sources)


class PreprocessPipeline:
    """
    Pipeline turning raw text into a :class:`Bundle`.

    Steps per batch of text: clean, split into paragraphs and sentences,
    tokenize, map tokens to ids, record offsets, synthesize placeholder
    levels and build alignments. ``run`` processes everything at once;
    ``iter_chunks`` yields one bundle per bounded chunk and
    ``run_streaming`` folds those chunk bundles into one.
    """

    def __init__(self, config: Optional[PreprocessConfig] = None):
        """
        Initialize the pipeline.

        Args:
            config: Pipeline configuration (defaults when omitted).
        """
        self.config = config or PreprocessConfig()
        self.segmenter = Segmenter(self.config)

    @property
    def preserve_paragraphs(self) -> bool:
        cleaning = self.config.cleaning
        return cleaning.preserve_newlines or not cleaning.normalise_whitespace

    def _bundle(
        self,
        chunks: Iterable[Union[TextChunk, str]],
        vocabulary: Optional[Vocabulary],
        chunk_index: Optional[int] = None,
    ) -> Bundle:
        result = self.segmenter.segment(chunks)
        if vocabulary is None:
            vocabulary = build_vocabulary(result.tokens, self.config)
        bundle = assemble_bundle(
            result.tokens,
            result.offsets,
            vocabulary,
            self.config,
            open_levels=result.open_levels if chunk_index is not None else (),
            chunk_index=chunk_index,
        )
        return align_bundle(bundle)

    def run(self, sources: Sources, vocabulary: Optional[Vocabulary] = None) -> Bundle:
        """
        Process every source in one pass.

        Args:
            sources: File paths, raw strings, or a mix.
            vocabulary: Vocabulary to reuse; built from the corpus when omitted.

        Returns:
            Bundle with the token level, placeholder levels and alignments.
        """
        logger.info("Starting preprocessing")
        docs = load_sources(sources)
        bundle = self._bundle(docs, vocabulary)
        logger.info(f"Preprocessing complete. {bundle!r}")
        return bundle

    def iter_batches(self, sources: Sources) -> Iterator[list[TextChunk]]:
        """
        Cut sources into bounded batches of chunks.

        With ``streaming.read_files_in_blocks`` file sources are read in
        ``chunk_bytes`` blocks, one block per batch; otherwise documents are
        grouped by ``chunk_tokens``.
        """
        streaming = self.config.streaming
        if not streaming.read_files_in_blocks:
            yield from chunk_documents(
                iter_sources(sources), streaming.chunk_tokens, self.preserve_paragraphs
            )
            return

        for source in _reusable(sources):
            path = as_file_path(source)
            if path is None:
                yield from chunk_documents(
                    [source], streaming.chunk_tokens, self.preserve_paragraphs
                )
                continue
            for chunk in stream_file_chunks(
                path, streaming.chunk_bytes, self.preserve_paragraphs
            ):
                yield [chunk]

    def build_vocabulary(self, sources: Sources) -> Vocabulary:
        """Constant-memory counting pass over the chunk stream."""
        counts = count_token_frequencies(
            self.iter_batches(sources),
            self.config,
            show_progress=self.config.streaming.show_progress,
        )
        return build_vocabulary(counts, self.config)

    def iter_chunks(
        self, sources: Sources, vocabulary: Optional[Vocabulary] = None
    ) -> Iterator[Bundle]:
        """
        Yield one bundle per chunk, all sharing one vocabulary instance.

        When ``vocabulary`` is omitted a counting pass over the sources
        builds it first. Abandoning the generator closes any open file.

        Args:
            sources: File paths, raw strings, or a mix.
            vocabulary: Vocabulary to reuse.

        Yields:
            Chunk bundles tagged with ``chunk_index`` and ``open_levels``.
        """
        sources = _reusable(sources)
        if vocabulary is None:
            vocabulary = self.build_vocabulary(sources)

        for index, batch in enumerate(self.iter_batches(sources)):
            bundle = self._bundle(batch, vocabulary, chunk_index=index)
            logger.debug(
                f"Chunk {index}: {len(batch)} piece(s), "
                f"open levels: {sorted(bundle.metadata.open_levels)}"
            )
            yield bundle

    def run_streaming(
        self, sources: Sources, vocabulary: Optional[Vocabulary] = None
    ) -> Bundle:
        """
        Process sources chunk by chunk and merge the chunk bundles.

        Returns:
            Merged bundle, equal to :meth:`run` on the same sources.
        """
        logger.info(
            f"Starting streaming preprocessing (chunk_tokens={self.config.streaming.chunk_tokens})"
        )
        chunks = tqdm(
            self.iter_chunks(sources, vocabulary),
            desc="Processing chunks",
            unit="chunk",
            disable=not self.config.streaming.show_progress,
        )
        bundle = merge_bundles(chunks)
        logger.info(f"Streaming preprocessing complete. {bundle!r}")
        return bundle


def preprocess_corpus(
    sources: Sources,
    config: Optional[PreprocessConfig] = None,
    *,
    vocabulary: Optional[Vocabulary] = None,
    save_to: Optional[Union[str, Path]] = None,
) -> Bundle:
    """
    Convenience function for one-shot preprocessing.

    Args:
        sources: File paths, raw strings, or a mix.
        config: Pipeline configuration.
        vocabulary: Vocabulary to reuse.
        save_to: Optional path to save the bundle to.

    Returns:
        The bundle.
    """
    bundle = PreprocessPipeline(config).run(sources, vocabulary)
    if save_to is not None:
        save_bundle(bundle, save_to)
    return bundle


def preprocess_corpus_streaming(
    sources: Sources,
    config: Optional[PreprocessConfig] = None,
    *,
    vocabulary: Optional[Vocabulary] = None,
) -> Iterator[Bundle]:
    """Generator of chunk bundles sharing one vocabulary."""
    return PreprocessPipeline(config).iter_chunks(sources, vocabulary)


def preprocess_corpus_streaming_chunks(
    sources: Sources,
    config: Optional[PreprocessConfig] = None,
    *,
    vocabulary: Optional[Vocabulary] = None,
) -> list[Bundle]:
    """All chunk bundles, collected into a list."""
    return list(preprocess_corpus_streaming(sources, config, vocabulary=vocabulary))


def preprocess_corpus_streaming_full(
    sources: Sources,
    config: Optional[PreprocessConfig] = None,
    *,
    vocabulary: Optional[Vocabulary] = None,
    save_to: Optional[Union[str, Path]] = None,
) -> Bundle:
    """Stream the sources and merge the chunk bundles into one bundle."""
    bundle = PreprocessPipeline(config).run_streaming(sources, vocabulary)
    if save_to is not None:
        save_bundle(bundle, save_to)
    return bundle


@dataclass(frozen=True)
class Preprocessor:
    """Frozen configuration and vocabulary for encoding new text consistently."""

    config: PreprocessConfig
    vocabulary: Vocabulary

    def encode(self, sources: Sources) -> Bundle:
        """
        Clean, tokenize and segment new text against the fixed vocabulary.

        Tokens missing from the vocabulary map to ``unk``.
        """
        return PreprocessPipeline(self.config).run(sources, self.vocabulary)


def build_preprocessor(
    sources: Sources, config: Optional[PreprocessConfig] = None
) -> tuple[Preprocessor, Bundle]:
    """
    Fit a preprocessor on training sources.

    Returns:
        ``(preprocessor, bundle)`` where ``bundle`` is the processed training corpus.
    """
    pipeline = PreprocessPipeline(config)
    bundle = pipeline.run(sources)
    vocabulary = bundle.get_vocabulary(pipeline.config.token_level)
    return Preprocessor(pipeline.config, vocabulary), bundle
