"""Streaming merge: fold per-chunk bundles into one global bundle."""

import logging
from typing import Iterable, MutableSequence, Optional, Sequence

import numpy as np

from . import alignment
from .bundle import Bundle
from .config import PreprocessConfig
from .errors import MergeError, PreconditionError, StructuralInvariantError
from .models import LEVELS, Corpus, LevelBundle, PipelineMetadata, Vocabulary
from .offsets import OFFSET_DTYPE, normalize_offsets

logger = logging.getLogger(__name__)


def merge_offsets(
    merged: MutableSequence[int],
    incoming: Optional[Sequence[int]],
    shift: int,
    n_incoming: int,
    *,
    continues: bool = False,
    level: str = "?",
) -> None:
    """
    Append one chunk's offset vector to an accumulated vector, in place.

    Args:
        merged: Accumulated vector; ends with the sentinel pushed by the
            previous call, or is empty before the first chunk.
        incoming: The chunk's vector in any accepted style. Empty or None
            means the chunk contributed no starts at this level.
        shift: Number of tokens accumulated before this chunk.
        n_incoming: Number of tokens in this chunk.
        continues: True when the accumulated vector's last unit carries on
            into this chunk, so the chunk's first start is not a new unit.
        level: Level name used in error messages.

    Raises:
        StructuralInvariantError: If the accumulated sentinel does not match
            ``shift``, or the incoming vector is malformed.
    """
    if merged:
        stale = merged[-1]
        if stale not in (shift, shift + 1):
            raise StructuralInvariantError(
                f"Merged {level} offsets end with {stale}, expected sentinel "
                f"{shift + 1} (or {shift})"
            )
        merged.pop()

    values = normalize_offsets(incoming, n_incoming, level)
    starts = values[:-1] if len(values) else values
    if continues and merged and len(starts) and starts[0] == 1:
        starts = starts[1:]

    merged.extend((starts + shift).tolist())
    merged.append(shift + n_incoming + 1)


class _LevelAccumulator:
    """Token ids and offset vectors of one level, accumulated across chunks."""

    def __init__(self, level: str, corpus: Corpus, vocabulary: Vocabulary):
        self.level = level
        self.vocabulary = vocabulary
        self.dtype = corpus.token_ids.dtype
        self.fields = corpus.recorded_levels
        self.id_parts: list[np.ndarray] = []
        self.n_tokens = 0
        self.offsets: dict[str, list[int]] = {field: [] for field in self.fields}

    def add(self, corpus: Corpus, open_levels: frozenset, chunk_index: int) -> None:
        if corpus.recorded_levels != self.fields:
            raise MergeError(
                f"Chunk {chunk_index} records {self.level} offsets for "
                f"{list(corpus.recorded_levels)}, earlier chunks for {list(self.fields)}"
            )
        shift = self.n_tokens
        n = corpus.n_tokens
        self.id_parts.append(corpus.token_ids)
        self.n_tokens += n

        for field in self.fields:
            merge_offsets(
                self.offsets[field],
                corpus.offsets(field),
                shift,
                n,
                continues=field in open_levels,
                level=field,
            )

    def finish(self) -> LevelBundle:
        if self.id_parts:
            token_ids = np.concatenate(self.id_parts).astype(self.dtype, copy=False)
        else:
            token_ids = np.empty(0, dtype=self.dtype)
        self.id_parts = []
        fields = {
            f"{field}_offsets": np.array(values, dtype=OFFSET_DTYPE)
            for field, values in self.offsets.items()
        }
        return LevelBundle(Corpus(token_ids=token_ids, **fields), self.vocabulary)


class StreamingMerger:
    """
    Accumulator folding chunk bundles into one bundle.

    The first chunk fixes the configuration, the vocabulary of every level
    and the set of levels. Every later chunk must share the configuration
    (equal), the vocabularies (same instances) and the level set.
    Placeholder levels and alignments of chunks are not merged; they are
    rebuilt on the merged corpora by :meth:`finish`.

    Example:
        merger = StreamingMerger()
        for chunk in pipeline.iter_chunks(sources):
            merger.add(chunk)
        bundle = merger.finish()
    """

    def __init__(self, build_alignments: bool = True):
        """
        Initialize the merger.

        Args:
            build_alignments: Build the canonical alignments on the merged
                bundle even when the chunks carried none.
        """
        self.build_alignments = build_alignments
        self.config: Optional[PreprocessConfig] = None
        self.n_chunks = 0
        self._levels: dict[str, _LevelAccumulator] = {}
        self._open_levels: frozenset = frozenset()
        self._placeholders: set[str] = set()
        self._pairs: list[tuple[str, str]] = []

    def add(self, bundle: Bundle) -> None:
        """
        Fold one chunk bundle into the accumulator.

        Raises:
            MergeError: If the chunk's configuration, vocabularies or level
                set differ from the first chunk's.
        """
        real_levels = bundle.real_levels
        if self.n_chunks == 0:
            self.config = bundle.metadata.configuration
            for level in real_levels:
                level_bundle = bundle.get_level(level)
                self._levels[level] = _LevelAccumulator(
                    level, level_bundle.corpus, level_bundle.vocabulary
                )
        else:
            self._check_compatible(bundle, real_levels)

        for level in real_levels:
            self._levels[level].add(bundle.get_corpus(level), self._open_levels, self.n_chunks)

        self._open_levels = bundle.metadata.open_levels
        self._placeholders |= bundle.metadata.placeholder_levels
        for pair in bundle.alignments:
            if pair not in self._pairs:
                self._pairs.append(pair)

        self.n_chunks += 1
        logger.debug(
            f"Merged chunk {self.n_chunks}: "
            + ", ".join(f"{lvl}={acc.n_tokens} tokens" for lvl, acc in self._levels.items())
        )

    def _check_compatible(self, bundle: Bundle, real_levels: tuple[str, ...]) -> None:
        config = bundle.metadata.configuration
        if config != self.config:
            raise MergeError(
                f"Chunk {self.n_chunks} was built with a different configuration "
                f"than the first chunk"
            )
        if set(real_levels) != set(self._levels):
            raise MergeError(
                f"Chunk {self.n_chunks} has levels {sorted(real_levels)}, "
                f"expected {sorted(self._levels)}"
            )
        for level in real_levels:
            vocabulary = bundle.get_vocabulary(level)
            expected = self._levels[level].vocabulary
            if vocabulary is not expected:
                raise MergeError(
                    f"Chunk {self.n_chunks} {level} vocabulary is not the instance "
                    f"the first chunk used ({len(vocabulary)} vs {len(expected)} tokens)"
                )

    def finish(self) -> Bundle:
        """
        Build the merged bundle.

        Returns:
            Bundle with the merged levels, re-synthesized placeholder levels
            and rebuilt alignments.

        Raises:
            PreconditionError: If no chunk was added.
        """
        if self.n_chunks == 0:
            raise PreconditionError("No chunk bundles were added; nothing to merge")

        levels = {level: acc.finish() for level, acc in self._levels.items()}
        bundle = Bundle(levels=levels, metadata=PipelineMetadata(configuration=self.config))

        if self._placeholders:
            ordered = [lvl for lvl in LEVELS if lvl in self._placeholders]
            alignment.ensure_lower_levels(bundle, ordered)

        pairs = list(self._pairs)
        if self.build_alignments:
            pairs += [p for p in alignment.CANONICAL_PAIRS if p not in pairs]
        alignment.build_alignments(bundle, pairs)

        logger.info(
            f"Merged {self.n_chunks} chunk(s) into levels: "
            + ", ".join(f"{lvl} ({bundle.get_corpus(lvl).n_tokens} tokens)" for lvl in bundle)
        )
        return bundle


def merge_bundles(bundles: Iterable[Bundle], *, build_alignments: bool = True) -> Bundle:
    """
    Fold an iterator of chunk bundles into one bundle.

    Args:
        bundles: Chunk bundles sharing one configuration and vocabulary.
        build_alignments: See :class:`StreamingMerger`.

    Returns:
        The merged Bundle.
    """
    merger = StreamingMerger(build_alignments=build_alignments)
    for bundle in bundles:
        merger.add(bundle)
    return merger.finish()
