"""Cross-level alignment: fine -> coarse membership maps."""

import logging
from typing import Iterable, Optional, Sequence

import numpy as np

from .bundle import Bundle
from .errors import PreconditionError, StructuralInvariantError
from .models import LEVELS, Corpus, CrossMap, LevelBundle, Vocabulary, level_rank
from .offsets import (
    OFFSET_DTYPE,
    is_identity,
    project_offsets,
    restyle_offsets,
    units_of_positions,
    validate_offsets,
)

logger = logging.getLogger(__name__)

CANONICAL_PAIRS = (
    ("byte", "character"),
    ("byte", "word"),
    ("character", "word"),
)

PLACEHOLDER_TOKEN = "<UNK>"


def _require_offsets(
    level: str, offsets: Optional[Sequence[int]], n_tokens: Optional[int]
) -> np.ndarray:
    if offsets is None or len(offsets) < 2:
        raise PreconditionError(
            f"Missing valid {level} offsets (need >= 2 entries, got "
            f"{'none' if offsets is None else len(offsets)})"
        )
    return restyle_offsets(offsets, n_tokens)


def align_offsets(
    fine_offsets: Sequence[int],
    coarse_offsets: Sequence[int],
    source_level: str,
    destination_level: str,
    n_tokens: Optional[int] = None,
) -> CrossMap:
    """
    Build the membership map between two offset vectors over the same tokens.

    Every coarse unit writes its 1-based index into the range of fine units
    it spans. When the fine vector is not the identity, coarse boundaries
    are first re-expressed in fine-unit space.

    Args:
        fine_offsets: Offset vector of the fine level.
        coarse_offsets: Offset vector of the coarse level, over the same tokens.
        source_level: Name of the fine level.
        destination_level: Name of the coarse level.
        n_tokens: Length of the shared token sequence. Needed to read
            inclusive-end vectors (trailing ``n_tokens``); without it the
            token count is read off the exclusive trailing sentinel.

    Returns:
        CrossMap with one entry per fine unit.

    Raises:
        PreconditionError: If a vector has fewer than two entries or the two
            vectors cover different spans.
        StructuralInvariantError: If a coarse boundary splits a fine unit or
            the coarse vector leaves fine units uncovered.
    """
    fine = _require_offsets(source_level, fine_offsets, n_tokens)
    coarse = _require_offsets(destination_level, coarse_offsets, n_tokens)

    if int(fine[-1]) != int(coarse[-1]):
        raise PreconditionError(
            f"{source_level} and {destination_level} offsets cover different spans: "
            f"{source_level} sentinel {int(fine[-1])}, "
            f"{destination_level} sentinel {int(coarse[-1])}"
        )

    n_positions = int(fine[-1]) - 1
    validate_offsets(fine, n_positions, source_level)
    validate_offsets(coarse, n_positions, destination_level)

    n_fine = len(fine) - 1
    if not is_identity(fine):
        coarse = project_offsets(coarse, fine, destination_level, source_level)

    try:
        alignment = units_of_positions(coarse, n_fine)
    except StructuralInvariantError as e:
        raise StructuralInvariantError(
            f"{destination_level} units do not cover every {source_level} unit: {e}"
        ) from e
    return CrossMap(source_level, destination_level, alignment)


def align_corpora(
    fine_corpus: Corpus,
    coarse_corpus: Optional[Corpus],
    fine: str,
    coarse: str,
) -> CrossMap:
    """
    Align two corpora, reading each level's vector where it was recorded.

    The fine vector comes from ``fine_corpus`` (identity when that corpus
    did not record its own level); the coarse vector from ``fine_corpus``
    when recorded there, else from ``coarse_corpus``.
    """
    fine_vec = fine_corpus.offsets(fine)
    if fine_vec is None:
        fine_vec = np.arange(1, fine_corpus.n_tokens + 2, dtype=OFFSET_DTYPE)

    n_tokens = fine_corpus.n_tokens
    coarse_vec = fine_corpus.offsets(coarse)
    if coarse_vec is None and coarse_corpus is not None:
        coarse_vec = coarse_corpus.offsets(coarse)
        # indexes another corpus; its sentinel must match as is
        n_tokens = None
    return align_offsets(fine_vec, coarse_vec, fine, coarse, n_tokens)


def build_alignment(bundle: Bundle, fine: str, coarse: str) -> CrossMap:
    """Compute (but do not store) the ``fine -> coarse`` map of ``bundle``."""
    fine_corpus = bundle.get_corpus(fine)
    coarse_corpus = bundle.get_corpus(coarse) if bundle.has_level(coarse) else None
    return align_corpora(fine_corpus, coarse_corpus, fine, coarse)


def build_alignments(
    bundle: Bundle, pairs: Iterable[tuple[str, str]] = CANONICAL_PAIRS
) -> Bundle:
    """
    Add every requested alignment whose two levels are present.

    Pairs with an absent level are skipped, as are pairs already built, so
    calling this twice leaves the alignments untouched.

    Returns:
        The same bundle, for chaining.
    """
    for fine, coarse in pairs:
        if not (bundle.has_level(fine) and bundle.has_level(coarse)):
            continue
        if bundle.has_alignment(fine, coarse):
            continue
        cross_map = build_alignment(bundle, fine, coarse)
        bundle.add_alignment(cross_map)
        logger.debug(f"Built {fine} -> {coarse} alignment over {len(cross_map)} units")
    return bundle


def _placeholder_level(source: Corpus, level: str) -> LevelBundle:
    """One ``<UNK>`` token per unit of ``level``, re-indexed from ``source``."""
    own = source.offsets(level)
    n_units = len(own) - 1

    offsets = {f"{level}_offsets": np.arange(1, n_units + 2, dtype=OFFSET_DTYPE)}
    for other in source.recorded_levels:
        if level_rank(other) <= level_rank(level):
            continue
        try:
            offsets[f"{other}_offsets"] = project_offsets(
                source.offsets(other), own, other, level
            )
        except StructuralInvariantError as e:
            logger.warning(f"Placeholder {level} level: skipping {other} offsets ({e})")

    if "document_offsets" not in offsets:
        offsets["document_offsets"] = np.array([1, n_units + 1], dtype=OFFSET_DTYPE)

    vocabulary = Vocabulary(
        id_to_token=(PLACEHOLDER_TOKEN,),
        token_to_id={PLACEHOLDER_TOKEN: 1},
        frequencies=(0,),
        specials={"unk": 1},
    )
    token_ids = np.ones(n_units, dtype=source.token_ids.dtype)
    return LevelBundle(Corpus(token_ids=token_ids, **offsets), vocabulary)


def ensure_lower_levels(
    bundle: Bundle, levels: Iterable[str] = ("character", "byte")
) -> Bundle:
    """
    Synthesize placeholder levels so alignments can exist for them.

    For every missing level in ``levels``, the first real level whose corpus
    recorded that level's offsets provides the unit boundaries. The new
    level carries no token identity and is listed in
    ``bundle.metadata.placeholder_levels``.

    Returns:
        The same bundle, for chaining.
    """
    for level in levels:
        if bundle.has_level(level):
            continue
        source_name = next(
            (
                name
                for name in bundle.real_levels
                if bundle.get_corpus(name).offsets(level) is not None
            ),
            None,
        )
        if source_name is None:
            continue
        bundle.add_level(level, _placeholder_level(bundle.get_corpus(source_name), level))
        bundle.mark_placeholder(level)
        logger.debug(f"Synthesized placeholder {level} level from {source_name} offsets")
    return bundle


def align_bundle(
    bundle: Bundle, pairs: Iterable[tuple[str, str]] = CANONICAL_PAIRS
) -> Bundle:
    """Synthesize the lower levels ``pairs`` need, then build the alignments."""
    pairs = tuple(pairs)
    needed = sorted({level for pair in pairs for level in pair if level in LEVELS}, key=level_rank)
    ensure_lower_levels(bundle, needed)
    return build_alignments(bundle, pairs)
