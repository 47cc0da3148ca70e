"""Segmentation store: validated Corpus and single-level Bundle construction."""

import logging
from typing import Iterable, Mapping, Optional, Sequence, Union

import numpy as np

from .bundle import Bundle
from .config import PreprocessConfig
from .errors import PreconditionError, StructuralInvariantError
from .models import LEVELS, Corpus, LevelBundle, PipelineMetadata, Vocabulary
from .offsets import OFFSET_DTYPE, as_offset_array

logger = logging.getLogger(__name__)

Token = Union[str, int]


def build_corpus(
    token_ids: Sequence[int],
    offsets: Optional[Mapping[str, Optional[Sequence[int]]]] = None,
    *,
    id_dtype: str = "uint32",
) -> Corpus:
    """
    Build a validated Corpus from a token-id sequence and raw offset lists.

    Args:
        token_ids: Flat sequence of 1-based token ids.
        offsets: Level name -> offset list in ``[1, ..., n + 1]`` style.
            Missing or ``None`` entries are left unrecorded, except document
            offsets which default to a single document ``[1, n + 1]``.
        id_dtype: Unsigned integer width for the stored ids.

    Returns:
        A Corpus owning read-only copies of the data.

    Raises:
        StructuralInvariantError: If a vector does not end with ``n + 1`` or
            is otherwise malformed.
        PreconditionError: If ``offsets`` names a level with no offset field.
    """
    ids = np.array(token_ids, dtype=np.dtype(id_dtype))
    if ids.ndim != 1:
        raise StructuralInvariantError(f"token_ids must be one-dimensional, got shape {ids.shape}")
    n = len(ids)

    offsets = dict(offsets or {})
    unknown = set(offsets) - set(LEVELS)
    if unknown:
        raise PreconditionError(
            f"No offset field for level(s) {sorted(unknown)}; known levels: {list(LEVELS)}"
        )

    fields = {}
    for level in LEVELS:
        values = offsets.get(level)
        if values is None:
            continue
        arr = as_offset_array(values)
        if len(arr) == 0 or int(arr[-1]) != n + 1:
            actual = int(arr[-1]) if len(arr) else None
            raise StructuralInvariantError(
                f"Invalid {level} offsets: expected sentinel {n + 1}, got {actual}"
            )
        fields[f"{level}_offsets"] = arr

    if "document_offsets" not in fields:
        fields["document_offsets"] = np.array([1, n + 1], dtype=OFFSET_DTYPE)

    return Corpus(token_ids=ids, **fields)


def token_key(token: Token) -> str:
    """Vocabulary string of a token; byte tokens are stored as Latin-1 characters."""
    if isinstance(token, (int, np.integer)):
        return chr(int(token))
    return token


def tokens_to_ids(tokens: Iterable[Token], vocabulary: Vocabulary) -> list[int]:
    """Map tokens to ids, sending out-of-vocabulary tokens to ``unk``."""
    unk = vocabulary.unk_id
    if unk is None:
        raise PreconditionError(
            "Vocabulary has no 'unk' special token; cannot map out-of-vocabulary tokens"
        )
    lookup = vocabulary.token_to_id
    return [lookup.get(token_key(token), unk) for token in tokens]


def assemble_bundle(
    tokens: Sequence[Token],
    offsets: Mapping[str, Optional[Sequence[int]]],
    vocabulary: Vocabulary,
    config: PreprocessConfig,
    *,
    id_dtype: Optional[str] = None,
    open_levels: Iterable[str] = (),
    chunk_index: Optional[int] = None,
) -> Bundle:
    """
    Wrap tokenizer output as a single-level Bundle.

    Args:
        tokens: Tokens produced by the tokenizer (strings or byte values).
        offsets: Level name -> offset list over ``tokens``.
        vocabulary: Vocabulary used to map tokens to ids.
        config: Configuration recorded in the bundle metadata.
        id_dtype: Override for ``config.id_dtype``.
        open_levels: Levels whose last unit continues into the next chunk.
        chunk_index: Position of the chunk in a streaming run.

    Returns:
        Bundle holding one level named after the tokenizer's token level.
    """
    ids = tokens_to_ids(tokens, vocabulary)
    corpus = build_corpus(ids, offsets, id_dtype=id_dtype or config.id_dtype)
    level = config.token_level

    metadata = PipelineMetadata(
        configuration=config,
        open_levels=frozenset(open_levels),
        chunk_index=chunk_index,
    )
    logger.debug(
        f"Assembled {level} level: {corpus.n_tokens} tokens, "
        f"levels recorded: {', '.join(corpus.recorded_levels)}"
    )
    return Bundle(levels={level: LevelBundle(corpus, vocabulary)}, metadata=metadata)
