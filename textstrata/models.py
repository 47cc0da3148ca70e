"""Data models for the segmentation store."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

import numpy as np

from .config import PreprocessConfig
from .errors import StructuralInvariantError
from .offsets import OFFSET_DTYPE, validate_offsets

SCHEMA_VERSION = "1.0.0"

# fine -> coarse
LEVELS = ("byte", "character", "word", "sentence", "paragraph", "document")


def level_rank(level: str) -> int:
    """Position of ``level`` in :data:`LEVELS`; custom levels sort with words."""
    if level in LEVELS:
        return LEVELS.index(level)
    return LEVELS.index("word")


@dataclass(frozen=True)
class TextChunk:
    """A bounded slice of raw text handed from a chunk source to the processor."""

    text: str
    ends_document: bool = True
    ends_paragraph: bool = True  # False when the slice was cut mid-paragraph


@dataclass(frozen=True, eq=False)
class Vocabulary:
    """
    Immutable bidirectional token table.

    Ids are 1-based and dense: ``id_to_token[i - 1]`` is the token with id ``i``.
    Two vocabularies are equal only if they are the same object; use
    :meth:`same_content` to compare tables.
    """

    id_to_token: tuple
    token_to_id: Mapping[str, int]
    frequencies: tuple
    specials: Mapping[str, int]

    def __post_init__(self):
        object.__setattr__(self, "id_to_token", tuple(self.id_to_token))
        object.__setattr__(self, "frequencies", tuple(int(f) for f in self.frequencies))
        object.__setattr__(self, "token_to_id", MappingProxyType(dict(self.token_to_id)))
        object.__setattr__(self, "specials", MappingProxyType(dict(self.specials)))
        self._validate()

    def _validate(self) -> None:
        n = len(self.id_to_token)
        if len(self.frequencies) != n:
            raise StructuralInvariantError(
                f"Vocabulary has {n} tokens but {len(self.frequencies)} frequencies"
            )
        if len(self.token_to_id) != n:
            raise StructuralInvariantError(
                f"Vocabulary maps {len(self.token_to_id)} strings but holds {n} tokens"
            )
        for idx, token in enumerate(self.id_to_token, 1):
            if self.token_to_id.get(token) != idx:
                raise StructuralInvariantError(
                    f"Vocabulary ids are not dense: {token!r} should have id {idx}, "
                    f"got {self.token_to_id.get(token)}"
                )
        for symbol, idx in self.specials.items():
            if not 1 <= idx <= n:
                raise StructuralInvariantError(
                    f"Special token {symbol} has id {idx} outside 1..{n}"
                )

    def __len__(self) -> int:
        return len(self.id_to_token)

    def __contains__(self, token: str) -> bool:
        return token in self.token_to_id

    @property
    def unk_id(self) -> Optional[int]:
        return self.specials.get("unk")

    def id_of(self, token: str) -> int:
        """Id of ``token``, falling back to the ``unk`` special."""
        idx = self.token_to_id.get(token)
        if idx is not None:
            return idx
        if self.unk_id is None:
            raise KeyError(f"Token {token!r} not in vocabulary and no unk special")
        return self.unk_id

    def token_of(self, idx: int) -> str:
        return self.id_to_token[idx - 1]

    def same_content(self, other: "Vocabulary") -> bool:
        """Compare the tables of two vocabularies, ignoring identity."""
        return (
            self.id_to_token == other.id_to_token
            and self.frequencies == other.frequencies
            and dict(self.specials) == dict(other.specials)
        )

    def __repr__(self) -> str:
        return f"Vocabulary({len(self)} tokens, specials={sorted(self.specials)})"


@dataclass(frozen=True, eq=False)
class Corpus:
    """
    Token-id sequence of one level plus the offset vectors recorded over it.

    The corpus takes ownership of the arrays it is given and marks them
    read-only; use :func:`textstrata.store.build_corpus` to build one from
    plain lists.
    """

    token_ids: np.ndarray
    document_offsets: np.ndarray
    paragraph_offsets: Optional[np.ndarray] = None
    sentence_offsets: Optional[np.ndarray] = None
    word_offsets: Optional[np.ndarray] = None
    character_offsets: Optional[np.ndarray] = None
    byte_offsets: Optional[np.ndarray] = None

    def __post_init__(self):
        if self.token_ids.ndim != 1:
            raise StructuralInvariantError(
                f"token_ids must be one-dimensional, got shape {self.token_ids.shape}"
            )
        self.token_ids.setflags(write=False)
        for level in self.recorded_levels:
            offsets = self.offsets(level)
            if offsets.dtype != OFFSET_DTYPE:
                raise StructuralInvariantError(
                    f"{level} offsets must be {np.dtype(OFFSET_DTYPE).name}, got {offsets.dtype}"
                )
            validate_offsets(offsets, self.n_tokens, level)
            offsets.setflags(write=False)

    @property
    def n_tokens(self) -> int:
        return len(self.token_ids)

    def offsets(self, level: str) -> Optional[np.ndarray]:
        """Offset vector recorded for ``level``, or None."""
        if level == "document":
            return self.document_offsets
        if level == "paragraph":
            return self.paragraph_offsets
        if level == "sentence":
            return self.sentence_offsets
        if level == "word":
            return self.word_offsets
        if level == "character":
            return self.character_offsets
        if level == "byte":
            return self.byte_offsets
        return None

    @property
    def recorded_levels(self) -> tuple[str, ...]:
        return tuple(level for level in LEVELS if self.offsets(level) is not None)

    def n_units(self, level: str) -> int:
        offsets = self.offsets(level)
        if offsets is None:
            raise StructuralInvariantError(f"No {level} offsets recorded in this corpus")
        return len(offsets) - 1

    def unit_range(self, level: str, unit: int) -> tuple[int, int]:
        """Inclusive 1-based token range of ``unit`` (1-based) at ``level``."""
        offsets = self.offsets(level)
        if offsets is None:
            raise StructuralInvariantError(f"No {level} offsets recorded in this corpus")
        if not 1 <= unit < len(offsets):
            raise IndexError(f"{level} unit {unit} outside 1..{len(offsets) - 1}")
        return int(offsets[unit - 1]), int(offsets[unit]) - 1


@dataclass(frozen=True, eq=False)
class LevelBundle:
    """One segmentation level's corpus together with its vocabulary."""

    corpus: Corpus
    vocabulary: Vocabulary

    def __post_init__(self):
        ids = self.corpus.token_ids
        if len(ids) == 0:
            return
        max_id = int(ids.max())
        min_id = int(ids.min())
        if max_id > len(self.vocabulary):
            raise StructuralInvariantError(
                f"Corpus contains token ID {max_id} but vocabulary only has "
                f"{len(self.vocabulary)} tokens"
            )
        if min_id < 1:
            raise StructuralInvariantError(f"Corpus contains token ID {min_id}; ids are 1-based")


@dataclass(frozen=True, eq=False)
class CrossMap:
    """
    Fine -> coarse membership map.

    ``alignment[k]`` is the 1-based ``destination_level`` unit containing the
    ``source_level`` unit ``k + 1``. The array is owned by the map.
    """

    source_level: str
    destination_level: str
    alignment: np.ndarray

    def __post_init__(self):
        owned = np.array(self.alignment, dtype=OFFSET_DTYPE)
        owned.setflags(write=False)
        object.__setattr__(self, "alignment", owned)

    def __len__(self) -> int:
        return len(self.alignment)

    @property
    def key(self) -> tuple[str, str]:
        return (self.source_level, self.destination_level)

    def members(self, unit: int) -> np.ndarray:
        """1-based source indices that fall inside destination ``unit``."""
        return np.flatnonzero(self.alignment == unit) + 1

    def __eq__(self, other) -> bool:
        if not isinstance(other, CrossMap):
            return NotImplemented
        return self.key == other.key and np.array_equal(self.alignment, other.alignment)

    __hash__ = object.__hash__


@dataclass(frozen=True)
class PipelineMetadata:
    """Run metadata attached to every bundle."""

    configuration: PreprocessConfig = field(default_factory=PreprocessConfig)
    schema_version: str = SCHEMA_VERSION
    placeholder_levels: frozenset = frozenset()
    open_levels: frozenset = frozenset()  # chunk bundles: units continuing into the next chunk
    chunk_index: Optional[int] = None
