"""The Bundle aggregate: levels, alignments, run metadata and user extras."""

from dataclasses import replace
from typing import Any, Iterator, Optional

import numpy as np

from .errors import LevelLookupError, PreconditionError
from .models import CrossMap, Corpus, LevelBundle, PipelineMetadata, Vocabulary


class Bundle:
    """
    All segmentation levels of one corpus, their alignments and metadata.

    Levels and alignments are only ever added, never replaced or removed,
    so references handed out earlier stay valid.
    """

    def __init__(
        self,
        levels: Optional[dict[str, LevelBundle]] = None,
        alignments: Optional[dict[tuple[str, str], CrossMap]] = None,
        metadata: Optional[PipelineMetadata] = None,
        extras: Any = None,
    ):
        """
        Initialize the bundle.

        Args:
            levels: Level name -> LevelBundle.
            alignments: (source, destination) -> CrossMap.
            metadata: Pipeline metadata (default configuration when omitted).
            extras: Arbitrary user data carried along with the bundle.
        """
        self.levels: dict[str, LevelBundle] = {}
        self.alignments: dict[tuple[str, str], CrossMap] = {}
        self.metadata = metadata if metadata is not None else PipelineMetadata()
        self.extras = extras

        for name, level_bundle in (levels or {}).items():
            self.add_level(name, level_bundle)
        for cross_map in (alignments or {}).values():
            self.add_alignment(cross_map)

    # -- levels ---------------------------------------------------------

    def has_level(self, level: str) -> bool:
        return level in self.levels

    def get_level(self, level: str) -> LevelBundle:
        if level not in self.levels:
            raise LevelLookupError(
                f"Level {level} is not present in this bundle. "
                f"Available levels: {sorted(self.levels)}",
                available=sorted(self.levels),
            )
        return self.levels[level]

    def get_corpus(self, level: str) -> Corpus:
        return self.get_level(level).corpus

    def get_vocabulary(self, level: str) -> Vocabulary:
        return self.get_level(level).vocabulary

    def get_token_ids(self, level: str) -> np.ndarray:
        return self.get_corpus(level).token_ids

    def add_level(self, level: str, level_bundle: LevelBundle) -> "Bundle":
        """Add a new level; replacing an existing one is not allowed."""
        if not isinstance(level_bundle, LevelBundle):
            raise TypeError(f"Expected LevelBundle for level {level}, got {type(level_bundle)}")
        if level in self.levels:
            raise PreconditionError(f"Level {level} already present in this bundle")
        self.levels[level] = level_bundle
        return self

    def is_placeholder(self, level: str) -> bool:
        """True when ``level`` was synthesized only to carry alignments."""
        self.get_level(level)
        return level in self.metadata.placeholder_levels

    def mark_placeholder(self, level: str) -> None:
        self.metadata = replace(
            self.metadata,
            placeholder_levels=self.metadata.placeholder_levels | {level},
        )

    @property
    def real_levels(self) -> tuple[str, ...]:
        return tuple(name for name in self.levels if name not in self.metadata.placeholder_levels)

    # -- alignments -----------------------------------------------------

    def has_alignment(self, source: str, destination: str) -> bool:
        return (source, destination) in self.alignments

    def get_alignment(self, source: str, destination: str) -> CrossMap:
        key = (source, destination)
        if key not in self.alignments:
            raise LevelLookupError(
                f"No alignment {source} -> {destination} in this bundle. "
                f"Available alignments: {sorted(self.alignments)}",
                available=sorted(self.alignments),
            )
        return self.alignments[key]

    def add_alignment(self, cross_map: CrossMap) -> "Bundle":
        if cross_map.key in self.alignments:
            raise PreconditionError(
                f"Alignment {cross_map.source_level} -> {cross_map.destination_level} "
                "already present in this bundle"
            )
        for level in cross_map.key:
            self.get_level(level)
        self.alignments[cross_map.key] = cross_map
        return self

    # -- misc -----------------------------------------------------------

    def with_extras(self, extras: Any) -> "Bundle":
        """New bundle sharing this bundle's levels and alignments, with new extras."""
        bundle = Bundle(metadata=self.metadata, extras=extras)
        bundle.levels = self.levels
        bundle.alignments = self.alignments
        return bundle

    def __iter__(self) -> Iterator[str]:
        return iter(self.levels)

    def __len__(self) -> int:
        return len(self.levels)

    def __contains__(self, level: str) -> bool:
        return level in self.levels

    def keys(self):
        return self.levels.keys()

    def values(self):
        return self.levels.values()

    def items(self):
        return self.levels.items()

    def __repr__(self) -> str:
        return f"Bundle with {len(self.levels)} level(s): {', '.join(self.levels)}"

    def summary(self) -> str:
        """Multi-line description of every level."""
        lines = [
            "Bundle:",
            f"  Levels: {', '.join(self.levels)}",
            f"  Schema: {self.metadata.schema_version}",
        ]
        if self.alignments:
            pairs = ", ".join(f"{s}->{d}" for s, d in self.alignments)
            lines.append(f"  Alignments: {pairs}")
        if self.extras is not None:
            lines.append(f"  Extras: {type(self.extras).__name__}")
        for name, level_bundle in self.levels.items():
            corpus = level_bundle.corpus
            marker = " (placeholder)" if name in self.metadata.placeholder_levels else ""
            lines.append(f"\n  Level {name}{marker}")
            lines.append(f"    Tokens: {corpus.n_tokens}")
            lines.append(f"    Vocabulary size: {len(level_bundle.vocabulary)}")
            lines.append(f"    Documents: {corpus.n_units('document')}")
        return "\n".join(lines)


def has_level(bundle: Bundle, level: str) -> bool:
    return bundle.has_level(level)


def get_level(bundle: Bundle, level: str) -> LevelBundle:
    return bundle.get_level(level)


def get_corpus(bundle: Bundle, level: str) -> Corpus:
    return bundle.get_corpus(level)


def get_vocabulary(bundle: Bundle, level: str) -> Vocabulary:
    return bundle.get_vocabulary(level)


def get_token_ids(bundle: Bundle, level: str) -> np.ndarray:
    return bundle.get_token_ids(level)


def has_alignment(bundle: Bundle, source: str, destination: str) -> bool:
    return bundle.has_alignment(source, destination)


def get_alignment(bundle: Bundle, source: str, destination: str) -> CrossMap:
    return bundle.get_alignment(source, destination)


def is_placeholder(bundle: Bundle, level: str) -> bool:
    return bundle.is_placeholder(level)
