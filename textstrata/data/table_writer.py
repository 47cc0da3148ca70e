"""Tabular export of bundle levels."""

import logging
from pathlib import Path
from typing import List, Literal, Optional, Union

import pandas as pd

from ..bundle import Bundle
from ..offsets import units_of_positions

logger = logging.getLogger(__name__)


def bundle_to_frame(bundle: Bundle, level: str) -> pd.DataFrame:
    """
    One row per token of ``level``.

    Columns: ``token_index`` (1-based), ``token_id``, ``token`` and, for
    every offset vector recorded on the level, ``<field>_index`` holding the
    1-based unit that contains the token.

    Args:
        bundle: Source bundle.
        level: Level to export.

    Returns:
        DataFrame with ``n_tokens`` rows.
    """
    level_bundle = bundle.get_level(level)
    corpus = level_bundle.corpus
    vocabulary = level_bundle.vocabulary

    n = corpus.n_tokens
    data = {
        "token_index": range(1, n + 1),
        "token_id": corpus.token_ids,
        "token": [vocabulary.token_of(int(i)) for i in corpus.token_ids],
    }
    for field in corpus.recorded_levels:
        data[f"{field}_index"] = units_of_positions(corpus.offsets(field), n)
    return pd.DataFrame(data)


class TableWriter:
    """
    Writes token tables to various output formats.

    Supports CSV, Parquet, and JSON formats.
    Can be used as a context manager; frames are buffered and written on flush.
    """

    def __init__(
        self,
        output_path: Union[str, Path],
        format: Literal["csv", "parquet", "json"] = "csv",
    ):
        """
        Initialize the table writer.

        Args:
            output_path: Path to write output file.
            format: Output format (csv, parquet, or json).
        """
        if format not in ("csv", "parquet", "json"):
            raise ValueError(f"Unknown table format: {format}")
        self.output_path = Path(output_path)
        self.format = format
        self._frames: List[pd.DataFrame] = []

        self.output_path.parent.mkdir(parents=True, exist_ok=True)

    def write_frame(self, df: pd.DataFrame) -> None:
        self._frames.append(df)

    def write_level(self, bundle: Bundle, level: Optional[str] = None) -> None:
        """
        Buffer the token table of one level.

        Args:
            bundle: Source bundle.
            level: Level to export (default: the bundle's token level).
        """
        level = level or bundle.metadata.configuration.token_level
        self.write_frame(bundle_to_frame(bundle, level))

    def flush(self) -> None:
        """Write buffered tables to file."""
        if not self._frames:
            return

        df = pd.concat(self._frames, ignore_index=True)

        if self.format == "csv":
            df.to_csv(self.output_path, index=False)
        elif self.format == "parquet":
            df.to_parquet(self.output_path, index=False)
        elif self.format == "json":
            df.to_json(self.output_path, orient="records", force_ascii=False, indent=2)
        logger.info(f"Wrote {len(df)} rows to {self.output_path}")

    def __enter__(self) -> "TableWriter":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.flush()

    @property
    def count(self) -> int:
        """Number of buffered rows."""
        return sum(len(df) for df in self._frames)
