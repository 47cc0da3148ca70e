"""Bundle persistence: compressed ``.npz`` arrays plus a JSON header."""

import json
import logging
from pathlib import Path
from typing import Any, Union

import numpy as np

from ..bundle import Bundle
from ..config import PreprocessConfig
from ..errors import PreconditionError
from ..models import Corpus, CrossMap, LevelBundle, PipelineMetadata, Vocabulary

logger = logging.getLogger(__name__)

BUNDLE_FORMAT_VERSION = 1
HEADER_KEY = "header"


def _level_key(level: str, name: str) -> str:
    return f"level__{level}__{name}"


def _alignment_key(source: str, destination: str) -> str:
    return f"alignment__{source}__{destination}"


def _vocabulary_to_dict(vocabulary: Vocabulary) -> dict:
    return {
        "id_to_token": list(vocabulary.id_to_token),
        "frequencies": list(vocabulary.frequencies),
        "specials": dict(vocabulary.specials),
    }


def _vocabulary_from_dict(data: dict) -> Vocabulary:
    tokens = data["id_to_token"]
    return Vocabulary(
        id_to_token=tokens,
        token_to_id={token: idx for idx, token in enumerate(tokens, 1)},
        frequencies=data["frequencies"],
        specials=data["specials"],
    )


def _json_extras(extras: Any) -> Any:
    if extras is None:
        return None
    try:
        json.dumps(extras)
    except (TypeError, ValueError):
        logger.warning(f"Extras of type {type(extras).__name__} are not JSON-serialisable; not saved")
        return None
    return extras


def save_bundle(bundle: Bundle, path: Union[str, Path]) -> Path:
    """
    Save a bundle to a compressed ``.npz`` file.

    Args:
        bundle: Bundle to save.
        path: Output path; ``.npz`` is appended when missing.

    Returns:
        The path written.

    Raises:
        ValueError: If the configuration holds a callable tokenizer.
    """
    path = Path(path)
    if path.suffix != ".npz":
        path = path.with_name(path.name + ".npz")
    path.parent.mkdir(parents=True, exist_ok=True)

    config = bundle.metadata.configuration
    if config.tokenization.is_custom:
        raise ValueError("Bundles built with a callable tokenizer cannot be saved")

    arrays: dict[str, np.ndarray] = {}
    levels = {}
    for level, level_bundle in bundle.items():
        corpus = level_bundle.corpus
        arrays[_level_key(level, "token_ids")] = corpus.token_ids
        for field in corpus.recorded_levels:
            arrays[_level_key(level, f"{field}_offsets")] = corpus.offsets(field)
        levels[level] = {
            "offsets": list(corpus.recorded_levels),
            "vocabulary": _vocabulary_to_dict(level_bundle.vocabulary),
        }

    for (source, destination), cross_map in bundle.alignments.items():
        arrays[_alignment_key(source, destination)] = cross_map.alignment

    metadata = bundle.metadata
    header = {
        "format_version": BUNDLE_FORMAT_VERSION,
        "schema_version": metadata.schema_version,
        "configuration": config.model_dump(mode="json"),
        "levels": levels,
        "alignments": [list(key) for key in bundle.alignments],
        "placeholder_levels": sorted(metadata.placeholder_levels),
        "open_levels": sorted(metadata.open_levels),
        "chunk_index": metadata.chunk_index,
        "extras": _json_extras(bundle.extras),
    }
    arrays[HEADER_KEY] = np.array(json.dumps(header, ensure_ascii=False))

    np.savez_compressed(path, **arrays)
    logger.info(f"Saved bundle with {len(levels)} level(s) to {path}")
    return path


def load_bundle(path: Union[str, Path]) -> Bundle:
    """
    Load a bundle written by :func:`save_bundle`.

    Every level is re-validated on construction.

    Raises:
        FileNotFoundError: If the file does not exist.
        PreconditionError: If the file was written by a newer format version.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Bundle file not found: {path}")

    with np.load(path, allow_pickle=False) as data:
        header = json.loads(str(data[HEADER_KEY]))
        version = int(header["format_version"])
        if version > BUNDLE_FORMAT_VERSION:
            raise PreconditionError(
                f"Bundle format version {version} is newer than supported "
                f"version {BUNDLE_FORMAT_VERSION}"
            )

        metadata = PipelineMetadata(
            configuration=PreprocessConfig(**header["configuration"]),
            schema_version=header["schema_version"],
            placeholder_levels=frozenset(header["placeholder_levels"]),
            open_levels=frozenset(header["open_levels"]),
            chunk_index=header["chunk_index"],
        )
        bundle = Bundle(metadata=metadata, extras=header.get("extras"))

        for level, info in header["levels"].items():
            offsets = {
                f"{field}_offsets": np.array(data[_level_key(level, f"{field}_offsets")])
                for field in info["offsets"]
            }
            corpus = Corpus(token_ids=np.array(data[_level_key(level, "token_ids")]), **offsets)
            bundle.add_level(level, LevelBundle(corpus, _vocabulary_from_dict(info["vocabulary"])))

        for source, destination in header["alignments"]:
            alignment = data[_alignment_key(source, destination)]
            bundle.add_alignment(CrossMap(source, destination, alignment))

    logger.info(f"Loaded bundle with {len(bundle)} level(s) from {path}")
    return bundle
