"""Offset-vector helpers.

An offset vector holds the 1-based start index of every unit of a level,
followed by a trailing sentinel, so that unit ``i`` spans
``[offsets[i], offsets[i+1] - 1]``. Internally every vector uses the
``[1, ..., n_tokens + 1]`` style; :func:`normalize_offsets` converts the
foreign styles (leading ``0`` or ``1``, inclusive trailing ``n_tokens``) into it.
"""

from typing import Optional, Sequence

import numpy as np

from .errors import StructuralInvariantError

OFFSET_DTYPE = np.int64


def as_offset_array(values: Sequence[int]) -> np.ndarray:
    """Copy ``values`` into a fresh one-dimensional int64 array."""
    arr = np.array(values, dtype=OFFSET_DTYPE)
    if arr.ndim != 1:
        raise StructuralInvariantError(
            f"Offset vectors must be one-dimensional, got shape {arr.shape}"
        )
    return arr


def is_sorted(offsets: np.ndarray) -> bool:
    """True when ``offsets`` is non-decreasing."""
    return bool(np.all(offsets[1:] >= offsets[:-1]))


def validate_offsets(offsets: np.ndarray, n_tokens: int, level: str) -> None:
    """
    Check the structural invariants of an internal-style offset vector.

    Args:
        offsets: Offset vector to check.
        n_tokens: Length of the token-id sequence the vector indexes.
        level: Level name used in error messages.

    Raises:
        StructuralInvariantError: If the vector is empty, unsorted, does not
            start at 1 or does not end with ``n_tokens + 1``.
    """
    expected = n_tokens + 1
    if len(offsets) == 0:
        raise StructuralInvariantError(
            f"Invalid offsets for level {level}: vector is empty, expected sentinel {expected}"
        )
    if int(offsets[-1]) != expected:
        raise StructuralInvariantError(
            f"Invalid offsets for level {level}: expected sentinel {expected}, "
            f"got {int(offsets[-1])}"
        )
    if int(offsets[0]) != 1:
        raise StructuralInvariantError(
            f"Invalid offsets for level {level}: first unit must start at 1, "
            f"got {int(offsets[0])}"
        )
    if not is_sorted(offsets):
        bad = int(np.flatnonzero(offsets[1:] < offsets[:-1])[0])
        raise StructuralInvariantError(
            f"Invalid offsets for level {level}: not sorted at position {bad + 1} "
            f"({int(offsets[bad])} > {int(offsets[bad + 1])})"
        )


def restyle_offsets(
    values: Sequence[int], n_tokens: Optional[int] = None
) -> np.ndarray:
    """
    Rewrite foreign sentinel styles into internal style, without validating.

    A leading ``0`` or ``1`` followed by ``1`` is a leading sentinel and is
    dropped; a zero-based first start becomes ``1``. When ``n_tokens`` is
    given, a trailing entry equal to it (inclusive end) becomes
    ``n_tokens + 1``.
    """
    arr = as_offset_array(values)
    if len(arr) == 0:
        return arr

    if len(arr) > 1 and int(arr[0]) in (0, 1) and arr[1] == 1:
        arr = arr[1:]
    elif arr[0] == 0:
        arr[0] = 1

    if n_tokens is None:
        return arr
    if arr[-1] == n_tokens and n_tokens > 0 and not (len(arr) == 1 and n_tokens == 1):
        arr[-1] = n_tokens + 1
    elif len(arr) == 1 and arr[0] == 1 and n_tokens > 0:
        # a lone leading start without sentinel
        arr = np.append(arr, n_tokens + 1)
    return arr


def normalize_offsets(
    values: Optional[Sequence[int]], n_tokens: int, level: str = "?"
) -> np.ndarray:
    """
    Convert a foreign offset vector to the ``[1, ..., n_tokens + 1]`` style.

    Accepted inputs:
        - a leading sentinel ``0`` or ``1`` in front of the first real start
          (``[0, 1, 4, ...]`` or ``[1, 1, 4, ...]``), or a zero-based first
          start (``[0, 3, ...]``);
        - a trailing sentinel equal to ``n_tokens`` (inclusive end) or
          ``n_tokens + 1`` (exclusive end).

    An empty or ``None`` input yields an empty array ("no units recorded").

    Returns:
        A new int64 array in internal style.

    Raises:
        StructuralInvariantError: If the vector cannot be read in either style.
    """
    if values is None:
        return np.empty(0, dtype=OFFSET_DTYPE)
    arr = restyle_offsets(values, n_tokens)
    if len(arr) == 0:
        return arr
    validate_offsets(arr, n_tokens, level)
    return arr


def is_identity(offsets: np.ndarray) -> bool:
    """True when every token is its own unit (``offsets == [1, 2, ..., n+1]``)."""
    return bool(np.array_equal(offsets, np.arange(1, len(offsets) + 1, dtype=offsets.dtype)))


def project_offsets(
    offsets: np.ndarray, onto: np.ndarray, level: str, onto_level: str
) -> np.ndarray:
    """
    Re-express ``offsets`` in the unit index space of ``onto``.

    Both vectors index the same token sequence. Every boundary in ``offsets``
    must coincide with a boundary in ``onto``; the result gives, for each
    entry, the 1-based ``onto`` unit that starts there.

    Raises:
        StructuralInvariantError: If a boundary falls inside an ``onto`` unit.
    """
    positions = np.searchsorted(onto, offsets, side="left")
    inside = positions < len(onto)
    exact = np.zeros(len(offsets), dtype=bool)
    exact[inside] = onto[positions[inside]] == offsets[inside]
    if not np.all(exact):
        bad = int(offsets[np.flatnonzero(~exact)[0]])
        raise StructuralInvariantError(
            f"{level} boundary at token {bad} does not fall on a {onto_level} boundary"
        )
    return (positions + 1).astype(OFFSET_DTYPE)


def units_of_positions(offsets: np.ndarray, n_tokens: int) -> np.ndarray:
    """
    Map each token position to the 1-based unit containing it.

    Coarse-outward range fill: every unit writes its index into its own
    token range (``np.repeat`` over the unit lengths), so a well-formed
    vector covers each position exactly once.
    """
    lengths = np.diff(offsets)
    units = np.arange(1, len(offsets), dtype=OFFSET_DTYPE)
    out = np.repeat(units, lengths)
    if len(out) != n_tokens:
        raise StructuralInvariantError(
            f"Offsets cover {len(out)} positions but the sequence has {n_tokens} tokens"
        )
    return out
