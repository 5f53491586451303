"""Split matched installations into Job-sized batches."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc


def partition[T](items: cabc.Sequence[T], size: int) -> list[list[T]]:
    """Return contiguous slices of ``items`` holding at most ``size`` entries.

    Every slice but the last holds exactly ``size`` entries and concatenating
    the slices reproduces ``items``.

    Raises
    ------
    ValueError
        If ``size`` is not positive.

    Examples
    --------
    >>> partition(["a", "b", "c"], 2)
    [['a', 'b'], ['c']]

    """
    if size < 1:
        msg = f"batch size must be positive, got: {size}"
        raise ValueError(msg)
    return [list(items[start : start + size]) for start in range(0, len(items), size)]
