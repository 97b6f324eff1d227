"""Structural diff between two JSON-like values.

Objects are compared key by key, lists position by position.  Element
changes inside lists are reported as ARRAY records carrying the index and
a nested ADDED/REMOVED/EDITED record; nested containers of the same kind
are recursed into so a change deep inside a message shows up at its own
path instead of replacing the whole subtree.

The result is always sorted with :func:`sort_differences`.
"""

from __future__ import annotations

from functools import cmp_to_key
from typing import Any

from ..types import DiffKind, DiffRecord, PathSegment


def diff(baseline: Any, candidate: Any) -> list[DiffRecord]:
    """Return the sorted differences turning *baseline* into *candidate*.

    ``None`` on either side is compared as an empty object.
    """
    if baseline is None:
        baseline = {}
    if candidate is None:
        candidate = {}
    records: list[DiffRecord] = []
    _walk(baseline, candidate, [], records)
    return sort_differences(records)


def _is_index(seg: object) -> bool:
    return isinstance(seg, int) and not isinstance(seg, bool)


def _same_container(a: Any, b: Any) -> bool:
    return (
        (isinstance(a, dict) and isinstance(b, dict))
        or (isinstance(a, list) and isinstance(b, list))
    )


def _walk(lhs: Any, rhs: Any, path: list[PathSegment], out: list[DiffRecord]) -> None:
    if isinstance(lhs, dict) and isinstance(rhs, dict):
        _walk_object(lhs, rhs, path, out)
    elif isinstance(lhs, list) and isinstance(rhs, list):
        _walk_array(lhs, rhs, path, out)
    elif lhs != rhs or _strict_unequal(lhs, rhs):
        out.append(DiffRecord(DiffKind.EDITED, list(path), old=lhs, new=rhs))


def _strict_unequal(lhs: Any, rhs: Any) -> bool:
    # 1 == 1.0 == True in Python; JSON keeps booleans distinct from numbers
    return isinstance(lhs, bool) != isinstance(rhs, bool)


def _walk_object(lhs: dict, rhs: dict, path: list[PathSegment], out: list[DiffRecord]) -> None:
    for key, old in lhs.items():
        if key not in rhs:
            out.append(DiffRecord(DiffKind.REMOVED, [*path, key], old=old))
        else:
            _walk(old, rhs[key], [*path, key], out)
    for key, new in rhs.items():
        if key not in lhs:
            out.append(DiffRecord(DiffKind.ADDED, [*path, key], new=new))


def _walk_array(lhs: list, rhs: list, path: list[PathSegment], out: list[DiffRecord]) -> None:
    common = min(len(lhs), len(rhs))
    for i in range(common):
        old, new = lhs[i], rhs[i]
        if _same_container(old, new):
            _walk(old, new, [*path, i], out)
        elif old != new or _strict_unequal(old, new):
            item = DiffRecord(DiffKind.EDITED, [*path, i], old=old, new=new)
            out.append(DiffRecord(DiffKind.ARRAY, list(path), index=i, item=item))
    for i in range(common, len(rhs)):
        item = DiffRecord(DiffKind.ADDED, [*path, i], new=rhs[i])
        out.append(DiffRecord(DiffKind.ARRAY, list(path), index=i, item=item))
    for i in range(common, len(lhs)):
        item = DiffRecord(DiffKind.REMOVED, [*path, i], old=lhs[i])
        out.append(DiffRecord(DiffKind.ARRAY, list(path), index=i, item=item))


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------

def _compare_segments(a: PathSegment, b: PathSegment) -> int:
    a_num, b_num = _is_index(a), _is_index(b)
    if a_num and b_num:
        return (a > b) - (a < b)
    if a_num != b_num:
        # Keys sort before list indices
        return 1 if a_num else -1
    sa, sb = str(a), str(b)
    return (sa > sb) - (sa < sb)


def compare_records(a: DiffRecord, b: DiffRecord) -> int:
    """Three-way comparison used by :func:`sort_differences`."""
    for seg_a, seg_b in zip(a.path, b.path):
        if seg_a == seg_b and _is_index(seg_a) == _is_index(seg_b):
            continue
        result = _compare_segments(seg_a, seg_b)
        if result:
            return result
    if (
        a.kind is DiffKind.ARRAY
        and b.kind is DiffKind.ARRAY
        and a.index is not None
        and b.index is not None
        and a.index != b.index
    ):
        return (a.index > b.index) - (a.index < b.index)
    return (len(a.path) > len(b.path)) - (len(a.path) < len(b.path))


def sort_differences(records: list[DiffRecord]) -> list[DiffRecord]:
    """Order records by path, then by element index for list changes.

    Path segments compare pairwise: indices numerically, keys as strings,
    and a key always sorts before an index at the same depth.  The sort
    is stable, so records that compare equal keep their input order.
    """
    return sorted(records, key=cmp_to_key(compare_records))
