"""Tests for diff_proxy.core.differ."""

from __future__ import annotations

import pytest

from diff_proxy.core.differ import compare_records, diff, sort_differences
from diff_proxy.types import DiffKind, DiffRecord


# ---------------------------------------------------------------------------
# identity
# ---------------------------------------------------------------------------


class TestDiffIdentity:
    @pytest.mark.parametrize("value", [
        {},
        [],
        "text",
        42,
        None,
        {"a": 1, "b": [1, 2, {"c": None}]},
        [{"role": "user", "content": [{"type": "text", "text": "hi"}]}, [1, [2, [3]]]],
    ])
    def test_same_value_has_no_differences(self, value):
        assert diff(value, value) == []

    def test_equal_copies_have_no_differences(self):
        a = {"messages": [{"role": "user", "content": "hi"}], "stream": True}
        b = {"stream": True, "messages": [{"content": "hi", "role": "user"}]}
        assert diff(a, b) == []


# ---------------------------------------------------------------------------
# objects
# ---------------------------------------------------------------------------


class TestDiffObjects:
    def test_added_key(self):
        [d] = diff({"a": 1}, {"a": 1, "b": 2})
        assert d.kind is DiffKind.ADDED
        assert d.path == ["b"]
        assert d.new == 2
        assert not d.has_old

    def test_removed_key(self):
        [d] = diff({"a": 1, "b": 2}, {"a": 1})
        assert d.kind is DiffKind.REMOVED
        assert d.path == ["b"]
        assert d.old == 2
        assert not d.has_new

    def test_edited_scalar(self):
        [d] = diff({"max_tokens": 1024}, {"max_tokens": 2048})
        assert d.kind is DiffKind.EDITED
        assert d.path == ["max_tokens"]
        assert (d.old, d.new) == (1024, 2048)

    def test_nested_change_reported_at_leaf(self):
        a = {"metadata": {"user": {"id": "u1", "tier": "free"}}}
        b = {"metadata": {"user": {"id": "u1", "tier": "pro"}}}
        [d] = diff(a, b)
        assert d.kind is DiffKind.EDITED
        assert d.path == ["metadata", "user", "tier"]

    def test_type_change_replaces_subtree(self):
        [d] = diff({"system": "be nice"}, {"system": [{"type": "text", "text": "be nice"}]})
        assert d.kind is DiffKind.EDITED
        assert d.path == ["system"]
        assert d.old == "be nice"

    def test_bool_and_int_are_distinct(self):
        [d] = diff({"stream": True}, {"stream": 1})
        assert d.kind is DiffKind.EDITED

    def test_none_is_treated_as_empty_object(self):
        [d] = diff(None, {"a": 1})
        assert d.kind is DiffKind.ADDED and d.path == ["a"]
        [d] = diff({"a": 1}, None)
        assert d.kind is DiffKind.REMOVED and d.path == ["a"]
        assert diff(None, None) == []

    def test_top_level_scalars(self):
        [d] = diff("old", "new")
        assert d.kind is DiffKind.EDITED
        assert d.path == []


# ---------------------------------------------------------------------------
# arrays
# ---------------------------------------------------------------------------


class TestDiffArrays:
    def test_appended_element(self):
        a = {"messages": [{"role": "user", "content": "a"}]}
        b = {"messages": [{"role": "user", "content": "a"}, {"role": "assistant", "content": "b"}]}
        [d] = diff(a, b)
        assert d.kind is DiffKind.ARRAY
        assert d.path == ["messages"]
        assert d.index == 1
        assert d.item.kind is DiffKind.ADDED
        assert d.item.path == ["messages", 1]
        assert d.item.new == {"role": "assistant", "content": "b"}
        assert d.location == ["messages", 1]

    def test_removed_elements(self):
        records = diff([1, 2, 3], [1])
        assert [(r.kind, r.index, r.item.kind, r.item.old) for r in records] == [
            (DiffKind.ARRAY, 1, DiffKind.REMOVED, 2),
            (DiffKind.ARRAY, 2, DiffKind.REMOVED, 3),
        ]

    def test_scalar_element_edit(self):
        [d] = diff({"stop": ["a", "b"]}, {"stop": ["a", "c"]})
        assert d.kind is DiffKind.ARRAY
        assert d.index == 1
        assert d.item.kind is DiffKind.EDITED
        assert (d.item.old, d.item.new) == ("b", "c")

    def test_nested_object_in_array_is_recursed(self):
        a = {"messages": [{"role": "user", "content": "hi"}]}
        b = {"messages": [{"role": "user", "content": "hello"}]}
        [d] = diff(a, b)
        assert d.kind is DiffKind.EDITED
        assert d.path == ["messages", 0, "content"]

    def test_element_type_change_is_an_edit(self):
        [d] = diff([{"a": 1}], [[1]])
        assert d.kind is DiffKind.ARRAY
        assert d.item.kind is DiffKind.EDITED

    def test_insertion_at_front_shows_positional_edits(self):
        records = diff(["b", "c"], ["a", "b", "c"])
        assert [r.index for r in records] == [0, 1, 2]
        assert [r.item.kind for r in records] == [DiffKind.EDITED, DiffKind.EDITED, DiffKind.ADDED]


# ---------------------------------------------------------------------------
# ordering
# ---------------------------------------------------------------------------


class TestSortDifferences:
    def test_key_sorts_before_index_at_same_depth(self):
        numeric = DiffRecord(DiffKind.EDITED, ["messages", 0], old=1, new=2)
        keyed = DiffRecord(DiffKind.EDITED, ["messages", "role"], old=1, new=2)
        assert sort_differences([numeric, keyed]) == [keyed, numeric]
        assert sort_differences([keyed, numeric]) == [keyed, numeric]

    def test_indices_compare_numerically(self):
        ten = DiffRecord(DiffKind.EDITED, ["m", 10], old=1, new=2)
        two = DiffRecord(DiffKind.EDITED, ["m", 2], old=1, new=2)
        assert sort_differences([ten, two]) == [two, ten]

    def test_keys_compare_as_strings(self):
        b = DiffRecord(DiffKind.ADDED, ["b"], new=1)
        a = DiffRecord(DiffKind.ADDED, ["a"], new=1)
        assert sort_differences([b, a]) == [a, b]

    def test_array_records_ordered_by_index(self):
        recs = [
            DiffRecord(DiffKind.ARRAY, ["m"], index=3, item=DiffRecord(DiffKind.ADDED, ["m", 3], new=1)),
            DiffRecord(DiffKind.ARRAY, ["m"], index=1, item=DiffRecord(DiffKind.ADDED, ["m", 1], new=1)),
            DiffRecord(DiffKind.ARRAY, ["m"], index=2, item=DiffRecord(DiffKind.ADDED, ["m", 2], new=1)),
        ]
        assert [r.index for r in sort_differences(recs)] == [1, 2, 3]

    def test_shorter_path_first_when_prefix(self):
        parent = DiffRecord(DiffKind.ADDED, ["a"], new={})
        child = DiffRecord(DiffKind.ADDED, ["a", "b"], new=1)
        assert compare_records(parent, child) < 0
        assert compare_records(child, parent) > 0

    def test_ordering_is_deterministic(self):
        a = {"system": "x", "messages": [{"role": "user", "content": "a"}], "tools": [1, 2]}
        b = {"messages": [{"role": "user", "content": "b"}, {"role": "assistant"}], "tools": [2], "temperature": 0}
        first = [r.to_dict() for r in diff(a, b)]
        for _ in range(5):
            assert [r.to_dict() for r in diff(a, b)] == first
        assert [r["path"] for r in first] == [
            ["messages"],
            ["messages", 0, "content"],
            ["system"],
            ["temperature"],
            ["tools"],
            ["tools"],
        ]


class TestDiffRecordToDict:
    def test_array_record(self):
        [d] = diff([], [5])
        assert d.to_dict() == {
            "kind": "array",
            "path": [],
            "index": 0,
            "item": {"kind": "added", "path": [0], "new": 5},
        }

    def test_edit_record_keeps_none_values(self):
        [d] = diff({"a": None}, {"a": 1})
        assert d.to_dict() == {"kind": "edited", "path": ["a"], "old": None, "new": 1}
