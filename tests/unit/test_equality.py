"""Tests for deep, numpy-aware equality."""

import numpy as np

from vaultgraph import sets_equal, values_equal


def test_nested_containers_compare_structurally():
    assert values_equal({"a": [1, {"b": 2}]}, {"a": [1, {"b": 2}]})
    assert not values_equal({"a": [1, {"b": 2}]}, {"a": [1, {"b": 3}]})


def test_list_and_tuple_are_different():
    assert not values_equal([1, 2], (1, 2))


def test_dict_key_sets_must_match():
    assert not values_equal({"a": 1}, {"a": 1, "b": None})


def test_numpy_arrays_compare_elementwise():
    assert values_equal(np.array([1, 2, 3]), np.array([1, 2, 3]))
    assert not values_equal(np.array([1, 2, 3]), np.array([1, 2, 4]))
    assert not values_equal(np.array([1, 2]), [1, 2])


def test_arrays_nested_in_mappings():
    assert values_equal({"v": np.zeros(3)}, {"v": np.zeros(3)})


def test_sets_equal():
    a = frozenset({"x", "y"})

    assert sets_equal(a, a)
    assert sets_equal(a, frozenset({"y", "x"}))
    assert not sets_equal(a, frozenset({"x"}))


def test_self_referential_structures_compare_without_recursing_forever():
    a = []
    a.append(a)
    b = []
    b.append(b)

    assert values_equal({"loop": a}, {"loop": b})
    assert not values_equal({"loop": a}, {"loop": [b, 1]})


def test_objects_whose_comparison_recurses_are_unequal():
    a = []
    a.append(a)
    b = []
    b.append(b)

    class Wrapper:
        def __init__(self, items):
            self.items = items

        def __eq__(self, other):
            return self.items == other.items

    assert not values_equal(Wrapper(a), Wrapper(b))
