"""Tests for the ReactiveStore scheduler: propagation, batching, history, lifecycle."""

import logging
from unittest.mock import Mock

import pytest

from vaultgraph import (
    Cell,
    ChangeType,
    CircularDependencyError,
    Computed,
    DisposedError,
    Effect,
    ReactiveStore,
    SideEffectError,
)
from vaultgraph.store import Change, _DependencyGraph


class TestDependencyGraph:
    """Edge bookkeeping and ordering."""

    def test_transitive_dependents_follow_edges(self):
        graph = _DependencyGraph()
        graph.add_edge("a", "b")
        graph.add_edge("b", "c")
        graph.add_edge("x", "y")

        assert list(graph.get_all_dependents("a")) == ["b", "c"]
        assert list(graph.get_all_dependents("x")) == ["y"]

    def test_topological_sort_puts_sources_first(self):
        graph = _DependencyGraph()
        graph.add_edge("a", "b")
        graph.add_edge("a", "c")
        graph.add_edge("b", "d")
        graph.add_edge("c", "d")

        order = graph.topological_sort(["d", "c", "b"])

        assert order.index("b") < order.index("d")
        assert order.index("c") < order.index("d")

    def test_remove_node_drops_both_directions(self):
        graph = _DependencyGraph()
        graph.add_edge("a", "b")
        graph.add_edge("b", "c")

        graph.remove_node("b")

        assert graph.get_all_dependents("a") == {}
        assert graph.topological_sort(["c", "a"]) == ["c", "a"]
        assert graph.edge_count() == 0


class TestChange:
    def test_compose_keeps_first_old_and_last_new(self):
        first = Change("k", ChangeType.SOURCE_UPDATE, 1, 2, 1.0)
        second = Change("k", ChangeType.SOURCE_UPDATE, 2, 3, 2.0)

        merged = first.compose(second)

        assert merged.old_value == 1
        assert merged.new_value == 3
        assert merged.timestamp == 2.0

    def test_compose_rejects_different_keys(self):
        first = Change("a", ChangeType.SOURCE_UPDATE, 1, 2, 1.0)
        second = Change("b", ChangeType.SOURCE_UPDATE, 2, 3, 2.0)

        with pytest.raises(ValueError):
            first.compose(second)


class TestPropagation:
    """Writes invalidate eagerly and notify in topological order."""

    def test_diamond_notifies_once_with_consistent_value(self, store):
        a = Cell(1, store=store)
        b = Computed(lambda: a.value + 1, store=store)
        c = Computed(lambda: a.value * 10, store=store)
        d = Computed(lambda: (b.value, c.value), store=store)
        seen = Mock()
        d.subscribe(seen)

        a.set(2)

        seen.assert_called_once_with((3, 20))

    def test_source_observers_run_before_derived_observers(self, store):
        a = Cell(1, store=store)
        doubled = Computed(lambda: a.value * 2, store=store)
        order = []
        doubled.subscribe(lambda v: order.append("derived"))
        a.subscribe(lambda v: order.append("source"))

        a.set(5)

        assert order == ["source", "derived"]

    def test_writes_from_effects_drain_in_same_flush(self, store):
        a = Cell(1, store=store)
        mirror = Cell(None, store=store)
        Effect(lambda: mirror.set(a.value * 100), store=store)
        seen = Mock()
        mirror.subscribe(seen)

        a.set(2)

        assert mirror.peek() == 200
        seen.assert_called_once_with(200)

    def test_writing_inside_own_notification_is_circular(self, store):
        a = Cell(1, store=store)

        def bounce(value):
            a.set(value + 1)

        a.subscribe(bounce)

        with pytest.raises(CircularDependencyError):
            a.set(2)

    def test_computed_writing_a_cell_raises(self, store):
        target = Cell(0, store=store)
        bad = Computed(lambda: target.set(1), store=store)

        with pytest.raises(SideEffectError):
            bad.value

    def test_failing_observer_is_logged_and_others_still_run(self, store, caplog):
        a = Cell(1, store=store)
        survivor = Mock()

        def broken(value):
            raise RuntimeError("boom")

        a.subscribe(broken)
        a.subscribe(survivor)

        with caplog.at_level(logging.ERROR, logger="vaultgraph.store"):
            a.set(2)

        survivor.assert_called_once_with(2)
        assert "boom" in caplog.text


class TestBatching:
    def test_batch_merges_writes_into_one_notification(self, store):
        a = Cell(0, store=store)
        seen = Mock()
        a.subscribe(seen)

        with store.batch():
            a.set(1)
            a.set(2)
            a.set(3)

        seen.assert_called_once_with(3)

    def test_nested_batches_flush_at_outermost_exit(self, store):
        a = Cell(0, store=store)
        seen = Mock()
        a.subscribe(seen)

        with store.batch():
            with store.batch():
                a.set(1)
            seen.assert_not_called()

        seen.assert_called_once_with(1)

    def test_batch_reverting_to_same_object_is_silent(self, store):
        original = object()
        a = Cell(original, store=store)
        seen = Mock()
        a.subscribe(seen)

        with store.batch():
            a.set(object())
            a.set(original)

        seen.assert_not_called()


class TestHistoryAndStats:
    def test_history_records_merged_changes(self, store):
        a = Cell(0, store=store)

        with store.batch():
            a.set(1)
            a.set(2)
        a.set(3)

        history = store.history()
        assert [(c.old_value, c.new_value) for c in history] == [(0, 2), (2, 3)]
        assert all(c.change_type is ChangeType.SOURCE_UPDATE for c in history)

    def test_history_is_bounded(self, monkeypatch):
        monkeypatch.setattr(ReactiveStore, "_MAX_HISTORY", 3)
        bounded = ReactiveStore()
        a = Cell(0, store=bounded)

        for i in range(1, 6):
            a.set(i)

        assert [c.new_value for c in bounded.history()] == [3, 4, 5]

    def test_stats_counts_nodes_effects_and_observers(self, store):
        a = Cell(1, store=store)
        b = Computed(lambda: a.value + 1, store=store)
        b.subscribe(lambda v: None)
        e = Effect(lambda: a.value, store=store)

        stats = store.stats()

        assert stats["nodes"] == 2
        assert stats["effects"] == 1
        assert stats["observers"] == 1
        assert stats["total_dependencies"] == 2
        e.dispose()


class TestLifecycle:
    def test_close_disposes_effects_and_rejects_writes(self, store):
        a = Cell(1, store=store)
        effect = Effect(lambda: a.value, store=store)

        store.close()

        assert effect.disposed
        assert store.closed
        with pytest.raises(DisposedError):
            a.set(2)

    def test_unobserved_computed_is_collected(self, store):
        a = Cell(1, store=store)
        view = Computed(lambda: a.value, store=store)
        key = view.key
        view.value

        del view

        assert key not in store._nodes
