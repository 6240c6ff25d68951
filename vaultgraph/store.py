"""
ReactiveStore - Push/Pull Scheduler for the Content Graph

The store owns the dependency topology between reactive nodes and decides when
each of them re-runs. It does not hold values itself: cells and computeds carry
their own state and register with the store under a string key.

Propagation model:
- Eager invalidation: a write marks every transitive dependent dirty at once
- Lazy pull: a dirty computed re-runs only when read, and only if a value it
  read last time has changed identity
- Flush: after a write (or at the end of a batch) source observers are
  notified, then observed computeds and effects are refreshed in topological
  order. Writes made by effects during a flush are drained by the same flush.

Example:
    store = ReactiveStore()
    x = Cell(1, store=store)
    doubled = Computed(lambda: x.value * 2, store=store)
    doubled.subscribe(print)
    x.set(2)  # prints 4
"""

import logging
import threading
import time
import weakref
from collections import defaultdict, deque
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

logger = logging.getLogger(__name__)


class _Unset:
    """Sentinel for 'nothing recorded yet'."""

    def __repr__(self):
        return "UNSET"


UNSET = _Unset()


# ============================================================================
# EXCEPTIONS
# ============================================================================


class ReactiveError(Exception):
    """Base class for errors raised by the reactive runtime."""

    pass


class CircularDependencyError(ReactiveError):
    """Raised when a circular dependency is detected."""

    pass


class ComputationError(ReactiveError):
    """Raised when a computed value fails to evaluate."""

    pass


class SideEffectError(ReactiveError):
    """Raised when a computed function writes to a cell."""

    pass


class DisposedError(ReactiveError):
    """Raised when mutating through a store, effect or graph that was closed."""

    pass


# ============================================================================
# CHANGE EVENTS
# ============================================================================


class ChangeType(Enum):
    """Type of change that occurred."""

    SOURCE_UPDATE = "source"
    COMPUTED_UPDATE = "computed"


@dataclass(frozen=True, slots=True)
class Change:
    """Immutable change event delivered to observers."""

    key: str
    change_type: ChangeType
    old_value: Any
    new_value: Any
    timestamp: float

    def is_identity(self) -> bool:
        return self.old_value is self.new_value

    def compose(self, other: "Change") -> "Change":
        if self.key != other.key:
            raise ValueError("Cannot compose changes for different keys")

        return Change(
            key=self.key,
            change_type=self.change_type,
            old_value=self.old_value,
            new_value=other.new_value,
            timestamp=max(self.timestamp, other.timestamp),
        )

    def __repr__(self) -> str:
        return f"Change({self.key}: {self.old_value!r} → {self.new_value!r})"


# ============================================================================
# GRAPH TOPOLOGY
# ============================================================================


class _DependencyGraph:
    """Edges from a node to the nodes that read it.

    Adjacency is kept in insertion-ordered dicts so that propagation visits
    siblings in the order they first subscribed.
    """

    def __init__(self):
        self._forward: Dict[str, Dict[str, None]] = defaultdict(dict)
        self._reverse: Dict[str, Dict[str, None]] = defaultdict(dict)

    def add_edge(self, source: str, dependent: str) -> None:
        if dependent not in self._forward[source]:
            self._forward[source][dependent] = None
            self._reverse[dependent][source] = None

    def remove_edge(self, source: str, dependent: str) -> None:
        if dependent in self._forward.get(source, ()):
            del self._forward[source][dependent]
            del self._reverse[dependent][source]

    def remove_node(self, key: str) -> None:
        for dependent in self._forward.pop(key, {}):
            self._reverse[dependent].pop(key, None)
        for source in self._reverse.pop(key, {}):
            self._forward[source].pop(key, None)

    def get_all_dependents(self, key: str) -> Dict[str, None]:
        """Get all transitive dependents of a key, in discovery order."""
        affected: Dict[str, None] = {}
        to_visit = [key]

        while to_visit:
            next_level = []
            for node in to_visit:
                for dep in self._forward.get(node, ()):
                    if dep not in affected:
                        affected[dep] = None
                        next_level.append(dep)
            to_visit = next_level

        return affected

    def topological_sort(self, keys: Iterable[str]) -> List[str]:
        """Sort keys in topological order."""
        keys = dict.fromkeys(keys)
        if not keys:
            return []

        in_degree = {}
        for key in keys:
            in_degree[key] = sum(1 for dep in self._reverse.get(key, ()) if dep in keys)

        queue = deque([k for k in keys if in_degree[k] == 0])
        result = []

        while queue:
            current = queue.popleft()
            result.append(current)

            for dependent in self._forward.get(current, ()):
                if dependent in keys:
                    in_degree[dependent] -= 1
                    if in_degree[dependent] == 0:
                        queue.append(dependent)

        return result

    def edge_count(self) -> int:
        return sum(len(deps) for deps in self._forward.values())

    def clear(self) -> None:
        self._forward.clear()
        self._reverse.clear()


# ============================================================================
# MAIN STORE
# ============================================================================


class ReactiveStore:
    """
    Scheduler and dependency registry shared by a family of reactive nodes.

    Nodes (cells and computeds) are held weakly: a derived view nobody
    references any more disappears from the store with it. Effects are held
    strongly until disposed. Observers keep the node they watch alive.
    """

    _MAX_HISTORY = 1000

    def __init__(self):
        self._nodes: "weakref.WeakValueDictionary[str, Any]" = (
            weakref.WeakValueDictionary()
        )
        self._effects: Dict[str, Any] = {}
        self._graph = _DependencyGraph()

        self._observers: Dict[str, List[Callable[[Change], None]]] = defaultdict(list)
        self._emitted: Dict[str, Any] = {}

        self._lock = threading.RLock()
        self._ctx = threading.local()

        self._key_counter = 0
        self._batch_depth = 0
        self._pending_changes: List[Change] = []
        self._flushing = False
        self._closed = False
        self._history: deque = deque(maxlen=self._MAX_HISTORY)

    # ========================================================================
    # REGISTRATION
    # ========================================================================

    def _next_key(self, prefix: str) -> str:
        self._key_counter += 1
        return f"{prefix}${self._key_counter}"

    def _register(self, node: Any) -> None:
        self._check_open()
        self._nodes[node._key] = node

    def _register_effect(self, effect: Any) -> None:
        self._check_open()
        self._effects[effect._key] = effect

    def _unregister_effect(self, key: str) -> None:
        with self._lock:
            self._effects.pop(key, None)
            self._graph.remove_node(key)

    def _check_open(self) -> None:
        if self._closed:
            raise DisposedError("ReactiveStore has been closed")

    # ========================================================================
    # DEPENDENCY TRACKING
    # ========================================================================

    def _track(self, key: str, value: Any) -> None:
        """Record a read of ``key`` by the derivation currently running."""
        accessed = getattr(self._ctx, "accessed", None)
        if accessed is not None and key not in accessed:
            accessed[key] = value

    @contextmanager
    def _tracking(self, accessed: Optional[Dict[str, Any]]) -> Iterator[None]:
        prev = getattr(self._ctx, "accessed", None)
        self._ctx.accessed = accessed
        try:
            yield
        finally:
            self._ctx.accessed = prev

    def untracked(self):
        """Context in which reads register no dependencies."""
        return self._tracking(None)

    def _computing_stack(self) -> List[str]:
        stack = getattr(self._ctx, "computing_stack", None)
        if stack is None:
            stack = self._ctx.computing_stack = []
        return stack

    @contextmanager
    def _computing(self, key: str) -> Iterator[None]:
        stack = self._computing_stack()
        if key in stack:
            raise CircularDependencyError(
                f"Circular dependency detected involving '{key}'. "
                f"Chain: {' → '.join(stack)} → {key}"
            )
        stack.append(key)
        try:
            yield
        finally:
            stack.pop()

    def _rebind(self, key: str, old_deps: Dict[str, Any], new_deps: Dict[str, Any]):
        """Replace the incoming edges of ``key``."""
        for dep in old_deps:
            if dep not in new_deps:
                self._graph.remove_edge(dep, key)
        for dep in new_deps:
            if dep not in old_deps:
                self._graph.add_edge(dep, key)

    def _is_stale(self, deps: Dict[str, Any]) -> bool:
        """True if any recorded read would now return a different object."""
        for key, seen in deps.items():
            node = self._nodes.get(key)
            if node is None or node._snapshot() is not seen:
                return True
        return False

    # ========================================================================
    # WRITES AND PROPAGATION
    # ========================================================================

    def _write(self, cell: Any, new_value: Any) -> None:
        """Store a new value on a source cell and propagate it."""
        with self._lock:
            key = cell._key
            self._check_writable(key)

            old_value = cell._value
            cell._value = new_value
            self._invalidate_dependents(key)

            self._pending_changes.append(
                Change(
                    key=key,
                    change_type=ChangeType.SOURCE_UPDATE,
                    old_value=old_value,
                    new_value=new_value,
                    timestamp=time.time(),
                )
            )

            if self._batch_depth == 0:
                self._flush()

    def _check_writable(self, key: str) -> None:
        self._check_open()

        stack = getattr(self._ctx, "computing_stack", None)
        if stack:
            raise SideEffectError(
                f"Cannot write '{key}' while computing '{stack[-1]}'"
            )

        notifying = getattr(self._ctx, "notifying_keys", None)
        if notifying and key in notifying:
            raise CircularDependencyError(
                f"Cannot modify '{key}' from within its own notification"
            )

    def _invalidate_dependents(self, key: str) -> None:
        for dependent in self._graph.get_all_dependents(key):
            node = self._nodes.get(dependent)
            if node is not None:
                node._invalidate()

    def _flush(self) -> None:
        """Deliver pending changes. Re-entrant calls are drained by the outer one."""
        if self._flushing:
            return

        self._flushing = True
        try:
            with self._tracking(None):
                self._drain()
        except BaseException:
            self._pending_changes = []
            raise
        finally:
            self._flushing = False

    def _drain(self) -> None:
        while self._pending_changes:
            changes = self._merge_changes(self._pending_changes)
            self._pending_changes = []

            affected: Dict[str, None] = {}
            for change in changes:
                if change.is_identity():
                    continue
                self._history.append(change)
                affected.update(self._graph.get_all_dependents(change.key))
                self._notify(change)

            for key in self._graph.topological_sort(affected):
                self._refresh(key)

    def _refresh(self, key: str) -> None:
        """Bring an affected node up to date if anything is listening to it."""
        effect = self._effects.get(key)
        if effect is not None:
            if self._is_stale(effect._deps):
                try:
                    effect._run()
                except CircularDependencyError:
                    raise
                except Exception:
                    logger.exception("Effect '%s' failed", key)
            return

        node = self._nodes.get(key)
        if node is None:
            self._graph.remove_node(key)
            return

        if not self._observers.get(key):
            return

        new_value = node._snapshot()
        old_value = self._emitted.get(key, UNSET)
        if new_value is old_value:
            return

        self._emitted[key] = new_value
        if isinstance(new_value, ComputationError):
            logger.debug("Not notifying '%s' observers of failure: %s", key, new_value)
            return

        self._notify(
            Change(
                key=key,
                change_type=ChangeType.COMPUTED_UPDATE,
                old_value=old_value,
                new_value=new_value,
                timestamp=time.time(),
            )
        )

    def _notify(self, change: Change) -> None:
        ctx = self._ctx

        if not hasattr(ctx, "notifying_keys"):
            ctx.notifying_keys = set()

        ctx.notifying_keys.add(change.key)

        try:
            for callback in list(self._observers.get(change.key, ())):
                try:
                    callback(change)
                except CircularDependencyError:
                    raise
                except Exception:
                    logger.exception("Observer of '%s' failed", change.key)
        finally:
            ctx.notifying_keys.discard(change.key)

    def _merge_changes(self, changes: List[Change]) -> List[Change]:
        by_key: Dict[str, Change] = {}
        for change in changes:
            previous = by_key.get(change.key)
            by_key[change.key] = change if previous is None else previous.compose(change)
        return list(by_key.values())

    # ========================================================================
    # SUBSCRIPTION
    # ========================================================================

    def _subscribe(
        self,
        node: Any,
        callback: Callable[[Any], None],
        call_immediately: bool = False,
    ) -> Callable[[], None]:
        """Attach ``callback`` to future values of ``node``."""
        with self._lock:
            self._check_open()
            key = node._key

            # Evaluating here wires up the dependencies of a computed.
            current = node._snapshot()
            if node._derived and key not in self._emitted:
                self._emitted[key] = current

            # The default argument keeps the node alive while subscribed.
            def on_change(change: Change, _node=node) -> None:
                callback(change.new_value)

            self._observers[key].append(on_change)

            def unsubscribe() -> None:
                with self._lock:
                    observers = self._observers.get(key)
                    if observers and on_change in observers:
                        observers.remove(on_change)
                    if not observers:
                        self._observers.pop(key, None)
                        self._emitted.pop(key, None)

        if call_immediately:
            callback(node.peek())

        return unsubscribe

    # ========================================================================
    # BATCHING
    # ========================================================================

    def batch(self) -> "BatchContext":
        """Defer propagation until the outermost batch exits."""
        return BatchContext(self)

    # ========================================================================
    # UTILITY METHODS
    # ========================================================================

    def history(self, limit: int = 100) -> List[Change]:
        with self._lock:
            return list(self._history)[-limit:]

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "nodes": len(self._nodes),
                "effects": len(self._effects),
                "observers": sum(len(obs) for obs in self._observers.values()),
                "history_size": len(self._history),
                "total_dependencies": self._graph.edge_count(),
            }

    def close(self) -> None:
        """Dispose every effect and drop all observers. Further writes raise."""
        with self._lock:
            for effect in list(self._effects.values()):
                effect.dispose()
            self._observers.clear()
            self._emitted.clear()
            self._history.clear()
            self._pending_changes = []
            self._graph.clear()
            self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def __repr__(self) -> str:
        return f"ReactiveStore(nodes={len(self._nodes)}, effects={len(self._effects)})"


# ============================================================================
# BATCH CONTEXT
# ============================================================================


class BatchContext:
    def __init__(self, store: ReactiveStore):
        self._store = store

    def __enter__(self):
        self._store._lock.acquire()
        self._store._batch_depth += 1
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            self._store._batch_depth -= 1
            if self._store._batch_depth == 0:
                self._store._flush()
        finally:
            self._store._lock.release()

        return False


__all__ = [
    "ReactiveStore",
    "BatchContext",
    "Change",
    "ChangeType",
    "ReactiveError",
    "CircularDependencyError",
    "ComputationError",
    "SideEffectError",
    "DisposedError",
    "UNSET",
]
