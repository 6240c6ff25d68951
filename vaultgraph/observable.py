"""
Observable - Cells, Derived Views and Effects

The handles user code touches. Every handle carries a reference to the
ReactiveStore that schedules it and a string key naming it in the store's
dependency graph.

Core Principles:
1. Identity is the change signal: a view whose function returns the same
   object as last time stops propagation
2. Reads inside a derivation are recorded as its dependencies
3. Derived views are lazy: evaluated on first read, re-evaluated only when
   read again after a dependency changed
4. Change suppression is opt-in through EqualityCell and only_changes
"""

import atexit
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from .equality import values_equal
from .store import (
    UNSET,
    CircularDependencyError,
    ComputationError,
    DisposedError,
    ReactiveStore,
    SideEffectError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")

Equals = Callable[[Any, Any], bool]


# ============================================================================
# READER - The read capability shared by cells and views
# ============================================================================


class Reader(ABC, Generic[T]):
    """
    Anything with a current value that can be read and subscribed to.

    ``value`` records the read as a dependency of the running derivation,
    ``peek()`` reads without recording.
    """

    __slots__ = ()

    _derived = False

    @property
    @abstractmethod
    def value(self) -> T:
        ...

    @abstractmethod
    def peek(self) -> T:
        ...

    @abstractmethod
    def _snapshot(self) -> Any:
        ...

    def get(self) -> T:
        """Alias for the tracked ``value`` read."""
        return self.value

    @property
    def key(self) -> str:
        return self._key

    @property
    def store(self) -> ReactiveStore:
        return self._store

    def subscribe(
        self, callback: Callable[[T], None], call_immediately: bool = False
    ) -> Callable[[], None]:
        """
        Call ``callback(new_value)`` whenever this reader's value changes.

        Returns a function that removes the subscription. Subscribing keeps
        the reader alive until unsubscribed.
        """
        return self._store._subscribe(self, callback, call_immediately)


# ============================================================================
# CELL - Writable leaf
# ============================================================================


class Cell(Reader[T]):
    """
    Writable leaf value.

    Writing the identical object is a no-op. Any other write propagates,
    even when the new value compares equal to the old one.
    """

    __slots__ = ("_store", "_key", "_value", "_memo", "__weakref__")

    def __init__(
        self,
        initial_value: T = None,
        store: Optional[ReactiveStore] = None,
        key: Optional[str] = None,
    ):
        self._store = store if store is not None else get_global_store()
        self._key = key or self._store._next_key("cell")
        self._value = initial_value
        self._memo: Dict[Any, Any] = {}
        self._store._register(self)

    @property
    def value(self) -> T:
        self._store._track(self._key, self._value)
        return self._value

    @value.setter
    def value(self, new_value: T) -> None:
        self.set(new_value)

    def peek(self) -> T:
        return self._value

    def set(self, new_value: T) -> None:
        if new_value is self._value:
            return
        self._store._write(self, new_value)

    def _snapshot(self) -> Any:
        return self._value

    def _invalidate(self) -> None:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._key}={self._value!r})"


class EqualityCell(Cell[T]):
    """
    Cell that discards writes equal to its current value.

    The predicate is only consulted when neither side is ``None``; on a
    discarded write the stored reference stays the old object.
    """

    __slots__ = ("_equals",)

    def __init__(
        self,
        initial_value: T = None,
        equals: Optional[Equals] = None,
        store: Optional[ReactiveStore] = None,
        key: Optional[str] = None,
    ):
        super().__init__(initial_value, store=store, key=key)
        self._equals = equals if equals is not None else values_equal

    def set(self, new_value: T) -> None:
        old_value = self._value
        if old_value is not None and new_value is not None:
            if self._equals(old_value, new_value):
                return
        super().set(new_value)


# ============================================================================
# COMPUTED - Lazy derived view
# ============================================================================


class Computed(Reader[T]):
    """
    Read-only view derived from a zero-argument function.

    Failures of the function are cached as ComputationError and raised on
    every read until a dependency changes.
    """

    __slots__ = (
        "_store",
        "_key",
        "_fn",
        "_value",
        "_error",
        "_dirty",
        "_deps",
        "_memo",
        "__weakref__",
    )

    _derived = True

    def __init__(
        self,
        fn: Callable[[], T],
        store: Optional[ReactiveStore] = None,
        key: Optional[str] = None,
    ):
        self._store = store if store is not None else get_global_store()
        self._key = key or self._store._next_key("computed")
        self._fn = fn
        self._value: Any = None
        self._error: Optional[ComputationError] = None
        self._dirty = True
        self._deps: Optional[Dict[str, Any]] = None
        self._memo: Dict[Any, Any] = {}
        self._store._register(self)

    @property
    def value(self) -> T:
        snapshot = self._snapshot()
        self._store._track(self._key, snapshot)
        if self._error is not None:
            raise self._error
        return snapshot

    def peek(self) -> T:
        snapshot = self._snapshot()
        if self._error is not None:
            raise self._error
        return snapshot

    def set(self, new_value: Any) -> None:
        raise TypeError(f"{self._key} is a derived view and cannot be set")

    def _snapshot(self) -> Any:
        """Current output (value or cached error), pulling if dirty."""
        store = self._store
        with store._lock:
            if self._dirty:
                if self._deps is None or store._is_stale(self._deps):
                    self._recompute()
                else:
                    self._dirty = False
            return self._error if self._error is not None else self._value

    def _recompute(self) -> None:
        store = self._store
        accessed: Dict[str, Any] = {}
        old_deps = self._deps or {}

        with store._computing(self._key):
            try:
                with store._tracking(accessed):
                    value = self._fn()
            except (CircularDependencyError, SideEffectError):
                store._rebind(self._key, old_deps, {})
                self._deps = None
                raise
            except Exception as e:
                error = ComputationError(f"Error computing '{self._key}': {e}")
                error.__cause__ = e
                self._error = error
                logger.debug("Computation of '%s' failed: %r", self._key, e)
            else:
                self._value = value
                self._error = None

            store._rebind(self._key, old_deps, accessed)
            self._deps = accessed

        self._dirty = False

    def _invalidate(self) -> None:
        self._dirty = True

    def __repr__(self) -> str:
        state = "dirty" if self._dirty else repr(self._value)
        return f"Computed({self._key}={state})"


# ============================================================================
# EFFECT - Eager side effect
# ============================================================================


class Effect:
    """
    Function re-run after every flush in which something it read changed.

    The function runs once on construction. If it returns a callable, that
    callable is invoked before the next run and on dispose.
    """

    __slots__ = ("_store", "_key", "_fn", "_cleanup", "_deps", "_disposed")

    def __init__(
        self,
        fn: Callable[[], Any],
        store: Optional[ReactiveStore] = None,
    ):
        self._store = store if store is not None else get_global_store()
        self._key = self._store._next_key("effect")
        self._fn = fn
        self._cleanup: Optional[Callable[[], None]] = None
        self._deps: Dict[str, Any] = {}
        self._disposed = False

        with self._store._lock:
            self._store._register_effect(self)
            self._run()

    def _run(self) -> None:
        if self._disposed:
            raise DisposedError(f"Effect '{self._key}' has been disposed")

        self._run_cleanup()

        store = self._store
        accessed: Dict[str, Any] = {}
        try:
            with store._tracking(accessed):
                result = self._fn()
        finally:
            store._rebind(self._key, self._deps, accessed)
            self._deps = accessed

        if callable(result):
            self._cleanup = result

    def _run_cleanup(self) -> None:
        cleanup, self._cleanup = self._cleanup, None
        if cleanup is not None:
            cleanup()

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        """Stop re-running. Safe to call more than once."""
        if self._disposed:
            return
        self._disposed = True
        self._store._unregister_effect(self._key)
        self._deps = {}
        self._run_cleanup()

    __call__ = dispose

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else f"{len(self._deps)} deps"
        return f"Effect({self._key}, {state})"


# ============================================================================
# CHANGE FILTERS
# ============================================================================


def only_changes(view: Reader[T], equals: Equals) -> Computed[T]:
    """
    Wrap ``view`` so that equal successive outputs re-emit the first object.

    Downstream views compare by identity, so returning the previous object
    stops propagation.

    Example:
        assignment = only_changes(candidates_view, lambda a, b: a == b)
    """
    prev: Any = UNSET

    def pick():
        nonlocal prev
        nxt = view.value
        if prev is not UNSET and equals(prev, nxt):
            return prev
        prev = nxt
        return nxt

    return Computed(pick, store=view.store)


def with_previous(
    fn: Callable[[U], U],
    initial: U = None,
    store: Optional[ReactiveStore] = None,
) -> Computed[U]:
    """View whose function receives its own previous output (``initial`` first)."""
    prev = initial

    def step():
        nonlocal prev
        prev = fn(prev)
        return prev

    return Computed(step, store=store)


# ============================================================================
# FACTORIES
# ============================================================================


def cell(initial_value: Any = None, store: Optional[ReactiveStore] = None) -> Cell:
    """Create a writable cell in ``store`` (global store by default)."""
    return Cell(initial_value, store=store)


def equality_cell(
    initial_value: Any = None,
    equals: Optional[Equals] = None,
    store: Optional[ReactiveStore] = None,
) -> EqualityCell:
    return EqualityCell(initial_value, equals=equals, store=store)


def computed(fn: Callable[[], Any], store: Optional[ReactiveStore] = None) -> Computed:
    """
    Create a lazy derived view.

    Example:
        first = cell("Ada")
        greeting = computed(lambda: f"Hello {first.value}")
    """
    return Computed(fn, store=store)


def effect(fn: Callable[[], Any], store: Optional[ReactiveStore] = None) -> Effect:
    """Run ``fn`` now and again whenever something it read changes."""
    return Effect(fn, store=store)


def batch(store: Optional[ReactiveStore] = None):
    """
    Create batch context for grouped updates.

    Writes inside the batch are merged per cell and propagated once when the
    outermost batch exits.

    Example:
        with batch():
            a.value = 10
            b.value = 20
    """
    return (store if store is not None else get_global_store()).batch()


def untracked(fn: Callable[[], T], store: Optional[ReactiveStore] = None) -> T:
    """Call ``fn`` without recording its reads as dependencies."""
    with (store if store is not None else get_global_store()).untracked():
        return fn()


# ============================================================================
# GLOBAL STORE
# ============================================================================

_global_store = None
_global_store_lock = threading.Lock()


def get_global_store() -> ReactiveStore:
    """Get or create global store singleton."""
    global _global_store
    if _global_store is None:
        with _global_store_lock:
            if _global_store is None:
                _global_store = ReactiveStore()
    return _global_store


def _reset_global_store():
    """Reset global store (for testing)."""
    global _global_store
    if _global_store is not None:
        _global_store.close()
    _global_store = None


def _cleanup_global_store():
    global _global_store
    if _global_store is not None:
        try:
            _global_store.close()
        except Exception:
            logger.debug("Global store cleanup failed", exc_info=True)
        _global_store = None


atexit.register(_cleanup_global_store)


__all__ = [
    "Reader",
    "Cell",
    "EqualityCell",
    "Computed",
    "Effect",
    "only_changes",
    "with_previous",
    "cell",
    "equality_cell",
    "computed",
    "effect",
    "batch",
    "untracked",
    "get_global_store",
]
