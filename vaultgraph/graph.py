"""
Graph - Typed Node Registry over Raw File Records

The graph keeps one raw cell per ingested file (``@file/<path>``) and, for
each file whose frontmatter names a known kind, one typed node
(``<kind>/<path>``) holding the parser's Result.

Ingestion pipeline:
1. ``add_or_update_file`` upserts the raw cell; equal records are dropped
2. A per-file effect watches the file's kind
3. When the kind (or path) changes, the old typed node is removed and the new
   one registered in a single batch

All registry state lives in one cell holding an immutable mapping, so views
such as ``get_all_nodes(type)`` update atomically.

Example:
    graph = Graph()
    graph.add_or_update_file(FileRecord("c1/index.md", "1", text))
    graph.get_all_nodes("campaign").value  # frozenset({"c1/index.md"})
"""

import logging
import operator
from collections import Counter
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Tuple

from .equality import sets_equal, values_equal
from .frontmatter import KIND_FIELD
from .memo import memoize_strong, memoize_weak
from .nodes import DEFAULT_PARSERS, frontmatter_of
from .observable import (
    Cell,
    Computed,
    Effect,
    EqualityCell,
    Reader,
    get_global_store,
    only_changes,
    with_previous,
)
from .result import result_equality
from .store import ComputationError, DisposedError, ReactiveStore

logger = logging.getLogger(__name__)

FILE_TYPE = "@file"

Parser = Callable[[Any, Cell], Any]


@dataclass(frozen=True)
class FileRecord:
    """A raw file as pushed by the host: path, revision marker and text."""

    path: str
    revision: str
    content: str
    deleted: bool = False


def node_key(type: str, id: str) -> str:
    return f"{type}/{id}"


def same_file(a: FileRecord, b: FileRecord) -> bool:
    """Records are interchangeable when path, content and deletion agree."""
    return a.path == b.path and a.content == b.content and a.deleted == b.deleted


class GraphContext(Protocol):
    """What a type parser may ask of the graph."""

    def get_atom(self, key: str) -> Optional[Cell]:
        ...

    def get_node(self, type: str, id: str) -> Optional[Reader]:
        ...

    def get_all_nodes(self, type: str) -> Reader[frozenset]:
        ...


def _with_entry(nodes: Mapping[str, Any], key: str, node: Any) -> Mapping[str, Any]:
    updated = dict(nodes)
    updated[key] = node
    return MappingProxyType(updated)


def _without_entry(nodes: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    return MappingProxyType({k: v for k, v in nodes.items() if k != key})


class Graph:
    """
    Registry of raw file cells and typed nodes derived from them.

    Args:
        parsers: kind -> ``parser(graph, file_cell)`` returning a Result.
            Defaults to the built-in collection root and member parsers.
        kind_field: frontmatter key naming a file's kind.
        store: reactive store to build on (the global store by default).
    """

    def __init__(
        self,
        parsers: Optional[Mapping[str, Parser]] = None,
        *,
        kind_field: str = KIND_FIELD,
        store: Optional[ReactiveStore] = None,
    ):
        self._store = store if store is not None else get_global_store()
        self._parsers: Dict[str, Parser] = dict(
            DEFAULT_PARSERS if parsers is None else parsers
        )
        self._kind_field = kind_field
        self._nodes: Cell = Cell(MappingProxyType({}), store=self._store)
        self._subscriptions: Dict[str, List[Callable[[], None]]] = {}
        self._memo: Dict[Any, Any] = {}
        self._closed = False

        @memoize_strong
        def all_nodes_of_type(type: str) -> Computed:
            prefix = type + "/"

            def ids_of_type(prev):
                ids = frozenset(
                    key[len(prefix) :]
                    for key in self._nodes.value
                    if key.startswith(prefix)
                )
                return prev if prev is not None and sets_equal(prev, ids) else ids

            return with_previous(ids_of_type, store=self._store)

        @memoize_weak
        def kind_of(file_cell: Cell) -> Reader[Optional[str]]:
            def read_kind():
                fm = frontmatter_of(file_cell).value.unwrap_or(None) or {}
                kind = fm.get(self._kind_field)
                return kind if isinstance(kind, str) else None

            return only_changes(Computed(read_kind, store=self._store), operator.eq)

        self._all_nodes_of_type = all_nodes_of_type
        self.kind_of = kind_of

    # ========================================================================
    # INGESTION
    # ========================================================================

    def add_or_update_file(self, file: FileRecord) -> Cell:
        """
        Upsert the raw cell for ``file.path`` and return it.

        Re-ingesting a record with the same path, content and deletion flag
        changes nothing.
        """
        self._check_open()
        key = node_key(FILE_TYPE, file.path)

        existing = self.get_atom(key)
        if existing is not None:
            existing.set(file)
            return existing

        file_cell = self.get_or_create_atom(key, file, same_file)
        self._subscriptions.setdefault(key, []).append(self._watch_kind(file_cell))
        return file_cell

    def _watch_kind(self, file_cell: Cell) -> Effect:
        """Keep the typed node of ``file_cell`` in line with its kind and path."""
        kind_view = self.kind_of(file_cell)
        registered: Optional[Tuple[str, str]] = None

        def sync_registration():
            nonlocal registered
            kind = kind_view.value
            record = file_cell.value

            target = None
            if not record.deleted and kind in self._parsers:
                target = (kind, record.path)
            if target == registered:
                return

            with self._store.batch(), self._store.untracked():
                if registered is not None:
                    self.remove_node(*registered)
                if target is not None:
                    parse = self._parsers[target[0]]
                    self.register_node(
                        target[0],
                        target[1],
                        lambda ctx: parse(ctx, file_cell),
                        result_equality(values_equal),
                    )
                registered = target

        return Effect(sync_registration, store=self._store)

    def remove_file(self, path: str) -> bool:
        """Drop the file's typed node and raw cell. Returns False for unknown paths."""
        self._check_open()
        file_cell = self.get_atom(node_key(FILE_TYPE, path))
        if file_cell is None:
            logger.warning("Cannot remove unknown file: %s", path)
            return False

        file_cell.set(replace(file_cell.peek(), deleted=True))
        self.remove_node(FILE_TYPE, path)
        return True

    def rename_file(self, old_path: str, new_path: str) -> bool:
        """Move the raw cell to ``new_path``; its typed node follows."""
        self._check_open()
        old_key = node_key(FILE_TYPE, old_path)
        new_key = node_key(FILE_TYPE, new_path)

        file_cell = self.get_atom(old_key)
        if file_cell is None:
            logger.warning("Cannot rename unknown file: %s", old_path)
            return False
        if old_path == new_path:
            return True
        if self.get_atom(new_key) is not None:
            self.remove_file(new_path)

        with self._store.batch():
            nodes = dict(self._nodes.peek())
            nodes[new_key] = nodes.pop(old_key)
            self._nodes.set(MappingProxyType(nodes))
            self._subscriptions[new_key] = self._subscriptions.pop(old_key, [])
            file_cell.set(replace(file_cell.peek(), path=new_path))

        logger.debug("Renamed %s -> %s", old_path, new_path)
        return True

    # ========================================================================
    # ATOMS
    # ========================================================================

    def get_or_create_atom(
        self,
        key: str,
        value: Any,
        equals: Optional[Callable[[Any, Any], bool]] = None,
    ) -> Cell:
        self._check_open()
        existing = self.get_atom(key)
        if existing is not None:
            return existing

        if equals is not None:
            atom = EqualityCell(value, equals=equals, store=self._store)
        else:
            atom = Cell(value, store=self._store)
        self._nodes.set(_with_entry(self._nodes.peek(), key, atom))
        logger.debug("Created atom %s", key)
        return atom

    def set_atom(
        self,
        key: str,
        value: Any,
        equals: Optional[Callable[[Any, Any], bool]] = None,
    ) -> Cell:
        existing = self.get_atom(key)
        if existing is None:
            return self.get_or_create_atom(key, value, equals)
        self._check_open()
        existing.set(value)
        return existing

    def get_atom(self, key: str) -> Optional[Cell]:
        return self._nodes.peek().get(key)

    def get_atom_tracked(self, key: str) -> Optional[Cell]:
        return self._nodes.value.get(key)

    # ========================================================================
    # TYPED NODES
    # ========================================================================

    def register_node(
        self,
        type: str,
        id: str,
        fn: Callable[["Graph"], Any],
        equals: Optional[Callable[[Any, Any], bool]] = None,
    ) -> Reader:
        """
        Register ``fn(graph)`` as the node ``type/id`` and return its view.

        A live node under the same key is returned unchanged.
        """
        self._check_open()
        key = node_key(type, id)

        with self._store.untracked():
            nodes = self._nodes.peek()
            existing = nodes.get(key)
            if existing is not None:
                logger.warning("Ignoring duplicate node registration: %s", key)
                return existing

            node: Reader = Computed(lambda: fn(self), store=self._store)
            if equals is not None:
                node = only_changes(node, equals)

            self._nodes.set(_with_entry(nodes, key, node))
            self._subscriptions.setdefault(key, []).append(
                node.subscribe(lambda value: self.on_update(type, id, "changed", value))
            )

        logger.debug("Registered node %s", key)
        return node

    def remove_node(self, type: str, id: str) -> None:
        key = node_key(type, id)

        with self._store.untracked():
            nodes = self._nodes.peek()
            if key not in nodes:
                return

            for unsubscribe in self._subscriptions.pop(key, []):
                try:
                    unsubscribe()
                except Exception:
                    logger.exception("Unsubscribing %s failed", key)

            self._nodes.set(_without_entry(nodes, key))

        self.on_update(type, id, "deleted", None)

    def get_node(self, type: str, id: str) -> Optional[Reader]:
        return self._nodes.peek().get(node_key(type, id))

    def get_node_tracked(self, type: str, id: str) -> Optional[Reader]:
        return self._nodes.value.get(node_key(type, id))

    def get_all_nodes(self, type: str) -> Reader[frozenset]:
        """Ids registered under ``type``; the same frozenset while the set is unchanged."""
        return self._all_nodes_of_type(type)

    def on_update(self, type: str, id: str, action: str, value: Any) -> None:
        """Called with ``"changed"`` or ``"deleted"``. Override to react."""
        logger.debug("Node %s %s", node_key(type, id), action)

    # ========================================================================
    # UTILITY METHODS
    # ========================================================================

    def snapshot(self) -> Dict[str, Any]:
        """Current value of every node and atom by key."""
        result = {}
        for key, node in self._nodes.peek().items():
            try:
                result[key] = node.peek()
            except ComputationError as e:
                result[key] = e
        return result

    def stats(self) -> Dict[str, Any]:
        nodes = self._nodes.peek()
        return {
            "nodes": len(nodes),
            "by_type": dict(Counter(key.split("/", 1)[0] for key in nodes)),
            "subscriptions": sum(len(subs) for subs in self._subscriptions.values()),
            "store": self._store.stats(),
        }

    def close(self) -> None:
        """Dispose every subscription and empty the registry."""
        if self._closed:
            return

        with self._store.batch():
            for key, unsubscribers in list(self._subscriptions.items()):
                for unsubscribe in unsubscribers:
                    try:
                        unsubscribe()
                    except Exception:
                        logger.exception("Unsubscribing %s failed", key)
            self._subscriptions.clear()
            self._nodes.set(MappingProxyType({}))

        self._all_nodes_of_type.cache_clear()
        self._closed = True

    def _check_open(self) -> None:
        if self._closed:
            raise DisposedError("Graph has been closed")

    def __repr__(self) -> str:
        return f"Graph(nodes={len(self._nodes.peek())})"


__all__ = [
    "Graph",
    "GraphContext",
    "FileRecord",
    "FILE_TYPE",
    "node_key",
    "same_file",
]
