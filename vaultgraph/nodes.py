"""
Per-file derived views and the built-in type parsers.

Every view here is memoized on the file cell (and, for cross-file queries, on
the graph), so all callers share one view per file and the view lives
exactly as long as the cell does.

Two node types are built in:

- ``campaign``: a collection root. Its frontmatter is validated against
  ``CollectionFrontmatter`` and its name defaults to the file's base name.
- ``character``: a member. It is valid only while it sits under exactly one
  collection root folder.
"""

import logging
import operator
from typing import Any, Callable, Dict, Optional, Tuple

from .equality import values_equal
from .frontmatter import extract_frontmatter
from .memo import memoize_weak
from .observable import Cell, Computed, Reader, only_changes
from .paths import base_name_of, child_of_path, parent_folder_of
from .result import Err, Result, result_equality
from .schemas import CollectionFrontmatter, validate

logger = logging.getLogger(__name__)

COLLECTION_KIND = "campaign"
MEMBER_KIND = "character"


# ============================================================================
# EXCEPTIONS
# ============================================================================


class CollectionAssignmentError(LookupError):
    """A member file has no usable collection root."""

    pass


class CollectionNotFoundError(CollectionAssignmentError):
    pass


class AmbiguousCollectionError(CollectionAssignmentError):
    def __init__(self, roots: Tuple[str, ...]):
        super().__init__(f"multiple collections found: {', '.join(roots)}")
        self.roots = roots


# ============================================================================
# PER-FILE VIEWS
# ============================================================================


@memoize_weak
def frontmatter_of(file_cell: Cell) -> Reader[Result]:
    """Parsed frontmatter of a file; re-emits only when the parse result changes."""
    parsed = Computed(
        lambda: extract_frontmatter(file_cell.value.content), store=file_cell.store
    )
    return only_changes(parsed, result_equality(values_equal))


@memoize_weak
def collection_candidates(graph) -> Callable[[Cell], Reader[Tuple[str, ...]]]:
    """
    Root folders of every collection root enclosing a file, sorted.

    Several roots in the same folder each count, so such a folder is
    ambiguous.
    """

    @memoize_weak
    def candidates_for(file_cell: Cell) -> Reader[Tuple[str, ...]]:
        def matching_roots():
            root_ids = graph.get_all_nodes(COLLECTION_KIND).value
            path = file_cell.value.path
            roots = (parent_folder_of(root_id) for root_id in root_ids)
            return tuple(sorted(root for root in roots if child_of_path(root, path)))

        return only_changes(
            Computed(matching_roots, store=file_cell.store), operator.eq
        )

    return candidates_for


@memoize_weak
def collection_assignment(graph) -> Callable[[Cell], Reader[Optional[str]]]:
    """
    The unique collection root folder enclosing a file, or ``None``.

    ``None`` covers both no match and several matches. Subscribers are
    notified only when the chosen root changes.

    Example:
        root = collection_assignment(graph)(alice_cell)
        root.value  # "c1"
    """

    @memoize_weak
    def assignment_for(file_cell: Cell) -> Reader[Optional[str]]:
        candidates = collection_candidates(graph)(file_cell)

        def unique_root():
            roots = candidates.value
            return roots[0] if len(roots) == 1 else None

        return only_changes(Computed(unique_root, store=file_cell.store), operator.eq)

    return assignment_for


# ============================================================================
# TYPE PARSERS
# ============================================================================


def parse_collection_root(graph, file_cell: Cell) -> Result[CollectionFrontmatter, Exception]:
    def default_name(root: CollectionFrontmatter) -> CollectionFrontmatter:
        if root.name:
            return root
        return root.model_copy(update={"name": base_name_of(file_cell.value.path)})

    return (
        frontmatter_of(file_cell)
        .value.and_then(lambda fm: validate(CollectionFrontmatter, fm or {}))
        .map(default_name)
    )


def parse_member(graph, file_cell: Cell) -> Result[Dict[str, Any], Exception]:
    if collection_assignment(graph)(file_cell).value is None:
        roots = collection_candidates(graph)(file_cell).value
        if len(roots) > 1:
            return Err(AmbiguousCollectionError(roots))
        return Err(CollectionNotFoundError("no collection found"))

    return frontmatter_of(file_cell).value.map(lambda fm: {} if fm is None else fm)


DEFAULT_PARSERS: Dict[str, Callable[[Any, Cell], Result]] = {
    COLLECTION_KIND: parse_collection_root,
    MEMBER_KIND: parse_member,
}


__all__ = [
    "COLLECTION_KIND",
    "MEMBER_KIND",
    "DEFAULT_PARSERS",
    "CollectionAssignmentError",
    "CollectionNotFoundError",
    "AmbiguousCollectionError",
    "frontmatter_of",
    "collection_candidates",
    "collection_assignment",
    "parse_collection_root",
    "parse_member",
]
