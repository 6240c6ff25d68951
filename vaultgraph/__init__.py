"""
vaultgraph - Reactive Content Graph

An incremental index over a vault of text files. Raw file records are pushed
in; typed nodes are derived from each file's frontmatter and kept up to date
without reprocessing unrelated files.
"""

# Scheduler and errors
from .store import (
    BatchContext,
    Change,
    ChangeType,
    CircularDependencyError,
    ComputationError,
    DisposedError,
    ReactiveError,
    ReactiveStore,
    SideEffectError,
)

# Reactive primitives
from .observable import (
    Cell,
    Computed,
    Effect,
    EqualityCell,
    Reader,
    _reset_global_store,
    batch,
    cell,
    computed,
    effect,
    equality_cell,
    get_global_store,
    only_changes,
    untracked,
    with_previous,
)

from .equality import sets_equal, values_equal
from .memo import memoize_strong, memoize_weak
from .result import Err, Ok, Result, result_equality

# Content graph
from .frontmatter import KIND_FIELD, FrontmatterError, extract_frontmatter
from .graph import FILE_TYPE, FileRecord, Graph, GraphContext, node_key
from .nodes import (
    COLLECTION_KIND,
    DEFAULT_PARSERS,
    MEMBER_KIND,
    AmbiguousCollectionError,
    CollectionAssignmentError,
    CollectionNotFoundError,
    collection_assignment,
    collection_candidates,
    frontmatter_of,
)
from .paths import base_name_of, child_of_path, parent_folder_of

__all__ = [
    # Store
    "ReactiveStore",
    "BatchContext",
    "Change",
    "ChangeType",
    # Exceptions
    "ReactiveError",
    "CircularDependencyError",
    "ComputationError",
    "SideEffectError",
    "DisposedError",
    "FrontmatterError",
    "CollectionAssignmentError",
    "CollectionNotFoundError",
    "AmbiguousCollectionError",
    # Primitives
    "Reader",
    "Cell",
    "EqualityCell",
    "Computed",
    "Effect",
    "cell",
    "equality_cell",
    "computed",
    "effect",
    "batch",
    "untracked",
    "only_changes",
    "with_previous",
    "get_global_store",
    # Helpers
    "memoize_weak",
    "memoize_strong",
    "values_equal",
    "sets_equal",
    "Ok",
    "Err",
    "Result",
    "result_equality",
    "extract_frontmatter",
    "KIND_FIELD",
    "child_of_path",
    "parent_folder_of",
    "base_name_of",
    # Graph
    "Graph",
    "GraphContext",
    "FileRecord",
    "FILE_TYPE",
    "node_key",
    "frontmatter_of",
    "collection_candidates",
    "collection_assignment",
    "COLLECTION_KIND",
    "MEMBER_KIND",
    "DEFAULT_PARSERS",
]
