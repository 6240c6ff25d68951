"""
Shared pytest fixtures and configuration for vaultgraph tests.
"""

import pytest
import yaml

from vaultgraph import FileRecord, Graph, KIND_FIELD, ReactiveStore
from vaultgraph.observable import _reset_global_store


@pytest.fixture(autouse=True)
def reset_global_store():
    """Reset the global store before each test to prevent state leakage."""
    _reset_global_store()


@pytest.fixture
def store():
    """Provide a fresh ReactiveStore instance for tests that need it."""
    return ReactiveStore()


@pytest.fixture
def graph():
    """Provide a Graph on the (freshly reset) global store."""
    return Graph()


def make_file(path, kind=None, frontmatter=None, revision="12345"):
    """Build a FileRecord whose frontmatter declares ``kind``."""
    if kind is None and frontmatter is None:
        return FileRecord(path, revision, "misc text")

    data = dict(frontmatter or {})
    if kind is not None:
        data[KIND_FIELD] = kind
    body = yaml.safe_dump(data, sort_keys=True)
    return FileRecord(path, revision, f"---\n{body}---\n\nmisc text")


def make_collection(path, **fields):
    fields.setdefault("ironvault", {"playset": {"type": "registry", "key": "starforged"}})
    return make_file(path, kind="campaign", frontmatter=fields)


def make_invalid_collection(path):
    return make_file(path, kind="campaign")


def make_member(path, **fields):
    return make_file(path, kind="character", frontmatter=fields)


@pytest.fixture
def files():
    """Factory helpers for file records."""

    class Files:
        file = staticmethod(make_file)
        collection = staticmethod(make_collection)
        invalid_collection = staticmethod(make_invalid_collection)
        member = staticmethod(make_member)

    return Files
