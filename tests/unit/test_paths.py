"""Tests for vault path helpers."""

import pytest

from vaultgraph import base_name_of, child_of_path, parent_folder_of


@pytest.mark.parametrize(
    "root, child, expected",
    [
        ("/", "asdf.md", True),
        ("foo", "foo/bar.md", True),
        ("foo", "foo/bar/baz.md", True),
        ("foo", "bar.md", False),
        ("foo", "bar/foo", False),
        ("foo", "foobar/baz.md", False),
    ],
)
def test_child_of_path(root, child, expected):
    assert child_of_path(root, child) is expected


@pytest.mark.parametrize(
    "path, expected",
    [
        ("asdf.md", "/"),
        ("foo/bar.md", "foo"),
        ("foo/bar/baz.md", "foo/bar"),
    ],
)
def test_parent_folder_of(path, expected):
    assert parent_folder_of(path) == expected


@pytest.mark.parametrize(
    "path, expected",
    [
        ("c1/index.md", "index"),
        ("Campaign.md", "Campaign"),
        ("notes/archive.tar.gz", "archive.tar"),
        ("notes/README", "README"),
        ("notes/.hidden", ".hidden"),
    ],
)
def test_base_name_of(path, expected):
    assert base_name_of(path) == expected
