"""Vault path helpers. Paths are ``/``-separated and relative to the vault root."""


def child_of_path(root: str, child: str) -> bool:
    """True if ``child`` lies under folder ``root``; ``"/"`` contains everything."""
    return root == "/" or child.startswith(root + "/")


def parent_folder_of(path: str) -> str:
    """Folder holding ``path``, ``"/"`` for files at the vault root."""
    parts = path.split("/")
    parts.pop()
    if not parts:
        return "/"
    return "/".join(parts)


def base_name_of(path: str) -> str:
    """File name without folder or extension: ``"c1/index.md"`` -> ``"index"``."""
    name = path.rsplit("/", 1)[-1]
    stem, dot, _ = name.rpartition(".")
    return stem if dot and stem else name
