"""
YAML frontmatter extraction.

A file's frontmatter is a leading block delimited by ``---`` lines::

    ---
    kind: campaign
    name: The Iron Lands
    ---
    body text
"""

import logging
from typing import Any, Dict, Optional

import yaml

from .result import Err, Ok, Result

logger = logging.getLogger(__name__)

FRONTMATTER_DELIM = "---"

# Reserved frontmatter key selecting a file's type parser.
KIND_FIELD = "kind"


class FrontmatterError(ValueError):
    """The frontmatter block is unterminated or not a mapping."""

    pass


def extract_frontmatter(content: str) -> Result[Optional[Dict[str, Any]], Exception]:
    """
    Parse the frontmatter block at the start of ``content``.

    A leading byte order mark is ignored.

    Returns ``Ok(None)`` when there is no block, ``Ok({})`` for an empty one,
    ``Ok(mapping)`` otherwise. An unterminated block, invalid YAML or a
    block that is not a mapping is an ``Err``.
    """
    content = content.lstrip("\ufeff")
    opener = FRONTMATTER_DELIM + "\n"
    if not content.startswith(opener):
        return Ok(None)

    terminator = "\n" + FRONTMATTER_DELIM + "\n"
    end = content.find(terminator, len(opener) - 1)
    if end == -1:
        if content.endswith("\n" + FRONTMATTER_DELIM):
            end = len(content) - len(FRONTMATTER_DELIM) - 1
        else:
            return Err(FrontmatterError("no terminator found."))

    yaml_text = content[len(opener) : end]
    try:
        data = yaml.safe_load(yaml_text)
    except yaml.YAMLError as e:
        logger.debug("Invalid frontmatter YAML: %s", e)
        return Err(e)

    if data is None:
        return Ok({})
    if not isinstance(data, dict):
        return Err(
            FrontmatterError(f"frontmatter must be a mapping, got {type(data).__name__}")
        )
    return Ok(data)
