"""Frontmatter schema models for the built-in node types.

All models use Pydantic with frozen config so parsed values are immutable and
compare by field. A collection root keeps its settings under the ``ironvault``
key::

    ironvault:
      playset:
        type: registry
        key: starforged
      customContentFolder: Content
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Type, TypeVar, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from .result import Err, Ok, Result

M = TypeVar("M", bound=BaseModel)

# Keys accepted by a ``registry`` playset.
STANDARD_PLAYSET_KEYS = frozenset(
    {
        "classic",
        "classic_delve",
        "starforged",
        "starforged__si_assets",
        "sundered_isles__assets_all",
        "sundered_isles__assets_technological",
        "sundered_isles__assets_supernatural",
        "sundered_isles__assets_historical",
    }
)


class GlobsPlayset(BaseModel):
    """Playset given inline as glob lines."""

    model_config = {"frozen": True}

    type: Literal["globs"]
    lines: List[str]


class RegistryPlayset(BaseModel):
    """Playset naming one of the standard definitions."""

    model_config = {"frozen": True}

    type: Literal["registry"]
    key: str

    @field_validator("key")
    @classmethod
    def _known_key(cls, key: str) -> str:
        if key not in STANDARD_PLAYSET_KEYS:
            raise ValueError(f"Not a valid playset key: {key!r}")
        return key


PlaysetSpec = Annotated[Union[GlobsPlayset, RegistryPlayset], Field(discriminator="type")]


class IronVaultConfig(BaseModel):
    model_config = {"frozen": True, "populate_by_name": True}

    playset: PlaysetSpec
    custom_content_folder: Optional[str] = Field(
        default=None, alias="customContentFolder"
    )


class CollectionFrontmatter(BaseModel):
    """Frontmatter of a collection root. Unknown keys are kept."""

    model_config = {"frozen": True, "extra": "allow"}

    name: Optional[str] = None
    ironvault: IronVaultConfig


def validate(model: Type[M], data: Dict[str, Any]) -> Result[M, ValidationError]:
    try:
        return Ok(model.model_validate(data))
    except ValidationError as e:
        return Err(e)
