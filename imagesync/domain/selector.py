"""
Tag selector domain objects for imagesync.

A manifest image entry selects tags in one of three ways:
- AllTags: no selector given, copy every published tag
- ExplicitList: an ordered list of tag names
- Pattern: a regular expression matched against published tags

The raw YAML value is decoded into one of these exactly once, by
parse_tag_selector(). Consumers dispatch on the selector class and never
re-inspect the raw value.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Tuple

logger = logging.getLogger(__name__)


class TagSelectorError(ValueError):
    """Raised for a tag specification that cannot be used."""


class TagSelector:
    """Base class of the closed set of tag selection policies."""

    def describe(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class AllTags(TagSelector):
    """Copy every tag the registry reports."""

    def describe(self) -> str:
        return "all tags"


@dataclass(frozen=True)
class ExplicitList(TagSelector):
    """Copy exactly the listed tags, in order."""
    tags: Tuple[str, ...] = ()

    @classmethod
    def from_values(cls, values: Iterable[Any], where: str = "") -> 'ExplicitList':
        """
        Build a list from raw YAML scalars.

        Strings, integers and floats are coerced to tag strings. Any other
        element is reported and skipped; the remaining elements are kept.
        """
        tags = []
        for value in values:
            tag = coerce_tag(value)
            if tag is None:
                logger.warning(
                    f"{where}: tag list elements must be strings or numbers, "
                    f"skipping {value!r} ({type(value).__name__})"
                )
                continue
            tags.append(tag)
        return cls(tags=tuple(tags))

    def describe(self) -> str:
        return f"{len(self.tags)} listed tag(s)"


@dataclass(frozen=True)
class Pattern(TagSelector):
    """Copy the tags matching ``regex``."""
    regex: str

    def compile(self) -> 're.Pattern':
        """
        Compile the expression.

        Raises:
            TagSelectorError: If the expression is invalid
        """
        try:
            return re.compile(self.regex)
        except re.error as e:
            raise TagSelectorError(f"Invalid regular expression {self.regex!r}: {e}") from e

    def describe(self) -> str:
        return f"tags matching {self.regex!r}"


def coerce_tag(value: Any) -> Optional[str]:
    """
    Turn a scalar into a tag string, or None if it is not a scalar tag.

    Floats render without a trailing ``.0`` when integral, so ``1.0`` in a
    YAML list becomes the tag ``1``.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        return repr(value)
    return None


def parse_tag_selector(raw: Any, where: str = "") -> TagSelector:
    """
    Decode the raw ``images`` value of one manifest entry.

    Args:
        raw: None, a list of scalars or a regular expression string
        where: Location used in log messages (``registry/image``)

    Returns:
        The matching TagSelector

    Raises:
        TagSelectorError: If the value has an unsupported type
    """
    if raw is None:
        return AllTags()
    if isinstance(raw, str):
        return Pattern(regex=raw)
    if isinstance(raw, (list, tuple)):
        return ExplicitList.from_values(raw, where=where)
    raise TagSelectorError(
        f"Tags can only be a list or a regular expression string, "
        f"got {raw!r} ({type(raw).__name__})"
    )
