"""
Tag selector resolution for imagesync.

Turns the TagSelector of one repository into the concrete, ordered list of
tagged image references to copy. Failures here never abort a run: they
raise RepositorySkipped, which the inventory planner logs before moving on
to the next repository.
"""

import logging
from typing import Iterable, List

from ..domain.context import ExecutionContext
from ..domain.reference import ImageReference, InvalidReferenceError
from ..domain.selector import AllTags, ExplicitList, Pattern, TagSelector, TagSelectorError
from ..exit_codes import SourceError

logger = logging.getLogger(__name__)


class RepositorySkipped(Exception):
    """One repository cannot be resolved; siblings are unaffected."""


def resolve_tags(selector: TagSelector, discovered: Iterable[str]) -> List[str]:
    """
    Apply ``selector`` to the tags a registry reported.

    ``discovered`` is only consulted for AllTags, Pattern and an empty
    ExplicitList.

    Raises:
        TagSelectorError: If a Pattern does not compile
    """
    if isinstance(selector, ExplicitList) and selector.tags:
        return list(selector.tags)
    if isinstance(selector, Pattern):
        regex = selector.compile()
        return [tag for tag in discovered if regex.search(tag)]
    if isinstance(selector, (AllTags, ExplicitList)):
        return list(discovered)
    raise TypeError(f"Unsupported tag selector: {selector!r}")


def needs_tag_listing(selector: TagSelector) -> bool:
    """True when resolving ``selector`` requires a registry round-trip."""
    return not (isinstance(selector, ExplicitList) and selector.tags)


class TagSelectorResolver:
    """
    Resolve tag selectors against a registry.

    Example:
        resolver = TagSelectorResolver(RegistryEnumerator(RegistryClient()))
        refs = resolver.resolve(repo_ref, Pattern("^v1"), context)
    """

    def __init__(self, registry):
        """
        Args:
            registry: RegistryEnumerator used for AllTags and Pattern
        """
        self.registry = registry

    def resolve(
        self,
        repo_ref: ImageReference,
        selector: TagSelector,
        context: ExecutionContext,
    ) -> List[ImageReference]:
        """
        Resolve ``selector`` for the repository ``repo_ref``.

        Returns:
            Tagged references, possibly empty

        Raises:
            RepositorySkipped: If the repository must be left out
        """
        logger.debug(f"Resolving {selector.describe()} for {repo_ref.name}")
        if isinstance(selector, Pattern):
            # An invalid expression never reaches the registry
            try:
                selector.compile()
            except TagSelectorError as e:
                raise RepositorySkipped(str(e)) from e

        discovered: List[str] = []
        if needs_tag_listing(selector):
            logger.info(f"Querying registry for image tags of {repo_ref.name}")
            try:
                discovered = self.registry.list_tags(repo_ref, context)
            except SourceError as e:
                raise RepositorySkipped(str(e)) from e
            if isinstance(selector, Pattern):
                logger.info(
                    f"Start filtering {repo_ref.name} using the regular expression: {selector.regex}"
                )

        refs = []
        for tag in resolve_tags(selector, discovered):
            try:
                refs.append(repo_ref.with_tag(tag))
            except InvalidReferenceError as e:
                logger.warning(f"Error processing tag {tag!r} of {repo_ref.name}, skipping: {e}")
        return refs
