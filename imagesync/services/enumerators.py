"""
Source enumerators for imagesync.

Three ways of discovering what to copy, all producing image references:
- RegistryEnumerator: tags published for one registry repository
- DirectoryEnumerator: stored images beneath a local directory
- ManifestEnumerator: images declared in a multi-registry YAML manifest
"""

import logging
import os
from pathlib import Path
from typing import List, Optional

import yaml

from ..domain.context import Deadline, ExecutionContext
from ..domain.manifest import ImageSpec, SourceManifest
from ..domain.reference import (
    ImageReference,
    InvalidReferenceError,
    parse_directory_reference,
    parse_docker_reference,
)
from ..exit_codes import ManifestError, SourceError
from ..infra.registry_client import RegistryClient, TagListError, UnauthorizedError
from .tag_resolver import RepositorySkipped, TagSelectorResolver

logger = logging.getLogger(__name__)

MANIFEST_MARKER = "manifest.json"


class RegistryEnumerator:
    """
    Lists the tags of registry repositories.

    A registry that refuses tag listing yields an empty result: some
    registries disable the endpoint on purpose.
    """

    def __init__(self, client: Optional[RegistryClient] = None,
                 deadline: Optional[Deadline] = None):
        self.client = client or RegistryClient()
        self.deadline = deadline or Deadline()

    def list_tags(self, ref: ImageReference, context: ExecutionContext) -> List[str]:
        """
        Raises:
            SourceError: For any failure other than an authorization refusal
        """
        logger.info(f"Getting tags for {ref.name}")
        try:
            return self.client.list_tags(ref, context, deadline=self.deadline)
        except UnauthorizedError as e:
            logger.warning(f"Registry disallows tag list retrieval: {e}")
            return []
        except TagListError as e:
            raise SourceError(f"Error determining repository tags for image {ref.name}: {e}") from e

    def images(self, ref: ImageReference, context: ExecutionContext) -> List[ImageReference]:
        """One tagged reference per published tag of ``ref``'s repository."""
        refs = []
        for tag in self.list_tags(ref, context):
            try:
                refs.append(ref.with_tag(tag))
            except InvalidReferenceError as e:
                raise SourceError(
                    f"Cannot obtain a valid image reference for {ref.name}:{tag}: {e}"
                ) from e
        return refs


class DirectoryEnumerator:
    """
    Finds stored images in a directory tree.

    A directory holding a ``manifest.json`` file is one image; the walk does
    not descend into it. Children are visited in lexical order.
    """

    def __init__(self, marker: str = MANIFEST_MARKER):
        self.marker = marker

    def images(self, root: str) -> List[ImageReference]:
        """
        Raises:
            SourceError: If part of the tree cannot be read
        """
        def on_error(error: OSError):
            raise SourceError(f"Error walking the path {root!r}: {error}")

        refs = []
        for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
            if self.marker in filenames:
                try:
                    refs.append(parse_directory_reference(dirpath))
                except InvalidReferenceError as e:
                    raise SourceError(
                        f"Cannot obtain a valid image reference for transport 'dir' "
                        f"and reference {dirpath!r}: {e}"
                    ) from e
                dirnames[:] = []
                continue
            dirnames.sort()
        return refs


class ManifestEnumerator:
    """
    Reads a source manifest and resolves its image entries.

    Example:
        manifests = ManifestEnumerator(resolver)
        manifest = manifests.load("sync.yml")
        refs = manifests.images("quay.io", manifest.get("quay.io").images[0], context)
    """

    def __init__(self, resolver: TagSelectorResolver):
        self.resolver = resolver

    def load(self, path: str) -> SourceManifest:
        """
        Raises:
            ManifestError: If the file cannot be read or decoded
        """
        try:
            text = Path(path).read_text()
        except OSError as e:
            raise ManifestError(f"Cannot read source manifest {path!r}: {e}") from e
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ManifestError(f"Failed to unmarshal {path!r}: {e}") from e
        return SourceManifest.from_dict(data, source=path)

    def images(self, registry: str, spec: ImageSpec,
               context: ExecutionContext) -> List[ImageReference]:
        """
        Resolve one image entry of ``registry``.

        Raises:
            RepositorySkipped: If the entry cannot be resolved
        """
        if spec.selector is None:
            raise RepositorySkipped(spec.error or "unsupported tag specification")
        try:
            repo_ref = parse_docker_reference(f"{registry}/{spec.name}")
        except InvalidReferenceError as e:
            raise RepositorySkipped(str(e)) from e
        if not repo_ref.is_name_only:
            raise RepositorySkipped(
                f"image name {spec.name!r} must not include a tag or digest"
            )
        return self.resolver.resolve(repo_ref, spec.selector, context)
