"""
Inventory planning for imagesync.

The InventoryPlanner turns a sync source (a registry repository, a
directory tree or a YAML manifest) into an ordered list of
RepositoryDescriptor objects. It also owns the per-registry execution
context overrides of manifest sources.

Fatal conditions raise CommandError subclasses. Recoverable ones (a single
manifest image or registry that cannot be resolved) are logged, recorded
in ``planner.skipped`` and do not stop the enumeration of sibling entries.
"""

import logging
import os
from enum import Enum
from typing import List, Optional, Tuple

from ..domain.context import Deadline, ExecutionContext
from ..domain.descriptor import RepositoryDescriptor
from ..domain.manifest import RegistrySyncConfig
from ..domain.reference import InvalidReferenceError, Transport, parse_docker_reference
from ..exit_codes import NoImagesFoundError, SourceError, UsageError
from ..infra.registry_client import RegistryClient
from .enumerators import DirectoryEnumerator, ManifestEnumerator, RegistryEnumerator
from .tag_resolver import RepositorySkipped, TagSelectorResolver

logger = logging.getLogger(__name__)


class SourceKind(Enum):
    """Shape of a sync source."""
    DOCKER = "docker"  # One registry repository, optionally tagged
    DIR = "dir"        # Tree of stored images
    YAML = "yaml"      # Multi-registry manifest


SOURCE_KINDS = [kind.value for kind in SourceKind]
DESTINATION_KINDS = [Transport.DOCKER.value, Transport.DIR.value]


def validate_kinds(source: Optional[str], destination: Optional[str]) -> Tuple[SourceKind, Transport]:
    """
    Check the source and destination kinds before any planning.

    Raises:
        UsageError: For missing or unknown kinds, or a dir to dir sync
    """
    if not source:
        raise UsageError("A source transport must be specified")
    if source not in SOURCE_KINDS:
        raise UsageError(f"{source!r} is not a valid source transport")
    if not destination:
        raise UsageError("A destination transport must be specified")
    if destination not in DESTINATION_KINDS:
        raise UsageError(f"{destination!r} is not a valid destination transport")
    if source == destination == Transport.DIR.value:
        raise UsageError("sync from 'dir' to 'dir' not implemented, consider using rsync instead")
    return SourceKind(source), Transport(destination)


def registry_context(base: ExecutionContext, config: RegistrySyncConfig) -> ExecutionContext:
    """
    Derive the context for one manifest registry.

    Credentials, TLS mode and certificate directory of the registry entry
    replace the base values; ``base`` itself is left untouched.
    """
    return base.with_overrides(
        credentials=config.credentials,
        tls_verify=config.tls_verify,
        cert_dir=config.cert_dir,
    )


class InventoryPlanner:
    """
    Builds the list of repositories to copy.

    Example:
        planner = InventoryPlanner()
        descriptors = planner.plan("sync.yml", SourceKind.YAML, ExecutionContext())
        for skipped in planner.skipped:
            print(skipped)
    """

    def __init__(
        self,
        registry_client: Optional[RegistryClient] = None,
        deadline: Optional[Deadline] = None,
    ):
        """
        Initialize InventoryPlanner.

        Args:
            registry_client: Client used for tag listing (created if None)
            deadline: Overall run deadline
        """
        self.registry = RegistryEnumerator(registry_client, deadline)
        self.directories = DirectoryEnumerator()
        self.manifests = ManifestEnumerator(TagSelectorResolver(self.registry))
        self.skipped: List[str] = []

    def plan(self, source: str, kind: SourceKind,
             context: ExecutionContext) -> List[RepositoryDescriptor]:
        """
        Resolve ``source`` into repository descriptors.

        Args:
            source: Repository name, directory path or manifest path
            kind: How to interpret ``source``
            context: Base source-side execution context

        Returns:
            Descriptors in planning order
        """
        self.skipped = []
        if kind is SourceKind.DOCKER:
            return self._plan_registry(source, context)
        if kind is SourceKind.DIR:
            return self._plan_directory(source, context)
        if kind is SourceKind.YAML:
            return self._plan_manifest(source, context)
        raise UsageError(f"{kind!r} is not a valid source transport")

    def _plan_registry(self, source: str, context: ExecutionContext) -> List[RepositoryDescriptor]:
        try:
            ref = parse_docker_reference(source)
        except InvalidReferenceError as e:
            raise SourceError(
                f"Cannot obtain a valid image reference for transport 'docker' "
                f"and reference {source!r}: {e}"
            ) from e

        tagged = not ref.is_name_only
        logger.debug(f"Tag presence check for {source}: tagged={tagged}")
        if tagged:
            return [RepositoryDescriptor(tagged_images=(ref,), context=context)]

        images = self.registry.images(ref, context)
        if not images:
            raise NoImagesFoundError(f"No images to sync found in {source!r}")
        return [RepositoryDescriptor(tagged_images=tuple(images), context=context)]

    def _plan_directory(self, source: str, context: ExecutionContext) -> List[RepositoryDescriptor]:
        if not os.path.exists(source):
            raise SourceError(f"Invalid source directory specified: {source!r} does not exist")

        base_path = os.path.realpath(os.path.abspath(source))
        images = self.directories.images(base_path)
        if not images:
            raise NoImagesFoundError(f"No images to sync found in {source!r}")
        return [RepositoryDescriptor(
            tagged_images=tuple(images),
            context=context,
            dir_base_path=base_path,
        )]

    def _plan_manifest(self, source: str, context: ExecutionContext) -> List[RepositoryDescriptor]:
        manifest = self.manifests.load(source)
        logger.info(f"Loaded {len(manifest)} registries from {source}")

        descriptors = []
        for registry_name, config in manifest:
            if not config.images:
                self._skip(f"{registry_name}: no images specified for registry")
                continue

            server_context = registry_context(context, config)
            for spec in config.images:
                where = f"{registry_name}/{spec.name}"
                logger.info(f"Processing repo {where}")
                try:
                    images = self.manifests.images(registry_name, spec, server_context)
                except RepositorySkipped as e:
                    self._skip(f"{where}: error processing repo, skipping: {e}")
                    continue
                if not images:
                    self._skip(f"{where}: no tags to sync found")
                    continue
                descriptors.append(RepositoryDescriptor(
                    tagged_images=tuple(images),
                    context=server_context,
                ))

        return descriptors

    def _skip(self, message: str) -> None:
        logger.warning(message)
        self.skipped.append(message)
