"""
Service layer for imagesync.

Contains the planning and execution logic that orchestrates domain objects
and infrastructure:
- InventoryPlanner: Resolve a source into repository descriptors
- TagSelectorResolver: Resolve tag selectors for one repository
- DestinationResolver: Map source images onto destination addresses
- SyncExecutor: Copy planned images one at a time

Services are the primary API for commands to use.
"""

from .tag_resolver import RepositorySkipped, TagSelectorResolver, resolve_tags
from .enumerators import DirectoryEnumerator, ManifestEnumerator, RegistryEnumerator
from .inventory_service import InventoryPlanner, SourceKind, registry_context, validate_kinds
from .destination import DestinationResolver, destination_suffix
from .sync_service import SyncExecutor, SyncOptions, SyncProgress

__all__ = [
    'RepositorySkipped',
    'TagSelectorResolver',
    'resolve_tags',
    'DirectoryEnumerator',
    'ManifestEnumerator',
    'RegistryEnumerator',
    'InventoryPlanner',
    'SourceKind',
    'registry_context',
    'validate_kinds',
    'DestinationResolver',
    'destination_suffix',
    'SyncExecutor',
    'SyncOptions',
    'SyncProgress',
]
