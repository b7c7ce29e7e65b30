"""
imagesync - Bulk replication of container images.

imagesync plans and runs the copy of many container images at once,
between registries and local directory trees.

Quick Start:
    from imagesync import (
        ExecutionContext, InventoryPlanner, SourceKind,
        SyncExecutor, SyncOptions, Transport,
    )

    planner = InventoryPlanner()
    descriptors = planner.plan("sync.yml", SourceKind.YAML, ExecutionContext())

    executor = SyncExecutor()
    options = SyncOptions(destination="/media/usb", destination_transport=Transport.DIR)
    for message in executor.sync(descriptors, options):
        print(message)

Sources:
    docker - one registry repository (all tags, or the tag given)
    dir    - a directory tree of stored images (one per manifest.json)
    yaml   - a manifest listing images and tags of several registries

Destinations:
    docker - a registry namespace
    dir    - a directory tree
"""

__version__ = "0.3.0"

# Domain objects
from .domain import (
    ImageReference,
    Transport,
    TagSelector,
    AllTags,
    ExplicitList,
    Pattern,
    Credentials,
    ExecutionContext,
    TLSVerify,
    SourceManifest,
    RegistrySyncConfig,
    RepositoryDescriptor,
    RunSummary,
)

# Services
from .services import (
    InventoryPlanner,
    SourceKind,
    DestinationResolver,
    SyncExecutor,
    SyncOptions,
)

# Configuration
from .config import load_config

__all__ = [
    # Version
    "__version__",
    # Domain objects
    "ImageReference",
    "Transport",
    "TagSelector",
    "AllTags",
    "ExplicitList",
    "Pattern",
    "Credentials",
    "ExecutionContext",
    "TLSVerify",
    "SourceManifest",
    "RegistrySyncConfig",
    "RepositoryDescriptor",
    "RunSummary",
    # Services
    "InventoryPlanner",
    "SourceKind",
    "DestinationResolver",
    "SyncExecutor",
    "SyncOptions",
    # Configuration
    "load_config",
]
