"""
Domain layer for imagesync.

Contains pure domain objects with no network access:
- ImageReference: Locator of one image at a transport
- TagSelector: AllTags, ExplicitList or Pattern
- ExecutionContext: Credentials and TLS settings for a copy
- SourceManifest: Decoded multi-registry YAML document
- RepositoryDescriptor / RunSummary: Plan units and run counters

These objects are immutable where possible and provide
serialization methods for JSONL output.
"""

from .reference import (
    ImageReference,
    InvalidReferenceError,
    Transport,
    parse_directory_reference,
    parse_docker_reference,
    parse_reference,
)
from .selector import (
    AllTags,
    ExplicitList,
    Pattern,
    TagSelector,
    TagSelectorError,
    parse_tag_selector,
)
from .context import Credentials, Deadline, ExecutionContext, TLSVerify
from .manifest import ImageSpec, RegistrySyncConfig, SourceManifest
from .descriptor import RepositoryDescriptor, RunSummary

__all__ = [
    'ImageReference',
    'InvalidReferenceError',
    'Transport',
    'parse_directory_reference',
    'parse_docker_reference',
    'parse_reference',
    'AllTags',
    'ExplicitList',
    'Pattern',
    'TagSelector',
    'TagSelectorError',
    'parse_tag_selector',
    'Credentials',
    'Deadline',
    'ExecutionContext',
    'TLSVerify',
    'ImageSpec',
    'RegistrySyncConfig',
    'SourceManifest',
    'RepositoryDescriptor',
    'RunSummary',
]
