"""
Infrastructure layer for imagesync.

Contains abstractions for external systems:
- RegistryClient: Docker Registry v2 tag listing
- SkopeoClient: Image transfer through ``skopeo copy``

These provide clean interfaces that can be mocked for testing.
"""

from .registry_client import (
    RegistryClient,
    RegistryError,
    TagListError,
    UnauthorizedError,
)
from .skopeo_client import CopyEngineError, CopyEngineTimeout, SkopeoClient

__all__ = [
    'RegistryClient',
    'RegistryError',
    'TagListError',
    'UnauthorizedError',
    'SkopeoClient',
    'CopyEngineError',
    'CopyEngineTimeout',
]
