"""
Image reference domain object for imagesync.

An ImageReference locates one image at a specific transport:
- docker: a registry repository, optionally tagged or pinned by digest
- dir: a filesystem directory holding one stored image

References are immutable value objects. Docker names are parsed with the
same normalisation rules the docker CLI applies (default registry,
``library/`` prefix for official images).
"""

import os
import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

DEFAULT_REGISTRY = "docker.io"
LEGACY_DEFAULT_REGISTRY = "index.docker.io"
OFFICIAL_REPO_PREFIX = "library/"
DEFAULT_TAG = "latest"
NAME_TOTAL_LENGTH_MAX = 255

_DOMAIN_COMPONENT = r"(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])"
_DOMAIN_RE = re.compile(
    rf"^{_DOMAIN_COMPONENT}(?:\.{_DOMAIN_COMPONENT})*(?::[0-9]+)?$"
)
_NAME_COMPONENT_RE = re.compile(r"^[a-z0-9]+(?:(?:[._]|__|[-]*)[a-z0-9]+)*$")
_TAG_RE = re.compile(r"^[\w][\w.-]{0,127}$", re.ASCII)
_DIGEST_RE = re.compile(
    r"^[A-Za-z][A-Za-z0-9]*(?:[-_+.][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}$"
)


class InvalidReferenceError(ValueError):
    """Raised when a string cannot be parsed into an image reference."""


class Transport(Enum):
    """Storage/access mechanism for an image."""
    DOCKER = "docker"  # Remote registry
    DIR = "dir"        # Local directory tree


@dataclass(frozen=True)
class ImageReference:
    """
    Immutable locator for one image.

    Docker references carry ``registry``, ``repository`` and an optional
    ``tag`` and/or ``digest``. Directory references carry an absolute
    ``path``.

    Example:
        ref = parse_docker_reference("quay.io/org/app:v1")
        ref.docker_reference()   # "quay.io/org/app:v1"
        ref.image_name()         # "docker://quay.io/org/app:v1"
    """

    transport: Transport
    registry: Optional[str] = None
    repository: Optional[str] = None
    tag: Optional[str] = None
    digest: Optional[str] = None
    path: Optional[str] = None

    @property
    def name(self) -> str:
        """Fully qualified repository name without tag or digest."""
        if self.transport is Transport.DIR:
            return self.path or ""
        return f"{self.registry}/{self.repository}"

    @property
    def is_name_only(self) -> bool:
        """True for a docker reference with neither tag nor digest."""
        return self.transport is Transport.DOCKER and not (self.tag or self.digest)

    def with_tag(self, tag: str) -> 'ImageReference':
        """Create a new docker reference pointing at ``tag``."""
        if self.transport is not Transport.DOCKER:
            raise InvalidReferenceError(f"Cannot tag a {self.transport.value} reference")
        if not _TAG_RE.match(tag):
            raise InvalidReferenceError(f"Invalid tag format {tag!r} for {self.name}")
        return replace(self, tag=tag, digest=None)

    def docker_reference(self) -> str:
        """Render the fully qualified ``registry/repository[:tag][@digest]``."""
        if self.transport is not Transport.DOCKER:
            raise InvalidReferenceError(f"{self.image_name()} is not a docker reference")
        value = self.name
        if self.tag:
            value += f":{self.tag}"
        if self.digest:
            value += f"@{self.digest}"
        return value

    def string_within_transport(self) -> str:
        """The reference as understood by its own transport."""
        if self.transport is Transport.DIR:
            return self.path or ""
        return f"//{self.docker_reference()}"

    def image_name(self) -> str:
        """Transport-qualified name, e.g. ``docker://host/repo:tag``."""
        return f"{self.transport.value}:{self.string_within_transport()}"

    def to_dict(self):
        result = {
            'transport': self.transport.value,
            'registry': self.registry,
            'repository': self.repository,
            'tag': self.tag,
            'digest': self.digest,
            'path': self.path,
        }
        return {k: v for k, v in result.items() if v is not None}

    def __str__(self) -> str:
        return self.image_name()


def _split_domain(name: str):
    i = name.find('/')
    head = name[:i] if i != -1 else ""
    if i == -1 or (
        not any(c in head for c in '.:')
        and head != 'localhost'
        and head.lower() == head
    ):
        domain, remainder = DEFAULT_REGISTRY, name
    else:
        domain, remainder = head, name[i + 1:]

    if domain == LEGACY_DEFAULT_REGISTRY:
        domain = DEFAULT_REGISTRY
    if domain == DEFAULT_REGISTRY and '/' not in remainder:
        remainder = OFFICIAL_REPO_PREFIX + remainder
    return domain, remainder


def parse_docker_reference(name: str) -> ImageReference:
    """
    Parse a docker image name into a normalised ImageReference.

    Accepts the transport form with a leading ``//`` as well as plain
    names. No default tag is applied.

    Args:
        name: Image name, e.g. ``busybox``, ``//quay.io/org/app:v1``

    Returns:
        Parsed ImageReference

    Raises:
        InvalidReferenceError: If the name is not a valid reference
    """
    original = name
    if name.startswith('//'):
        name = name[2:]
    if not name:
        raise InvalidReferenceError("Repository name must have at least one component")

    digest = None
    if '@' in name:
        name, digest = name.split('@', 1)
        if not _DIGEST_RE.match(digest):
            raise InvalidReferenceError(f"Invalid digest format in {original!r}")

    tag = None
    colon = name.rfind(':')
    if colon > name.rfind('/'):
        name, tag = name[:colon], name[colon + 1:]
        if not _TAG_RE.match(tag):
            raise InvalidReferenceError(f"Invalid tag format in {original!r}")

    domain, remainder = _split_domain(name)
    if not _DOMAIN_RE.match(domain):
        raise InvalidReferenceError(f"Invalid registry host {domain!r} in {original!r}")
    if remainder.lower() != remainder:
        raise InvalidReferenceError(f"Repository name must be lowercase: {original!r}")
    components = remainder.split('/')
    if not all(_NAME_COMPONENT_RE.match(c) for c in components):
        raise InvalidReferenceError(f"Invalid reference format: {original!r}")
    if len(domain) + 1 + len(remainder) > NAME_TOTAL_LENGTH_MAX:
        raise InvalidReferenceError(
            f"Repository name must not be more than {NAME_TOTAL_LENGTH_MAX} characters"
        )

    return ImageReference(
        transport=Transport.DOCKER,
        registry=domain,
        repository=remainder,
        tag=tag,
        digest=digest,
    )


def parse_directory_reference(path: str) -> ImageReference:
    """
    Create a directory reference for ``path``.

    The path is made absolute and symlinks are resolved, so that two
    spellings of the same directory compare equal.
    """
    if not path:
        raise InvalidReferenceError("An empty directory path is not a valid reference")
    resolved = os.path.realpath(os.path.abspath(os.path.expanduser(path)))
    return ImageReference(transport=Transport.DIR, path=resolved)


def parse_reference(transport: Transport, value: str) -> ImageReference:
    """Parse ``value`` with the given transport."""
    if transport is Transport.DOCKER:
        return parse_docker_reference(value)
    return parse_directory_reference(value)
