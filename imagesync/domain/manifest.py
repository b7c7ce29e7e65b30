"""
Source manifest domain objects for imagesync.

A source manifest is a YAML document mapping registry host names to
registry entries:

    registry.example.com:
      images:
        busybox: []                  # all tags
        redis: ["6.2", "7.0"]        # listed tags
        nginx: "^1\\.2[0-9]"         # tags matching a regex
      credentials:
        username: john
        password: this is a secret
      tls-verify: true
      cert-dir: /home/john/certs

Decoding happens once, in SourceManifest.from_dict(); the resulting
objects are immutable for the rest of the run.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional, Tuple

from ..exit_codes import ManifestError
from .context import Credentials, TLSVerify
from .selector import TagSelector, TagSelectorError, parse_tag_selector

logger = logging.getLogger(__name__)

KNOWN_REGISTRY_KEYS = frozenset({'images', 'credentials', 'tls-verify', 'cert-dir'})


@dataclass(frozen=True)
class ImageSpec:
    """
    One ``images`` entry of a registry.

    ``selector`` is None when the raw tag value had an unsupported type; the
    reason is kept in ``error`` so the entry can be skipped with a warning.
    """
    name: str
    selector: Optional[TagSelector]
    error: Optional[str] = None


@dataclass(frozen=True)
class RegistrySyncConfig:
    """Settings for one registry of a source manifest."""
    images: Tuple[ImageSpec, ...] = ()
    credentials: Optional[Credentials] = None
    tls_verify: TLSVerify = TLSVerify.ENFORCE
    cert_dir: Optional[str] = None

    @classmethod
    def from_dict(cls, registry: str, data: Any) -> 'RegistrySyncConfig':
        """
        Decode one registry entry.

        Raises:
            ManifestError: If the entry does not have the expected shape
        """
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ManifestError(f"Registry {registry!r}: entry must be a mapping")

        for key in data:
            if key not in KNOWN_REGISTRY_KEYS:
                logger.debug(f"Registry {registry!r}: ignoring unknown key {key!r}")

        raw_images = data.get('images') or {}
        if not isinstance(raw_images, dict):
            raise ManifestError(f"Registry {registry!r}: 'images' must be a mapping")

        images = []
        for name, raw_tags in raw_images.items():
            name = str(name)
            where = f"{registry}/{name}"
            try:
                images.append(ImageSpec(name=name, selector=parse_tag_selector(raw_tags, where)))
            except TagSelectorError as e:
                images.append(ImageSpec(name=name, selector=None, error=str(e)))

        return cls(
            images=tuple(images),
            credentials=_decode_credentials(registry, data.get('credentials')),
            tls_verify=_decode_tls_verify(registry, data),
            cert_dir=_decode_cert_dir(registry, data.get('cert-dir')),
        )


def _decode_credentials(registry: str, raw: Any) -> Optional[Credentials]:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ManifestError(f"Registry {registry!r}: 'credentials' must be a mapping")
    username = raw.get('username') or ''
    password = raw.get('password') or ''
    if not isinstance(username, str) or not isinstance(password, str):
        raise ManifestError(f"Registry {registry!r}: credentials must be strings")
    return Credentials(username=username, password=password)


def _decode_tls_verify(registry: str, data: Dict[str, Any]) -> TLSVerify:
    # An absent key means verify; it must not fall back to a false boolean.
    if 'tls-verify' not in data:
        return TLSVerify.ENFORCE
    value = data['tls-verify']
    if not isinstance(value, bool):
        raise ManifestError(
            f"Registry {registry!r}: 'tls-verify' must be a boolean, got {value!r}"
        )
    return TLSVerify.from_bool(value)


def _decode_cert_dir(registry: str, raw: Any) -> Optional[str]:
    if raw is None or raw == '':
        return None
    if not isinstance(raw, str):
        raise ManifestError(f"Registry {registry!r}: 'cert-dir' must be a string")
    return raw


@dataclass(frozen=True)
class SourceManifest:
    """Registry host name -> RegistrySyncConfig, in document order."""
    registries: Tuple[Tuple[str, RegistrySyncConfig], ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: Any, source: str = "<manifest>") -> 'SourceManifest':
        """
        Decode a parsed YAML document.

        Raises:
            ManifestError: If the document is not a mapping of registries
        """
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ManifestError(
                f"Failed to unmarshal {source!r}: top level must map registry names to settings"
            )
        registries = tuple(
            (str(name), RegistrySyncConfig.from_dict(str(name), entry))
            for name, entry in data.items()
        )
        return cls(registries=registries)

    def __iter__(self) -> Iterator[Tuple[str, RegistrySyncConfig]]:
        return iter(self.registries)

    def __len__(self) -> int:
        return len(self.registries)
