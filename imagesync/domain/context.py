"""
Execution context domain objects for imagesync.

An ExecutionContext holds the credential and TLS settings used for every
image of one repository descriptor. Contexts are frozen: per-registry
settings are applied by deriving a new context from the base one, never by
changing the base in place.
"""

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Optional

from ..exit_codes import SyncTimeoutError


class TLSVerify(Enum):
    """Tri-state TLS verification mode. UNSET behaves like ENFORCE."""
    ENFORCE = "enforce"
    SKIP = "skip"
    UNSET = "unset"

    @classmethod
    def from_bool(cls, verify: Optional[bool]) -> 'TLSVerify':
        if verify is None:
            return cls.UNSET
        return cls.ENFORCE if verify else cls.SKIP

    @property
    def skip(self) -> bool:
        return self is TLSVerify.SKIP

    def to_flag(self) -> Optional[bool]:
        """Value for a ``--tls-verify`` flag, or None to leave it unset."""
        if self is TLSVerify.UNSET:
            return None
        return self is TLSVerify.ENFORCE


@dataclass(frozen=True)
class Credentials:
    """Username and password pair for a registry."""
    username: str
    password: str = field(default="", repr=False)

    @classmethod
    def parse(cls, value: str) -> 'Credentials':
        """
        Parse ``USERNAME[:PASSWORD]``.

        Raises:
            ValueError: If the value is empty or has no username
        """
        if not value:
            raise ValueError("credentials can't be empty")
        username, _, password = value.partition(':')
        if not username:
            raise ValueError("username can't be empty")
        return cls(username=username, password=password)

    @property
    def is_empty(self) -> bool:
        return not self.username and not self.password

    def to_flag(self) -> str:
        return f"{self.username}:{self.password}"


@dataclass(frozen=True)
class ExecutionContext:
    """
    Effective source- or destination-side settings for a copy.

    Example:
        base = ExecutionContext(tls_verify=TLSVerify.ENFORCE)
        registry_ctx = base.with_overrides(cert_dir="/etc/certs/quay.io")
        assert base.cert_dir is None
    """
    credentials: Optional[Credentials] = None
    tls_verify: TLSVerify = TLSVerify.UNSET
    cert_dir: Optional[str] = None
    registry_token: Optional[str] = None
    no_creds: bool = False
    auth_file: Optional[str] = None

    def with_overrides(self, **changes) -> 'ExecutionContext':
        """Create a new context with ``changes`` applied."""
        return replace(self, **changes)

    def to_dict(self):
        return {
            'username': self.credentials.username if self.credentials else None,
            'tls_verify': self.tls_verify.value,
            'cert_dir': self.cert_dir,
            'registry_token': bool(self.registry_token),
            'no_creds': self.no_creds,
            'auth_file': self.auth_file,
        }


class Deadline:
    """
    Single timeout scope for a whole run.

    An unbounded deadline (``seconds=None``) never expires.
    """

    def __init__(self, seconds: Optional[float] = None,
                 clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self.seconds = seconds
        self._expires_at = clock() + seconds if seconds is not None else None

    def remaining(self) -> Optional[float]:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def timeout(self, default: Optional[float] = None) -> Optional[float]:
        """
        Timeout for the next blocking operation.

        Returns the smaller of ``default`` and the remaining time.

        Raises:
            SyncTimeoutError: If the deadline has already passed
        """
        remaining = self.remaining()
        if remaining is None:
            return default
        if remaining <= 0:
            raise SyncTimeoutError(f"Command timed out after {self.seconds}s")
        if default is None:
            return remaining
        return min(default, remaining)
