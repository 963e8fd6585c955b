"""Data model for certificate reconciliation."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional, List, Tuple

if TYPE_CHECKING:
    from ..handlers.base import DNSHandler


def normalize_hostname(hostname: str) -> str:
    """Lower-case a hostname and strip any trailing dot."""
    return hostname.strip().lower().rstrip(".")


class Action(str, Enum):
    """What a certificate needs on this run."""

    SKIP = "skip"
    ISSUE = "issue"
    RENEW = "renew"


class OutcomeAction(str, Enum):
    """What actually happened to a certificate on this run."""

    SKIPPED = "skipped"
    ISSUED = "issued"
    RENEWED = "renewed"
    FAILED = "failed"


class AuthorizationStatus(str, Enum):
    PENDING = "pending"
    VALID = "valid"
    INVALID = "invalid"


@dataclass(eq=False)
class Zone:
    """A DNS domain plus the provider handler able to edit it.

    Calls that touch the provider are serialized through ``lock`` because
    provider clients are not assumed to be safe for concurrent use.
    """

    domain: str
    handler: "DNSHandler"
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    def __post_init__(self):
        self.domain = normalize_hostname(self.domain)

    def contains(self, hostname: str) -> bool:
        """Check whether hostname is the zone apex or lies below it."""
        host = normalize_hostname(hostname)
        return host == self.domain or host.endswith("." + self.domain)

    async def publish_challenge(self, record_name: str, value: str) -> None:
        async with self.lock:
            await self.handler.publish_challenge(self.domain, record_name, value)

    async def remove_challenge(self, record_name: str, value: Optional[str] = None) -> None:
        async with self.lock:
            await self.handler.remove_challenge(self.domain, record_name, value)


@dataclass(frozen=True)
class CertificateSpec:
    """Desired state for one certificate."""

    name: str
    sans: Tuple[str, ...]

    @classmethod
    def from_list(cls, name: str, sans: List[str]) -> "CertificateSpec":
        """Build a spec, normalizing and de-duplicating SANs in order."""
        seen: dict[str, None] = {}
        for san in sans:
            seen.setdefault(normalize_hostname(san), None)
        return cls(name=name, sans=tuple(seen))


@dataclass
class CertificateRecord:
    """A certificate issued on an earlier run, as persisted on disk."""

    name: str
    sans: Tuple[str, ...]
    not_after: datetime
    chain: bytes
    private_key: bytes = field(repr=False)
    issued_at: datetime

    def to_dict(self) -> dict:
        """Convert to dictionary. Key material is never included."""
        return {
            "name": self.name,
            "sans": list(self.sans),
            "not_after": self.not_after.isoformat(),
            "issued_at": self.issued_at.isoformat(),
        }


@dataclass
class Authorization:
    """One SAN's ACME authorization, alive only for the duration of an order."""

    san: str
    status: AuthorizationStatus
    challenge_token: str
    record_name: str
    zone: Optional[Zone] = None
    detail: str = ""
    handle: Any = field(default=None, repr=False)


@dataclass
class RunOutcome:
    """Result for one certificate."""

    name: str
    action: OutcomeAction
    error: Optional[Exception] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.action == OutcomeAction.FAILED

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        error = None
        if self.error is not None:
            error = {"type": type(self.error).__name__, "message": str(self.error)}
        return {
            "name": self.name,
            "action": self.action.value,
            "error": error,
            "warnings": list(self.warnings),
        }
