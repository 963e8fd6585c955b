"""Exception hierarchy for CERT-SYNC-SERVER.

Errors fall in two groups. Anything raised before per-certificate processing
starts (``ValidationError``, ``ConfigurationError``, ``CorruptStateError``)
aborts the whole run. Everything else is confined to the outcome of the
certificate it happened to.
"""

from typing import List, Optional


class CertSyncError(Exception):
    """Base class for all CERT-SYNC-SERVER errors."""

    def __init__(self, message: str, cert_name: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.cert_name = cert_name

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "cert_name": self.cert_name,
        }


class ConfigurationError(CertSyncError):
    """Invalid or incomplete runtime configuration."""


class ValidationError(CertSyncError):
    """Desired-state input has the wrong shape."""


class ResolutionError(ValidationError):
    """A SAN cannot be mapped to a configured zone."""


class NoMatchingZone(ResolutionError):
    """No configured zone is a label-aligned suffix of the hostname."""

    def __init__(self, hostname: str, cert_name: Optional[str] = None):
        super().__init__(
            f"DNS config has no domain that matches SAN '{hostname}'",
            cert_name=cert_name,
        )
        self.hostname = hostname


class CorruptStateError(CertSyncError):
    """Persisted certificate state exists but cannot be read."""


class PersistError(CertSyncError):
    """Writing a certificate record to disk failed."""


class IssuanceError(CertSyncError):
    """Obtaining a certificate from the ACME server failed."""

    retryable = False


class AuthorizationFailed(IssuanceError):
    """The ACME server rejected a SAN's challenge."""

    def __init__(self, san: str, detail: str = "", cert_name: Optional[str] = None):
        message = f"authorization for '{san}' is invalid"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, cert_name=cert_name)
        self.san = san


class ProviderError(IssuanceError):
    """A zone's DNS provider refused to publish a challenge record."""


class RateLimited(IssuanceError):
    """The ACME server asked us to slow down."""

    retryable = True


class NetworkError(IssuanceError):
    """Transport-level failure talking to the ACME server."""

    retryable = True


class Timeout(IssuanceError):
    """Validation or the overall run did not finish in time."""


class HookError(CertSyncError):
    """The post-issuance hook failed. Reported as a warning only."""


class RunAborted(CertSyncError):
    """A run stopped before any certificate was processed.

    ``errors`` holds every problem found, not just the first.
    """

    def __init__(self, message: str, errors: List[CertSyncError]):
        super().__init__(message)
        self.errors = errors

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["errors"] = [e.to_dict() for e in self.errors]
        return data
