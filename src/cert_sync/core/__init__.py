"""Core functionality for CERT-SYNC-SERVER."""

from .logging import get_logger, setup_logging
from .models import (
    Action,
    Authorization,
    AuthorizationStatus,
    CertificateRecord,
    CertificateSpec,
    OutcomeAction,
    RunOutcome,
    Zone,
)
from .resolver import resolve_zone
from .validator import build_specs, validate_certificates
from .certificate_utils import CertificateUtils, CertificateInfo

__all__ = [
    "get_logger",
    "setup_logging",
    "Action",
    "Authorization",
    "AuthorizationStatus",
    "CertificateRecord",
    "CertificateSpec",
    "OutcomeAction",
    "RunOutcome",
    "Zone",
    "resolve_zone",
    "build_specs",
    "validate_certificates",
    "CertificateUtils",
    "CertificateInfo",
]
