"""Validation of the desired certificate list."""

import re
from typing import Dict, Iterable, List, Mapping

from .errors import ValidationError, ResolutionError
from .logging import get_logger
from .models import CertificateSpec, Zone
from .resolver import resolve_zone


MAX_SANS = 100

VALID_CERT_NAME = re.compile(r"^[A-Za-z][A-Za-z0-9_-]*$")

logger = get_logger("validator")


def build_specs(cert_list: Mapping[str, List[str]]) -> Dict[str, CertificateSpec]:
    """Turn the raw ``name -> [san, ...]`` mapping into certificate specs."""
    return {
        name: CertificateSpec.from_list(name, list(sans or []))
        for name, sans in cert_list.items()
    }


def validate_certificates(
    specs: Mapping[str, CertificateSpec],
    zones: Iterable[Zone]
) -> List[ValidationError]:
    """Check every certificate spec and collect all violations.

    Nothing stops at the first problem: one bad entry must not hide another.

    Args:
        specs: Certificate specs keyed by name
        zones: Configured zones

    Returns:
        List of errors, empty when the whole set is valid
    """
    zones = list(zones)
    errors: List[ValidationError] = []

    if not specs:
        errors.append(ValidationError(
            "Must provide at least one certificate to issue in cert configuration"
        ))

    for name in sorted(specs):
        spec = specs[name]

        if not VALID_CERT_NAME.fullmatch(name):
            errors.append(ValidationError(
                f"'{name}' is not a valid certificate name. "
                "Only alphanumerics, - and _ allowed",
                cert_name=name,
            ))

        if len(spec.sans) == 0:
            errors.append(ValidationError(
                f"certificate '{name}' needs at least one SAN", cert_name=name
            ))
        elif len(spec.sans) > MAX_SANS:
            errors.append(ValidationError(
                f"certificate '{name}' has too many SANs ({len(spec.sans)}). "
                f"Max of {MAX_SANS}",
                cert_name=name,
            ))

        for san in spec.sans:
            try:
                resolve_zone(san, zones, cert_name=name)
            except ResolutionError as e:
                errors.append(e)

    for error in errors:
        logger.error(f"Validation error: {error}")

    return errors
