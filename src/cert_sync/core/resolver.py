"""Map hostnames to the DNS zone able to prove control of them."""

from typing import Iterable, Optional

from .errors import NoMatchingZone
from .models import Zone, normalize_hostname


def resolve_zone(
    hostname: str,
    zones: Iterable[Zone],
    cert_name: Optional[str] = None
) -> Zone:
    """Find the most specific zone containing hostname.

    Matching is by label-aligned suffix, so ``evilexample.com`` never lands
    in ``example.com``. A wildcard SAN resolves as its base name.

    Args:
        hostname: Hostname to resolve
        zones: Candidate zones
        cert_name: Certificate the hostname belongs to, for error reporting

    Returns:
        The zone with the longest matching domain

    Raises:
        NoMatchingZone: If no zone contains the hostname
    """
    host = normalize_hostname(hostname)
    if host.startswith("*."):
        host = host[2:]

    best: Optional[Zone] = None
    for zone in zones:
        if not zone.contains(host):
            continue
        if best is None or len(zone.domain) > len(best.domain):
            best = zone

    if best is None:
        raise NoMatchingZone(hostname, cert_name=cert_name)
    return best


def challenge_record_name(hostname: str) -> str:
    """DNS-01 TXT record name for a hostname."""
    host = normalize_hostname(hostname)
    if host.startswith("*."):
        host = host[2:]
    return f"_acme-challenge.{host}"
