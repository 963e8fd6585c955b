"""Zone manager: builds zone handles from DNS configuration."""

from typing import Optional, Dict, Any, List, Type

from ..config.models import DNSConfig, ZoneConfig
from ..core.errors import ConfigurationError
from ..core.logging import get_logger
from ..core.models import Zone, normalize_hostname
from ..core.resolver import resolve_zone
from ..handlers.base import DNSHandler
from ..handlers.cloudflare import CloudflareHandler
from ..handlers.script import ScriptHandler


class ZoneManager:
    """Owns one ``Zone`` per configured domain.

    Each zone holds its own provider handler and lock; nothing else keeps
    provider clients, so exclusive access is always through the zone.
    """

    HANDLER_MAP: Dict[str, Type[DNSHandler]] = {
        "cloudflare": CloudflareHandler,
        "script": ScriptHandler,
    }

    def __init__(self, dns_config: Optional[DNSConfig] = None):
        """Initialize zone manager.

        Args:
            dns_config: DNS configuration

        Raises:
            ConfigurationError: If a zone cannot be set up
        """
        self.logger = get_logger("zone_manager")
        self._zones: Dict[str, Zone] = {}

        if dns_config:
            for domain, config in dns_config.zones.items():
                self._register_zone(domain, config)
            self.logger.info(f"Loaded {len(self._zones)} zones")

    def _register_zone(self, domain: str, config: ZoneConfig) -> None:
        """Create the handler and zone for one domain."""
        domain = normalize_hostname(domain)
        if domain in self._zones:
            raise ConfigurationError(f"Zone {domain} is configured twice")

        handler_class = self.HANDLER_MAP.get(config.provider)
        if not handler_class:
            raise ConfigurationError(f"Unknown DNS provider for {domain}: {config.provider}")

        try:
            handler = handler_class(domain, config)
        except ValueError as e:
            raise ConfigurationError(str(e))

        self.add_zone(Zone(domain=domain, handler=handler))
        self.logger.info(f"Registered zone: {domain} ({config.provider})")

    def add_zone(self, zone: Zone) -> None:
        """Register an already built zone."""
        self._zones[zone.domain] = zone

    def zones(self) -> List[Zone]:
        """All configured zones."""
        return list(self._zones.values())

    def get_zone(self, domain: str) -> Optional[Zone]:
        return self._zones.get(normalize_hostname(domain))

    def resolve(self, hostname: str) -> Zone:
        """Zone responsible for hostname (see ``resolve_zone``)."""
        return resolve_zone(hostname, self._zones.values())

    def list_zones(self) -> List[Dict[str, Any]]:
        """List all zones.

        Returns:
            List of zone info dictionaries
        """
        return [zone.handler.get_zone_info() for zone in self._zones.values()]

    def get_zone_count(self) -> int:
        return len(self._zones)
