"""Base DNS handler interface for DNS-01 challenge records."""

from abc import ABC, abstractmethod
from typing import Optional, Dict, Any

from ..core.logging import get_logger


class DNSHandler(ABC):
    """Abstract base class for DNS provider handlers.

    A handler edits TXT records in one zone. It is driven through
    ``Zone``, which serializes calls per zone.
    """

    PROVIDER_TYPE: str = "unknown"

    def __init__(self, zone_name: str, config: dict):
        """Initialize DNS handler.

        Args:
            zone_name: Domain of the zone this handler edits
            config: Zone configuration dictionary
        """
        self.zone_name = zone_name
        self.config = config
        self.logger = get_logger(f"handler.{self.PROVIDER_TYPE}.{zone_name}")

    @abstractmethod
    async def publish_challenge(self, zone: str, record_name: str, value: str) -> None:
        """Publish a DNS-01 TXT record.

        Args:
            zone: Zone domain
            record_name: Fully qualified record name (``_acme-challenge.<host>``)
            value: TXT record value

        Raises:
            ProviderError: If the provider rejects the change
        """
        pass

    @abstractmethod
    async def remove_challenge(
        self,
        zone: str,
        record_name: str,
        value: Optional[str] = None
    ) -> None:
        """Remove a DNS-01 TXT record.

        Args:
            zone: Zone domain
            record_name: Fully qualified record name
            value: TXT value to remove; all TXT records at the name if omitted

        Raises:
            ProviderError: If the provider rejects the change
        """
        pass

    def get_zone_info(self) -> Dict[str, Any]:
        """Get zone information.

        Returns:
            Zone information dictionary
        """
        return {
            "zone": self.zone_name,
            "provider": self.PROVIDER_TYPE,
        }
