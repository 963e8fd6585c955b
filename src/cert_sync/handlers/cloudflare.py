"""Cloudflare DNS handler using the v4 REST API."""

from typing import Optional, List, Dict, Any

import httpx

from .base import DNSHandler
from ..config.models import ZoneConfig
from ..core.errors import ProviderError


class CloudflareHandler(DNSHandler):
    """Handler for zones hosted on Cloudflare."""

    PROVIDER_TYPE = "cloudflare"

    API_BASE = "https://api.cloudflare.com/client/v4"

    def __init__(
        self,
        zone_name: str,
        config: ZoneConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """Initialize Cloudflare handler.

        Args:
            zone_name: Domain of the zone
            config: Zone configuration
            transport: Optional httpx transport (used by tests)
        """
        super().__init__(zone_name, config.model_dump(exclude={"api_token"}))
        if not config.api_token:
            raise ValueError(f"Cloudflare zone {zone_name} requires 'api_token'")
        self.api_token = config.api_token
        self.ttl = config.ttl
        self.timeout = config.timeout
        self._zone_id: Optional[str] = config.zone_id
        self._transport = transport

    def _get_headers(self) -> dict:
        """Get request headers."""
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
        }

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        data: Optional[dict] = None,
        params: Optional[dict] = None
    ) -> Dict[str, Any]:
        """Make API request to Cloudflare."""
        url = f"{self.API_BASE}{endpoint}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(
                    method, url, headers=self._get_headers(), json=data, params=params
                )
        except httpx.HTTPError as e:
            raise ProviderError(f"Cloudflare request failed for zone {self.zone_name}: {e}")

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400 or not body.get("success", False):
            errors = body.get("errors") or response.text
            raise ProviderError(
                f"Cloudflare API error ({response.status_code}) for zone {self.zone_name}: {errors}"
            )

        return body

    async def _get_zone_id(self) -> str:
        """Look up (and cache) the Cloudflare zone id."""
        if self._zone_id:
            return self._zone_id

        body = await self._make_request("GET", "/zones", params={"name": self.zone_name})
        results = body.get("result") or []
        if not results:
            raise ProviderError(f"Cloudflare zone not found: {self.zone_name}")

        self._zone_id = results[0]["id"]
        return self._zone_id

    async def _find_records(self, record_name: str) -> List[Dict[str, Any]]:
        zone_id = await self._get_zone_id()
        body = await self._make_request(
            "GET",
            f"/zones/{zone_id}/dns_records",
            params={"type": "TXT", "name": record_name},
        )
        return body.get("result") or []

    async def publish_challenge(self, zone: str, record_name: str, value: str) -> None:
        """Create the TXT record."""
        zone_id = await self._get_zone_id()
        await self._make_request(
            "POST",
            f"/zones/{zone_id}/dns_records",
            data={"type": "TXT", "name": record_name, "content": value, "ttl": self.ttl},
        )
        self.logger.info(f"Published TXT record {record_name}")

    async def remove_challenge(
        self,
        zone: str,
        record_name: str,
        value: Optional[str] = None
    ) -> None:
        """Delete matching TXT records."""
        zone_id = await self._get_zone_id()
        for record in await self._find_records(record_name):
            content = record.get("content", "").strip('"')
            if value is not None and content != value:
                continue
            await self._make_request("DELETE", f"/zones/{zone_id}/dns_records/{record['id']}")
            self.logger.info(f"Removed TXT record {record_name}")
