"""Certificate manager: drives one ACME DNS-01 issuance end to end."""

import asyncio
from datetime import datetime, timezone
from typing import Optional, List, Callable, Any

from .zone_manager import ZoneManager
from ..config.models import ACMEConfig, RunConfig
from ..core.acme_client import AcmeClient
from ..core.certificate_utils import CertificateUtils
from ..core.errors import (
    AuthorizationFailed,
    CertSyncError,
    IssuanceError,
    Timeout,
)
from ..core.logging import get_logger
from ..core.models import (
    Authorization,
    AuthorizationStatus,
    CertificateRecord,
    CertificateSpec,
)
from ..core.resolver import resolve_zone


class CertificateManager:
    """Obtains certificates for specs through an ACME client.

    Flow per certificate: order, publish a TXT record for every pending
    authorization through its zone, ask the CA to validate, poll with
    exponential backoff, finalize, and always remove what was published.
    """

    def __init__(
        self,
        acme_client: AcmeClient,
        zone_manager: ZoneManager,
        acme_config: Optional[ACMEConfig] = None,
        run_config: Optional[RunConfig] = None
    ):
        """Initialize certificate manager.

        Args:
            acme_client: ACME client used for every order
            zone_manager: Zones able to publish challenge records
            acme_config: ACME configuration (key type and size)
            run_config: Retry and pacing configuration
        """
        self.acme_client = acme_client
        self.zone_manager = zone_manager
        self.acme_config = acme_config or ACMEConfig()
        self.run_config = run_config or RunConfig()
        self.logger = get_logger("certificate_manager")
        self.cert_utils = CertificateUtils()

    def _backoff(self, attempt: int) -> float:
        return min(self.run_config.initial_backoff * (2 ** attempt), self.run_config.max_backoff)

    async def _retry(self, description: str, fn: Callable, *args) -> Any:
        """Run a blocking ACME call off the event loop, retrying transient errors."""
        attempts = self.run_config.max_attempts
        for attempt in range(attempts):
            try:
                return await asyncio.to_thread(fn, *args)
            except IssuanceError as e:
                if not e.retryable or attempt + 1 >= attempts:
                    raise
                delay = self._backoff(attempt)
                self.logger.warning(
                    f"{description} failed ({e}); retry {attempt + 1}/{attempts - 1} in {delay:.1f}s"
                )
                await asyncio.sleep(delay)

    async def _wait_until_valid(self, authz: Authorization, cert_name: str) -> None:
        """Poll an authorization until it is valid.

        Raises:
            AuthorizationFailed: If the CA marks it invalid (never retried)
            Timeout: If it is still pending once the attempt budget is used
        """
        attempts = self.run_config.max_attempts
        for attempt in range(attempts):
            status = await self._retry(f"poll {authz.san}", self.acme_client.poll_authorization, authz)
            if status == AuthorizationStatus.VALID:
                self.logger.info(f"Authorization for {authz.san} is valid")
                return
            if status == AuthorizationStatus.INVALID:
                raise AuthorizationFailed(authz.san, authz.detail, cert_name=cert_name)
            if attempt + 1 < attempts:
                await asyncio.sleep(self._backoff(attempt))

        raise Timeout(
            f"authorization for '{authz.san}' still pending after {attempts} polls",
            cert_name=cert_name,
        )

    async def _publish(self, authz: Authorization, cert_name: str) -> None:
        authz.zone = resolve_zone(authz.san, self.zone_manager.zones(), cert_name=cert_name)
        self.logger.info(
            f"Publishing challenge {authz.record_name} in zone {authz.zone.domain}"
        )
        await authz.zone.publish_challenge(authz.record_name, authz.challenge_token)

    async def _cleanup(self, published: List[Authorization]) -> None:
        """Remove published challenge records; failures are only logged."""
        for authz in published:
            try:
                await authz.zone.remove_challenge(authz.record_name, authz.challenge_token)
            except Exception as e:
                self.logger.warning(f"Failed to remove challenge {authz.record_name}: {e}")

    async def issue(self, spec: CertificateSpec) -> CertificateRecord:
        """Obtain a certificate for a spec.

        Args:
            spec: Certificate to issue

        Returns:
            New certificate record (not yet saved)

        Raises:
            IssuanceError: AuthorizationFailed, ProviderError, RateLimited,
                NetworkError or Timeout
        """
        try:
            return await self._issue(spec)
        except CertSyncError as e:
            if e.cert_name is None:
                e.cert_name = spec.name
            raise

    async def _issue(self, spec: CertificateSpec) -> CertificateRecord:
        self.logger.info(f"Requesting certificate {spec.name} for {', '.join(spec.sans)}")

        key, key_pem = await asyncio.to_thread(
            self.cert_utils.generate_private_key,
            self.acme_config.key_type,
            self.acme_config.key_size,
        )
        csr_pem = self.cert_utils.create_csr(spec.sans, key)

        order = await self._retry("create order", self.acme_client.new_order, csr_pem)
        authzs = await self._retry("fetch authorizations", self.acme_client.authorizations, order)
        pending = [a for a in authzs if a.status != AuthorizationStatus.VALID]

        published: List[Authorization] = []
        try:
            for authz in pending:
                await self._publish(authz, spec.name)
                published.append(authz)

            if pending and self.run_config.propagation_delay:
                self.logger.info(
                    f"Waiting {self.run_config.propagation_delay}s for DNS propagation"
                )
                await asyncio.sleep(self.run_config.propagation_delay)

            for authz in pending:
                await self._retry(f"answer {authz.san}", self.acme_client.answer_challenge, authz)
                await self._wait_until_valid(authz, spec.name)

            chain = await self._retry("finalize order", self.acme_client.finalize, order)
        finally:
            await self._cleanup(published)

        try:
            not_after, _ = self.cert_utils.leaf_not_after(chain)
        except ValueError as e:
            raise IssuanceError(f"Unusable certificate chain for {spec.name}: {e}")

        self.logger.info(f"Certificate {spec.name} issued, expires {not_after.isoformat()}")
        return CertificateRecord(
            name=spec.name,
            sans=spec.sans,
            not_after=not_after,
            chain=chain,
            private_key=key_pem,
            issued_at=datetime.now(timezone.utc),
        )
