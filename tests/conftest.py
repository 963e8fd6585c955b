"""Shared fakes and fixtures for CERT-SYNC-SERVER tests."""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from cert_sync.config.models import RunConfig
from cert_sync.core.errors import ProviderError
from cert_sync.core.models import Authorization, AuthorizationStatus, Zone
from cert_sync.core.resolver import challenge_record_name
from cert_sync.handlers.base import DNSHandler
from cert_sync.managers.zone_manager import ZoneManager


def make_chain(sans, not_after: Optional[datetime] = None, days: int = 90) -> bytes:
    """Self-signed leaf plus a second certificate, as a PEM bundle."""
    now = datetime.now(timezone.utc)
    not_after = not_after or now + timedelta(days=days)

    pems = []
    for common_name in (sans[0], "Fake Intermediate"):
        key = ec.generate_private_key(ec.SECP256R1())
        name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
        builder = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - timedelta(days=1))
            .not_valid_after(not_after)
        )
        if common_name == sans[0]:
            builder = builder.add_extension(
                x509.SubjectAlternativeName([x509.DNSName(s) for s in sans]),
                critical=False,
            )
        cert = builder.sign(key, hashes.SHA256())
        pems.append(cert.public_bytes(serialization.Encoding.PEM))
    return b"".join(pems)


class FakeDNSHandler(DNSHandler):
    """Records publish/remove calls instead of talking to a provider."""

    PROVIDER_TYPE = "fake"

    def __init__(self, zone_name: str, fail_publish: bool = False, fail_remove: bool = False):
        super().__init__(zone_name, {})
        self.fail_publish = fail_publish
        self.fail_remove = fail_remove
        self.published = {}
        self.removed = []

    async def publish_challenge(self, zone, record_name, value):
        if self.fail_publish:
            raise ProviderError(f"provider refused {record_name}")
        self.published[record_name] = value

    async def remove_challenge(self, zone, record_name, value=None):
        if self.fail_remove:
            raise ProviderError(f"provider refused removal of {record_name}")
        self.removed.append(record_name)
        self.published.pop(record_name, None)


class FakeAcmeClient:
    """In-memory ACME client.

    Args:
        fail_sans: SANs whose authorization polls come back invalid
        pending_polls: Number of pending polls before an authorization is valid
        errors: method name -> list of exceptions raised on successive calls
        validity_days: Lifetime of issued certificates
    """

    def __init__(self, fail_sans=(), pending_polls=0, errors=None, validity_days=90):
        self.fail_sans = set(fail_sans)
        self.pending_polls = pending_polls
        self.errors = {k: list(v) for k, v in (errors or {}).items()}
        self.validity_days = validity_days
        self.calls = []

    def _maybe_raise(self, method):
        queue = self.errors.get(method)
        if queue:
            raise queue.pop(0)

    def new_order(self, csr_pem):
        self._maybe_raise("new_order")
        csr = x509.load_pem_x509_csr(csr_pem)
        sans = csr.extensions.get_extension_for_class(
            x509.SubjectAlternativeName
        ).value.get_values_for_type(x509.DNSName)
        self.calls.append(("new_order", tuple(sans)))
        return {"sans": sans}

    def authorizations(self, order):
        self._maybe_raise("authorizations")
        return [
            Authorization(
                san=san,
                status=AuthorizationStatus.PENDING,
                challenge_token=f"token-{san}",
                record_name=challenge_record_name(san),
                handle={"polls": 0},
            )
            for san in order["sans"]
        ]

    def answer_challenge(self, authz):
        self._maybe_raise("answer_challenge")
        self.calls.append(("answer_challenge", authz.san))

    def poll_authorization(self, authz):
        self._maybe_raise("poll_authorization")
        self.calls.append(("poll_authorization", authz.san))
        if authz.san in self.fail_sans:
            authz.detail = "Incorrect TXT record"
            return AuthorizationStatus.INVALID
        authz.handle["polls"] += 1
        if authz.handle["polls"] <= self.pending_polls:
            return AuthorizationStatus.PENDING
        return AuthorizationStatus.VALID

    def finalize(self, order):
        self._maybe_raise("finalize")
        self.calls.append(("finalize", tuple(order["sans"])))
        return make_chain(order["sans"], days=self.validity_days)

    def count(self, method):
        return sum(1 for call in self.calls if call[0] == method)


def build_zone_manager(*domains, handler_factory=FakeDNSHandler) -> ZoneManager:
    manager = ZoneManager()
    for domain in domains:
        manager.add_zone(Zone(domain=domain, handler=handler_factory(domain)))
    return manager


@pytest.fixture
def zone_manager():
    """Zones for example.com and example.org backed by fake handlers."""
    return build_zone_manager("example.com", "example.org")


@pytest.fixture
def fast_run_config():
    """Run configuration without real waiting."""
    return RunConfig(
        max_attempts=3,
        initial_backoff=0,
        max_backoff=0,
        propagation_delay=0,
    )
