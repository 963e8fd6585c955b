"""ACME client built on the ``acme`` library from the certbot project.

``ACMEClient`` exposes the handful of order operations the challenge flow
needs and translates library failures into this package's error types:
rate limits and transport problems become retryable errors, everything
else is terminal.
"""

import os
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, List, Optional, Protocol
from urllib.parse import urlparse

import josepy as jose
from acme import challenges, messages
from acme import client as acme_client
from acme import errors as acme_errors
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from .errors import (
    AuthorizationFailed,
    IssuanceError,
    NetworkError,
    RateLimited,
    Timeout,
)
from .logging import get_logger
from .models import Authorization, AuthorizationStatus


USER_AGENT = "cert-sync-server"

# ACME problem types that are worth retrying
_TRANSIENT_PROBLEMS = {"badNonce", "serverInternal"}


class AcmeClient(Protocol):
    """Operations the challenge flow needs from an ACME client."""

    def new_order(self, csr_pem: bytes) -> Any: ...

    def authorizations(self, order: Any) -> List[Authorization]: ...

    def answer_challenge(self, authz: Authorization) -> None: ...

    def poll_authorization(self, authz: Authorization) -> AuthorizationStatus: ...

    def finalize(self, order: Any) -> bytes: ...


def _status(status: Any) -> AuthorizationStatus:
    if status == messages.STATUS_VALID:
        return AuthorizationStatus.VALID
    if status in (messages.STATUS_INVALID, messages.STATUS_DEACTIVATED):
        return AuthorizationStatus.INVALID
    return AuthorizationStatus.PENDING


def _problem_code(error: messages.Error) -> str:
    return (error.typ or "").rsplit(":", 1)[-1]


class ACMEClient:
    """ACME v2 client for DNS-01 issuance.

    The account key lives in ``<work_dir>/.acme/<server host>/account.key``
    unless an explicit path is configured, and the account is registered (or
    looked up) on first use.
    """

    def __init__(
        self,
        directory_url: str,
        work_dir: str,
        email: str,
        account_key_path: Optional[str] = None,
        finalize_timeout: float = 90.0
    ):
        """Initialize ACME client.

        Args:
            directory_url: ACME directory endpoint
            work_dir: Directory for account material
            email: Registration email
            account_key_path: Optional explicit account key path
            finalize_timeout: Seconds to wait for the order to become valid
        """
        self.directory_url = directory_url
        self.email = email
        self.finalize_timeout = finalize_timeout
        self.logger = get_logger("acme_client")

        host = urlparse(directory_url).netloc or "acme"
        self.account_dir = Path(work_dir) / ".acme" / host
        self.account_key_path = Path(account_key_path) if account_key_path else self.account_dir / "account.key"

        self._jwk: Optional[jose.JWKRSA] = None
        self._client: Optional[acme_client.ClientV2] = None
        self._lock = threading.Lock()

    def _load_or_create_account_key(self) -> jose.JWKRSA:
        try:
            return self._read_or_write_account_key(self.account_key_path)
        except OSError as e:
            raise IssuanceError(f"Cannot access ACME account key {self.account_key_path}: {e}")

    def _read_or_write_account_key(self, path: Path) -> jose.JWKRSA:
        if path.exists():
            with open(path, "rb") as f:
                key = serialization.load_pem_private_key(f.read(), password=None)
            if not isinstance(key, rsa.RSAPrivateKey):
                raise IssuanceError(f"Account key {path} is not an RSA private key")
            return jose.JWKRSA(key=key)

        self.logger.info(f"Creating ACME account key at {path}")
        key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        with os.fdopen(fd, "wb") as f:
            f.write(key.private_bytes(
                serialization.Encoding.PEM,
                serialization.PrivateFormat.PKCS8,
                serialization.NoEncryption(),
            ))
        return jose.JWKRSA(key=key)

    def register(self) -> None:
        """Connect to the directory and register or look up the account.

        The caller must have agreed to the CA's terms of service.
        """
        with self._lock:
            if self._client is None:
                self._call(self._register)

    def _register(self) -> None:
        jwk = self._load_or_create_account_key()
        net = acme_client.ClientNetwork(jwk, user_agent=USER_AGENT)
        directory = acme_client.ClientV2.get_directory(self.directory_url, net)
        client = acme_client.ClientV2(directory, net=net)
        registration = messages.NewRegistration.from_data(
            email=self.email, terms_of_service_agreed=True
        )
        try:
            regr = client.new_account(registration)
            self.logger.info(f"Registered ACME account {regr.uri}")
        except acme_errors.ConflictError as e:
            regr = messages.RegistrationResource(uri=e.location, body=messages.Registration())
            client.query_registration(regr)
            self.logger.info(f"Using existing ACME account {e.location}")
        self._jwk = jwk
        self._client = client

    @property
    def client(self) -> acme_client.ClientV2:
        if self._client is None:
            self.register()
        return self._client

    def _call(self, fn: Callable, *args, **kwargs):
        """Run a library call, translating its failures."""
        try:
            return fn(*args, **kwargs)
        except acme_errors.TimeoutError as e:
            raise Timeout(f"ACME operation timed out: {e}")
        except acme_errors.ValidationError as e:
            failed = [a.body.identifier.value for a in getattr(e, "failed_authzrs", [])]
            raise AuthorizationFailed(", ".join(failed) or "order", str(e))
        except messages.Error as e:
            code = _problem_code(e)
            if code == "rateLimited":
                raise RateLimited(f"ACME rate limit: {e.detail or e}")
            if code in _TRANSIENT_PROBLEMS:
                raise NetworkError(f"ACME server error ({code}): {e.detail or e}")
            raise IssuanceError(f"ACME error ({code}): {e.detail or e}")
        except OSError as e:
            # requests' exceptions derive from IOError
            raise NetworkError(f"Network error talking to ACME server: {e}")
        except acme_errors.Error as e:
            raise IssuanceError(f"ACME client error: {e}")

    def new_order(self, csr_pem: bytes) -> messages.OrderResource:
        return self._call(self.client.new_order, csr_pem)

    def authorizations(self, order: messages.OrderResource) -> List[Authorization]:
        authzs = []
        for authzr in order.authorizations:
            domain = authzr.body.identifier.value
            san = f"*.{domain}" if authzr.body.wildcard else domain

            challb = next(
                (c for c in authzr.body.challenges if isinstance(c.chall, challenges.DNS01)),
                None,
            )
            status = _status(authzr.body.status)
            if challb is None:
                if status == AuthorizationStatus.VALID:
                    continue
                raise IssuanceError(f"ACME server offered no dns-01 challenge for {san}")

            authzs.append(Authorization(
                san=san,
                status=status,
                challenge_token=challb.chall.validation(self._jwk),
                record_name=challb.chall.validation_domain_name(domain),
                handle=(authzr, challb),
            ))
        return authzs

    def answer_challenge(self, authz: Authorization) -> None:
        _, challb = authz.handle
        self._call(self.client.answer_challenge, challb, challb.response(self._jwk))

    def poll_authorization(self, authz: Authorization) -> AuthorizationStatus:
        authzr, challb = authz.handle
        authzr, _ = self._call(self.client.poll, authzr)
        authz.handle = (authzr, challb)
        authz.status = _status(authzr.body.status)

        if authz.status == AuthorizationStatus.INVALID:
            errors = [str(c.error) for c in authzr.body.challenges if c.error is not None]
            authz.detail = "; ".join(errors)
        return authz.status

    def finalize(self, order: messages.OrderResource) -> bytes:
        deadline = datetime.now() + timedelta(seconds=self.finalize_timeout)
        order = self._call(self.client.finalize_order, order, deadline)
        fullchain = order.fullchain_pem
        if not fullchain:
            raise IssuanceError("ACME server returned an empty certificate chain")
        return fullchain.encode() if isinstance(fullchain, str) else fullchain

    def get_account_info(self) -> dict:
        """Get ACME account information."""
        return {
            "email": self.email,
            "directory_url": self.directory_url,
            "account_key_path": str(self.account_key_path),
            "registered": self._client is not None,
        }
