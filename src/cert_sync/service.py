"""Service facade and one-shot runner for CERT-SYNC-SERVER."""

import json
import os
import sys
from typing import Optional, Dict, Any, List, Tuple

from .config.loader import load_config, load_cert_list
from .config.models import Config
from .core.acme_client import ACMEClient, AcmeClient
from .core.certificate_utils import CertificateUtils
from .core.errors import (
    CertSyncError,
    ConfigurationError,
    CorruptStateError,
    RunAborted,
    ValidationError,
)
from .core.logging import setup_logging, get_logger
from .core.models import Action, CertificateSpec, RunOutcome
from .core.validator import VALID_CERT_NAME, build_specs, validate_certificates
from .managers.certificate_manager import CertificateManager
from .managers.hook_dispatcher import HookDispatcher
from .managers.run_coordinator import RunCoordinator
from .managers.state_store import CertificateStore
from .managers.zone_manager import ZoneManager


CertList = Dict[str, List[str]]


class CertSyncService:
    """Wires configuration, zones, state and the ACME client together."""

    def __init__(
        self,
        config: Config,
        zone_manager: Optional[ZoneManager] = None,
        acme_client: Optional[AcmeClient] = None
    ):
        """Initialize the service.

        Args:
            config: Loaded configuration
            zone_manager: Pre-built zones (built from ``config.dns`` if omitted)
            acme_client: ACME client (created on first run if omitted)
        """
        self.config = config
        self.logger = get_logger("service")
        self.zone_manager = zone_manager or ZoneManager(config.dns)
        self.store = CertificateStore(config.certs.directory)
        self.hook_dispatcher = HookDispatcher(config.certs.hook, config.certs.hook_timeout)
        self.cert_utils = CertificateUtils()
        self._acme_client = acme_client

    def _check_preconditions(self) -> None:
        if not self.config.acme.agree_tos:
            raise ConfigurationError(
                "You must agree to the ACME server's Terms of Service (acme.agree_tos)"
            )
        if not self.config.acme.email:
            raise ConfigurationError("Must provide email to use for ACME registration")

    def _get_acme_client(self) -> AcmeClient:
        if self._acme_client is None:
            self._acme_client = ACMEClient(
                directory_url=self.config.acme.directory_url,
                work_dir=self.config.certs.directory,
                email=self.config.acme.email,
                account_key_path=self.config.acme.account_key_path,
            )
        return self._acme_client

    def _load_cert_list(self, cert_list: Optional[CertList]) -> CertList:
        if cert_list is not None:
            return cert_list
        path = self.config.certs.cert_config
        try:
            return load_cert_list(path)
        except (OSError, ValueError) as e:
            raise RunAborted(
                "Cannot read certificate list",
                [ValidationError(f"Cannot read certificate list {path}: {e}")],
            )

    def validate(
        self,
        cert_list: Optional[CertList] = None
    ) -> Tuple[Dict[str, CertificateSpec], List[ValidationError]]:
        """Build specs from the certificate list and validate all of them.

        Args:
            cert_list: Certificate list; read from ``certs.cert_config`` if omitted

        Returns:
            Tuple of (specs, validation errors)
        """
        specs = build_specs(self._load_cert_list(cert_list))
        return specs, validate_certificates(specs, self.zone_manager.zones())

    def _prepare(self, cert_list: Optional[CertList]):
        specs, errors = self.validate(cert_list)
        if errors:
            raise RunAborted("Exiting due to validation errors", list(errors))
        try:
            existing = self.store.load()
        except CorruptStateError as e:
            raise RunAborted("Certificate state is unreadable", [e])
        return specs, existing

    def _coordinator(self, acme_client: Optional[AcmeClient]) -> RunCoordinator:
        certificate_manager = CertificateManager(
            acme_client=acme_client,
            zone_manager=self.zone_manager,
            acme_config=self.config.acme,
            run_config=self.config.run,
        )
        return RunCoordinator(
            store=self.store,
            certificate_manager=certificate_manager,
            hook_dispatcher=self.hook_dispatcher,
            certs_config=self.config.certs,
            run_config=self.config.run,
        )

    def plan(self, cert_list: Optional[CertList] = None) -> Dict[str, Action]:
        """Report what a run would do, without contacting anything.

        Raises:
            RunAborted: On validation errors or unreadable state
        """
        specs, existing = self._prepare(cert_list)
        return self._coordinator(None).plan(specs, existing)

    async def run(self, cert_list: Optional[CertList] = None) -> List[RunOutcome]:
        """Issue or renew every certificate that needs it.

        Raises:
            RunAborted: On configuration or validation errors, before any
                certificate is touched
        """
        try:
            self._check_preconditions()
        except ConfigurationError as e:
            raise RunAborted(str(e), [e])

        specs, existing = self._prepare(cert_list)
        coordinator = self._coordinator(self._get_acme_client())
        return await coordinator.run(specs, existing)

    def list_certificates(self) -> List[Dict[str, Any]]:
        """Summaries of all stored certificates."""
        return [record.to_dict() for record in self.store.load().values()]

    def get_certificate(self, name: str) -> Optional[Dict[str, Any]]:
        """Stored certificate details, with the parsed leaf certificate."""
        if not VALID_CERT_NAME.fullmatch(name):
            return None
        record = self.store.get(name)
        if record is None:
            return None
        data = record.to_dict()
        data["certificate"] = self.cert_utils.parse_certificate(record.chain, name).to_dict()
        return data


def main():
    """Run once and exit: 0 all good, 1 some certificate failed, 2 aborted."""
    import anyio

    try:
        config = load_config(os.environ.get("CERT_SYNC_CONFIG"))
        logger = setup_logging(config.logging)
        service = CertSyncService(config)
    except (CertSyncError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)

    try:
        outcomes = anyio.run(service.run)
    except RunAborted as e:
        for error in e.errors:
            print(f"Error: {error}", file=sys.stderr)
        logger.error(e.message)
        sys.exit(2)

    print(json.dumps([o.to_dict() for o in outcomes], indent=2))
    sys.exit(1 if any(o.failed for o in outcomes) else 0)


if __name__ == "__main__":
    main()
