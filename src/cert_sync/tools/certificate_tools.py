"""Certificate sync tools for MCP."""

from typing import Optional, Dict, Any, List

from .base import BaseTool
from ..core.errors import CertSyncError
from ..service import CertSyncService


class CertificateTools(BaseTool):
    """Tools for certificate reconciliation operations."""

    def __init__(self, service: CertSyncService):
        """Initialize certificate tools.

        Args:
            service: CertSyncService instance
        """
        super().__init__("certificate")
        self.service = service

    async def get_certs(
        self,
        certificates: Optional[Dict[str, List[str]]] = None
    ) -> Dict[str, Any]:
        """Issue or renew certificates that need it."""
        try:
            outcomes = await self.service.run(certificates)
        except CertSyncError as e:
            return self._format_exception(e)

        failed = [o.name for o in outcomes if o.failed]
        data = {
            "outcomes": [o.to_dict() for o in outcomes],
            "failed": failed,
        }
        if failed:
            return self._format_error(
                f"{len(failed)} of {len(outcomes)} certificates failed", data
            )
        return self._format_success(f"Processed {len(outcomes)} certificates", data)

    async def plan_certs(
        self,
        certificates: Optional[Dict[str, List[str]]] = None
    ) -> Dict[str, Any]:
        """Preview planned actions."""
        try:
            plan = self.service.plan(certificates)
        except CertSyncError as e:
            return self._format_exception(e)

        return self._format_success(
            f"Planned {len(plan)} certificates",
            {"plan": {name: action.value for name, action in plan.items()}},
        )

    async def validate_cert_config(
        self,
        certificates: Optional[Dict[str, List[str]]] = None
    ) -> Dict[str, Any]:
        """Validate the certificate list."""
        try:
            specs, errors = self.service.validate(certificates)
        except CertSyncError as e:
            return self._format_exception(e)

        if errors:
            return self._format_error(
                f"{len(errors)} validation errors",
                {"errors": [e.to_dict() for e in errors]},
            )
        return self._format_success(
            f"{len(specs)} certificates are valid", {"certificates": sorted(specs)}
        )

    async def list_issued_certificates(self) -> Dict[str, Any]:
        """List stored certificates."""
        try:
            certificates = self.service.list_certificates()
        except CertSyncError as e:
            return self._format_exception(e)

        return self._format_success(
            f"Found {len(certificates)} certificates",
            {"certificates": certificates, "count": len(certificates)},
        )

    async def get_issued_certificate(self, name: str) -> Dict[str, Any]:
        """Get one stored certificate."""
        try:
            certificate = self.service.get_certificate(name)
        except (CertSyncError, ValueError) as e:
            return self._format_exception(e)

        if certificate is None:
            return self._format_error(f"Certificate {name} not found")
        return self._format_success(f"Certificate {name}", {"certificate": certificate})

    async def list_zones(self) -> Dict[str, Any]:
        """List configured DNS zones."""
        zones = self.service.zone_manager.list_zones()
        return self._format_success(
            f"Found {len(zones)} zones", {"zones": zones, "count": len(zones)}
        )
