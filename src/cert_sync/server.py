"""STDIO server implementation for CERT-SYNC-SERVER."""

import os
import sys
import signal
from typing import Optional, Annotated, Dict, List
from datetime import datetime

from mcp.server.fastmcp import FastMCP
from pydantic import Field

from .config.loader import load_config
from .core.logging import setup_logging
from .service import CertSyncService
from .tools.certificate_tools import CertificateTools
from .tools.definitions import *


class CertSyncServer:
    """Main server class for CERT-SYNC-SERVER."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize the server.

        Args:
            config_path: Path to configuration file
        """
        self.config = load_config(config_path)
        self.logger = setup_logging(self.config.logging)

        self.service = CertSyncService(self.config)
        self.certificate_tools = CertificateTools(self.service)

        self.mcp = FastMCP("CertSync")
        self._setup_tools()

    def _setup_tools(self) -> None:
        """Register MCP tools with the server."""

        # === Certificate Run Tools (3) ===

        @self.mcp.tool(description=GET_CERTS_DESC)
        async def get_certs(
            certificates: Annotated[
                Optional[Dict[str, List[str]]],
                Field(description="Certificate name -> SANs (defaults to the configured certificate list)")
            ] = None
        ):
            return await self.certificate_tools.get_certs(certificates)

        @self.mcp.tool(description=PLAN_CERTS_DESC)
        async def plan_certs(
            certificates: Annotated[
                Optional[Dict[str, List[str]]],
                Field(description="Certificate name -> SANs (defaults to the configured certificate list)")
            ] = None
        ):
            return await self.certificate_tools.plan_certs(certificates)

        @self.mcp.tool(description=VALIDATE_CERT_CONFIG_DESC)
        async def validate_cert_config(
            certificates: Annotated[
                Optional[Dict[str, List[str]]],
                Field(description="Certificate name -> SANs (defaults to the configured certificate list)")
            ] = None
        ):
            return await self.certificate_tools.validate_cert_config(certificates)

        # === Certificate State Tools (2) ===

        @self.mcp.tool(description=LIST_ISSUED_CERTIFICATES_DESC)
        async def list_issued_certificates():
            return await self.certificate_tools.list_issued_certificates()

        @self.mcp.tool(description=GET_ISSUED_CERTIFICATE_DESC)
        async def get_issued_certificate(
            name: Annotated[str, Field(description="Certificate name")]
        ):
            return await self.certificate_tools.get_issued_certificate(name)

        # === DNS Tools (1) ===

        @self.mcp.tool(description=LIST_ZONES_DESC)
        async def list_zones():
            return await self.certificate_tools.list_zones()

        # === System Tools (2) ===

        @self.mcp.tool(description=HEALTH_CHECK_DESC)
        async def health_check():
            return {
                "status": "healthy",
                "server_name": self.config.server.name,
                "server_version": self.config.server.version,
                "configured_zones": self.service.zone_manager.get_zone_count(),
                "acme_server": self.config.acme.directory_url,
                "timestamp": datetime.now().isoformat()
            }

        @self.mcp.tool(description=GET_SERVER_INFO_DESC)
        async def get_server_info():
            return {
                "name": self.config.server.name,
                "version": self.config.server.version,
                "configured_zones": self.service.zone_manager.get_zone_count(),
                "acme_server": self.config.acme.directory_url,
                "cert_config": self.config.certs.cert_config,
                "cert_directory": self.config.certs.directory,
                "renew_under_days": self.config.certs.renew_under_days,
                "tool_categories": {
                    "certificate_run": 3,
                    "certificate_state": 2,
                    "dns": 1,
                    "system": 2
                },
                "total_tools": len(TOOL_DEFINITIONS)
            }

    def start(self) -> None:
        """Start the MCP server."""
        import anyio

        def signal_handler(signum, frame):
            self.logger.info("Received signal to shutdown...")
            sys.exit(0)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        try:
            self.logger.info(f"Starting {self.config.server.name} v{self.config.server.version}...")
            self.logger.info(f"Configured {self.service.zone_manager.get_zone_count()} zones")
            anyio.run(self.mcp.run_stdio_async)
        except Exception as e:
            self.logger.error(f"Server error: {e}")
            sys.exit(1)


def main():
    """Main entry point."""
    config_path = os.environ.get("CERT_SYNC_CONFIG")

    try:
        server = CertSyncServer(config_path)
        server.start()
    except KeyboardInterrupt:
        print("\nShutting down gracefully...", file=sys.stderr)
        sys.exit(0)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
