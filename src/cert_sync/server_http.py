"""HTTP server implementation for CERT-SYNC-SERVER."""

import os
from typing import Optional, Dict, List
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel
import uvicorn

from .config.loader import load_config
from .config.models import Config
from .core.logging import setup_logging
from .service import CertSyncService
from .tools.certificate_tools import CertificateTools
from .tools.definitions import TOOL_DEFINITIONS


# Request models
class CertificateListRequest(BaseModel):
    certificates: Optional[Dict[str, List[str]]] = None


# Global state
config: Optional[Config] = None
service: Optional[CertSyncService] = None
certificate_tools: Optional[CertificateTools] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    global config, service, certificate_tools

    # Startup
    config_path = os.environ.get("CERT_SYNC_CONFIG")
    config = load_config(config_path)
    logger = setup_logging(config.logging)

    service = CertSyncService(config)
    certificate_tools = CertificateTools(service)

    logger.info(f"Starting {config.server.name} HTTP server v{config.server.version}")
    logger.info(f"Configured {service.zone_manager.get_zone_count()} zones")

    yield

    # Shutdown
    logger.info("Shutting down HTTP server")


app = FastAPI(
    title="CERT-SYNC-SERVER",
    description="ACME certificate reconciliation API",
    version="1.0.0",
    lifespan=lifespan
)


def _reject_aborted(result: dict) -> dict:
    """Turn an aborted operation (validation or state errors) into a 400."""
    if not result.get("success") and "errors" in result:
        raise HTTPException(status_code=400, detail=result)
    return result


# === Health and Info ===

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "server_name": config.server.name,
        "server_version": config.server.version,
        "configured_zones": service.zone_manager.get_zone_count()
    }


@app.get("/info")
async def server_info():
    """Server information endpoint."""
    return {
        "name": config.server.name,
        "version": config.server.version,
        "acme_server": config.acme.directory_url,
        "configured_zones": service.zone_manager.get_zone_count(),
        "renew_under_days": config.certs.renew_under_days,
        "total_tools": len(TOOL_DEFINITIONS)
    }


# === DNS ===

@app.get("/zones")
async def list_zones():
    """List configured DNS zones."""
    return await certificate_tools.list_zones()


# === Certificates ===

@app.get("/certificates")
async def list_certificates():
    """List stored certificates."""
    return await certificate_tools.list_issued_certificates()


@app.get("/certificates/{name}")
async def get_certificate(name: str):
    """Get one stored certificate."""
    result = await certificate_tools.get_issued_certificate(name)
    if not result.get("success") and "not found" in result.get("error", ""):
        raise HTTPException(status_code=404, detail=result["error"])
    return result


@app.post("/certificates/validate")
async def validate_certificates(request: CertificateListRequest):
    """Validate a certificate list."""
    return _reject_aborted(await certificate_tools.validate_cert_config(request.certificates))


@app.post("/certificates/plan")
async def plan_certificates(request: CertificateListRequest):
    """Preview planned actions."""
    return _reject_aborted(await certificate_tools.plan_certs(request.certificates))


@app.post("/certificates/run")
async def run_certificates(request: CertificateListRequest):
    """Issue or renew certificates that need it."""
    return _reject_aborted(await certificate_tools.get_certs(request.certificates))


def main():
    """Main entry point for HTTP server."""
    config_path = os.environ.get("CERT_SYNC_CONFIG")
    cfg = load_config(config_path)

    uvicorn.run(
        "cert_sync.server_http:app",
        host=cfg.server.host,
        port=cfg.server.port,
        reload=False
    )


if __name__ == "__main__":
    main()
