"""Pydantic configuration models for CERT-SYNC-SERVER."""

from typing import Optional, Dict, Literal, List
from urllib.parse import urlparse
from pydantic import BaseModel, Field, field_validator, model_validator
from pathlib import Path


ACME_DIRECTORIES = {
    "staging": "https://acme-staging-v02.api.letsencrypt.org/directory",
    "live": "https://acme-v02.api.letsencrypt.org/directory",
}


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8816, description="Server port")
    name: str = Field(default="cert-sync-server", description="Server name")
    version: str = Field(default="1.0.0", description="Server version")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    console: bool = Field(default=True, description="Enable console logging")
    file_path: Optional[str] = Field(default=None, description="Log file path")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format"
    )


class ACMEConfig(BaseModel):
    """ACME/Let's Encrypt configuration."""

    server: str = Field(
        default="staging",
        description="'staging', 'live' or a full ACME directory URL"
    )
    email: Optional[str] = Field(default=None, description="Contact email for registration")
    agree_tos: bool = Field(default=False, description="Agree to the CA's terms of service")
    key_type: Literal["rsa", "ec"] = Field(default="rsa", description="Certificate key type")
    key_size: int = Field(default=2048, description="Key size for RSA keys")
    account_key_path: Optional[str] = Field(
        default=None, description="Path to ACME account key"
    )

    @field_validator("account_key_path")
    @classmethod
    def expand_path(cls, v: Optional[str]) -> Optional[str]:
        if v:
            return str(Path(v).expanduser())
        return v

    @field_validator("server")
    @classmethod
    def check_server(cls, v: str) -> str:
        if v in ACME_DIRECTORIES:
            return v
        parsed = urlparse(v)
        if parsed.scheme != "https" or not parsed.netloc:
            raise ValueError(
                "ACME server must be 'staging', 'live' or an https directory URL"
            )
        return v

    @property
    def directory_url(self) -> str:
        return ACME_DIRECTORIES.get(self.server, self.server)


class CertsConfig(BaseModel):
    """Desired certificates and where their state lives."""

    cert_config: str = Field(
        default="certs.json", description="JSON file listing certificates to issue"
    )
    directory: str = Field(
        default="certs", description="Directory to store certificates and other data"
    )
    renew_under_days: int = Field(
        default=15, ge=0, description="Renew certs with less than this many days remaining"
    )
    hook: Optional[str] = Field(
        default=None,
        description="Command run after a certificate is issued or renewed; "
                    "the certificate name is given as first argument"
    )
    hook_timeout: float = Field(default=60.0, gt=0, description="Hook timeout in seconds")

    @field_validator("cert_config", "directory")
    @classmethod
    def expand_paths(cls, v: str) -> str:
        return str(Path(v).expanduser())


class RunConfig(BaseModel):
    """Retry, pacing and concurrency knobs for a run."""

    max_workers: int = Field(default=1, ge=1, description="Certificates processed in parallel")
    run_timeout: float = Field(default=1800.0, gt=0, description="Overall run timeout in seconds")
    max_attempts: int = Field(default=8, ge=1, description="Attempt budget per ACME call")
    initial_backoff: float = Field(default=2.0, ge=0, description="First retry delay in seconds")
    max_backoff: float = Field(default=60.0, ge=0, description="Longest retry delay in seconds")
    propagation_delay: float = Field(
        default=10.0, ge=0, description="Seconds to wait after publishing TXT records"
    )


class ZoneConfig(BaseModel):
    """DNS zone and the provider able to edit it."""

    provider: Literal["cloudflare", "script"] = Field(..., description="DNS provider type")
    api_token: Optional[str] = Field(default=None, description="Cloudflare API token")
    zone_id: Optional[str] = Field(default=None, description="Cloudflare zone id (looked up if absent)")
    command: Optional[List[str]] = Field(
        default=None, description="Script provider command, called as <cmd> publish|remove <fqdn> <value>"
    )
    ttl: int = Field(default=120, description="TTL for challenge records")
    timeout: int = Field(default=30, description="Request timeout in seconds")

    @model_validator(mode="after")
    def check_provider_settings(self) -> "ZoneConfig":
        if self.provider == "script" and not self.command:
            raise ValueError("script provider requires 'command'")
        return self


class DNSConfig(BaseModel):
    """All configured DNS zones, keyed by domain."""

    zones: Dict[str, ZoneConfig] = Field(default_factory=dict, description="Zones by domain")


class Config(BaseModel):
    """Main configuration model."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    acme: ACMEConfig = Field(default_factory=ACMEConfig)
    certs: CertsConfig = Field(default_factory=CertsConfig)
    run: RunConfig = Field(default_factory=RunConfig)
    dns: DNSConfig = Field(default_factory=DNSConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
