"""DNS provider handlers for CERT-SYNC-SERVER."""

from .base import DNSHandler
from .cloudflare import CloudflareHandler
from .script import ScriptHandler

__all__ = [
    "DNSHandler",
    "CloudflareHandler",
    "ScriptHandler",
]
