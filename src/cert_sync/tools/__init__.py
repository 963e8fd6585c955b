"""MCP tool implementations for CERT-SYNC-SERVER."""

from .definitions import TOOL_DEFINITIONS
from .certificate_tools import CertificateTools

__all__ = [
    "TOOL_DEFINITIONS",
    "CertificateTools",
]
