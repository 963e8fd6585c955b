"""Tool descriptions for MCP tools."""

# Certificate Run Tools (3)
GET_CERTS_DESC = """Issue or renew every certificate in the certificate list that needs it.
Validates the list, compares it against stored certificates, runs ACME DNS-01 issuance
for missing, changed or expiring certificates and runs the post-issuance hook.
Returns one outcome per certificate (skipped, issued, renewed or failed)."""

PLAN_CERTS_DESC = """Preview what get_certs would do without contacting the ACME server.
Returns the planned action (skip, issue or renew) for each certificate."""

VALIDATE_CERT_CONFIG_DESC = """Validate the certificate list against the configured DNS zones.
Reports every invalid certificate name, SAN count problem and unmatched SAN at once."""

# Certificate State Tools (2)
LIST_ISSUED_CERTIFICATES_DESC = """List certificates stored in the certificate directory.
Returns names, SANs, issue time and expiry for each stored certificate."""

GET_ISSUED_CERTIFICATE_DESC = """Get details of one stored certificate.
Returns SANs, expiry, issuer, fingerprint and days remaining. Private keys are never returned."""

# DNS Tools (1)
LIST_ZONES_DESC = """List configured DNS zones and their providers.
SANs are matched to the most specific zone containing them."""

# System Tools (2)
HEALTH_CHECK_DESC = """Check the health status of the certificate sync server.
Returns server status, configured zone count and ACME server."""

GET_SERVER_INFO_DESC = """Get information about the certificate sync server.
Returns server name, version, available tools, and configuration summary."""

# Tool definitions for registration
TOOL_DEFINITIONS = {
    # Certificate Run
    "get_certs": GET_CERTS_DESC,
    "plan_certs": PLAN_CERTS_DESC,
    "validate_cert_config": VALIDATE_CERT_CONFIG_DESC,

    # Certificate State
    "list_issued_certificates": LIST_ISSUED_CERTIFICATES_DESC,
    "get_issued_certificate": GET_ISSUED_CERTIFICATE_DESC,

    # DNS
    "list_zones": LIST_ZONES_DESC,

    # System
    "health_check": HEALTH_CHECK_DESC,
    "get_server_info": GET_SERVER_INFO_DESC,
}
