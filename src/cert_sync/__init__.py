"""CERT-SYNC-SERVER: keep ACME certificates in sync with a declared list."""

__version__ = "1.0.0"
