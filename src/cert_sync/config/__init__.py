"""Configuration module for CERT-SYNC-SERVER."""

from .loader import load_config, load_cert_list, save_cert_list
from .models import Config

__all__ = ["load_config", "load_cert_list", "save_cert_list", "Config"]
