"""Configuration loader for CERT-SYNC-SERVER."""

import os
import json
from pathlib import Path
from typing import Dict, List, Optional

from .models import Config


_TRUE_VALUES = ("true", "1", "yes")


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from file or environment.

    Args:
        config_path: Path to configuration file. If not provided,
                    uses CERT_SYNC_CONFIG environment variable.

    Returns:
        Config object

    Raises:
        FileNotFoundError: If config file not found
        ValueError: If config file is invalid
    """
    path = config_path or os.environ.get("CERT_SYNC_CONFIG")

    if path:
        config_file = Path(path).expanduser()

        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_file}")

        with open(config_file, "r") as f:
            config_data = json.load(f)

        config_data = _apply_env_overrides(config_data)

        return Config(**config_data)

    return Config(**_apply_env_overrides({}))


def _apply_env_overrides(config_data: dict) -> dict:
    """Apply environment variable overrides to config data."""
    acme = config_data.setdefault("acme", {})

    if os.environ.get("ACME_EMAIL"):
        acme["email"] = os.environ["ACME_EMAIL"]

    if os.environ.get("ACME_SERVER"):
        acme["server"] = os.environ["ACME_SERVER"]

    if os.environ.get("ACME_ACCOUNT_KEY_PATH"):
        acme["account_key_path"] = os.environ["ACME_ACCOUNT_KEY_PATH"]

    if os.environ.get("ACME_AGREE_TOS"):
        acme["agree_tos"] = os.environ["ACME_AGREE_TOS"].lower() in _TRUE_VALUES

    certs = config_data.setdefault("certs", {})

    if os.environ.get("CERT_DIRECTORY"):
        certs["directory"] = os.environ["CERT_DIRECTORY"]

    if os.environ.get("CERT_CONFIG"):
        certs["cert_config"] = os.environ["CERT_CONFIG"]

    if os.environ.get("CERT_RENEW_DAYS"):
        certs["renew_under_days"] = int(os.environ["CERT_RENEW_DAYS"])

    if os.environ.get("CERT_HOOK"):
        certs["hook"] = os.environ["CERT_HOOK"]

    logging_data = config_data.setdefault("logging", {})

    if os.environ.get("LOG_LEVEL"):
        logging_data["level"] = os.environ["LOG_LEVEL"].upper()

    return config_data


def save_config(config: Config, config_path: str) -> None:
    """Save configuration to file.

    Args:
        config: Config object to save
        config_path: Path to save configuration file
    """
    config_file = Path(config_path).expanduser()
    config_file.parent.mkdir(parents=True, exist_ok=True)

    with open(config_file, "w") as f:
        json.dump(config.model_dump(exclude_none=True), f, indent=2)


def load_cert_list(path: str) -> Dict[str, List[str]]:
    """Load the desired certificate list.

    The file is a JSON object mapping certificate name to a list of SANs.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not a name -> list of strings mapping
    """
    with open(Path(path).expanduser(), "r") as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object of name -> SAN list")

    for name, sans in data.items():
        if not isinstance(sans, list) or not all(isinstance(s, str) for s in sans):
            raise ValueError(f"{path}: SANs for '{name}' must be a list of strings")

    return data


def save_cert_list(path: str, cert_list: Dict[str, List[str]]) -> None:
    """Write a certificate list in the format read by load_cert_list."""
    cert_file = Path(path).expanduser()
    cert_file.parent.mkdir(parents=True, exist_ok=True)

    with open(cert_file, "w") as f:
        json.dump(cert_list, f, indent=2)
