"""On-disk store of issued certificates."""

import base64
import binascii
import json
import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Dict

from ..core.errors import CorruptStateError, PersistError
from ..core.logging import get_logger
from ..core.models import Action, CertificateRecord, CertificateSpec


def _atomic_write(path: Path, data: bytes, mode: int = 0o644) -> None:
    """Write bytes to path via a temp file in the same directory and os.replace."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        os.fchmod(fd, mode)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    finally:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)


def _parse_time(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class CertificateStore:
    """Certificate records under ``<directory>/<name>/``.

    ``<name>.json`` is the authoritative record. ``<name>.crt`` and
    ``<name>.key`` are PEM exports for hooks and servers to pick up.
    """

    def __init__(self, directory: str):
        self.directory = Path(directory)
        self.logger = get_logger("state_store")

    def _record_path(self, name: str) -> Path:
        return self.directory / name / f"{name}.json"

    def load(self) -> Dict[str, CertificateRecord]:
        """Load every persisted record.

        Returns:
            Records keyed by certificate name; empty if nothing was stored yet

        Raises:
            CorruptStateError: If a record exists but cannot be read
        """
        records: Dict[str, CertificateRecord] = {}
        if not self.directory.is_dir():
            return records

        for entry in sorted(self.directory.iterdir()):
            if not entry.is_dir() or entry.name.startswith("."):
                continue
            record = self.get(entry.name)
            if record is not None:
                records[record.name] = record

        self.logger.debug(f"Loaded {len(records)} certificate records from {self.directory}")
        return records

    def get(self, name: str) -> Optional[CertificateRecord]:
        """Load one record by name, or None if it was never issued.

        Raises:
            CorruptStateError: If the record exists but cannot be read
        """
        path = self._record_path(name)
        if not path.exists():
            return None

        try:
            with open(path, "r") as f:
                data = json.load(f)
            record = CertificateRecord(
                name=data["name"],
                sans=tuple(data["sans"]),
                not_after=_parse_time(data["not_after"]),
                chain=base64.b64decode(data["chain"], validate=True),
                private_key=base64.b64decode(data["private_key"], validate=True),
                issued_at=_parse_time(data["issued_at"]),
            )
        except OSError as e:
            raise CorruptStateError(f"Cannot read {path}: {e}", cert_name=name)
        except (ValueError, KeyError, TypeError, binascii.Error) as e:
            raise CorruptStateError(f"Malformed certificate record {path}: {e}", cert_name=name)

        if record.name != name:
            raise CorruptStateError(
                f"Record {path} is for '{record.name}', expected '{name}'", cert_name=name
            )
        return record

    def save(self, record: CertificateRecord) -> None:
        """Atomically replace the stored record for ``record.name``.

        Raises:
            PersistError: On any I/O failure; the previous record is left intact
        """
        data = {
            "name": record.name,
            "sans": list(record.sans),
            "not_after": record.not_after.isoformat(),
            "issued_at": record.issued_at.isoformat(),
            "chain": base64.b64encode(record.chain).decode("ascii"),
            "private_key": base64.b64encode(record.private_key).decode("ascii"),
        }
        cert_dir = self.directory / record.name

        # The JSON record is replaced last; until then the old record stands.
        try:
            _atomic_write(cert_dir / f"{record.name}.crt", record.chain, 0o644)
            _atomic_write(cert_dir / f"{record.name}.key", record.private_key, 0o600)
            _atomic_write(self._record_path(record.name), json.dumps(data, indent=2).encode(), 0o600)
        except OSError as e:
            raise PersistError(f"Failed to save certificate {record.name}: {e}", cert_name=record.name)

        self.logger.info(f"Saved certificate {record.name} (expires {record.not_after.isoformat()})")

    @staticmethod
    def needs_action(
        spec: CertificateSpec,
        record: Optional[CertificateRecord],
        renewal_window_days: int,
        now: Optional[datetime] = None
    ) -> Action:
        """Decide what a certificate needs.

        Any difference between the requested and recorded SAN sets forces a
        fresh issue, subsets and supersets included.
        """
        if record is None:
            return Action.ISSUE
        if set(record.sans) != set(spec.sans):
            return Action.ISSUE

        now = now or datetime.now(timezone.utc)
        if record.not_after - now <= timedelta(days=renewal_window_days):
            return Action.RENEW
        return Action.SKIP
