"""Manager modules for CERT-SYNC-SERVER."""

from .zone_manager import ZoneManager
from .state_store import CertificateStore
from .certificate_manager import CertificateManager
from .hook_dispatcher import HookDispatcher
from .run_coordinator import RunCoordinator

__all__ = [
    "ZoneManager",
    "CertificateStore",
    "CertificateManager",
    "HookDispatcher",
    "RunCoordinator",
]
