"""Result formatting shared by the certificate sync tools."""

from typing import Any, Dict, Optional

from ..core.errors import CertSyncError, RunAborted
from ..core.logging import get_logger


class BaseTool:
    """Base class for tool implementations.

    Tools never raise. Every outcome, aborted runs included, comes back as a
    dictionary with a ``success`` flag plus ``message`` or ``error``.
    """

    def __init__(self, name: str):
        """Initialize base tool.

        Args:
            name: Tool name for logging
        """
        self.name = name
        self.logger = get_logger(f"tools.{name}")

    @staticmethod
    def _result(
        success: bool,
        key: str,
        text: str,
        data: Optional[Dict[str, Any]]
    ) -> Dict[str, Any]:
        result = {"success": success, key: text}
        result.update(data or {})
        return result

    def _format_success(self, message: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self._result(True, "message", message, data)

    def _format_error(self, message: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self._result(False, "error", message, data)

    def _format_exception(self, error: Exception) -> Dict[str, Any]:
        """Turn an exception into an error result.

        ``RunAborted`` lists every underlying problem under ``errors``; other
        package errors carry the certificate they concern, if any.
        """
        if isinstance(error, RunAborted):
            self.logger.warning(f"{self.name}: {error.message} ({len(error.errors)} errors)")
            return self._format_error(error.message, {
                "errors": [str(e) for e in error.errors]
            })
        if isinstance(error, CertSyncError):
            data = {"cert_name": error.cert_name} if error.cert_name else None
            return self._format_error(error.message, data)

        self.logger.error(f"{self.name} tool failed: {error}")
        return self._format_error(str(error))
