"""Runs the post-issuance hook."""

import asyncio
import shlex
from typing import Optional

from ..core.errors import HookError
from ..core.logging import get_logger


class HookDispatcher:
    """Invoke ``<hook> <cert name>`` after a certificate is saved.

    Hook problems are reported back as warnings and never raised: the
    certificate is already on disk by the time the hook runs.
    """

    def __init__(self, hook_command: Optional[str] = None, timeout: float = 60.0):
        self.hook_command = hook_command
        self.timeout = timeout
        self.logger = get_logger("hook_dispatcher")

    async def notify(self, cert_name: str, hook_command: Optional[str] = None) -> Optional[str]:
        """Run the hook for a certificate.

        Args:
            cert_name: Certificate name passed as the only argument
            hook_command: Overrides the configured hook command

        Returns:
            None on success or when no hook is configured, else a warning
        """
        command = hook_command if hook_command is not None else self.hook_command
        argv = shlex.split(command) if command else []
        if not argv:
            return None

        try:
            await self._run(argv, cert_name)
        except HookError as e:
            self.logger.warning(str(e))
            return str(e)
        return None

    async def _run(self, argv: list, cert_name: str) -> None:
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                cert_name,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except FileNotFoundError:
            raise HookError(f"Hook command not found: {argv[0]}", cert_name=cert_name)
        except OSError as e:
            raise HookError(f"Cannot run hook {argv[0]}: {e}", cert_name=cert_name)

        try:
            output, _ = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise HookError(
                f"Hook for {cert_name} timed out after {self.timeout}s", cert_name=cert_name
            )

        text = output.decode("utf-8", errors="replace").strip() if output else ""
        if text:
            self.logger.debug(f"Hook output for {cert_name}: {text}")

        if proc.returncode != 0:
            raise HookError(
                f"Hook for {cert_name} exited with status {proc.returncode}", cert_name=cert_name
            )
        self.logger.info(f"Hook completed for {cert_name}")
