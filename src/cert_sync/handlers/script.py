"""DNS handler that delegates record changes to an external command."""

import asyncio
from typing import Optional, List

from .base import DNSHandler
from ..config.models import ZoneConfig
from ..core.errors import ProviderError


class ScriptHandler(DNSHandler):
    """Handler calling ``<command> publish|remove <fqdn> <value>``.

    Useful for DNS servers without an API client here (nsupdate wrappers,
    in-house tooling). A non-zero exit is treated as a provider rejection.
    """

    PROVIDER_TYPE = "script"

    def __init__(self, zone_name: str, config: ZoneConfig):
        super().__init__(zone_name, config.model_dump())
        self.command: List[str] = list(config.command or [])
        self.timeout = config.timeout

    async def _run(self, *args: str) -> None:
        argv = [*self.command, *args]
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ProviderError(f"Cannot run DNS script for zone {self.zone_name}: {e}")

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise ProviderError(
                f"DNS script for zone {self.zone_name} timed out after {self.timeout}s"
            )

        if proc.returncode != 0:
            raise ProviderError(
                f"DNS script for zone {self.zone_name} exited {proc.returncode}: "
                f"{stderr.decode('utf-8', errors='replace').strip()}"
            )
        if stdout:
            self.logger.debug(stdout.decode("utf-8", errors="replace").strip())

    async def publish_challenge(self, zone: str, record_name: str, value: str) -> None:
        await self._run("publish", record_name, value)

    async def remove_challenge(
        self,
        zone: str,
        record_name: str,
        value: Optional[str] = None
    ) -> None:
        await self._run("remove", record_name, value or "")
