"""Run coordinator: reconciles every desired certificate independently."""

import asyncio
from typing import Dict, List, Mapping, Optional

from .certificate_manager import CertificateManager
from .hook_dispatcher import HookDispatcher
from .state_store import CertificateStore
from ..config.models import CertsConfig, RunConfig
from ..core.errors import CertSyncError, Timeout
from ..core.logging import get_logger
from ..core.models import (
    Action,
    CertificateRecord,
    CertificateSpec,
    OutcomeAction,
    RunOutcome,
)


class RunCoordinator:
    """Process each certificate on its own and collect one outcome per name.

    A failure is recorded on that certificate's outcome and never stops the
    others. At most ``max_workers`` certificates are in flight; whatever is
    still running when ``run_timeout`` elapses is cancelled and reported as
    failed with a ``Timeout``.
    """

    def __init__(
        self,
        store: CertificateStore,
        certificate_manager: CertificateManager,
        hook_dispatcher: HookDispatcher,
        certs_config: Optional[CertsConfig] = None,
        run_config: Optional[RunConfig] = None
    ):
        self.store = store
        self.certificate_manager = certificate_manager
        self.hook_dispatcher = hook_dispatcher
        self.certs_config = certs_config or CertsConfig()
        self.run_config = run_config or RunConfig()
        self.logger = get_logger("run_coordinator")

    def plan(
        self,
        specs: Mapping[str, CertificateSpec],
        existing: Mapping[str, CertificateRecord]
    ) -> Dict[str, Action]:
        """Decide what each certificate needs without doing any of it."""
        return {
            name: self.store.needs_action(
                specs[name], existing.get(name), self.certs_config.renew_under_days
            )
            for name in sorted(specs)
        }

    async def run(
        self,
        specs: Mapping[str, CertificateSpec],
        existing: Mapping[str, CertificateRecord]
    ) -> List[RunOutcome]:
        """Reconcile all specs.

        Args:
            specs: Validated certificate specs keyed by name
            existing: Records loaded from the state store

        Returns:
            One outcome per spec, sorted by certificate name
        """
        if not specs:
            return []

        semaphore = asyncio.Semaphore(self.run_config.max_workers)

        async def guarded(spec: CertificateSpec) -> RunOutcome:
            async with semaphore:
                return await self._process(spec, existing.get(spec.name))

        tasks = {
            name: asyncio.create_task(guarded(specs[name]), name=f"cert-{name}")
            for name in sorted(specs)
        }
        _, pending = await asyncio.wait(tasks.values(), timeout=self.run_config.run_timeout)

        if pending:
            self.logger.error(
                f"Run timed out after {self.run_config.run_timeout}s; "
                f"cancelling {len(pending)} certificates"
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        outcomes = []
        for name, task in tasks.items():
            if task in pending:
                outcomes.append(RunOutcome(
                    name=name,
                    action=OutcomeAction.FAILED,
                    error=Timeout(
                        f"run timed out after {self.run_config.run_timeout}s", cert_name=name
                    ),
                ))
            else:
                outcomes.append(task.result())

        failed = sum(1 for o in outcomes if o.failed)
        self.logger.info(f"Run finished: {len(outcomes)} certificates, {failed} failed")
        return outcomes

    async def _process(
        self,
        spec: CertificateSpec,
        record: Optional[CertificateRecord]
    ) -> RunOutcome:
        action = self.store.needs_action(spec, record, self.certs_config.renew_under_days)
        if action == Action.SKIP:
            self.logger.info(f"Certificate {spec.name} is up to date")
            return RunOutcome(name=spec.name, action=OutcomeAction.SKIPPED)

        self.logger.info(f"Certificate {spec.name} needs {action.value}")
        try:
            new_record = await self.certificate_manager.issue(spec)
            self.store.save(new_record)
        except CertSyncError as e:
            self.logger.error(f"Certificate {spec.name} failed: {e}")
            return RunOutcome(name=spec.name, action=OutcomeAction.FAILED, error=e)
        except Exception as e:
            self.logger.exception(f"Unexpected error processing certificate {spec.name}")
            return RunOutcome(name=spec.name, action=OutcomeAction.FAILED, error=e)

        outcome = RunOutcome(
            name=spec.name,
            action=OutcomeAction.ISSUED if action == Action.ISSUE else OutcomeAction.RENEWED,
        )
        warning = await self.hook_dispatcher.notify(spec.name)
        if warning:
            outcome.warnings.append(warning)
        return outcome
