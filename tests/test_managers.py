"""Tests for manager classes."""

import shlex
import sys
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest

from conftest import FakeAcmeClient, FakeDNSHandler, build_zone_manager, make_chain


def _spec(name, *sans):
    from cert_sync.core.models import CertificateSpec

    return CertificateSpec.from_list(name, list(sans))


def _certificate_manager(acme_client, zone_manager, run_config):
    from cert_sync.config.models import ACMEConfig
    from cert_sync.managers.certificate_manager import CertificateManager

    return CertificateManager(
        acme_client=acme_client,
        zone_manager=zone_manager,
        acme_config=ACMEConfig(key_type="ec"),
        run_config=run_config,
    )


def _handler(zone_manager, domain="example.com"):
    return zone_manager.get_zone(domain).handler


class TestZoneManager:
    """Tests for ZoneManager."""

    def test_initialization_empty(self):
        """Test ZoneManager initialization without config."""
        from cert_sync.managers.zone_manager import ZoneManager

        manager = ZoneManager()
        assert manager.get_zone_count() == 0
        assert manager.list_zones() == []

    def test_initialization_with_config(self):
        """Test ZoneManager builds one handler per zone."""
        from cert_sync.config.models import DNSConfig
        from cert_sync.handlers.cloudflare import CloudflareHandler
        from cert_sync.handlers.script import ScriptHandler
        from cert_sync.managers.zone_manager import ZoneManager

        manager = ZoneManager(DNSConfig(zones={
            "Example.com.": {"provider": "cloudflare", "api_token": "token"},
            "internal.example.com": {"provider": "script", "command": ["/bin/true"]},
        }))

        assert manager.get_zone_count() == 2
        assert isinstance(manager.get_zone("example.com").handler, CloudflareHandler)
        assert isinstance(manager.get_zone("internal.example.com").handler, ScriptHandler)
        assert manager.resolve("db.internal.example.com").domain == "internal.example.com"
        assert {"zone": "example.com", "provider": "cloudflare"} in manager.list_zones()

    def test_get_zone_not_found(self):
        """Test getting a zone that is not configured."""
        from cert_sync.managers.zone_manager import ZoneManager

        assert ZoneManager().get_zone("example.com") is None

    def test_duplicate_zone(self):
        """Test the same domain cannot be configured twice."""
        from cert_sync.config.models import DNSConfig
        from cert_sync.core.errors import ConfigurationError
        from cert_sync.managers.zone_manager import ZoneManager

        with pytest.raises(ConfigurationError, match="configured twice"):
            ZoneManager(DNSConfig(zones={
                "example.com": {"provider": "cloudflare", "api_token": "a"},
                "EXAMPLE.com.": {"provider": "cloudflare", "api_token": "b"},
            }))

    def test_cloudflare_without_token(self):
        """Test a Cloudflare zone needs an API token."""
        from cert_sync.config.models import DNSConfig
        from cert_sync.core.errors import ConfigurationError
        from cert_sync.managers.zone_manager import ZoneManager

        with pytest.raises(ConfigurationError, match="api_token"):
            ZoneManager(DNSConfig(zones={"example.com": {"provider": "cloudflare"}}))


class TestCertificateManager:
    """Tests for CertificateManager."""

    @pytest.mark.asyncio
    async def test_issue_success(self, zone_manager, fast_run_config):
        """Test a certificate is issued and challenge records are removed."""
        acme = FakeAcmeClient()
        manager = _certificate_manager(acme, zone_manager, fast_run_config)

        record = await manager.issue(_spec("web", "example.com", "www.example.com"))

        assert record.name == "web"
        assert record.sans == ("example.com", "www.example.com")
        assert record.not_after > datetime.now(timezone.utc) + timedelta(days=80)
        assert b"BEGIN CERTIFICATE" in record.chain
        assert b"PRIVATE KEY" in record.private_key

        handler = _handler(zone_manager)
        assert handler.published == {}
        assert sorted(handler.removed) == [
            "_acme-challenge.example.com", "_acme-challenge.www.example.com"
        ]
        assert acme.count("answer_challenge") == 2
        assert acme.count("finalize") == 1

    @pytest.mark.asyncio
    async def test_sans_across_zones(self, zone_manager, fast_run_config):
        """Test each SAN is published through its own zone."""
        manager = _certificate_manager(FakeAcmeClient(), zone_manager, fast_run_config)

        await manager.issue(_spec("multi", "www.example.com", "www.example.org"))

        assert _handler(zone_manager, "example.com").removed == ["_acme-challenge.www.example.com"]
        assert _handler(zone_manager, "example.org").removed == ["_acme-challenge.www.example.org"]

    @pytest.mark.asyncio
    async def test_waits_for_pending_authorization(self, zone_manager, fast_run_config):
        """Test pending authorizations are polled until valid."""
        acme = FakeAcmeClient(pending_polls=2)
        manager = _certificate_manager(acme, zone_manager, fast_run_config)

        await manager.issue(_spec("web", "example.com"))

        assert acme.count("poll_authorization") == 3

    @pytest.mark.asyncio
    async def test_invalid_authorization_not_retried(self, zone_manager, fast_run_config):
        """Test an invalid authorization fails the certificate at once."""
        from cert_sync.core.errors import AuthorizationFailed

        acme = FakeAcmeClient(fail_sans={"www.example.com"})
        manager = _certificate_manager(acme, zone_manager, fast_run_config)

        with pytest.raises(AuthorizationFailed) as exc_info:
            await manager.issue(_spec("web", "example.com", "www.example.com"))

        assert exc_info.value.san == "www.example.com"
        assert exc_info.value.cert_name == "web"
        assert "Incorrect TXT record" in str(exc_info.value)
        assert acme.calls.count(("poll_authorization", "www.example.com")) == 1
        assert acme.count("finalize") == 0
        assert _handler(zone_manager).published == {}

    @pytest.mark.asyncio
    async def test_pending_until_attempts_exhausted(self, zone_manager, fast_run_config):
        """Test an authorization that never leaves pending times out."""
        from cert_sync.core.errors import Timeout

        acme = FakeAcmeClient(pending_polls=100)
        manager = _certificate_manager(acme, zone_manager, fast_run_config)

        with pytest.raises(Timeout):
            await manager.issue(_spec("web", "example.com"))

        assert acme.count("poll_authorization") == fast_run_config.max_attempts
        assert _handler(zone_manager).removed == ["_acme-challenge.example.com"]

    @pytest.mark.asyncio
    async def test_no_backoff_after_last_poll(self, zone_manager, fast_run_config):
        """Test the poll loop does not sleep once the attempt budget is spent."""
        from cert_sync.core.errors import Timeout

        acme = FakeAcmeClient(pending_polls=100)
        manager = _certificate_manager(acme, zone_manager, fast_run_config)

        with patch(
            "cert_sync.managers.certificate_manager.asyncio.sleep", new_callable=AsyncMock
        ) as sleep:
            with pytest.raises(Timeout):
                await manager.issue(_spec("web", "example.com"))

        assert sleep.await_count == fast_run_config.max_attempts - 1

    @pytest.mark.asyncio
    async def test_retries_transient_errors(self, zone_manager, fast_run_config):
        """Test network errors and rate limits are retried."""
        from cert_sync.core.errors import NetworkError, RateLimited

        acme = FakeAcmeClient(errors={
            "new_order": [NetworkError("connection reset"), RateLimited("slow down")],
        })
        manager = _certificate_manager(acme, zone_manager, fast_run_config)

        record = await manager.issue(_spec("web", "example.com"))

        assert record.name == "web"
        assert acme.count("new_order") == 1

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, zone_manager, fast_run_config):
        """Test a transient error that never clears is raised."""
        from cert_sync.core.errors import NetworkError

        acme = FakeAcmeClient(errors={"new_order": [NetworkError("down")] * 3})
        manager = _certificate_manager(acme, zone_manager, fast_run_config)

        with pytest.raises(NetworkError):
            await manager.issue(_spec("web", "example.com"))

    @pytest.mark.asyncio
    async def test_terminal_error_not_retried(self, zone_manager, fast_run_config):
        """Test a non-retryable error at finalize is raised after cleanup."""
        from cert_sync.core.errors import IssuanceError

        acme = FakeAcmeClient(errors={
            "finalize": [IssuanceError("bad CSR"), IssuanceError("bad CSR")],
        })
        manager = _certificate_manager(acme, zone_manager, fast_run_config)

        with pytest.raises(IssuanceError, match="bad CSR"):
            await manager.issue(_spec("web", "example.com"))

        assert len(acme.errors["finalize"]) == 1
        assert _handler(zone_manager).removed == ["_acme-challenge.example.com"]

    @pytest.mark.asyncio
    async def test_provider_error(self, fast_run_config):
        """Test a provider refusing the TXT record fails before validation."""
        from cert_sync.core.errors import ProviderError

        zones = build_zone_manager(
            "example.com", handler_factory=lambda d: FakeDNSHandler(d, fail_publish=True)
        )
        acme = FakeAcmeClient()
        manager = _certificate_manager(acme, zones, fast_run_config)

        with pytest.raises(ProviderError) as exc_info:
            await manager.issue(_spec("web", "example.com"))

        assert exc_info.value.cert_name == "web"
        assert acme.count("answer_challenge") == 0

    @pytest.mark.asyncio
    async def test_cleanup_failure_is_not_fatal(self, fast_run_config):
        """Test failing to remove a TXT record only logs a warning."""
        zones = build_zone_manager(
            "example.com", handler_factory=lambda d: FakeDNSHandler(d, fail_remove=True)
        )
        manager = _certificate_manager(FakeAcmeClient(), zones, fast_run_config)

        record = await manager.issue(_spec("web", "example.com"))
        assert record.name == "web"


class TestHookDispatcher:
    """Tests for HookDispatcher."""

    def _hook(self, tmp_path, body):
        script = tmp_path / "hook.py"
        script.write_text("import sys, time\n" + body)
        return f"{shlex.quote(sys.executable)} {shlex.quote(str(script))}"

    @pytest.mark.asyncio
    async def test_no_hook(self):
        """Test nothing runs without a hook."""
        from cert_sync.managers.hook_dispatcher import HookDispatcher

        assert await HookDispatcher().notify("web") is None
        assert await HookDispatcher("   ").notify("web") is None

    @pytest.mark.asyncio
    async def test_hook_receives_cert_name(self, tmp_path):
        """Test the certificate name is the hook's argument."""
        from cert_sync.managers.hook_dispatcher import HookDispatcher

        marker = tmp_path / "called"
        command = self._hook(
            tmp_path, f"open({str(marker)!r}, 'w').write(sys.argv[1])\n"
        )

        assert await HookDispatcher(command).notify("web") is None
        assert marker.read_text() == "web"

    @pytest.mark.asyncio
    async def test_hook_nonzero_exit(self, tmp_path):
        """Test a failing hook becomes a warning."""
        from cert_sync.managers.hook_dispatcher import HookDispatcher

        warning = await HookDispatcher(self._hook(tmp_path, "sys.exit(3)\n")).notify("web")
        assert "exited with status 3" in warning

    @pytest.mark.asyncio
    async def test_hook_not_found(self):
        """Test a missing hook command becomes a warning."""
        from cert_sync.managers.hook_dispatcher import HookDispatcher

        warning = await HookDispatcher("/nonexistent/reload-hook").notify("web")
        assert "Hook command not found" in warning

    @pytest.mark.asyncio
    async def test_hook_timeout(self, tmp_path):
        """Test a hung hook is killed."""
        from cert_sync.managers.hook_dispatcher import HookDispatcher

        dispatcher = HookDispatcher(self._hook(tmp_path, "time.sleep(10)\n"), timeout=0.5)
        warning = await dispatcher.notify("web")
        assert "timed out" in warning


class TestRunCoordinator:
    """Tests for RunCoordinator."""

    def _coordinator(self, tmp_path, acme, zone_manager, run_config, hook=None):
        from cert_sync.config.models import CertsConfig
        from cert_sync.managers.hook_dispatcher import HookDispatcher
        from cert_sync.managers.run_coordinator import RunCoordinator
        from cert_sync.managers.state_store import CertificateStore

        return RunCoordinator(
            store=CertificateStore(str(tmp_path)),
            certificate_manager=_certificate_manager(acme, zone_manager, run_config),
            hook_dispatcher=HookDispatcher(hook),
            certs_config=CertsConfig(directory=str(tmp_path)),
            run_config=run_config,
        )

    def _existing(self, name, sans, days):
        from cert_sync.core.models import CertificateRecord

        not_after = datetime.now(timezone.utc) + timedelta(days=days)
        return CertificateRecord(
            name=name,
            sans=tuple(sans),
            not_after=not_after,
            chain=make_chain(list(sans), not_after=not_after),
            private_key=b"key",
            issued_at=datetime.now(timezone.utc) - timedelta(days=30),
        )

    @pytest.mark.asyncio
    async def test_empty_run(self, tmp_path, zone_manager, fast_run_config):
        """Test nothing to do."""
        coordinator = self._coordinator(tmp_path, FakeAcmeClient(), zone_manager, fast_run_config)
        assert await coordinator.run({}, {}) == []

    @pytest.mark.asyncio
    async def test_failures_are_isolated(self, tmp_path, zone_manager, fast_run_config):
        """Test one failing certificate does not affect the others."""
        from cert_sync.core.errors import AuthorizationFailed
        from cert_sync.core.models import OutcomeAction

        acme = FakeAcmeClient(fail_sans={"b.example.com"})
        coordinator = self._coordinator(tmp_path, acme, zone_manager, fast_run_config)
        specs = {
            "c": _spec("c", "c.example.com"),
            "a": _spec("a", "a.example.com"),
            "b": _spec("b", "b.example.com"),
        }
        existing = {"c": self._existing("c", ["c.example.com"], days=60)}

        outcomes = await coordinator.run(specs, existing)

        assert [o.name for o in outcomes] == ["a", "b", "c"]
        assert [o.action for o in outcomes] == [
            OutcomeAction.ISSUED, OutcomeAction.FAILED, OutcomeAction.SKIPPED
        ]
        assert isinstance(outcomes[1].error, AuthorizationFailed)
        assert outcomes[1].to_dict()["error"]["type"] == "AuthorizationFailed"

        stored = coordinator.store.load()
        assert sorted(stored) == ["a"]

    @pytest.mark.asyncio
    async def test_renewal(self, tmp_path, zone_manager, fast_run_config):
        """Test a certificate close to expiry is renewed and saved."""
        from cert_sync.core.models import OutcomeAction

        coordinator = self._coordinator(tmp_path, FakeAcmeClient(), zone_manager, fast_run_config)
        old = self._existing("web", ["example.com"], days=5)

        outcomes = await coordinator.run({"web": _spec("web", "example.com")}, {"web": old})

        assert outcomes[0].action == OutcomeAction.RENEWED
        assert coordinator.store.get("web").not_after > old.not_after

    @pytest.mark.asyncio
    async def test_san_change_issues(self, tmp_path, zone_manager, fast_run_config):
        """Test a changed SAN list is issued from scratch."""
        from cert_sync.core.models import OutcomeAction

        coordinator = self._coordinator(tmp_path, FakeAcmeClient(), zone_manager, fast_run_config)
        old = self._existing("web", ["example.com"], days=60)
        spec = _spec("web", "example.com", "www.example.com")

        outcomes = await coordinator.run({"web": spec}, {"web": old})

        assert outcomes[0].action == OutcomeAction.ISSUED
        assert coordinator.store.get("web").sans == spec.sans

    @pytest.mark.asyncio
    async def test_hook_failure_is_warning(self, tmp_path, zone_manager, fast_run_config):
        """Test a hook failure keeps the certificate issued."""
        from cert_sync.core.models import OutcomeAction

        coordinator = self._coordinator(
            tmp_path, FakeAcmeClient(), zone_manager, fast_run_config,
            hook="/nonexistent/reload-hook",
        )

        outcomes = await coordinator.run({"web": _spec("web", "example.com")}, {})

        assert outcomes[0].action == OutcomeAction.ISSUED
        assert not outcomes[0].failed
        assert "Hook command not found" in outcomes[0].warnings[0]
        assert coordinator.store.get("web") is not None

    @pytest.mark.asyncio
    async def test_unexpected_error(self, tmp_path, zone_manager, fast_run_config):
        """Test an unexpected exception is confined to its certificate."""
        from cert_sync.core.models import OutcomeAction

        acme = FakeAcmeClient(errors={"new_order": [RuntimeError("boom")]})
        coordinator = self._coordinator(tmp_path, acme, zone_manager, fast_run_config)
        specs = {"a": _spec("a", "a.example.com"), "b": _spec("b", "b.example.com")}

        outcomes = await coordinator.run(specs, {})

        assert outcomes[0].action == OutcomeAction.FAILED
        assert isinstance(outcomes[0].error, RuntimeError)
        assert outcomes[1].action == OutcomeAction.ISSUED

    @pytest.mark.asyncio
    async def test_run_timeout(self, tmp_path, zone_manager):
        """Test certificates still running at the deadline fail with Timeout."""
        from cert_sync.config.models import RunConfig
        from cert_sync.core.errors import Timeout
        from cert_sync.core.models import OutcomeAction

        run_config = RunConfig(
            run_timeout=0.5,
            max_attempts=100000,
            initial_backoff=0.01,
            max_backoff=0.01,
            propagation_delay=0,
        )
        acme = FakeAcmeClient(pending_polls=10 ** 9)
        coordinator = self._coordinator(tmp_path, acme, zone_manager, run_config)

        outcomes = await coordinator.run({"web": _spec("web", "example.com")}, {})

        assert outcomes[0].action == OutcomeAction.FAILED
        assert isinstance(outcomes[0].error, Timeout)
        assert coordinator.store.get("web") is None

    @pytest.mark.asyncio
    async def test_parallel_workers(self, tmp_path, zone_manager):
        """Test several certificates can be processed in parallel."""
        from cert_sync.config.models import RunConfig
        from cert_sync.core.models import OutcomeAction

        run_config = RunConfig(
            max_workers=4, max_attempts=3, initial_backoff=0, max_backoff=0,
            propagation_delay=0,
        )
        coordinator = self._coordinator(tmp_path, FakeAcmeClient(), zone_manager, run_config)
        specs = {f"cert{i}": _spec(f"cert{i}", f"host{i}.example.com") for i in range(6)}

        outcomes = await coordinator.run(specs, {})

        assert all(o.action == OutcomeAction.ISSUED for o in outcomes)
        assert sorted(coordinator.store.load()) == sorted(specs)

    def test_plan(self, tmp_path, zone_manager, fast_run_config):
        """Test plan reports actions without issuing anything."""
        from cert_sync.core.models import Action

        acme = FakeAcmeClient()
        coordinator = self._coordinator(tmp_path, acme, zone_manager, fast_run_config)
        specs = {
            "new": _spec("new", "new.example.com"),
            "old": _spec("old", "old.example.com"),
            "ok": _spec("ok", "ok.example.com"),
        }
        existing = {
            "old": self._existing("old", ["old.example.com"], days=2),
            "ok": self._existing("ok", ["ok.example.com"], days=70),
        }

        assert coordinator.plan(specs, existing) == {
            "new": Action.ISSUE, "old": Action.RENEW, "ok": Action.SKIP
        }
        assert acme.calls == []
