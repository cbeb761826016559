"""Tests for the adapter registry, the service context and the base adapter."""

import pytest

from svcadm.errors import UnknownService
from svcadm.services import get_adapter_registry
from svcadm.services.clamav import ClamAVAdapter
from svcadm.services.registry import AdapterRegistry
from svcadm.services.trivy import TrivyAdapter


class TestAdapterRegistry:
    """Test name to adapter dispatch."""

    def test_every_service_has_an_adapter(self):
        """Test every catalogue service maps to an adapter."""
        assert sorted(AdapterRegistry().list_adapters()) == sorted([
            "postgresql", "gitlab", "mattermost", "sonarqube", "minio",
            "vault", "nginx", "trivy", "clamav",
        ])

    def test_unknown_service(self):
        """Test an unknown name raises UnknownService."""
        with pytest.raises(UnknownService):
            get_adapter_registry().get_adapter_class("redis")


class TestServiceContext:
    def test_adapters_are_cached(self, make_context, svc):
        """Test the context returns the same adapter each time."""
        ctx = make_context([svc("trivy")])
        assert isinstance(ctx.adapter("trivy"), TrivyAdapter)
        assert ctx.adapter("trivy") is ctx.adapter("trivy")

    def test_disabled_or_missing_service(self, make_context, svc):
        """Test adapters are only built for enabled services."""
        ctx = make_context([svc("trivy", enabled=False)])
        with pytest.raises(UnknownService):
            ctx.adapter("trivy")
        with pytest.raises(UnknownService):
            ctx.adapter("vault")

    def test_proxied_services(self, make_context, svc):
        """Test the proxied services list."""
        ctx = make_context([svc("nginx", proxy=True), svc("vault", proxy=True), svc("trivy")])
        assert [s.name for s in ctx.proxied_services()] == ["vault"]

    def test_external_url(self, make_context, svc):
        """Test the external URL uses the hostname."""
        adapter = make_context([svc("trivy")], hostname="ci.example.com").adapter("trivy")
        assert adapter.external_url("/trivy/") == "https://ci.example.com/trivy/"


@pytest.mark.asyncio
class TestSimpleAdapters:
    """Test the adapters without users or backups."""

    async def test_trivy(self, make_context, svc, fake_engine, no_sleep):
        """Test the trivy server entrypoint and readiness."""
        adapter = make_context([svc("trivy")]).adapter("trivy")
        artifacts = await adapter.pre_init()
        assert artifacts.command == ["server", "--listen", "0.0.0.0:4954"]

        fake_engine.containers["svcadm-trivy"] = {"status": "running", "spec": None}
        await adapter.post_init()
        assert fake_engine.execs == []
        assert "proxy_pass http://svcadm-trivy:4954/;" in adapter.proxy_fragment()

    async def test_clamav(self, make_context, svc, fake_engine, no_sleep):
        """Test clamav readiness through clamdcheck."""
        adapter = make_context([svc("clamav")]).adapter("clamav")
        assert isinstance(adapter, ClamAVAdapter)
        await adapter.wait_for()
        assert fake_engine.argvs() == [["clamdcheck.sh"]]
        assert await adapter.backup("/nonexistent") == []
        assert adapter.proxy_fragment() == ""
