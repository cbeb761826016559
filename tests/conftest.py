"""Shared fixtures: configuration builders and an in-memory container engine."""

from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple
from unittest.mock import AsyncMock

import pytest
from ruamel.yaml import YAML

from svcadm.core.state import Guarded
from svcadm.errors import ContainerCreateFailed, ContainerEnvMissing, ContainerNotFound
from svcadm.models.config import SvcadmConfig
from svcadm.models.runtime import ContainerRunSpec
from svcadm.models.users import UserSet
from svcadm.services.context import ServiceContext


def service_entry(name: str, enabled: bool = True, proxy: bool = False, **overrides) -> Dict:
    """Minimal service block as it appears in the YAML configuration."""
    entry = {
        "name": name,
        "enabled": enabled,
        "image": {"repository": name, "tag": "latest"},
        "container": {"name": f"svcadm-{name}"},
        "proxyFrontend": proxy,
    }
    entry.update(overrides)
    return entry


def config_data(services: List[Dict], logins: str = "users.yaml") -> Dict:
    return {
        "general": {
            "operator": {"name": "docker", "network": {"name": "svcadm", "driver": "bridge"}},
            "access": {"logins": logins},
            "containers": {"labels": {"team": "dev"}},
        },
        "services": services,
    }


USERS_DATA = {
    "admins": [{"username": "adm", "password": "hunter22", "email": "adm@example.com"}],
    "users": [{"username": "dev", "password": "devpass1"}],
}


class FakeEngine:
    """In-memory stand-in for ContainerEngine."""

    def __init__(self):
        self.kind: Optional[str] = None
        self.network: Optional[str] = None
        self.containers: Dict[str, Dict] = {}
        self.volumes: Dict[str, Dict[str, str]] = {}
        self.images: List[str] = []
        self.execs: List[Tuple[str, List[str]]] = []
        self.copied: List[Tuple[str, str, str]] = []
        self.exec_handler: Callable[[str, List[str]], Optional[bytes]] = lambda name, argv: b""
        self.fail_create: set = set()
        self.closed = False

    async def select_backend(self, kind, socket=None):
        self.kind = kind

    async def ensure_network(self, name, driver="bridge", labels=None):
        self.network = name
        return f"net-{name}"

    async def close(self):
        self.closed = True

    async def pull_image(self, ref):
        self.images.append(ref)

    async def create_volume(self, name, labels=None):
        self.volumes[name] = dict(labels or {})

    async def volume_exists(self, name):
        return name in self.volumes

    async def remove_volume(self, name, force=True):
        self.volumes.pop(name, None)

    async def create_and_start(self, spec: ContainerRunSpec):
        await self.pull_image(spec.image)
        if spec.name in self.fail_create:
            raise ContainerCreateFailed(f"failed to create container {spec.name}")
        self.containers[spec.name] = {"status": "running", "spec": spec}
        return f"id-{spec.name}"

    def _get(self, name):
        if name not in self.containers:
            raise ContainerNotFound(f"container {name} not found")
        return self.containers[name]

    async def stop(self, name):
        self._get(name)["status"] = "exited"

    async def resume(self, name):
        self._get(name)["status"] = "running"

    async def remove(self, name, remove_volumes=True):
        self._get(name)
        del self.containers[name]

    async def container_exists(self, name):
        return name in self.containers

    async def status(self, name):
        return self._get(name)["status"]

    async def logs(self, name, tail=None):
        self._get(name)
        return f"logs of {name}\n"

    async def exec_capture(self, name, argv):
        self.execs.append((name, list(argv)))
        return self.exec_handler(name, list(argv)) or b""

    async def exec(self, name, argv):
        await self.exec_capture(name, argv)

    async def copy_out(self, name, src, dest):
        self.copied.append((name, src, dest))
        return [Path(dest) / Path(src).name]

    async def get_container_env(self, name, key):
        env = self._get(name)["spec"].env
        if key not in env:
            raise ContainerEnvMissing(f"{key} is not set in container {name}")
        return env[key]

    def argvs(self, name: Optional[str] = None) -> List[List[str]]:
        return [argv for container, argv in self.execs if name is None or container == name]


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def no_sleep(monkeypatch):
    """Readiness loops return immediately instead of sleeping."""
    sleep = AsyncMock()
    monkeypatch.setattr("svcadm.engine.readiness.asyncio.sleep", sleep)
    return sleep


@pytest.fixture
def write_config(tmp_path):
    """Write a configuration and users file, return the configuration path."""

    def _write(services: List[Dict], users: Optional[Dict] = None) -> Path:
        yaml = YAML()
        config_path = tmp_path / "svcadm.yaml"
        with open(config_path, "w") as handle:
            yaml.dump(config_data(services), handle)
        with open(tmp_path / "users.yaml", "w") as handle:
            yaml.dump(USERS_DATA if users is None else users, handle)
        return config_path

    return _write


@pytest.fixture
def make_context(fake_engine, tmp_path):
    """Build a ServiceContext over the fake engine for the given services."""

    def _make(services: List[Dict], hostname: str = "dev.local") -> ServiceContext:
        config = SvcadmConfig.model_validate(config_data(services))
        users = UserSet.model_validate(USERS_DATA)
        return ServiceContext(
            fake_engine,
            Guarded(config),
            Guarded(users),
            home=tmp_path / "home",
            hostname=hostname,
        )

    return _make


@pytest.fixture
def svc():
    """Factory for service blocks."""
    return service_entry


@pytest.fixture
def make_config():
    """Factory for validated configurations."""

    def _make(services: List[Dict]) -> SvcadmConfig:
        return SvcadmConfig.model_validate(config_data(services))

    return _make
