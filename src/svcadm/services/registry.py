"""Adapter registry: the single dispatch site from service name to adapter."""

import logging
from typing import TYPE_CHECKING, Dict, List, Type

from svcadm.errors import UnknownService
from svcadm.models.service import ServiceSpec
from svcadm.services.base import ServiceAdapter
from svcadm.services.clamav import ClamAVAdapter
from svcadm.services.gitlab import GitLabAdapter
from svcadm.services.mattermost import MattermostAdapter
from svcadm.services.minio import MinioAdapter
from svcadm.services.nginx import NginxAdapter
from svcadm.services.postgresql import PostgresAdapter
from svcadm.services.sonarqube import SonarQubeAdapter
from svcadm.services.trivy import TrivyAdapter
from svcadm.services.vault import VaultAdapter

if TYPE_CHECKING:
    from svcadm.services.context import ServiceContext


logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Registry mapping service names to adapter classes."""

    def __init__(self):
        self._adapter_classes: Dict[str, Type[ServiceAdapter]] = {
            "postgresql": PostgresAdapter,
            "gitlab": GitLabAdapter,
            "mattermost": MattermostAdapter,
            "sonarqube": SonarQubeAdapter,
            "minio": MinioAdapter,
            "vault": VaultAdapter,
            "nginx": NginxAdapter,
            "trivy": TrivyAdapter,
            "clamav": ClamAVAdapter,
        }

    def get_adapter_class(self, name: str) -> Type[ServiceAdapter]:
        try:
            return self._adapter_classes[name]
        except KeyError:
            raise UnknownService(f"no adapter registered for service {name}") from None

    def create(self, spec: ServiceSpec, context: "ServiceContext") -> ServiceAdapter:
        adapter_class = self.get_adapter_class(spec.name)
        logger.debug(f"Building {adapter_class.__name__} for {spec.name}")
        return adapter_class(spec, context)

    def list_adapters(self) -> List[str]:
        return list(self._adapter_classes.keys())


_registry = AdapterRegistry()


def get_adapter_registry() -> AdapterRegistry:
    return _registry


def create_adapter(spec: ServiceSpec, context: "ServiceContext") -> ServiceAdapter:
    """Build the adapter for ``spec``; unknown names raise UnknownService."""
    return _registry.create(spec, context)
