"""Handle given to every adapter: engine, configuration and sibling adapters."""

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional

from svcadm.constants import SVCADM_HOME
from svcadm.core.state import Guarded
from svcadm.errors import UnknownService
from svcadm.models.config import SvcadmConfig
from svcadm.models.service import ServiceSpec
from svcadm.models.users import UserSet
from svcadm.utils.secrets import get_hostname

if TYPE_CHECKING:
    from svcadm.engine.client import ContainerEngine
    from svcadm.services.base import ServiceAdapter


logger = logging.getLogger(__name__)


class ServiceContext:
    """Lifecycle-scoped view of the process state shared by adapters."""

    def __init__(
        self,
        engine: "ContainerEngine",
        config: Guarded[SvcadmConfig],
        users: Guarded[UserSet],
        home: Path = SVCADM_HOME,
        hostname: Optional[str] = None,
    ):
        self.engine = engine
        self._config = config
        self._users = users
        self.home = Path(home)
        self.hostname = hostname or get_hostname()
        self._adapters: Dict[str, "ServiceAdapter"] = {}

    @property
    def config(self) -> Optional[SvcadmConfig]:
        return self._config.get()

    @property
    def users(self) -> Optional[UserSet]:
        return self._users.get()

    def adapter(self, name: str) -> "ServiceAdapter":
        """Adapter for the enabled service ``name``, built once per context."""
        if name in self._adapters:
            return self._adapters[name]

        config = self.config
        spec = config.get_service(name) if config else None
        if spec is None or not spec.enabled:
            raise UnknownService(f"service {name} is not enabled in the configuration")

        from svcadm.services.registry import create_adapter

        adapter = create_adapter(spec, self)
        self._adapters[name] = adapter
        return adapter

    def proxied_services(self) -> List[ServiceSpec]:
        """Enabled services published by the reverse proxy."""
        config = self.config
        if config is None:
            return []
        return [s for s in config.enabled_services() if s.proxy_frontend and s.name != "nginx"]
