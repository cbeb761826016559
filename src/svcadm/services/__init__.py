"""Service adapters driven by the lifecycle orchestrator."""

from svcadm.services.base import DatabaseBackedAdapter, ServiceAdapter
from svcadm.services.context import ServiceContext
from svcadm.services.registry import AdapterRegistry, create_adapter, get_adapter_registry

__all__ = [
    "AdapterRegistry",
    "DatabaseBackedAdapter",
    "ServiceAdapter",
    "ServiceContext",
    "create_adapter",
    "get_adapter_registry",
]
