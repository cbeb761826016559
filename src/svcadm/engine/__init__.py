"""Container engine facade over docker or podman sockets."""

from svcadm.engine.client import ContainerEngine
from svcadm.engine.readiness import poll_until, wait_for_container

__all__ = [
    "ContainerEngine",
    "poll_until",
    "wait_for_container",
]
