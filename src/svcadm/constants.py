"""Process-wide constants: filesystem layout, labels and engine defaults."""

import os
from pathlib import Path

from svcadm import __version__


SVCADM_HOME = Path(os.environ.get("HOME", "~")).expanduser() / ".svcadm"
CONFIG_PATH = SVCADM_HOME / "svcadm.yaml"
LOG_DIR = SVCADM_HOME / "logs"
LOG_FILE = LOG_DIR / "svcadm.log"

MANAGED_BY = "svcadm"
SVCADM_VERSION = __version__

# Closed set of services the orchestrator knows how to drive
SERVICE_NAMES = (
    "nginx",
    "gitlab",
    "mattermost",
    "sonarqube",
    "postgresql",
    "clamav",
    "trivy",
    "minio",
    "vault",
)

NAME_PATTERN = r"^[A-Za-z0-9_-]+$"
USERNAME_PATTERN = r"^[A-Za-z0-9_-]{3,20}$"
RESTART_POLICY_PATTERN = r"^(always|no|unless-stopped|on-failure:\d+)$"

BACKENDS = ("docker", "podman")
NETWORK_DRIVERS = ("bridge", "host", "none")

DOCKER_SOCKET_PATH = "/var/run/docker.sock"
PODMAN_SOCKET_TEMPLATE = "/run/user/{uid}/podman/podman.sock"


def podman_socket_path() -> str:
    """Rootless podman socket of the current user."""
    return PODMAN_SOCKET_TEMPLATE.format(uid=os.getuid())


def base_labels() -> dict:
    """Labels stamped on every resource created by svcadm."""
    return {
        "managed_by": MANAGED_BY,
        "svcadm_version": SVCADM_VERSION,
    }
