"""
svcadm - Service orchestration for development environments.

Brings up a declared set of containerised services (databases, messaging,
version control, artifact stores) in dependency order, wires them together,
seeds users and publishes them behind a reverse proxy.
"""

__version__ = "1.0.0"
__author__ = "svcadm Development Team"

# Re-export key components for easier access
from svcadm.models.config import SvcadmConfig
from svcadm.models.service import ServiceSpec
from svcadm.models.users import User, UserSet

__all__ = [
    "SvcadmConfig",
    "ServiceSpec",
    "User",
    "UserSet",
]
