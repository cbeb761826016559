"""Base service adapter interface."""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable, List, Optional, Sequence, Tuple

from svcadm.engine.readiness import poll_until, wait_for_container
from svcadm.errors import SvcadmError
from svcadm.models.runtime import RuntimeArtifacts
from svcadm.models.service import ServiceSpec
from svcadm.models.users import User
from svcadm.utils.secrets import backup_timestamp, generate_password

if TYPE_CHECKING:
    from svcadm.engine.client import ContainerEngine
    from svcadm.services.context import ServiceContext
    from svcadm.services.postgresql import PostgresAdapter


class AdapterLogger(logging.LoggerAdapter):
    """Prefixes every record with the adapter tag, e.g. ``psqladm: ...``."""

    def process(self, msg, kwargs):
        return f"{self.extra['tag']}: {msg}", kwargs


class ServiceAdapter(ABC):
    """Lifecycle interface every managed service implements.

    ``pre_init`` runs before the container exists and returns the env,
    volumes, ports, capabilities and command the container needs.
    ``post_init`` runs once the container is running: it waits for the
    application and provisions users.
    """

    adapter_tag: str = "svcadm"
    retry_interval: float = 5
    max_retries: int = 15

    def __init__(self, spec: ServiceSpec, context: "ServiceContext"):
        self._spec = spec
        self.context = context
        self.logger = AdapterLogger(logging.getLogger(type(self).__module__), {"tag": self.adapter_tag})

    @property
    def name(self) -> str:
        return self._spec.name

    @property
    def spec(self) -> ServiceSpec:
        return self._spec

    @property
    def container_name(self) -> str:
        return self._spec.container.name

    @property
    def engine(self) -> "ContainerEngine":
        return self.context.engine

    @abstractmethod
    async def pre_init(self) -> RuntimeArtifacts:
        """Prepare everything the container needs before it is created."""
        pass

    @abstractmethod
    async def wait_for(self) -> None:
        """Block until the application answers, or raise ReadinessTimeout."""
        pass

    async def post_init(self) -> None:
        """Wait for the application, then provision the configured users."""
        await self.wait_for()
        await self.create_users()

    async def create_user(self, user: User) -> None:
        self.logger.debug(f"no user management, skipping {user.username}")

    async def create_admin_user(self, user: User) -> None:
        self.logger.debug(f"no user management, skipping {user.username}")

    async def backup(self, destination: str) -> List[Path]:
        """Write a timestamped backup into ``destination``."""
        self.logger.info("nothing to back up")
        return []

    def cleanup(self) -> Tuple[List[str], List[str]]:
        """Extra volumes and host paths to delete along with the container."""
        return [], []

    def proxy_fragment(self) -> str:
        """Reverse proxy location block(s) publishing this service."""
        return ""

    async def create_users(self) -> List[str]:
        """Create admins then regular users. Failures are logged and skipped.

        Returns the usernames that could not be created.
        """
        users = self.context.users
        failed: List[str] = []
        if users is None:
            return failed

        for user in users.admins:
            try:
                await self.create_admin_user(user)
                self.logger.info(f"created admin user {user.username}")
            except SvcadmError as e:
                self.logger.error(f"failed to create admin user {user.username}: {e}")
                failed.append(user.username)

        for user in users.users:
            try:
                await self.create_user(user)
                self.logger.info(f"created user {user.username}")
            except SvcadmError as e:
                self.logger.error(f"failed to create user {user.username}: {e}")
                failed.append(user.username)

        return failed

    # Helpers shared by adapters

    async def exec(self, argv: Sequence[str]) -> None:
        await self.engine.exec(self.container_name, argv)

    async def exec_capture(self, argv: Sequence[str]) -> bytes:
        return await self.engine.exec_capture(self.container_name, argv)

    async def exec_succeeds(self, argv: Sequence[str]) -> bool:
        """Readiness check helper: True when ``argv`` exits 0."""
        await self.exec(argv)
        return True

    async def poll(self, check: Callable[[], Awaitable[Any]], description: Optional[str] = None) -> Any:
        """Poll ``check`` with this adapter's retry budget."""
        return await poll_until(
            check,
            description or f"{self.name} container {self.container_name}",
            self.retry_interval,
            self.max_retries,
        )

    async def wait_for_container(self) -> None:
        await wait_for_container(
            self.engine,
            self.container_name,
            self.retry_interval,
            self.max_retries,
        )

    def external_url(self, path: str) -> str:
        return f"https://{self.context.hostname}/{path.lstrip('/')}"


class DatabaseBackedAdapter(ServiceAdapter):
    """Adapter whose application stores its data in the postgres service."""

    db_name: str = ""
    db_user: str = ""

    @property
    def postgres(self) -> "PostgresAdapter":
        return self.context.adapter("postgresql")

    @property
    def db_host(self) -> str:
        return self.postgres.container_name

    async def provision_database(self) -> str:
        """Create (or reset) the database role and database, return the role password."""
        password = generate_password(32)
        postgres = self.postgres
        await postgres.ensure_role(self.db_user, password)
        await postgres.create_database(self.db_name, self.db_user)
        await postgres.grant_all_on(self.db_name, self.db_user)
        self.logger.info(f"provisioned database {self.db_name} for {self.db_user}")
        return password

    async def backup_database(self, destination: str, timestamp: Optional[str] = None) -> Path:
        return await self.postgres.backup_database(
            self.db_name,
            destination,
            timestamp or backup_timestamp(),
        )
