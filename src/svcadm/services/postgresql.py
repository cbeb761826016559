"""PostgreSQL adapter: the database server shared by gitlab, mattermost and sonarqube."""

import re
from pathlib import Path
from typing import List, Optional

from svcadm.constants import NAME_PATTERN
from svcadm.models.runtime import RuntimeArtifacts
from svcadm.models.users import User
from svcadm.services.base import ServiceAdapter
from svcadm.utils.files import ensure_directory, write_file
from svcadm.utils.secrets import backup_timestamp, generate_password


POSTGRES_PORT = 5432

_IDENTIFIER_RE = re.compile(NAME_PATTERN)


def quote_identifier(name: str) -> str:
    """Double-quoted SQL identifier; only names of the configuration charset are accepted."""
    if not _IDENTIFIER_RE.match(name):
        raise ValueError(f"invalid SQL identifier: {name!r}")
    return f'"{name}"'


def quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


class PostgresAdapter(ServiceAdapter):
    """Runs every statement through ``psql`` inside the container."""

    adapter_tag = "psqladm"
    retry_interval = 5
    max_retries = 15

    @property
    def superuser(self) -> str:
        return self.spec.container.env.get("POSTGRES_USER", "postgres")

    async def pre_init(self) -> RuntimeArtifacts:
        return RuntimeArtifacts(
            env={"POSTGRES_PASSWORD": generate_password(32)},
            ports={POSTGRES_PORT: POSTGRES_PORT},
        )

    async def wait_for(self) -> None:
        # The init-time server only listens on the unix socket, so check over TCP
        await self.poll(lambda: self.exec_succeeds(
            ["pg_isready", "-h", "localhost", "-p", str(POSTGRES_PORT), "-U", self.superuser]
        ))

    async def psql(self, sql: str, database: str = "postgres") -> str:
        """Run one statement and return its unaligned, tuples-only output."""
        output = await self.exec_capture([
            "psql",
            "-U", self.superuser,
            "-d", database,
            "-v", "ON_ERROR_STOP=1",
            "-tA",
            "-c", sql,
        ])
        return output.decode("utf-8", errors="replace").strip()

    async def create_user(self, user: User) -> None:
        await self.psql(
            f"CREATE USER {quote_identifier(user.username)} WITH PASSWORD {quote_literal(user.password)};"
        )

    async def create_admin_user(self, user: User) -> None:
        await self.psql(
            f"CREATE USER {quote_identifier(user.username)} WITH PASSWORD {quote_literal(user.password)} SUPERUSER;"
        )

    async def role_exists(self, name: str) -> bool:
        result = await self.psql(f"SELECT 1 FROM pg_roles WHERE rolname = {quote_literal(name)};")
        return result == "1"

    async def ensure_role(self, name: str, password: str) -> None:
        """Create a login role, or reset its password when it already exists."""
        if await self.role_exists(name):
            await self.psql(f"ALTER ROLE {quote_identifier(name)} WITH LOGIN PASSWORD {quote_literal(password)};")
            self.logger.info(f"reset password of role {name}")
        else:
            await self.psql(f"CREATE ROLE {quote_identifier(name)} WITH LOGIN PASSWORD {quote_literal(password)};")
            self.logger.info(f"created role {name}")

    async def database_exists(self, name: str) -> bool:
        result = await self.psql(f"SELECT 1 FROM pg_database WHERE datname = {quote_literal(name)};")
        return result == "1"

    async def create_database(self, name: str, owner: str) -> None:
        if await self.database_exists(name):
            self.logger.info(f"database {name} already exists")
            return
        await self.psql(f"CREATE DATABASE {quote_identifier(name)} OWNER {quote_identifier(owner)};")
        self.logger.info(f"created database {name} owned by {owner}")

    async def grant_all_on(self, database: str, user: str) -> None:
        await self.psql(
            f"GRANT ALL PRIVILEGES ON DATABASE {quote_identifier(database)} TO {quote_identifier(user)};"
        )

    async def delete_database(self, name: str) -> None:
        await self.psql(f"DROP DATABASE {quote_identifier(name)};")
        self.logger.info(f"deleted database {name}")

    async def delete_user(self, name: str) -> None:
        await self.psql(f"DROP USER {quote_identifier(name)};")
        self.logger.info(f"deleted user {name}")

    async def _dump(self, argv: List[str], path: Path) -> Path:
        output = await self.exec_capture(argv)
        await ensure_directory(path.parent)
        await write_file(path, output.decode("utf-8", errors="replace"), mode=0o600)
        return path

    async def backup_database(self, name: str, destination: str, timestamp: Optional[str] = None) -> Path:
        """Dump one database to ``<destination>/<name>_<timestamp>.sql``."""
        path = Path(destination) / f"{name}_{timestamp or backup_timestamp()}.sql"
        await self._dump(["pg_dump", "-U", self.superuser, name], path)
        self.logger.info(f"backed up database {name} to {path}")
        return path

    async def backup(self, destination: str) -> List[Path]:
        path = Path(destination) / f"{backup_timestamp()}.sql"
        await self._dump(["pg_dumpall", "-U", self.superuser], path)
        self.logger.info(f"backed up the postgres cluster to {path}")
        return [path]
