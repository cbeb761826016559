"""Mattermost adapter backed by the shared postgres server."""

import json
from pathlib import Path
from typing import List

from svcadm.models.runtime import RuntimeArtifacts
from svcadm.models.users import User
from svcadm.services.base import DatabaseBackedAdapter
from svcadm.utils.secrets import backup_timestamp


class MattermostAdapter(DatabaseBackedAdapter):
    """Mattermost in local mode so that ``mmctl --local`` can manage users."""

    adapter_tag = "mattermostadm"
    db_name = "mattermost"
    db_user = "mattermost"
    retry_interval = 20
    max_retries = 15

    @property
    def base_url(self) -> str:
        if self.spec.proxy_frontend:
            return "http://localhost:8065/mattermost"
        return "http://localhost:8065"

    async def pre_init(self) -> RuntimeArtifacts:
        db_password = await self.provision_database()
        env = {
            "MM_SQLSETTINGS_DATASOURCE": (
                f"postgres://{self.db_user}:{db_password}@{self.db_host}:5432/{self.db_name}"
                "?binary_parameters=yes&sslmode=disable&connect_timeout=10"
            ),
            "MM_SERVICESETTINGS_ENABLELOCALMODE": "true",
        }
        if self.spec.proxy_frontend:
            env["MM_SERVICESETTINGS_SITEURL"] = self.external_url("mattermost")
        return RuntimeArtifacts(env=env)

    async def _ping(self) -> bool:
        output = await self.exec_capture(["curl", "-kfsL", f"{self.base_url}/api/v4/system/ping"])
        try:
            payload = json.loads(output)
        except ValueError:
            return False
        return isinstance(payload, dict) and payload.get("status") == "OK"

    async def wait_for(self) -> None:
        await self.poll(self._ping)

    def _create_argv(self, user: User, admin: bool) -> List[str]:
        argv = [
            "mmctl", "user", "create",
            "--email", user.email or f"{user.username}@{self.context.hostname}",
            "--username", user.username,
            "--password", user.password,
        ]
        if admin:
            argv.append("--system-admin")
        argv.append("--local")
        return argv

    async def create_user(self, user: User) -> None:
        await self.exec(self._create_argv(user, admin=False))

    async def create_admin_user(self, user: User) -> None:
        await self.exec(self._create_argv(user, admin=True))

    async def backup(self, destination: str) -> List[Path]:
        timestamp = backup_timestamp()
        written = [await self.backup_database(destination, timestamp)]

        export = f"/tmp/{timestamp}.zip"
        await self.exec(["mattermost", "export", "bulk", "--all", "--destination", export])
        written.extend(await self.engine.copy_out(self.container_name, export, destination))
        await self.exec(["rm", "-f", export])
        self.logger.info(f"exported mattermost data to {destination}")
        return written

    def proxy_fragment(self) -> str:
        return (
            f"location /{self.name} {{\n"
            f"    proxy_pass http://{self.container_name}:8065;\n"
            "    proxy_set_header Host $host;\n"
            "    proxy_set_header X-Real-IP $remote_addr;\n"
            "    proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;\n"
            "    proxy_set_header X-Forwarded-Proto $scheme;\n"
            "    proxy_set_header Upgrade $http_upgrade;\n"
            "    proxy_redirect off;\n"
            "}"
        )
