"""SonarQube adapter backed by the shared postgres server."""

import json
from pathlib import Path
from typing import Any, List, Optional

from svcadm.errors import SvcadmError
from svcadm.models.runtime import RuntimeArtifacts
from svcadm.models.users import User
from svcadm.services.base import DatabaseBackedAdapter
from svcadm.utils.secrets import backup_timestamp, generate_password


ADMIN_GROUP = "sonar-administrators"


def find_nested_id(payload: Any, list_key: str, match_key: str, match_value: str,
                   id_key: str = "id") -> Optional[str]:
    """Id of the first entry of ``payload[list_key]`` whose ``match_key`` equals ``match_value``."""
    if isinstance(payload, (bytes, str)):
        try:
            payload = json.loads(payload)
        except ValueError:
            return None
    if not isinstance(payload, dict):
        return None
    for entry in payload.get(list_key) or []:
        if isinstance(entry, dict) and entry.get(match_key) == match_value:
            value = entry.get(id_key)
            return str(value) if value not in (None, "") else None
    return None


class SonarQubeAdapter(DatabaseBackedAdapter):
    """SonarQube driven through its web API with curl inside the container."""

    adapter_tag = "sonaradm"
    db_name = "sonarqube"
    db_user = "sonarqube"
    retry_interval = 20
    max_retries = 15

    @property
    def base_url(self) -> str:
        if self.spec.proxy_frontend:
            return "http://localhost:9000/sonarqube"
        return "http://localhost:9000"

    async def pre_init(self) -> RuntimeArtifacts:
        db_password = await self.provision_database()
        env = {
            "ADMIN_PASSWORD": generate_password(32),
            "SONAR_JDBC_URL": f"jdbc:postgresql://{self.db_host}:5432/{self.db_name}",
            "SONAR_JDBC_USERNAME": self.db_user,
            "SONAR_JDBC_PASSWORD": db_password,
            "SONAR_ES_CONNECTION_TIMEOUT": "1000",
        }
        if self.spec.proxy_frontend:
            env["SONAR_WEB_CONTEXT"] = "/sonarqube"
        return RuntimeArtifacts(env=env)

    async def _status_up(self) -> bool:
        output = await self.exec_capture(["curl", "-kfsL", f"{self.base_url}/api/system/status"])
        try:
            payload = json.loads(output)
        except ValueError:
            return False
        return isinstance(payload, dict) and payload.get("status") == "UP"

    async def wait_for(self) -> None:
        await self.poll(self._status_up)

    async def admin_password(self) -> str:
        return await self.engine.get_container_env(self.container_name, "ADMIN_PASSWORD")

    async def post_init(self) -> None:
        await self.wait_for()

        # The image ships with admin:admin
        password = await self.admin_password()
        await self.exec([
            "curl", "-kfL", "-X", "POST",
            "-u", "admin:admin",
            "-d", "login=admin",
            "-d", f"password={password}",
            "-d", "previousPassword=admin",
            f"{self.base_url}/api/users/change_password",
        ])
        self.logger.info("rotated the default admin password")

        await self.create_users()

    async def _api(self, method: str, path: str, body: Optional[dict] = None) -> bytes:
        password = await self.admin_password()
        argv = ["curl", "-kfsL", "-X", method, "-u", f"admin:{password}"]
        if body is not None:
            argv += ["-H", "Content-Type: application/json", "-d", json.dumps(body)]
        argv.append(f"{self.base_url}{path}")
        return await self.exec_capture(argv)

    async def create_user(self, user: User) -> None:
        await self._api("POST", "/api/v2/users-management/users", {
            "login": user.username,
            "name": user.username,
            "password": user.password,
        })

    async def create_admin_user(self, user: User) -> None:
        await self.create_user(user)

        users = await self._api("GET", f"/api/v2/users-management/users?q={user.username}")
        user_id = find_nested_id(users, "users", "login", user.username)
        if not user_id:
            raise SvcadmError(f"user {user.username} was created but its id could not be found")

        groups = await self._api("GET", f"/api/v2/authorizations/groups?q={ADMIN_GROUP}")
        group_id = find_nested_id(groups, "groups", "name", ADMIN_GROUP)
        if not group_id:
            raise SvcadmError(f"user {user.username} was created but the {ADMIN_GROUP} group was not found")

        await self._api("POST", "/api/v2/authorizations/group-memberships", {
            "userId": user_id,
            "groupId": group_id,
        })

    async def backup(self, destination: str) -> List[Path]:
        timestamp = backup_timestamp()
        written = [await self.backup_database(destination, timestamp)]

        archive = f"/tmp/{timestamp}.tar.xz"
        await self.exec([
            "sh", "-c",
            f"tar -cJf {archive} $SONARQUBE_HOME/conf $SONARQUBE_HOME/extensions $SONARQUBE_HOME/data",
        ])
        written.extend(await self.engine.copy_out(self.container_name, archive, destination))
        await self.exec(["rm", "-f", archive])
        self.logger.info(f"backed up sonarqube data to {destination}")
        return written

    def proxy_fragment(self) -> str:
        return (
            "# SonarQube\n"
            f"location /{self.name}/ {{\n"
            f"    proxy_pass http://{self.container_name}:9000;\n"
            "    proxy_set_header Host $host;\n"
            "    proxy_set_header X-Real-IP $remote_addr;\n"
            "    proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;\n"
            "    proxy_set_header X-Forwarded-Proto $scheme;\n"
            "}"
        )
