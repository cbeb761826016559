"""MinIO object storage adapter."""

from pathlib import Path
from typing import List

from svcadm.errors import ExecFailed
from svcadm.models.runtime import RuntimeArtifacts
from svcadm.models.users import User
from svcadm.services.base import ServiceAdapter
from svcadm.utils.secrets import backup_timestamp, generate_password


DEFAULT_ROOT_USER = "svcadm"
DATA_VOLUME = "minio-data"
DEFAULT_ALIASES = ("local", "gcs", "s3", "play")


class MinioAdapter(ServiceAdapter):
    """MinIO managed with the bundled ``mc`` client, aliased to the container name."""

    adapter_tag = "minioadm"
    retry_interval = 5
    max_retries = 30

    @property
    def alias(self) -> str:
        return self.container_name

    async def pre_init(self) -> RuntimeArtifacts:
        spec_env = self.spec.container.env
        env = {
            "MINIO_ROOT_USER": spec_env.get("MINIO_ROOT_USER") or DEFAULT_ROOT_USER,
            "MINIO_ROOT_PASSWORD": spec_env.get("MINIO_ROOT_PASSWORD") or generate_password(32),
            "MINIO_CONSOLE_ADDRESS": ":9001",
        }
        if self.spec.proxy_frontend:
            env["MINIO_BROWSER_REDIRECT_URL"] = self.external_url("minio/")
        return RuntimeArtifacts(
            env=env,
            volumes={DATA_VOLUME: "/data"},
            command=["server", "/data"],
        )

    async def wait_for(self) -> None:
        # A throwaway alias from the environment, independent of the mc config
        await self.poll(lambda: self.exec_succeeds(
            ["sh", "-c", "MC_HOST_local=http://localhost:9000 mc ready local"]
        ))

    async def post_init(self) -> None:
        await self.wait_for()

        for alias in DEFAULT_ALIASES:
            try:
                await self.exec(["mc", "alias", "remove", alias])
            except ExecFailed as e:
                self.logger.debug(f"could not remove alias {alias}: {e}")

        engine = self.engine
        root_user = await engine.get_container_env(self.container_name, "MINIO_ROOT_USER")
        root_password = await engine.get_container_env(self.container_name, "MINIO_ROOT_PASSWORD")
        await self.exec(["mc", "alias", "set", self.alias, "http://localhost:9000", root_user, root_password])
        self.logger.info(f"registered mc alias {self.alias}")

        await self.create_users()

    async def create_user(self, user: User) -> None:
        await self.exec(["mc", "admin", "user", "add", self.alias, user.username, user.password])
        await self.exec(["mc", "admin", "policy", "attach", self.alias, "readwrite", "--user", user.username])

    async def create_admin_user(self, user: User) -> None:
        await self.exec(["mc", "admin", "user", "add", self.alias, user.username, user.password])
        await self.exec(["mc", "admin", "policy", "attach", self.alias, "consoleAdmin", "--user", user.username])

    async def create_bucket(self, bucket: str) -> None:
        await self.exec(["mc", "mb", f"{self.alias}/{bucket}"])

    async def delete_bucket(self, bucket: str) -> None:
        await self.exec(["mc", "rb", f"{self.alias}/{bucket}", "--force"])

    async def backup(self, destination: str) -> List[Path]:
        archive = f"/tmp/{backup_timestamp()}.tar.xz"
        await self.exec(["tar", "-cJf", archive, "/data"])
        written = await self.engine.copy_out(self.container_name, archive, destination)
        await self.exec(["rm", "-f", archive])
        self.logger.info(f"backed up minio data to {destination}")
        return written

    def cleanup(self):
        return [DATA_VOLUME], []

    def proxy_fragment(self) -> str:
        return (
            "# MinIO Web UI\n"
            "location /minio/ {\n"
            "    rewrite ^/minio/(.*) /$1 break;\n"
            "\n"
            "    proxy_set_header Host $http_host;\n"
            "    proxy_set_header X-Real-IP $remote_addr;\n"
            "    proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;\n"
            "    proxy_set_header X-Forwarded-Proto $scheme;\n"
            "    proxy_set_header X-NginX-Proxy true;\n"
            "\n"
            "    proxy_set_header Accept-Encoding \"\";\n"
            "    proxy_http_version 1.1;\n"
            "    proxy_set_header Upgrade $http_upgrade;\n"
            "    proxy_set_header Connection $connection_upgrade;\n"
            "\n"
            "    proxy_buffering off;\n"
            "\n"
            f"    proxy_pass http://{self.container_name}:9001/;\n"
            "}\n"
            "# MinIO API\n"
            "location /minio-api/ {\n"
            f"    proxy_pass http://{self.container_name}:9000/;\n"
            "    proxy_set_header Host $http_host;\n"
            "    proxy_set_header X-Real-IP $remote_addr;\n"
            "    proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;\n"
            "    proxy_set_header X-Forwarded-Proto $scheme;\n"
            "\n"
            "    proxy_http_version 1.1;\n"
            "    proxy_set_header Connection \"\";\n"
            "\n"
            "    proxy_buffering off;\n"
            "}"
        )
