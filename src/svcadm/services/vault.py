"""HashiCorp Vault adapter: init, unseal, userpass auth and an admin policy."""

import json
from pathlib import Path
from typing import List, Tuple

from svcadm.errors import EngineError, ExecFailed, SvcadmError
from svcadm.models.runtime import RuntimeArtifacts
from svcadm.models.users import User
from svcadm.services.base import ServiceAdapter
from svcadm.utils.files import write_secret


VAULT_ADDRESS = "-address=http://localhost:8200"
KEY_SHARES = 5
KEY_THRESHOLD = 3
FILE_VOLUME = "vault-file"
POLICY_FILE = "/tmp/admin.hcl"

ADMIN_POLICY = """path "/sys/*" {
  capabilities = ["create", "read", "update", "delete", "list", "sudo"]
}
path "/secret/*" {
  capabilities = ["create", "read", "update", "delete", "list"]
}
"""

LOCAL_CONFIG = json.dumps({
    "storage": {"file": {"path": "/vault/file"}},
    "listener": [{"tcp": {"address": "0.0.0.0:8200", "tls_disable": True}}],
    "default_lease_ttl": "168h",
    "max_lease_ttl": "720h",
    "ui": True,
})


def parse_init_output(output: str) -> Tuple[List[str], str]:
    """Unseal keys and root token from ``vault operator init``.

    Accepts the JSON output and falls back to the human readable
    ``Unseal Key N: ...`` / ``Initial Root Token: ...`` lines.
    """
    try:
        payload = json.loads(output)
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        keys = payload.get("unseal_keys_b64") or payload.get("unseal_keys_hex") or []
        return list(keys), payload.get("root_token", "")

    keys: List[str] = []
    root_token = ""
    for line in output.splitlines():
        if "Unseal Key" in line and ": " in line:
            keys.append(line.split(": ", 1)[1].strip())
        elif "Initial Root Token" in line and ": " in line:
            root_token = line.split(": ", 1)[1].strip()
    return keys, root_token


class VaultAdapter(ServiceAdapter):
    """Vault server with file storage; the init secrets are kept under ``<home>/vaultadm``."""

    adapter_tag = "vaultadm"
    retry_interval = 5
    max_retries = 30

    @property
    def secrets_dir(self) -> Path:
        return self.context.home / "vaultadm"

    async def pre_init(self) -> RuntimeArtifacts:
        env = {}
        if "VAULT_LOCAL_CONFIG" not in self.spec.container.env:
            env["VAULT_LOCAL_CONFIG"] = LOCAL_CONFIG
        return RuntimeArtifacts(
            env=env,
            volumes={FILE_VOLUME: "/vault/file"},
            cap_add=["IPC_LOCK"],
            command=["server"],
        )

    async def _status(self) -> bool:
        try:
            await self.exec_capture(["vault", "status", VAULT_ADDRESS])
        except ExecFailed as e:
            # Exit code 2 means sealed, which is still a running server
            return b"Build Date" in e.stdout
        return True

    async def wait_for(self) -> None:
        await self.poll(self._status)

    async def initialize(self) -> Tuple[List[str], str]:
        output = await self.exec_capture([
            "vault", "operator", "init", VAULT_ADDRESS,
            f"-key-shares={KEY_SHARES}",
            f"-key-threshold={KEY_THRESHOLD}",
            "-format=json",
        ])
        keys, root_token = parse_init_output(output.decode("utf-8", errors="replace"))
        if len(keys) < KEY_THRESHOLD or not root_token:
            raise SvcadmError("could not read the unseal keys and root token from vault operator init")

        await write_secret(self.secrets_dir / ".root_token", root_token)
        for index, key in enumerate(keys, start=1):
            await write_secret(self.secrets_dir / f".seal_{index}", key)
        self.logger.info(f"vault initialized, secrets saved to {self.secrets_dir}")
        return keys, root_token

    async def post_init(self) -> None:
        await self.wait_for()
        keys, root_token = await self.initialize()

        for key in keys[:KEY_THRESHOLD]:
            await self.exec(["vault", "operator", "unseal", VAULT_ADDRESS, key])
        self.logger.info("vault unsealed")

        await self.exec(["vault", "login", VAULT_ADDRESS, root_token])
        await self.exec(["vault", "auth", "enable", VAULT_ADDRESS, "userpass"])

        await self.exec(["sh", "-c", f"cat > {POLICY_FILE} <<'EOF'\n{ADMIN_POLICY}EOF"])
        await self.exec(["vault", "policy", "write", VAULT_ADDRESS, "admin", POLICY_FILE])
        try:
            await self.exec(["rm", "-f", POLICY_FILE])
        except EngineError as e:
            self.logger.warning(f"could not remove {POLICY_FILE}: {e}")
        self.logger.debug("admin policy written")

        await self.create_users()

    async def create_user(self, user: User) -> None:
        await self.exec([
            "vault", "write", VAULT_ADDRESS,
            f"auth/userpass/users/{user.username}",
            f"password={user.password}",
        ])

    async def create_admin_user(self, user: User) -> None:
        await self.exec([
            "vault", "write", VAULT_ADDRESS,
            f"auth/userpass/users/{user.username}",
            f"password={user.password}",
            "policies=admin",
        ])

    def cleanup(self):
        return [FILE_VOLUME], [str(self.secrets_dir)]

    def proxy_fragment(self) -> str:
        return (
            "# Vault\n"
            f"location /{self.name}/ {{\n"
            "    proxy_http_version 1.1;\n"
            "    proxy_set_header Upgrade $http_upgrade;\n"
            "\n"
            "    proxy_set_header Host $host;\n"
            "    proxy_set_header X-Real-IP $remote_addr;\n"
            "    proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;\n"
            "    proxy_set_header X-Forwarded-Proto $scheme;\n"
            "\n"
            f"    proxy_pass http://{self.container_name}:8200/;\n"
            "}"
        )
