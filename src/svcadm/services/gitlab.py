"""GitLab omnibus adapter backed by the shared postgres server."""

from pathlib import Path
from typing import List

from svcadm.models.runtime import RuntimeArtifacts
from svcadm.models.users import User
from svcadm.services.base import DatabaseBackedAdapter
from svcadm.utils.secrets import backup_timestamp, generate_password


BACKUP_DIR = "/var/opt/gitlab/backups"


def _ruby_string(value: str) -> str:
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


class GitLabAdapter(DatabaseBackedAdapter):
    """GitLab with an external database; users are created through ``gitlab-rails runner``."""

    adapter_tag = "gitlabadm"
    db_name = "gitlab"
    db_user = "gitlab"
    retry_interval = 20
    max_retries = 15

    async def pre_init(self) -> RuntimeArtifacts:
        db_password = await self.provision_database()
        return RuntimeArtifacts(env={
            "GITLAB_ROOT_PASSWORD": generate_password(32),
            "GITLAB_OMNIBUS_CONFIG": self.omnibus_config(db_password),
        })

    def omnibus_config(self, db_password: str) -> str:
        """Operator omnibus settings followed by the external url and database settings."""
        settings = []
        base = self.spec.container.env.get("GITLAB_OMNIBUS_CONFIG", "").strip()
        if base:
            settings.append(base)
        if self.spec.proxy_frontend:
            settings.append(f"external_url '{self.external_url('gitlab')}';")
        settings.extend([
            "gitlab_rails['db_adapter'] = 'postgresql';",
            "gitlab_rails['db_encoding'] = 'unicode';",
            f"gitlab_rails['db_database'] = '{self.db_name}';",
            f"gitlab_rails['db_username'] = '{self.db_user}';",
            f"gitlab_rails['db_password'] = '{db_password}';",
            f"gitlab_rails['db_host'] = '{self.db_host}';",
            "gitlab_rails['db_port'] = '5432';",
            "gitlab_rails['db_pool'] = 10;",
        ])
        return " ".join(settings)

    async def wait_for(self) -> None:
        await self.poll(lambda: self.exec_succeeds(["gitlab-healthcheck"]))

    def _runner_script(self, user: User, admin: bool) -> str:
        email = user.email or f"{user.username}@{self.context.hostname}"
        fields = [
            f"name: {_ruby_string(user.username)}",
            f"username: {_ruby_string(user.username)}",
            f"email: {_ruby_string(email)}",
            f"password: {_ruby_string(user.password)}",
            f"password_confirmation: {_ruby_string(user.password)}",
        ]
        if admin:
            fields.append("admin: true")
        return (
            f"u = User.new({', '.join(fields)}); "
            "u.assign_personal_namespace(Organizations::Organization.default_organization); "
            "u.skip_confirmation!; u.save!"
        )

    async def create_user(self, user: User) -> None:
        await self.exec(["gitlab-rails", "runner", "-e", "production", self._runner_script(user, admin=False)])

    async def create_admin_user(self, user: User) -> None:
        await self.exec(["gitlab-rails", "runner", "-e", "production", self._runner_script(user, admin=True)])

    async def backup(self, destination: str) -> List[Path]:
        timestamp = backup_timestamp()
        written = [await self.backup_database(destination, timestamp)]

        archive = f"{BACKUP_DIR}/{timestamp}_gitlab_backup.tar"
        await self.exec(["gitlab-backup", "create", f"BACKUP={timestamp}"])
        written.extend(await self.engine.copy_out(self.container_name, archive, destination))
        await self.exec(["rm", "-f", archive])
        self.logger.info(f"backed up gitlab data to {destination}")
        return written

    def proxy_fragment(self) -> str:
        return (
            "# GitLab\n"
            f"location /{self.name}/ {{\n"
            f"    proxy_pass https://{self.container_name}:443;\n"
            "    proxy_set_header Host $host;\n"
            "    proxy_set_header X-Real-IP $remote_addr;\n"
            "    proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;\n"
            "    proxy_set_header X-Forwarded-Proto $scheme;\n"
            "}"
        )
