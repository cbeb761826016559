"""Configuration and users file loading."""

import asyncio
import io
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from svcadm.constants import CONFIG_PATH
from svcadm.core.state import Guarded
from svcadm.errors import ConfigInvalid
from svcadm.models.config import SvcadmConfig
from svcadm.models.service import ServiceSpec
from svcadm.models.users import UserSet
from svcadm.utils.files import write_file, write_secret


logger = logging.getLogger(__name__)


DEFAULT_CONFIG = """\
general:
  operator:
    name: docker
    network:
      name: svcadm
      driver: bridge
  access:
    logins: users.yaml
    encryption:
      enabled: false
  containers:
    labels:
      environment: development

services:
  - name: postgresql
    enabled: true
    image:
      repository: postgres
      tag: "16"
    container:
      name: svcadm-postgresql
      restart: unless-stopped
    persistence:
      enabled: true
      volumes:
        postgresql-data: /var/lib/postgresql/data
    backup:
      enabled: true
      frequency: daily
      retention: 7
      location: /var/backups/svcadm/postgresql

  - name: sonarqube
    enabled: true
    image:
      repository: sonarqube
      tag: community
    container:
      name: svcadm-sonarqube
      ports:
        9000: 9000
    proxyFrontend: false

  - name: nginx
    enabled: false
    image:
      repository: nginx
      tag: latest
    container:
      name: svcadm-nginx
      ports:
        80: 80
        443: 443
"""

DEFAULT_USERS = """\
admins:
  - username: svcadm
    password: changeme
    email: svcadm@localhost
users: []
"""


def format_validation_errors(error: ValidationError) -> List[str]:
    """``dotted.location: message`` for every error pydantic reported."""
    messages = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail.get("loc", ())) or "<root>"
        messages.append(f"{location}: {detail.get('msg', 'invalid value')}")
    return messages


class ConfigManager:
    """Loads the main configuration and the users file it points to.

    Both snapshots live in read/write guarded cells shared with the adapters.
    """

    def __init__(self, config_path: Path = CONFIG_PATH):
        self.config_path = Path(config_path).expanduser()
        self.yaml = YAML()
        self.yaml.preserve_quotes = True
        self.config_cell: Guarded[SvcadmConfig] = Guarded()
        self.users_cell: Guarded[UserSet] = Guarded()

    @property
    def config(self) -> Optional[SvcadmConfig]:
        return self.config_cell.get()

    @property
    def users(self) -> Optional[UserSet]:
        return self.users_cell.get()

    async def load(self) -> SvcadmConfig:
        """Load and validate the configuration, then the users file."""
        logger.info(f"Loading configuration from {self.config_path}")
        config = await self.load_config()
        await self.load_users()
        logger.info(f"Configuration loaded: {len(config.enabled_services())} enabled service(s)")
        return config

    async def load_config(self) -> SvcadmConfig:
        data = await self._read_yaml(self.config_path, "configuration")
        try:
            config = SvcadmConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigInvalid(
                f"invalid configuration {self.config_path}",
                format_validation_errors(e),
            ) from e
        self.config_cell.set(config)
        logger.debug(f"Loaded main config: {self.config_path}")
        return config

    def logins_path(self) -> Path:
        """Users file path; relative paths resolve against the config directory."""
        config = self.config
        if config is None:
            raise ConfigInvalid("configuration is not loaded")
        path = Path(config.general.access.logins).expanduser()
        if not path.is_absolute():
            path = self.config_path.parent / path
        return path

    async def load_users(self) -> UserSet:
        path = self.logins_path()
        data = await self._read_yaml(path, "users")
        try:
            users = UserSet.model_validate(data)
        except ValidationError as e:
            raise ConfigInvalid(f"invalid users file {path}", format_validation_errors(e)) from e
        if len(users) == 0:
            raise ConfigInvalid(f"users file {path} does not define any user")
        self.users_cell.set(users)
        logger.debug(f"Loaded {len(users.admins)} admin(s) and {len(users.users)} user(s) from {path}")
        return users

    async def _read_yaml(self, file_path: Path, kind: str) -> Dict[str, Any]:
        """Read and parse a YAML mapping."""
        exists = await asyncio.to_thread(file_path.is_file)
        if not exists:
            raise ConfigInvalid(f"{kind} file not found: {file_path}")
        content = await asyncio.to_thread(file_path.read_text)
        try:
            data = self.yaml.load(content)
        except YAMLError as e:
            raise ConfigInvalid(f"{kind} file {file_path} is not valid YAML", [str(e)]) from e
        if not isinstance(data, dict):
            raise ConfigInvalid(f"{kind} file {file_path} must hold a mapping")
        return data

    def service(self, name: str) -> Optional[ServiceSpec]:
        config = self.config
        return config.get_service(name) if config else None

    def enabled_services(self) -> List[ServiceSpec]:
        config = self.config
        return config.enabled_services() if config else []

    def dump(self) -> str:
        """Effective configuration as YAML, defaults included."""
        config = self.config
        if config is None:
            raise ConfigInvalid("configuration is not loaded")
        data = config.model_dump(mode="json", by_alias=True)
        yaml = YAML()
        yaml.default_flow_style = False
        stream = io.StringIO()
        yaml.dump(data, stream)
        return stream.getvalue()

    async def init_config(self) -> List[Path]:
        """Write a default configuration and users file where none exist."""
        written = []
        if await asyncio.to_thread(self.config_path.exists):
            logger.info(f"Configuration already exists at {self.config_path}")
        else:
            written.append(await write_file(self.config_path, DEFAULT_CONFIG))
            logger.info(f"Wrote default configuration to {self.config_path}")

        users_path = self.config_path.parent / "users.yaml"
        if await asyncio.to_thread(users_path.exists):
            logger.info(f"Users file already exists at {users_path}")
        else:
            written.append(await write_secret(users_path, DEFAULT_USERS))
            logger.info(f"Wrote default users file to {users_path}")
        return written
