"""Nginx reverse proxy in front of every proxied service."""

import subprocess
from pathlib import Path
from typing import List

from svcadm.errors import SvcadmError
from svcadm.models.runtime import RuntimeArtifacts
from svcadm.services.base import ServiceAdapter
from svcadm.utils.files import ensure_directory, write_file
from svcadm.utils.process import run_command
from svcadm.utils.templates import indent_block, render_template


CERT_PATH = "/etc/ssl/certs/svcadm.crt"
KEY_PATH = "/etc/ssl/private/svcadm.key"

NGINX_CONF_TEMPLATE = """server {
    listen 80;
    listen [::]:80;
    server_name {{ hostname }};
    return 301 https://$host$request_uri;
}

map $http_upgrade $connection_upgrade {
    default upgrade;
    ''      "";
}

server {
    listen 443 ssl;
    listen [::]:443 ssl;
    server_name {{ hostname }};
    ssl_certificate {{ certificate }};
    ssl_certificate_key {{ certificate_key }};
    ssl_protocols TLSv1.2 TLSv1.3;
    ssl_ciphers HIGH:!aNULL:!MD5;

{% for location in locations %}{{ location }}
{% endfor %}}
"""


def render_nginx_conf(hostname: str, locations: List[str]) -> str:
    """Full proxy configuration; ``locations`` are indented into the TLS server block."""
    return render_template(
        NGINX_CONF_TEMPLATE,
        hostname=hostname,
        certificate=CERT_PATH,
        certificate_key=KEY_PATH,
        locations=[indent_block(location, 4) for location in locations],
    )


class NginxAdapter(ServiceAdapter):
    """Renders ``<home>/nginxadm/nginx.conf`` from the proxied services' fragments."""

    adapter_tag = "nginxadm"
    retry_interval = 5
    max_retries = 60

    @property
    def state_dir(self) -> Path:
        return self.context.home / "nginxadm"

    @property
    def conf_path(self) -> Path:
        return self.state_dir / "nginx.conf"

    @property
    def certs_dir(self) -> Path:
        return self.state_dir / "certs"

    def locations(self) -> List[str]:
        fragments = []
        for spec in self.context.proxied_services():
            fragment = self.context.adapter(spec.name).proxy_fragment()
            if fragment:
                self.logger.debug(f"adding location for {spec.name}")
                fragments.append(fragment)
        return fragments

    async def ensure_certificate(self) -> None:
        """Generate a self-signed certificate unless one is already in place."""
        crt = self.certs_dir / "svcadm.crt"
        key = self.certs_dir / "svcadm.key"
        if crt.exists() and key.exists():
            self.logger.debug(f"reusing certificate in {self.certs_dir}")
            return

        await ensure_directory(self.certs_dir)
        try:
            await run_command([
                "openssl", "req", "-x509", "-nodes",
                "-newkey", "rsa:4096",
                "-days", "365",
                "-keyout", str(key),
                "-out", str(crt),
                "-subj", f"/CN={self.context.hostname}",
            ], timeout=120)
        except subprocess.CalledProcessError as e:
            raise SvcadmError(f"failed to generate the proxy certificate: {e.stderr}") from e
        except (OSError, subprocess.TimeoutExpired) as e:
            raise SvcadmError(f"failed to generate the proxy certificate: {e}") from e
        self.logger.info(f"generated a self-signed certificate for {self.context.hostname}")

    async def pre_init(self) -> RuntimeArtifacts:
        conf = render_nginx_conf(self.context.hostname, self.locations())
        await write_file(self.conf_path, conf)
        await self.ensure_certificate()
        return RuntimeArtifacts(volumes={
            str(self.conf_path): "/etc/nginx/conf.d/default.conf:Z",
            str(self.certs_dir / "svcadm.crt"): f"{CERT_PATH}:Z",
            str(self.certs_dir / "svcadm.key"): f"{KEY_PATH}:Z",
        })

    async def wait_for(self) -> None:
        await self.wait_for_container()

    def cleanup(self):
        return [], [str(self.state_dir)]
