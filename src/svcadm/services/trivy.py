"""Trivy server adapter."""

from svcadm.models.runtime import RuntimeArtifacts
from svcadm.services.base import ServiceAdapter


class TrivyAdapter(ServiceAdapter):
    """Stateless vulnerability scanner in client/server mode."""

    adapter_tag = "trivyadm"
    retry_interval = 5
    max_retries = 30

    async def pre_init(self) -> RuntimeArtifacts:
        return RuntimeArtifacts(command=["server", "--listen", "0.0.0.0:4954"])

    async def wait_for(self) -> None:
        await self.wait_for_container()

    def proxy_fragment(self) -> str:
        return (
            f"location /{self.name}/ {{\n"
            f"    proxy_pass http://{self.container_name}:4954/;\n"
            "    proxy_http_version 1.1;\n"
            "    proxy_set_header Host $host;\n"
            "    proxy_set_header Upgrade $http_upgrade;\n"
            "    proxy_set_header Connection \"upgrade\";\n"
            "    proxy_set_header X-Real-IP $remote_addr;\n"
            "    proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;\n"
            "}"
        )
