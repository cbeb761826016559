"""ClamAV daemon adapter."""

from svcadm.models.runtime import RuntimeArtifacts
from svcadm.services.base import ServiceAdapter


class ClamAVAdapter(ServiceAdapter):
    adapter_tag = "clamavadm"
    retry_interval = 10
    max_retries = 30

    async def pre_init(self) -> RuntimeArtifacts:
        return RuntimeArtifacts()

    async def wait_for(self) -> None:
        # clamd loads its signature database before answering
        await self.poll(lambda: self.exec_succeeds(["clamdcheck.sh"]))
