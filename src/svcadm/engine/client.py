"""Docker SDK facade shared by every service adapter."""

import asyncio
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import docker
from docker.errors import APIError, DockerException, ImageNotFound, NotFound
from docker.utils import parse_repository_tag

from svcadm.constants import (
    BACKENDS,
    DOCKER_SOCKET_PATH,
    NAME_PATTERN,
    NETWORK_DRIVERS,
    podman_socket_path,
)
from svcadm.core.state import ReadWriteLock
from svcadm.engine.formatting import (
    format_binds,
    format_env,
    format_port_bindings,
    format_restart_policy,
    parse_env,
)
from svcadm.errors import (
    BackendChangeRejected,
    ContainerCreateFailed,
    ContainerEnvMissing,
    ContainerNotFound,
    EngineError,
    EngineUnavailable,
    ExecFailed,
    ImagePullFailed,
    InvalidBackend,
    NetworkError,
    TransientEngineError,
)
from svcadm.models.runtime import ContainerRunSpec
from svcadm.utils.archive import extract_tar


logger = logging.getLogger(__name__)

_NETWORK_NAME_RE = re.compile(NAME_PATTERN)


def _socket_exists(path: str) -> bool:
    return os.path.exists(path)


def _decode(data: Optional[bytes]) -> str:
    return (data or b"").decode("utf-8", errors="replace")


class ContainerEngine:
    """Thin async wrapper around the docker SDK.

    Blocking SDK calls run in worker threads. The selected backend, the
    client and the network name are guarded by a read/write lock: they are
    written once during initialization and read by every operation.
    """

    def __init__(self):
        self._lock = ReadWriteLock()
        self._kind: Optional[str] = None
        self._client: Optional[docker.DockerClient] = None
        self._network: Optional[str] = None

    @property
    def kind(self) -> Optional[str]:
        with self._lock.read_locked():
            return self._kind

    @property
    def network(self) -> Optional[str]:
        with self._lock.read_locked():
            return self._network

    def _get_client(self) -> docker.DockerClient:
        with self._lock.read_locked():
            client = self._client
        if client is None:
            raise EngineUnavailable("no container backend selected")
        return client

    # Backend selection

    def _resolve_base_url(self, kind: str, socket: Optional[str]) -> Optional[str]:
        if os.environ.get("DOCKER_HOST"):
            return None

        if socket:
            path = socket
        elif kind == "podman":
            path = podman_socket_path()
        else:
            path = DOCKER_SOCKET_PATH

        if not _socket_exists(path):
            if kind == "podman":
                raise EngineUnavailable(
                    f"no socket found at {path}, please run "
                    f"'podman system service --time=0 unix://{path}'"
                )
            raise EngineUnavailable(f"no socket found at {path}, is the docker daemon running?")
        return f"unix://{path}"

    async def select_backend(self, kind: str, socket: Optional[str] = None) -> None:
        """Connect to the docker or podman socket.

        ``DOCKER_HOST`` wins over any socket path. Selecting the same backend
        twice is a no-op; selecting a different one is rejected.
        """
        if kind not in BACKENDS:
            raise InvalidBackend(f"invalid backend {kind!r}, expected one of {', '.join(BACKENDS)}")

        with self._lock.read_locked():
            current = self._kind
        if current is not None:
            if current == kind:
                logger.debug(f"Backend {kind} already selected")
                return
            raise BackendChangeRejected(
                f"backend already set to {current}, refusing to switch to {kind}"
            )

        base_url = self._resolve_base_url(kind, socket)

        def connect() -> docker.DockerClient:
            if base_url is None:
                client = docker.from_env(version="auto")
            else:
                client = docker.DockerClient(base_url=base_url, version="auto")
            client.ping()
            return client

        try:
            client = await asyncio.to_thread(connect)
        except DockerException as e:
            raise EngineUnavailable(f"cannot reach {kind} engine: {e}") from e

        with self._lock.write_locked():
            if self._kind is not None and self._kind != kind:
                client.close()
                raise BackendChangeRejected(
                    f"backend already set to {self._kind}, refusing to switch to {kind}"
                )
            self._kind = kind
            self._client = client
        logger.info(f"Using {kind} backend")

    async def close(self) -> None:
        with self._lock.write_locked():
            client = self._client
            self._client = None
            self._kind = None
        if client is not None:
            await asyncio.to_thread(client.close)

    # Networks, images and volumes

    async def ensure_network(self, name: str, driver: str = "bridge",
                             labels: Optional[Dict[str, str]] = None) -> str:
        """Return the id of network ``name``, creating it when missing."""
        if not _NETWORK_NAME_RE.match(name):
            raise NetworkError(f"invalid network name {name!r}")
        if driver not in NETWORK_DRIVERS:
            raise NetworkError(
                f"invalid network driver {driver!r}, expected one of {', '.join(NETWORK_DRIVERS)}"
            )
        client = self._get_client()

        def ensure() -> Tuple[str, bool]:
            for network in client.networks.list(names=[name]):
                if network.name == name:
                    return network.id, False
            network = client.networks.create(name, driver=driver, labels=labels or {})
            return network.id, True

        try:
            network_id, created = await asyncio.to_thread(ensure)
        except DockerException as e:
            raise NetworkError(f"failed to ensure network {name}: {e}") from e

        with self._lock.write_locked():
            self._network = name
        if created:
            logger.info(f"Created network {name} ({driver})")
        else:
            logger.debug(f"Network {name} already exists")
        return network_id

    async def image_present(self, ref: str) -> bool:
        """Whether the engine resolves ``ref`` to a local image.

        The engine does the name resolution, so short references match the
        fully qualified tags podman reports.
        """
        client = self._get_client()
        try:
            await asyncio.to_thread(client.images.get, ref)
        except ImageNotFound:
            return False
        except DockerException as e:
            raise TransientEngineError(f"failed to inspect image {ref}: {e}") from e
        return True

    async def pull_image(self, ref: str) -> None:
        """Pull ``ref`` unless a local image already carries that tag."""
        if await self.image_present(ref):
            logger.debug(f"Image {ref} already present")
            return

        client = self._get_client()
        repository, tag = parse_repository_tag(ref)

        def pull() -> None:
            for event in client.api.pull(repository, tag=tag or "latest", stream=True, decode=True):
                if "error" in event:
                    raise ImagePullFailed(f"failed to pull {ref}: {event['error']}")
                logger.debug(f"{ref}: {event.get('status', '')} {event.get('progress', '')}".rstrip())

        logger.info(f"Pulling image {ref}")
        try:
            await asyncio.to_thread(pull)
        except DockerException as e:
            raise ImagePullFailed(f"failed to pull {ref}: {e}") from e

    async def create_volume(self, name: str, labels: Optional[Dict[str, str]] = None) -> None:
        client = self._get_client()
        try:
            await asyncio.to_thread(client.volumes.create, name=name, labels=labels or {})
        except DockerException as e:
            raise ContainerCreateFailed(f"failed to create volume {name}: {e}") from e
        logger.debug(f"Created volume {name}")

    async def volume_exists(self, name: str) -> bool:
        client = self._get_client()
        try:
            await asyncio.to_thread(client.volumes.get, name)
        except NotFound:
            return False
        except DockerException as e:
            raise TransientEngineError(f"failed to inspect volume {name}: {e}") from e
        return True

    async def remove_volume(self, name: str, force: bool = True) -> None:
        client = self._get_client()

        def remove() -> None:
            client.volumes.get(name).remove(force=force)

        try:
            await asyncio.to_thread(remove)
        except NotFound:
            logger.debug(f"Volume {name} already gone")
        except DockerException as e:
            raise EngineError(f"failed to remove volume {name}: {e}") from e

    # Container lifecycle

    async def create_and_start(self, spec: ContainerRunSpec) -> str:
        """Pull the image when missing, then create the container on the managed network and start it."""
        await self.pull_image(spec.image)
        client = self._get_client()
        network = self.network

        kwargs = {
            "image": spec.image,
            "name": spec.name,
            "environment": format_env(spec.env),
            "labels": dict(spec.labels),
            "restart_policy": format_restart_policy(spec.restart_policy),
            "volumes": format_binds(spec.volumes),
            "ports": format_port_bindings(spec.ports),
            "cap_add": list(spec.cap_add) or None,
            "detach": True,
        }
        if spec.command:
            kwargs["command"] = list(spec.command)
        if network:
            kwargs["network"] = network

        def create() -> str:
            container = client.containers.create(**kwargs)
            container.start()
            return container.id

        try:
            container_id = await asyncio.to_thread(create)
        except ImageNotFound as e:
            raise ContainerCreateFailed(f"image {spec.image} not found for {spec.name}: {e}") from e
        except DockerException as e:
            raise ContainerCreateFailed(f"failed to create container {spec.name}: {e}") from e
        logger.info(f"Started container {spec.name} ({container_id[:12]})")
        return container_id

    async def stop(self, name: str) -> None:
        client = self._get_client()
        try:
            await asyncio.to_thread(client.api.stop, name)
        except NotFound as e:
            raise ContainerNotFound(f"container {name} not found") from e
        except DockerException as e:
            raise EngineError(f"failed to stop {name}: {e}") from e
        logger.info(f"Stopped container {name}")

    async def resume(self, name: str) -> None:
        """Start a stopped container."""
        client = self._get_client()
        try:
            await asyncio.to_thread(client.api.start, name)
        except NotFound as e:
            raise ContainerNotFound(f"container {name} not found") from e
        except DockerException as e:
            raise EngineError(f"failed to start {name}: {e}") from e
        logger.info(f"Resumed container {name}")

    async def remove(self, name: str, remove_volumes: bool = True) -> None:
        client = self._get_client()
        try:
            await asyncio.to_thread(client.api.remove_container, name, v=remove_volumes, force=True)
        except NotFound as e:
            raise ContainerNotFound(f"container {name} not found") from e
        except DockerException as e:
            raise EngineError(f"failed to remove {name}: {e}") from e
        logger.info(f"Removed container {name}")

    async def container_exists(self, name: str) -> bool:
        client = self._get_client()
        try:
            await asyncio.to_thread(client.api.inspect_container, name)
        except NotFound:
            return False
        except DockerException as e:
            raise TransientEngineError(f"failed to inspect {name}: {e}") from e
        return True

    async def _inspect(self, name: str) -> dict:
        client = self._get_client()
        try:
            return await asyncio.to_thread(client.api.inspect_container, name)
        except NotFound as e:
            raise ContainerNotFound(f"container {name} not found") from e
        except DockerException as e:
            raise TransientEngineError(f"failed to inspect {name}: {e}") from e

    async def status(self, name: str) -> str:
        """Engine state string of the container, e.g. ``running``."""
        info = await self._inspect(name)
        return info.get("State", {}).get("Status", "unknown")

    async def logs(self, name: str, tail: Optional[int] = None) -> str:
        client = self._get_client()
        try:
            data = await asyncio.to_thread(
                client.api.logs, name, stdout=True, stderr=True, tail=tail if tail else "all"
            )
        except NotFound as e:
            raise ContainerNotFound(f"container {name} not found") from e
        except DockerException as e:
            raise EngineError(f"failed to read logs of {name}: {e}") from e
        return _decode(data)

    # Exec and file transfer

    async def _run_exec(self, name: str, argv: Sequence[str]) -> Tuple[int, bytes, bytes]:
        client = self._get_client()

        def run() -> Tuple[int, bytes, bytes]:
            exec_id = client.api.exec_create(name, list(argv), stdout=True, stderr=True)["Id"]
            stdout, stderr = client.api.exec_start(exec_id, demux=True)
            exit_code = client.api.exec_inspect(exec_id).get("ExitCode")
            return exit_code if exit_code is not None else -1, stdout or b"", stderr or b""

        logger.debug(f"exec in {name}: {list(argv)}")
        try:
            return await asyncio.to_thread(run)
        except NotFound as e:
            raise ContainerNotFound(f"container {name} not found") from e
        except DockerException as e:
            raise TransientEngineError(f"exec {list(argv)} in {name} failed: {e}") from e

    async def exec(self, name: str, argv: Sequence[str]) -> None:
        """Run ``argv`` inside the container; non-zero exit raises ExecFailed."""
        exit_code, stdout, stderr = await self._run_exec(name, argv)
        if exit_code != 0:
            raise ExecFailed(name, argv, exit_code, stderr=_decode(stderr), stdout=stdout)

    async def exec_capture(self, name: str, argv: Sequence[str]) -> bytes:
        """Run ``argv`` and return its stdout.

        On a non-zero exit the ExecFailed error carries the captured stdout.
        """
        exit_code, stdout, stderr = await self._run_exec(name, argv)
        if exit_code != 0:
            raise ExecFailed(name, argv, exit_code, stderr=_decode(stderr), stdout=stdout)
        return stdout

    async def copy_out(self, name: str, src: str, dest: str) -> List[Path]:
        """Copy ``src`` from the container into the host directory ``dest``."""
        client = self._get_client()

        def copy() -> List[Path]:
            stream, _ = client.api.get_archive(name, src)
            with tempfile.SpooledTemporaryFile(max_size=64 * 1024 * 1024) as buffer:
                for chunk in stream:
                    buffer.write(chunk)
                buffer.seek(0)
                return extract_tar(buffer, dest)

        try:
            extracted = await asyncio.to_thread(copy)
        except NotFound as e:
            raise ContainerNotFound(f"{src} not found in container {name}") from e
        except (APIError, DockerException) as e:
            raise EngineError(f"failed to copy {src} out of {name}: {e}") from e
        logger.info(f"Copied {name}:{src} to {dest}")
        return extracted

    async def get_container_env(self, name: str, key: str) -> str:
        info = await self._inspect(name)
        env = parse_env(info.get("Config", {}).get("Env") or [])
        if key not in env:
            raise ContainerEnvMissing(f"{key} is not set in container {name}")
        return env[key]
