"""Lifecycle orchestration: start, cleanup, backup and status of the enabled services."""

import asyncio
import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Set

from svcadm.constants import NAME_PATTERN, SVCADM_HOME, base_labels
from svcadm.core.config import ConfigManager
from svcadm.core.scheduler import dependency_graph, start_batches
from svcadm.engine.client import ContainerEngine
from svcadm.errors import (
    ConfigInvalid,
    ContainerNotFound,
    EngineError,
    SkippedMissingPrereq,
    SvcadmError,
    UnknownService,
)
from svcadm.models.config import SvcadmConfig
from svcadm.models.runtime import ContainerRunSpec, RuntimeArtifacts
from svcadm.models.service import ServiceSpec
from svcadm.services.context import ServiceContext
from svcadm.utils.files import ensure_directory, remove_path


logger = logging.getLogger(__name__)

_VOLUME_NAME_RE = re.compile(NAME_PATTERN)


class ServiceOutcome(Enum):
    """Result of starting one service."""
    STARTED = "started"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class ServiceResult:
    name: str
    outcome: ServiceOutcome
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.outcome == ServiceOutcome.STARTED


def named_volumes(volumes: Mapping[str, str]) -> List[str]:
    """Keys of a volume map that are engine volumes rather than host paths."""
    return [source for source in volumes if _VOLUME_NAME_RE.match(source)]


def build_run_spec(spec: ServiceSpec, artifacts: RuntimeArtifacts,
                   labels: Dict[str, str]) -> ContainerRunSpec:
    """Merge the declared service settings with what the adapter's pre_init returned.

    Adapter env, volumes and ports win over the declared ones on key collision.
    """
    env = dict(spec.container.env)
    env.update(artifacts.env)

    volumes = spec.named_volumes()
    volumes.update(artifacts.volumes)

    ports = dict(spec.container.ports)
    ports.update(artifacts.ports)

    return ContainerRunSpec(
        name=spec.container.name,
        image=spec.image.reference,
        env=env,
        command=list(artifacts.command) if artifacts.command else None,
        labels=dict(labels),
        restart_policy=spec.container.restart,
        volumes=volumes,
        ports=ports,
        cap_add=list(artifacts.cap_add),
    )


class Orchestrator:
    """Owns the engine, the configuration snapshots and the adapters of one run."""

    def __init__(
        self,
        config_manager: ConfigManager,
        engine: Optional[ContainerEngine] = None,
        home: Path = SVCADM_HOME,
        hostname: Optional[str] = None,
        needs: Optional[Mapping[str, Set[str]]] = None,
    ):
        self.config_manager = config_manager
        self.engine = engine or ContainerEngine()
        self.context = ServiceContext(
            self.engine,
            config_manager.config_cell,
            config_manager.users_cell,
            home=home,
            hostname=hostname,
        )
        self.needs = needs

    @property
    def config(self) -> SvcadmConfig:
        config = self.config_manager.config
        if config is None:
            raise ConfigInvalid("configuration is not loaded")
        return config

    async def initialize(self) -> None:
        """Load the configuration if needed, select the backend and ensure the network."""
        if self.config_manager.config is None:
            await self.config_manager.load()
        operator = self.config.general.operator
        await self.engine.select_backend(operator.name, operator.socket)
        await self.engine.ensure_network(
            operator.network.name,
            operator.network.driver,
            labels=self.labels(),
        )

    async def close(self) -> None:
        await self.engine.close()

    def labels(self, service: Optional[str] = None) -> Dict[str, str]:
        """Operator labels overlaid with the labels svcadm stamps on everything it creates."""
        labels = dict(self.config.general.containers.labels)
        labels.update(base_labels())
        if service:
            labels["service"] = service
        return labels

    def _enabled_spec(self, name: str) -> ServiceSpec:
        spec = self.config.get_service(name)
        if spec is None or not spec.enabled:
            raise UnknownService(f"service {name} is not enabled in the configuration")
        return spec

    # Start

    async def start_service(self, name: str) -> str:
        """pre_init, create and start the container, then post_init. Returns the container id."""
        adapter = self.context.adapter(name)
        spec = adapter.spec

        adapter.logger.debug("service pre-init")
        artifacts = await adapter.pre_init()
        run_spec = build_run_spec(spec, artifacts, self.labels(name))

        adapter.logger.debug("service init")
        for volume in named_volumes(run_spec.volumes):
            if not await self.engine.volume_exists(volume):
                await self.engine.create_volume(volume, labels=run_spec.labels)
        container_id = await self.engine.create_and_start(run_spec)

        adapter.logger.debug("service post-init")
        await adapter.post_init()
        adapter.logger.info(f"{name} is up")
        return container_id

    async def start_services(self) -> Dict[str, ServiceResult]:
        """Start every enabled service batch by batch.

        Services within a batch start concurrently. A failure does not stop its
        siblings, but dependents of a failed service are skipped.
        Raises DependencyCycle before anything is started.
        """
        services = self.config.services
        batches = start_batches(services, self.needs)
        graph = dependency_graph(services, self.needs)
        enabled = {s.name for s in services if s.enabled}
        results: Dict[str, ServiceResult] = {}

        for index, batch in enumerate(batches, start=1):
            logger.info(f"Starting batch {index}/{len(batches)}: {', '.join(batch)}")

            runnable = []
            for name in batch:
                missing = [
                    prereq for prereq in sorted(graph.get(name, set()) & enabled)
                    if not results[prereq].ok
                ]
                if missing:
                    error = SkippedMissingPrereq(name, missing)
                    logger.warning(str(error))
                    results[name] = ServiceResult(name, ServiceOutcome.SKIPPED, error)
                else:
                    runnable.append(name)

            outcomes = await asyncio.gather(
                *(self.start_service(name) for name in runnable),
                return_exceptions=True,
            )
            for name, outcome in zip(runnable, outcomes):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                if isinstance(outcome, BaseException):
                    logger.error(
                        f"could not start {name}: {outcome}",
                        exc_info=None if isinstance(outcome, SvcadmError) else outcome,
                    )
                    results[name] = ServiceResult(name, ServiceOutcome.FAILED, outcome)
                else:
                    results[name] = ServiceResult(name, ServiceOutcome.STARTED)

        started = sum(1 for r in results.values() if r.ok)
        logger.info(f"{started}/{len(results)} service(s) started")
        return results

    # Cleanup

    def _protected_paths(self) -> List[Path]:
        return [
            Path(s.backup.location).expanduser().resolve()
            for s in self.config.services
            if s.backup.location
        ]

    def _is_protected(self, path: Path, protected: List[Path]) -> bool:
        path = path.expanduser().resolve()
        return any(path == p or path in p.parents for p in protected)

    async def cleanup_service(self, spec: ServiceSpec) -> List[str]:
        """Remove the container, its volumes and the adapter's host paths.

        Backup locations are never touched. Returns the problems encountered.
        """
        adapter = self.context.adapter(spec.name)
        extra_volumes, extra_paths = adapter.cleanup()
        volumes = list(dict.fromkeys(named_volumes(spec.persistence.volumes) + list(extra_volumes)))
        container = spec.container.name
        problems: List[str] = []

        try:
            exists = await self.engine.container_exists(container)
        except EngineError as e:
            problems.append(f"could not check container {container}: {e}")
            exists = False

        if exists:
            adapter.logger.debug(f"stopping and deleting container {container}")
            try:
                await self.engine.stop(container)
            except EngineError as e:
                adapter.logger.debug(f"stop failed, removing anyway: {e}")
            try:
                await self.engine.remove(container, remove_volumes=True)
            except EngineError as e:
                problems.append(f"could not remove container {container}: {e}")

        for volume in volumes:
            try:
                if await self.engine.volume_exists(volume):
                    adapter.logger.debug(f"deleting volume {volume}")
                    await self.engine.remove_volume(volume, force=True)
            except EngineError as e:
                problems.append(f"could not remove volume {volume}: {e}")

        protected = self._protected_paths()
        for raw_path in extra_paths:
            path = Path(raw_path)
            if self._is_protected(path, protected):
                adapter.logger.warning(f"not deleting {path}, it holds backups")
                continue
            try:
                if await remove_path(path):
                    adapter.logger.debug(f"deleted {path}")
            except OSError as e:
                problems.append(f"could not remove {path}: {e}")

        for problem in problems:
            adapter.logger.error(problem)
        return problems

    async def cleanup_services(self) -> Dict[str, List[str]]:
        """Clean up every enabled service concurrently."""
        specs = self.config.enabled_services()
        for spec in specs:
            logger.info(f"cleaning up {spec.name}")
        outcomes = await asyncio.gather(*(self.cleanup_service(spec) for spec in specs))
        report = dict(zip((spec.name for spec in specs), outcomes))
        failed = [name for name, problems in report.items() if problems]
        if failed:
            logger.error(f"something went wrong while cleaning up {', '.join(failed)}, check the logs")
        return report

    # Backup

    async def backup_service(self, spec: ServiceSpec) -> List[Path]:
        location = spec.backup.location
        if not location:
            raise ConfigInvalid(f"{spec.name} has backups enabled but no backup location")
        await ensure_directory(Path(location).expanduser())
        adapter = self.context.adapter(spec.name)
        return await adapter.backup(str(Path(location).expanduser()))

    async def backup_services(self) -> Dict[str, Optional[BaseException]]:
        """Back up, one after the other, every enabled service with backups enabled."""
        report: Dict[str, Optional[BaseException]] = {}
        for spec in self.config.enabled_services():
            if not spec.backup.enabled:
                logger.debug(f"backups disabled for {spec.name}")
                continue
            logger.info(f"backing up {spec.name} to {spec.backup.location}")
            try:
                await self.backup_service(spec)
                report[spec.name] = None
            except (SvcadmError, OSError) as e:
                logger.error(f"backup of {spec.name} failed: {e}")
                report[spec.name] = e
        return report

    # Status and single-service operations

    async def fetch_service_status(self, spec: ServiceSpec) -> str:
        try:
            return await self.engine.status(spec.container.name)
        except ContainerNotFound:
            return "not found"
        except EngineError as e:
            logger.error(f"could not fetch status for {spec.name}: {e}")
            return "unknown"

    async def fetch_services_status(self) -> Dict[str, str]:
        specs = self.config.enabled_services()
        statuses = await asyncio.gather(*(self.fetch_service_status(spec) for spec in specs))
        return dict(zip((spec.name for spec in specs), statuses))

    async def pause_service(self, name: str) -> None:
        """Stop the service container."""
        await self.engine.stop(self._enabled_spec(name).container.name)

    async def resume_service(self, name: str) -> None:
        """Start the stopped service container again."""
        await self.engine.resume(self._enabled_spec(name).container.name)

    async def service_logs(self, name: str, tail: Optional[int] = None) -> str:
        return await self.engine.logs(self._enabled_spec(name).container.name, tail=tail)
