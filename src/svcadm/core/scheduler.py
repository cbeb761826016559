"""Dependency scheduling of service start batches."""

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set

from svcadm.errors import DependencyCycle
from svcadm.models.service import ServiceSpec


logger = logging.getLogger(__name__)

PROXY_SERVICE = "nginx"

# Prerequisites that must be running and ready before a service's pre_init
SERVICE_NEEDS: Dict[str, Set[str]] = {
    "postgresql": set(),
    "gitlab": {"postgresql"},
    "mattermost": {"postgresql"},
    "sonarqube": {"postgresql"},
    "minio": set(),
    "vault": set(),
    "trivy": set(),
    "clamav": set(),
    # nginx needs every service it fronts, resolved per configuration
    PROXY_SERVICE: set(),
}


def dependency_graph(
    services: Iterable[ServiceSpec],
    needs: Optional[Mapping[str, Set[str]]] = None,
) -> Dict[str, Set[str]]:
    """Build ``name -> prerequisites`` for the given services.

    The proxy depends on every enabled service published through it.
    """
    needs = SERVICE_NEEDS if needs is None else needs
    services = list(services)
    graph = {s.name: set(needs.get(s.name, set())) for s in services}
    if PROXY_SERVICE in graph:
        graph[PROXY_SERVICE] |= {
            s.name for s in services
            if s.enabled and s.proxy_frontend and s.name != PROXY_SERVICE
        }
    return graph


def compute_start_batches(
    names: Sequence[str],
    graph: Mapping[str, Set[str]],
) -> List[List[str]]:
    """Layered topological sort (Kahn) of ``names`` over ``graph``.

    Prerequisites outside ``names`` are ignored. Batch members keep the order
    of ``names``. Raises DependencyCycle without emitting a partial schedule.
    """
    enabled = list(dict.fromkeys(names))
    enabled_set = set(enabled)
    position = {name: i for i, name in enumerate(enabled)}

    in_degree: Dict[str, int] = {}
    dependents: Dict[str, List[str]] = {name: [] for name in enabled}
    for name in enabled:
        prereqs = set(graph.get(name, set())) & enabled_set
        in_degree[name] = len(prereqs)
        for prereq in prereqs:
            dependents[prereq].append(name)

    queue = [name for name in enabled if in_degree[name] == 0]
    batches: List[List[str]] = []
    while queue:
        batches.append(queue)
        next_queue = []
        for name in queue:
            for dependent in dependents[name]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    next_queue.append(dependent)
        queue = sorted(next_queue, key=position.__getitem__)

    remaining = [name for name, degree in in_degree.items() if degree > 0]
    if remaining:
        logger.debug(f"in-degree: {in_degree}")
        logger.debug(f"dependents: {dependents}")
        raise DependencyCycle(remaining)

    return batches


def start_batches(
    services: Iterable[ServiceSpec],
    needs: Optional[Mapping[str, Set[str]]] = None,
) -> List[List[str]]:
    """Start batches for the enabled services among ``services``."""
    services = list(services)
    graph = dependency_graph(services, needs)
    names = [s.name for s in services if s.enabled]
    batches = compute_start_batches(names, graph)
    for i, batch in enumerate(batches, start=1):
        logger.debug(f"batch {i}: {', '.join(batch)}")
    return batches
