"""Tests for start batch scheduling."""

import pytest

from svcadm.core.scheduler import compute_start_batches, dependency_graph, start_batches
from svcadm.errors import DependencyCycle


def _assert_valid_schedule(batches, names, graph):
    flat = [name for batch in batches for name in batch]
    assert sorted(flat) == sorted(names)
    assert len(flat) == len(set(flat))
    position = {name: i for i, batch in enumerate(batches) for name in batch}
    for name in names:
        for prereq in graph.get(name, set()):
            if prereq in position:
                assert position[prereq] < position[name]


class TestComputeStartBatches:
    """Test the layered topological sort."""

    def test_independent_services_share_one_batch(self):
        """Test services without prerequisites start together."""
        assert compute_start_batches(["a", "b", "c"], {}) == [["a", "b", "c"]]

    def test_chain(self):
        """Test a chain yields one service per batch."""
        graph = {"b": {"a"}, "c": {"b"}}
        assert compute_start_batches(["c", "b", "a"], graph) == [["a"], ["b"], ["c"]]

    def test_diamond(self):
        """Test diamond dependencies collapse into three batches."""
        graph = {"b": {"a"}, "c": {"a"}, "d": {"b", "c"}}
        batches = compute_start_batches(["a", "b", "c", "d"], graph)
        assert batches == [["a"], ["b", "c"], ["d"]]

    def test_prerequisites_outside_the_set_are_ignored(self):
        """Test prerequisites outside the scheduled set are ignored."""
        assert compute_start_batches(["b"], {"b": {"a"}}) == [["b"]]

    @pytest.mark.parametrize("graph", [
        {"a": {"b"}, "b": {"a"}},
        {"a": {"c"}, "b": {"a"}, "c": {"b"}},
        {"a": {"a"}},
    ])
    def test_cycle_raises_without_partial_schedule(self, graph):
        """Test a cycle raises and returns no partial schedule."""
        with pytest.raises(DependencyCycle) as exc_info:
            compute_start_batches(sorted(set(graph) | {"free"}), graph)
        assert "free" not in exc_info.value.remaining
        assert exc_info.value.remaining == sorted(exc_info.value.remaining)

    @pytest.mark.parametrize("graph", [
        {},
        {"b": {"a"}},
        {"b": {"a"}, "c": {"a"}, "d": {"b", "c"}, "e": {"d", "a"}},
        {"f": {"e"}, "e": {"d"}, "d": {"c"}, "c": {"b"}, "b": {"a"}},
        {"x": {"a", "b", "c"}, "y": {"x"}, "z": {"a"}},
    ])
    def test_schedule_respects_every_edge(self, graph):
        """Test every service starts in a later batch than its prerequisites."""
        names = sorted(set(graph) | {p for prereqs in graph.values() for p in prereqs} | {"solo"})
        batches = compute_start_batches(names, graph)
        _assert_valid_schedule(batches, names, graph)


class TestServiceGraph:
    """Test the service prerequisite graph."""

    def test_postgres_then_sonarqube(self, make_config, svc):
        """Test sonarqube is scheduled after postgres."""
        config = make_config([svc("postgresql"), svc("sonarqube")])
        assert start_batches(config.services) == [["postgresql"], ["sonarqube"]]

    def test_proxy_waits_for_proxied_services(self, make_config, svc):
        """Test nginx is scheduled after the services it fronts."""
        config = make_config([
            svc("nginx"),
            svc("postgresql"),
            svc("gitlab", proxy=True),
            svc("vault", proxy=True),
            svc("trivy"),
        ])
        batches = start_batches(config.services)
        assert batches == [["postgresql", "vault", "trivy"], ["gitlab"], ["nginx"]]

    def test_disabled_services_are_not_scheduled(self, make_config, svc):
        """Test disabled services are left out of the schedule."""
        config = make_config([svc("postgresql"), svc("clamav", enabled=False)])
        assert start_batches(config.services) == [["postgresql"]]

    def test_graph_uses_only_enabled_proxied_services(self, make_config, svc):
        """Test nginx only depends on enabled, proxied services."""
        config = make_config([svc("nginx"), svc("vault", proxy=True), svc("trivy", enabled=False, proxy=True)])
        assert dependency_graph(config.services)["nginx"] == {"vault"}

    def test_injected_dependency_cycle(self, make_config, svc):
        """Test an injected cycle between services is detected."""
        config = make_config([svc("postgresql"), svc("sonarqube")])
        needs = {"postgresql": {"sonarqube"}, "sonarqube": {"postgresql"}}
        with pytest.raises(DependencyCycle) as exc_info:
            start_batches(config.services, needs)
        assert exc_info.value.remaining == ["postgresql", "sonarqube"]
