# domain/dependency_graph.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Set, Tuple

from domain.exceptions import DependencyCycle, UnknownDependency, UnknownServer
from domain.scenario import Scenario


@dataclass(frozen=True)
class DependencyGraph:
    ids: Tuple[int, ...]
    adjacency: Dict[int, FrozenSet[int]]
    waves: Tuple[Tuple[int, ...], ...]

    def dependencies_of(self, request_id: int) -> FrozenSet[int]:
        return self.adjacency[request_id]

    def wave_of(self, request_id: int) -> int:
        for index, wave in enumerate(self.waves):
            if request_id in wave:
                return index
        raise KeyError(request_id)


def build_dependency_graph(scenario: Scenario) -> DependencyGraph:
    """
    Build the adjacency map from each request's `depends` and split it into waves.

    Wave 0 holds requests without dependencies; wave k holds requests whose
    dependencies are all placed in waves 0..k-1. Members of a wave keep
    scenario order.

    Raises:
        UnknownServer: a request targets a server id that does not exist.
        UnknownDependency: a request depends on a request id that does not exist.
        DependencyCycle: the dependency relation is not acyclic.
    """
    server_ids = {s.id for s in scenario.servers}
    unknown_servers = [r.server_id for r in scenario.requests if r.server_id not in server_ids]
    if unknown_servers:
        raise UnknownServer(unknown_servers)

    ids = tuple(r.id for r in scenario.requests)
    adjacency: Dict[int, FrozenSet[int]] = {r.id: frozenset(r.depends) for r in scenario.requests}

    known = set(ids)
    unknown_deps = [dep for deps in adjacency.values() for dep in deps if dep not in known]
    if unknown_deps:
        raise UnknownDependency(unknown_deps)

    waves = _compute_waves(ids, adjacency)
    return DependencyGraph(ids=ids, adjacency=adjacency, waves=waves)


def _compute_waves(ids: Tuple[int, ...], adjacency: Dict[int, FrozenSet[int]]) -> Tuple[Tuple[int, ...], ...]:
    placed: Set[int] = set()
    remaining: List[int] = list(ids)
    waves: List[Tuple[int, ...]] = []

    while remaining:
        frontier = tuple(i for i in remaining if adjacency[i] <= placed)
        if not frontier:
            raise DependencyCycle(_find_cycle_member(remaining, adjacency))
        waves.append(frontier)
        placed.update(frontier)
        remaining = [i for i in remaining if i not in placed]

    return tuple(waves)


def _find_cycle_member(remaining: List[int], adjacency: Dict[int, FrozenSet[int]]) -> int:
    # Every unplaced node has at least one unplaced dependency, so walking
    # those edges must eventually revisit a node, and that node is on a cycle.
    unplaced = set(remaining)
    seen: Set[int] = set()
    node = remaining[0]
    while node not in seen:
        seen.add(node)
        node = min(adjacency[node] & unplaced)
    return node
