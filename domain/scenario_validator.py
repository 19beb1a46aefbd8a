from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Iterable, List

from domain.dependency_graph import DependencyGraph, build_dependency_graph
from domain.exceptions import (
    DuplicateRequestId,
    DuplicateResponseForRequest,
    DuplicateServerId,
    MissingAuthorizationToken,
    UnknownRequestForResponse,
)
from domain.scenario import Scenario


@dataclass(frozen=True)
class ScenarioStructureValidator:
    def validate(self, scenario: Scenario) -> DependencyGraph:
        duplicated_servers = self._find_duplicates(s.id for s in scenario.servers)
        if duplicated_servers:
            raise DuplicateServerId(duplicated_servers)

        duplicated_requests = self._find_duplicates(r.id for r in scenario.requests)
        if duplicated_requests:
            raise DuplicateRequestId(duplicated_requests)

        missing_tokens = [s.id for s in scenario.servers if s.authorization and not s.authz_token]
        if missing_tokens:
            raise MissingAuthorizationToken(missing_tokens)

        graph = build_dependency_graph(scenario)

        request_ids = set(graph.ids)
        orphans = [r.request_id for r in scenario.responses if r.request_id not in request_ids]
        if orphans:
            raise UnknownRequestForResponse(orphans)

        duplicated_responses = self._find_duplicates(r.request_id for r in scenario.responses)
        if duplicated_responses:
            raise DuplicateResponseForRequest(duplicated_responses)

        return graph

    def _find_duplicates(self, ids: Iterable[int]) -> List[int]:
        counts = Counter(ids)
        return sorted(i for i, n in counts.items() if n > 1)
