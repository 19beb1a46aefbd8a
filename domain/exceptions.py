from __future__ import annotations

from typing import Iterable, Tuple


class ValidationError(Exception):
    pass


class ScenarioStructureError(ValidationError):
    """
    The scenario itself is malformed. Raised before anything is dispatched.
    """

    def __init__(self, message: str, ids: Iterable[int] = ()):
        super().__init__(message)
        self.ids: Tuple[int, ...] = tuple(sorted(set(ids)))


def _join(ids: Iterable[int]) -> str:
    return ", ".join(str(i) for i in sorted(set(ids)))


class UnknownServer(ScenarioStructureError):
    def __init__(self, server_ids: Iterable[int]):
        server_ids = list(server_ids)
        super().__init__(f"Requests reference unknown servers: {_join(server_ids)}", server_ids)


class UnknownDependency(ScenarioStructureError):
    def __init__(self, request_ids: Iterable[int]):
        request_ids = list(request_ids)
        super().__init__(f"Requests depend on unknown requests: {_join(request_ids)}", request_ids)


class DependencyCycle(ScenarioStructureError):
    def __init__(self, request_id: int):
        super().__init__(f"Dependency cycle detected involving request {request_id}", [request_id])
        self.request_id = request_id


class DuplicateResponseForRequest(ScenarioStructureError):
    def __init__(self, request_ids: Iterable[int]):
        request_ids = list(request_ids)
        super().__init__(
            f"More than one expected response for requests: {_join(request_ids)}", request_ids
        )


class DuplicateRequestId(ScenarioStructureError):
    def __init__(self, request_ids: Iterable[int]):
        request_ids = list(request_ids)
        super().__init__(f"Duplicate request ids: {_join(request_ids)}", request_ids)


class DuplicateServerId(ScenarioStructureError):
    def __init__(self, server_ids: Iterable[int]):
        server_ids = list(server_ids)
        super().__init__(f"Duplicate server ids: {_join(server_ids)}", server_ids)


class UnknownRequestForResponse(ScenarioStructureError):
    def __init__(self, request_ids: Iterable[int]):
        request_ids = list(request_ids)
        super().__init__(
            f"Expected responses reference unknown requests: {_join(request_ids)}", request_ids
        )


class MissingAuthorizationToken(ScenarioStructureError):
    def __init__(self, server_ids: Iterable[int]):
        server_ids = list(server_ids)
        super().__init__(
            f"Servers require authorization but have no authz_token: {_join(server_ids)}",
            server_ids,
        )
