from __future__ import annotations

from typing import Any, Dict

from domain.scenario import Scenario


def scenario_to_dict(scenario: Scenario) -> Dict[str, Any]:
    """Scenario back in file format, for display."""
    return {
        "config": {
            "name": scenario.config.name,
            "rate": scenario.config.rate,
            "description": scenario.config.description,
            "author": scenario.config.author,
        },
        "servers": [
            {
                "id": s.id,
                "protocol": s.protocol.value,
                "host": s.host,
                "port": s.port,
                "authorization": s.authorization,
                "http_version": s.http_version.value,
                "authz_token": "********" if s.authz_token else None,
            }
            for s in scenario.servers
        ],
        "requests": [
            {
                "id": r.id,
                "server_id": r.server_id,
                "path": r.path,
                "method": r.method.value,
                "content": {"headers": dict(r.content.headers), "body": r.content.body},
                "depends": sorted(r.depends),
                "timeout_ms": r.timeout_ms,
            }
            for r in scenario.requests
        ],
        "responses": [
            {
                "id": e.id,
                "request_id": e.request_id,
                "expected": {
                    "headers": dict(e.expected.headers),
                    "body": e.expected.body,
                    "status": e.expected.status,
                },
            }
            for e in scenario.responses
        ],
    }
