from __future__ import annotations

from pathlib import Path

import pytest

from domain.scenario import HttpMethod
from infrastructure.scenario.base_loader import ScenarioLoadError
from infrastructure.scenario.json_loader import JsonScenarioLoader
from infrastructure.scenario.loader_registry import ScenarioLoaderRegistry
from infrastructure.scenario.yaml_loader import YamlScenarioLoader

REPO_ROOT = Path(__file__).resolve().parents[2]


def test_yaml_loader_parses_scenario(tmp_path: Path) -> None:
    scenario_path = tmp_path / "scenario.yaml"
    scenario_path.write_text(
        """
config:
  name: yaml sample
servers:
  - {id: 1, protocol: http, host: localhost, port: 8080}
requests:
  - id: 1
    server_id: 1
    path: ping
    method: delete
    depends: []
responses:
  - id: 1
    request_id: 1
    expected: {status: 204}
""".strip(),
        encoding="utf-8",
    )

    scenario = YamlScenarioLoader().load_from_file(scenario_path)

    assert scenario.config.name == "yaml sample"
    assert scenario.config.rate == 0
    assert scenario.requests[0].method is HttpMethod.DELETE
    assert scenario.requests[0].content.headers == {}
    assert scenario.responses[0].expected.status == 204
    assert scenario.responses[0].expected.body is None


def test_empty_yaml_is_reported(tmp_path: Path) -> None:
    scenario_path = tmp_path / "empty.yaml"
    scenario_path.write_text("", encoding="utf-8")

    with pytest.raises(ScenarioLoadError, match="empty"):
        YamlScenarioLoader().load_from_file(scenario_path)


def test_bundled_yaml_scenario_loads() -> None:
    scenario = YamlScenarioLoader().load_from_file(REPO_ROOT / "scenarios" / "dependent_requests.yaml")

    assert [r.id for r in scenario.requests] == [1, 2, 3]
    assert scenario.request_by_id(2).depends == frozenset({1})
    assert scenario.servers[0].authz_token == "local-dev-token"


@pytest.mark.parametrize(
    "name, loader_type",
    [
        ("s.json", JsonScenarioLoader),
        ("s.yaml", YamlScenarioLoader),
        ("s.YML", YamlScenarioLoader),
    ],
)
def test_registry_picks_loader_by_extension(name, loader_type) -> None:
    assert isinstance(ScenarioLoaderRegistry().get_loader(Path(name)), loader_type)


def test_registry_forced_format_wins_over_extension() -> None:
    loader = ScenarioLoaderRegistry().get_loader(Path("scenario.txt"), forced_format="yaml")

    assert isinstance(loader, YamlScenarioLoader)


def test_registry_rejects_unknown_extension() -> None:
    with pytest.raises(ScenarioLoadError, match="Unsupported scenario format: .toml"):
        ScenarioLoaderRegistry().get_loader(Path("scenario.toml"))
