from infrastructure.scenario.base_loader import ScenarioLoadError, ScenarioLoaderBase
from infrastructure.scenario.json_loader import JsonScenarioLoader
from infrastructure.scenario.loader_registry import ScenarioLoaderRegistry
from infrastructure.scenario.serializer import scenario_to_dict
from infrastructure.scenario.yaml_loader import YamlScenarioLoader

__all__ = [
    "ScenarioLoadError",
    "ScenarioLoaderBase",
    "ScenarioLoaderRegistry",
    "YamlScenarioLoader",
    "JsonScenarioLoader",
    "scenario_to_dict",
]
