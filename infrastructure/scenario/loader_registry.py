from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

from infrastructure.scenario.base_loader import ScenarioLoaderBase, ScenarioLoadError
from infrastructure.scenario.json_loader import JsonScenarioLoader
from infrastructure.scenario.yaml_loader import YamlScenarioLoader


class ScenarioLoaderRegistry:
    def __init__(self) -> None:
        yaml_loader = YamlScenarioLoader()
        self._loaders: Dict[str, ScenarioLoaderBase] = {
            ".yaml": yaml_loader,
            ".yml": yaml_loader,
            ".json": JsonScenarioLoader(),
        }

    def get_loader(self, path: Path, forced_format: Optional[str] = None) -> ScenarioLoaderBase:
        ext = f".{forced_format.lower()}" if forced_format else path.suffix.lower()
        loader = self._loaders.get(ext)
        if loader is None:
            raise ScenarioLoadError(f"Unsupported scenario format: {ext or '(none)'}")
        return loader
