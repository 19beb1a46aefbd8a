"""
YAML rendition of the scenario format. The document structure is the same as JSON.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from infrastructure.scenario.base_loader import ScenarioLoaderBase


class YamlScenarioLoader(ScenarioLoaderBase):
    def _load_file(self, path: Path) -> Any:
        with path.open("r", encoding="utf-8") as f:
            return yaml.safe_load(f)
