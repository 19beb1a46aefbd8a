from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from infrastructure.scenario.base_loader import ScenarioLoaderBase


class JsonScenarioLoader(ScenarioLoaderBase):
    """Scenario file in the native JSON format."""

    def _load_file(self, path: Path) -> Any:
        return json.loads(path.read_text(encoding="utf-8"))
