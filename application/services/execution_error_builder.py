# application/services/execution_error_builder.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

from domain.exceptions import ScenarioStructureError


@dataclass(frozen=True)
class ExecutionErrorDetail:
    code: str
    message: str
    error_type: str
    ids: Tuple[int, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "error_type": self.error_type,
            "ids": list(self.ids),
        }


class ExecutionErrorBuilder:
    def build_from_structure_error(self, error: ScenarioStructureError) -> ExecutionErrorDetail:
        return ExecutionErrorDetail(
            code="invalid_scenario",
            message=str(error),
            error_type=type(error).__name__,
            ids=error.ids,
        )

