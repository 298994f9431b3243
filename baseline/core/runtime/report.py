"""
Reporte de convergencia: resultado por recurso en orden de plan.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from baseline.core.resources import ResourceKey


class Action(str, Enum):
    """Resultado de un recurso tras la ejecución"""
    NOOP = "NoOp"
    CREATED = "Created"
    UPDATED = "Updated"
    FAILED = "Failed"
    SKIPPED = "Skipped"


SUCCESS_ACTIONS = frozenset({Action.NOOP, Action.CREATED, Action.UPDATED})


@dataclass(frozen=True)
class ResourceOutcome:
    key: ResourceKey
    action: Action
    attempts: int = 0
    error: Optional[str] = None

    @property
    def applied(self) -> bool:
        return self.action in (Action.CREATED, Action.UPDATED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.key.id,
            "kind": self.key.kind.value,
            "action": self.action.value,
            "attempts": self.attempts,
            "error": self.error,
        }


@dataclass
class ConvergenceReport:
    """Propiedad exclusiva de la ejecución que lo produce."""
    outcomes: List[ResourceOutcome] = field(default_factory=list)
    dry_run: bool = False

    def record(self, outcome: ResourceOutcome) -> None:
        self.outcomes.append(outcome)

    def __iter__(self):
        return iter(self.outcomes)

    def __len__(self) -> int:
        return len(self.outcomes)

    def get(self, key: ResourceKey) -> Optional[ResourceOutcome]:
        for outcome in self.outcomes:
            if outcome.key == key:
                return outcome
        return None

    @property
    def succeeded(self) -> bool:
        return all(o.action in SUCCESS_ACTIONS for o in self.outcomes)

    @property
    def exit_code(self) -> int:
        """0 si todo es NoOp/Created/Updated; 1 si hay Failed o Skipped"""
        return 0 if self.succeeded else 1

    @property
    def first_failure(self) -> Optional[ResourceOutcome]:
        for outcome in self.outcomes:
            if outcome.action == Action.FAILED:
                return outcome
        return None

    def counts(self) -> Dict[Action, int]:
        totals = {action: 0 for action in Action}
        for outcome in self.outcomes:
            totals[outcome.action] += 1
        return totals

    def to_dict(self) -> Dict[str, Any]:
        failure = self.first_failure
        return {
            "dry_run": self.dry_run,
            "succeeded": self.succeeded,
            "first_failure": failure.to_dict() if failure else None,
            "resources": [o.to_dict() for o in self.outcomes],
        }
