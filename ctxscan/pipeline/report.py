"""Per-pass outcome ledger returned by the runners."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional

from ..errors import PassExecutionError

SKIP_DISABLED = "disabled-by-config"
SKIP_DEPENDENCY = "dependency-failed-or-skipped"


class PassStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class PassOutcome:
    """What happened to one pass during a run."""

    name: str
    status: PassStatus
    duration: float = 0.0
    error: Optional[PassExecutionError] = None
    reason: Optional[str] = None
    wave: int = 0

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "name": self.name,
            "status": self.status.value,
            "wave": self.wave,
            "duration": round(self.duration, 6),
        }
        if self.reason:
            payload["reason"] = self.reason
        if self.error is not None:
            payload["error"] = str(self.error)
        return payload


@dataclass
class RunReport:
    """Outcome of every pass reached by a run.

    When the run is cancelled, passes that were never reached are listed in
    ``pending`` and have no outcome.
    """

    runner: str
    outcomes: Dict[str, PassOutcome] = field(default_factory=dict)
    duration: float = 0.0
    cancelled: bool = False
    pending: List[str] = field(default_factory=list)

    def record(self, outcome: PassOutcome) -> None:
        if outcome.name in self.outcomes:
            raise ValueError(f"Outcome for pass '{outcome.name}' already recorded")
        self.outcomes[outcome.name] = outcome

    def status_of(self, name: str) -> Optional[PassStatus]:
        outcome = self.outcomes.get(name)
        return outcome.status if outcome else None

    def statuses(self) -> Dict[str, PassStatus]:
        return {name: outcome.status for name, outcome in self.outcomes.items()}

    def _with_status(self, status: PassStatus) -> List[str]:
        return [name for name, outcome in self.outcomes.items() if outcome.status is status]

    @property
    def succeeded(self) -> List[str]:
        return self._with_status(PassStatus.SUCCESS)

    @property
    def failed(self) -> List[str]:
        return self._with_status(PassStatus.FAILED)

    @property
    def skipped(self) -> List[str]:
        return self._with_status(PassStatus.SKIPPED)

    @property
    def complete(self) -> bool:
        return not self.cancelled

    @property
    def ok(self) -> bool:
        return self.complete and not self.failed

    @property
    def exit_code(self) -> int:
        if self.failed:
            return 1
        if self.cancelled:
            return 2
        return 0

    def errors(self) -> List[PassExecutionError]:
        return [outcome.error for outcome in self.outcomes.values() if outcome.error is not None]

    def to_dict(self) -> Dict[str, object]:
        return {
            "runner": self.runner,
            "complete": self.complete,
            "duration": round(self.duration, 6),
            "passes": [outcome.to_dict() for outcome in self.outcomes.values()],
            "pending": list(self.pending),
        }

    def format_table(self) -> str:
        """Return a plain-text summary, one line per pass."""
        rows = [("PASS", "STATUS", "TIME", "DETAIL")]
        for outcome in self.outcomes.values():
            detail = outcome.reason or ""
            if outcome.error is not None:
                detail = str(outcome.error.cause)
            rows.append(
                (outcome.name, outcome.status.value, f"{outcome.duration * 1000:.0f}ms", detail)
            )
        for name in self.pending:
            rows.append((name, "pending", "-", "run cancelled before this pass"))
        widths = [max(len(row[index]) for row in rows) for index in range(3)]
        lines = [
            "  ".join(cell.ljust(widths[index]) for index, cell in enumerate(row[:3])) + "  " + row[3]
            for row in rows
        ]
        return "\n".join(line.rstrip() for line in lines)

    def __iter__(self) -> Iterator[PassOutcome]:
        return iter(list(self.outcomes.values()))


__all__ = [
    "PassOutcome",
    "PassStatus",
    "RunReport",
    "SKIP_DEPENDENCY",
    "SKIP_DISABLED",
]
