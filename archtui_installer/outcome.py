"""Audit trail of a provisioning run."""

from __future__ import annotations

import enum
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from .errors import InstallerError
from .lib.command import CommandError

logger = logging.getLogger(__name__)


class StageStatus(enum.Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class RunState(enum.Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"
    FAILED = "failed"


@dataclass(frozen=True)
class StageOutcome:
    stage: str
    status: StageStatus
    detail: str = ""
    required: bool = True


@dataclass(frozen=True)
class BestEffortFailure:
    stage: str
    action: str
    error: str


@dataclass
class PipelineOutcome:
    entries: List[StageOutcome] = field(default_factory=list)
    best_effort_failures: List[BestEffortFailure] = field(default_factory=list)
    state: RunState = RunState.RUNNING
    error: Optional[str] = None

    def record(self, stage: str, status: StageStatus, detail: str = "", *, required: bool = True) -> StageOutcome:
        entry = StageOutcome(stage=stage, status=status, detail=detail, required=required)
        self.entries.append(entry)
        if status is StageStatus.SUCCEEDED:
            logger.info("[OK] %s %s", stage, detail)
        elif status is StageStatus.SKIPPED:
            logger.info("[SKIPPED] %s: %s", stage, detail)
        else:
            logger.error("[FAILED] %s: %s", stage, detail)
        return entry

    @contextmanager
    def best_effort(self, stage: str, action: str) -> Iterator[None]:
        """Run a sub-step whose failure is recorded but does not stop the stage."""

        try:
            yield
        except (CommandError, InstallerError, OSError) as e:
            logger.warning("[WARN] %s: %s failed: %s", stage, action, e)
            self.best_effort_failures.append(BestEffortFailure(stage=stage, action=action, error=str(e)))

    def stages(self) -> List[str]:
        return [e.stage for e in self.entries]

    def status_of(self, stage: str) -> Optional[StageStatus]:
        for e in self.entries:
            if e.stage == stage:
                return e.status
        return None

    def remediation_items(self) -> List[str]:
        """Every non-fatal failure the operator should fix after install."""

        items = [
            f"{e.stage}: {e.detail}"
            for e in self.entries
            if e.status is StageStatus.FAILED and not e.required
        ]
        items.extend(f"{f.stage}: {f.action}: {f.error}" for f in self.best_effort_failures)
        return items

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "error": self.error,
            "stages": [
                {"stage": e.stage, "status": e.status.value, "required": e.required, "detail": e.detail}
                for e in self.entries
            ],
            "best_effort_failures": [
                {"stage": f.stage, "action": f.action, "error": f.error} for f in self.best_effort_failures
            ],
        }
