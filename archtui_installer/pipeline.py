from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

from .errors import InstallerError, UserAborted
from .gate import DestructiveActionGate
from .lib.env import InstallerConfig
from .lib.manifests import Catalog
from .model import InstallPlan
from .outcome import PipelineOutcome, RunState, StageStatus

logger = logging.getLogger(__name__)


@dataclass
class InstallContext:
    """Everything the stages share. The Stage Executor owns the mounts."""

    plan: InstallPlan
    config: InstallerConfig
    gate: DestructiveActionGate
    catalog: Catalog
    outcome: PipelineOutcome = field(default_factory=PipelineOutcome)
    mounts: List[Tuple[str, str]] = field(default_factory=list)
    root_uuid: Optional[str] = None

    @property
    def target_root(self) -> str:
        return self.config.target_root

    @property
    def dry_run(self) -> bool:
        return self.config.dry_run


class Stage(Protocol):
    """A single forward-only pipeline stage."""

    step_id: str
    required: bool

    def skip_reason(self, ctx: InstallContext) -> Optional[str]:
        ...

    def run(self, ctx: InstallContext) -> str:
        ...


@dataclass(frozen=True)
class PipelineResult:
    state: RunState
    outcome: PipelineOutcome
    failed_stage: Optional[str] = None
    error: Optional[BaseException] = None


Checkpoint = Callable[[PipelineOutcome], None]


def run_pipeline(
    ctx: InstallContext,
    stages: Sequence[Stage],
    *,
    checkpoint: Optional[Checkpoint] = None,
) -> PipelineResult:
    """Run stages in order with fail-fast semantics for required stages.

    - required stage fails: record it, stop, state FAILED
    - best-effort stage fails: record it, continue
    - operator declines a gate: record the stage as skipped, state ABORTED
    """

    outcome = ctx.outcome

    def _flush() -> None:
        if checkpoint is not None:
            checkpoint(outcome)

    for stage in stages:
        reason = stage.skip_reason(ctx)
        if reason:
            outcome.record(stage.step_id, StageStatus.SKIPPED, reason, required=stage.required)
            _flush()
            continue

        logger.info("Running stage %s", stage.step_id)
        try:
            detail = stage.run(ctx)
        except UserAborted as e:
            outcome.record(stage.step_id, StageStatus.SKIPPED, f"declined by operator: {e}", required=stage.required)
            outcome.state = RunState.ABORTED
            outcome.error = str(e)
            _flush()
            return PipelineResult(RunState.ABORTED, outcome, failed_stage=stage.step_id, error=e)
        except InstallerError as e:
            outcome.record(stage.step_id, StageStatus.FAILED, str(e), required=stage.required)
            if stage.required:
                logger.error("Required stage %s failed; halting", stage.step_id)
                outcome.state = RunState.FAILED
                outcome.error = f"{stage.step_id}: {e}"
                _flush()
                return PipelineResult(RunState.FAILED, outcome, failed_stage=stage.step_id, error=e)
            _flush()
            continue

        outcome.record(stage.step_id, StageStatus.SUCCEEDED, detail or "", required=stage.required)
        _flush()

    outcome.state = RunState.COMPLETED
    _flush()
    return PipelineResult(RunState.COMPLETED, outcome)
