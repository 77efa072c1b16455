from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence, Type

from .config import ProvisionConfig
from .errors import ProvisionError
from .lib.command import CommandError
from .lib.env import Paths

logger = logging.getLogger(__name__)


class RunPhase(str, enum.Enum):
    """Linear run state: PROVISIONING -> READY -> LAUNCHED, or FAILED."""

    PROVISIONING = "provisioning"
    READY = "ready"
    LAUNCHED = "launched"
    FAILED = "failed"


@dataclass
class StageContext:
    config: ProvisionConfig
    paths: Paths
    dry_run: bool = False
    phase: RunPhase = RunPhase.PROVISIONING
    current_step: Optional[str] = None
    ran_steps: List[str] = field(default_factory=list)
    skipped_steps: List[str] = field(default_factory=list)
    warnings: List[Dict[str, Any]] = field(default_factory=list)
    failed_assets: List[str] = field(default_factory=list)
    error: Optional[Dict[str, Any]] = None

    def warn(self, step_id: str, message: str, **extra: Any) -> None:
        logger.warning("[%s] %s", step_id, message)
        self.warnings.append({"step": step_id, "message": message, **extra})


class Stage(Protocol):
    """A single idempotent stage."""

    step_id: str
    error_cls: Type[ProvisionError]

    def is_satisfied(self, ctx: StageContext) -> bool:
        ...

    def run(self, ctx: StageContext) -> None:
        ...


@dataclass(frozen=True)
class PipelineResult:
    phase: RunPhase
    ran_steps: List[str]
    skipped_steps: List[str]
    warnings: List[Dict[str, Any]]
    failed_assets: List[str]


def _result(ctx: StageContext) -> PipelineResult:
    return PipelineResult(
        phase=ctx.phase,
        ran_steps=list(ctx.ran_steps),
        skipped_steps=list(ctx.skipped_steps),
        warnings=list(ctx.warnings),
        failed_assets=list(ctx.failed_assets),
    )


def _select(steps: Sequence[Stage], start_at: Optional[str], stop_after: Optional[str]) -> List[Stage]:
    ids = [s.step_id for s in steps]
    for name, value in (("start_at", start_at), ("stop_after", stop_after)):
        if value is not None and value not in ids:
            raise ProvisionError(f"Unknown {name} stage {value!r}; known: {', '.join(ids)}")

    selected: List[Stage] = []
    started = start_at is None
    for step in steps:
        if not started:
            if step.step_id != start_at:
                continue
            started = True
        selected.append(step)
        if stop_after is not None and step.step_id == stop_after:
            break
    return selected


def _guarded(step: Stage, fn, ctx: StageContext):
    try:
        return fn(ctx)
    except ProvisionError as e:
        if e.stage is None:
            e.stage = step.step_id
        raise
    except CommandError as e:
        raise step.error_cls(str(e), stage=step.step_id) from e


def run_pipeline(
    *,
    ctx: StageContext,
    steps: Sequence[Stage],
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
) -> PipelineResult:
    """Run stages strictly in order; a stage whose predicate holds is skipped.

    The predicates inspect the machine itself, so an interrupted run resumes
    by simply being run again.
    """

    if ctx.phase is not RunPhase.PROVISIONING:
        raise ProvisionError(f"Cannot provision from phase {ctx.phase.value}")

    for step in _select(steps, start_at, stop_after):
        ctx.current_step = step.step_id
        try:
            satisfied = _guarded(step, step.is_satisfied, ctx)
            if satisfied:
                logger.info("Skipping stage %s (already satisfied)", step.step_id)
                ctx.skipped_steps.append(step.step_id)
                continue

            logger.info("Running stage %s", step.step_id)
            _guarded(step, step.run, ctx)
            ctx.ran_steps.append(step.step_id)
        except ProvisionError as e:
            ctx.phase = RunPhase.FAILED
            ctx.error = {"step": e.stage, "kind": type(e).__name__, "error": str(e)}
            raise

    ctx.current_step = None
    ctx.phase = RunPhase.READY
    logger.info(
        "Provisioning complete (ran=%s skipped=%s)",
        ",".join(ctx.ran_steps) or "-",
        ",".join(ctx.skipped_steps) or "-",
    )
    return _result(ctx)


def check_stages(ctx: StageContext, steps: Sequence[Stage]) -> Dict[str, bool]:
    """Evaluate every predicate without running anything."""

    status: Dict[str, bool] = {}
    for step in steps:
        try:
            status[step.step_id] = bool(step.is_satisfied(ctx))
        except (CommandError, ProvisionError) as e:
            logger.warning("Predicate for %s failed: %s", step.step_id, e)
            status[step.step_id] = False
    return status
