"""
src/stage_outcome.py
=====================
Stage Outcomes & Typed Failures — Legal Intake Pipeline

Responsibility:
    - Define the two failure kinds a pipeline stage can raise:
        AbortPipeline  — hard failure, the whole upload is rejected
        DegradedStage  — soft failure, the stage output is dropped
    - Define StageOutcome, the explicit "value or skipped" result that
      every soft stage produces
    - Provide run_soft_stage(), which executes a soft stage and converts
      any failure into a skipped outcome

Only the transcription stage may raise AbortPipeline. Everything else
degrades: its field on the audio record stays null and the pipeline moves on.

This module does NOT:
    - Call any external service
    - Decide stage ordering (handled by pipeline.py)
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

logger = logging.getLogger("legalintake.stage_outcome")

T = TypeVar("T")


# =====================================================================
# Typed failures
# =====================================================================


class AbortPipeline(Exception):
    """Raised when a stage failure must abort the entire pipeline."""

    def __init__(self, stage: str, message: str):
        self.stage = stage
        self.message = message
        super().__init__(f"Stage '{stage}' aborted the pipeline: {message}")


class DegradedStage(Exception):
    """Raised when a stage cannot produce output but the pipeline may continue."""

    def __init__(self, stage: str, message: str):
        self.stage = stage
        self.message = message
        super().__init__(f"Stage '{stage}' degraded: {message}")


# =====================================================================
# Stage outcome
# =====================================================================


@dataclass(frozen=True)
class StageOutcome(Generic[T]):
    """
    Result of a single soft stage.

    Exactly one of two shapes:
        StageOutcome.ok(stage, value)      — skipped is False, value set
        StageOutcome.skip(stage, reason)   — skipped is True, value None
    """

    stage: str
    value: Optional[T] = None
    skipped: bool = False
    reason: Optional[str] = None

    @classmethod
    def ok(cls, stage: str, value: T) -> "StageOutcome[T]":
        return cls(stage=stage, value=value)

    @classmethod
    def skip(cls, stage: str, reason: str) -> "StageOutcome[T]":
        return cls(stage=stage, value=None, skipped=True, reason=reason)

    def value_or(self, default: Any) -> Any:
        return default if self.skipped else self.value


def run_soft_stage(
    stage: str,
    func: Callable[..., Optional[T]],
    *args: Any,
    **kwargs: Any,
) -> StageOutcome[T]:
    """
    Run a soft stage and wrap its result in a StageOutcome.

    A ``None`` result, a DegradedStage, or any other exception becomes a
    skipped outcome. AbortPipeline is never swallowed here.

    Args:
        stage: Stage name used for logging and the outcome.
        func:  Callable implementing the stage.

    Returns:
        StageOutcome carrying the value or the skip reason.
    """
    try:
        value = func(*args, **kwargs)
    except AbortPipeline:
        raise
    except DegradedStage as exc:
        logger.warning("Stage %s degraded: %s", stage, exc.message)
        return StageOutcome.skip(stage, exc.message)
    except Exception as exc:
        logger.error("Stage %s failed: %s", stage, exc, exc_info=True)
        return StageOutcome.skip(stage, f"{type(exc).__name__}: {exc}")

    if value is None:
        logger.warning("Stage %s produced no output — skipping.", stage)
        return StageOutcome.skip(stage, "no output")

    return StageOutcome.ok(stage, value)
