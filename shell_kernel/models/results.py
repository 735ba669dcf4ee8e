"""Structured outcomes returned to callers instead of raising."""

from typing import List, Optional

from shell_kernel.models.base import WireModel
from shell_kernel.models.window import CanonicalWindowState


class EvalResult(WireModel):
    """How many bindings applied or were skipped, with one log line per skip."""

    applied: int = 0
    skipped: int = 0
    logs: List[str] = []


class OperationResult(WireModel):
    ok: bool
    error: Optional[str] = None


class WindowOperationResult(OperationResult):
    state: Optional[CanonicalWindowState] = None


class OverlayToggleResult(OperationResult):
    is_open: Optional[bool] = None


class OverlayDismissResult(OperationResult):
    dismissed: Optional[str] = None


class DispatchFailure(WireModel):
    """A refused remote call, e.g. ``{status: 403, error: "Forbidden"}``."""

    status: int
    error: str


class DerivedTickOutcome(WireModel):
    ok: bool
    did_work: bool = False
    result: Optional[EvalResult] = None
    error: Optional[str] = None
    reason: Optional[str] = None            # Why no work was attempted
