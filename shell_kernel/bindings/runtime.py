"""
Binding Runtime — one bundle, one state store, one evaluation at a time.

Wraps the derived and triggered evaluators with a re-entrancy guard: a call
made while another evaluation is in progress is refused with a single skip
rather than interleaving writes into the same store.
"""

import copy
import logging
from typing import Optional

from shell_kernel.bindings.derived import apply_derived_tick
from shell_kernel.bindings.endpoints import RuntimeState
from shell_kernel.bindings.triggered import dispatch_triggered_event
from shell_kernel.models.action import DispatchRequest, TriggerContext, TriggerEvent
from shell_kernel.models.block import ShellBundle
from shell_kernel.models.results import EvalResult

logger = logging.getLogger(__name__)


def seed_runtime_state(bundle: ShellBundle) -> RuntimeState:
    """Build a fresh state store from every non-binding block's ``data.state``."""
    state: RuntimeState = {}
    for block_id, block in bundle.blocks.items():
        if block.block_type == "binding":
            continue
        seed = block.data.get("state")
        state[block_id] = {"state": copy.deepcopy(seed) if seed is not None else {}}
    return state


class BindingRuntime:
    """Owns the runtime state for a bundle and serialises evaluation over it."""

    def __init__(self, bundle: ShellBundle, state: Optional[RuntimeState] = None):
        self.bundle = bundle
        self.state: RuntimeState = state if state is not None else seed_runtime_state(bundle)
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    def _refuse(self, operation: str) -> EvalResult:
        logger.warning("Re-entrant %s refused", operation)
        return EvalResult(
            applied=0,
            skipped=1,
            logs=[f"BindingRuntime re-entrancy detected: {operation} called while locked."],
        )

    def apply_derived_tick(self) -> EvalResult:
        """Run one derived tick over the owned state."""
        if self._busy:
            return self._refuse("applyDerivedTick")

        self._busy = True
        try:
            result = apply_derived_tick(self.bundle, self.state)
        finally:
            self._busy = False

        result.logs.append(
            f"[BindingRuntime] Derived tick complete. "
            f"Applied: {result.applied}, Skipped: {result.skipped}"
        )
        return result

    def dispatch_event(self, event: TriggerEvent, ctx: TriggerContext) -> EvalResult:
        """Fire the triggered bindings matching ``event``."""
        if self._busy:
            return self._refuse("dispatchEvent")

        self._busy = True
        try:
            result = dispatch_triggered_event(self.bundle, self.state, event, ctx)
        finally:
            self._busy = False

        result.logs.append(
            f"[BindingRuntime] Dispatch complete. "
            f"Applied: {result.applied}, Skipped: {result.skipped}"
        )
        return result

    def dispatch_action(self, request: DispatchRequest) -> EvalResult:
        """Translate an action dispatch into a trigger event and fire it."""
        event = TriggerEvent(
            source_block_id=request.source_block_id,
            name=request.action_name,
            payload=request.payload,
        )
        return self.dispatch_event(event, TriggerContext.from_request(request))
