"""
Overlay Runtime — the open/closed z-ordered stack of overlay blocks.

One OverlayState per overlay block, created at construction and never
destroyed. Opening assigns the next z-order (re-fronting an overlay that is
already open); closing resets it to zero.
"""

from typing import Dict, Iterable, List, Optional

from shell_kernel.models.block import Block
from shell_kernel.models.overlay import DismissReason, OverlayState
from shell_kernel.models.results import (
    OperationResult,
    OverlayDismissResult,
    OverlayToggleResult,
)


class OverlayRuntime:
    """In-memory overlay stack for one session."""

    def __init__(self, overlays: Iterable[Block]):
        self._states: Dict[str, OverlayState] = {}
        for block in overlays:
            if block.block_id:
                self._states[block.block_id] = OverlayState(overlay_id=block.block_id)

    def _next_z(self) -> int:
        return max((s.z_order for s in self._states.values()), default=0) + 1

    def _unknown(self, overlay_id: str) -> str:
        return f"Unknown overlayId: {overlay_id}"

    def list(self) -> List[OverlayState]:
        """All overlays sorted by zOrder ascending."""
        ordered = sorted(self._states.values(), key=lambda s: (s.z_order, s.overlay_id))
        return [s.model_copy() for s in ordered]

    def is_open(self, overlay_id: str) -> bool:
        state = self._states.get(overlay_id)
        return state.is_open if state else False

    def open(self, overlay_id: str) -> OperationResult:
        state = self._states.get(overlay_id)
        if state is None:
            return OperationResult(ok=False, error=self._unknown(overlay_id))
        state.z_order = self._next_z()
        state.is_open = True
        return OperationResult(ok=True)

    def close(self, overlay_id: str) -> OperationResult:
        state = self._states.get(overlay_id)
        if state is None:
            return OperationResult(ok=False, error=self._unknown(overlay_id))
        state.is_open = False
        state.z_order = 0
        return OperationResult(ok=True)

    def toggle(self, overlay_id: str) -> OverlayToggleResult:
        state = self._states.get(overlay_id)
        if state is None:
            return OverlayToggleResult(ok=False, error=self._unknown(overlay_id))
        if state.is_open:
            self.close(overlay_id)
        else:
            self.open(overlay_id)
        return OverlayToggleResult(ok=True, is_open=state.is_open)

    def dismiss_top(self, reason: Optional[DismissReason] = DismissReason.ESCAPE) -> OverlayDismissResult:
        """Close the top-most open overlay, if any. Never an error."""
        open_states = [s for s in self._states.values() if s.is_open]
        if not open_states:
            return OverlayDismissResult(ok=True, dismissed=None)

        top = max(open_states, key=lambda s: s.z_order)
        self.close(top.overlay_id)
        return OverlayDismissResult(ok=True, dismissed=top.overlay_id)
