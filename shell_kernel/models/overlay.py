"""Overlay stacking state."""

from enum import Enum

from shell_kernel.models.base import WireModel


class DismissReason(str, Enum):
    ESCAPE = "escape"
    CLICK_OUTSIDE = "clickOutside"


class OverlayState(WireModel):
    """One overlay block's open/closed flag and stacking position (0 when closed)."""

    overlay_id: str
    is_open: bool = False
    z_order: int = 0
