"""Route resolution, the assembled session model and the render plan."""

from typing import Any, Dict, List, Optional

from shell_kernel.models.action import ActionDescriptor
from shell_kernel.models.base import WireModel
from shell_kernel.models.block import Block
from shell_kernel.models.overlay import OverlayState
from shell_kernel.models.window import CanonicalWindowState


class RouteResolution(WireModel):
    allowed: bool = False
    status: int = 0
    target_block_id: Optional[str] = None


class SessionModel(WireModel):
    """Everything a session needs from the bundle, resolved once for one entry slug."""

    entry_slug: str
    target_block_id: str
    manifest: Dict[str, Any] = {}
    target_block: Block
    bindings: List[Block] = []              # Sorted by blockId
    overlays: List[Block] = []              # Sorted by blockId
    action_blocks: List[Block] = []         # Blocks declaring data.interactions, sorted
    window_registry: Block
    routing_infra: Block
    theme_tokens_infra: Block
    route_resolution: RouteResolution


class RenderPlan(WireModel):
    """Side-effect-free projection of a shell for one render."""

    entry_slug: str
    target_block_id: str
    actions: List[ActionDescriptor]
    windows: List[CanonicalWindowState]
    overlays: List[OverlayState]
