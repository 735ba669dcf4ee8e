"""Dispatchable actions, dispatch requests and trigger events."""

from typing import Any, Dict, List, Optional, Set

from shell_kernel.models.base import WireModel


class ActionDescriptor(WireModel):
    """A catalog entry derived from a block's interaction declarations. Read-only."""

    id: str                                 # "<blockId>:<interactionKey>"
    source_block_id: str
    action_name: str                        # Name bindings match their trigger against
    payload: Any = None
    access_policy: Optional[Dict[str, Any]] = None


class DispatchRequest(WireModel):
    """A caller asking for a named action to fire from a source block."""

    source_block_id: str
    action_name: str
    payload: Any = None
    permissions: List[str] = []
    roles: List[str] = []


class TriggerEvent(WireModel):
    source_block_id: str
    source_path: str = "/"
    name: str
    payload: Any = None


class TriggerContext(WireModel):
    """What the caller declared about itself, plus any state visible to policies."""

    permissions: Set[str] = set()
    roles: Set[str] = set()
    ui: Dict[str, Any] = {}
    data: Dict[str, Any] = {}

    @classmethod
    def from_request(cls, request: DispatchRequest) -> "TriggerContext":
        return cls(permissions=set(request.permissions), roles=set(request.roles))
