"""Shell Kernel data models."""

from shell_kernel.models.action import (
    ActionDescriptor,
    DispatchRequest,
    TriggerContext,
    TriggerEvent,
)
from shell_kernel.models.block import (
    AccessPolicy,
    BindingMode,
    Block,
    CopyMapping,
    Endpoint,
    EndpointDirection,
    EndpointTarget,
    SetFromPayloadMapping,
    SetLiteralMapping,
    ShellBundle,
    Trigger,
)
from shell_kernel.models.config import ShellKernelConfig
from shell_kernel.models.overlay import DismissReason, OverlayState
from shell_kernel.models.results import (
    DerivedTickOutcome,
    DispatchFailure,
    EvalResult,
    OperationResult,
    OverlayDismissResult,
    OverlayToggleResult,
    WindowOperationResult,
)
from shell_kernel.models.session import RenderPlan, RouteResolution, SessionModel
from shell_kernel.models.window import (
    CanonicalWindowState,
    DockSide,
    Position,
    Size,
    Viewport,
    WindowIdentity,
    WindowRegistryEntry,
)
from shell_kernel.models.workspace import WorkspaceSessionRecord

__all__ = [
    "AccessPolicy",
    "ActionDescriptor",
    "BindingMode",
    "Block",
    "CanonicalWindowState",
    "CopyMapping",
    "DerivedTickOutcome",
    "DismissReason",
    "DispatchFailure",
    "DispatchRequest",
    "DockSide",
    "Endpoint",
    "EndpointDirection",
    "EndpointTarget",
    "EvalResult",
    "OperationResult",
    "OverlayDismissResult",
    "OverlayState",
    "OverlayToggleResult",
    "Position",
    "RenderPlan",
    "RouteResolution",
    "SessionModel",
    "SetFromPayloadMapping",
    "SetLiteralMapping",
    "ShellBundle",
    "ShellKernelConfig",
    "Size",
    "Trigger",
    "TriggerContext",
    "TriggerEvent",
    "Viewport",
    "WindowIdentity",
    "WindowOperationResult",
    "WindowRegistryEntry",
    "WorkspaceSessionRecord",
]
