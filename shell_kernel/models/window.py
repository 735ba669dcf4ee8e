"""Window system models — registry entries and canonical per-instance state."""

from enum import Enum
from typing import Optional

from pydantic import Field

from shell_kernel.models.base import WireModel


class DockSide(str, Enum):
    LEFT = "left"
    RIGHT = "right"
    TOP = "top"
    BOTTOM = "bottom"


class Viewport(WireModel):
    width: float = Field(ge=0)
    height: float = Field(ge=0)


class Size(WireModel):
    width: float
    height: float


class Position(WireModel):
    x: float
    y: float


class WindowIdentity(WireModel):
    window_key: str                         # Kind, from the registry
    instance_id: str                        # One open instance of that kind


class WindowRegistryEntry(WireModel):
    """Static description of an allowed window kind. Never mutated."""

    window_key: str
    singleton: bool = False
    default_size: Optional[Size] = None
    min_size: Optional[Size] = None


class CanonicalWindowState(WireModel):
    """The full geometry and stacking state of one open window instance."""

    window_key: str
    instance_id: str
    x: float
    y: float
    width: float
    height: float
    minimized: bool = False
    z_order: int = 0
    docked: Optional[DockSide] = None

    @property
    def identity(self) -> WindowIdentity:
        return WindowIdentity(window_key=self.window_key, instance_id=self.instance_id)
