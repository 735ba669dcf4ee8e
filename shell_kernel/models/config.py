"""Shell kernel configuration."""

from pydantic import BaseModel, Field


class ShellKernelConfig(BaseModel):
    """Configuration shared by the session, window and workspace layers."""

    dev_mode: bool = False                              # Remote dispatch via the debug endpoint
    default_window_width: float = Field(gt=0, default=400)
    default_window_height: float = Field(gt=0, default=300)
    auto_persist_windows: bool = False
    workspace_max_age_ms: int = Field(ge=0, default=7 * 24 * 60 * 60 * 1000)
