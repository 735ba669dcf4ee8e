"""
Shell Runtime — the composition root for one browser tab.

Construction order:
  session → workspace persistence (stale records pruned) → workspace record for the tab →
  bridge → window runtime (restored from persistence) → overlay runtime →
  action index

``get_plan`` is a pure projection; every mutating operation is owned by
exactly one sub-runtime and delegated to it.
"""

import logging
from typing import List, Optional, Union

from shell_kernel.actions.index import build_action_index
from shell_kernel.models.action import ActionDescriptor, DispatchRequest
from shell_kernel.models.config import ShellKernelConfig
from shell_kernel.models.results import (
    DerivedTickOutcome,
    DispatchFailure,
    EvalResult,
    OverlayToggleResult,
    WindowOperationResult,
)
from shell_kernel.models.session import RenderPlan
from shell_kernel.models.window import Viewport
from shell_kernel.overlays.runtime import OverlayRuntime
from shell_kernel.session.client import ShellClient
from shell_kernel.session.runtime import SessionRuntime, create_session_runtime
from shell_kernel.windows.bridge import WindowWorkspaceBridge
from shell_kernel.windows.runtime import WindowRuntime
from shell_kernel.workspace.persistence import WorkspacePersistence, WorkspaceStorageAdapter

logger = logging.getLogger(__name__)


class ShellRuntime:
    def __init__(
        self,
        session: SessionRuntime,
        workspace: WorkspacePersistence,
        windows: WindowRuntime,
        overlays: OverlayRuntime,
        actions: List[ActionDescriptor],
    ):
        self.session = session
        self.workspace = workspace
        self.windows = windows
        self.overlays = overlays
        self._actions = actions

    @property
    def actions(self) -> List[ActionDescriptor]:
        return list(self._actions)

    def get_plan(self) -> RenderPlan:
        """What to render right now. Does not mutate anything."""
        return RenderPlan(
            entry_slug=self.session.entry_slug,
            target_block_id=self.session.model.target_block_id,
            actions=[a.model_copy(deep=True) for a in self._actions],
            windows=self.windows.list(),
            overlays=self.overlays.list(),
        )

    async def dispatch_action(
        self, request: Union[DispatchRequest, dict]
    ) -> Union[EvalResult, DispatchFailure]:
        return await self.session.dispatch_action(request)

    async def apply_derived_tick(self) -> DerivedTickOutcome:
        return await self.session.apply_derived_tick()

    def open_window(self, window_key: str) -> WindowOperationResult:
        return self.windows.open_window(window_key)

    def toggle_overlay(self, overlay_id: str) -> OverlayToggleResult:
        return self.overlays.toggle(overlay_id)


async def create_shell_runtime(
    client: ShellClient,
    entry_slug: str,
    tab_id: str,
    viewport: Viewport,
    workspace_adapter: WorkspaceStorageAdapter,
    config: Optional[ShellKernelConfig] = None,
) -> ShellRuntime:
    """Build and wire every sub-runtime for ``tab_id``. SessionError propagates."""
    config = config or ShellKernelConfig()

    session = await create_session_runtime(client, entry_slug, config)

    workspace = WorkspacePersistence(workspace_adapter)
    await workspace.prune_stale(config.workspace_max_age_ms)
    await workspace.create_session(tab_id)
    bridge = WindowWorkspaceBridge(workspace)

    windows = WindowRuntime(
        tab_id=tab_id,
        viewport=viewport,
        window_registry_block=session.model.window_registry,
        persistence=bridge,
        config=config,
    )
    restored = await windows.load_from_persistence()

    overlays = OverlayRuntime(session.model.overlays)
    actions = build_action_index(session.model)

    logger.info(
        "Shell ready for tab %s: %d action(s), %d restored window(s)",
        tab_id, len(actions), restored,
    )
    return ShellRuntime(session, workspace, windows, overlays, actions)
