"""
Window-Workspace Bridge — lets a WindowRuntime persist through WorkspacePersistence.

Holds no state of its own; window models are serialised to their wire shape
before they reach the workspace record.
"""

from typing import List, Optional

from shell_kernel.models.window import CanonicalWindowState
from shell_kernel.workspace.persistence import WorkspacePersistence


class WindowWorkspaceBridge:
    def __init__(self, workspace: WorkspacePersistence):
        self.workspace = workspace

    async def load(self, tab_id: str) -> Optional[List[dict]]:
        return await self.workspace.load_windows(tab_id)

    async def save(self, tab_id: str, windows: List[CanonicalWindowState]) -> None:
        await self.workspace.save_windows(
            tab_id,
            [w.model_dump(mode="json", by_alias=True) for w in windows],
        )
