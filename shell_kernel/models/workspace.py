"""Workspace session records — durable per-tab shell state."""

from typing import List

from shell_kernel.models.base import WireModel


class WorkspaceSessionRecord(WireModel):
    """
    One browser tab's persisted workspace.

    Timestamps are epoch milliseconds. ``windows`` holds raw window snapshots
    as written by the window runtime; they are re-validated on load.
    """

    tab_id: str
    created_at: int
    last_seen_at: int
    windows: List[dict] = []
