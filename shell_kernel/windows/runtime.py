"""
Window Runtime — lifecycle store for the window instances of one tab.

States per instance:
  ABSENT → OPEN (floating | docked) → CLOSED (removed; nothing retained)

Behavioral Contract:
- Only window kinds present in the registry block can be opened
- Singleton kinds have at most one instance, whose instanceId is the windowKey;
  re-opening re-fronts it instead of creating a duplicate
- Bounds are clamped after every geometry change and after a viewport change
- Dock geometry always wins over manual resizing; manual moves undock
- Persisted snapshots are untrusted: unknown kinds, non-numeric geometry,
  singleton entries not keyed by their windowKey and duplicate identities
  are dropped and survivors re-clamped before they are accepted
"""

import asyncio
import logging
from typing import Dict, List, Optional, Protocol, Set

from pydantic import ValidationError

from shell_kernel.models.block import Block
from shell_kernel.models.config import ShellKernelConfig
from shell_kernel.models.results import WindowOperationResult
from shell_kernel.models.window import (
    CanonicalWindowState,
    DockSide,
    Position,
    Size,
    Viewport,
    WindowIdentity,
    WindowRegistryEntry,
)

logger = logging.getLogger(__name__)

_GEOMETRY_FIELDS = ("x", "y", "width", "height")


class WindowPersistence(Protocol):
    """Where a window runtime reads and writes its snapshot."""

    async def load(self, tab_id: str) -> Optional[List[dict]]: ...

    async def save(self, tab_id: str, windows: List[CanonicalWindowState]) -> None: ...


def parse_window_registry(registry_block: Optional[Block]) -> Dict[str, WindowRegistryEntry]:
    """Read ``data.windows`` of a window registry block into registry entries."""
    registry: Dict[str, WindowRegistryEntry] = {}
    if registry_block is None:
        return registry

    raw = registry_block.data.get("windows")
    if not isinstance(raw, dict):
        return registry

    for key, entry in raw.items():
        if not isinstance(entry, dict):
            continue
        try:
            parsed = WindowRegistryEntry.model_validate({"windowKey": key, **entry})
        except ValidationError:
            logger.warning("Ignoring malformed window registry entry %r", key)
            continue
        # Entries are keyed by the registry key even if they name another windowKey
        registry[key] = parsed
    return registry


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class WindowRuntime:
    """In-memory window list for one tab, with clamping, docking and persistence."""

    def __init__(
        self,
        tab_id: str,
        viewport: Viewport,
        window_registry_block: Optional[Block],
        persistence: WindowPersistence,
        config: Optional[ShellKernelConfig] = None,
    ):
        self.tab_id = tab_id
        self.config = config or ShellKernelConfig()
        self._viewport = viewport.model_copy()
        self._registry = parse_window_registry(window_registry_block)
        self._persistence = persistence
        self._windows: List[CanonicalWindowState] = []
        self._id_counter = 1
        self._pending_saves: Set[asyncio.Task] = set()

    @property
    def viewport(self) -> Viewport:
        return self._viewport.model_copy()

    @property
    def registry(self) -> Dict[str, WindowRegistryEntry]:
        return dict(self._registry)

    # --- Geometry ---

    def _next_z(self) -> int:
        return max((w.z_order for w in self._windows), default=0) + 1

    def _apply_dock_constraints(self, state: CanonicalWindowState) -> None:
        if state.docked is None:
            return

        vw, vh = self._viewport.width, self._viewport.height
        dock_w = round(vw / 3)
        dock_h = round(vh / 3)

        if state.docked == DockSide.LEFT:
            state.x, state.y, state.width, state.height = 0, 0, dock_w, vh
        elif state.docked == DockSide.RIGHT:
            state.x, state.y, state.width, state.height = vw - dock_w, 0, dock_w, vh
        elif state.docked == DockSide.TOP:
            state.x, state.y, state.width, state.height = 0, 0, vw, dock_h
        elif state.docked == DockSide.BOTTOM:
            state.x, state.y, state.width, state.height = 0, vh - dock_h, vw, dock_h

    def clamp_bounds(self, state: CanonicalWindowState) -> None:
        """Force ``state`` inside the viewport, honouring the kind's minimum size."""
        if state.docked is not None:
            self._apply_dock_constraints(state)
            return

        entry = self._registry.get(state.window_key)
        if entry is not None and entry.min_size is not None:
            state.width = max(state.width, entry.min_size.width)
            state.height = max(state.height, entry.min_size.height)

        state.width = min(state.width, self._viewport.width)
        state.height = min(state.height, self._viewport.height)

        max_x = max(0, self._viewport.width - state.width)
        max_y = max(0, self._viewport.height - state.height)
        state.x = max(0, min(state.x, max_x))
        state.y = max(0, min(state.y, max_y))

    def _sort(self) -> None:
        self._windows.sort(key=lambda w: w.z_order)

    def _find(self, identity: WindowIdentity) -> Optional[CanonicalWindowState]:
        for w in self._windows:
            if w.window_key == identity.window_key and w.instance_id == identity.instance_id:
                return w
        return None

    def _generate_instance_id(self, window_key: str) -> str:
        # Skip ids taken by restored or caller-named instances
        while True:
            instance_id = f"win-{self._id_counter}"
            self._id_counter += 1
            if self._find(WindowIdentity(window_key=window_key, instance_id=instance_id)) is None:
                return instance_id

    def _not_found(self) -> WindowOperationResult:
        return WindowOperationResult(ok=False, error="Window not found")

    def _done(self, state: CanonicalWindowState) -> WindowOperationResult:
        self._persist_if_auto()
        return WindowOperationResult(ok=True, state=state.model_copy())

    # --- Lifecycle ---

    def list(self) -> List[CanonicalWindowState]:
        """Copies of all open windows, sorted by zOrder ascending."""
        return [w.model_copy() for w in self._windows]

    def set_viewport(self, viewport: Viewport) -> None:
        self._viewport = viewport.model_copy()
        for w in self._windows:
            self.clamp_bounds(w)
        self._persist_if_auto()

    def open_window(
        self,
        window_key: str,
        instance_id: Optional[str] = None,
        position: Optional[Position] = None,
        size: Optional[Size] = None,
    ) -> WindowOperationResult:
        """Open a new instance of ``window_key``, or re-front an existing one."""
        entry = self._registry.get(window_key)
        if entry is None:
            return WindowOperationResult(ok=False, error=f"Unknown windowKey: {window_key}")

        if entry.singleton:
            existing = next((w for w in self._windows if w.window_key == window_key), None)
            if existing is not None:
                existing.z_order = self._next_z()
                self._sort()
                return self._done(existing)

        if entry.singleton:
            instance_id = window_key
        elif instance_id is None:
            instance_id = self._generate_instance_id(window_key)

        existing = self._find(WindowIdentity(window_key=window_key, instance_id=instance_id))
        if existing is not None:
            existing.z_order = self._next_z()
            self._sort()
            return self._done(existing)

        default = entry.default_size or Size(
            width=self.config.default_window_width,
            height=self.config.default_window_height,
        )
        state = CanonicalWindowState(
            window_key=window_key,
            instance_id=instance_id,
            x=position.x if position else 0,
            y=position.y if position else 0,
            width=size.width if size else default.width,
            height=size.height if size else default.height,
            minimized=False,
            z_order=self._next_z(),
            docked=None,
        )
        self.clamp_bounds(state)
        self._windows.append(state)
        self._sort()
        return self._done(state)

    def close_window(self, identity: WindowIdentity) -> WindowOperationResult:
        state = self._find(identity)
        if state is None:
            return self._not_found()
        self._windows.remove(state)
        self._persist_if_auto()
        return WindowOperationResult(ok=True)

    def focus_window(self, identity: WindowIdentity) -> WindowOperationResult:
        state = self._find(identity)
        if state is None:
            return self._not_found()
        state.z_order = self._next_z()
        self._sort()
        return self._done(state)

    def move_window(self, identity: WindowIdentity, position: Position) -> WindowOperationResult:
        """Move a window. Moving a docked window undocks it."""
        state = self._find(identity)
        if state is None:
            return self._not_found()
        state.x = position.x
        state.y = position.y
        state.docked = None
        self.clamp_bounds(state)
        return self._done(state)

    def resize_window(self, identity: WindowIdentity, size: Size) -> WindowOperationResult:
        """Resize a floating window. Docked windows keep their dock geometry."""
        state = self._find(identity)
        if state is None:
            return self._not_found()
        if state.docked is not None:
            self._apply_dock_constraints(state)
        else:
            state.width = size.width
            state.height = size.height
            self.clamp_bounds(state)
        return self._done(state)

    def dock_window(self, identity: WindowIdentity, dock: Optional[DockSide]) -> WindowOperationResult:
        """Dock to a viewport edge, or undock with ``None``."""
        state = self._find(identity)
        if state is None:
            return self._not_found()
        try:
            state.docked = DockSide(dock) if dock is not None else None
        except ValueError:
            return WindowOperationResult(ok=False, error=f"Unknown dock side: {dock}")
        self.clamp_bounds(state)
        return self._done(state)

    def set_minimized(self, identity: WindowIdentity, minimized: bool) -> WindowOperationResult:
        state = self._find(identity)
        if state is None:
            return self._not_found()
        state.minimized = minimized
        return self._done(state)

    # --- Persistence ---

    def _accept_snapshot(self, raw) -> Optional[CanonicalWindowState]:
        if not isinstance(raw, dict):
            return None
        window_key = raw.get("windowKey", raw.get("window_key"))
        if window_key not in self._registry:
            logger.warning(
                "Dropping persisted window of unknown kind %r for tab %s", window_key, self.tab_id
            )
            return None
        if not all(_is_number(raw.get(f)) for f in _GEOMETRY_FIELDS):
            logger.warning("Dropping persisted window %r with non-numeric geometry", window_key)
            return None
        try:
            state = CanonicalWindowState.model_validate(raw)
        except ValidationError:
            logger.warning("Dropping malformed persisted window %r", window_key)
            return None
        if self._registry[window_key].singleton and state.instance_id != window_key:
            logger.warning(
                "Dropping persisted singleton %r with instance id %r", window_key, state.instance_id
            )
            return None
        self.clamp_bounds(state)
        return state

    async def load_from_persistence(self) -> int:
        """Replace the window list with the persisted snapshot. Returns the accepted count."""
        loaded = await self._persistence.load(self.tab_id)
        if loaded is None:
            return 0

        accepted = []
        seen = set()
        for raw in loaded:
            state = self._accept_snapshot(raw)
            if state is None:
                continue
            key = (state.window_key, state.instance_id)
            if key in seen:
                logger.warning("Dropping duplicate persisted window %s/%s", *key)
                continue
            seen.add(key)
            accepted.append(state)

        self._windows = accepted
        self._sort()
        return len(accepted)

    async def save_to_persistence(self) -> None:
        await self._persistence.save(self.tab_id, self.list())

    def _persist_if_auto(self) -> None:
        if not self.config.auto_persist_windows:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; skipping auto-persist for tab %s", self.tab_id)
            return

        task = loop.create_task(self.save_to_persistence())
        self._pending_saves.add(task)
        task.add_done_callback(self._on_save_done)

    def _on_save_done(self, task: asyncio.Task) -> None:
        self._pending_saves.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Auto-persist failed for tab %s: %s", self.tab_id, error)

    async def flush(self) -> None:
        """Wait for any auto-persist saves still in flight."""
        if self._pending_saves:
            await asyncio.gather(*list(self._pending_saves), return_exceptions=True)
