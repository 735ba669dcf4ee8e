"""The collaborator a session talks to for bundles, routes and remote dispatch."""

from typing import Any, Optional, Protocol


class ShellClient(Protocol):
    """
    Bundle source, route resolver and remote dispatch endpoint.

    Replies are the raw wire shapes: the bundle (possibly wrapped as
    ``{"bundle": {...}}``), a route resolution dict, and for the debug
    calls either an EvalResult dict or a refusal such as
    ``{"status": 403, "error": "Forbidden"}``.
    """

    async def load_active_bundle(self) -> Optional[Any]: ...

    async def resolve_route(self, entry_slug: str) -> Any: ...

    async def dispatch_debug_action(self, request: dict) -> Any: ...

    async def dispatch_debug_derived_tick(self) -> Any: ...
