"""
Shell Kernel API — FastAPI endpoints.

Serves one bundle and hosts a server-side BindingRuntime over it, playing the
remote dispatch endpoint that dev-mode sessions forward to:
- Bundle retrieval
- Route resolution with optional access policies
- Debug action dispatch and derived ticks (dev mode only)
- Runtime state inspection (dev mode only)
"""

import json
import logging
from typing import Optional

from fastapi import FastAPI, Header
from fastapi.responses import JSONResponse

from shell_kernel.bindings.policy import check_access
from shell_kernel.bindings.runtime import BindingRuntime
from shell_kernel.models.action import DispatchRequest, TriggerContext
from shell_kernel.models.block import ShellBundle
from shell_kernel.models.config import ShellKernelConfig
from shell_kernel.models.results import DispatchFailure
from shell_kernel.models.session import RouteResolution
from shell_kernel.session.assembly import ROUTING_INFRA_TYPE

logger = logging.getLogger(__name__)


def _context_from_header(raw: Optional[str]) -> TriggerContext:
    """Parse an ``x-dev-auth`` header. Anything unparseable is an empty identity."""
    if not raw:
        return TriggerContext()
    try:
        claims = json.loads(raw)
    except ValueError:
        return TriggerContext()
    if not isinstance(claims, dict):
        return TriggerContext()

    permissions = claims.get("permissions")
    roles = claims.get("roles")
    return TriggerContext(
        permissions=set(p for p in permissions if isinstance(p, str)) if isinstance(permissions, list) else set(),
        roles=set(r for r in roles if isinstance(r, str)) if isinstance(roles, list) else set(),
    )


def _resolution_response(resolution: RouteResolution) -> JSONResponse:
    return JSONResponse(
        status_code=resolution.status,
        content=resolution.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


# --- Application Factory ---

def create_app(
    bundle: ShellBundle,
    config: Optional[ShellKernelConfig] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="Shell Kernel API",
        description="Shell Kernel — bundle, routing and debug dispatch surface",
        version="0.1.0-alpha",
    )

    cfg = config or ShellKernelConfig()
    runtime = BindingRuntime(bundle)

    # Store components on app state for access in endpoints
    app.state.bundle = bundle
    app.state.config = cfg
    app.state.binding_runtime = runtime

    def _debug_forbidden() -> Optional[JSONResponse]:
        if cfg.dev_mode:
            return None
        failure = DispatchFailure(status=403, error="Debug endpoints are disabled")
        return JSONResponse(status_code=403, content=failure.model_dump(mode="json"))

    # === BUNDLE ===

    @app.get("/config/shell/bundle")
    def get_bundle():
        return bundle.model_dump(mode="json", by_alias=True)

    # === ROUTING ===

    @app.get("/routing/resolve/{entry_slug}")
    def resolve_route(entry_slug: str, x_dev_auth: Optional[str] = Header(default=None)):
        not_found = RouteResolution(allowed=False, status=404)

        routing = bundle.blocks_of_type(ROUTING_INFRA_TYPE)
        routes = routing[0].data.get("routes") if routing else None
        route = routes.get(entry_slug) if isinstance(routes, dict) else None
        if not isinstance(route, dict) or route.get("enabled") is not True:
            return _resolution_response(not_found)

        target_block_id = route.get("targetBlockId")
        if not isinstance(target_block_id, str) or not target_block_id:
            return _resolution_response(not_found)

        allowed, reason = check_access(route.get("accessPolicy"), _context_from_header(x_dev_auth))
        if not allowed:
            logger.info("Route %s denied: %s", entry_slug, reason)
            return _resolution_response(RouteResolution(allowed=False, status=403))

        return _resolution_response(
            RouteResolution(allowed=True, status=200, target_block_id=target_block_id)
        )

    # === DEBUG DISPATCH ===

    @app.post("/debug/action/dispatch")
    def dispatch_action(req: DispatchRequest):
        forbidden = _debug_forbidden()
        if forbidden is not None:
            return forbidden
        result = runtime.dispatch_action(req)
        return result.model_dump(mode="json", by_alias=True)

    @app.post("/debug/derived-tick")
    def derived_tick():
        forbidden = _debug_forbidden()
        if forbidden is not None:
            return forbidden
        result = runtime.apply_derived_tick()
        return result.model_dump(mode="json", by_alias=True)

    @app.get("/debug/state")
    def get_state():
        forbidden = _debug_forbidden()
        if forbidden is not None:
            return forbidden
        return runtime.state

    return app
