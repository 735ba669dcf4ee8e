"""
Session assembly — turn a bundle and a route resolution into a SessionModel.

Fail-closed: any missing piece raises SessionError and no model is produced.
"""

from typing import Any, Optional

from pydantic import ValidationError

from shell_kernel.models.block import Block, ShellBundle
from shell_kernel.models.session import RouteResolution, SessionModel

WINDOW_REGISTRY_TYPE = "shell.infra.window_registry"
ROUTING_INFRA_TYPE = "shell.infra.routing"
THEME_TOKENS_INFRA_TYPE = "shell.infra.theme_tokens"
OVERLAY_TYPE_PREFIX = "shell.overlay."
BINDING_TYPE = "binding"


class SessionError(Exception):
    """Raised when a session cannot be constructed."""


def parse_bundle(raw: Any) -> ShellBundle:
    """Accept a ShellBundle, a bundle dict, or a ``{"bundle": ...}`` container."""
    if raw is None:
        raise SessionError("Failed to load active bundle")
    if isinstance(raw, ShellBundle):
        return raw
    if not isinstance(raw, dict) or not ("blocks" in raw or isinstance(raw.get("bundle"), dict)):
        raise SessionError("Invalid bundle container structure")
    try:
        return ShellBundle.model_validate(raw)
    except ValidationError as e:
        raise SessionError(f"Invalid bundle: {e.error_count()} validation error(s)") from e


def parse_resolution(raw: Any) -> RouteResolution:
    if isinstance(raw, RouteResolution):
        return raw
    if not isinstance(raw, dict):
        raise SessionError("Route not allowed")
    try:
        return RouteResolution.model_validate(raw)
    except ValidationError as e:
        raise SessionError("Route not allowed") from e


def _single(bundle: ShellBundle, block_type: str) -> Optional[Block]:
    matches = bundle.blocks_of_type(block_type)
    return matches[0] if matches else None


def assemble_session_model(
    bundle: ShellBundle,
    entry_slug: str,
    resolution: RouteResolution,
) -> SessionModel:
    """
    Build the session view model for ``entry_slug``.

    The route must resolve with ``allowed is True``, ``status == 200`` and a
    concrete targetBlockId present in the bundle. The window registry,
    routing and theme token infra blocks must all exist.
    """
    if resolution.allowed is not True or resolution.status != 200:
        raise SessionError(
            f"Route not allowed: {entry_slug} (status {resolution.status})"
        )

    target_block_id = resolution.target_block_id
    if not target_block_id:
        raise SessionError("Target block ID missing from resolution")

    target_block = bundle.blocks.get(target_block_id)
    if target_block is None:
        raise SessionError(f"Target block '{target_block_id}' not found in bundle")

    window_registry = _single(bundle, WINDOW_REGISTRY_TYPE)
    if window_registry is None:
        raise SessionError("Window registry missing")
    routing_infra = _single(bundle, ROUTING_INFRA_TYPE)
    if routing_infra is None:
        raise SessionError("Routing infra missing")
    theme_tokens_infra = _single(bundle, THEME_TOKENS_INFRA_TYPE)
    if theme_tokens_infra is None:
        raise SessionError("Theme tokens infra missing")

    ordered = sorted(bundle.blocks.values(), key=lambda b: b.block_id)
    bindings = [b for b in ordered if b.block_type == BINDING_TYPE]
    overlays = [b for b in ordered if b.block_type.startswith(OVERLAY_TYPE_PREFIX)]
    action_blocks = [
        b for b in ordered
        if b.block_type != BINDING_TYPE and isinstance(b.data.get("interactions"), dict)
    ]

    return SessionModel(
        entry_slug=entry_slug,
        target_block_id=target_block_id,
        manifest=bundle.manifest,
        target_block=target_block,
        bindings=bindings,
        overlays=overlays,
        action_blocks=action_blocks,
        window_registry=window_registry,
        routing_infra=routing_infra,
        theme_tokens_infra=theme_tokens_infra,
        route_resolution=resolution,
    )
