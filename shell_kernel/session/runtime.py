"""
Session Runtime — one entry slug, one bundle, one state store.

Mode is fixed at construction from ``ShellKernelConfig.dev_mode``:
  REMOTE (dev)  → dispatch and derived ticks are forwarded to the client's
                  debug endpoints; refusals come back as structured values
  LOCAL (prod)  → dispatch and derived ticks run in-process over the
                  session's own state store

Behavioral Contract:
- Construction is all-or-nothing: SessionError, or a fully assembled session
- A remote 403 is never raised; it becomes DispatchFailure or an ok=False tick
- Remote transport failures during a derived tick become ok=False outcomes
"""

import logging
from enum import Enum
from typing import Any, Optional, Union

from pydantic import ValidationError

from shell_kernel.bindings.endpoints import RuntimeState
from shell_kernel.bindings.runtime import BindingRuntime
from shell_kernel.models.action import DispatchRequest
from shell_kernel.models.block import ShellBundle
from shell_kernel.models.config import ShellKernelConfig
from shell_kernel.models.results import DerivedTickOutcome, DispatchFailure, EvalResult
from shell_kernel.models.session import SessionModel
from shell_kernel.session.assembly import (
    assemble_session_model,
    parse_bundle,
    parse_resolution,
)
from shell_kernel.session.client import ShellClient

logger = logging.getLogger(__name__)


class SessionMode(str, Enum):
    REMOTE = "remote"
    LOCAL = "local"


def _refusal(reply: Any) -> Optional[DispatchFailure]:
    """A ``{status, error}`` reply with an error status, as a DispatchFailure."""
    if not isinstance(reply, dict):
        return None
    status = reply.get("status")
    if not isinstance(status, int) or isinstance(status, bool) or status < 400:
        return None
    error = reply.get("error")
    return DispatchFailure(status=status, error=error if isinstance(error, str) and error else "Forbidden")


class SessionRuntime:
    """A constructed session. Use ``create_session_runtime`` to build one."""

    def __init__(
        self,
        client: ShellClient,
        bundle: ShellBundle,
        model: SessionModel,
        config: Optional[ShellKernelConfig] = None,
    ):
        self.client = client
        self.config = config or ShellKernelConfig()
        self._bundle = bundle
        self._model = model
        self._mode = SessionMode.REMOTE if self.config.dev_mode else SessionMode.LOCAL
        self._bindings = BindingRuntime(bundle)

    @property
    def entry_slug(self) -> str:
        return self._model.entry_slug

    @property
    def model(self) -> SessionModel:
        return self._model

    @property
    def bundle(self) -> ShellBundle:
        return self._bundle

    @property
    def mode(self) -> SessionMode:
        return self._mode

    @property
    def state(self) -> RuntimeState:
        """The session's runtime state store. Mutated in place by local evaluation."""
        return self._bindings.state

    async def dispatch_action(
        self, request: Union[DispatchRequest, dict]
    ) -> Union[EvalResult, DispatchFailure]:
        """Fire the triggered bindings for a named action."""
        if isinstance(request, dict):
            request = DispatchRequest.model_validate(request)

        if self._mode == SessionMode.LOCAL:
            return self._bindings.dispatch_action(request)

        reply = await self.client.dispatch_debug_action(
            request.model_dump(mode="json", by_alias=True)
        )
        refusal = _refusal(reply)
        if refusal is not None:
            logger.info(
                "Remote dispatch of %s refused: %s %s",
                request.action_name, refusal.status, refusal.error,
            )
            return refusal
        try:
            return EvalResult.model_validate(reply)
        except ValidationError:
            logger.warning("Malformed remote dispatch reply for %s", request.action_name)
            return DispatchFailure(status=502, error="Malformed dispatch response")

    async def apply_derived_tick(self) -> DerivedTickOutcome:
        """Run one derived tick, locally or through the debug endpoint."""
        if self._mode == SessionMode.LOCAL:
            result = self._bindings.apply_derived_tick()
            return DerivedTickOutcome(ok=True, did_work=result.applied > 0, result=result)

        try:
            reply = await self.client.dispatch_debug_derived_tick()
        except Exception as e:
            logger.warning("Remote derived tick failed: %s", e)
            return DerivedTickOutcome(ok=False, error=str(e) or "Failed to apply derived tick")

        refusal = _refusal(reply)
        if refusal is not None:
            return DerivedTickOutcome(ok=False, error=refusal.error)
        try:
            result = EvalResult.model_validate(reply)
        except ValidationError:
            return DerivedTickOutcome(ok=False, error="Malformed derived tick response")
        return DerivedTickOutcome(ok=True, did_work=result.applied > 0, result=result)


async def create_session_runtime(
    client: ShellClient,
    entry_slug: str,
    config: Optional[ShellKernelConfig] = None,
) -> SessionRuntime:
    """
    Load the active bundle, resolve ``entry_slug`` and assemble the session.

    Raises SessionError if any step fails; nothing is partially constructed.
    """
    bundle = parse_bundle(await client.load_active_bundle())
    resolution = parse_resolution(await client.resolve_route(entry_slug))
    model = assemble_session_model(bundle, entry_slug, resolution)

    session = SessionRuntime(client, bundle, model, config)
    logger.info(
        "Session created for %s -> %s (%s mode)",
        entry_slug, model.target_block_id, session.mode.value,
    )
    return session
