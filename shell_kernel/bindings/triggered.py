"""
Triggered Binding Matcher — fires bindings in response to a named event.

Behavioral Contract:
- Considers only enabled ``triggered`` bindings, in blockId order
- A binding fires when its mapping trigger matches the event's
  ``{sourceBlockId, name}``; non-matching bindings are ignored entirely
- A matching binding whose access policy denies the caller is skipped,
  with the denial logged, and never touches state
- Same per-binding isolation as the derived tick
"""

import logging
from typing import Optional

from shell_kernel.bindings.endpoints import (
    BindingSkip,
    RuntimeState,
    check_writable,
    find_endpoint,
    parse_mapping,
    payload_value,
    read_endpoint,
    select_bindings,
    write_endpoint,
)
from shell_kernel.bindings.policy import check_access
from shell_kernel.models.action import TriggerContext, TriggerEvent
from shell_kernel.models.block import (
    BindingMode,
    CopyMapping,
    SetFromPayloadMapping,
    SetLiteralMapping,
    ShellBundle,
)
from shell_kernel.models.results import EvalResult

logger = logging.getLogger(__name__)


def _matches(data: dict, event: TriggerEvent) -> bool:
    mapping = data.get("mapping")
    if not isinstance(mapping, dict):
        return False
    trigger = mapping.get("trigger")
    if not isinstance(trigger, dict):
        return False
    return (
        trigger.get("sourceBlockId") == event.source_block_id
        and trigger.get("name") == event.name
    )


def _apply_triggered_binding(data: dict, state: RuntimeState, event: TriggerEvent) -> str:
    mapping = parse_mapping(data)

    if isinstance(mapping, SetLiteralMapping):
        target = find_endpoint(data, mapping.to)
        write_endpoint(state, target, mapping.value)
    elif isinstance(mapping, SetFromPayloadMapping):
        target = find_endpoint(data, mapping.to)
        write_endpoint(state, target, payload_value(event.payload, mapping.payload_path))
    elif isinstance(mapping, CopyMapping):
        source = find_endpoint(data, mapping.source)
        target = find_endpoint(data, mapping.to)
        check_writable(target)
        write_endpoint(state, target, read_endpoint(state, source))
    else:
        raise BindingSkip(f"Unsupported mapping kind: {mapping.kind}")
    return mapping.kind


def dispatch_triggered_event(
    bundle: Optional[ShellBundle],
    state: RuntimeState,
    event: TriggerEvent,
    ctx: Optional[TriggerContext] = None,
) -> EvalResult:
    """Fire every triggered binding matching ``event`` that ``ctx`` is allowed to fire."""
    result = EvalResult()
    ctx = ctx or TriggerContext()

    if bundle is None:
        result.logs.append("Invalid bundle: missing blocks")
        return result

    for binding in select_bindings(bundle.blocks, BindingMode.TRIGGERED.value):
        binding_id = binding.block_id
        data = binding.data

        if not _matches(data, event):
            continue

        allowed, reason = check_access(data.get("accessPolicy"), ctx)
        if not allowed:
            result.skipped += 1
            result.logs.append(f"[{binding_id}] Access denied: {reason}")
            logger.debug("Triggered binding %s denied: %s", binding_id, reason)
            continue

        try:
            kind = _apply_triggered_binding(data, state, event)
        except BindingSkip as skip:
            result.skipped += 1
            result.logs.append(f"[{binding_id}] {skip}")
            logger.debug("Triggered binding %s skipped: %s", binding_id, skip)
            continue
        except Exception as e:
            result.skipped += 1
            result.logs.append(f"[{binding_id}] Exception: {e}")
            logger.warning("Triggered binding %s raised", binding_id, exc_info=True)
            continue

        result.applied += 1
        result.logs.append(f"[{binding_id}] Applied: {kind}")

    return result
