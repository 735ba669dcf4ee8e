"""
Endpoint resolution shared by the derived and triggered evaluators.

Every helper raises BindingSkip with a human-readable reason; the evaluators
catch it at the per-binding boundary and count the binding as skipped.
"""

import copy
from typing import Any, Dict, List, Union

from pydantic import TypeAdapter, ValidationError

from shell_kernel.bindings.pointer import ABSENT, get_by_pointer, set_by_pointer
from shell_kernel.models.block import MAPPING_KINDS, Block, Endpoint, Mapping

RuntimeState = Dict[str, dict]

_MAPPING_ADAPTER = TypeAdapter(Mapping)


class BindingSkip(Exception):
    """Raised when a single binding cannot be evaluated."""
    pass


def select_bindings(blocks: Dict[str, Block], mode: str) -> List[Block]:
    """Enabled bindings of one mode, in blockId order."""
    selected = [
        b for b in blocks.values()
        if b.block_type == "binding"
        and b.data.get("mode") == mode
        and b.data.get("enabled") is True
    ]
    return sorted(selected, key=lambda b: b.block_id)


def parse_mapping(data: dict, supported: tuple = MAPPING_KINDS):
    """Validate a binding's mapping into its tagged variant."""
    raw = data.get("mapping")
    if not isinstance(raw, dict):
        raise BindingSkip("Missing mapping")

    kind = raw.get("kind")
    if kind not in supported:
        raise BindingSkip(f"Unsupported mapping kind: {kind}")

    try:
        return _MAPPING_ADAPTER.validate_python(raw)
    except ValidationError as e:
        raise BindingSkip(
            f"Malformed '{kind}' mapping: {e.error_count()} validation error(s)"
        )


def find_endpoint(data: dict, endpoint_id: str) -> Endpoint:
    endpoints = data.get("endpoints")
    if not isinstance(endpoints, list):
        raise BindingSkip(f"Missing endpoint '{endpoint_id}': no endpoints declared")

    for raw in endpoints:
        if isinstance(raw, dict) and raw.get("endpointId", raw.get("endpoint_id")) == endpoint_id:
            try:
                return Endpoint.model_validate(raw)
            except ValidationError:
                raise BindingSkip(f"Endpoint '{endpoint_id}' is malformed")
    raise BindingSkip(f"Missing endpoint '{endpoint_id}'")


def _target_of(endpoint: Endpoint, role: str):
    target = endpoint.target
    if target is None or not target.block_id or not target.path:
        raise BindingSkip(
            f"{role} endpoint '{endpoint.endpoint_id}' missing target definition"
        )
    return target.block_id, target.path


def read_endpoint(state: RuntimeState, endpoint: Endpoint) -> Any:
    """Read through a readable endpoint. The source block state must exist."""
    if not endpoint.direction.readable:
        raise BindingSkip(
            f"Source endpoint '{endpoint.endpoint_id}' has invalid direction "
            f"'{endpoint.direction.value}' for read"
        )
    block_id, path = _target_of(endpoint, "Source")

    block_state = state.get(block_id)
    if block_state is None:
        raise BindingSkip(f"Source block state '{block_id}' not found")

    value = get_by_pointer(block_state, path)
    return None if value is ABSENT else value


def check_writable(endpoint: Endpoint) -> None:
    if not endpoint.direction.writable:
        raise BindingSkip(
            f"Target endpoint '{endpoint.endpoint_id}' has invalid direction "
            f"'{endpoint.direction.value}' for write"
        )
    _target_of(endpoint, "Target")


def write_endpoint(state: RuntimeState, endpoint: Endpoint, value: Any) -> None:
    """Write a deep copy of ``value`` through a writable endpoint.

    The destination block state is created if absent. State never shares
    objects with the bundle, the event payload or another endpoint.
    """
    check_writable(endpoint)
    block_id, path = _target_of(endpoint, "Target")

    if block_id not in state:
        state[block_id] = {}
    if not set_by_pointer(state[block_id], path, copy.deepcopy(value)):
        raise BindingSkip(f"Failed to set value at {block_id}:{path}")


def payload_value(payload: Any, payload_path: Union[str, None]) -> Any:
    if not payload_path:
        return payload
    value = get_by_pointer(payload if payload is not None else {}, payload_path)
    return None if value is ABSENT else value
