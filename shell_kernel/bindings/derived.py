"""
Binding Evaluator — the derived tick.

Applies every enabled ``derived`` binding once over a runtime state store.

Behavioral Contract:
- Bindings are evaluated in blockId order, so identical inputs always
  produce identical outputs
- Each binding is isolated: a failure is logged against that binding's id,
  counted in ``skipped``, and never stops the remaining bindings
- Source block state must exist (fail-closed for reads); destination block
  state is created on demand (fail-open for writes only)
- Writes are unconditional; there is no dirty check
- Mutates ``state`` in place and nothing else
"""

import logging
from typing import Optional

from shell_kernel.bindings.endpoints import (
    BindingSkip,
    RuntimeState,
    check_writable,
    find_endpoint,
    parse_mapping,
    read_endpoint,
    select_bindings,
    write_endpoint,
)
from shell_kernel.models.block import BindingMode, CopyMapping, SetLiteralMapping, ShellBundle
from shell_kernel.models.results import EvalResult

logger = logging.getLogger(__name__)

DERIVED_KINDS = ("copy", "setLiteral")


def _apply_derived_binding(data: dict, state: RuntimeState) -> None:
    mapping = parse_mapping(data, supported=DERIVED_KINDS)

    if isinstance(mapping, CopyMapping):
        source = find_endpoint(data, mapping.source)
        target = find_endpoint(data, mapping.to)
        check_writable(target)
        value = read_endpoint(state, source)
        write_endpoint(state, target, value)
    elif isinstance(mapping, SetLiteralMapping):
        target = find_endpoint(data, mapping.to)
        write_endpoint(state, target, mapping.value)
    else:
        raise BindingSkip(f"Unsupported mapping kind: {mapping.kind}")


def apply_derived_tick(bundle: Optional[ShellBundle], state: RuntimeState) -> EvalResult:
    """Run one derived tick over ``state`` and report what applied."""
    result = EvalResult()

    if bundle is None:
        result.logs.append("Invalid bundle: missing blocks")
        return result

    for binding in select_bindings(bundle.blocks, BindingMode.DERIVED.value):
        binding_id = binding.block_id
        try:
            _apply_derived_binding(binding.data, state)
        except BindingSkip as skip:
            result.skipped += 1
            result.logs.append(f"[{binding_id}] {skip}")
            logger.debug("Derived binding %s skipped: %s", binding_id, skip)
            continue
        except Exception as e:
            result.skipped += 1
            result.logs.append(f"[{binding_id}] Exception: {e}")
            logger.warning("Derived binding %s raised", binding_id, exc_info=True)
            continue
        result.applied += 1

    return result
