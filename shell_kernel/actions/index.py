"""
Action Index — a flat catalog of dispatchable actions.

Walks each action block's ``data.interactions`` (blocks and interaction keys
in sorted order) and emits one ActionDescriptor per interaction.

An interaction of kind ``command`` carrying ``params.commandId`` dispatches
under the commandId rather than the interaction kind, so the UI-facing
interaction key stays decoupled from the trigger name bindings listen for.
"""

from typing import Iterable, List

from shell_kernel.models.action import ActionDescriptor
from shell_kernel.models.block import Block
from shell_kernel.models.session import SessionModel


def _describe_interaction(block_id: str, key: str, definition: dict) -> ActionDescriptor:
    action_name = definition["kind"]
    params = definition.get("params")
    payload = params

    if action_name == "command" and isinstance(params, dict) and params.get("commandId"):
        action_name = params["commandId"]
        args = params.get("args")
        payload = args if args is not None else params

    permissions = definition.get("permissions")
    return ActionDescriptor(
        id=f"{block_id}:{key}",
        source_block_id=block_id,
        action_name=action_name,
        payload=payload,
        access_policy={"permissions": permissions} if permissions else None,
    )


def index_blocks(blocks: Iterable[Block]) -> List[ActionDescriptor]:
    """Build descriptors for every interaction declared on ``blocks``."""
    actions: List[ActionDescriptor] = []
    for block in sorted(blocks, key=lambda b: b.block_id):
        interactions = block.data.get("interactions")
        if not isinstance(interactions, dict):
            continue

        for key in sorted(interactions):
            definition = interactions[key]
            if not isinstance(definition, dict) or not definition.get("kind"):
                continue
            actions.append(_describe_interaction(block.block_id, key, definition))
    return actions


def build_action_index(model: SessionModel) -> List[ActionDescriptor]:
    """The action catalog for an assembled session."""
    return index_blocks(model.action_blocks)
