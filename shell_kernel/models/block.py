"""Blocks, bundles and binding declarations."""

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import Field, model_validator

from shell_kernel.models.base import WireModel


class Block(WireModel):
    """A named, typed data record inside a bundle."""

    block_id: str
    block_type: str
    schema_version: Optional[str] = None
    data: Dict[str, Any] = {}               # Arbitrary; only data.state is runtime-mutable


class ShellBundle(WireModel):
    """A static set of blocks plus the manifest naming the shell regions."""

    manifest: Dict[str, Any] = {}
    blocks: Dict[str, Block] = {}

    @model_validator(mode="before")
    @classmethod
    def _unwrap_container(cls, value: Any) -> Any:
        # Servers hand out {"bundle": {...}, "metadata": ...}
        if isinstance(value, dict) and "blocks" not in value and isinstance(value.get("bundle"), dict):
            return value["bundle"]
        return value

    def blocks_of_type(self, block_type: str) -> List[Block]:
        """All blocks of a given type, sorted by blockId."""
        return sorted(
            (b for b in self.blocks.values() if b.block_type == block_type),
            key=lambda b: b.block_id,
        )


class BindingMode(str, Enum):
    DERIVED = "derived"       # Re-evaluated on every tick
    TRIGGERED = "triggered"   # Fires only on a matching named event


class EndpointDirection(str, Enum):
    IN = "in"         # Writable
    OUT = "out"       # Readable
    INOUT = "inout"   # Both

    @property
    def readable(self) -> bool:
        return self in (EndpointDirection.OUT, EndpointDirection.INOUT)

    @property
    def writable(self) -> bool:
        return self in (EndpointDirection.IN, EndpointDirection.INOUT)


class EndpointTarget(WireModel):
    block_id: Optional[str] = None
    path: Optional[str] = None


class Endpoint(WireModel):
    """One side of a binding, addressing a path inside a block's runtime state."""

    endpoint_id: str
    direction: EndpointDirection
    target: Optional[EndpointTarget] = None


class Trigger(WireModel):
    """The named event a triggered binding reacts to."""

    source_block_id: str
    name: str


class CopyMapping(WireModel):
    kind: Literal["copy"]
    source: str = Field(alias="from")
    to: str
    trigger: Optional[Trigger] = None


class SetLiteralMapping(WireModel):
    kind: Literal["setLiteral"]
    to: str
    value: Any                              # Required; None is a legal literal
    trigger: Optional[Trigger] = None


class SetFromPayloadMapping(WireModel):
    kind: Literal["setFromPayload"]
    to: str
    payload_path: Optional[str] = None      # Whole payload when absent
    trigger: Optional[Trigger] = None


Mapping = Annotated[
    Union[CopyMapping, SetLiteralMapping, SetFromPayloadMapping],
    Field(discriminator="kind"),
]

MAPPING_KINDS = ("copy", "setLiteral", "setFromPayload")


class AccessPolicy(WireModel):
    """Expression tree gate. A missing policy means always allowed."""

    expr: Any = None

