"""Shared base for models that travel in camelCase bundle/wire shape."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """
    Python-side snake_case fields, camelCase on the wire.

    Accepts either spelling on input; dump with ``by_alias=True`` to get the
    bundle shape back.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
