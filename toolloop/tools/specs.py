"""Capability specifications and JSON schema synthesis.

A ``CapabilitySpec`` binds a name, a description, an ordered parameter list
and a typed callable. Arguments are described twice. The ``ParameterSpec``
list is what the model sees, and its order is the schema order. The
pydantic ``args_model`` decodes model-issued JSON into the argument shape
of the callable.
"""

from __future__ import annotations

import inspect
import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, Mapping, Optional, TypeVar, Union

from pydantic import BaseModel, ValidationError

from toolloop.tools.base import ParameterDecodeError, ParameterSpec
from toolloop.tools.categories import Category

ArgsT = TypeVar("ArgsT", bound=BaseModel)
ResultT = TypeVar("ResultT")

SUCCESS_WITHOUT_RESULT = "Function evaluated successfully"

RawArguments = Union[str, bytes, Mapping[str, Any], None]


def serialize_result(value: Any) -> str:
    """Render a capability's return value as display text."""
    if value is None:
        return SUCCESS_WITHOUT_RESULT
    if isinstance(value, str):
        return value
    return str(value)


def _summarize_validation_error(err: ValidationError) -> str:
    parts = []
    for item in err.errors():
        loc = ".".join(str(p) for p in item.get("loc", ())) or "arguments"
        parts.append(f"{loc}: {item.get('msg', 'invalid value')}")
    return "; ".join(parts)


@dataclass(frozen=True)
class CapabilitySpec(Generic[ArgsT, ResultT]):
    """A named, schema-described callable the model may invoke."""

    name: str
    description: str
    params: tuple[ParameterSpec, ...]
    args_model: type[ArgsT]
    func: Callable[[ArgsT], Union[ResultT, Awaitable[ResultT]]]
    category: Optional[Category] = None
    _schema_cache: dict[str, Any] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", tuple(self.params))
        fields = self.args_model.model_fields
        for param in self.params:
            if param.label not in fields:
                raise ValueError(
                    f"Parameter '{param.label}' of '{self.name}' has no field on {self.args_model.__name__}"
                )
            if fields[param.label].is_required() != param.required:
                raise ValueError(
                    f"Parameter '{param.label}' of '{self.name}' is "
                    f"{'required' if param.required else 'optional'} in the schema but not on "
                    f"{self.args_model.__name__}"
                )

    @property
    def required(self) -> list[str]:
        """Labels of required parameters, in declaration order."""
        return [p.label for p in self.params if p.required]

    def schema(self) -> dict[str, Any]:
        """OpenAI-style function schema shown to the model."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": {p.label: p.to_property() for p in self.params},
                    "required": self.required,
                },
            },
        }

    def schema_json(self) -> str:
        """Serialized schema; byte-identical across calls."""
        cached = self._schema_cache.get("json")
        if cached is None:
            cached = json.dumps(self.schema(), ensure_ascii=False, separators=(", ", ": "))
            self._schema_cache["json"] = cached
        return cached

    def decode(self, raw: RawArguments) -> ArgsT:
        """Decode model-issued arguments into the argument shape.

        Raises:
            ParameterDecodeError: If the arguments are not valid JSON or do
                not match the declared shape.
        """
        try:
            if raw is None:
                return self.args_model.model_validate({})
            if isinstance(raw, (str, bytes)):
                if not raw.strip():
                    return self.args_model.model_validate({})
                return self.args_model.model_validate_json(raw)
            return self.args_model.model_validate(dict(raw))
        except ValidationError as e:
            raise ParameterDecodeError(self.name, _summarize_validation_error(e)) from e
        except (TypeError, ValueError) as e:
            raise ParameterDecodeError(self.name, str(e)) from e

    async def call(self, args: ArgsT) -> ResultT:
        result = self.func(args)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def execute(self, raw: RawArguments) -> str:
        """Decode, run and serialize. Decode failures raise ParameterDecodeError."""
        args = self.decode(raw)
        return serialize_result(await self.call(args))


def find_spec(specs: list[CapabilitySpec], name: str) -> Optional[CapabilitySpec]:
    """Linear scan by name; the first match wins."""
    for spec in specs:
        if spec.name == name:
            return spec
    return None
