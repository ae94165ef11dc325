"""Base types shared by capabilities, the registry and the call loop."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class Datatype(str, Enum):
    """Argument types a capability parameter can declare."""

    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    STRING_ARRAY = "string_array"
    INTEGER_ARRAY = "integer_array"
    FLOAT_ARRAY = "float_array"

    @property
    def is_array(self) -> bool:
        return self in (Datatype.STRING_ARRAY, Datatype.INTEGER_ARRAY, Datatype.FLOAT_ARRAY)

    def json_type(self) -> str:
        """JSON schema ``type`` for this datatype."""
        if self in (Datatype.INTEGER, Datatype.FLOAT):
            return "number"
        if self is Datatype.BOOLEAN:
            return "boolean"
        if self.is_array:
            return "array"
        return "string"

    def item_type(self) -> Optional[str]:
        """JSON schema ``items.type`` for array datatypes, else ``None``."""
        if self is Datatype.STRING_ARRAY:
            return "string"
        if self in (Datatype.INTEGER_ARRAY, Datatype.FLOAT_ARRAY):
            return "number"
        return None


@dataclass(frozen=True)
class ParameterSpec:
    """One declared parameter of a capability."""

    label: str
    description: str
    datatype: Datatype
    required: bool = True

    def to_property(self) -> dict[str, Any]:
        prop: dict[str, Any] = {
            "type": self.datatype.json_type(),
            "description": self.description,
        }
        item_type = self.datatype.item_type()
        if item_type is not None:
            prop["items"] = {"type": item_type}
        return prop


@dataclass
class ToolResult:
    """Outcome of one dispatched call."""

    success: bool
    output: str
    error: Optional[str] = None
    cause: Optional[BaseException] = None

    @classmethod
    def ok(cls, output: str) -> "ToolResult":
        """Create a successful result."""
        return cls(success=True, output=output)

    @classmethod
    def fail(cls, error: "DispatchError | str", output: str = "") -> "ToolResult":
        """Create a failed result from an error or an error message."""
        if isinstance(error, BaseException):
            return cls(success=False, output=output, error=str(error), cause=error)
        return cls(success=False, output=output, error=error)

    def to_message(self) -> str:
        """Text shown to the model for this outcome."""
        if self.success:
            return self.output
        return f"{self.error}\n{self.output}" if self.output else (self.error or "")


# =============================================================================
# Errors
# =============================================================================


class DispatchError(Exception):
    """A single call could not be served. Never fatal to the round-trip."""


class FunctionNotFound(DispatchError):
    """The requested capability is unregistered or its category is disabled."""

    def __init__(self, name: str = ""):
        self.name = name
        super().__init__("The function called is not available.")


class ParameterDecodeError(DispatchError):
    """Arguments are malformed or miss a required field."""

    def __init__(self, name: str, detail: str):
        self.name = name
        self.detail = detail
        super().__init__(
            f"Arguments do not match the expected parameter schema for function '{name}': {detail}"
        )


class CapabilityError(DispatchError):
    """The capability itself raised while running."""

    def __init__(self, name: str, error: BaseException):
        self.name = name
        self.error = error
        super().__init__(str(error) or type(error).__name__)


class PermissionDenied(DispatchError):
    def __init__(self) -> None:
        super().__init__("The user denied your request to use this tool.")


class ToolCallDecodeError(ValueError):
    """A model-issued call does not have the structure of a tool call."""
