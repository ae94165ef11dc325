"""Capability registry - holds specs and dispatches calls to them."""

from __future__ import annotations

import asyncio
import json
import sys
import time
from typing import Any, Iterable, List, Optional

from toolloop.tools.base import CapabilityError, DispatchError, FunctionNotFound, ToolResult
from toolloop.tools.categories import CategorySelection, get_selection
from toolloop.tools.router import ToolCall
from toolloop.tools.specs import CapabilitySpec, RawArguments, find_spec, serialize_result


def _log(msg: str) -> None:
    ts = time.strftime("%H:%M:%S")
    print(f"[{ts}] [registry] {msg}", file=sys.stderr, flush=True)


class CapabilityRegistry:
    """Registry of capabilities the model may call.

    Specs are registered at startup and never change afterwards. Which of
    them are visible (in schemas and to dispatch) depends on the shared
    ``CategorySelection``.
    """

    def __init__(
        self,
        specs: Optional[Iterable[CapabilitySpec]] = None,
        selection: Optional[CategorySelection] = None,
    ):
        self._specs: List[CapabilitySpec] = []
        self._selection = selection
        if specs:
            self.register_many(specs)

    @property
    def selection(self) -> CategorySelection:
        if self._selection is None:
            self._selection = get_selection()
        return self._selection

    # -----------------------------------------------------------------
    # Registration
    # -----------------------------------------------------------------

    def register(self, spec: CapabilitySpec) -> None:
        if find_spec(self._specs, spec.name) is not None:
            _log(f"Duplicate capability name '{spec.name}', the first registration wins")
        self._specs.append(spec)

    def register_many(self, specs: Iterable[CapabilitySpec]) -> None:
        for spec in specs:
            self.register(spec)

    @property
    def all_specs(self) -> List[CapabilitySpec]:
        return list(self._specs)

    # -----------------------------------------------------------------
    # Visibility
    # -----------------------------------------------------------------

    def enabled_specs(self) -> List[CapabilitySpec]:
        enabled = set(self.selection.enabled())
        return [s for s in self._specs if s.category is None or s.category in enabled]

    def names(self) -> List[str]:
        return [s.name for s in self.enabled_specs()]

    def lookup(self, name: str) -> Optional[CapabilitySpec]:
        """Linear scan over enabled specs; the first registered match wins."""
        return find_spec(self.enabled_specs(), name)

    def schemas(self) -> List[dict[str, Any]]:
        return [s.schema() for s in self.enabled_specs()]

    def schemas_json(self) -> str:
        return "[" + ", ".join(s.schema_json() for s in self.enabled_specs()) + "]"

    # -----------------------------------------------------------------
    # Dispatch
    # -----------------------------------------------------------------

    async def execute(self, name: str, raw: RawArguments) -> ToolResult:
        """Run one call. Per-call failures come back as failed results."""
        spec = self.lookup(name)
        if spec is None:
            return ToolResult.fail(FunctionNotFound(name))
        try:
            args = spec.decode(raw)
        except DispatchError as e:
            return ToolResult.fail(e)
        try:
            output = await spec.call(args)
        except DispatchError as e:
            return ToolResult.fail(e)
        except Exception as e:
            _log(f"Capability '{name}' raised {type(e).__name__}: {e}")
            return ToolResult.fail(CapabilityError(name, e))
        return ToolResult.ok(serialize_result(output))

    async def execute_call(self, call: ToolCall) -> ToolResult:
        arguments = call.arguments
        if not isinstance(arguments, (str, bytes, dict)) and arguments is not None:
            arguments = json.dumps(arguments)
        return await self.execute(call.name, arguments)

    async def execute_batch(self, calls: List[ToolCall]) -> List[ToolResult]:
        """Run calls concurrently; results keep the request order."""
        if not calls:
            return []
        return list(await asyncio.gather(*(self.execute_call(c) for c in calls)))
