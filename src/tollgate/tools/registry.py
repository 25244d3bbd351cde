"""Tool registry — maps tool names to descriptors.

Registration happens at startup. Once :meth:`ToolRegistry.freeze` is
called the contents only change through :meth:`ToolRegistry.reload`,
which swaps in a complete new mapping at once. Lookups always read an
immutable snapshot, so a call that already holds a descriptor is never
affected by a later re-registration.
"""

from __future__ import annotations

import threading
from types import MappingProxyType
from typing import TYPE_CHECKING

from tollgate.core.errors import DuplicateToolError, RegistryFrozenError, ToolNotFoundError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping

    from tollgate.tools.base import ToolDescriptor


class ToolRegistry:
    """Registry of invocable tools and their price policies."""

    def __init__(self, tools: Iterable[ToolDescriptor] = ()) -> None:
        self._write_lock = threading.Lock()
        self._frozen = False
        self._tools: Mapping[str, ToolDescriptor] = MappingProxyType({})
        for tool in tools:
            self.register(tool)

    def register(self, tool: ToolDescriptor) -> None:
        """Register a tool.

        Raises:
            DuplicateToolError: If a tool with the same name is already registered.
            RegistryFrozenError: If the registry has been frozen.
        """
        with self._write_lock:
            if self._frozen:
                msg = f"Registry is frozen; cannot register {tool.name} (use reload)"
                raise RegistryFrozenError(msg)
            if tool.name in self._tools:
                raise DuplicateToolError(tool.name)
            updated = dict(self._tools)
            updated[tool.name] = tool
            self._tools = MappingProxyType(updated)

    def freeze(self) -> None:
        """End the startup registration phase."""
        with self._write_lock:
            self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def reload(self, tools: Iterable[ToolDescriptor]) -> None:
        """Replace the whole registry contents in one step.

        Raises:
            DuplicateToolError: If ``tools`` repeats a name. The current
                contents are left untouched in that case.
        """
        fresh: dict[str, ToolDescriptor] = {}
        for tool in tools:
            if tool.name in fresh:
                raise DuplicateToolError(tool.name)
            fresh[tool.name] = tool
        with self._write_lock:
            self._tools = MappingProxyType(fresh)

    def lookup(self, name: str) -> ToolDescriptor | None:
        """Return the descriptor for ``name``, or None if absent."""
        return self._tools.get(name)

    def get(self, name: str) -> ToolDescriptor:
        """Get a tool by name.

        Raises:
            ToolNotFoundError: If the tool is not found.
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name)
        return tool

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[ToolDescriptor]:
        return iter(list(self._tools.values()))

    def list_names(self) -> list[str]:
        """Return names of all registered tools."""
        return list(self._tools.keys())
