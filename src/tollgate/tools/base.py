"""Tool protocol and data types.

Defines the ``ToolHandler`` protocol that tool business logic must
satisfy, the price policy attached to every tool, and the result type
handlers return.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final, Literal, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable


@dataclass(frozen=True, slots=True)
class Asset:
    """Token contract / mint the price is denominated in."""

    address: str


@dataclass(frozen=True, slots=True)
class Price:
    """Price of one call, in the smallest unit of ``currency``."""

    amount: int
    asset: Asset
    currency: str
    recipient: str
    network: str
    description: str = ""

    def __post_init__(self) -> None:
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            msg = f"Price amount must be an integer, got {self.amount!r}"
            raise TypeError(msg)
        if self.amount < 0:
            msg = f"Price amount must be non-negative, got {self.amount}"
            raise ValueError(msg)


class _Free:
    """Price policy for tools that never require payment."""

    _instance: _Free | None = None

    def __new__(cls) -> _Free:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "FREE"


FREE: Final = _Free()

PricePolicy = Price | _Free


def is_priced(price: PricePolicy | None) -> bool:
    """True when calls must carry a payment proof.

    A zero-amount price is treated as free.
    """
    return isinstance(price, Price) and price.amount > 0


@dataclass(frozen=True, slots=True)
class ContentBlock:
    """One block of tool output."""

    type: Literal["text", "structured"]
    text: str | None = None
    data: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.type == "text":
            return {"type": "text", "text": self.text or ""}
        return {"type": "structured", "data": dict(self.data or {})}


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Opaque payload returned by a tool handler."""

    content: tuple[ContentBlock, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def text(cls, text: str, **metadata: Any) -> ToolResult:
        """Single text block result."""
        return cls(content=(ContentBlock(type="text", text=text),), metadata=metadata)

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": [block.to_dict() for block in self.content],
            "metadata": dict(self.metadata),
        }


@runtime_checkable
class ToolHandler(Protocol):
    """Protocol that tool business logic must satisfy."""

    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        """Execute the tool with business arguments only.

        Raises:
            Exception: On execution failure.
        """
        ...


class FunctionHandler:
    """Adapts a plain sync or async callable to :class:`ToolHandler`."""

    def __init__(self, fn: Callable[[dict[str, Any]], Any]) -> None:
        self._fn = fn

    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        result = self._fn(arguments)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, str):
            return ToolResult.text(result)
        if not isinstance(result, ToolResult):
            msg = f"Handler returned {type(result).__name__}, expected ToolResult"
            raise TypeError(msg)
        return result


@dataclass(frozen=True, slots=True)
class ToolDescriptor:
    """A registered tool: its handler and its immutable price policy."""

    name: str
    handler: ToolHandler
    price: PricePolicy = FREE
    description: str = ""
    parameters_schema: dict[str, Any] = field(
        default_factory=lambda: {"type": "object"}
    )

    @property
    def priced(self) -> bool:
        return is_priced(self.price)

    @classmethod
    def from_function(
        cls,
        name: str,
        fn: Callable[[dict[str, Any]], Any],
        price: PricePolicy = FREE,
        **kwargs: Any,
    ) -> ToolDescriptor:
        """Build a descriptor around a plain callable."""
        return cls(name=name, handler=FunctionHandler(fn), price=price, **kwargs)
