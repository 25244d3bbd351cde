"""Demo pizza tools: free carousel browsing and paid ordering."""

from __future__ import annotations

import itertools
import time
from typing import TYPE_CHECKING, Any

from tollgate.tools.base import FREE, Asset, ContentBlock, Price, ToolDescriptor, ToolResult

if TYPE_CHECKING:
    from tollgate.config.schema import PaymentsConfig

ORDER_PRICE = 15_000_000  # $15.00 in micro-USDC

_WIDGET_META = {
    "openai/outputTemplate": "ui://widget/pizza-carousel.html",
    "openai/toolInvocation/invoking": "Carousel some spots",
    "openai/toolInvocation/invoked": "Served a fresh carousel",
    "openai/widgetAccessible": True,
    "openai/resultCanProduceWidget": True,
}


class PizzaCarouselTool:
    """Renders a carousel of pizza places for a topping."""

    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        topping = str(arguments.get("topping") or arguments.get("pizzaTopping") or "")
        if not topping:
            msg = "Missing required argument: topping"
            raise ValueError(msg)
        return ToolResult(
            content=(
                ContentBlock(type="text", text="Rendered a pizza carousel!"),
                ContentBlock(type="structured", data={"pizzaTopping": topping}),
            ),
            metadata=dict(_WIDGET_META),
        )


class PlacePizzaOrderTool:
    """Places an order with a pizza place. Only runs once paid."""

    def __init__(self) -> None:
        self._order_ids = itertools.count(int(time.time() * 1000))
        self.orders: list[dict[str, Any]] = []

    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        place_id = arguments.get("placeId")
        if not place_id:
            msg = "Missing required argument: placeId"
            raise ValueError(msg)
        place_name = str(arguments.get("placeName") or place_id)
        order_id = next(self._order_ids)
        self.orders.append({"orderId": order_id, "placeId": place_id})
        text = (
            "Pizza order placed successfully!\n\n"
            f"Restaurant: {place_name}\n"
            f"Order ID: {order_id}\n\n"
            "Your pizza will arrive in 30 minutes!"
        )
        return ToolResult(
            content=(
                ContentBlock(type="text", text=text),
                ContentBlock(
                    type="structured",
                    data={"orderId": order_id, "placeId": str(place_id)},
                ),
            ),
        )


def order_price(payments: PaymentsConfig) -> Price:
    """Price of ``place-pizza-order`` from the payments config."""
    return Price(
        amount=ORDER_PRICE,
        asset=Asset(address=payments.asset_address),
        currency=payments.currency,
        recipient=payments.recipient or "",
        network=payments.network,
        description="Order a pizza",
    )


def pizza_tools(payments: PaymentsConfig) -> list[ToolDescriptor]:
    """Descriptors for the demo tools."""
    return [
        ToolDescriptor(
            name="pizza-carousel",
            handler=PizzaCarouselTool(),
            price=FREE,
            description="Browse pizza places serving a topping",
            parameters_schema={
                "type": "object",
                "properties": {
                    "topping": {"type": "string", "description": "Pizza topping"},
                },
                "required": ["topping"],
            },
        ),
        ToolDescriptor(
            name="place-pizza-order",
            handler=PlacePizzaOrderTool(),
            price=order_price(payments),
            description="Order a pizza",
            parameters_schema={
                "type": "object",
                "properties": {
                    "placeId": {"type": "string"},
                    "placeName": {"type": "string"},
                },
                "required": ["placeId"],
            },
        ),
    ]
