"""Tests for the demo pizza tools."""

from __future__ import annotations

import pytest

from tests.fixtures.tools import RECIPIENT
from tollgate.config.schema import PaymentsConfig
from tollgate.tools.pizza import (
    ORDER_PRICE,
    PizzaCarouselTool,
    PlacePizzaOrderTool,
    order_price,
    pizza_tools,
)


@pytest.fixture
def payments() -> PaymentsConfig:
    return PaymentsConfig(recipient=RECIPIENT)


class TestCarousel:
    async def test_renders(self):
        result = await PizzaCarouselTool().execute({"topping": "pepperoni"})
        assert result.content[0].text == "Rendered a pizza carousel!"
        assert result.content[1].data == {"pizzaTopping": "pepperoni"}
        assert result.metadata["openai/widgetAccessible"] is True

    async def test_accepts_pizza_topping_alias(self):
        result = await PizzaCarouselTool().execute({"pizzaTopping": "ham"})
        assert result.content[1].data == {"pizzaTopping": "ham"}

    async def test_missing_topping(self):
        with pytest.raises(ValueError, match="topping"):
            await PizzaCarouselTool().execute({})


class TestPlaceOrder:
    async def test_places_order(self):
        tool = PlacePizzaOrderTool()
        result = await tool.execute({"placeId": "place-123", "placeName": "Tony's"})
        assert "Pizza order placed successfully!" in result.content[0].text
        assert "Tony's" in result.content[0].text
        assert result.content[1].data["placeId"] == "place-123"
        assert len(tool.orders) == 1

    async def test_order_ids_unique(self):
        tool = PlacePizzaOrderTool()
        first = await tool.execute({"placeId": "a"})
        second = await tool.execute({"placeId": "a"})
        assert first.content[1].data["orderId"] != second.content[1].data["orderId"]

    async def test_missing_place(self):
        with pytest.raises(ValueError, match="placeId"):
            await PlacePizzaOrderTool().execute({})


class TestDescriptors:
    def test_order_price(self, payments):
        price = order_price(payments)
        assert price.amount == ORDER_PRICE == 15_000_000
        assert price.recipient == RECIPIENT
        assert price.currency == "USDC"

    def test_tools(self, payments):
        carousel, order = pizza_tools(payments)
        assert carousel.name == "pizza-carousel"
        assert carousel.priced is False
        assert order.name == "place-pizza-order"
        assert order.priced is True
