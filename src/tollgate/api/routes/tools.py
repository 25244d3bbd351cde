"""GET /api/tools -- list registered tools and prices."""

from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel

from tollgate.payments.requirements import issue

router = APIRouter(prefix="/api", tags=["tools"])


class ToolPrice(BaseModel):
    amount: int
    currency: str
    recipient: str
    network: str
    asset: str
    description: str


class ToolInfo(BaseModel):
    name: str
    description: str
    parameters_schema: dict[str, object]
    price: ToolPrice | None = None


@router.get("/tools", response_model=list[ToolInfo])
async def list_tools(request: Request) -> list[ToolInfo]:
    """Registered tools. ``price`` is null for free tools."""
    registry = request.app.state.invoker.registry
    tools: list[ToolInfo] = []
    for tool in registry:
        price = None
        if tool.priced:
            req = issue(tool)
            price = ToolPrice(
                amount=req.amount,
                currency=req.currency,
                recipient=req.recipient,
                network=req.network,
                asset=req.asset.address,
                description=req.description,
            )
        tools.append(
            ToolInfo(
                name=tool.name,
                description=tool.description,
                parameters_schema=tool.parameters_schema,
                price=price,
            )
        )
    return tools
