"""Payment requirement issuer.

A requirement is the canonical restatement of a tool's price for one
call. It is never stored: it is rebuilt from the descriptor on every
attempt, both when telling the caller what to pay and when checking
a submitted proof.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from tollgate.core.errors import NotPricedError
from tollgate.tools.base import Asset, Price, is_priced

if TYPE_CHECKING:
    from tollgate.tools.base import ToolDescriptor


@dataclass(frozen=True, slots=True)
class PaymentRequirement:
    """What the caller must pay to unlock one call."""

    amount: int
    asset: Asset
    currency: str
    recipient: str
    description: str
    network: str

    def to_dict(self) -> dict[str, Any]:
        """Wire form, as carried in ``error.data.paymentRequirement``."""
        return {
            "amount": self.amount,
            "asset": {"address": self.asset.address},
            "currency": self.currency,
            "recipient": self.recipient,
            "description": self.description,
            "network": self.network,
        }


def issue(tool: ToolDescriptor) -> PaymentRequirement:
    """Build the payment requirement for a priced tool.

    Raises:
        NotPricedError: If the tool is free or priced at zero.
    """
    price = tool.price
    if not isinstance(price, Price) or not is_priced(price):
        raise NotPricedError(tool.name)
    return PaymentRequirement(
        amount=price.amount,
        asset=price.asset,
        currency=price.currency,
        recipient=price.recipient,
        description=price.description or tool.description,
        network=price.network,
    )
