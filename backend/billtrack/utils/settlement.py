"""Collection status values and the (amount, balance, status) value type.

Stored encoding:

    status   balance   meaning
    pending  0         untouched: nothing applied yet, the full amount is owed
    pending  > 0       partial: `balance` is still owed
    paid     0         settled
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from billtrack.utils.money import ZERO, to_money

PENDING = "pending"
PAID = "paid"
COLLECTION_STATUSES = (PENDING, PAID)

UNTOUCHED = "untouched"
PARTIAL = "partial"
SETTLED = "settled"


@dataclass(frozen=True)
class CollectionState:
    amount: Decimal
    balance: Decimal
    status: str

    @classmethod
    def of(cls, collection) -> CollectionState:
        return cls(
            amount=to_money(collection.amount),
            balance=to_money(collection.balance),
            status=collection.status or PENDING,
        )

    @property
    def settlement(self) -> str:
        if self.status == PAID:
            return SETTLED
        if self.balance == ZERO:
            return UNTOUCHED
        return PARTIAL

    @property
    def outstanding(self) -> Decimal:
        """What is still owed, resolving the balance=0 ambiguity via status."""
        if self.status == PAID:
            return ZERO
        if self.balance == ZERO:
            return self.amount
        return self.balance

    def write_to(self, collection) -> None:
        collection.balance = self.balance
        collection.status = self.status
