"""Collection balance engine.

Pure arithmetic over a Collection's (amount, balance, status) triple.  The
payment service loads the Collection under a row lock, asks this module for
the next state, and writes it in the same transaction as the Payment change.

Encoding of the stored columns:

    status   balance   meaning
    pending  0         untouched: nothing applied yet, the full amount is owed
    pending  > 0       partial: `balance` is still owed
    paid     0         settled

`balance` always stays within [0, amount].

Transitions:

    apply_payment    balance-only rule for a new payment
    reverse_payment  a payment is cancelled; `remaining_applied` is the sum of
                     the other live payments on the collection
    adjust_payment   a payment's amount is edited
    resettle         recompute from the ledger after the amount owed changes
"""

from billtrack.utils.money import ZERO, clamp, to_money
from billtrack.utils.settlement import (  # noqa: F401
    COLLECTION_STATUSES,
    PAID,
    PARTIAL,
    PENDING,
    SETTLED,
    UNTOUCHED,
    CollectionState,
)


def settle(amount, applied, *, untouched: bool = False) -> CollectionState:
    """State of a collection owing `amount` with `applied` live payments on it.

    `untouched` keeps the "no partial payment recorded" encoding (balance 0,
    pending) when nothing is applied.
    """
    amount = to_money(amount)
    applied = to_money(applied)

    remaining = amount - applied
    if remaining <= ZERO:
        return CollectionState(amount, ZERO, PAID)
    if untouched:
        return CollectionState(amount, ZERO, PENDING)
    return CollectionState(amount, clamp(remaining, ZERO, amount), PENDING)


def apply_payment(state: CollectionState, payment_amount) -> CollectionState:
    """Apply a newly recorded payment.

    Untouched: a payment below `amount` leaves `amount - payment` owed;
    anything at or above settles it with balance left at 0.  Partial: the
    payment comes off the balance, settling at or below 0.  A settled
    collection absorbs further payments and stays settled.
    """
    payment = to_money(payment_amount)
    if state.status == PAID:
        return CollectionState(state.amount, ZERO, PAID)

    if state.balance == ZERO:
        if payment < state.amount:
            return CollectionState(state.amount, state.amount - payment, PENDING)
        return CollectionState(state.amount, ZERO, PAID)

    remaining = state.balance - payment
    if remaining > ZERO:
        return CollectionState(state.amount, remaining, PENDING)
    return CollectionState(state.amount, ZERO, PAID)


def reverse_payment(
    state: CollectionState,
    payment_amount,
    remaining_applied,
) -> CollectionState:
    """Undo a cancelled payment.

    A lone payment of exactly `amount` went through the untouched → settled
    path without ever moving the balance, so the collection simply goes back
    to untouched.  Otherwise the payment is added back onto the balance,
    capped at `amount`; when other live payments remain, the ledger sum
    decides the new balance so over-payments cannot inflate it.
    """
    payment = to_money(payment_amount)
    remaining_applied = to_money(remaining_applied)

    if remaining_applied == ZERO:
        if payment == state.amount:
            return CollectionState(state.amount, state.balance, PENDING)
        restored = clamp(state.balance + payment, ZERO, state.amount)
        if restored == ZERO:
            return CollectionState(state.amount, ZERO, PAID)
        return CollectionState(state.amount, restored, PENDING)

    return settle(state.amount, remaining_applied)


def adjust_payment(
    state: CollectionState,
    old_amount,
    new_amount,
    other_applied,
) -> CollectionState:
    """Re-apply a payment whose amount changed from `old_amount` to `new_amount`.

    For a coherent collection this is `balance + old - new`, clamped to
    [0, amount], flipping to paid at 0.
    """
    old = to_money(old_amount)
    new = to_money(new_amount)
    if old == new:
        return state
    return settle(state.amount, to_money(other_applied) + new)


def resettle(amount, applied) -> CollectionState:
    """Recompute after the amount owed itself changed (billing edit / revival)."""
    applied = to_money(applied)
    return settle(amount, applied, untouched=applied == ZERO)
