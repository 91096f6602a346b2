"""Unit tests for the collection balance engine."""

from decimal import Decimal

import pytest

from billtrack.services.collection_balance import (
    PAID,
    PARTIAL,
    PENDING,
    SETTLED,
    UNTOUCHED,
    CollectionState,
    adjust_payment,
    apply_payment,
    resettle,
    reverse_payment,
    settle,
)

D = Decimal


def untouched(amount="1000.00") -> CollectionState:
    return CollectionState(D(amount), D("0.00"), PENDING)


@pytest.mark.unit
class TestApplyPayment:

    def test_partial_then_settled(self):
        state = apply_payment(untouched(), "400.00")
        assert (state.balance, state.status) == (D("600.00"), PENDING)
        assert state.settlement == PARTIAL

        state = apply_payment(state, "600.00")
        assert (state.balance, state.status) == (D("0.00"), PAID)
        assert state.settlement == SETTLED

    def test_full_payment_from_untouched_leaves_balance_at_zero(self):
        state = apply_payment(untouched(), "1000.00")
        assert state.balance == D("0.00")
        assert state.status == PAID

    def test_overpayment_settles(self):
        state = apply_payment(untouched(), "1500.00")
        assert state.status == PAID
        assert state.balance == D("0.00")

        partial = CollectionState(D("1000.00"), D("300.00"), PENDING)
        state = apply_payment(partial, "500.00")
        assert (state.balance, state.status) == (D("0.00"), PAID)

    def test_settled_collection_stays_settled(self):
        settled = CollectionState(D("1000.00"), D("0.00"), PAID)
        assert apply_payment(settled, "10.00") == settled

    def test_sub_cent_amounts_round(self):
        state = apply_payment(untouched("100.00"), 33.335)
        assert state.balance == D("66.66")


@pytest.mark.unit
class TestReversePayment:

    def test_cancel_only_partial_payment_restores_full_amount(self):
        state = apply_payment(untouched(), "400.00")
        state = reverse_payment(state, "400.00", remaining_applied=0)
        assert (state.balance, state.status) == (D("1000.00"), PENDING)
        assert state.outstanding == D("1000.00")

    def test_cancel_single_full_payment_returns_to_untouched(self):
        state = apply_payment(untouched(), "1000.00")
        state = reverse_payment(state, "1000.00", remaining_applied=0)
        assert (state.balance, state.status) == (D("0.00"), PENDING)
        assert state.settlement == UNTOUCHED
        assert state.outstanding == D("1000.00")

    def test_cancel_one_of_two_uses_remaining_ledger(self):
        state = apply_payment(untouched(), "400.00")
        state = apply_payment(state, "600.00")
        state = reverse_payment(state, "600.00", remaining_applied="400.00")
        assert (state.balance, state.status) == (D("600.00"), PENDING)

    def test_cancel_overpayment_keeps_settled_when_rest_covers(self):
        state = apply_payment(untouched(), "700.00")
        state = apply_payment(state, "700.00")
        state = reverse_payment(state, "400.00", remaining_applied="1000.00")
        assert state.status == PAID

    def test_balance_never_exceeds_amount(self):
        partial = CollectionState(D("1000.00"), D("900.00"), PENDING)
        state = reverse_payment(partial, "500.00", remaining_applied=0)
        assert state.balance == D("1000.00")


@pytest.mark.unit
class TestAdjustAndResettle:

    def test_adjust_lowers_payment(self):
        state = apply_payment(untouched(), "400.00")
        state = adjust_payment(state, "400.00", "250.00", other_applied=0)
        assert (state.balance, state.status) == (D("750.00"), PENDING)

    def test_adjust_to_full_amount_settles(self):
        state = apply_payment(untouched(), "400.00")
        state = adjust_payment(state, "400.00", "1000.00", other_applied=0)
        assert (state.balance, state.status) == (D("0.00"), PAID)

    def test_adjust_same_amount_is_noop(self):
        state = apply_payment(untouched(), "400.00")
        assert adjust_payment(state, "400.00", "400.00", other_applied=0) is state

    def test_resettle_with_nothing_applied_is_untouched(self):
        state = resettle("1200.00", 0)
        assert (state.balance, state.status) == (D("0.00"), PENDING)
        assert state.outstanding == D("1200.00")

    def test_resettle_after_amount_drops_below_payments(self):
        state = resettle("300.00", "400.00")
        assert state.status == PAID

    def test_settle_partial(self):
        assert settle("1000.00", "250.00") == CollectionState(D("1000.00"), D("750.00"), PENDING)


@pytest.mark.unit
@pytest.mark.parametrize(
    "payments",
    [
        ["100.00", "200.00", "300.00"],
        ["999.99", "0.01"],
        ["1000.00"],
        ["1200.00", "5.00"],
        ["0.01"] * 5,
    ],
)
def test_balance_bound_and_status_coherence(payments):
    state = untouched()
    for amount in payments:
        state = apply_payment(state, amount)
        assert D("0.00") <= state.balance <= state.amount
        if state.status == PAID:
            assert state.balance == D("0.00")
