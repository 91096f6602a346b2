"""Payment mode satellites.

Each non-cash mode stores its own fields in a 1:1 row keyed by the payment
id.  `attach` creates the satellite for a new payment; `replace` upserts it
on edit and drops the satellites of every other mode so a payment never
carries details for a mode it is not in.

Both raise ValidationFailure for an unknown mode or a missing required
field.  They run after the Payment row is flushed, so callers must be
inside `atomic()` for the payment to roll back with them.
"""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from billtrack.middleware.exceptions import ValidationFailure
from billtrack.models.payment import (
    PAYMENT_MODES,
    Payment,
    PaymentCheque,
    PaymentOnlineTransfer,
    PaymentPDC,
)


@dataclass(frozen=True)
class ModeSpec:
    model: type
    relation: str          # attribute on Payment
    required: tuple[str, ...]
    optional: tuple[str, ...] = ()

    @property
    def fields(self) -> tuple[str, ...]:
        return self.required + self.optional


MODE_REGISTRY: dict[str, ModeSpec | None] = {
    "cash": None,
    "cheque": ModeSpec(
        model=PaymentCheque,
        relation="cheque",
        required=("cheque_number", "cheque_date"),
        optional=("bank_name",),
    ),
    "online_transfer": ModeSpec(
        model=PaymentOnlineTransfer,
        relation="online_transfer",
        required=("reference_number", "transfer_date"),
        optional=("bank_name",),
    ),
    "pdc": ModeSpec(
        model=PaymentPDC,
        relation="pdc",
        required=("pdc_number", "pdc_date"),
        optional=("deposit_date", "credit_date"),
    ),
}


def resolve_mode(mode: str | None) -> ModeSpec | None:
    if mode not in MODE_REGISTRY:
        raise ValidationFailure(
            f"Unknown payment mode: {mode!r}",
            details={"allowed": list(PAYMENT_MODES)},
        )
    return MODE_REGISTRY[mode]


def _mode_values(spec: ModeSpec, data: dict, current=None) -> dict:
    values = {}
    for name in spec.fields:
        value = data.get(name)
        if value is None and current is not None:
            value = getattr(current, name)
        values[name] = value

    missing = [name for name in spec.required if values[name] in (None, "")]
    if missing:
        raise ValidationFailure(
            f"Missing fields for {spec.relation} payment: {', '.join(missing)}",
            details={"missing": missing},
        )
    return values


async def attach(db: AsyncSession, payment: Payment, data: dict) -> None:
    """Create the satellite row for a freshly inserted payment."""
    spec = resolve_mode(payment.mode)
    if spec is None:
        return

    values = _mode_values(spec, data)
    db.add(spec.model(id=payment.id, **values))
    await db.flush()


async def replace(db: AsyncSession, payment: Payment, data: dict) -> None:
    """Upsert the satellite for the payment's (possibly new) mode."""
    spec = resolve_mode(payment.mode)

    for other in MODE_REGISTRY.values():
        if other is None or other is spec:
            continue
        if getattr(payment, other.relation) is not None:
            # delete-orphan removes the row on flush
            setattr(payment, other.relation, None)

    if spec is not None:
        current = getattr(payment, spec.relation)
        values = _mode_values(spec, data, current)
        if current is None:
            satellite = spec.model(id=payment.id, **values)
            db.add(satellite)
            setattr(payment, spec.relation, satellite)
        else:
            for name, value in values.items():
                setattr(current, name, value)

    await db.flush()
