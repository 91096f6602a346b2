"""Aggregate model imports for Alembic auto-detection and relationship resolution."""

# Parties
from billtrack.models.client import Client  # noqa: F401
from billtrack.models.client_department import ClientDepartment  # noqa: F401
from billtrack.models.client_branch import ClientBranch  # noqa: F401

# Billing & collections
from billtrack.models.billing import Billing  # noqa: F401
from billtrack.models.cancelled_invoice import CancelledInvoice  # noqa: F401
from billtrack.models.collection import Collection  # noqa: F401
from billtrack.models.payment import (  # noqa: F401
    Payment,
    PaymentCheque,
    PaymentOnlineTransfer,
    PaymentPDC,
)

# Internal
from billtrack.models.machine import Machine  # noqa: F401
from billtrack.models.department import Department  # noqa: F401
from billtrack.models.user import User, UserRole  # noqa: F401
