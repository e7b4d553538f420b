"""
PracticeOps Payments — Entities
=================================
PaymentEvent: append-mostly ledger of payment attempts on an invoice.
WebhookResult: a verified provider callback, already normalized.

An invoice may carry many PaymentEvents (CREATED → COMPLETED,
CREATED → CANCELLED, ...). New outcomes are appended as new rows;
PAYMENT_EVENT_LIFECYCLE only logs unexpected sequences.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from core.lifecycle.definitions import PAYMENT_EVENT_LIFECYCLE, PaymentEventStatus
from engines.invoicing.models import DESTINATION_OPERATING

PROVIDER_MANUAL = "manual"

# Sessions the anti-forgery check accepts a callback against.
OPEN_SESSION_STATUSES = frozenset({
    PaymentEventStatus.CREATED,
    PaymentEventStatus.PENDING,
})

# Any of these recorded for a session closes it to further callbacks.
CLOSED_SESSION_STATUSES = frozenset({
    PaymentEventStatus.COMPLETED,
    PaymentEventStatus.FAILED,
    PaymentEventStatus.EXPIRED,
    PaymentEventStatus.CANCELLED,
})


@dataclass
class PaymentEvent:
    id: uuid.UUID
    invoice_id: uuid.UUID
    provider_slug: str
    status: str
    amount: Decimal
    currency: str
    session_id: Optional[str] = None
    payment_reference: Optional[str] = None
    payment_destination: str = DESTINATION_OPERATING
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.provider_slug:
            raise ValueError("provider_slug must be non-empty.")
        if self.status not in PAYMENT_EVENT_LIFECYCLE.states:
            raise ValueError(f"Unknown payment event status '{self.status}'.")

    @property
    def is_open_session(self) -> bool:
        return self.status in OPEN_SESSION_STATUSES


@dataclass(frozen=True)
class WebhookResult:
    """
    Normalized, signature-verified provider callback.

    metadata carries at least "invoice_id" (str UUID) and
    "tenant_schema" as set when the session was created.
    """

    status: str
    session_id: Optional[str]
    payment_reference: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def invoice_id(self) -> Optional[uuid.UUID]:
        raw = self.metadata.get("invoice_id")
        if raw is None:
            return None
        try:
            return uuid.UUID(str(raw))
        except ValueError:
            return None
