"""PracticeOps Invoicing - policies."""

from __future__ import annotations

from typing import Sequence

from core.policy.rejection import ReasonCode, RejectionReason
from engines.invoicing.models import InvoiceLine


def invoice_must_have_lines_policy(lines: Sequence[InvoiceLine]) -> RejectionReason | None:
    if not lines:
        return RejectionReason(
            code=ReasonCode.NO_LINE_ITEMS,
            message="No line items",
            policy_name="invoice_must_have_lines_policy",
        )
    return None
