"""
PracticeOps Integration — Collaborator Contracts
==================================================
Black-box services the workflow engines call but do not own.

Transactional collaborators (customers, projects) take the active
Transaction: their writes commit or roll back with the caller.
Side-effect collaborators (notifications, read-model sync) take a
TenantContext and are only ever invoked from deferred actions.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional, Protocol

from core.context.tenant_context import TenantContext
from core.errors import Conflict
from core.transactions.unit_of_work import Transaction


class CustomerLifecycle:
    PROSPECT = "PROSPECT"
    ONBOARDING = "ONBOARDING"
    ACTIVE = "ACTIVE"
    DORMANT = "DORMANT"
    OFFBOARDED = "OFFBOARDED"


class MemberAlreadyAssigned(Conflict):
    """The member is already on the project."""

    def __init__(self, project_id: uuid.UUID, member_id: uuid.UUID):
        self.project_id = project_id
        self.member_id = member_id
        super().__init__(f"Member {member_id} is already assigned to project {project_id}.")


# ══════════════════════════════════════════════════════════════
# VALUE OBJECTS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CustomerRecord:
    customer_id: uuid.UUID
    name: str
    lifecycle_status: str


@dataclass(frozen=True)
class CheckoutSession:
    session_id: str
    url: str
    expires_at: Optional[datetime] = None


@dataclass(frozen=True)
class Notification:
    """An in-app notification as handed to the sender."""

    tenant_schema: str
    org_id: str
    recipient_id: uuid.UUID
    notification_type: str
    title: str
    body: str
    entity_type: Optional[str] = None
    entity_id: Optional[uuid.UUID] = None


# ══════════════════════════════════════════════════════════════
# TRANSACTIONAL COLLABORATORS
# ══════════════════════════════════════════════════════════════

class CustomerDirectory(Protocol):
    def get_customer(self, tx: Transaction, customer_id: uuid.UUID) -> Optional[CustomerRecord]:
        ...  # pragma: no cover

    def transition_lifecycle(self, tx: Transaction, customer_id: uuid.UUID, target: str) -> str:
        """Move the customer to target; returns the previous status."""
        ...  # pragma: no cover

    def contact_belongs_to(
        self, tx: Transaction, portal_contact_id: uuid.UUID, customer_id: uuid.UUID
    ) -> bool:
        ...  # pragma: no cover


class ProjectService(Protocol):
    def create_project(
        self,
        tx: Transaction,
        *,
        name: str,
        customer_id: uuid.UUID,
        template_id: Optional[uuid.UUID] = None,
        created_by: Optional[uuid.UUID] = None,
    ) -> uuid.UUID:
        ...  # pragma: no cover

    def add_member(self, tx: Transaction, project_id: uuid.UUID, member_id: uuid.UUID) -> None:
        """Raises MemberAlreadyAssigned when the member is already present."""
        ...  # pragma: no cover


# ══════════════════════════════════════════════════════════════
# SIDE-EFFECT COLLABORATORS
# ══════════════════════════════════════════════════════════════

class NotificationSender(Protocol):
    def send(
        self,
        ctx: TenantContext,
        *,
        recipient_id: uuid.UUID,
        notification_type: str,
        title: str,
        body: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[uuid.UUID] = None,
    ) -> None:
        ...  # pragma: no cover


class ReadModelSync(Protocol):
    def push_proposal(self, ctx: TenantContext, snapshot: dict) -> None:
        """Push a denormalized proposal snapshot to the portal read path."""
        ...  # pragma: no cover


class PaymentGateway(Protocol):
    provider_slug: str

    def create_session(
        self,
        ctx: TenantContext,
        *,
        invoice_id: uuid.UUID,
        amount: Decimal,
        currency: str,
        description: str,
    ) -> CheckoutSession:
        ...  # pragma: no cover

    def expire_session(self, ctx: TenantContext, session_id: str) -> None:
        ...  # pragma: no cover


class MemberDirectory(Protocol):
    def member_ids_with_roles(self, ctx: TenantContext, roles: Iterable[str]) -> List[uuid.UUID]:
        ...  # pragma: no cover


class TenantDirectory(Protocol):
    def active_tenants(self) -> List[TenantContext]:
        """System contexts for every provisioned tenant."""
        ...  # pragma: no cover
