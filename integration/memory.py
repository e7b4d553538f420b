"""
PracticeOps Integration — In-Memory Collaborators
===================================================
Deterministic collaborator implementations for tests and local runs.

Customer and project rows live in the persistence gateway, so they
commit and roll back with the calling transaction. The recording
sender and sync writer capture the ambient tenant they were called
under, which is how deferred rebinding is observed.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from core.context.tenant_context import TenantContext, current_tenant
from core.errors import Conflict
from core.persistence.gateway import PersistenceGateway, load_or_raise
from core.transactions.unit_of_work import Transaction
from integration.collaborators import (
    CheckoutSession,
    CustomerLifecycle,
    CustomerRecord,
    MemberAlreadyAssigned,
    Notification,
)

logger = logging.getLogger("practiceops.integration")


# ══════════════════════════════════════════════════════════════
# ROWS
# ══════════════════════════════════════════════════════════════

@dataclass
class Customer:
    id: uuid.UUID
    name: str
    lifecycle_status: str = CustomerLifecycle.PROSPECT


@dataclass
class PortalContact:
    id: uuid.UUID
    customer_id: uuid.UUID
    email: str


@dataclass
class ProjectTemplate:
    id: uuid.UUID
    name: str
    default_member_ids: Tuple[uuid.UUID, ...] = ()


@dataclass
class Project:
    id: uuid.UUID
    name: str
    customer_id: uuid.UUID
    template_id: Optional[uuid.UUID] = None
    created_by: Optional[uuid.UUID] = None


@dataclass
class ProjectMember:
    id: uuid.UUID
    project_id: uuid.UUID
    member_id: uuid.UUID


# ══════════════════════════════════════════════════════════════
# CUSTOMERS
# ══════════════════════════════════════════════════════════════

class InMemoryCustomerDirectory:
    def __init__(self, gateway: PersistenceGateway):
        self._gateway = gateway

    def add_customer(
        self, tx: Transaction, name: str, lifecycle_status: str = CustomerLifecycle.PROSPECT
    ) -> uuid.UUID:
        customer = Customer(id=uuid.uuid4(), name=name, lifecycle_status=lifecycle_status)
        self._gateway.save(tx, customer)
        return customer.id

    def add_contact(self, tx: Transaction, customer_id: uuid.UUID, email: str) -> uuid.UUID:
        load_or_raise(self._gateway, tx, Customer, customer_id)
        contact = PortalContact(id=uuid.uuid4(), customer_id=customer_id, email=email)
        self._gateway.save(tx, contact)
        return contact.id

    def get_customer(self, tx: Transaction, customer_id: uuid.UUID) -> Optional[CustomerRecord]:
        customer = self._gateway.get(tx, Customer, customer_id)
        if customer is None:
            return None
        return CustomerRecord(
            customer_id=customer.id,
            name=customer.name,
            lifecycle_status=customer.lifecycle_status,
        )

    def transition_lifecycle(self, tx: Transaction, customer_id: uuid.UUID, target: str) -> str:
        customer = load_or_raise(self._gateway, tx, Customer, customer_id)
        previous = customer.lifecycle_status
        customer.lifecycle_status = target
        self._gateway.save(tx, customer)
        logger.info(f"Customer {customer_id} lifecycle {previous} → {target}")
        return previous

    def contact_belongs_to(
        self, tx: Transaction, portal_contact_id: uuid.UUID, customer_id: uuid.UUID
    ) -> bool:
        contact = self._gateway.get(tx, PortalContact, portal_contact_id)
        return contact is not None and contact.customer_id == customer_id


# ══════════════════════════════════════════════════════════════
# PROJECTS
# ══════════════════════════════════════════════════════════════

class InMemoryProjectService:
    """Refuses to create projects for PROSPECT customers."""

    def __init__(self, gateway: PersistenceGateway):
        self._gateway = gateway

    def add_template(
        self, tx: Transaction, name: str, default_member_ids: Iterable[uuid.UUID] = ()
    ) -> uuid.UUID:
        template = ProjectTemplate(
            id=uuid.uuid4(), name=name, default_member_ids=tuple(default_member_ids)
        )
        self._gateway.save(tx, template)
        return template.id

    def create_project(
        self,
        tx: Transaction,
        *,
        name: str,
        customer_id: uuid.UUID,
        template_id: Optional[uuid.UUID] = None,
        created_by: Optional[uuid.UUID] = None,
    ) -> uuid.UUID:
        customer = load_or_raise(self._gateway, tx, Customer, customer_id)
        if customer.lifecycle_status == CustomerLifecycle.PROSPECT:
            raise Conflict(
                f"Cannot create a project for customer {customer_id} in PROSPECT lifecycle."
            )

        template = None
        if template_id is not None:
            template = load_or_raise(self._gateway, tx, ProjectTemplate, template_id)

        project = Project(
            id=uuid.uuid4(),
            name=name,
            customer_id=customer_id,
            template_id=template_id,
            created_by=created_by,
        )
        self._gateway.save(tx, project)
        if template is not None:
            for member_id in template.default_member_ids:
                self.add_member(tx, project.id, member_id)
        return project.id

    def add_member(self, tx: Transaction, project_id: uuid.UUID, member_id: uuid.UUID) -> None:
        load_or_raise(self._gateway, tx, Project, project_id)
        if self._gateway.exists(tx, ProjectMember, project_id=project_id, member_id=member_id):
            raise MemberAlreadyAssigned(project_id, member_id)
        self._gateway.save(
            tx, ProjectMember(id=uuid.uuid4(), project_id=project_id, member_id=member_id)
        )

    def members_of(self, tx: Transaction, project_id: uuid.UUID) -> List[uuid.UUID]:
        return [m.member_id for m in self._gateway.find(tx, ProjectMember, project_id=project_id)]


# ══════════════════════════════════════════════════════════════
# NOTIFICATIONS / READ-MODEL SYNC
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SentNotification:
    notification: Notification
    ambient_tenant: Optional[TenantContext]


class RecordingNotificationSender:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.sent: List[SentNotification] = []

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
        notification = Notification(
            tenant_schema=ctx.tenant_schema,
            org_id=ctx.org_id,
            recipient_id=recipient_id,
            notification_type=notification_type,
            title=title,
            body=body,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        with self._lock:
            self.sent.append(SentNotification(notification, current_tenant()))

    def of_type(self, notification_type: str) -> List[Notification]:
        with self._lock:
            return [
                s.notification for s in self.sent
                if s.notification.notification_type == notification_type
            ]


@dataclass(frozen=True)
class SyncedSnapshot:
    tenant_schema: str
    org_id: str
    snapshot: dict = field(hash=False)


class RecordingReadModelSync:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.pushed: List[SyncedSnapshot] = []

    def push_proposal(self, ctx: TenantContext, snapshot: dict) -> None:
        with self._lock:
            self.pushed.append(SyncedSnapshot(ctx.tenant_schema, ctx.org_id, dict(snapshot)))

    def statuses_for(self, proposal_id: uuid.UUID) -> List[str]:
        with self._lock:
            return [
                p.snapshot["status"] for p in self.pushed
                if p.snapshot.get("proposal_id") == str(proposal_id)
            ]


# ══════════════════════════════════════════════════════════════
# PAYMENT GATEWAY
# ══════════════════════════════════════════════════════════════

class FakePaymentGateway:
    def __init__(self, provider_slug: str = "stripe") -> None:
        self.provider_slug = provider_slug
        self.created: List[CheckoutSession] = []
        self.expired: List[str] = []

    def create_session(
        self,
        ctx: TenantContext,
        *,
        invoice_id: uuid.UUID,
        amount: Decimal,
        currency: str,
        description: str,
    ) -> CheckoutSession:
        session_id = f"cs_{uuid.uuid4().hex[:24]}"
        session = CheckoutSession(
            session_id=session_id,
            url=f"https://checkout.example.test/{self.provider_slug}/{session_id}",
        )
        self.created.append(session)
        return session

    def expire_session(self, ctx: TenantContext, session_id: str) -> None:
        self.expired.append(session_id)


# ══════════════════════════════════════════════════════════════
# DIRECTORIES
# ══════════════════════════════════════════════════════════════

class InMemoryMemberDirectory:
    def __init__(self) -> None:
        self._roles: Dict[str, Dict[uuid.UUID, str]] = {}

    def add_member(self, ctx: TenantContext, member_id: uuid.UUID, role: str) -> None:
        self._roles.setdefault(ctx.tenant_schema, {})[member_id] = role

    def member_ids_with_roles(self, ctx: TenantContext, roles: Iterable[str]) -> List[uuid.UUID]:
        wanted = set(roles)
        members = self._roles.get(ctx.tenant_schema, {})
        return [member_id for member_id, role in members.items() if role in wanted]


class InMemoryTenantDirectory:
    def __init__(self, tenants: Iterable[TenantContext] = ()) -> None:
        self._tenants: List[TenantContext] = [t.as_system() for t in tenants]

    def register(self, ctx: TenantContext) -> None:
        self._tenants.append(ctx.as_system())

    def active_tenants(self) -> List[TenantContext]:
        return list(self._tenants)
