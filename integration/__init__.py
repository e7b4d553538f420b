"""
PracticeOps Integration Layer — Public API
============================================
Contracts for the services the workflow engines call but do not
own: customers, projects, notifications, read-model sync, payment
providers, member and tenant directories.

Doctrine: engines depend on these Protocols only. Concrete
implementations (integration.memory for tests and local runs)
are injected at construction.
"""

from integration.collaborators import (
    CheckoutSession,
    CustomerDirectory,
    CustomerLifecycle,
    CustomerRecord,
    MemberAlreadyAssigned,
    MemberDirectory,
    Notification,
    NotificationSender,
    PaymentGateway,
    ProjectService,
    ReadModelSync,
    TenantDirectory,
)

__all__ = [
    # Values
    "CustomerLifecycle",
    "CustomerRecord",
    "CheckoutSession",
    "Notification",
    # Errors
    "MemberAlreadyAssigned",
    # Transactional collaborators
    "CustomerDirectory",
    "ProjectService",
    # Side-effect collaborators
    "NotificationSender",
    "ReadModelSync",
    "PaymentGateway",
    # Directories
    "MemberDirectory",
    "TenantDirectory",
]
