"""ORM models for the RevCon kernel."""

from revcon_kernel.models.audit_event import AuditAction, AuditEvent
from revcon_kernel.models.billing import (
    OUTSTANDING_BILLING_STATUSES,
    Billing,
    BillingStatus,
    compute_total_amount,
)
from revcon_kernel.models.collection import Collection, CollectionStatus, PaymentMethod
from revcon_kernel.models.company_profile import CompanyProfile
from revcon_kernel.models.expense import Expense, ExpenseCategory, ExpenseStatus
from revcon_kernel.models.notification import (
    Notification,
    NotificationPriority,
    NotificationType,
    RelatedKind,
)
from revcon_kernel.models.project import Project
from revcon_kernel.models.revenue import Revenue, RevenueCategory, RevenueStatus
from revcon_kernel.models.user import User
from revcon_kernel.services.sequence_service import SequenceCounter

__all__ = [
    "AuditAction",
    "AuditEvent",
    "Billing",
    "BillingStatus",
    "Collection",
    "CollectionStatus",
    "CompanyProfile",
    "Expense",
    "ExpenseCategory",
    "ExpenseStatus",
    "Notification",
    "NotificationPriority",
    "NotificationType",
    "OUTSTANDING_BILLING_STATUSES",
    "PaymentMethod",
    "Project",
    "RelatedKind",
    "Revenue",
    "RevenueCategory",
    "RevenueStatus",
    "SequenceCounter",
    "User",
    "compute_total_amount",
    "import_all_models",
]


def import_all_models() -> None:
    """Import every ORM module so Base.metadata knows all tables.

    Kernel models are imported above; the scan-run history table lives in
    revcon_notifications and is pulled in here.
    """
    import revcon_notifications.models  # noqa: F401
