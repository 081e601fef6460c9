"""
FinancialRecordService -- guarded write paths for project child records.

Responsibility:
    Create, update and delete revenue, expense, billing and collection rows.
    Every mutation resolves the owning project (collection -> billing ->
    project) and passes ProjectLifecycleGuard.guard_write() first, so a
    locked or soft-deleted project rejects the write before anything is
    flushed.

Architecture position:
    Kernel > Services.  Uses ProjectLifecycleGuard; optionally AuditorService.

Invariants enforced:
    - No child write under a locked or soft-deleted project.
    - Moving a record to another project guards both projects.
    - Billing.total_amount = amount - tax unless supplied explicitly.
    - Collection.project_id always equals its billing's project_id.

Failure modes:
    - RecordNotFoundError: unknown record id.
    - DuplicateRecordError: invoice_number / collection_number taken.
    - ProjectNotFoundError / ProjectDeletedError / LockedProjectError from
      the guard.
    - ValueError: an update names a field that cannot be changed.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from revcon_kernel.domain.clock import Clock, SystemClock
from revcon_kernel.exceptions import DuplicateRecordError, RecordNotFoundError
from revcon_kernel.logging_config import get_logger
from revcon_kernel.models.audit_event import AuditAction
from revcon_kernel.models.billing import Billing, BillingStatus, compute_total_amount
from revcon_kernel.models.collection import Collection, CollectionStatus, PaymentMethod
from revcon_kernel.models.expense import Expense, ExpenseCategory, ExpenseStatus
from revcon_kernel.models.revenue import Revenue, RevenueCategory, RevenueStatus
from revcon_kernel.services.auditor_service import AuditorService
from revcon_kernel.services.base import BaseService
from revcon_kernel.services.lifecycle_guard import ProjectLifecycleGuard

logger = get_logger("services.financial_records")


_BILLING_FIELDS = frozenset({
    "project_id", "invoice_number", "billing_date", "due_date", "amount",
    "tax", "total_amount", "status", "description", "notes",
})
_COLLECTION_FIELDS = frozenset({
    "billing_id", "collection_number", "amount", "status", "collection_date",
    "payment_method", "reference_number", "notes",
})
_REVENUE_FIELDS = frozenset({
    "project_id", "revenue_code", "description", "amount", "date",
    "category", "status", "notes",
})
_EXPENSE_FIELDS = frozenset({
    "project_id", "expense_code", "description", "amount", "date",
    "category", "vendor", "receipt_number", "status", "notes",
})


class FinancialRecordService(BaseService):
    """Guarded CRUD for revenue, expense, billing and collection rows."""

    def __init__(
        self,
        session: Session,
        guard: ProjectLifecycleGuard,
        clock: Clock | None = None,
        auditor: AuditorService | None = None,
        audited_actions: frozenset[AuditAction] | None = None,
    ):
        super().__init__(session)
        self._guard = guard
        self._clock = clock or SystemClock()
        self._auditor = auditor
        self._audited_actions = audited_actions

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _load(self, model, kind: str, record_id: UUID):
        record = self.session.get(model, record_id)
        if record is None:
            raise RecordNotFoundError(kind, record_id)
        return record

    def _check_unique(self, model, kind: str, field_name: str, value: str,
                      exclude_id: UUID | None = None) -> None:
        column = getattr(model, field_name)
        stmt = select(model.id).where(column == value)
        if exclude_id is not None:
            stmt = stmt.where(model.id != exclude_id)
        if self.session.execute(stmt).first() is not None:
            raise DuplicateRecordError(kind, field_name, value)

    def _insert(self, record, kind: str, field_name: str, value: str) -> None:
        savepoint = self.session.begin_nested()
        try:
            self.session.add(record)
            self.session.flush()
        except IntegrityError:
            savepoint.rollback()
            raise DuplicateRecordError(kind, field_name, value)
        savepoint.commit()

    def _check_fields(self, kind: str, changes: dict[str, Any], allowed: frozenset[str]) -> None:
        unknown = set(changes) - allowed
        if unknown:
            raise ValueError(f"Cannot update {kind} field(s): {sorted(unknown)}")

    def _guard_move(self, current_project_id: UUID | None, new_project_id: UUID | None) -> None:
        """Guard the source and, when it differs, the destination project."""
        if current_project_id is not None:
            self._guard.guard_write(current_project_id)
        if new_project_id is not None and new_project_id != current_project_id:
            self._guard.guard_write(new_project_id)

    def _record(
        self,
        kind: str,
        record_id: UUID,
        action: AuditAction,
        actor_id: UUID,
        project_id: UUID | None,
        payload: dict | None = None,
    ) -> None:
        if self._auditor is not None and (
            self._audited_actions is None or action in self._audited_actions
        ):
            self._auditor.record_financial_record(
                kind, record_id, action, actor_id, project_id, payload,
            )
        logger.info(
            f"{kind.lower()}_{action.value.removeprefix('record_')}",
            extra={
                "record_id": str(record_id),
                "project_id": str(project_id) if project_id else None,
                "actor_id": str(actor_id),
            },
        )

    # ------------------------------------------------------------------
    # Billing
    # ------------------------------------------------------------------

    def create_billing(
        self,
        project_id: UUID,
        invoice_number: str,
        amount: Decimal,
        actor_id: UUID,
        tax: Decimal = Decimal("0"),
        total_amount: Decimal | None = None,
        billing_date: datetime | None = None,
        due_date: datetime | None = None,
        status: BillingStatus = BillingStatus.DRAFT,
        description: str | None = None,
        notes: str | None = None,
    ) -> Billing:
        self._guard.guard_write(project_id)
        self._check_unique(Billing, "Billing", "invoice_number", invoice_number)

        billing = Billing(
            project_id=project_id,
            invoice_number=invoice_number,
            amount=Decimal(amount),
            tax=Decimal(tax or 0),
            total_amount=(
                Decimal(total_amount) if total_amount is not None
                else compute_total_amount(amount, tax)
            ),
            billing_date=billing_date or self._clock.now(),
            due_date=due_date,
            status=BillingStatus(status),
            description=description,
            notes=notes,
            created_by_id=actor_id,
        )
        self._insert(billing, "Billing", "invoice_number", invoice_number)
        self._record(
            "Billing", billing.id, AuditAction.RECORD_CREATED, actor_id, project_id,
            {"invoice_number": invoice_number, "total_amount": billing.total_amount},
        )
        return billing

    def update_billing(self, billing_id: UUID, actor_id: UUID, **changes: Any) -> Billing:
        """
        Apply ``changes`` to a billing.

        When amount or tax changes and total_amount is not given, the total
        is recomputed.  Moving the billing to another project moves its
        collections with it.
        """
        self._check_fields("Billing", changes, _BILLING_FIELDS)
        billing = self._load(Billing, "Billing", billing_id)
        new_project_id = changes.get("project_id", billing.project_id)
        self._guard_move(billing.project_id, new_project_id)

        if "invoice_number" in changes and changes["invoice_number"] != billing.invoice_number:
            self._check_unique(
                Billing, "Billing", "invoice_number", changes["invoice_number"],
                exclude_id=billing.id,
            )

        for field_name, value in changes.items():
            setattr(billing, field_name, value)
        if ("amount" in changes or "tax" in changes) and "total_amount" not in changes:
            billing.total_amount = compute_total_amount(billing.amount, billing.tax)
        billing.updated_by_id = actor_id

        if "project_id" in changes:
            self.session.execute(
                update(Collection)
                .where(Collection.billing_id == billing.id)
                .values(project_id=new_project_id)
                .execution_options(synchronize_session="fetch")
            )

        self.session.flush()
        self._record(
            "Billing", billing.id, AuditAction.RECORD_UPDATED, actor_id,
            billing.project_id, {"fields": sorted(changes)},
        )
        return billing

    def delete_billing(self, billing_id: UUID, actor_id: UUID) -> None:
        """Delete a billing together with its collections."""
        billing = self._load(Billing, "Billing", billing_id)
        self._guard.guard_write(billing.project_id)
        project_id = billing.project_id

        collections = self.session.execute(
            select(Collection).where(Collection.billing_id == billing.id)
        ).scalars().all()
        for collection in collections:
            self.session.delete(collection)
        self.session.flush()
        self.session.delete(billing)
        self.session.flush()

        self._record(
            "Billing", billing_id, AuditAction.RECORD_DELETED, actor_id, project_id,
            {"collections_deleted": len(collections)},
        )

    # ------------------------------------------------------------------
    # Collection
    # ------------------------------------------------------------------

    def create_collection(
        self,
        billing_id: UUID,
        collection_number: str,
        amount: Decimal,
        actor_id: UUID,
        collection_date: datetime | None = None,
        status: CollectionStatus = CollectionStatus.UNPAID,
        payment_method: PaymentMethod | None = None,
        reference_number: str | None = None,
        notes: str | None = None,
    ) -> Collection:
        """Create a collection; project_id is copied from the billing."""
        billing = self._load(Billing, "Billing", billing_id)
        self._guard.guard_write(billing.project_id)
        self._check_unique(Collection, "Collection", "collection_number", collection_number)

        collection = Collection(
            billing_id=billing.id,
            project_id=billing.project_id,
            collection_number=collection_number,
            amount=Decimal(amount),
            status=CollectionStatus(status),
            collection_date=collection_date or self._clock.now(),
            payment_method=PaymentMethod(payment_method) if payment_method else None,
            reference_number=reference_number,
            notes=notes,
            created_by_id=actor_id,
        )
        self._insert(collection, "Collection", "collection_number", collection_number)
        self._record(
            "Collection", collection.id, AuditAction.RECORD_CREATED, actor_id,
            billing.project_id,
            {"collection_number": collection_number, "amount": collection.amount},
        )
        return collection

    def update_collection(
        self, collection_id: UUID, actor_id: UUID, **changes: Any,
    ) -> Collection:
        self._check_fields("Collection", changes, _COLLECTION_FIELDS)
        collection = self._load(Collection, "Collection", collection_id)

        new_project_id = collection.project_id
        if "billing_id" in changes and changes["billing_id"] != collection.billing_id:
            new_billing = self._load(Billing, "Billing", changes["billing_id"])
            new_project_id = new_billing.project_id
        self._guard_move(collection.project_id, new_project_id)

        if (
            "collection_number" in changes
            and changes["collection_number"] != collection.collection_number
        ):
            self._check_unique(
                Collection, "Collection", "collection_number",
                changes["collection_number"], exclude_id=collection.id,
            )

        for field_name, value in changes.items():
            setattr(collection, field_name, value)
        collection.project_id = new_project_id
        collection.updated_by_id = actor_id
        self.session.flush()

        self._record(
            "Collection", collection.id, AuditAction.RECORD_UPDATED, actor_id,
            new_project_id, {"fields": sorted(changes)},
        )
        return collection

    def delete_collection(self, collection_id: UUID, actor_id: UUID) -> None:
        collection = self._load(Collection, "Collection", collection_id)
        self._guard.guard_write(collection.project_id)
        project_id = collection.project_id

        self.session.delete(collection)
        self.session.flush()
        self._record(
            "Collection", collection_id, AuditAction.RECORD_DELETED, actor_id, project_id,
        )

    # ------------------------------------------------------------------
    # Revenue
    # ------------------------------------------------------------------

    def create_revenue(
        self,
        project_id: UUID,
        revenue_code: str,
        description: str,
        amount: Decimal,
        actor_id: UUID,
        date: datetime | None = None,
        category: RevenueCategory = RevenueCategory.SERVICE,
        status: RevenueStatus = RevenueStatus.RECORDED,
        notes: str | None = None,
    ) -> Revenue:
        self._guard.guard_write(project_id)

        revenue = Revenue(
            project_id=project_id,
            revenue_code=revenue_code,
            description=description,
            amount=Decimal(amount),
            date=date or self._clock.now(),
            category=RevenueCategory(category),
            status=RevenueStatus(status),
            notes=notes,
            created_by_id=actor_id,
        )
        self.session.add(revenue)
        self.session.flush()
        self._record(
            "Revenue", revenue.id, AuditAction.RECORD_CREATED, actor_id, project_id,
            {"revenue_code": revenue_code, "amount": revenue.amount},
        )
        return revenue

    def update_revenue(self, revenue_id: UUID, actor_id: UUID, **changes: Any) -> Revenue:
        self._check_fields("Revenue", changes, _REVENUE_FIELDS)
        revenue = self._load(Revenue, "Revenue", revenue_id)
        self._guard_move(revenue.project_id, changes.get("project_id", revenue.project_id))

        for field_name, value in changes.items():
            setattr(revenue, field_name, value)
        revenue.updated_by_id = actor_id
        self.session.flush()

        self._record(
            "Revenue", revenue.id, AuditAction.RECORD_UPDATED, actor_id,
            revenue.project_id, {"fields": sorted(changes)},
        )
        return revenue

    def delete_revenue(self, revenue_id: UUID, actor_id: UUID) -> None:
        revenue = self._load(Revenue, "Revenue", revenue_id)
        self._guard.guard_write(revenue.project_id)
        project_id = revenue.project_id

        self.session.delete(revenue)
        self.session.flush()
        self._record("Revenue", revenue_id, AuditAction.RECORD_DELETED, actor_id, project_id)

    # ------------------------------------------------------------------
    # Expense
    # ------------------------------------------------------------------

    def create_expense(
        self,
        project_id: UUID | None,
        expense_code: str,
        description: str,
        amount: Decimal,
        actor_id: UUID,
        date: datetime | None = None,
        category: ExpenseCategory = ExpenseCategory.OTHER,
        vendor: str | None = None,
        receipt_number: str | None = None,
        status: ExpenseStatus = ExpenseStatus.PENDING,
        notes: str | None = None,
    ) -> Expense:
        """Create an expense.  ``project_id=None`` records a general expense."""
        if project_id is not None:
            self._guard.guard_write(project_id)

        expense = Expense(
            project_id=project_id,
            expense_code=expense_code,
            description=description,
            amount=Decimal(amount),
            date=date or self._clock.now(),
            category=ExpenseCategory(category),
            vendor=vendor,
            receipt_number=receipt_number,
            status=ExpenseStatus(status),
            notes=notes,
            created_by_id=actor_id,
        )
        self.session.add(expense)
        self.session.flush()
        self._record(
            "Expense", expense.id, AuditAction.RECORD_CREATED, actor_id, project_id,
            {"expense_code": expense_code, "amount": expense.amount},
        )
        return expense

    def update_expense(self, expense_id: UUID, actor_id: UUID, **changes: Any) -> Expense:
        self._check_fields("Expense", changes, _EXPENSE_FIELDS)
        expense = self._load(Expense, "Expense", expense_id)
        self._guard_move(expense.project_id, changes.get("project_id", expense.project_id))

        for field_name, value in changes.items():
            setattr(expense, field_name, value)
        expense.updated_by_id = actor_id
        self.session.flush()

        self._record(
            "Expense", expense.id, AuditAction.RECORD_UPDATED, actor_id,
            expense.project_id, {"fields": sorted(changes)},
        )
        return expense

    def delete_expense(self, expense_id: UUID, actor_id: UUID) -> None:
        expense = self._load(Expense, "Expense", expense_id)
        if expense.project_id is not None:
            self._guard.guard_write(expense.project_id)
        project_id = expense.project_id

        self.session.delete(expense)
        self.session.flush()
        self._record("Expense", expense_id, AuditAction.RECORD_DELETED, actor_id, project_id)
