"""
Pytest fixtures for the revenue control test suite.

Provides:
- In-memory SQLite sessions (one fresh database per test)
- A DeterministicClock pinned to 2026-03-10 09:00 UTC
- Kernel services wired to that session and clock
- Record factories for projects, users, billings and collections
- Captured structured logs

Environment Variables:
- DATABASE_URL: run against another database (e.g. PostgreSQL) instead of
  in-memory SQLite.  Tables are created and dropped per test.
"""

import json
import logging
import os
from datetime import datetime, timedelta
from decimal import Decimal
from io import StringIO
from itertools import count
from uuid import UUID, uuid4

import pytest

from revcon_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from revcon_kernel.domain.clock import DeterministicClock
from revcon_kernel.domain.permissions import Role, StaticRoleOracle
from revcon_kernel.domain.project_workflow import ProjectStatus
from revcon_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from revcon_kernel.models.billing import Billing, BillingStatus
from revcon_kernel.models.collection import Collection, CollectionStatus
from revcon_kernel.models.project import Project
from revcon_kernel.models.user import User
from revcon_kernel.services.auditor_service import AuditorService
from revcon_kernel.services.financial_record_service import FinancialRecordService
from revcon_kernel.services.lifecycle_guard import ProjectLifecycleGuard
from revcon_kernel.services.notification_service import NotificationService
from revcon_notifications.models import ScanRunModel  # noqa: F401  registers the scan run table

# Stable across imports as both ``conftest`` and ``tests.conftest``
TEST_ACTOR_ID = UUID("00000000-0000-4000-8000-000000000001")

# Reference instant for every test unless a test moves the clock.
# Naive: SQLite strips tzinfo, so values read back compare equal.
TEST_NOW = datetime(2026, 3, 10, 9, 0, 0)

DEFAULT_DATABASE_URL = "sqlite:///:memory:"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture revcon logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, guard, project):
            guard.lock(project.id, TEST_ACTOR_ID)
            assert any(r["message"] == "project_locked" for r in captured_logs())
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("revcon")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database
# =============================================================================


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


@pytest.fixture
def db_engine():
    """Fresh engine and schema per test."""
    eng = init_engine_from_url(get_database_url(), echo=False)
    create_tables()
    yield eng
    drop_tables()
    reset_engine()


@pytest.fixture
def session(db_engine):
    sess = get_session()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def session_factory(db_engine):
    return get_session_factory()


# =============================================================================
# Clock and services
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock(TEST_NOW)


@pytest.fixture
def actor_id():
    return TEST_ACTOR_ID


@pytest.fixture
def auditor(session, clock):
    return AuditorService(session, clock)


@pytest.fixture
def guard(session, clock, auditor):
    """Lifecycle guard without a permission oracle (caller-authorized)."""
    return ProjectLifecycleGuard(session, clock=clock, auditor=auditor)


@pytest.fixture
def role_oracle():
    """Oracle granting TEST_ACTOR_ID master_admin; everyone else nothing."""
    return StaticRoleOracle({TEST_ACTOR_ID: Role.MASTER_ADMIN})


@pytest.fixture
def records(session, guard, clock, auditor):
    return FinancialRecordService(session, guard, clock=clock, auditor=auditor)


@pytest.fixture
def notification_service(session, clock):
    return NotificationService(session, clock)


# =============================================================================
# Factories
# =============================================================================


_codes = count(1)


@pytest.fixture
def make_project(session, clock):
    """Create a project; ``end_in_days`` is relative to the clock's today."""

    def _make(
        code: str | None = None,
        name: str | None = None,
        status: ProjectStatus = ProjectStatus.ONGOING,
        end_in_days: int = 30,
        **kwargs,
    ) -> Project:
        n = next(_codes)
        code = code or f"PRJ-{n:04d}"
        end_date = kwargs.pop("end_date", clock.now() + timedelta(days=end_in_days))
        project = Project(
            code=code,
            name=name or f"Project {code}",
            status=status,
            start_date=clock.now() - timedelta(days=60),
            end_date=end_date,
            created_by_id=TEST_ACTOR_ID,
            **kwargs,
        )
        session.add(project)
        session.flush()
        return project

    return _make


@pytest.fixture
def project(make_project):
    return make_project(code="PRJ-MAIN", name="Main Street Bridge")


@pytest.fixture
def make_user(session):
    def _make(email: str | None = None, role: Role = Role.VIEWER, **kwargs) -> User:
        user = User(
            email=email or f"user-{uuid4().hex[:8]}@example.com",
            first_name=kwargs.pop("first_name", "Test"),
            last_name=kwargs.pop("last_name", "User"),
            role=role,
            **kwargs,
        )
        session.add(user)
        session.flush()
        return user

    return _make


@pytest.fixture
def user(make_user):
    return make_user(email="alice@example.com", role=Role.MASTER_ADMIN)


@pytest.fixture
def make_billing(session, clock):
    """Insert a billing directly (bypasses the lifecycle guard)."""

    def _make(
        project: Project,
        invoice_number: str | None = None,
        total_amount: Decimal = Decimal("5000.00"),
        status: BillingStatus = BillingStatus.SENT,
        **kwargs,
    ) -> Billing:
        billing = Billing(
            project_id=project.id,
            invoice_number=invoice_number or f"INV-{uuid4().hex[:8]}",
            amount=kwargs.pop("amount", total_amount),
            tax=kwargs.pop("tax", Decimal("0")),
            total_amount=total_amount,
            billing_date=clock.now(),
            status=status,
            created_by_id=TEST_ACTOR_ID,
            **kwargs,
        )
        session.add(billing)
        session.flush()
        return billing

    return _make


@pytest.fixture
def make_collection(session, clock):
    def _make(billing: Billing, amount: Decimal, **kwargs) -> Collection:
        collection = Collection(
            billing_id=billing.id,
            project_id=billing.project_id,
            collection_number=kwargs.pop("collection_number", f"COL-{uuid4().hex[:8]}"),
            amount=amount,
            status=kwargs.pop("status", CollectionStatus.PARTIAL),
            collection_date=clock.now(),
            created_by_id=TEST_ACTOR_ID,
            **kwargs,
        )
        session.add(collection)
        session.flush()
        return collection

    return _make
