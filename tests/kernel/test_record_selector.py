"""Tests for RecordSelector -- the scan's read-only view of the records."""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from revcon_kernel.domain.project_workflow import ProjectStatus
from revcon_kernel.models.billing import BillingStatus
from revcon_kernel.selectors import RecordSelector
from revcon_kernel.selectors.record_selector import _in_zone


class TestLiveProjects:
    def test_counts_billings_per_project(self, session, make_project, make_billing):
        billed = make_project(code="PRJ-A")
        unbilled = make_project(code="PRJ-B")
        make_billing(billed, status=BillingStatus.DRAFT)
        make_billing(billed, status=BillingStatus.PAID)

        views = {v.code: v for v in RecordSelector(session).live_projects()}
        assert views["PRJ-A"].billing_count == 2
        assert views["PRJ-B"].billing_count == 0
        assert views["PRJ-B"].id == unbilled.id

    def test_excludes_soft_deleted(self, session, guard, make_project):
        keep = make_project(code="PRJ-KEEP")
        gone = make_project(code="PRJ-GONE")
        guard.soft_delete(gone.id)

        codes = [v.code for v in RecordSelector(session).live_projects()]
        assert codes == [keep.code]

    def test_status_is_a_plain_string(self, session, make_project):
        make_project(status=ProjectStatus.COMPLETED)
        (view,) = RecordSelector(session).live_projects()
        assert view.status == "completed"


class TestEndDateZone:
    UTC_PLUS_2 = timezone(timedelta(hours=2))

    def test_aware_end_date_converted_to_scan_zone(self):
        stored = datetime(2026, 3, 12, 22, 0, tzinfo=timezone.utc)
        local = _in_zone(stored, self.UTC_PLUS_2)
        assert local.date() == date(2026, 3, 13)
        assert local == stored

    def test_naive_and_missing_values_untouched(self):
        naive = datetime(2026, 3, 12, 22, 0)
        assert _in_zone(naive, self.UTC_PLUS_2) is naive
        assert _in_zone(None, self.UTC_PLUS_2) is None

    def test_no_zone_leaves_value(self):
        stored = datetime(2026, 3, 12, 22, 0, tzinfo=timezone.utc)
        assert _in_zone(stored, None) is stored

    def test_snapshot_accepts_zone(self, session, make_project):
        project = make_project()
        (view,) = RecordSelector(session).load_snapshot(tz=self.UTC_PLUS_2).projects
        assert view.end_date == project.end_date


class TestOutstandingBillings:
    def test_only_sent_and_overdue(self, session, project, make_billing):
        make_billing(project, "INV-D", status=BillingStatus.DRAFT)
        make_billing(project, "INV-S", status=BillingStatus.SENT)
        make_billing(project, "INV-O", status=BillingStatus.OVERDUE)
        make_billing(project, "INV-P", status=BillingStatus.PAID)

        numbers = [b.invoice_number for b in RecordSelector(session).outstanding_billings()]
        assert numbers == ["INV-O", "INV-S"]

    def test_collected_amount_is_summed(self, session, project, make_billing, make_collection):
        billing = make_billing(project, total_amount=Decimal("5000"))
        make_collection(billing, Decimal("1000"))
        make_collection(billing, Decimal("2000"))

        (view,) = RecordSelector(session).outstanding_billings()
        assert view.collected_amount == Decimal("3000")
        assert view.project_name == project.name
        assert not view.is_fully_collected

    def test_fully_collected(self, session, project, make_billing, make_collection):
        billing = make_billing(project, total_amount=Decimal("5000"))
        make_collection(billing, Decimal("5000"))

        (view,) = RecordSelector(session).outstanding_billings()
        assert view.collected_amount == view.total_amount
        assert view.is_fully_collected

    def test_billings_of_deleted_projects_excluded(self, session, guard, project, make_billing):
        make_billing(project)
        guard.soft_delete(project.id)
        assert RecordSelector(session).outstanding_billings() == ()


class TestSnapshot:
    def test_active_users_only(self, session, make_user):
        make_user(email="a@example.com")
        make_user(email="b@example.com", is_active=False)
        emails = [u.email for u in RecordSelector(session).active_users()]
        assert emails == ["a@example.com"]

    def test_load_snapshot(self, session, project, user, make_billing, captured_logs):
        make_billing(project)
        snapshot = RecordSelector(session).load_snapshot()
        assert len(snapshot.projects) == 1
        assert len(snapshot.billings) == 1
        assert [u.id for u in snapshot.users] == [user.id]
        assert not snapshot.is_empty
        assert any(r["message"] == "record_snapshot_loaded" for r in captured_logs())

    def test_empty_database(self, session):
        assert RecordSelector(session).load_snapshot().is_empty
