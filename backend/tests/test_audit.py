"""Audit log listing and CSV export"""
import csv
import io
from datetime import datetime, timedelta, timezone

import pytest

from portal.domain.errors import PermissionDeniedError, ValidationError
from portal.domain.inputs import CustomerCreate, CustomerUpdate
from portal.services.audit_service import AuditService, CSV_COLUMNS
from portal.services.customer_service import CustomerService
from portal.utils.time import resolve_date_range, utc_now

from .conftest import principal_of


@pytest.fixture
def history(monkeypatch, manager):
    """Three customer mutations by the manager, one second apart"""
    ticks = iter(utc_now() - timedelta(seconds=10) + timedelta(seconds=i) for i in range(100))
    monkeypatch.setattr("portal.engine.audit_writer.utc_now", lambda: next(ticks))

    actor = principal_of(manager)
    service = CustomerService()
    customer = service.create_customer(actor, CustomerCreate(legal_name="Log GmbH"))
    service.update_customer(actor, customer.id, CustomerUpdate(industry="Logistics"))
    service.update_customer(actor, customer.id, CustomerUpdate(industry="Freight"))
    return customer


class TestListing:

    def test_newest_first_with_pagination(self, admin, history):
        entries, pagination = AuditService().list_entries(principal_of(admin), limit=2, entity_id=history.id)

        assert pagination.total == 3
        assert pagination.pages == 2
        assert [e.action for e in entries] == ["UPDATE", "UPDATE"]
        assert entries[0].changes == {"industry": {"from": "Logistics", "to": "Freight"}}

    def test_filter_by_action_and_user(self, admin, manager, history):
        service = AuditService()
        entries, _ = service.list_entries(principal_of(admin), action="CREATE", user_id=manager.id)
        assert [e.entity_id for e in entries] == [history.id]

        none, _ = service.list_entries(principal_of(admin), user_id=admin.id)
        assert none == []

    def test_named_range(self, admin, history):
        entries, _ = AuditService().list_entries(principal_of(admin), date_range="today", entity_type="CUSTOMER")
        assert len(entries) == 3

    def test_explicit_window_in_the_past_is_empty(self, admin, history):
        entries, _ = AuditService().list_entries(
            principal_of(admin),
            date_from=datetime(2020, 1, 1, tzinfo=timezone.utc),
            date_to=datetime(2020, 12, 31, tzinfo=timezone.utc),
        )
        assert entries == []

    def test_unknown_range(self, admin):
        with pytest.raises(ValidationError) as exc:
            AuditService().list_entries(principal_of(admin), date_range="fortnight")
        assert exc.value.details == {"date_range": "fortnight"}

    def test_admin_only(self, manager, history):
        with pytest.raises(PermissionDeniedError):
            AuditService().list_entries(principal_of(manager))


class TestExport:

    def test_csv_shape(self, admin, manager, history):
        content = AuditService().export_csv(principal_of(admin), entity_id=history.id)
        rows = list(csv.reader(io.StringIO(content)))

        assert rows[0] == CSV_COLUMNS
        assert len(rows) == 4
        created = rows[-1]
        assert created[1] == manager.email
        assert created[2] == "CREATE"
        assert created[3] == "CUSTOMER"
        assert created[4] == history.id
        assert created[5] == "10.0.0.7"
        assert created[0].endswith("Z")
        assert '"legal_name": "Log GmbH"' in created[6]

    def test_export_is_itself_audited(self, admin, history):
        service = AuditService()
        service.export_csv(principal_of(admin), action="UPDATE")

        entries, _ = service.list_entries(principal_of(admin), action="EXPORT")
        assert len(entries) == 1
        assert entries[0].entity_id == "audit_logs"
        assert entries[0].changes == {"rows": 2, "filters": {"action": "UPDATE"}}

    def test_export_denied_for_manager(self, manager):
        with pytest.raises(PermissionDeniedError):
            AuditService().export_csv(principal_of(manager))


class TestDateRanges:

    NOW = datetime(2026, 3, 31, 15, 30, tzinfo=timezone.utc)

    def test_today_starts_at_midnight(self):
        start, end = resolve_date_range("today", now=self.NOW)
        assert start == datetime(2026, 3, 31, tzinfo=timezone.utc)
        assert end == self.NOW

    def test_week(self):
        start, _ = resolve_date_range("week", now=self.NOW)
        assert start == self.NOW - timedelta(days=7)

    def test_month_uses_calendar_months(self):
        start, _ = resolve_date_range("month", now=self.NOW)
        assert start == datetime(2026, 2, 28, 15, 30, tzinfo=timezone.utc)

    def test_year(self):
        start, _ = resolve_date_range("year", now=self.NOW)
        assert start == datetime(2025, 3, 31, 15, 30, tzinfo=timezone.utc)

    def test_unknown(self):
        with pytest.raises(ValueError):
            resolve_date_range("decade", now=self.NOW)
