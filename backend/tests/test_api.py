"""HTTP surface: auth, error envelope, scoping, the admin endpoints and server wiring"""
import json
import logging

import pytest
from fastapi.testclient import TestClient

from portal.config.settings import settings
from portal.main import app
from portal.repositories.user_repo import StaffUserRepository
from portal.utils.logger import JsonFormatter, set_actor_id, set_correlation_id
from portal.utils.passwords import verify_password

from .conftest import DEFAULT_PASSWORD, auth_header

API = "/api/v1"


@pytest.fixture
def client():
    return TestClient(app)


class TestAuth:

    def test_login(self, client, manager):
        response = client.post(f"{API}/auth/token", json={"email": manager.email, "password": DEFAULT_PASSWORD})

        assert response.status_code == 200
        body = response.json()
        assert body["tokenType"] == "bearer"
        assert body["user"]["id"] == manager.id
        assert body["user"]["role"] == "MANAGER"

        me = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {body['accessToken']}"})
        assert me.json()["role"] == "MANAGER"
        assert me.json()["kind"] == "STAFF"

    def test_wrong_password(self, client, manager):
        response = client.post(f"{API}/auth/token", json={"email": manager.email, "password": "nope"})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTHENTICATION_ERROR"
        assert response.json()["error"]["message"] == "Invalid email or password"

    def test_passwords_are_stored_as_bcrypt(self, client, manager):
        _, stored = StaffUserRepository().get_credentials(manager.email)

        assert stored.startswith("$2b$")
        assert verify_password(DEFAULT_PASSWORD, stored)
        assert not verify_password("nope", stored)

    def test_unrecognised_hash_never_matches(self, client, manager):
        StaffUserRepository().set_password_hash(
            manager.id, "pbkdf2_sha256$1000$c2FsdA$aGFzaA", manager.updated_at
        )
        response = client.post(f"{API}/auth/token", json={"email": manager.email, "password": DEFAULT_PASSWORD})

        assert response.status_code == 401
        assert not verify_password(DEFAULT_PASSWORD, "")

    def test_inactive_account_looks_like_wrong_password(self, client, seed):
        user = seed.staff(status="INACTIVE")
        response = client.post(f"{API}/auth/token", json={"email": user.email, "password": DEFAULT_PASSWORD})
        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Invalid email or password"

    def test_consumer_login(self, client, seed):
        kunde = seed.consumer(seed.customer().id)
        token = client.post(
            f"{API}/auth/token", json={"email": kunde.email, "password": DEFAULT_PASSWORD}
        ).json()["accessToken"]

        me = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"}).json()
        assert me["role"] == "KUNDE"
        assert me["customerId"] == kunde.customer_id

    def test_missing_header(self, client):
        response = client.get(f"{API}/customers")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTHENTICATION_ERROR"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_garbage_token(self, client):
        response = client.get(f"{API}/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401


class TestCustomersApi:

    def test_crud(self, client, manager):
        headers = auth_header(manager)

        created = client.post(
            f"{API}/customers",
            json={"legalName": "Nord GmbH", "addresses": [{"street": "Kai 1", "city": "Kiel", "isPrimary": True}]},
            headers=headers,
        )
        assert created.status_code == 201
        customer = created.json()
        assert customer["status"] == "ACTIVE"
        assert customer["addresses"][0]["isPrimary"] is True

        listed = client.get(f"{API}/customers", params={"search": "nord"}, headers=headers).json()
        assert [c["id"] for c in listed["items"]] == [customer["id"]]
        assert listed["pagination"]["total"] == 1

        patched = client.patch(f"{API}/customers/{customer['id']}", json={"industry": "Shipping"}, headers=headers)
        assert patched.json()["industry"] == "Shipping"

        deleted = client.delete(f"{API}/customers/{customer['id']}", headers=headers)
        assert deleted.json() == {
            "success": True,
            "deleted": {
                "comments": 0, "subtasks": 0, "tasks": 0, "tickets": 0,
                "projects": 0, "consumer_users": 0, "customers": 1,
            },
        }
        assert client.get(f"{API}/customers/{customer['id']}", headers=headers).status_code == 404

    def test_schema_violation_is_400(self, client, manager):
        response = client.post(f"{API}/customers", json={"legalName": ""}, headers=auth_header(manager))

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"
        assert response.json()["error"]["details"]["errors"]

    def test_bad_status_filter_is_400(self, client, manager):
        response = client.get(f"{API}/customers", params={"status": "GONE"}, headers=auth_header(manager))
        assert response.status_code == 400


class TestScopingOverHttp:

    def test_kunde_is_denied_customers(self, client, seed):
        kunde = seed.consumer(seed.customer().id)
        response = client.get(f"{API}/customers", headers=auth_header(kunde))

        assert response.status_code == 403
        assert response.json()["error"] == {
            "code": "PERMISSION_DENIED",
            "message": "You are not allowed to perform this action",
            "details": {},
        }

    def test_other_customers_ticket_is_404(self, client, seed):
        own, other = seed.customer("Own"), seed.customer("Other")
        foreign = seed.ticket(other.id, "Foreign")
        kunde = seed.consumer(own.id)

        response = client.get(f"{API}/tickets/{foreign.id}", headers=auth_header(kunde))
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_invalid_transition_is_409(self, client, seed, manager):
        project = seed.project(seed.customer().id, status="ACTIVE")
        response = client.patch(
            f"{API}/projects/{project.id}", json={"status": "PLANNING"}, headers=auth_header(manager)
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INVALID_TRANSITION"

    def test_task_delete_reports_counts(self, client, seed, manager):
        project = seed.project(seed.customer().id)
        task = seed.task(project)
        seed.task(project, parent=task)

        response = client.delete(f"{API}/tasks/{task.id}", headers=auth_header(manager))
        assert response.json()["deleted"] == {"comments": 0, "subtasks": 1, "tasks": 1}

    def test_ticket_comments(self, client, seed, worker):
        ticket = seed.ticket(seed.customer().id, assignee_id=worker.id)
        headers = auth_header(worker)

        posted = client.post(f"{API}/tickets/{ticket.id}/comments", json={"content": "On it"}, headers=headers)
        assert posted.status_code == 201

        comments = client.get(f"{API}/tickets/{ticket.id}/comments", headers=headers).json()
        assert [c["content"] for c in comments] == ["On it"]

    def test_dashboard_counts(self, client, seed, worker):
        project = seed.project(seed.customer().id)
        seed.task(project, assignee_id=worker.id, status="IN_PROGRESS")
        seed.task(project)

        summary = client.get(f"{API}/dashboard", headers=auth_header(worker)).json()
        assert summary["tasks"] == {"total": 1, "byStatus": {"IN_PROGRESS": 1}}
        assert summary["customers"]["total"] == 1
        assert summary["unreadNotifications"] == 0


class TestNotificationsApi:

    def test_bell_endpoints(self, client, seed, manager, worker):
        project = seed.project(seed.customer().id)
        for i in range(2):
            task = seed.task(project, f"T{i}")
            client.patch(
                f"{API}/tasks/{task.id}/assignee", json={"assigneeId": worker.id}, headers=auth_header(manager)
            )

        headers = auth_header(worker)
        assert client.get(f"{API}/notifications/unread-count", headers=headers).json() == {"unreadCount": 2}

        feed = client.get(f"{API}/notifications", headers=headers).json()
        first = feed["notifications"][0]["id"]
        assert client.patch(f"{API}/notifications/{first}/read", headers=headers).json()["read"] is True

        marked = client.patch(f"{API}/notifications/read-all", headers=headers).json()
        assert marked == {"success": True, "markedCount": 1}


class TestAdminEndpoints:

    def test_audit_export(self, client, admin, manager):
        client.post(f"{API}/customers", json={"legalName": "Export AG"}, headers=auth_header(manager))

        response = client.get(f"{API}/audit-logs/export", params={"entityType": "CUSTOMER"}, headers=auth_header(admin))

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert response.headers["content-disposition"].startswith('attachment; filename="audit-logs-')
        lines = response.text.strip().splitlines()
        assert lines[0] == "Timestamp,User Email,Action,Entity Type,Entity ID,IP Address,Details"
        assert len(lines) == 2

    def test_audit_list_is_admin_only(self, client, manager):
        assert client.get(f"{API}/audit-logs", headers=auth_header(manager)).status_code == 403

    def test_cron_requires_admin(self, client, manager, admin):
        assert client.post(f"{API}/cron/task-deadlines", headers=auth_header(manager)).status_code == 403

        response = client.post(f"{API}/cron/task-deadlines", headers=auth_header(admin))
        assert response.status_code == 200
        assert response.json() == {"success": True, "sent": {"3": 0, "1": 0, "0": 0}}

    def test_system_status(self, client, admin):
        body = client.get(f"{API}/system/status", headers=auth_header(admin)).json()
        assert body["mongo"]["status"] == "healthy"
        assert body["emailConfigured"] is False
        assert body["scheduler"]["enabled"] is False


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "X-Correlation-Id" in response.headers


def test_client_correlation_id_is_echoed(client, manager):
    response = client.get(f"{API}/auth/me", headers={**auth_header(manager), "X-Correlation-Id": "COR-test-1"})
    assert response.headers["X-Correlation-Id"] == "COR-test-1"


def test_startup_reports_queue_backlog(db, caplog):
    db["side_effect_outbox"].insert_one({"id": "SFX-stuck", "status": "FAILED"})
    db["notification_outbox"].insert_one({"id": "OBX-waiting", "status": "PENDING"})

    with caplog.at_level(logging.INFO):
        with TestClient(app):
            pass

    assert "1 side effect item(s) gave up retrying" in caplog.text
    assert "1 email item(s) still queued" in caplog.text
    assert "Scheduler disabled" in caplog.text


def test_log_lines_carry_request_context():
    set_correlation_id("COR-log-1")
    set_actor_id("USR-7")
    try:
        record = logging.LogRecord("portal.test", logging.INFO, __file__, 1, "Customer created", None, None)
        record.entity_id = "CUS-1"
        line = json.loads(JsonFormatter().format(record))
    finally:
        set_correlation_id(None)
        set_actor_id(None)

    assert line["message"] == "Customer created"
    assert line["correlation_id"] == "COR-log-1"
    assert line["actor_id"] == "USR-7"
    assert line["entity_id"] == "CUS-1"
    assert line["timestamp"].endswith("Z")


def test_server_defaults_come_from_settings():
    import run

    args = run.parse_args([])
    assert (args.host, args.port) == (settings.api_host, settings.api_port)
    assert run.parse_args(["--port", "9001", "--no-scheduler"]).no_scheduler is True


def test_correlation_id_reaches_customer_audit_entries(client, manager, db):
    response = client.post(
        f"{API}/customers",
        json={"legalName": "Trace GmbH"},
        headers={**auth_header(manager), "X-Correlation-Id": "COR-cust-1"},
    )

    assert response.headers["X-Correlation-Id"] == "COR-cust-1"
    entry = db["audit_logs"].find_one({"entity_id": response.json()["id"]})
    assert entry["correlation_id"] == "COR-cust-1"
