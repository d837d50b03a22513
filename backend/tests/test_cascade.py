"""Cascading deletes: ordering, counts and all-or-nothing behaviour"""
import mongomock
import pytest
from pymongo.errors import PyMongoError

from portal.domain.enums import EntityType
from portal.domain.errors import CascadeFailureError, NotFoundError
from portal.config.settings import settings
from portal.repositories import cascade
from portal.repositories.cascade import CascadeDeleter

from .conftest import principal_of


@pytest.fixture
def tree(seed, manager):
    """Customer -> project -> task with 2 subtasks, plus a ticket and comments"""
    author = principal_of(manager)
    customer = seed.customer("Baum AG")
    project = seed.project(customer.id, "Platform")
    task = seed.task(project, "Parent")
    subtasks = [seed.task(project, f"Child {i}", parent=task) for i in range(2)]
    ticket = seed.ticket(customer.id, "Broken login", project=project)
    seed.comment(author, task=task)
    seed.comment(author, task=subtasks[0])
    seed.comment(author, task=subtasks[1])
    seed.comment(author, ticket=ticket)
    kunde = seed.consumer(customer.id)
    return {
        "customer": customer, "project": project, "task": task,
        "subtasks": subtasks, "ticket": ticket, "kunde": kunde,
    }


def count(db, name, query=None):
    return db[name].count_documents(query or {})


class TestPlan:

    def test_step_order_for_customer(self, tree):
        steps = CascadeDeleter().plan(EntityType.CUSTOMER, tree["customer"].id)
        assert [s.label for s in steps] == [
            "comments", "subtasks", "tasks", "tickets", "projects", "consumer_users", "customers"
        ]

    def test_task_plan_has_no_ticket_step(self, tree):
        steps = CascadeDeleter().plan(EntityType.TASK, tree["task"].id)
        assert [s.label for s in steps] == ["comments", "subtasks", "tasks"]

    def test_missing_root(self):
        with pytest.raises(NotFoundError):
            CascadeDeleter().plan(EntityType.PROJECT, "PRJ-missing")

    def test_unsupported_type(self):
        with pytest.raises(ValueError):
            CascadeDeleter().plan(EntityType.COMMENT, "CMT-1")


class TestDelete:

    def test_task_with_subtasks_and_comments(self, db, tree):
        result = CascadeDeleter().delete(EntityType.TASK, tree["task"].id)

        assert result.deleted == {"comments": 3, "subtasks": 2, "tasks": 1}
        assert result.total == 6
        assert count(db, "tasks") == 0
        # The ticket and its comment are untouched
        assert count(db, "tickets") == 1
        assert count(db, "comments") == 1

    def test_subtask_alone(self, db, tree):
        result = CascadeDeleter().delete(EntityType.TASK, tree["subtasks"][0].id)

        assert result.deleted == {"comments": 1, "subtasks": 1, "tasks": 0}
        assert count(db, "tasks") == 2

    def test_ticket(self, db, tree):
        result = CascadeDeleter().delete(EntityType.TICKET, tree["ticket"].id)
        assert result.deleted == {"comments": 1, "tickets": 1}

    def test_project(self, db, tree):
        result = CascadeDeleter().delete(EntityType.PROJECT, tree["project"].id)

        assert result.deleted == {"comments": 4, "subtasks": 2, "tasks": 1, "tickets": 1, "projects": 1}
        for name in ("comments", "tasks", "tickets", "projects"):
            assert count(db, name) == 0
        assert count(db, "customers") == 1
        assert count(db, "consumer_users") == 1

    def test_customer_includes_projectless_tickets(self, db, seed, tree):
        seed.ticket(tree["customer"].id, "General question")
        other = seed.customer("Other GmbH")
        seed.ticket(other.id, "Unrelated")

        result = CascadeDeleter().delete(EntityType.CUSTOMER, tree["customer"].id)

        assert result.deleted["tickets"] == 2
        assert result.deleted["consumer_users"] == 1
        assert result.deleted["customers"] == 1
        assert count(db, "tickets") == 1
        assert count(db, "customers", {"id": other.id}) == 1

    def test_comment_added_after_planning_goes_with_its_task(self, db, seed, manager, tree, monkeypatch):
        deleter = CascadeDeleter()
        plan = deleter.plan

        def plan_then_comment(*args, **kwargs):
            steps = plan(*args, **kwargs)
            seed.comment(principal_of(manager), task=tree["subtasks"][1], content="Late reply")
            return steps

        monkeypatch.setattr(deleter, "plan", plan_then_comment)
        result = deleter.delete(EntityType.TASK, tree["task"].id)

        assert result.deleted["comments"] == 4
        assert count(db, "comments", {"task_id": {"$ne": None}}) == 0

    def test_subtask_added_after_planning_goes_with_its_parent(self, db, seed, tree, monkeypatch):
        deleter = CascadeDeleter()
        plan = deleter.plan

        def plan_then_subtask(*args, **kwargs):
            steps = plan(*args, **kwargs)
            seed.task(tree["project"], "Late child", parent=tree["task"])
            return steps

        monkeypatch.setattr(deleter, "plan", plan_then_subtask)
        result = deleter.delete(EntityType.TASK, tree["task"].id)

        assert result.deleted["subtasks"] == 3
        assert count(db, "tasks") == 0


class TestRollback:

    @pytest.fixture
    def failing_third_delete(self, monkeypatch):
        original = mongomock.collection.Collection.delete_many
        calls = []

        def delete_many(self, filter, *args, **kwargs):
            calls.append(self.name)
            if len(calls) == 3:
                raise PyMongoError("connection reset")
            return original(self, filter, *args, **kwargs)

        monkeypatch.setattr(mongomock.collection.Collection, "delete_many", delete_many)
        return calls

    def test_failure_restores_everything(self, db, tree, failing_third_delete):
        before = {name: count(db, name) for name in ("comments", "tasks", "tickets", "projects")}

        with pytest.raises(CascadeFailureError) as exc:
            CascadeDeleter().delete(EntityType.PROJECT, tree["project"].id)

        # comments, subtasks, then the failing top-level tasks step
        assert failing_third_delete == ["comments", "tasks", "tasks"]
        assert exc.value.http_status == 500
        assert exc.value.retryable
        assert {name: count(db, name) for name in before} == before
        assert count(db, "tasks", {"parent_task_id": tree["task"].id}) == 2

    def test_service_reports_failure_without_audit(self, db, tree, manager, failing_third_delete):
        from portal.services.project_service import ProjectService

        with pytest.raises(CascadeFailureError):
            ProjectService().delete_project(principal_of(manager), tree["project"].id)

        assert count(db, "projects") == 1
        assert count(db, "audit_logs", {"action": "DELETE"}) == 0


class FakeSession:
    """Stands in for a pymongo ClientSession; mongomock has no transactions"""

    def __init__(self):
        self.transactions = 0
        self.calls = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def start_session(self):
        return self

    def with_transaction(self, callback):
        self.transactions += 1
        return callback(self)


class SessionRecordingCollection:
    """Forwards to the real collection after noting which session each call carried"""

    def __init__(self, collection, calls):
        self._collection = collection
        self._calls = calls

    def __getattr__(self, name):
        method = getattr(self._collection, name)

        def call(*args, session=None, **kwargs):
            self._calls.append((self._collection.name, name, session))
            return method(*args, **kwargs)

        return call


class TestTransaction:

    @pytest.fixture
    def session(self, db, monkeypatch):
        fake = FakeSession()
        monkeypatch.setattr(settings, "mongo_use_transactions", True)
        # The session doubles as the client it was started from
        monkeypatch.setattr(cascade, "get_client", lambda: fake)
        monkeypatch.setattr(cascade, "get_collection", lambda name: SessionRecordingCollection(db[name], fake.calls))
        return fake

    def test_plan_and_deletes_share_one_transaction(self, db, tree, session):
        result = CascadeDeleter().delete(EntityType.PROJECT, tree["project"].id)

        assert session.transactions == 1
        assert result.deleted == {"comments": 4, "subtasks": 2, "tasks": 1, "tickets": 1, "projects": 1}
        assert count(db, "projects") == 0
        # Every read of the plan and every delete ran on the session
        assert session.calls
        assert all(s is session for _, _, s in session.calls)
        assert [c for c, op, _ in session.calls if op == "delete_many"] == [
            "comments", "tasks", "tasks", "tickets", "projects"
        ]

    def test_missing_root_inside_transaction(self, db, session):
        with pytest.raises(NotFoundError):
            CascadeDeleter().delete(EntityType.TICKET, "TKT-missing")
        assert session.transactions == 1

    def test_driver_error_becomes_cascade_failure(self, db, tree, session, monkeypatch):
        def abort(callback):
            raise PyMongoError("transaction aborted")

        monkeypatch.setattr(session, "with_transaction", abort)

        with pytest.raises(CascadeFailureError):
            CascadeDeleter().delete(EntityType.TASK, tree["task"].id)
        assert count(db, "tasks") == 3
