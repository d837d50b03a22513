"""
Pytest Configuration and Fixtures

Settings are read from the environment at import time, so the test
environment is fixed here before anything from `portal` is imported.
Every test gets a fresh in-memory MongoDB (mongomock) behind the
module-global client.
"""

import os
import tempfile

os.environ.update({
    "AUTH_SECRET": "test-secret",
    "LOGS_PATH": tempfile.mkdtemp(prefix="portal-logs-"),
    "LOG_LEVEL": "WARNING",
    "SCHEDULER_ENABLED": "false",
    "SMTP_HOST": "",
    "MONGO_USE_TRANSACTIONS": "false",
    "ENVIRONMENT": "test",
    "BCRYPT_ROUNDS": "4",
})

from datetime import datetime, timedelta, timezone
from typing import Optional

import mongomock
import pytest

from portal.repositories import mongo_client
from portal.repositories.customer_repo import CustomerRepository
from portal.repositories.project_repo import ProjectRepository
from portal.repositories.task_repo import TaskRepository
from portal.repositories.ticket_repo import TicketRepository
from portal.repositories.comment_repo import CommentRepository
from portal.repositories.user_repo import StaffUserRepository, ConsumerUserRepository
from portal.domain.models import (
    Principal, StaffUser, ConsumerUser, Customer, Project, Task, Ticket, Comment
)
from portal.domain.enums import PrincipalKind, Role
from portal.services.auth_service import AuthService
from portal.utils.idgen import generate_entity_id
from portal.utils.jwt import create_access_token
from portal.utils.passwords import hash_password

BASE_TIME = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)
DEFAULT_PASSWORD = "correct-horse-1"


@pytest.fixture(autouse=True)
def db(monkeypatch):
    """Fresh mongomock database wired into the module-global client"""
    client = mongomock.MongoClient(tz_aware=True)
    database = client["ops_portal_test"]
    monkeypatch.setattr(mongo_client, "_client", client)
    monkeypatch.setattr(mongo_client, "_database", database)
    yield database


class Seeder:
    """Writes fixture records straight into the store (no audit, no checks)"""

    def __init__(self):
        self.now = BASE_TIME

    def _tick(self) -> datetime:
        self.now = self.now + timedelta(seconds=1)
        return self.now

    # Users

    def staff(self, role: Role = Role.MITARBEITER, name: str = "Staff", email: Optional[str] = None,
              status: str = "ACTIVE", password: str = DEFAULT_PASSWORD) -> StaffUser:
        user_id = generate_entity_id("staff_user")
        now = self._tick()
        user = StaffUser(
            id=user_id,
            email=email or f"{user_id.lower()}@portal.de",
            name=name,
            role=role,
            status=status,
            created_at=now,
            updated_at=now,
        )
        StaffUserRepository().insert_with_password(user, hash_password(password))
        return user

    def consumer(self, customer_id: str, name: str = "Kunde", email: Optional[str] = None,
                 status: str = "ACTIVE", password: str = DEFAULT_PASSWORD) -> ConsumerUser:
        user_id = generate_entity_id("consumer_user")
        now = self._tick()
        user = ConsumerUser(
            id=user_id,
            email=email or f"{user_id.lower()}@kunde.de",
            name=name,
            customer_id=customer_id,
            status=status,
            created_at=now,
            updated_at=now,
        )
        ConsumerUserRepository().insert_with_password(user, hash_password(password))
        return user

    # Business records

    def customer(self, legal_name: str = "Muster GmbH") -> Customer:
        now = self._tick()
        return CustomerRepository().insert(Customer(
            id=generate_entity_id("customer"), legal_name=legal_name, created_at=now, updated_at=now
        ))

    def project(self, customer_id: str, name: str = "Rollout", assignee_id: Optional[str] = None,
                status: str = "PLANNING") -> Project:
        now = self._tick()
        return ProjectRepository().insert(Project(
            id=generate_entity_id("project"),
            customer_id=customer_id,
            code=f"P-{name[:3].upper()}",
            name=name,
            status=status,
            assignee_id=assignee_id,
            created_at=now,
            updated_at=now,
        ))

    def task(self, project: Project, title: str = "Task", parent: Optional[Task] = None,
             assignee_id: Optional[str] = None, reporter_id: Optional[str] = None,
             status: str = "TODO", due_date: Optional[datetime] = None) -> Task:
        now = self._tick()
        return TaskRepository().insert(Task(
            id=generate_entity_id("task"),
            title=title,
            project_id=project.id,
            customer_id=project.customer_id,
            parent_task_id=parent.id if parent else None,
            assignee_id=assignee_id,
            reporter_id=reporter_id,
            status=status,
            due_date=due_date,
            created_at=now,
            updated_at=now,
        ))

    def ticket(self, customer_id: Optional[str], title: str = "Ticket", project: Optional[Project] = None,
               assignee_id: Optional[str] = None, reporter_id: Optional[str] = None,
               status: str = "OPEN", ticket_id: Optional[str] = None) -> Ticket:
        now = self._tick()
        return TicketRepository().insert(Ticket(
            id=ticket_id or generate_entity_id("ticket"),
            title=title,
            project_id=project.id if project else None,
            customer_id=customer_id,
            assignee_id=assignee_id,
            reporter_id=reporter_id,
            status=status,
            created_at=now,
            updated_at=now,
        ))

    def comment(self, author: Principal, task: Optional[Task] = None, ticket: Optional[Ticket] = None,
                content: str = "Looks good") -> Comment:
        now = self._tick()
        parent = task or ticket
        return CommentRepository().insert(Comment(
            id=generate_entity_id("comment"),
            content=content,
            task_id=task.id if task else None,
            ticket_id=ticket.id if ticket else None,
            customer_id=parent.customer_id,
            author_id=author.id,
            author_name=author.name,
            author_kind=author.kind,
            created_at=now,
            updated_at=now,
        ))


@pytest.fixture
def seed() -> Seeder:
    return Seeder()


def principal_of(user) -> Principal:
    kind = PrincipalKind.CONSUMER if isinstance(user, ConsumerUser) else PrincipalKind.STAFF
    return AuthService.to_principal(user, kind, ip_address="10.0.0.7", user_agent="pytest")


def token_for(user) -> str:
    kind = "CONSUMER" if isinstance(user, ConsumerUser) else "STAFF"
    return create_access_token(
        user.id, user.email, user.role, kind, customer_id=getattr(user, "customer_id", None)
    )


def auth_header(user) -> dict:
    return {"Authorization": f"Bearer {token_for(user)}"}


@pytest.fixture
def admin(seed) -> StaffUser:
    return seed.staff(Role.ADMIN, name="Ada Admin")


@pytest.fixture
def manager(seed) -> StaffUser:
    return seed.staff(Role.MANAGER, name="Max Manager")


@pytest.fixture
def worker(seed) -> StaffUser:
    return seed.staff(Role.MITARBEITER, name="Willi Worker")


@pytest.fixture
def clock(monkeypatch):
    """Controllable clock for service timestamps"""

    class Clock:
        def __init__(self):
            self.now = BASE_TIME

        def advance(self, **delta):
            self.now = self.now + timedelta(**delta)
            return self.now

    c = Clock()
    monkeypatch.setattr("portal.services.base_service.utc_now", lambda: c.now)
    return c
