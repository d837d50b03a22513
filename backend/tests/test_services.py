"""Entity services: permission order, lifecycles, scoping and audit"""
from datetime import timedelta

import pytest

from portal.domain.enums import EntityType, Role
from portal.domain.errors import (
    AlreadyExistsError, InvalidTransitionError, NotFoundError, PermissionDeniedError, ValidationError
)
from portal.domain.inputs import (
    AddressInput, CommentCreate, ConsumerUserCreate, CustomerCreate, CustomerUpdate, ProjectCreate,
    ProjectUpdate, QuickAssign, StaffUserCreate, TaskCreate, TaskUpdate, TicketCreate, TicketUpdate
)
from portal.repositories.audit_repo import AuditRepository
from portal.services.comment_service import CommentService
from portal.services.customer_service import CustomerService
from portal.services.project_service import ProjectService
from portal.services.task_service import TaskService
from portal.services.ticket_service import TicketService
from portal.services.user_service import UserService

from .conftest import BASE_TIME, principal_of


def audit_count(entity_id: str, action: str = None) -> int:
    return AuditRepository().count_for_entity(entity_id, action)


class TestCustomerLifecycle:

    def test_acme_walkthrough(self, db, manager):
        actor = principal_of(manager)

        customer = CustomerService().create_customer(actor, CustomerCreate(legal_name="ACME GmbH"))
        assert customer.status == "ACTIVE"

        projects = ProjectService()
        project = projects.create_project(actor, ProjectCreate(customerId=customer.id, code="P1", name="P1"))
        assert project.status == "PLANNING"

        project = projects.update_project(actor, project.id, ProjectUpdate(status="ACTIVE"))
        assert project.status == "ACTIVE"

        with pytest.raises(InvalidTransitionError):
            projects.update_project(actor, project.id, ProjectUpdate(status="PLANNING"))

        task = TaskService().create_task(actor, TaskCreate(title="Kickoff", projectId=project.id))
        ticket = TicketService().create_ticket(actor, TicketCreate(title="VPN", projectId=project.id))
        assert task.customer_id == customer.id
        assert ticket.customer_id == customer.id
        CommentService().add_comment(actor, EntityType.TASK, task.id, CommentCreate(content="Agenda attached"))

        result = CustomerService().delete_customer(actor, customer.id)

        assert result.deleted["customers"] == 1
        for name in ("customers", "projects", "tasks", "tickets", "comments"):
            assert db[name].count_documents({}) == 0

    def test_one_audit_entry_per_mutation(self, manager):
        actor = principal_of(manager)
        service = CustomerService()

        customer = service.create_customer(actor, CustomerCreate(legal_name="Audit AG"))
        service.update_customer(actor, customer.id, CustomerUpdate(notes="Key account"))
        service.add_address(actor, customer.id, AddressInput(street="Hauptstr. 1", city="Berlin"))

        assert audit_count(customer.id, "CREATE") == 1
        assert audit_count(customer.id, "UPDATE") == 2
        entry = AuditRepository().list_entries({"entity_id": customer.id, "action": "CREATE"})[0][0]
        assert entry.user_id == manager.id
        assert entry.ip_address == "10.0.0.7"

    def test_failed_mutation_writes_no_audit(self, seed, worker):
        customer = seed.customer()
        with pytest.raises(PermissionDeniedError):
            CustomerService().update_customer(principal_of(worker), customer.id, CustomerUpdate(notes="x"))
        assert audit_count(customer.id) == 0

    def test_timestamps_follow_the_clock(self, clock, manager):
        actor = principal_of(manager)
        service = CustomerService()

        customer = service.create_customer(actor, CustomerCreate(legal_name="Clock KG"))
        assert customer.created_at == BASE_TIME
        assert customer.updated_at == BASE_TIME

        later = clock.advance(minutes=5)
        updated = service.update_customer(actor, customer.id, CustomerUpdate(industry="Retail"))
        assert updated.updated_at == later
        assert updated.created_at == BASE_TIME

    def test_back_to_back_writes_on_the_real_clock(self, db, seed, manager):
        actor = principal_of(manager)
        service = TaskService()
        project = seed.project(seed.customer().id)

        created = service.create_task(actor, TaskCreate(title="Fast", projectId=project.id))
        stored = db["tasks"].find_one({"id": created.id})
        assert created.created_at == stored["created_at"]
        assert created.updated_at == stored["updated_at"]

        first = service.update_task(actor, created.id, TaskUpdate(title="Faster"))
        second = service.update_task(actor, created.id, TaskUpdate(title="Fastest"))

        assert first.created_at == second.created_at == created.created_at
        assert created.updated_at < first.updated_at < second.updated_at

    def test_embedded_edits_advance_updated_at(self, clock, manager):
        actor = principal_of(manager)
        service = CustomerService()
        customer = service.create_customer(actor, CustomerCreate(legal_name="Same Tick AG"))

        # The clock does not move between the two writes
        updated = service.add_address(actor, customer.id, AddressInput(street="A 1", city="Ulm"))
        assert updated.updated_at > customer.updated_at
        assert updated.created_at == BASE_TIME

    def test_single_primary_address(self, manager):
        actor = principal_of(manager)
        service = CustomerService()
        customer = service.create_customer(actor, CustomerCreate(legal_name="Adress GmbH"))

        service.add_address(actor, customer.id, AddressInput(street="A 1", city="Köln", isPrimary=True))
        updated = service.add_address(actor, customer.id, AddressInput(street="B 2", city="Bonn", isPrimary=True))

        primaries = [a for a in updated.addresses if a.is_primary]
        assert len(updated.addresses) == 2
        assert [a.street for a in primaries] == ["B 2"]

    def test_remove_unknown_contact(self, seed, manager):
        customer = seed.customer()
        with pytest.raises(NotFoundError):
            CustomerService().remove_contact(principal_of(manager), customer.id, "CON-missing")


class TestCustomerScoping:

    @pytest.fixture
    def two_customers(self, seed):
        c1 = seed.customer("C1 GmbH")
        c2 = seed.customer("C2 GmbH")
        # Earlier id than anything C1 owns, so ordering cannot hide a leak
        t2 = seed.ticket(c2.id, "C2 issue", ticket_id="TKT-00000000")
        t1 = seed.ticket(c1.id, "C1 issue")
        kunde = seed.consumer(c1.id)
        return c1, c2, t1, t2, kunde

    def test_kunde_lists_only_own_tickets(self, two_customers):
        c1, _, t1, _, kunde = two_customers
        items, pagination = TicketService().list_tickets(principal_of(kunde))

        assert [t.id for t in items] == [t1.id]
        assert pagination.total == 1

    def test_customer_filter_cannot_widen_scope(self, two_customers):
        _, c2, _, _, kunde = two_customers
        items, _ = TicketService().list_tickets(principal_of(kunde), customer_id=c2.id)
        assert items == []

    def test_other_customers_ticket_is_not_found(self, two_customers):
        _, _, _, t2, kunde = two_customers
        with pytest.raises(NotFoundError):
            TicketService().get_ticket(principal_of(kunde), t2.id)

    def test_kunde_cannot_update_own_ticket(self, two_customers):
        _, _, t1, _, kunde = two_customers
        with pytest.raises(PermissionDeniedError):
            TicketService().update_ticket(principal_of(kunde), t1.id, TicketUpdate(title="Changed"))

    def test_kunde_ticket_is_forced_to_own_customer(self, two_customers, worker):
        c1, c2, _, _, kunde = two_customers
        ticket = TicketService().create_ticket(
            principal_of(kunde),
            TicketCreate(title="Printer", customerId=c2.id, assigneeId=worker.id, reporterId=worker.id)
        )
        assert ticket.customer_id == c1.id
        assert ticket.assignee_id is None
        assert ticket.reporter_id == kunde.id

    def test_kunde_cannot_use_other_customers_project(self, seed, two_customers):
        _, c2, _, _, kunde = two_customers
        project = seed.project(c2.id)
        with pytest.raises(NotFoundError):
            TicketService().create_ticket(principal_of(kunde), TicketCreate(title="x", projectId=project.id))


class TestWorkItems:

    @pytest.fixture
    def project(self, seed):
        return seed.project(seed.customer().id, "Delivery", status="ACTIVE")

    def test_mitarbeiter_only_reaches_assigned_tasks(self, seed, worker, project):
        mine = seed.task(project, "Mine", assignee_id=worker.id)
        other = seed.task(project, "Other")
        actor = principal_of(worker)

        items, _ = TaskService().list_tasks(actor)
        assert [t.id for t in items] == [mine.id]

        TaskService().update_task(actor, mine.id, TaskUpdate(status="IN_PROGRESS"))
        with pytest.raises(NotFoundError):
            TaskService().update_task(actor, other.id, TaskUpdate(status="IN_PROGRESS"))

    def test_reopen_done_task(self, seed, manager, worker, project):
        task = seed.task(project, assignee_id=worker.id, status="DONE")

        with pytest.raises(InvalidTransitionError):
            TaskService().update_task(principal_of(worker), task.id, TaskUpdate(status="TODO"))

        reopened = TaskService().update_task(principal_of(manager), task.id, TaskUpdate(status="TODO"))
        assert reopened.status == "TODO"

    def test_rejected_transition_leaves_record_untouched(self, seed, manager, project):
        ticket = seed.ticket(project.customer_id, project=project, status="CLOSED")
        with pytest.raises(InvalidTransitionError):
            TicketService().update_ticket(principal_of(manager), ticket.id, TicketUpdate(status="OPEN"))
        assert TicketService().get_ticket(principal_of(manager), ticket.id).status == "CLOSED"
        assert audit_count(ticket.id) == 0

    def test_null_status_is_rejected(self, seed, manager, project):
        task = seed.task(project)
        with pytest.raises(ValidationError):
            TaskService().update_task(principal_of(manager), task.id, TaskUpdate(status=None))

    def test_subtasks_are_one_level_deep(self, seed, manager, project):
        actor = principal_of(manager)
        parent = seed.task(project, "Parent")

        child = TaskService().create_task(actor, TaskCreate(title="Child"), parent_task_id=parent.id)
        assert child.project_id == project.id
        assert child.parent_task_id == parent.id

        with pytest.raises(ValidationError) as exc:
            TaskService().create_task(actor, TaskCreate(title="Grandchild"), parent_task_id=child.id)
        assert exc.value.message == "Subtasks cannot have subtasks"

        assert [t.id for t in TaskService().list_subtasks(actor, parent.id)] == [child.id]
        top_level, _ = TaskService().list_tasks(actor)
        assert [t.id for t in top_level] == [parent.id]

    def test_task_requires_existing_project(self, manager):
        with pytest.raises(ValidationError):
            TaskService().create_task(principal_of(manager), TaskCreate(title="Orphan", projectId="PRJ-missing"))

    def test_quick_assign(self, db, seed, manager, worker, project):
        task = seed.task(project)
        actor = principal_of(manager)

        assigned = TaskService().assign_task(actor, task.id, QuickAssign(assigneeId=worker.id))
        assert assigned.assignee_id == worker.id
        assert db["notifications"].count_documents({"user_id": worker.id}) == 1

        cleared = TaskService().assign_task(actor, task.id, QuickAssign(assigneeId=None))
        assert cleared.assignee_id is None
        assert audit_count(task.id, "UPDATE") == 2

    def test_assignee_must_be_active_staff(self, seed, manager, project):
        inactive = seed.staff(Role.MITARBEITER, status="INACTIVE")
        task = seed.task(project)
        with pytest.raises(ValidationError):
            TaskService().assign_task(principal_of(manager), task.id, QuickAssign(assigneeId=inactive.id))

    def test_departments_default_to_assignee(self, db, seed, manager, project):
        privacy = seed.staff(Role.MITARBEITER)
        db["staff_users"].update_one({"id": privacy.id}, {"$set": {"departments": ["DATENSCHUTZ"]}})

        task = TaskService().create_task(
            principal_of(manager), TaskCreate(title="Consent audit", projectId=project.id, assigneeId=privacy.id)
        )
        unrouted = TaskService().create_task(principal_of(manager), TaskCreate(title="Misc", projectId=project.id))

        assert task.departments == ["DATENSCHUTZ"]
        assert unrouted.departments == ["IT"]


class TestComments:

    @pytest.fixture
    def ticket(self, seed):
        return seed.ticket(seed.customer().id, "Discuss")

    def test_author_may_delete(self, manager, ticket):
        actor = principal_of(manager)
        service = CommentService()
        comment = service.add_comment(actor, EntityType.TICKET, ticket.id, CommentCreate(content="First"))

        service.delete_comment(actor, EntityType.TICKET, ticket.id, comment.id)
        assert service.list_comments(actor, EntityType.TICKET, ticket.id) == []

    def test_other_staff_may_not_delete(self, seed, manager, ticket):
        other = seed.staff(Role.MANAGER, name="Other Manager")
        comment = CommentService().add_comment(
            principal_of(manager), EntityType.TICKET, ticket.id, CommentCreate(content="Mine")
        )
        with pytest.raises(PermissionDeniedError):
            CommentService().delete_comment(principal_of(other), EntityType.TICKET, ticket.id, comment.id)

    def test_admin_may_delete_any(self, admin, manager, ticket):
        comment = CommentService().add_comment(
            principal_of(manager), EntityType.TICKET, ticket.id, CommentCreate(content="Remove me")
        )
        CommentService().delete_comment(principal_of(admin), EntityType.TICKET, ticket.id, comment.id)
        assert audit_count(comment.id, "DELETE") == 1

    def test_kunde_comments_on_own_ticket(self, seed, ticket):
        kunde = seed.consumer(ticket.customer_id)
        comment = CommentService().add_comment(
            principal_of(kunde), EntityType.TICKET, ticket.id, CommentCreate(content="Any news?")
        )
        assert comment.author_kind == "CONSUMER"
        assert comment.customer_id == ticket.customer_id

    def test_comment_notifies_reporter(self, db, seed, manager, worker):
        ticket = seed.ticket(seed.customer().id, reporter_id=worker.id)
        CommentService().add_comment(principal_of(manager), EntityType.TICKET, ticket.id, CommentCreate(content="Hi"))
        assert db["notifications"].count_documents({"user_id": worker.id}) == 1


class TestUsers:

    def test_delete_staff_unassigns_work(self, seed, admin, worker):
        project = seed.project(seed.customer().id, assignee_id=worker.id)
        task = seed.task(project, assignee_id=worker.id)
        ticket = seed.ticket(project.customer_id, assignee_id=worker.id)

        UserService().delete_staff(principal_of(admin), worker.id)

        assert ProjectService().get_project(principal_of(admin), project.id).assignee_id is None
        assert TaskService().get_task(principal_of(admin), task.id).assignee_id is None
        assert TicketService().get_ticket(principal_of(admin), ticket.id).assignee_id is None

    def test_cannot_delete_self(self, admin):
        with pytest.raises(ValidationError):
            UserService().delete_staff(principal_of(admin), admin.id)

    def test_manager_cannot_manage_staff(self, manager):
        with pytest.raises(PermissionDeniedError):
            UserService().create_staff(
                principal_of(manager),
                StaffUserCreate(email="new@portal.de", name="New", password="long-enough")
            )

    def test_email_unique_across_user_kinds(self, seed, admin):
        customer = seed.customer()
        seed.consumer(customer.id, email="taken@kunde.de")
        with pytest.raises(AlreadyExistsError):
            UserService().create_staff(
                principal_of(admin),
                StaffUserCreate(email="Taken@Kunde.de", name="Dup", password="long-enough")
            )

    def test_consumer_needs_existing_customer(self, manager):
        with pytest.raises(ValidationError):
            UserService().create_consumer(
                principal_of(manager),
                ConsumerUserCreate(email="k@kunde.de", name="K", password="long-enough", customerId="CUS-missing")
            )


def test_updated_at_moves_on_assignment(clock, seed, manager, worker):
    project = seed.project(seed.customer().id)
    clock.advance(hours=1)
    updated = ProjectService().assign_project(principal_of(manager), project.id, QuickAssign(assigneeId=worker.id))
    assert updated.updated_at == BASE_TIME + timedelta(hours=1)
