"""Role policy: default-closed table, scope rules and denial shape"""
import pytest

from portal.domain.models import Principal
from portal.domain.enums import Action, EntityType, PrincipalKind, Role, ScopeRule
from portal.domain.errors import PermissionDeniedError
from portal.engine.permission_guard import PermissionGuard, EntityScope, POLICY


def make_principal(role: Role, customer_id=None, user_id="USR-1") -> Principal:
    kind = PrincipalKind.CONSUMER if role == Role.KUNDE else PrincipalKind.STAFF
    return Principal(
        id=user_id,
        email="someone@portal.de",
        role=role,
        kind=kind,
        customer_id=customer_id,
    )


@pytest.fixture
def guard():
    return PermissionGuard()


class TestDefaultClosed:

    def test_every_ungranted_triple_is_denied(self, guard):
        for role in Role:
            principal = make_principal(role, customer_id="CUS-1")
            for entity_type in EntityType:
                for action in Action:
                    decision = guard.authorize(principal, action, entity_type)
                    granted = action in POLICY[role].get(entity_type, {})
                    assert decision.allowed == granted, (role, entity_type, action)

    def test_admin_may_do_everything(self, guard):
        admin = make_principal(Role.ADMIN)
        for entity_type in EntityType:
            for action in Action:
                decision = guard.authorize(admin, action, entity_type)
                assert decision.allowed
                assert not decision.conditional

    def test_manager_has_no_staff_audit_or_system_access(self, guard):
        manager = make_principal(Role.MANAGER)
        for entity_type in (EntityType.STAFF_USER, EntityType.AUDIT_LOG, EntityType.SYSTEM):
            for action in Action:
                assert not guard.authorize(manager, action, entity_type)

    def test_kunde_cannot_touch_customers_or_users(self, guard):
        kunde = make_principal(Role.KUNDE, customer_id="CUS-1")
        for entity_type in (EntityType.CUSTOMER, EntityType.STAFF_USER, EntityType.CONSUMER_USER):
            for action in Action:
                assert not guard.authorize(kunde, action, entity_type)

    def test_kunde_cannot_update_or_delete_tickets(self, guard):
        kunde = make_principal(Role.KUNDE, customer_id="CUS-1")
        assert guard.authorize(kunde, Action.CREATE, EntityType.TICKET)
        assert not guard.authorize(kunde, Action.UPDATE, EntityType.TICKET)
        assert not guard.authorize(kunde, Action.DELETE, EntityType.TICKET)


class TestScopeRules:

    def test_type_level_allow_is_conditional_for_scoped_grants(self, guard):
        worker = make_principal(Role.MITARBEITER)
        decision = guard.authorize(worker, Action.UPDATE, EntityType.TASK)
        assert decision.allowed
        assert decision.conditional
        assert decision.reason == ScopeRule.ASSIGNED.value

    def test_own_customer(self, guard):
        kunde = make_principal(Role.KUNDE, customer_id="CUS-1")
        assert guard.authorize(kunde, Action.READ, EntityType.TICKET, EntityScope(customer_id="CUS-1"))
        assert not guard.authorize(kunde, Action.READ, EntityType.TICKET, EntityScope(customer_id="CUS-2"))
        assert not guard.authorize(kunde, Action.READ, EntityType.TICKET, EntityScope())

    def test_assigned_accepts_assignee_or_reporter(self, guard):
        worker = make_principal(Role.MITARBEITER, user_id="USR-9")
        assert guard.authorize(worker, Action.UPDATE, EntityType.TASK, EntityScope(assignee_id="USR-9"))
        assert guard.authorize(worker, Action.UPDATE, EntityType.TASK, EntityScope(reporter_id="USR-9"))
        assert not guard.authorize(worker, Action.UPDATE, EntityType.TASK, EntityScope(assignee_id="USR-2"))

    def test_author_rule_for_comment_delete(self, guard):
        manager = make_principal(Role.MANAGER, user_id="USR-5")
        assert guard.authorize(manager, Action.DELETE, EntityType.COMMENT, EntityScope(author_id="USR-5"))
        assert not guard.authorize(manager, Action.DELETE, EntityType.COMMENT, EntityScope(author_id="USR-6"))

    def test_self_rule_for_notifications(self, guard):
        kunde = make_principal(Role.KUNDE, customer_id="CUS-1", user_id="KND-1")
        assert guard.authorize(kunde, Action.UPDATE, EntityType.NOTIFICATION, EntityScope(user_id="KND-1"))
        assert not guard.authorize(kunde, Action.UPDATE, EntityType.NOTIFICATION, EntityScope(user_id="KND-2"))

    def test_scope_of_reads_model_fields(self):
        class Record:
            customer_id = "CUS-3"
            assignee_id = "USR-1"

        scope = EntityScope.of(Record())
        assert scope.customer_id == "CUS-3"
        assert scope.assignee_id == "USR-1"
        assert scope.author_id is None


class TestRequire:

    def test_denial_raises_with_fixed_message(self, guard):
        kunde = make_principal(Role.KUNDE, customer_id="CUS-1")
        with pytest.raises(PermissionDeniedError) as exc:
            guard.require(kunde, Action.DELETE, EntityType.PROJECT)

        body = exc.value.to_dict()
        assert exc.value.http_status == 403
        assert body["error"]["code"] == "PERMISSION_DENIED"
        assert body["error"]["message"] == "You are not allowed to perform this action"

    def test_record_level_denial_does_not_leak_the_rule(self, guard):
        worker = make_principal(Role.MITARBEITER)
        with pytest.raises(PermissionDeniedError) as exc:
            guard.require(worker, Action.DELETE, EntityType.TICKET, EntityScope(assignee_id="USR-2"))
        assert "ASSIGNED" not in str(exc.value.to_dict())

    def test_allowed_returns_decision(self, guard):
        manager = make_principal(Role.MANAGER)
        assert guard.require(manager, Action.CREATE, EntityType.CUSTOMER).allowed
