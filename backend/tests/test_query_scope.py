"""Role-scoped query filters"""
from portal.domain.models import Principal
from portal.domain.enums import Action, EntityType, PrincipalKind, Role
from portal.engine.query_scope import QueryScope, EMPTY_SCOPE


def principal(role: Role, user_id: str = "USR-1", customer_id=None) -> Principal:
    kind = PrincipalKind.CONSUMER if role == Role.KUNDE else PrincipalKind.STAFF
    return Principal(id=user_id, email="p@portal.de", role=role, kind=kind, customer_id=customer_id)


def test_unrestricted_for_any_rule():
    assert QueryScope().scope_filter(principal(Role.MANAGER), EntityType.TICKET) == {}


def test_kunde_is_limited_to_own_customer():
    kunde = principal(Role.KUNDE, user_id="KND-1", customer_id="CUS-1")
    assert QueryScope().scope_filter(kunde, EntityType.TICKET) == {"customer_id": "CUS-1"}


def test_mitarbeiter_sees_assigned_or_reported_items():
    worker = principal(Role.MITARBEITER, user_id="USR-7")
    assert QueryScope().scope_filter(worker, EntityType.TASK, Action.READ) == {
        "$or": [{"assignee_id": "USR-7"}, {"reporter_id": "USR-7"}]
    }


def test_ungranted_list_matches_nothing():
    kunde = principal(Role.KUNDE, customer_id="CUS-1")
    assert QueryScope().scope_filter(kunde, EntityType.CUSTOMER) == EMPTY_SCOPE


def test_notifications_are_self_scoped():
    worker = principal(Role.MITARBEITER, user_id="USR-3")
    assert QueryScope().scope_filter(worker, EntityType.NOTIFICATION) == {"user_id": "USR-3"}


def test_mine_narrows_to_own_assignments():
    manager = principal(Role.MANAGER, user_id="USR-2")
    assert QueryScope().scope_filter(manager, EntityType.TASK, mine=True) == {"assignee_id": "USR-2"}

    worker = principal(Role.MITARBEITER, user_id="USR-4")
    scoped = QueryScope().scope_filter(worker, EntityType.TASK, mine=True)
    assert scoped == {"$and": [
        {"$or": [{"assignee_id": "USR-4"}, {"reporter_id": "USR-4"}]},
        {"assignee_id": "USR-4"},
    ]}
