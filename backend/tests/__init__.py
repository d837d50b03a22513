"""
Test Suite

Tests for the Operations Portal backend. Every test runs against an
in-memory mongomock database (see conftest.py), so no MongoDB server
or SMTP relay is needed.

Structure:
    tests/
    ├── conftest.py                  # Database, seeding and principal fixtures
    ├── test_permission_guard.py     # Role grants and scoped checks
    ├── test_transition_resolver.py  # Status state machines
    ├── test_query_scope.py          # Role-scoped list filters
    ├── test_cascade.py              # Cascading deletes and rollback
    ├── test_services.py             # Service-layer behaviour
    ├── test_notifications.py        # Fan-out, deadlines, feed and outbox
    ├── test_audit.py                # Audit listing and CSV export
    └── test_api.py                  # HTTP surface

To run tests:
    pytest
    pytest backend/tests/test_cascade.py
"""
