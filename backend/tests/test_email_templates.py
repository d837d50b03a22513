"""Email template rendering"""
import pytest

from portal.domain.enums import NotificationTemplateKey
from portal.templates import TEMPLATE_REGISTRY, get_email_template


def test_every_template_key_is_registered():
    assert set(TEMPLATE_REGISTRY) == set(NotificationTemplateKey)


def test_assigned():
    rendered = get_email_template(
        "ASSIGNED",
        {"entity_label": "Ticket", "title": "VPN down", "path": "/tickets/TKT-1", "actor_name": "Mia Manager"},
        app_url="https://portal.example.test",
    )

    assert rendered["subject"] == "Ticket assigned to you: VPN down"
    assert "https://portal.example.test/tickets/TKT-1" in rendered["html"]
    assert "Assigned by: Mia Manager" in rendered["text"]
    # Empty fields are left out of the plain-text body
    assert "Priority" not in rendered["text"]


@pytest.mark.parametrize("days, phrase", [(0, "today"), (1, "tomorrow"), (3, "in 3 days")])
def test_deadline_wording(days, phrase):
    rendered = get_email_template(
        NotificationTemplateKey.DEADLINE_APPROACHING, {"title": "Renew TLS", "days_until_due": days}
    )
    assert rendered["subject"] == f"Task due {phrase}: Renew TLS"


def test_ticket_status_fields():
    rendered = get_email_template(
        "TICKET_STATUS_CHANGED", {"title": "Printer", "from_status": "OPEN", "to_status": "RESOLVED"}
    )
    assert rendered["subject"] == "Ticket status changed: Printer"
    assert "Previous status: OPEN" in rendered["text"]
    assert "New status: RESOLVED" in rendered["text"]


def test_html_is_escaped():
    rendered = get_email_template(
        "COMMENT_ADDED", {"entity_label": "Task", "title": "<b>Deploy</b>", "excerpt": "a & b"}
    )

    assert "<b>Deploy</b>" not in rendered["html"]
    assert "&lt;b&gt;Deploy&lt;/b&gt;" in rendered["html"]
    assert "a &amp; b" in rendered["html"]
    assert rendered["subject"] == "New comment on task: <b>Deploy</b>"


def test_unknown_key():
    with pytest.raises(ValueError):
        get_email_template("BIRTHDAY", {})
