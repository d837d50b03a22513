"""
Email Templates - HTML and plain-text bodies for outbox notifications

Each template takes the outbox payload and returns subject, html and text.
"""
from html import escape
from typing import Any, Dict, Optional

from ..domain.enums import NotificationTemplateKey


# =============================================================================
# Building Blocks
# =============================================================================

def get_base_template(
    content: str,
    action_button_text: Optional[str] = None,
    action_button_url: Optional[str] = None,
    accent_color: str = "#3B82F6"
) -> str:
    """Table-based wrapper that renders in Outlook, Gmail and Apple Mail"""
    button = ""
    if action_button_text and action_button_url:
        button = f'''
        <tr>
            <td style="padding: 8px 32px 32px 32px;">
                <a href="{escape(action_button_url)}" style="background-color: {accent_color}; color: #FFFFFF; padding: 12px 24px; text-decoration: none; font-weight: bold; font-family: Arial, sans-serif; font-size: 14px; display: inline-block;">{escape(action_button_text)}</a>
            </td>
        </tr>
        '''

    return f'''<!DOCTYPE html>
<html>
<body style="margin: 0; padding: 0; background-color: #F3F4F6;">
    <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%" style="background-color: #F3F4F6;">
        <tr>
            <td align="center" style="padding: 32px 16px;">
                <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="600" style="background-color: #FFFFFF; border-top: 4px solid {accent_color};">
                    <tr>
                        <td style="padding: 32px 32px 8px 32px; font-family: Arial, sans-serif; color: #111827;">
                            {content}
                        </td>
                    </tr>
                    {button}
                </table>
                <p style="margin: 16px 0 0 0; color: #9CA3AF; font-size: 12px; font-family: Arial, sans-serif;">
                    This is an automated message from the operations portal.
                </p>
            </td>
        </tr>
    </table>
</body>
</html>'''


def get_info_card(title: str, fields: Dict[str, str]) -> str:
    """Two-column detail table"""
    rows = "".join(
        f'''
        <tr>
            <td style="padding: 8px 16px; color: #6B7280; font-size: 13px; border-bottom: 1px solid #E5E7EB; width: 140px;">{escape(label)}</td>
            <td style="padding: 8px 16px; color: #111827; font-size: 13px; font-weight: bold; border-bottom: 1px solid #E5E7EB;">{escape(str(value))}</td>
        </tr>'''
        for label, value in fields.items() if value not in (None, "")
    )
    return f'''
    <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%" style="margin: 24px 0; border: 1px solid #E5E7EB; background-color: #F9FAFB; font-family: Arial, sans-serif;">
        <tr>
            <td colspan="2" style="background-color: #EEF2FF; padding: 12px 16px; font-size: 14px; font-weight: bold;">{escape(title)}</td>
        </tr>
        {rows}
    </table>
    '''


def _text_body(heading: str, fields: Dict[str, str], url: str) -> str:
    lines = [heading, ""]
    lines += [f"{label}: {value}" for label, value in fields.items() if value not in (None, "")]
    lines += ["", url]
    return "\n".join(lines)


# =============================================================================
# Templates
# =============================================================================

def get_assigned_template(payload: Dict[str, Any], app_url: str = "") -> Dict[str, str]:
    """Template: work item assigned to the recipient"""
    kind = payload.get("entity_label", "Item")
    title = payload.get("title", "")
    url = f"{app_url}{payload.get('path', '')}"
    fields = {
        "Assigned by": payload.get("actor_name", ""),
        "Priority": payload.get("priority", ""),
        "Due": payload.get("due_date", ""),
    }
    heading = f"{kind} assigned to you: {title}"
    html = get_base_template(
        content=f'<h1 style="font-size: 20px; margin: 0;">{escape(heading)}</h1>' + get_info_card(title, fields),
        action_button_text=f"Open {kind.lower()}",
        action_button_url=url,
    )
    return {"subject": heading, "html": html, "text": _text_body(heading, fields, url)}


def get_ticket_status_template(payload: Dict[str, Any], app_url: str = "") -> Dict[str, str]:
    """Template: ticket status changed"""
    title = payload.get("title", "")
    url = f"{app_url}{payload.get('path', '')}"
    fields = {
        "Previous status": payload.get("from_status", ""),
        "New status": payload.get("to_status", ""),
        "Changed by": payload.get("actor_name", ""),
    }
    heading = f"Ticket status changed: {title}"
    html = get_base_template(
        content=f'<h1 style="font-size: 20px; margin: 0;">{escape(heading)}</h1>' + get_info_card(title, fields),
        action_button_text="Open ticket",
        action_button_url=url,
        accent_color="#8B5CF6",
    )
    return {"subject": heading, "html": html, "text": _text_body(heading, fields, url)}


def get_comment_added_template(payload: Dict[str, Any], app_url: str = "") -> Dict[str, str]:
    """Template: new comment on a task or ticket"""
    kind = payload.get("entity_label", "Item")
    title = payload.get("title", "")
    url = f"{app_url}{payload.get('path', '')}"
    fields = {
        "Author": payload.get("actor_name", ""),
        "Comment": payload.get("excerpt", ""),
    }
    heading = f"New comment on {kind.lower()}: {title}"
    html = get_base_template(
        content=f'<h1 style="font-size: 20px; margin: 0;">{escape(heading)}</h1>' + get_info_card(title, fields),
        action_button_text="Read comment",
        action_button_url=url,
    )
    return {"subject": heading, "html": html, "text": _text_body(heading, fields, url)}


def get_deadline_template(payload: Dict[str, Any], app_url: str = "") -> Dict[str, str]:
    """Template: task due date approaching"""
    title = payload.get("title", "")
    days = int(payload.get("days_until_due", 0))
    when = "today" if days == 0 else ("tomorrow" if days == 1 else f"in {days} days")
    url = f"{app_url}{payload.get('path', '')}"
    fields = {
        "Due": payload.get("due_date", ""),
        "Priority": payload.get("priority", ""),
        "Status": payload.get("status", ""),
    }
    heading = f"Task due {when}: {title}"
    html = get_base_template(
        content=f'<h1 style="font-size: 20px; margin: 0;">{escape(heading)}</h1>' + get_info_card(title, fields),
        action_button_text="Open task",
        action_button_url=url,
        accent_color="#F59E0B" if days else "#EF4444",
    )
    return {"subject": heading, "html": html, "text": _text_body(heading, fields, url)}


TEMPLATE_REGISTRY = {
    NotificationTemplateKey.ASSIGNED: get_assigned_template,
    NotificationTemplateKey.TICKET_STATUS_CHANGED: get_ticket_status_template,
    NotificationTemplateKey.COMMENT_ADDED: get_comment_added_template,
    NotificationTemplateKey.DEADLINE_APPROACHING: get_deadline_template,
}


def get_email_template(
    template_key: str,
    payload: Dict[str, Any],
    app_url: str = ""
) -> Dict[str, str]:
    """
    Get rendered email template by key

    Args:
        template_key: Template identifier (from NotificationTemplateKey)
        payload: Data to populate the template
        app_url: Base URL for action buttons

    Returns:
        Dict with 'subject', 'html' and 'text' keys
    """
    template_func = TEMPLATE_REGISTRY[NotificationTemplateKey(template_key)]
    return template_func(payload, app_url)
