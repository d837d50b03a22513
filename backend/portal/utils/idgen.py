"""ID Generation Utilities"""
import uuid
from datetime import datetime, timezone
from typing import Optional


def generate_id(prefix: Optional[str] = None) -> str:
    """
    Generate a unique ID with optional prefix

    Args:
        prefix: Optional prefix for the ID (e.g., 'CUS', 'PRJ', 'TSK')

    Returns:
        Unique ID string

    Examples:
        >>> generate_id('TKT')
        'TKT-a1b2c3d4e5f6'
        >>> generate_id()
        'a1b2c3d4e5f6'
    """
    unique_part = uuid.uuid4().hex[:12]

    if prefix:
        return f"{prefix}-{unique_part}"
    return unique_part


# Prefix per entity collection
ID_PREFIXES = {
    "customer": "CUS",
    "address": "ADR",
    "contact": "CON",
    "project": "PRJ",
    "task": "TSK",
    "ticket": "TKT",
    "comment": "CMT",
    "staff_user": "USR",
    "consumer_user": "KND",
    "audit": "AUD",
    "notification": "NTF",
    "outbox": "OBX",
    "side_effect": "SFX",
}


def generate_entity_id(kind: str) -> str:
    """Generate an ID for one of the known entity kinds"""
    return generate_id(ID_PREFIXES[kind])


def generate_correlation_id() -> str:
    """
    Generate a correlation ID for request tracing

    Returns:
        Correlation ID string with timestamp prefix
    """
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    unique_part = uuid.uuid4().hex[:8]
    return f"COR-{timestamp}-{unique_part}"
