"""Utility modules"""
from .logger import get_logger, setup_logging
from .jwt import create_access_token, decode_token
from .idgen import generate_id, generate_correlation_id
from .time import utc_now, format_iso

__all__ = [
    "get_logger",
    "setup_logging",
    "create_access_token",
    "decode_token",
    "generate_id",
    "generate_correlation_id",
    "utc_now",
    "format_iso",
]
