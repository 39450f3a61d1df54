"""Utility functions for the registry purge engine."""

from .digest import calculate_digest, is_sha256_digest, short_hex, validate_digest
from .timestamps import format_timestamp, parse_timestamp, utc_now

__all__ = [
    "calculate_digest",
    "is_sha256_digest",
    "short_hex",
    "validate_digest",
    "format_timestamp",
    "parse_timestamp",
    "utc_now",
]
