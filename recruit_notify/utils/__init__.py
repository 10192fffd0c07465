"""Utility functions for time handling."""

from .timestamps import ensure_utc, timestamp_to_unix, utc_now

__all__ = [
    "utc_now",
    "ensure_utc",
    "timestamp_to_unix",
]
