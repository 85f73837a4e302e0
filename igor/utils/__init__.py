"""Utility helpers for Igor."""

from __future__ import annotations

from .timestamps import format_age, parse_timestamp, utc_now

__all__ = [
    "format_age",
    "parse_timestamp",
    "utc_now",
]
