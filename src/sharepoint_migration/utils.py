# -*- coding: utf-8 -*-
"""
Shared utility functions for SharePoint migration operations.

This module provides common helper functions used across multiple modules.
"""

import os
from datetime import datetime, time, timezone


def is_debug_metadata_enabled():
    """
    Check if debug metadata mode is enabled via DEBUG_METADATA environment variable.

    This is for detailed Graph API debugging (request URLs, response bodies,
    rate limiting headers).

    Returns:
        bool: True if debug metadata mode is enabled, False otherwise
    """
    return os.environ.get('DEBUG_METADATA', 'false').lower() == 'true'


def is_debug_enabled():
    """
    Check if general debug mode is enabled via DEBUG environment variable.

    This controls per-file messages: enumeration decisions, lookup candidates,
    classification details and folder operations. Does not affect:
    - Connection messages
    - Scan counts
    - Final summary statistics
    - Error messages

    Returns:
        bool: True if general debug mode is enabled, False otherwise
    """
    return os.environ.get('DEBUG', 'false').lower() == 'true'


def parse_iso_datetime(value, end_of_day=False):
    """
    Parse an ISO-8601 date or datetime string into an aware datetime.

    Args:
        value (str): Value like '2024-01-31', '2024-01-31T12:00:00' or
            '2024-01-31T12:00:00Z'
        end_of_day (bool): For date-only values, return 23:59:59.999999 of that
            day instead of midnight (used for inclusive end bounds)

    Returns:
        datetime: Timezone-aware datetime (naive input is read as local time)
        None: If value is empty

    Raises:
        ValueError: If the value cannot be parsed
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if not text:
            return None
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        parsed = datetime.fromisoformat(text)
        if end_of_day and 'T' not in text and ' ' not in text:
            parsed = datetime.combine(parsed.date(), time.max)

    if parsed.tzinfo is None:
        # Naive values are interpreted in the local timezone of the host
        parsed = parsed.astimezone()
    return parsed


def parse_graph_timestamp(value):
    """
    Parse a Graph API timestamp ('2024-05-01T10:22:31Z') into an aware UTC datetime.

    Args:
        value (str): Timestamp string from a driveItem

    Returns:
        datetime: UTC datetime, or None if value is empty or malformed
    """
    if not value:
        return None
    try:
        return parse_iso_datetime(value).astimezone(timezone.utc)
    except ValueError:
        if is_debug_enabled():
            print(f"[!] Unparseable remote timestamp: {value}")
        return None


def format_graph_timestamp(value):
    """Format an aware datetime the way Graph expects in fileSystemInfo."""
    return value.astimezone(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')


def format_bytes(bytes_value):
    """
    Convert bytes to human-readable format.

    Args:
        bytes_value (int): Number of bytes to format

    Returns:
        str: Human-readable string (e.g., "1.5 MB")
    """
    bytes_value = float(bytes_value or 0)
    for unit in ['B', 'KB', 'MB', 'GB']:
        if bytes_value < 1024.0:
            return f"{bytes_value:.1f} {unit}"
        bytes_value /= 1024.0
    return f"{bytes_value:.1f} TB"


def format_timestamp(value):
    """Render an optional datetime for reports (ISO-8601, UTC)."""
    if value is None:
        return ''
    return value.astimezone(timezone.utc).isoformat()
