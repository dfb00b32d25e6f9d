# -*- coding: utf-8 -*-
"""
File handling operations for the source share.

This module provides the per-file primitives used by the enumerator:
exclusion matching, metadata reading with lock detection and date-range
checks.
"""

import fnmatch
import os
from datetime import datetime, timezone
from .utils import is_debug_enabled


def should_exclude_path(path, exclude_patterns):
    """
    Check if a file path should be excluded based on exclusion patterns.

    Matches each pattern against the file name, each path component (so a
    folder name like '~snapshot' excludes everything below it) and the full
    path.

    Args:
        path (str): File path relative to the source root (either separator)
        exclude_patterns (list): Patterns like ['*.tmp', 'Thumbs.db', '~snapshot']

    Returns:
        bool: True if path should be excluded, False otherwise

    Examples:
        >>> should_exclude_path('a/Thumbs.db', ['Thumbs.db'])
        True
        >>> should_exclude_path('~snapshot/a/report.pdf', ['~snapshot'])
        True
        >>> should_exclude_path('docs/report.pdf', ['*.tmp', 'tmp'])
        False
    """
    if not exclude_patterns:
        return False

    normalized_path = path.replace('\\', '/')
    basename = normalized_path.rsplit('/', 1)[-1]
    path_components = normalized_path.split('/')

    for pattern in exclude_patterns:
        if fnmatch.fnmatch(basename, pattern):
            return True

        # Plain names also match folders anywhere in the path
        if '*' not in pattern and '?' not in pattern and '[' not in pattern:
            if pattern in path_components:
                return True

        if fnmatch.fnmatch(normalized_path, pattern):
            return True

        # Extension-only patterns: 'tmp' -> '*.tmp'
        if not pattern.startswith('*') and not pattern.startswith('.'):
            if fnmatch.fnmatch(basename, f'*.{pattern}'):
                return True

    return False


def _creation_timestamp(stat_result):
    """
    Best available creation time of a stat result.

    st_birthtime exists on Windows (Python 3.12+), macOS and BSD. Windows
    st_ctime is the creation time as well; elsewhere st_ctime (inode change)
    is the closest available value.
    """
    birth = getattr(stat_result, 'st_birthtime', None)
    if birth is not None:
        return birth
    return stat_result.st_ctime


def read_file_metadata(path, probe_locks=False):
    """
    Read size, creation and modification time of a source file.

    Args:
        path (str): Absolute file path
        probe_locks (bool): Also open the file for reading to detect files
            held open exclusively by another process

    Returns:
        tuple: (size, created_at, modified_at, error_detail)
            - On success error_detail is None and timestamps are aware UTC datetimes
            - On failure size and timestamps are None and error_detail says why
    """
    try:
        stat_result = os.stat(path)
        size = stat_result.st_size
        modified_at = datetime.fromtimestamp(stat_result.st_mtime, tz=timezone.utc)
        created_at = datetime.fromtimestamp(_creation_timestamp(stat_result), tz=timezone.utc)

        if probe_locks:
            with open(path, 'rb'):
                pass

        return size, created_at, modified_at, None

    except (OSError, ValueError, OverflowError) as e:
        detail = f"{type(e).__name__}: {e}"
        if is_debug_enabled():
            print(f"[!] Cannot read metadata for {path}: {detail}")
        return None, None, None, detail


def in_date_range(created_at, modified_at, date_range):
    """
    Check the date filter: kept when EITHER timestamp lies within [start, end].

    Args:
        created_at (datetime): File creation time
        modified_at (datetime): File modification time
        date_range (tuple): (start, end) aware datetimes, or None for no filter

    Returns:
        bool: True if the file passes the filter
    """
    if not date_range:
        return True
    start, end = date_range
    for value in (created_at, modified_at):
        if value is None:
            continue
        if start is not None and value < start:
            continue
        if end is not None and value > end:
            continue
        return True
    return False
