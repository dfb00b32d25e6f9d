# -*- coding: utf-8 -*-
"""
Source enumeration for the file server share.

enumerate_source() is a generator: descriptors are produced lazily while
the tree is walked, so streaming runs classify and upload each file before
the next one is read and batch runs simply materialize the sequence.
"""

import os
from datetime import datetime, timezone
from .exceptions import SourceRootError
from .file_handler import in_date_range, read_file_metadata, should_exclude_path
from .models import AccessState, FileDescriptor
from .path_mapper import normalize_key
from .utils import is_debug_enabled

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def build_date_range(start=None, end=None, now=None):
    """
    Resolve the configured date bounds.

    Args:
        start (datetime): Inclusive lower bound or None
        end (datetime): Inclusive upper bound or None
        now (datetime): Reference time for the default end (for tests)

    Returns:
        tuple: (start, end) with defaults filled in, or None when neither
        bound is configured (no filtering)
    """
    if start is None and end is None:
        return None
    if start is None:
        start = EPOCH
    if end is None:
        end = now or datetime.now(timezone.utc)
    return start, end


def verify_source_root(root_path):
    """
    Fail fast if the source root cannot be enumerated at all.

    Raises:
        SourceRootError: Root missing, not a directory or not listable
    """
    if not root_path or not os.path.exists(root_path):
        raise SourceRootError(f"Source path does not exist: {root_path}")
    if not os.path.isdir(root_path):
        raise SourceRootError(f"Source path is not a directory: {root_path}")
    try:
        with os.scandir(root_path) as entries:
            next(entries, None)
    except OSError as e:
        raise SourceRootError(f"Source path cannot be listed: {root_path} ({e})") from e


def enumerate_source(root_path, context, mapper, date_range=None, exclude_patterns=None,
                     probe_locks=False):
    """
    Walk the source tree and yield one FileDescriptor per kept file.

    Args:
        root_path (str): File server path to scan
        context (RunContext): Receives the enumeration counters
        mapper (DestinationMapper): Computes destination paths
        date_range (tuple): (start, end) from build_date_range(), or None
        exclude_patterns (list): Glob patterns of files/folders to leave out
        probe_locks (bool): Open each file to detect exclusive locks

    Yields:
        FileDescriptor: Accessible or Locked descriptors, in walk order

    Raises:
        SourceRootError: If the root itself cannot be enumerated

    Note:
        Locked files are always yielded (with size and timestamps set to
        None) because their dates cannot be checked. Files outside the date
        range or matching an exclusion pattern are counted, not yielded.
    """
    verify_source_root(root_path)
    stats = context.stats

    def on_walk_error(error):
        # A folder that cannot be listed is reported; the walk continues
        stats.increment('folders_unreadable')
        print(f"[!] Cannot read folder {getattr(error, 'filename', '')}: {error}")
        context.log_event('folder_unreadable', path=getattr(error, 'filename', None),
                          error=str(error))

    for current_dir, dir_names, file_names in os.walk(root_path, onerror=on_walk_error):
        for file_name in file_names:
            absolute_path = os.path.join(current_dir, file_name)
            relative_path = os.path.relpath(absolute_path, root_path).replace(os.sep, '/')
            relative_path = relative_path.replace('\\', '/')
            stats.increment('files_seen')

            if should_exclude_path(relative_path, exclude_patterns):
                stats.increment('files_excluded')
                if is_debug_enabled():
                    print(f"[=] Excluded: {relative_path}")
                continue

            size, created_at, modified_at, error_detail = read_file_metadata(
                absolute_path, probe_locks=probe_locks
            )
            access_state = AccessState.ACCESSIBLE if error_detail is None else AccessState.LOCKED

            if access_state == AccessState.ACCESSIBLE and not in_date_range(created_at, modified_at, date_range):
                stats.increment('files_date_filtered')
                continue

            destination_path, raw_destination_path = mapper.map(relative_path)

            if access_state == AccessState.LOCKED:
                stats.increment('files_locked')
                print(f"[!] Locked file: {absolute_path} ({error_detail})")

            stats.increment('files_emitted')
            yield FileDescriptor(
                source_absolute_path=absolute_path,
                source_relative_path=relative_path,
                destination_path=destination_path,
                normalized_key=normalize_key(destination_path),
                size=size,
                created_at=created_at,
                modified_at=modified_at,
                access_state=access_state,
                error_detail=error_detail,
                raw_destination_path=raw_destination_path,
            )
