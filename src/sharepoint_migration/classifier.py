# -*- coding: utf-8 -*-
"""
Migration classification for one source file.

Compares source and destination metadata using modification time (with a
tolerance window) and size. Content is never hashed.

Decision table:
    source locked                      -> Locked / ReviewLocked (missing) or Review (present)
    missing at destination             -> Missing / Migrate
    source newer by more than tolerance -> NewerOnServer / CanMigrate (or Skip)
    destination newer by more than tol. -> NewerInSharePoint / Skip (always)
    same time, different size          -> SizeMismatch / Review
    same time, same size               -> Identical / Skip

A destination file edited after the source copy is never scheduled for
upload, whatever the configuration.
"""

from .models import ClassificationResult, MigrationAction, MigrationStatus
from .utils import is_debug_enabled

DEFAULT_TOLERANCE_SECONDS = 2.0

UPLOAD_ACTIONS = (MigrationAction.MIGRATE, MigrationAction.CAN_MIGRATE)

# Actions that need an operator or an upload
ACTIONABLE_ACTIONS = (
    MigrationAction.MIGRATE,
    MigrationAction.CAN_MIGRATE,
    MigrationAction.REVIEW,
    MigrationAction.REVIEW_LOCKED,
)


def classify(descriptor, remote_info, tolerance_seconds=DEFAULT_TOLERANCE_SECONDS,
             include_can_migrate=True):
    """
    Classify a source file against its destination counterpart.

    Args:
        descriptor (FileDescriptor): Source file
        remote_info (RemoteFileInfo): Destination metadata, None if not found
        tolerance_seconds (float): Timestamps closer than this are equal
        include_can_migrate (bool): When False, files newer on the file server
            are reported but their action is Skip instead of CanMigrate

    Returns:
        ClassificationResult: Status and action for the file
    """
    tolerance = abs(float(tolerance_seconds or 0))

    if descriptor.is_locked:
        action = MigrationAction.REVIEW_LOCKED if remote_info is None else MigrationAction.REVIEW
        return ClassificationResult(descriptor, MigrationStatus.LOCKED, action, remote_info)

    if remote_info is None:
        return ClassificationResult(descriptor, MigrationStatus.MISSING, MigrationAction.MIGRATE)

    if descriptor.modified_at is None or remote_info.modified_at is None:
        # No timestamp to compare: cannot decide automatically
        return ClassificationResult(descriptor, MigrationStatus.SIZE_MISMATCH,
                                    MigrationAction.REVIEW, remote_info)

    delta = (descriptor.modified_at - remote_info.modified_at).total_seconds()

    if delta > tolerance:
        status = MigrationStatus.NEWER_ON_SERVER
        action = MigrationAction.CAN_MIGRATE if include_can_migrate else MigrationAction.SKIP
    elif delta < -tolerance:
        status = MigrationStatus.NEWER_IN_SHAREPOINT
        action = MigrationAction.SKIP
    elif descriptor.size != remote_info.size:
        status = MigrationStatus.SIZE_MISMATCH
        action = MigrationAction.REVIEW
    else:
        status = MigrationStatus.IDENTICAL
        action = MigrationAction.SKIP

    if is_debug_enabled():
        print(f"[DEBUG] {status.value} (delta {delta:+.3f}s, size {descriptor.size} vs "
              f"{remote_info.size}): {descriptor.destination_path}")

    return ClassificationResult(descriptor, status, action, remote_info, delta)


def is_actionable(result):
    """True for rows listed in the planned-action preview (everything except Skip)."""
    return result.action in ACTIONABLE_ACTIONS


def is_upload_eligible(result):
    """True if the action allows an upload (Migrate or CanMigrate)."""
    return result.action in UPLOAD_ACTIONS


def overwrite_for_action(action):
    """
    Overwrite policy per action.

    Migrate (missing at destination) never overwrites, so a file that
    appeared in the meantime is left alone. CanMigrate replaces the
    destination because the source is known to be newer.
    """
    return action == MigrationAction.CAN_MIGRATE
