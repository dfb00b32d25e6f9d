# -*- coding: utf-8 -*-
"""
Value types passed between the migration stages.

All records are immutable once produced: the enumerator creates
FileDescriptor objects, the lookup creates RemoteFileInfo objects, the
classifier creates ClassificationResult objects and the uploader creates
UploadOutcome objects.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class AccessState(str, Enum):
    ACCESSIBLE = 'Accessible'
    LOCKED = 'Locked'


class MigrationStatus(str, Enum):
    MISSING = 'Missing'
    NEWER_ON_SERVER = 'NewerOnServer'
    NEWER_IN_SHAREPOINT = 'NewerInSharePoint'
    SIZE_MISMATCH = 'SizeMismatch'
    IDENTICAL = 'Identical'
    LOCKED = 'Locked'


class MigrationAction(str, Enum):
    MIGRATE = 'Migrate'
    CAN_MIGRATE = 'CanMigrate'
    SKIP = 'Skip'
    REVIEW = 'Review'
    REVIEW_LOCKED = 'ReviewLocked'


class UploadResult(str, Enum):
    SUCCESS = 'Success'
    FAILED = 'Failed'
    SKIPPED = 'Skipped'


@dataclass(frozen=True)
class FileDescriptor:
    """One file discovered on the file server."""

    source_absolute_path: str
    source_relative_path: str
    destination_path: str
    normalized_key: str
    size: Optional[int]
    created_at: Optional[datetime]
    modified_at: Optional[datetime]
    access_state: AccessState = AccessState.ACCESSIBLE
    error_detail: Optional[str] = None
    raw_destination_path: Optional[str] = None

    @property
    def is_locked(self) -> bool:
        return self.access_state == AccessState.LOCKED

    @property
    def display_path(self) -> str:
        """Backslash form of the destination path used in reports and keys."""
        return self.destination_path.replace('/', '\\')

    @property
    def file_name(self) -> str:
        return self.destination_path.rsplit('/', 1)[-1]


@dataclass(frozen=True)
class RemoteFileInfo:
    """Metadata of a file found in the destination library."""

    resolved_url: str
    size: Optional[int]
    modified_at: Optional[datetime]
    name: Optional[str] = None
    item_id: Optional[str] = None


@dataclass(frozen=True)
class ClassificationResult:
    """Comparison outcome for one source file."""

    descriptor: FileDescriptor
    status: MigrationStatus
    action: MigrationAction
    remote: Optional[RemoteFileInfo] = None
    delta_seconds: Optional[float] = None

    @property
    def source_size(self):
        return self.descriptor.size

    @property
    def source_modified(self):
        return self.descriptor.modified_at

    @property
    def remote_size(self):
        return self.remote.size if self.remote else None

    @property
    def remote_modified(self):
        return self.remote.modified_at if self.remote else None


@dataclass(frozen=True)
class UploadOutcome:
    """Result of one upload attempt."""

    result: UploadResult
    destination_path: str
    source_path: str
    error_detail: Optional[str] = None
    remote: Optional[RemoteFileInfo] = None
    bytes_uploaded: int = 0

    @property
    def succeeded(self) -> bool:
        return self.result == UploadResult.SUCCESS

    @property
    def failed(self) -> bool:
        return self.result == UploadResult.FAILED
