import os
import threading
from datetime import datetime, timezone

import pytest

from sharepoint_migration.event_log import EventLog
from sharepoint_migration.exceptions import RemoteItemExistsError, UploadError
from sharepoint_migration.models import AccessState, FileDescriptor, RemoteFileInfo
from sharepoint_migration.path_mapper import normalize_key
from sharepoint_migration.remote_store import RemoteStore
from sharepoint_migration.run_context import RunContext

BASE_TIME = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


class InMemoryRemoteStore(RemoteStore):
    """RemoteStore keeping files and folders in dictionaries (case-insensitive paths)."""

    library_display_name = 'Documents'
    library_internal_name = 'Shared Documents'
    library_url = 'https://contoso.sharepoint.com/sites/Ops/Shared Documents'

    def __init__(self):
        self.files = {}
        self.folders = set()
        self.failing_uploads = set()
        self.failing_lookups = set()
        self.get_calls = []
        self.uploads = []
        self.created_folders = []
        self._lock = threading.Lock()

    def add_file(self, path, size=100, modified_at=BASE_TIME):
        path = path.strip('/')
        parts = path.split('/')
        for index in range(1, len(parts)):
            self.folders.add('/'.join(parts[:index]).lower())
        self.files[path.lower()] = RemoteFileInfo(path, size, modified_at, name=parts[-1])

    def get_file(self, path):
        with self._lock:
            self.get_calls.append(path)
        if path.lower() in self.failing_lookups:
            raise RuntimeError(f"lookup refused for {path}")
        return self.files.get(path.lower())

    def list_folder(self, path):
        parent = path.strip('/').lower()
        if parent and parent not in self.folders:
            return None
        children = []
        for key, info in self.files.items():
            folder = key.rsplit('/', 1)[0] if '/' in key else ''
            if folder == parent:
                children.append({'name': info.name, 'is_folder': False, 'size': info.size,
                                 'modified_at': info.modified_at, 'id': None})
        return children

    def folder_exists(self, path):
        return path.strip('/').lower() in self.folders

    def create_folder(self, parent_path, name):
        full_path = f"{parent_path}/{name}" if parent_path else name
        with self._lock:
            if full_path.lower() in self.folders:
                return False
            self.folders.add(full_path.lower())
            self.created_folders.append(full_path)
            return True

    def upload_file(self, local_path, folder_path, file_name, overwrite=False,
                    modified_at=None, created_at=None):
        target = f"{folder_path}/{file_name}" if folder_path else file_name
        with self._lock:
            if target.lower() in self.failing_uploads:
                raise UploadError(f"simulated failure for {target}")
            if target.lower() in self.files and not overwrite:
                raise RemoteItemExistsError(f"{target} already exists")
            info = RemoteFileInfo(target, os.path.getsize(local_path), modified_at, name=file_name)
            self.files[target.lower()] = info
            self.uploads.append((local_path, target, overwrite))
            return info


@pytest.fixture()
def store():
    return InMemoryRemoteStore()


@pytest.fixture()
def context():
    return RunContext(event_log=EventLog(), preview_count=0)


@pytest.fixture()
def make_descriptor(tmp_path):
    """Factory for descriptors backed by a real source file under tmp_path."""

    def factory(destination_path, size=100, modified_at=BASE_TIME, locked=False, source_name=None):
        source = tmp_path / 'source' / (source_name or destination_path.replace('/', '_'))
        source.parent.mkdir(parents=True, exist_ok=True)
        source.write_bytes(b'x' * size)
        return FileDescriptor(
            source_absolute_path=str(source),
            source_relative_path=destination_path,
            destination_path=destination_path,
            normalized_key=normalize_key(destination_path),
            size=None if locked else size,
            created_at=None if locked else modified_at,
            modified_at=None if locked else modified_at,
            access_state=AccessState.LOCKED if locked else AccessState.ACCESSIBLE,
            error_detail='PermissionError: locked' if locked else None,
        )

    return factory
