# -*- coding: utf-8 -*-
"""
Upload operations for SharePoint migration.

This module ensures the destination folder structure and uploads single
files through a RemoteStore. Every outcome, including errors, is returned
as an UploadOutcome so one bad file never stops the run.
"""

import threading
from .exceptions import RemoteItemExistsError
from .models import UploadOutcome, UploadResult
from .utils import is_debug_enabled


class Uploader:
    """
    Folder creation and file upload against a RemoteStore.

    Args:
        store (RemoteStore): Destination store
        context (RunContext): Optional, receives folder counters

    Note:
        The folder cache is shared by all worker threads and lock-protected.
        Folder creation is idempotent: "already exists" counts as success,
        so two workers racing on the same folder both continue.
    """

    def __init__(self, store, context=None):
        self.store = store
        self.context = context
        # Lower-cased folder path -> True, SharePoint paths are case-insensitive
        self._known_folders = set()
        self._folder_lock = threading.Lock()

    def _count(self, key):
        if self.context is not None:
            self.context.stats.increment(key)

    def _is_known(self, path):
        with self._folder_lock:
            return path.lower() in self._known_folders

    def _remember(self, path):
        with self._folder_lock:
            self._known_folders.add(path.lower())

    def ensure_folder_exists(self, folder_path):
        """
        Create every missing folder of a path, one segment at a time.

        Args:
            folder_path (str): Library-relative folder path ('2024/Reports/January')

        Raises:
            Exception: If a folder can neither be found nor created

        Example:
            uploader.ensure_folder_exists('Clients/Acme')
            # 'Clients' and 'Clients/Acme' now exist
        """
        folder_path = (folder_path or '').replace('\\', '/')
        path_parts = [part for part in folder_path.split('/') if part]

        parent_path = ''
        for folder_name in path_parts:
            current_path = f"{parent_path}/{folder_name}" if parent_path else folder_name

            if self._is_known(current_path):
                parent_path = current_path
                continue

            if self.store.folder_exists(current_path):
                if is_debug_enabled():
                    print(f"[✓] Folder already exists: {current_path}")
            else:
                if is_debug_enabled():
                    print(f"[+] Creating folder: {current_path}")
                if self.store.create_folder(parent_path, folder_name):
                    self._count('folders_created')
                elif is_debug_enabled():
                    print(f"[!] Folder already exists (race condition): {current_path}")

            self._remember(current_path)
            parent_path = current_path

    def upload(self, source_absolute_path, destination_path, overwrite, modified_at=None, created_at=None,
               source_size=None):
        """
        Upload one file to its destination path.

        Args:
            source_absolute_path (str): File on the file server
            destination_path (str): Library-relative destination including file name
            overwrite (bool): Replace an existing destination file
            modified_at (datetime): Source modification time stamped on the item
            created_at (datetime): Source creation time stamped on the item
            source_size (int): Size read during the scan, used when the service
                does not report one

        Returns:
            UploadOutcome: Success, Skipped (exists and overwrite is False)
            or Failed with the error message
        """
        destination_path = destination_path.replace('\\', '/').strip('/')
        if '/' in destination_path:
            folder_path, file_name = destination_path.rsplit('/', 1)
        else:
            folder_path, file_name = '', destination_path

        try:
            self.ensure_folder_exists(folder_path)
            remote = self.store.upload_file(
                source_absolute_path, folder_path, file_name,
                overwrite=overwrite, modified_at=modified_at, created_at=created_at
            )
        except RemoteItemExistsError as e:
            print(f"[=] Skipped, already exists: {destination_path}")
            return UploadOutcome(UploadResult.SKIPPED, destination_path, source_absolute_path,
                                 error_detail=str(e))
        except Exception as e:
            print(f"[!] Upload failed: {destination_path}: {e}")
            return UploadOutcome(UploadResult.FAILED, destination_path, source_absolute_path,
                                 error_detail=str(e))

        if remote is not None and remote.size is not None:
            size = remote.size
        else:
            size = source_size or 0

        if overwrite:
            print(f"[✓] File Updated: {destination_path}")
        else:
            print(f"[✓] File Uploaded: {destination_path}")
        return UploadOutcome(UploadResult.SUCCESS, destination_path, source_absolute_path,
                             remote=remote, bytes_uploaded=size)
