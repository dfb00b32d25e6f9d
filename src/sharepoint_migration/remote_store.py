# -*- coding: utf-8 -*-
"""
Abstract destination store interface.

The migration engine only talks to the destination through these four
operations. graph_api.GraphRemoteStore implements them with Microsoft Graph;
tests use an in-memory implementation.

All paths are relative to the root of the destination library and use
forward slashes (e.g. 'Clients/Acme/contract.pdf').
"""


class RemoteStore:
    """
    Base class for destination stores.

    Attributes:
        library_display_name (str): Library name as shown to users ('Documents')
        library_internal_name (str): URL folder name of the library ('Shared Documents')
        library_url (str): Absolute URL of the library root
    """

    library_display_name = None
    library_internal_name = None
    library_url = None

    def get_file(self, path):
        """
        Get file metadata by library-relative path.

        Args:
            path (str): Candidate path to the file

        Returns:
            RemoteFileInfo: Metadata when a file exists at path
            None: When nothing (or a folder) exists at path

        Raises:
            Exception: Transport or permission errors
        """
        raise NotImplementedError

    def list_folder(self, path):
        """
        List the direct children of a folder.

        Args:
            path (str): Folder path ('' for the library root)

        Returns:
            list: Dicts with 'name', 'is_folder', 'size', 'modified_at', 'id'
            None: When the folder does not exist
        """
        raise NotImplementedError

    def folder_exists(self, path):
        """Return True if a folder exists at path."""
        raise NotImplementedError

    def create_folder(self, parent_path, name):
        """
        Create a folder below parent_path.

        Returns:
            bool: True if the folder was created, False if it already existed

        Raises:
            Exception: Creation failed for another reason
        """
        raise NotImplementedError

    def upload_file(self, local_path, folder_path, file_name, overwrite=False,
                    modified_at=None, created_at=None):
        """
        Upload a local file into an existing folder.

        Args:
            local_path (str): Source file
            folder_path (str): Destination folder ('' for the library root)
            file_name (str): Destination file name
            overwrite (bool): Replace an existing file when True
            modified_at (datetime): Modification time stamped on the uploaded item
            created_at (datetime): Creation time stamped on the uploaded item

        Returns:
            RemoteFileInfo: Metadata of the uploaded file

        Raises:
            RemoteItemExistsError: overwrite is False and the file exists
            Exception: Upload failed
        """
        raise NotImplementedError
