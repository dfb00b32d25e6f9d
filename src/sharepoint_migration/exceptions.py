# -*- coding: utf-8 -*-
"""
Error taxonomy for SharePoint migration runs.

Fatal errors derive from MigrationError and abort the run. Per-file problems
(locked files, lookup misses, upload failures) are never raised past the
driver; they become classified outcomes instead.
"""


class MigrationError(Exception):
    """Base class for all fatal migration errors."""


class ConfigError(MigrationError):
    """Missing or invalid run configuration."""


class SourceRootError(MigrationError):
    """The file server root does not exist or cannot be enumerated."""


class RemoteConnectionError(MigrationError):
    """Credential, site or library could not be resolved."""


class KeyCollisionError(MigrationError):
    """Two source paths map to the same destination key under the 'error' policy."""

    def __init__(self, normalized_key, first_path, second_path):
        self.normalized_key = normalized_key
        self.first_path = first_path
        self.second_path = second_path
        super().__init__(
            f"Destination key collision for '{normalized_key}': "
            f"'{first_path}' and '{second_path}'"
        )


class FailFastAbort(MigrationError):
    """Raised after the first failed upload has been recorded when fail-fast is on."""

    def __init__(self, outcome):
        self.outcome = outcome
        super().__init__(
            f"Fail-fast: upload failed for {outcome.destination_path}: {outcome.error_detail}"
        )


class UploadError(Exception):
    """A single upload or folder operation failed (captured as a Failed outcome)."""


class RemoteItemExistsError(Exception):
    """The destination already holds an item with this name (conflict behavior 'fail')."""


class GraphRequestError(Exception):
    """A Graph API request failed after all retries or with an unexpected status."""

    def __init__(self, message, status_code=None):
        self.status_code = status_code
        super().__init__(message)
