# -*- coding: utf-8 -*-
"""
SharePoint Migration Reconciliation Package
===========================================

This package provides modular components for reconciling a file server
share with a SharePoint document library: per-file destination lookup,
timestamp/size classification, reports for operators and bulk migration
tools, and an optional guarded upload of the missing files.

Modules:
--------
- config: Configuration and argument parsing
- auth: Microsoft authentication
- graph_api: Microsoft Graph API operations (GraphRemoteStore)
- remote_store: Abstract destination store interface
- path_mapper: Source-to-destination path mapping
- enumerator, file_handler: Source scan and file metadata
- lookup: Remote lookup with candidate fallbacks
- classifier: Migration status and action per file
- driver, uploader: Batch/streaming processing and uploads
- reporting, event_log: CSV reports, run summary, JSON Lines event log
- monitoring: Rate limiting monitoring
- run_context, thread_utils: Run state, counters and thread-safe output
- utils: Shared utility functions

Usage Example:
-------------
    from sharepoint_migration import classify, map_destination_path

    destination = map_destination_path('Clients (2019)', 'Acme/contract.pdf')
    result = classify(descriptor, remote_info, tolerance_seconds=2)
"""

__version__ = "1.0.0"

# Main exports for convenience
from .config import parse_config, Config
from .auth import TokenProvider
from .graph_api import GraphRemoteStore, make_graph_request_with_retry
from .remote_store import RemoteStore
from .path_mapper import (
    DestinationMapper,
    FolderNameTransform,
    map_destination_path,
    normalize_key,
    sanitize_destination_path,
    to_display_path
)
from .enumerator import enumerate_source
from .lookup import RemoteLookup
from .classifier import classify, is_actionable, is_upload_eligible, overwrite_for_action
from .driver import DriverOptions, MigrationDriver
from .uploader import Uploader
from .run_context import RunContext
from .event_log import EventLog
from .reporting import ComparisonReport, MigrationManifest, write_run_summary
from .monitoring import RateLimitMonitor, print_rate_limiting_summary
from .models import (
    AccessState,
    ClassificationResult,
    FileDescriptor,
    MigrationAction,
    MigrationStatus,
    RemoteFileInfo,
    UploadOutcome,
    UploadResult
)
from .utils import is_debug_metadata_enabled, is_debug_enabled

__all__ = [
    # Configuration
    'parse_config',
    'Config',
    # Authentication and Graph API
    'TokenProvider',
    'GraphRemoteStore',
    'make_graph_request_with_retry',
    'RemoteStore',
    # Path mapping and scan
    'DestinationMapper',
    'FolderNameTransform',
    'map_destination_path',
    'normalize_key',
    'sanitize_destination_path',
    'to_display_path',
    'enumerate_source',
    # Lookup and classification
    'RemoteLookup',
    'classify',
    'is_actionable',
    'is_upload_eligible',
    'overwrite_for_action',
    # Migration
    'DriverOptions',
    'MigrationDriver',
    'Uploader',
    'RunContext',
    # Reporting
    'EventLog',
    'ComparisonReport',
    'MigrationManifest',
    'write_run_summary',
    'RateLimitMonitor',
    'print_rate_limiting_summary',
    # Models
    'AccessState',
    'ClassificationResult',
    'FileDescriptor',
    'MigrationAction',
    'MigrationStatus',
    'RemoteFileInfo',
    'UploadOutcome',
    'UploadResult',
    # Utilities
    'is_debug_metadata_enabled',
    'is_debug_enabled',
]
