# -*- coding: utf-8 -*-
"""
Report writers for migration runs.

- ComparisonReport: one CSV row per classified file, written as results
  arrive so streaming runs never hold the full result set in memory
- MigrationManifest: CSV handoff for bulk migration tools (Migrate and
  CanMigrate rows only)
- write_run_summary: human-readable text summary
"""

import csv
import os
import threading
from urllib.parse import quote
from .models import MigrationAction, MigrationStatus, UploadResult
from .utils import format_bytes, format_timestamp

COMPARISON_REPORT_NAME = 'comparison_report.csv'
MIGRATION_MANIFEST_NAME = 'migration_manifest.csv'
RUN_SUMMARY_NAME = 'run_summary.txt'
EVENT_LOG_NAME = 'events.jsonl'

COMPARISON_COLUMNS = [
    'Status', 'Action', 'DestinationPath', 'SourcePath',
    'SourceSize', 'SourceModified', 'RemoteSize', 'RemoteModified',
    'DeltaSeconds', 'ResolvedRemotePath', 'UploadResult', 'Detail',
]

MANIFEST_COLUMNS = ['SourcePath', 'DestinationUrl', 'DestinationPath', 'FileName']


class _CsvSink:
    """Lock-protected CSV writer that flushes every row."""

    def __init__(self, path, columns):
        self.path = path
        self.rows_written = 0
        self._lock = threading.Lock()
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        # utf-8-sig so Excel opens paths with non-ASCII characters correctly
        self._handle = open(path, 'w', newline='', encoding='utf-8-sig')
        self._writer = csv.writer(self._handle)
        self._writer.writerow(columns)
        self._handle.flush()

    def _write(self, row):
        with self._lock:
            self._writer.writerow(row)
            self._handle.flush()
            self.rows_written += 1

    def close(self):
        with self._lock:
            if not self._handle.closed:
                self._handle.close()


class ComparisonReport(_CsvSink):
    """Per-file comparison report."""

    def __init__(self, path):
        super().__init__(path, COMPARISON_COLUMNS)

    def add(self, result, outcome=None):
        """
        Write one classified file.

        Args:
            result (ClassificationResult): Classification of the file
            outcome (UploadOutcome): Upload attempt result, if any
        """
        descriptor = result.descriptor
        detail = descriptor.error_detail or ''
        if outcome is not None and outcome.error_detail:
            detail = outcome.error_detail

        self._write([
            result.status.value,
            result.action.value,
            descriptor.display_path,
            descriptor.source_absolute_path,
            '' if result.source_size is None else result.source_size,
            format_timestamp(result.source_modified),
            '' if result.remote_size is None else result.remote_size,
            format_timestamp(result.remote_modified),
            '' if result.delta_seconds is None else f"{result.delta_seconds:.3f}",
            result.remote.resolved_url if result.remote else '',
            outcome.result.value if outcome is not None else '',
            detail,
        ])


class MigrationManifest(_CsvSink):
    """
    Handoff manifest for a separate bulk-migration tool.

    Args:
        path (str): CSV path
        library_url (str): Absolute URL of the library root, used to build
            DestinationUrl (e.g. 'https://contoso.sharepoint.com/sites/Ops/Shared Documents')
    """

    def __init__(self, path, library_url):
        super().__init__(path, MANIFEST_COLUMNS)
        self.library_url = library_url.rstrip('/') if library_url else ''

    def add(self, result):
        """Write a row for Migrate/CanMigrate results, ignore everything else."""
        if result.action not in (MigrationAction.MIGRATE, MigrationAction.CAN_MIGRATE):
            return
        descriptor = result.descriptor
        self._write([
            descriptor.source_absolute_path,
            build_destination_url(self.library_url, descriptor.destination_path),
            descriptor.display_path,
            descriptor.file_name,
        ])


def build_destination_url(library_url, destination_path):
    """
    Build the absolute URL of a destination file.

    Each path segment is percent-encoded separately so slashes are preserved.
    """
    encoded = '/'.join(quote(part) for part in destination_path.split('/') if part)
    if not library_url:
        return encoded
    return f"{library_url}/{encoded}"


def write_run_summary(path, context, paths_used):
    """
    Write the human-readable run summary.

    Args:
        path (str): Output text file
        context (RunContext): Run whose counters are summarized
        paths_used (dict): Label -> path/URL shown in the 'Paths' section

    Returns:
        str: The summary text (also written to path)
    """
    text = render_summary(context, paths_used)
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(text)
    return text


def render_summary(context, paths_used=None):
    """Render the summary text for a run context."""
    stats = context.stats.snapshot()
    lines = []
    lines.append("=" * 60)
    lines.append("MIGRATION RUN SUMMARY")
    lines.append("=" * 60)
    lines.append(f"Run ID:                      {context.run_id}")
    lines.append(f"Mode:                        {context.mode}")
    lines.append(f"Migration enabled:           {context.migrate}")
    lines.append(f"Run state:                   {context.state}")

    lines.append("")
    lines.append("[SCAN] Enumeration:")
    for key, label in (('files_seen', 'Files seen'),
                       ('files_emitted', 'Files classified'),
                       ('files_locked', 'Locked files'),
                       ('files_date_filtered', 'Outside date range'),
                       ('files_excluded', 'Excluded by pattern'),
                       ('folders_unreadable', 'Unreadable folders'),
                       ('key_collisions', 'Destination key collisions')):
        lines.append(f"   - {label + ':':<26}{stats.get(key, 0):>8}")

    lines.append("")
    lines.append("[STATUS] Files per status:")
    for status in MigrationStatus:
        lines.append(f"   - {status.value + ':':<26}{stats.get('status_' + status.value, 0):>8}")

    lines.append("")
    lines.append("[ACTION] Files per action:")
    for action in MigrationAction:
        lines.append(f"   - {action.value + ':':<26}{stats.get('action_' + action.value, 0):>8}")

    lines.append("")
    lines.append("[UPLOAD] Upload outcomes:")
    lines.append(f"   - {'Attempted:':<26}{stats.get('upload_attempted', 0):>8}")
    for result in UploadResult:
        lines.append(f"   - {result.value + ':':<26}{stats.get('upload_' + result.value, 0):>8}")
    lines.append(f"   - {'Data uploaded:':<26}{format_bytes(stats.get('bytes_uploaded', 0)):>8}")

    lookup_keys = sorted(k for k in stats if k.startswith('lookup_'))
    if lookup_keys:
        lines.append("")
        lines.append("[LOOKUP] Remote lookup:")
        for key in lookup_keys:
            label = key[len('lookup_'):].replace('_', ' ')
            lines.append(f"   - {label + ':':<26}{stats[key]:>8}")

    if paths_used:
        lines.append("")
        lines.append("[PATHS] Paths used:")
        for label, value in paths_used.items():
            lines.append(f"   - {label}: {value}")

    lines.append("=" * 60)
    return '\n'.join(lines) + '\n'
