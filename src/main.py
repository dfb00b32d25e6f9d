#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
SharePoint Migration Reconciliation
===================================

PURPOSE:
    Compares a file server share with a SharePoint document library, file by
    file, and reports what is missing, newer on either side, or suspicious.
    With --migrate it also uploads the files that are missing (never
    overwriting) and, on request, the files that are newer on the file server.

SYNOPSIS:
    python main.py --config migration.json [--migrate] [--mode batch|streaming]
                   [--tolerance-seconds 2] [--preview-count 20] [--stop-after N]
                   [--fail-fast] [--include-can-migrate] [--max-workers N]
                   [--confirm-threshold 500] [--yes] [--debug] [--debug-metadata]
                   [--<config-key> value ...]

PARAMETERS:
    --config
        JSON file with camelCase keys: tenantId, clientId, siteUrl,
        certificateThumbprint + certificatePath (or clientSecret),
        fileServerPath, rootFolderName, libraryName, startDate, endDate,
        sharePointBasePath, folderNameTransform, excludePatterns,
        libraryAliases, lookupStrategies, collisionPolicy, outputDirectory,
        graphEndpoint, loginEndpoint, maxRetry, requestTimeout, probeLocks.
        Secrets may come from a .env file instead (SP_TENANT_ID, SP_CLIENT_ID,
        SP_CLIENT_SECRET, SP_CERT_THUMBPRINT, SP_CERT_PATH, SP_SITE_URL).

    --migrate
        Upload files classified Migrate (missing in SharePoint) and, with
        --include-can-migrate, CanMigrate (newer on the file server).
        Default is a dry run that only writes the reports.

    --mode
        batch (default): scan everything, classify, then upload. Asks for
        confirmation when more than --confirm-threshold files would be
        uploaded, unless --yes is given.
        streaming: classify and upload each file as it is found.

    --stop-after N
        Stop in an orderly way after N upload attempts.

    --fail-fast
        Abort on the first failed upload (after it has been recorded).

OUTPUTS (in a timestamped folder under outputDirectory):
    comparison_report.csv   One row per classified file
    migration_manifest.csv  Migrate / CanMigrate rows for bulk migration tools
    run_summary.txt         Counts per status, action and upload outcome
    events.jsonl            Structured audit trail

EXIT CODES:
    0  Completed (also after --stop-after or a declined confirmation)
    1  Configuration, connection or source error
    2  Completed with failed uploads
    3  Aborted by --fail-fast

REQUIREMENTS:
    - requests (HTTP client for Graph REST API)
    - msal (Microsoft Authentication Library)
    - python-dotenv (Environment variable loading)
    - Entra ID app registration with Sites.ReadWrite.All (application)
"""

# ====================================
# IMPORTS
# ====================================

import os
import sys
import time
from datetime import datetime

from sharepoint_migration.auth import TokenProvider
from sharepoint_migration.config import parse_config
from sharepoint_migration.driver import DriverOptions, MigrationDriver
from sharepoint_migration.enumerator import build_date_range, enumerate_source, verify_source_root
from sharepoint_migration.event_log import EventLog
from sharepoint_migration.exceptions import FailFastAbort, MigrationError
from sharepoint_migration.graph_api import GraphRemoteStore
from sharepoint_migration.lookup import RemoteLookup
from sharepoint_migration.models import UploadResult
from sharepoint_migration.monitoring import print_rate_limiting_summary
from sharepoint_migration.path_mapper import DEFAULT_RESERVED_LIBRARY_NAMES, DestinationMapper, FolderNameTransform
from sharepoint_migration.reporting import (
    COMPARISON_REPORT_NAME, EVENT_LOG_NAME, MIGRATION_MANIFEST_NAME, RUN_SUMMARY_NAME,
    ComparisonReport, MigrationManifest, write_run_summary
)
from sharepoint_migration.run_context import RunContext
from sharepoint_migration.thread_utils import restore_original_print
from sharepoint_migration.uploader import Uploader
from sharepoint_migration.utils import format_timestamp

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_UPLOAD_FAILURES = 2
EXIT_FAIL_FAST = 3


# ====================================================================
# HELPERS
# ====================================================================

def print_stage(title):
    print("\n" + "="*60)
    print(title)
    print("="*60)


def confirm_large_batch(eligible_count):
    """Ask the operator before a large batch upload. Anything but 'y' declines."""
    try:
        answer = input(f"[?] {eligible_count} files are eligible for upload. Continue? [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ('y', 'yes')


def create_run_folder(output_directory):
    """Create a timestamped run folder that does not exist yet."""
    stamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    run_folder = os.path.join(output_directory, f"migration_{stamp}")
    suffix = 1
    while os.path.exists(run_folder):
        suffix += 1
        run_folder = os.path.join(output_directory, f"migration_{stamp}_{suffix}")
    os.makedirs(run_folder)
    return run_folder


def reserved_library_names(config, store):
    """Leading destination segments that name the library itself."""
    names = []
    for name in (*DEFAULT_RESERVED_LIBRARY_NAMES, config.library_name,
                 store.library_display_name, store.library_internal_name):
        if name and name.lower() not in (n.lower() for n in names):
            names.append(name)
    return names


def connect_store(config):
    """Authenticate and resolve the destination library."""
    tokens = TokenProvider(
        config.tenant_id, config.client_id,
        client_secret=config.client_secret,
        cert_thumbprint=config.cert_thumbprint,
        cert_path=config.cert_path,
        login_endpoint=config.login_endpoint,
        graph_endpoint=config.graph_endpoint,
    )
    print(f"[*] Authenticating with {tokens.credential_kind} credential...")
    tokens.get_token()
    store = GraphRemoteStore(
        config.site_url, config.library_name, tokens,
        graph_endpoint=config.graph_endpoint,
        max_retries=config.max_retry,
        timeout=config.request_timeout,
    )
    return store.connect()


# ====================================================================
# RUN - Scan, classify, migrate, summarize
# ====================================================================

def run(config, store):
    """
    Execute stages 3 to 5 against a connected store.

    Args:
        config (Config): Validated configuration
        store (RemoteStore): Connected destination store

    Returns:
        int: Process exit code
    """
    # ============================================================
    # [3/5] SOURCE SCAN
    # ============================================================
    scan_start = time.time()
    print_stage("[3/5] SOURCE SCAN")
    print(f"[*] Source: {config.file_server_path}")
    try:
        verify_source_root(config.file_server_path)
    except MigrationError as e:
        print(f"[!] {e}")
        return EXIT_FATAL

    run_folder = create_run_folder(config.output_directory)
    event_log = EventLog(os.path.join(run_folder, EVENT_LOG_NAME))
    report = ComparisonReport(os.path.join(run_folder, COMPARISON_REPORT_NAME))
    manifest = MigrationManifest(os.path.join(run_folder, MIGRATION_MANIFEST_NAME), store.library_url)
    context = RunContext(
        event_log=event_log, report=report, manifest=manifest,
        migrate=config.migrate, mode=config.mode,
        stop_after=config.stop_after, preview_count=config.preview_count,
    )
    print(f"[✓] Run folder: {run_folder}")

    date_range = build_date_range(config.start_date, config.end_date)
    mapper = DestinationMapper(
        config.source_root_name,
        base_path=config.sharepoint_base_path,
        transform=FolderNameTransform.from_config(config.folder_name_transform),
        reserved_names=reserved_library_names(config, store),
    )

    context.log_event(
        'run_start',
        source=config.file_server_path,
        site=config.site_url,
        library=store.library_display_name,
        library_url=store.library_url,
        migrate=config.migrate,
        mode=config.mode,
        tolerance_seconds=config.tolerance_seconds,
        stop_after=config.stop_after,
        fail_fast=config.fail_fast,
        include_can_migrate=config.include_can_migrate,
        max_workers=config.max_workers,
        start_date=format_timestamp(date_range[0]) if date_range else None,
        end_date=format_timestamp(date_range[1]) if date_range else None,
    )
    if date_range:
        print(f"[=] Date filter: {format_timestamp(date_range[0])} .. {format_timestamp(date_range[1])}")
    if config.exclude_patterns:
        print(f"[=] Exclusion patterns: {', '.join(config.exclude_patterns)}")

    descriptors = enumerate_source(
        config.file_server_path, context, mapper,
        date_range=date_range,
        exclude_patterns=config.exclude_patterns,
        probe_locks=config.probe_locks,
    )

    if config.mode == 'batch':
        descriptors = list(descriptors)
        log_scan_complete(context, time.time() - scan_start)
    else:
        print("[*] Streaming mode: files are classified while the scan runs")

    # ============================================================
    # [4/5] CLASSIFICATION / MIGRATION
    # ============================================================
    print_stage("[4/5] CLASSIFICATION" + (" / MIGRATION" if config.migrate else " (dry run)"))
    if context.preview_count:
        print(f"[*] Planned actions (first {context.preview_count}):")

    options = DriverOptions(
        tolerance_seconds=config.tolerance_seconds,
        include_can_migrate=config.include_can_migrate,
        migrate=config.migrate,
        fail_fast=config.fail_fast,
        collision_policy=config.collision_policy,
        max_workers=config.max_workers,
        mode=config.mode,
        confirm_threshold=config.confirm_threshold,
        confirm=None if config.assume_yes else confirm_large_batch,
    )
    lookup = RemoteLookup(store, context, strategies=config.lookup_strategies,
                          library_aliases=config.library_aliases)
    driver = MigrationDriver(context, lookup, Uploader(store, context), options)

    exit_code = EXIT_SUCCESS
    process_start = time.time()
    try:
        driver.run(descriptors)
    except FailFastAbort as e:
        print(f"[!] {e}")
        exit_code = EXIT_FAIL_FAST
    except MigrationError as e:
        print(f"[!] {e}")
        context.state = 'error'
        exit_code = EXIT_FATAL
    finally:
        restore_original_print()
    print(f"\n[✓] Processing finished ({time.time() - process_start:.3f}s)")

    if config.mode == 'streaming':
        log_scan_complete(context, time.time() - scan_start)

    # ============================================================
    # [5/5] SUMMARY
    # ============================================================
    print_stage("[5/5] SUMMARY")
    report.close()
    manifest.close()

    failures = context.stats['upload_' + UploadResult.FAILED.value]
    if exit_code == EXIT_SUCCESS and failures:
        exit_code = EXIT_UPLOAD_FAILURES

    paths_used = {
        'Source root': config.file_server_path,
        'Destination root folder': config.source_root_name,
        'Site': config.site_url,
        'Library': store.library_url,
        'Comparison report': report.path,
        'Migration manifest': manifest.path,
        'Event log': event_log.path,
    }
    summary_text = write_run_summary(os.path.join(run_folder, RUN_SUMMARY_NAME), context, paths_used)
    print(summary_text)

    context.log_event('run_summary', state=context.state, exit_code=exit_code,
                      counters=context.stats.snapshot())
    event_log.close()

    monitor = getattr(store, 'monitor', None)
    if monitor is not None:
        print_rate_limiting_summary(monitor)

    if exit_code == EXIT_UPLOAD_FAILURES:
        print(f"[!] {failures} file(s) failed to upload")
    elif context.cancelled:
        print("[=] Run cancelled before any upload")
    return exit_code


def log_scan_complete(context, elapsed):
    stats = context.stats.snapshot()
    fields = {key: stats.get(key, 0) for key in (
        'files_seen', 'files_emitted', 'files_locked', 'files_date_filtered',
        'files_excluded', 'folders_unreadable')}
    context.log_event('scan_complete', elapsed_seconds=round(elapsed, 3), **fields)
    print(f"[✓] Scan complete: {fields['files_emitted']} files to classify "
          f"({fields['files_seen']} seen, {fields['files_locked']} locked) ({elapsed:.3f}s)")


# ====================================================================
# MAIN
# ====================================================================

def main(argv=None):
    """
    Main execution function that orchestrates the migration run.

    Process:
        1. Parse configuration (CLI, config file, .env)
        2. Authenticate and resolve site and library
        3. Scan the file server share
        4. Classify every file and upload the eligible ones when migrating
        5. Write the summary and exit with the matching code
    """
    # ============================================================
    # [1/5] CONFIGURATION
    # ============================================================
    print_stage("[1/5] CONFIGURATION")
    try:
        config = parse_config(argv)
    except MigrationError as e:
        print(f"[!] Configuration error: {e}")
        return EXIT_FATAL

    # Enables the debug checks in utils.py
    if config.debug:
        os.environ['DEBUG'] = 'true'
    if config.debug_metadata:
        os.environ['DEBUG_METADATA'] = 'true'

    if config.migrate:
        print("[!] Migration mode: eligible files will be uploaded")
    else:
        print("[✓] Dry run: reports only, nothing is uploaded")
    print(f"[=] Mode: {config.mode}, workers: {config.max_workers}, tolerance: {config.tolerance_seconds}s")
    if config.include_can_migrate:
        print("[=] Files newer on the file server will be uploaded (CanMigrate)")
    if config.stop_after:
        print(f"[=] Stop after {config.stop_after} upload attempts")
    if config.fail_fast:
        print("[=] Fail-fast enabled")

    # ============================================================
    # [2/5] SHAREPOINT CONNECTION
    # ============================================================
    connection_start = time.time()
    print_stage("[2/5] SHAREPOINT CONNECTION")
    print(f"[*] Connecting to {config.site_url} ...")
    try:
        store = connect_store(config)
    except MigrationError as e:
        print(f"[Error] Failed to connect to SharePoint: {e}")
        print("[!] Ensure that:")
        print("    - Your credentials are correct")
        print("    - The app registration has Sites.ReadWrite.All with admin consent")
        print(f"    - The library '{config.library_name}' exists on the site")
        return EXIT_FATAL
    print(f"[✓] SharePoint connection established ({time.time() - connection_start:.3f}s)")

    return run(config, store)


if __name__ == "__main__":
    sys.exit(main())
