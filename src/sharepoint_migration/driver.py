# -*- coding: utf-8 -*-
"""
Migration driver: classification and optional upload for every source file.

Two execution modes share the same per-file steps
(lookup -> classify -> ensure folders -> write):

- batch: the whole descriptor sequence is materialized into a
  normalized-key map first, classified, then the upload-eligible subset is
  migrated. Allows the large-batch confirmation before any upload.
- streaming: each descriptor is classified as it is pulled from the
  enumerator and uploaded immediately when eligible. Only the set of seen
  keys is kept in memory.

With max_workers > 1 files are processed by a ThreadPoolExecutor. Stop and
abort are cooperative: in-flight files always finish.
"""

import threading
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Optional
from .classifier import DEFAULT_TOLERANCE_SECONDS, classify, is_upload_eligible, overwrite_for_action
from .exceptions import FailFastAbort, KeyCollisionError
from .models import UploadResult
from .thread_utils import enable_thread_safe_print
from .utils import is_debug_enabled

COLLISION_POLICIES = ('keep_last', 'keep_first', 'error')
MAX_WORKERS_LIMIT = 10

# Progress line interval during classification
PROGRESS_INTERVAL = 500

UPLOAD_EVENTS = {
    UploadResult.SUCCESS: 'upload_success',
    UploadResult.FAILED: 'upload_failure',
    UploadResult.SKIPPED: 'upload_skipped',
}


@dataclass
class DriverOptions:
    """
    Behavior switches for a migration run.

    confirm is called in batch mode with the number of upload-eligible files
    when that number exceeds confirm_threshold; returning False cancels the
    run before any upload starts.
    """
    tolerance_seconds: float = DEFAULT_TOLERANCE_SECONDS
    include_can_migrate: bool = False
    migrate: bool = False
    fail_fast: bool = False
    collision_policy: str = 'keep_last'
    max_workers: int = 1
    mode: str = 'batch'
    confirm_threshold: int = 500
    confirm: Optional[Callable[[int], bool]] = None

    def __post_init__(self):
        if self.collision_policy not in COLLISION_POLICIES:
            raise ValueError(f"Unknown collision policy: {self.collision_policy}")
        if self.mode not in ('batch', 'streaming'):
            raise ValueError(f"Unknown mode: {self.mode}")
        self.max_workers = min(max(1, int(self.max_workers or 1)), MAX_WORKERS_LIMIT)


class MigrationDriver:
    """
    Run classification (and uploads when migrate is on) over descriptors.

    Args:
        context (RunContext): Counters, event log, reports and stop flags
        lookup (RemoteLookup): Resolves destination paths
        uploader (Uploader): Ensures folders and uploads files
        options (DriverOptions): Run switches

    Example:
        driver = MigrationDriver(context, lookup, uploader, DriverOptions(migrate=True))
        driver.run(enumerate_source(root, context, mapper))

    Raises:
        KeyCollisionError: Two files share a destination under the 'error' policy
        FailFastAbort: First failed upload when fail_fast is on
    """

    def __init__(self, context, lookup, uploader, options=None):
        self.context = context
        self.lookup = lookup
        self.uploader = uploader
        self.options = options or DriverOptions()
        self._classified = 0
        self._progress_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def run(self, descriptors):
        """
        Process every descriptor according to the configured mode.

        Args:
            descriptors (iterable): FileDescriptor sequence, typically the
                enumerate_source() generator

        Returns:
            str: Final run state ('completed', 'stop_after_reached', 'cancelled')
        """
        if self.options.max_workers > 1:
            enable_thread_safe_print()

        if self.options.mode == 'streaming':
            self._run_streaming(descriptors)
        else:
            self._run_batch(descriptors)

        if self.context.state == 'running':
            self.context.state = 'completed'
        return self.context.state

    # ------------------------------------------------------------------
    # Per-file steps
    # ------------------------------------------------------------------

    def classify_descriptor(self, descriptor):
        """Look up the destination and classify one descriptor."""
        remote = self.lookup.resolve(descriptor.destination_path, descriptor.raw_destination_path)
        result = classify(descriptor, remote, self.options.tolerance_seconds,
                          self.options.include_can_migrate)
        self.context.record_classification(result)

        with self._progress_lock:
            self._classified += 1
            classified = self._classified
        if classified % PROGRESS_INTERVAL == 0:
            print(f"[*] Classified {classified} files...")
        return result

    def upload_result(self, result):
        """
        Upload one eligible file and write its report row.

        The report row is always written: with the outcome when the upload
        was attempted, without one when the run was already stopped or the
        attempt budget was spent.

        Returns:
            UploadOutcome: Outcome of the attempt, or None if not attempted

        Raises:
            FailFastAbort: After the failure has been recorded, when fail_fast is on
        """
        context = self.context
        if context.should_stop():
            context.record_report_row(result)
            return None

        if not context.budget.try_reserve():
            self._stop_after_reached()
            context.record_report_row(result)
            return None

        descriptor = result.descriptor
        overwrite = overwrite_for_action(result.action)
        context.stats.increment('upload_attempted')
        context.log_event(
            'upload_start',
            source=descriptor.source_absolute_path,
            destination=descriptor.destination_path,
            action=result.action.value,
            overwrite=overwrite,
        )

        outcome = self.uploader.upload(
            descriptor.source_absolute_path,
            descriptor.destination_path,
            overwrite,
            modified_at=descriptor.modified_at,
            created_at=descriptor.created_at,
            source_size=descriptor.size,
        )

        context.record_upload(outcome)
        fields = {'source': outcome.source_path, 'destination': outcome.destination_path}
        if outcome.result == UploadResult.SUCCESS:
            fields['bytes'] = outcome.bytes_uploaded
        else:
            fields['error'] = outcome.error_detail
        context.log_event(UPLOAD_EVENTS[outcome.result], **fields)
        context.record_report_row(result, outcome)

        # Only the first failure aborts; other in-flight failures are just recorded
        if outcome.failed and self.options.fail_fast and context.request_abort('fail_fast'):
            context.log_event('fail_fast_triggered', destination=outcome.destination_path,
                              error=outcome.error_detail)
            print(f"[!] Fail-fast: stopping after failed upload of {outcome.destination_path}")
            raise FailFastAbort(outcome)

        if context.budget.exhausted():
            self._stop_after_reached()
        return outcome

    def _stop_after_reached(self):
        if self.context.request_stop('stop_after_reached'):
            limit = self.context.budget.limit
            print(f"[=] Stop-after limit reached ({limit} upload attempts). Finishing in-flight files.")
            self.context.log_event('stop_after_reached', limit=limit,
                                   attempted=self.context.budget.used())

    def _on_collision(self, key, first_path, second_path):
        """
        Apply the collision policy to two sources sharing one destination key.

        Returns:
            bool: True if the later descriptor replaces the earlier one
        """
        policy = self.options.collision_policy
        self.context.stats.increment('key_collisions')
        kept = first_path if policy == 'keep_first' else second_path
        self.context.log_event('key_collision', key=key, first=first_path, second=second_path,
                               policy=policy, kept=None if policy == 'error' else kept)
        if policy == 'error':
            raise KeyCollisionError(key, first_path, second_path)
        print(f"[!] Destination collision on '{key}': {first_path} and {second_path} (keeping {kept})")
        return policy == 'keep_last'

    # ------------------------------------------------------------------
    # Batch mode
    # ------------------------------------------------------------------

    def _run_batch(self, descriptors):
        by_key = {}
        for descriptor in descriptors:
            key = descriptor.normalized_key
            existing = by_key.get(key)
            if existing is not None:
                if not self._on_collision(key, existing.source_absolute_path,
                                          descriptor.source_absolute_path):
                    continue
            by_key[key] = descriptor

        print(f"[*] Classifying {len(by_key)} files...")
        if self.options.max_workers > 1:
            with ThreadPoolExecutor(max_workers=self.options.max_workers,
                                    thread_name_prefix='Migrate') as executor:
                results = list(executor.map(self.classify_descriptor, by_key.values()))
        else:
            results = [self.classify_descriptor(d) for d in by_key.values()]

        eligible = []
        for result in results:
            if self.options.migrate and is_upload_eligible(result):
                eligible.append(result)
            else:
                self.context.record_report_row(result)

        if not eligible:
            return

        if not self._confirm(len(eligible)):
            for result in eligible:
                self.context.record_report_row(result)
            return

        print(f"[*] Uploading {len(eligible)} files...")
        if self.options.max_workers > 1:
            self._upload_parallel(eligible)
        else:
            self._upload_sequential(eligible)

    def _confirm(self, eligible_count):
        confirm = self.options.confirm
        if confirm is None or eligible_count <= self.options.confirm_threshold:
            return True
        if confirm(eligible_count):
            return True
        self.context.request_stop('cancelled')
        self.context.log_event('run_cancelled', eligible=eligible_count,
                               threshold=self.options.confirm_threshold)
        print(f"[=] Migration cancelled by user ({eligible_count} files not uploaded)")
        return False

    def _upload_sequential(self, eligible):
        for index, result in enumerate(eligible):
            try:
                self.upload_result(result)
            except FailFastAbort:
                # Rows for files never attempted are still reported
                for remaining in eligible[index + 1:]:
                    self.context.record_report_row(remaining)
                raise

    def _upload_parallel(self, eligible):
        first_abort = None
        with ThreadPoolExecutor(max_workers=self.options.max_workers,
                                thread_name_prefix='Migrate') as executor:
            futures = [executor.submit(self.upload_result, result) for result in eligible]
            for future in futures:
                try:
                    future.result()
                except FailFastAbort as e:
                    if first_abort is None:
                        first_abort = e
        if first_abort is not None:
            raise first_abort

    # ------------------------------------------------------------------
    # Streaming mode
    # ------------------------------------------------------------------

    def _admit(self, seen_keys, descriptor):
        """Streaming de-duplication: only the set of seen keys is kept."""
        key = descriptor.normalized_key
        if key in seen_keys:
            # The earlier file may already be uploaded: keep_last processes
            # the later file too, keep_first drops it
            return self._on_collision(key, '(earlier file)', descriptor.source_absolute_path)
        seen_keys.add(key)
        return True

    def process_streaming(self, descriptor):
        """Classify one descriptor and act on it immediately."""
        result = self.classify_descriptor(descriptor)
        if self.options.migrate and is_upload_eligible(result):
            self.upload_result(result)
        else:
            self.context.record_report_row(result)
        return result

    def _run_streaming(self, descriptors):
        seen_keys = set()

        if self.options.max_workers == 1:
            for descriptor in descriptors:
                if self.context.should_stop():
                    break
                if self._admit(seen_keys, descriptor):
                    self.process_streaming(descriptor)
            return

        # Bound the number of in-flight files so memory stays flat
        max_in_flight = 2 * self.options.max_workers
        first_abort = None
        pending = set()

        def collect(done):
            nonlocal first_abort
            for future in done:
                try:
                    future.result()
                except FailFastAbort as e:
                    if first_abort is None:
                        first_abort = e

        with ThreadPoolExecutor(max_workers=self.options.max_workers,
                                thread_name_prefix='Migrate') as executor:
            for descriptor in descriptors:
                if self.context.should_stop():
                    break
                if not self._admit(seen_keys, descriptor):
                    continue
                while len(pending) >= max_in_flight:
                    done, pending = wait(pending, return_when=FIRST_COMPLETED)
                    collect(done)
                pending.add(executor.submit(self.process_streaming, descriptor))

            done, pending = wait(pending)
            collect(done)

        if first_abort is not None:
            raise first_abort
        if is_debug_enabled():
            print(f"[DEBUG] Streaming finished, {len(seen_keys)} distinct destinations")
