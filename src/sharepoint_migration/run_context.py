# -*- coding: utf-8 -*-
"""
Run context shared by every migration stage.

The enumerator, classifier and driver all receive the same RunContext
instead of touching module-level state. It owns the counters, the event log,
the report writers, the stop-after budget and the stop/abort flags.
"""

import threading
import uuid
from datetime import datetime
from .classifier import is_actionable
from .event_log import EventLog
from .models import UploadResult
from .thread_utils import AttemptBudget, ThreadSafeStats

# Counters always present in summaries, even when zero
BASE_COUNTERS = [
    'files_seen', 'files_emitted', 'files_locked', 'files_date_filtered',
    'files_excluded', 'folders_unreadable', 'key_collisions',
    'upload_attempted', 'bytes_uploaded',
]


class RunContext:
    """
    State of one migration run.

    Args:
        event_log (EventLog): Structured event sink (in-memory when None)
        report (ComparisonReport): Optional per-file report writer
        manifest (MigrationManifest): Optional manifest writer
        migrate (bool): Whether uploads are performed
        mode (str): 'batch' or 'streaming'
        stop_after (int): Upload attempt budget (0 = unlimited)
        preview_count (int): Number of planned actions to print and log
    """

    def __init__(self, event_log=None, report=None, manifest=None, migrate=False,
                 mode='batch', stop_after=0, preview_count=20):
        self.run_id = datetime.now().strftime('%Y%m%d-%H%M%S-') + uuid.uuid4().hex[:6]
        self.event_log = event_log if event_log is not None else EventLog()
        self.report = report
        self.manifest = manifest
        self.migrate = migrate
        self.mode = mode
        self.preview_count = max(0, int(preview_count or 0))
        self.stats = ThreadSafeStats(BASE_COUNTERS)
        self.budget = AttemptBudget(stop_after)
        self.stop_event = threading.Event()
        self.abort_event = threading.Event()
        self.state = 'running'
        self._preview_lock = threading.Lock()
        self._previewed = 0
        self._flag_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Stop / abort flags
    # ------------------------------------------------------------------

    def should_stop(self):
        """True once stop-after, cancellation or fail-fast has halted the run."""
        return self.stop_event.is_set() or self.abort_event.is_set()

    def request_stop(self, reason):
        """
        Orderly halt: in-flight work finishes, nothing new starts.

        Returns:
            bool: True for the call that actually stopped the run
        """
        with self._flag_lock:
            if self.stop_event.is_set() or self.abort_event.is_set():
                return False
            self.stop_event.set()
            self.state = reason
            return True

    def request_abort(self, reason):
        """
        Fatal halt (fail-fast).

        Returns:
            bool: True for the call that actually aborted the run
        """
        with self._flag_lock:
            if self.abort_event.is_set():
                return False
            self.abort_event.set()
            self.state = reason
            return True

    @property
    def cancelled(self):
        return self.state == 'cancelled'

    @property
    def aborted(self):
        return self.abort_event.is_set()

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def log_event(self, event, **fields):
        self.event_log.write(event, run_id=self.run_id, **fields)

    def record_classification(self, result):
        """Count a classification and add its manifest row."""
        self.stats.increment('status_' + result.status.value)
        self.stats.increment('action_' + result.action.value)
        if self.manifest is not None:
            self.manifest.add(result)
        if is_actionable(result):
            self._preview(result)

    def record_report_row(self, result, outcome=None):
        """Write the final comparison report row for a file."""
        if self.report is not None:
            self.report.add(result, outcome)

    def record_upload(self, outcome):
        """Count an upload outcome."""
        self.stats.increment('upload_' + outcome.result.value)
        if outcome.result == UploadResult.SUCCESS:
            self.stats.increment('bytes_uploaded', outcome.bytes_uploaded)

    def _preview(self, result):
        with self._preview_lock:
            if self._previewed >= self.preview_count:
                return
            self._previewed += 1
            index = self._previewed

        descriptor = result.descriptor
        print(f"   [{index:>3}] {result.action.value:<12} {result.status.value:<18} {descriptor.display_path}")
        self.log_event(
            'planned_action',
            index=index,
            action=result.action,
            status=result.status,
            source=descriptor.source_absolute_path,
            destination=descriptor.destination_path,
        )
