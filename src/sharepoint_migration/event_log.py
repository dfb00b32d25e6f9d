# -*- coding: utf-8 -*-
"""
Append-only JSON Lines event log.

Every event is written as one JSON object per line and flushed immediately,
so the file can be tailed during long runs and audited afterwards.

Example line:
    {"timestamp": "2025-01-07T10:15:02.114Z", "event": "upload_success",
     "destination": "Clients/sub/file.pdf", "bytes": 1024}
"""

import json
import os
import threading
from datetime import date, datetime, timezone
from enum import Enum


def _json_default(value):
    """Serialize values json cannot handle natively."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    return str(value)


class EventLog:
    """
    Thread-safe JSON Lines sink.

    Args:
        path (str): File to append to (parent folders are created). None keeps
            events in memory only (used by tests and dry helpers).
    """

    def __init__(self, path=None):
        self.path = path
        self._lock = threading.Lock()
        self._handle = None
        self.events = []  # Only populated when path is None
        if path:
            parent = os.path.dirname(path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            self._handle = open(path, 'a', encoding='utf-8')

    def write(self, event, **fields):
        """
        Append one event record.

        Args:
            event (str): Event name (e.g. 'run_start', 'upload_failure')
            **fields: Event payload
        """
        record = {
            'timestamp': datetime.now(timezone.utc).isoformat(timespec='milliseconds'),
            'event': event,
        }
        record.update(fields)

        line = json.dumps(record, default=_json_default, ensure_ascii=False)
        with self._lock:
            if self._handle is not None:
                self._handle.write(line + '\n')
                self._handle.flush()
            else:
                self.events.append(json.loads(line))

    def names(self):
        """Event names recorded in memory (in-memory logs only)."""
        with self._lock:
            return [e['event'] for e in self.events]

    def close(self):
        with self._lock:
            if self._handle is not None:
                self._handle.close()
                self._handle = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
