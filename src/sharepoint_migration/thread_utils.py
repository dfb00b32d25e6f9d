# -*- coding: utf-8 -*-
"""
Thread-safe utilities for parallel migration workers.

This module provides thread-safe console output, counters and the shared
attempt budget so that the driver can run with one or several workers
without changing the rest of the code.
"""

import builtins
import os
import threading

# Global lock for console output
_console_lock = threading.Lock()
_original_print = builtins.print


def thread_safe_print(*args, **kwargs):
    """
    Thread-safe replacement for print() that ensures sequential output.
    When DEBUG=true, includes a thread identifier to track which worker
    produced each log line.

    Thread identifiers (DEBUG mode only):
        [Main] - Main thread (scan, orchestration, summaries)
        [Migrate-N] - Migration worker threads

    Args:
        *args: Same as print()
        **kwargs: Same as print()
    """
    show_thread_id = os.environ.get('DEBUG', '').lower() == 'true'

    with _console_lock:
        if show_thread_id and args:
            thread_name = threading.current_thread().name

            if thread_name == "MainThread":
                prefix = "[Main]"
            elif thread_name.startswith("Migrate-"):
                prefix = f"[{thread_name}]"
            elif "ThreadPoolExecutor" in thread_name:
                # Unnamed worker: "ThreadPoolExecutor-0_3" -> "[Worker-3]"
                worker_num = thread_name.rsplit('_', 1)[-1]
                prefix = f"[Worker-{worker_num}]"
            else:
                prefix = f"[{thread_name[:10]}]"

            _original_print(prefix, *args, **kwargs)
        else:
            _original_print(*args, **kwargs)


def enable_thread_safe_print():
    """
    Replace built-in print() with the thread-safe version.
    Called by the driver before starting worker threads.
    """
    builtins.print = thread_safe_print


def restore_original_print():
    """Restore original print() function"""
    builtins.print = _original_print


class ThreadSafeStats:
    """
    Lock-protected dictionary of named counters.

    Example:
        >>> stats = ThreadSafeStats(['uploaded', 'failed'])
        >>> stats.increment('uploaded')
        >>> stats['uploaded']
        1
    """

    def __init__(self, keys=None):
        """
        Initialize counters.

        Args:
            keys (iterable): Counter names pre-set to 0 so summaries list them
        """
        self._stats = {key: 0 for key in (keys or [])}
        self._lock = threading.Lock()

    def __getitem__(self, key):
        with self._lock:
            return self._stats.get(key, 0)

    def get(self, key, default=0):
        with self._lock:
            return self._stats.get(key, default)

    def increment(self, key, value=1):
        """
        Thread-safe increment operation.

        Args:
            key (str): Counter to increment (created on first use)
            value (int): Amount to increment by (default: 1)
        """
        with self._lock:
            self._stats[key] = self._stats.get(key, 0) + value

    def snapshot(self):
        """
        Get a consistent copy of all counters.

        Returns:
            dict: Counter name -> value
        """
        with self._lock:
            return dict(self._stats)


class AttemptBudget:
    """
    Shared upload attempt budget for the stop-after control.

    Each upload attempt must reserve a slot before it starts. Once the limit
    is reached no further slot is granted, so concurrent workers can never
    exceed it.

    Args:
        limit (int): Maximum attempts, 0 means unlimited
    """

    def __init__(self, limit=0):
        self.limit = max(0, int(limit or 0))
        self._used = 0
        self._lock = threading.Lock()

    def try_reserve(self):
        """
        Reserve one attempt.

        Returns:
            bool: True if the attempt may proceed, False if the budget is spent
        """
        with self._lock:
            if self.limit and self._used >= self.limit:
                return False
            self._used += 1
            return True

    def exhausted(self):
        """True once every slot of a limited budget has been reserved."""
        with self._lock:
            return bool(self.limit) and self._used >= self.limit

    def used(self):
        with self._lock:
            return self._used
