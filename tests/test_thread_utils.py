import builtins
import threading

from sharepoint_migration.run_context import RunContext
from sharepoint_migration.thread_utils import (
    AttemptBudget,
    ThreadSafeStats,
    enable_thread_safe_print,
    restore_original_print,
    thread_safe_print,
)


class TestThreadSafeStats:
    def test_preset_keys_start_at_zero(self):
        stats = ThreadSafeStats(['uploaded'])
        assert stats.snapshot() == {'uploaded': 0}
        assert stats['unknown'] == 0

    def test_concurrent_increments(self):
        stats = ThreadSafeStats()

        def work():
            for _ in range(1000):
                stats.increment('n')

        threads = [threading.Thread(target=work) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert stats['n'] == 8000


class TestAttemptBudget:
    def test_unlimited(self):
        budget = AttemptBudget(0)
        assert all(budget.try_reserve() for _ in range(100))
        assert budget.exhausted() is False

    def test_limit_is_never_exceeded(self):
        budget = AttemptBudget(5)
        granted = []

        def work():
            for _ in range(10):
                if budget.try_reserve():
                    granted.append(1)

        threads = [threading.Thread(target=work) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert len(granted) == 5
        assert budget.used() == 5
        assert budget.exhausted() is True


class TestPrint:
    def test_enable_and_restore(self):
        enable_thread_safe_print()
        try:
            assert builtins.print is thread_safe_print
        finally:
            restore_original_print()
        assert builtins.print is not thread_safe_print

    def test_thread_prefix_in_debug_mode(self, monkeypatch, capsys):
        monkeypatch.setenv('DEBUG', 'true')
        thread = threading.Thread(target=thread_safe_print, args=('hello',), name='Migrate-1')
        thread.start()
        thread.join()
        assert capsys.readouterr().out == '[Migrate-1] hello\n'


class TestRunContextFlags:
    def test_first_stop_wins(self):
        context = RunContext()
        assert context.request_stop('stop_after_reached') is True
        assert context.request_stop('cancelled') is False
        assert context.state == 'stop_after_reached'
        assert context.should_stop()

    def test_abort(self):
        context = RunContext()
        context.request_abort('fail_fast')
        assert context.aborted
        assert context.should_stop()
        assert context.state == 'fail_fast'

    def test_first_abort_wins(self):
        context = RunContext()
        assert context.request_abort('fail_fast') is True
        assert context.request_abort('fail_fast') is False

    def test_stop_after_abort_keeps_abort_state(self):
        context = RunContext()
        context.request_abort('fail_fast')
        assert context.request_stop('stop_after_reached') is False
        assert context.state == 'fail_fast'
