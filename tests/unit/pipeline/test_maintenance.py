#!/usr/bin/env python3
"""
Tests for periodic maintenance.
"""

import time
import unittest
from unittest.mock import Mock

from pipeline.maintenance import MaintenanceWorker, run_maintenance


def make_ctx():
    ctx = Mock()
    ctx.fork_manager.cleanup_expired.return_value = {
        'database_count': 3,
        'memory_count': 2,
        'dropped_databases': 1,
    }
    ctx.batch_scheduler.clear_completed_batches.return_value = 4
    return ctx


class TestRunMaintenance(unittest.TestCase):

    def test_collects_counts(self):
        ctx = make_ctx()

        result = run_maintenance(ctx, retention_hours=12)

        self.assertTrue(result.success)
        self.assertEqual(result.database_forks_removed, 3)
        self.assertEqual(result.memory_forks_removed, 2)
        self.assertEqual(result.databases_dropped, 1)
        self.assertEqual(result.batches_cleared, 4)
        ctx.fork_manager.cleanup_expired.assert_called_once_with(12)

    def test_fork_cleanup_failure_does_not_stop_eviction(self):
        ctx = make_ctx()
        ctx.fork_manager.cleanup_expired.side_effect = RuntimeError("db gone")

        result = run_maintenance(ctx)

        self.assertFalse(result.success)
        self.assertEqual(result.batches_cleared, 4)
        self.assertEqual(len(result.errors), 1)
        self.assertIn("db gone", result.errors[0])


class TestMaintenanceWorker(unittest.TestCase):

    def test_runs_until_stopped(self):
        ctx = make_ctx()
        worker = MaintenanceWorker(ctx, interval_seconds=0.05)

        worker.start()
        deadline = time.monotonic() + 5
        while worker.last_result is None and time.monotonic() < deadline:
            time.sleep(0.02)
        worker.stop(timeout=5)

        self.assertFalse(worker.running)
        self.assertIsNotNone(worker.last_result)
        self.assertTrue(worker.last_result.success)
        self.assertGreaterEqual(ctx.fork_manager.cleanup_expired.call_count, 1)

    def test_start_is_idempotent(self):
        worker = MaintenanceWorker(make_ctx(), interval_seconds=60)
        worker.start()
        thread = worker._thread
        worker.start()
        self.assertIs(worker._thread, thread)
        worker.stop(timeout=5)


if __name__ == '__main__':
    unittest.main()
