"""Tests for the in-memory fork registry and its active-fork cap."""

import threading
import unittest
from datetime import datetime, timedelta, timezone

from core.exceptions import CapacityExceededException
from core.forks.models import ForkInfo, ForkStatus, generate_fork_id
from core.forks.registry import ForkRegistry


def make_fork(registry, strategy="skill", resume_id="R1", job_id="J1"):
    registry.reserve_slot()
    fork = ForkInfo(
        fork_id=generate_fork_id(strategy, resume_id, job_id),
        strategy_type=strategy,
        resume_id=resume_id,
        job_id=job_id,
    )
    registry.register(fork)
    registry.mark_active(
        fork.fork_id,
        data_location="sqlite://",
        isolation_mode="logical",
        started_at=datetime.now(timezone.utc),
        started_monotonic=0.0,
    )
    return fork


class TestForkRegistryCapacity(unittest.TestCase):

    def test_reserve_at_cap_raises_without_incrementing(self):
        registry = ForkRegistry(max_active=2)
        registry.reserve_slot()
        registry.reserve_slot()

        with self.assertRaises(CapacityExceededException) as ctx:
            registry.reserve_slot()

        self.assertEqual(registry.active_slots, 2)
        self.assertEqual(ctx.exception.limit, 2)

    def test_terminal_transition_releases_slot(self):
        registry = ForkRegistry(max_active=1)
        fork = make_fork(registry)
        self.assertEqual(registry.active_slots, 1)

        registry.mark_terminal(fork.fork_id, ForkStatus.COMPLETED, result={"score": 50})

        self.assertEqual(registry.active_slots, 0)
        registry.reserve_slot()

    def test_concurrent_reservations_never_exceed_cap(self):
        registry = ForkRegistry(max_active=5)
        successes = []
        barrier = threading.Barrier(20)

        def reserve():
            barrier.wait()
            try:
                registry.reserve_slot()
                successes.append(1)
            except CapacityExceededException:
                pass

        threads = [threading.Thread(target=reserve) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(len(successes), 5)
        self.assertEqual(registry.active_slots, 5)


class TestForkRegistryTransitions(unittest.TestCase):

    def setUp(self):
        self.registry = ForkRegistry(max_active=10)

    def test_fork_id_format(self):
        fork_id = generate_fork_id("semantic", "R1", "J1")
        self.assertRegex(fork_id, r"^fork_semantic_[0-9a-f]{8}$")

    def test_mark_terminal_only_once(self):
        fork = make_fork(self.registry)

        first = self.registry.mark_terminal(fork.fork_id, ForkStatus.COMPLETED, result={"score": 80})
        second = self.registry.mark_terminal(fork.fork_id, ForkStatus.FAILED, error_message="late")

        self.assertIs(first, fork)
        self.assertIsNone(second)
        self.assertEqual(fork.status, ForkStatus.COMPLETED)
        self.assertIsNone(fork.error_message)
        self.assertEqual(self.registry.active_slots, 0)

    def test_mark_terminal_unknown_fork(self):
        self.assertIsNone(self.registry.mark_terminal("fork_skill_deadbeef", ForkStatus.COMPLETED))

    def test_mark_active_requires_pending(self):
        fork = make_fork(self.registry)
        again = self.registry.mark_active(
            fork.fork_id, "sqlite://", "logical", datetime.now(timezone.utc), 0.0
        )
        self.assertIsNone(again)

    def test_counts_by_status(self):
        a = make_fork(self.registry, "skill")
        make_fork(self.registry, "education")
        self.registry.mark_terminal(a.fork_id, ForkStatus.FAILED, error_message="boom")

        counts = self.registry.counts_by_status()

        self.assertEqual(counts[ForkStatus.ACTIVE], 1)
        self.assertEqual(counts[ForkStatus.FAILED], 1)
        self.assertEqual(counts["total"], 2)

    def test_purge_only_old_terminal_forks(self):
        old = make_fork(self.registry, "skill")
        recent = make_fork(self.registry, "experience")
        active = make_fork(self.registry, "education")
        self.registry.mark_terminal(old.fork_id, ForkStatus.COMPLETED)
        self.registry.mark_terminal(recent.fork_id, ForkStatus.COMPLETED)
        old.completed_at = datetime.now(timezone.utc) - timedelta(hours=48)

        purged = self.registry.purge_terminal_before(datetime.now(timezone.utc) - timedelta(hours=24))

        self.assertEqual([f.fork_id for f in purged], [old.fork_id])
        self.assertIsNone(self.registry.get(old.fork_id))
        self.assertIsNotNone(self.registry.get(recent.fork_id))
        self.assertIsNotNone(self.registry.get(active.fork_id))


if __name__ == '__main__':
    unittest.main()
