#!/usr/bin/env python3
"""
Test suite for the BatchScheduler.
"""

import threading
import time
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

from core.config_loader import BatchConfig
from core.exceptions import InvalidArgumentException, ServiceException
from pipeline.batch import BatchScheduler, BatchStatus, ScoringPair, expand_pairs


def fake_score(resume_id, job_id):
    if resume_id.startswith('bad'):
        raise RuntimeError(f'cannot score {resume_id}')
    return {'resume_id': resume_id, 'job_id': job_id, 'composite_score': 50.0}


class BatchTestCase(unittest.TestCase):

    def setUp(self):
        self.coordinator = Mock()
        self.coordinator.score_resume.side_effect = fake_score
        self.scheduler = BatchScheduler(
            self.coordinator,
            BatchConfig(chunk_size=2, next_batch_delay_seconds=0.01),
        )
        self.addCleanup(self.scheduler.shutdown, 5)

    def run_batch(self, batch_id, resume_ids, job_ids):
        self.scheduler.add_batch_job(batch_id, resume_ids, job_ids)
        self.assertTrue(self.scheduler.wait_until_idle(timeout=10))
        return self.scheduler.get_batch_status(batch_id)


class TestSubmission(BatchTestCase):

    def test_expand_pairs_is_cross_product(self):
        self.assertEqual(
            expand_pairs(['r1', 'r2'], ['j1']),
            [ScoringPair('r1', 'j1'), ScoringPair('r2', 'j1')],
        )

    def test_two_resumes_one_job(self):
        job = self.scheduler.add_batch_job('b1', ['r1', 'r2'], ['j1'])
        self.assertEqual(job.pairs, [ScoringPair('r1', 'j1'), ScoringPair('r2', 'j1')])
        self.assertTrue(self.scheduler.wait_until_idle(timeout=10))

        status = self.scheduler.get_batch_status('b1')
        self.assertEqual(status['status'], BatchStatus.COMPLETED)
        self.assertEqual(status['total_pairs'], 2)
        self.assertEqual(status['successful'], 2)
        self.assertEqual(status['progress'], 100.0)

    def test_invalid_submissions(self):
        cases = [
            ('', ['r1'], ['j1']),
            ('b1', [], ['j1']),
            ('b1', ['r1'], []),
            ('b1', 'r1', ['j1']),
            ('b1', ['r1'], None),
        ]
        for batch_id, resume_ids, job_ids in cases:
            with self.subTest(batch_id=batch_id, resume_ids=resume_ids, job_ids=job_ids):
                with self.assertRaises(InvalidArgumentException):
                    self.scheduler.add_batch_job(batch_id, resume_ids, job_ids)
        self.coordinator.score_resume.assert_not_called()

    def test_duplicate_queued_batch_rejected(self):
        gate = threading.Event()
        self.coordinator.score_resume.side_effect = lambda r, j: gate.wait(5) and fake_score(r, j)
        self.scheduler.add_batch_job('b1', ['r1'], ['j1'])
        try:
            with self.assertRaises(InvalidArgumentException):
                self.scheduler.add_batch_job('b1', ['r2'], ['j1'])
        finally:
            gate.set()
        self.assertTrue(self.scheduler.wait_until_idle(timeout=10))

    def test_rejects_after_shutdown(self):
        self.scheduler.shutdown()
        with self.assertRaises(ServiceException):
            self.scheduler.add_batch_job('b1', ['r1'], ['j1'])

    def test_shutdown_fails_queued_batches(self):
        gate = threading.Event()
        started = threading.Event()

        def blocking(resume_id, job_id):
            started.set()
            gate.wait(5)
            return fake_score(resume_id, job_id)

        self.coordinator.score_resume.side_effect = blocking
        self.scheduler.add_batch_job('first', ['r1'], ['j1'])
        self.scheduler.add_batch_job('second', ['r2'], ['j1'])
        self.assertTrue(started.wait(5))

        try:
            self.scheduler.shutdown(timeout=0.1)

            second = self.scheduler.get_batch_status('second')
            self.assertEqual(second['status'], BatchStatus.FAILED)
            self.assertEqual(second['error'], 'scheduler shut down')
            self.assertIsNotNone(second['completed_at'])
            self.assertEqual(self.scheduler.get_queue_status()['queued_batches'], [])
        finally:
            gate.set()

        self.assertTrue(self.scheduler.wait_until_idle(timeout=10))
        self.assertEqual(self.scheduler.get_batch_status('first')['status'], BatchStatus.COMPLETED)
        self.assertEqual(self.coordinator.score_resume.call_count, 1)


class TestProcessing(BatchTestCase):

    def test_partial_failures_are_collected(self):
        status = self.run_batch('b1', ['r1', 'bad1', 'r2'], ['j1'])

        self.assertEqual(status['status'], BatchStatus.COMPLETED)
        self.assertEqual(status['successful'], 2)
        self.assertEqual(status['failed'], 1)
        results = self.scheduler.get_batch_results('b1')
        self.assertEqual(results['failed'][0]['resume_id'], 'bad1')
        self.assertIn('cannot score', results['failed'][0]['error'])

    def test_all_pairs_failing_fails_batch(self):
        status = self.run_batch('b1', ['bad1', 'bad2'], ['j1'])

        self.assertEqual(status['status'], BatchStatus.FAILED)
        self.assertIn('All 2 pairs failed', status['error'])

    def test_chunks_bound_concurrency(self):
        lock = threading.Lock()
        in_flight = []
        peak = []

        def slow_score(resume_id, job_id):
            with lock:
                in_flight.append(resume_id)
                peak.append(len(in_flight))
            time.sleep(0.05)
            with lock:
                in_flight.remove(resume_id)
            return fake_score(resume_id, job_id)

        self.coordinator.score_resume.side_effect = slow_score
        status = self.run_batch('b1', ['r1', 'r2', 'r3', 'r4', 'r5'], ['j1'])

        self.assertEqual(status['successful'], 5)
        self.assertLessEqual(max(peak), 2)

    def test_pairs_in_flight_cap_within_chunk(self):
        lock = threading.Lock()
        in_flight = []
        peak = []

        def slow_score(resume_id, job_id):
            with lock:
                in_flight.append(resume_id)
                peak.append(len(in_flight))
            time.sleep(0.05)
            with lock:
                in_flight.remove(resume_id)
            return fake_score(resume_id, job_id)

        scheduler = BatchScheduler(
            self.coordinator,
            BatchConfig(chunk_size=4, next_batch_delay_seconds=0.01),
            max_pairs_in_flight=1,
        )
        self.addCleanup(scheduler.shutdown, 5)
        self.coordinator.score_resume.side_effect = slow_score

        scheduler.add_batch_job('b1', ['r1', 'r2', 'r3', 'r4'], ['j1'])
        self.assertTrue(scheduler.wait_until_idle(timeout=10))

        self.assertEqual(scheduler.get_batch_status('b1')['successful'], 4)
        self.assertEqual(max(peak), 1)

    def test_batches_run_in_fifo_order(self):
        order = []

        def record(resume_id, job_id):
            order.append(resume_id)
            return fake_score(resume_id, job_id)

        self.coordinator.score_resume.side_effect = record
        self.scheduler.add_batch_job('first', ['a1', 'a2'], ['j1'])
        self.scheduler.add_batch_job('second', ['b1'], ['j1'])
        self.assertTrue(self.scheduler.wait_until_idle(timeout=10))

        self.assertEqual(order[-1], 'b1')
        self.assertEqual(sorted(order[:2]), ['a1', 'a2'])
        completed = self.scheduler.get_completed_batches()
        self.assertEqual([b['batch_id'] for b in completed], ['second', 'first'])

    def test_statistics(self):
        self.run_batch('b1', ['r1', 'bad1'], ['j1'])
        self.run_batch('b2', ['r1'], ['j1', 'j2'])

        stats = self.scheduler.get_statistics()

        self.assertEqual(stats['total_batches'], 2)
        self.assertEqual(stats['total_processed'], 3)
        self.assertEqual(stats['total_failed'], 1)
        self.assertEqual(stats['success_rate'], 75.0)
        self.assertGreaterEqual(stats['average_time_per_batch_ms'], 0)
        self.assertEqual(stats['queue_length'], 0)

    def test_queue_status(self):
        gate = threading.Event()
        started = threading.Event()

        def blocking(resume_id, job_id):
            started.set()
            gate.wait(5)
            return fake_score(resume_id, job_id)

        self.coordinator.score_resume.side_effect = blocking
        self.scheduler.add_batch_job('first', ['r1'], ['j1'])
        self.scheduler.add_batch_job('second', ['r2'], ['j1'])
        self.assertTrue(started.wait(5))

        try:
            queue = self.scheduler.get_queue_status()
            self.assertEqual(queue['queue_length'], 2)
            self.assertTrue(queue['processing'])
            self.assertEqual(queue['current_batch'], 'first')
            self.assertEqual(queue['queued_batches'], ['second'])
            self.assertEqual(queue['queued_pairs'], 2)
            self.assertEqual(self.scheduler.get_batch_status('second')['queue_position'], 1)
        finally:
            gate.set()
        self.assertTrue(self.scheduler.wait_until_idle(timeout=10))


class TestResults(BatchTestCase):

    def test_pagination_one_per_page(self):
        self.run_batch('b1', ['r1', 'r2'], ['j1'])

        page1 = self.scheduler.get_batch_results('b1', page=1, page_size=1)
        page2 = self.scheduler.get_batch_results('b1', page=2, page_size=1)
        page3 = self.scheduler.get_batch_results('b1', page=3, page_size=1)

        self.assertEqual(page1['total_pages'], 2)
        self.assertEqual(len(page1['results']), 1)
        self.assertEqual(len(page2['results']), 1)
        self.assertEqual(page3['results'], [])
        self.assertNotEqual(page1['results'][0]['resume_id'], page2['results'][0]['resume_id'])

    def test_default_page_size(self):
        self.run_batch('b1', ['r1', 'r2', 'r3'], ['j1'])
        results = self.scheduler.get_batch_results('b1')
        self.assertEqual(results['page_size'], 100)
        self.assertEqual(results['total_pages'], 1)
        self.assertEqual(len(results['results']), 3)

    def test_invalid_pagination(self):
        self.run_batch('b1', ['r1'], ['j1'])
        with self.assertRaises(InvalidArgumentException):
            self.scheduler.get_batch_results('b1', page=0)
        with self.assertRaises(InvalidArgumentException):
            self.scheduler.get_batch_results('b1', page_size=0)

    def test_unknown_batch(self):
        self.assertIsNone(self.scheduler.get_batch_status('missing'))
        self.assertIsNone(self.scheduler.get_batch_results('missing'))

    def test_composite_results_are_serialized(self):
        result = Mock()
        result.to_dict.return_value = {'resume_id': 'r1', 'job_id': 'j1', 'composite_score': 88.0}
        self.coordinator.score_resume.side_effect = None
        self.coordinator.score_resume.return_value = result

        self.run_batch('b1', ['r1'], ['j1'])

        self.assertEqual(self.scheduler.get_batch_results('b1')['results'][0]['composite_score'], 88.0)


class TestEviction(BatchTestCase):

    def test_clear_completed_batches(self):
        self.run_batch('old', ['r1'], ['j1'])
        self.run_batch('new', ['r1'], ['j1'])
        old = self.scheduler._completed['old']
        old.completed_at = datetime.now(timezone.utc) - timedelta(minutes=90)

        cleared = self.scheduler.clear_completed_batches(60)

        self.assertEqual(cleared, 1)
        self.assertIsNone(self.scheduler.get_batch_status('old'))
        self.assertIsNotNone(self.scheduler.get_batch_status('new'))


if __name__ == '__main__':
    unittest.main()
