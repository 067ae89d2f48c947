#!/usr/bin/env python3
"""
Test suite for the agent execution harness.
"""

import math
import unittest
from types import SimpleNamespace
from unittest.mock import MagicMock, Mock, patch

from core.agents.base import BaseScorer
from core.agents.harness import AgentHarness, HarnessState, validate_result
from core.exceptions import (
    ForkConnectionException,
    HarnessStateException,
    InvalidResultException,
    SubjectNotFoundException,
)
from core.forks.models import ForkInfo


class FixedScorer(BaseScorer):
    strategy_type = 'skill'

    def __init__(self, result):
        self.result = result
        self.calls = []

    def analyze(self, resume, job):
        self.calls.append((resume, job))
        return self.result

    def get_required_result_fields(self):
        return ['score', 'matched_skills_count']


class TestValidateResult(unittest.TestCase):

    def test_accepts_valid_result(self):
        result = {'score': 42, 'matched_skills_count': 1}
        self.assertIs(validate_result(result, ['score', 'matched_skills_count']), result)

    def test_accepts_boundaries(self):
        validate_result({'score': 0}, ['score'])
        validate_result({'score': 100.0}, ['score'])

    def test_rejects_invalid_results(self):
        cases = [
            None,
            [('score', 10)],
            {},
            {'score': '80'},
            {'score': True},
            {'score': math.nan},
            {'score': math.inf},
            {'score': -0.1},
            {'score': 150},
        ]
        for case in cases:
            with self.subTest(result=case):
                with self.assertRaises(InvalidResultException):
                    validate_result(case, ['score'])

    def test_rejects_missing_declared_fields(self):
        with self.assertRaises(InvalidResultException) as ctx:
            validate_result({'score': 50}, ['score', 'matched_skills_count'])
        self.assertIn('matched_skills_count', str(ctx.exception))

    def test_score_required_even_when_not_declared(self):
        with self.assertRaises(InvalidResultException):
            validate_result({'similarity': 0.5}, ['similarity'])


class TestAgentHarness(unittest.TestCase):

    def setUp(self):
        self.fork = ForkInfo(fork_id='fork_skill_abcdef12', strategy_type='skill', resume_id='R1', job_id='J1')
        self.handle = MagicMock()
        self.fork_manager = Mock()
        self.fork_manager.open_handle.return_value = self.handle

        self.resume = SimpleNamespace(resume_id='R1')
        self.job = SimpleNamespace(job_id='J1')
        patcher = patch('core.agents.harness.SubjectRepository')
        self.subject_repo_cls = patcher.start()
        self.addCleanup(patcher.stop)
        self.subjects = self.subject_repo_cls.return_value
        self.subjects.get_resume.return_value = self.resume
        self.subjects.get_job.return_value = self.job

    def test_successful_run(self):
        scorer = FixedScorer({'score': 75.5, 'matched_skills_count': 3})
        harness = AgentHarness(self.fork, scorer, self.fork_manager)
        self.assertEqual(harness.state, HarnessState.INITIALIZED)

        result = harness.run()

        self.assertEqual(result['score'], 75.5)
        self.assertEqual(harness.state, HarnessState.COMPLETED)
        self.assertEqual(scorer.calls, [(self.resume, self.job)])
        self.handle.ping.assert_called_once()
        self.fork_manager.complete_fork.assert_called_once_with('fork_skill_abcdef12', result)
        self.fork_manager.fail_fork.assert_not_called()
        self.handle.close.assert_called_once()

    def test_invalid_score_fails_fork(self):
        scorer = FixedScorer({'score': 150, 'matched_skills_count': 3})
        harness = AgentHarness(self.fork, scorer, self.fork_manager)

        with self.assertRaises(InvalidResultException):
            harness.run()

        self.assertEqual(harness.state, HarnessState.FAILED)
        self.fork_manager.complete_fork.assert_not_called()
        self.fork_manager.fail_fork.assert_called_once()
        fork_id, error = self.fork_manager.fail_fork.call_args.args
        self.assertEqual(fork_id, 'fork_skill_abcdef12')
        self.assertIsInstance(error, InvalidResultException)
        self.handle.close.assert_called_once()

    def test_missing_resume(self):
        self.fork.resume_id = 'R404'
        self.subjects.get_resume.return_value = None
        scorer = FixedScorer({'score': 50, 'matched_skills_count': 0})
        harness = AgentHarness(self.fork, scorer, self.fork_manager)

        with self.assertRaises(SubjectNotFoundException) as ctx:
            harness.run()

        self.assertIn('R404', str(ctx.exception))
        self.assertEqual(scorer.calls, [])
        self.fork_manager.fail_fork.assert_called_once()
        self.handle.close.assert_called_once()

    def test_missing_job(self):
        self.subjects.get_job.return_value = None
        harness = AgentHarness(self.fork, FixedScorer({'score': 50}), self.fork_manager)

        with self.assertRaises(SubjectNotFoundException) as ctx:
            harness.run()
        self.assertEqual(ctx.exception.kind, 'job')

    def test_ping_failure(self):
        self.handle.ping.side_effect = ForkConnectionException('gone')
        scorer = FixedScorer({'score': 50, 'matched_skills_count': 0})
        harness = AgentHarness(self.fork, scorer, self.fork_manager)

        with self.assertRaises(ConnectionError):
            harness.run()

        self.subjects.get_resume.assert_not_called()
        self.fork_manager.fail_fork.assert_called_once()
        self.handle.close.assert_called_once()

    def test_handle_acquisition_failure(self):
        self.fork_manager.open_handle.side_effect = ForkConnectionException('no connection')
        harness = AgentHarness(self.fork, FixedScorer({'score': 50}), self.fork_manager)

        with self.assertRaises(ForkConnectionException):
            harness.run()

        self.fork_manager.fail_fork.assert_called_once()
        self.handle.close.assert_not_called()

    def test_scorer_exception_propagates(self):
        scorer = Mock(spec=BaseScorer)
        scorer.analyze.side_effect = ValueError('Insufficient text data')
        scorer.get_required_result_fields.return_value = ['score']
        harness = AgentHarness(self.fork, scorer, self.fork_manager)

        with self.assertRaises(ValueError):
            harness.run()

        self.assertEqual(harness.get_status()['error'], 'Insufficient text data')

    def test_run_twice_is_rejected(self):
        harness = AgentHarness(self.fork, FixedScorer({'score': 10, 'matched_skills_count': 0}), self.fork_manager)
        harness.run()

        with self.assertRaises(HarnessStateException):
            harness.run()

        self.fork_manager.complete_fork.assert_called_once()
        self.assertEqual(self.fork_manager.open_handle.call_count, 1)


if __name__ == '__main__':
    unittest.main()
