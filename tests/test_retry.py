"""
Tests for retry.py
"""
import unittest
import os
import sys
from unittest.mock import Mock

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from errors import (
    BatchFailure,
    HDFSError,
    OtherAppendFailure,
    RotationEligibleAppendFailure,
    RotationExceeded,
)
from retry import RetryConfig, redrive


def rotation_failure():
    return RotationEligibleAppendFailure('/d/f', '/d/f.0', HDFSError('bad datanode'))


class TestRedrive(unittest.TestCase):
    def setUp(self):
        self.sleep = Mock()
        self.config = RetryConfig(max_retries=3, base_delay=1.0)

    def test_success_first_time(self):
        operation = Mock(return_value=['/d/f'])
        self.assertEqual(redrive(operation, self.config, sleep=self.sleep), ['/d/f'])
        operation.assert_called_once_with()
        self.sleep.assert_not_called()

    def test_rotation_failure_is_redriven(self):
        """A rotated batch is sent again with growing delays"""
        operation = Mock(side_effect=[rotation_failure(), rotation_failure(), ['/d/f.1']])
        result = redrive(operation, self.config, sleep=self.sleep)

        self.assertEqual(result, ['/d/f.1'])
        self.assertEqual(operation.call_count, 3)
        self.assertEqual([c.args[0] for c in self.sleep.call_args_list], [1.0, 2.0])

    def test_gives_up_after_max_retries(self):
        operation = Mock(side_effect=rotation_failure())
        with self.assertRaises(RotationEligibleAppendFailure):
            redrive(operation, self.config, sleep=self.sleep)
        self.assertEqual(operation.call_count, 4)

    def test_rotation_exceeded_is_never_retried(self):
        operation = Mock(side_effect=RotationExceeded('/d/f', '/d/f.101', 100))
        with self.assertRaises(RotationExceeded):
            redrive(operation, self.config, sleep=self.sleep)
        operation.assert_called_once_with()

    def test_other_failure_is_not_retried(self):
        operation = Mock(side_effect=OtherAppendFailure('/d/f', HDFSError('quota')))
        with self.assertRaises(OtherAppendFailure):
            redrive(operation, self.config, sleep=self.sleep)
        operation.assert_called_once_with()

    def test_batch_failure_retried_only_when_all_recoverable(self):
        recoverable = BatchFailure([rotation_failure(), rotation_failure()])
        mixed = BatchFailure([rotation_failure(), OtherAppendFailure('/d/g', HDFSError('quota'))])

        operation = Mock(side_effect=[recoverable, ['/d/f.0']])
        self.assertEqual(redrive(operation, self.config, sleep=self.sleep), ['/d/f.0'])

        operation = Mock(side_effect=mixed)
        with self.assertRaises(BatchFailure):
            redrive(operation, self.config, sleep=self.sleep)
        operation.assert_called_once_with()

    def test_delay_is_capped(self):
        config = RetryConfig(max_retries=5, base_delay=10.0, max_delay=25.0)
        operation = Mock(side_effect=[rotation_failure()] * 3 + ['ok'])
        redrive(operation, config, sleep=self.sleep)
        self.assertEqual([c.args[0] for c in self.sleep.call_args_list], [10.0, 20.0, 25.0])

    def test_from_config(self):
        config = Mock(retry_attempts=7, retry_base_delay=0.5)
        retry_config = RetryConfig.from_config(config)
        self.assertEqual(retry_config.max_retries, 7)
        self.assertEqual(retry_config.base_delay, 0.5)


if __name__ == '__main__':
    unittest.main()
