"""
Tests for appender.py
"""
import unittest
import tempfile
import shutil
import os
import sys
import threading
from unittest.mock import Mock, call

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from appender import AppendCoordinator, WriteBatch
from backend import FILE, FileStatus
from config import Config
from errors import (
    BatchFailure,
    CreateFailure,
    FileNotFound,
    HDFSError,
    OtherAppendFailure,
    RotationEligibleAppendFailure,
    RotationExceeded,
)
from rotation import RotationTracker

CORRUPT_REPLICA = HDFSError(
    'Failed to replace a bad datanode on the existing pipeline due to no more good '
    'datanodes being available to try.',
    'IOException', 'java.io.IOException', 403,
)


def make_config(**overrides):
    config = Mock()
    config.max_write_errors = 100
    config.log_data_on_error = False
    config.rotation_error_markers = ['Failed to replace a bad datanode',
                                     'ReplicaNotFoundException']
    config.workers = 4
    for key, value in overrides.items():
        setattr(config, key, value)
    return config


class TestAppendCoordinator(unittest.TestCase):
    def setUp(self):
        self.backend = Mock()
        self.backend.get_file_status.return_value = FileStatus('/out/f', FILE, 0)
        self.config = make_config()
        self.coordinator = AppendCoordinator(self.config, self.backend)

    def test_group_drops_empty_payloads(self):
        """Empty payloads never become appends"""
        batches = self.coordinator.group([
            {'filename': '/out/a', 'data': 'one\n'},
            {'filename': '/out/b', 'data': ''},
            {'filename': '/out/a', 'data': b'two\n'},
        ])
        self.assertEqual(batches, [WriteBatch('/out/a', [b'one\n', b'two\n'])])

    def test_appends_in_submission_order(self):
        written = self.coordinator.append([
            {'filename': '/out/f', 'data': b'1\n'},
            {'filename': '/out/f', 'data': b'2\n'},
            {'filename': '/out/f', 'data': b'3\n'},
        ])
        self.assertEqual(written, ['/out/f'])
        self.assertEqual(self.backend.append.call_args_list, [
            call('/out/f', b'1\n'), call('/out/f', b'2\n'), call('/out/f', b'3\n'),
        ])
        self.backend.create.assert_not_called()

    def test_appends_to_one_file_never_overlap(self):
        """Only one append per file is in flight at a time"""
        in_flight = {}
        overlaps = []
        lock = threading.Lock()

        def slow_append(path, data):
            with lock:
                in_flight[path] = in_flight.get(path, 0) + 1
                if in_flight[path] > 1:
                    overlaps.append(path)
            threading.Event().wait(0.001)
            with lock:
                in_flight[path] -= 1

        self.backend.append.side_effect = slow_append
        records = [{'filename': f'/out/{i % 3}', 'data': f'{i}\n'} for i in range(30)]
        written = self.coordinator.append(records)

        self.assertEqual(sorted(written), ['/out/0', '/out/1', '/out/2'])
        self.assertEqual(overlaps, [])

    def test_concurrent_calls_serialize_per_file(self):
        """Separate append() calls from several threads never overlap on one file"""
        in_flight = []
        overlaps = []
        lock = threading.Lock()

        def slow_append(path, data):
            with lock:
                if in_flight:
                    overlaps.append(data)
                in_flight.append(data)
            threading.Event().wait(0.02)
            with lock:
                in_flight.remove(data)

        self.backend.append.side_effect = slow_append
        start = threading.Barrier(4)

        def writer(n):
            start.wait()
            self.coordinator.append([
                {'filename': '/out/f', 'data': f'{n}-a\n'},
                {'filename': '/out/f', 'data': f'{n}-b\n'},
            ])

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(overlaps, [])
        sent = [c.args[1] for c in self.backend.append.call_args_list]
        self.assertEqual(len(sent), 8)
        # Each call's payloads stay adjacent and in order
        for i in range(0, 8, 2):
            self.assertEqual(sent[i][:2], sent[i + 1][:2])
            self.assertTrue(sent[i].endswith(b'-a\n'))

    def test_missing_file_is_created(self):
        self.backend.get_file_status.side_effect = FileNotFound('File does not exist: /out/new/f')
        self.coordinator.append([{'filename': '/out/new/f', 'data': b'x\n'}])

        self.backend.mkdirs.assert_called_once_with('/out/new')
        self.backend.create.assert_called_once_with('/out/new/f', b'')
        self.backend.append.assert_called_once_with('/out/new/f', b'x\n')

    def test_create_failure(self):
        self.backend.get_file_status.side_effect = FileNotFound('missing')
        self.backend.create.side_effect = HDFSError('Permission denied', 'AccessControlException')

        with self.assertRaises(CreateFailure) as ctx:
            self.coordinator.append([{'filename': '/out/f', 'data': b'x\n'}])
        self.assertEqual(ctx.exception.filename, '/out/f')
        self.backend.append.assert_not_called()

    def test_corrupt_replica_rotates(self):
        """A block relocation error rotates the file and is recoverable"""
        self.backend.append.side_effect = CORRUPT_REPLICA

        with self.assertRaises(RotationEligibleAppendFailure) as ctx:
            self.coordinator.append([{'filename': '/out/f', 'data': b'x\n'}])

        self.assertEqual(ctx.exception.filename, '/out/f')
        self.assertEqual(ctx.exception.new_filename, '/out/f.0')
        self.assertIsNone(ctx.exception.data)
        self.assertEqual(self.coordinator.tracker.resolve('/out/f'), '/out/f.0')

    def test_redrive_goes_to_rotated_file(self):
        """Redriving the same batch routes to the new name without another rotation"""
        self.backend.append.side_effect = [CORRUPT_REPLICA, None]
        records = [{'filename': '/out/f', 'data': b'x\n'}]

        with self.assertRaises(RotationEligibleAppendFailure):
            self.coordinator.append(records)
        written = self.coordinator.append(records)

        self.assertEqual(written, ['/out/f.0'])
        self.assertEqual(self.backend.append.call_args_list[-1], call('/out/f.0', b'x\n'))
        self.assertEqual(self.coordinator.tracker.snapshot(), {'/out/f': '/out/f.0'})

    def test_repeated_rotation_hits_limit(self):
        coordinator = AppendCoordinator(make_config(max_write_errors=1), self.backend)
        self.backend.append.side_effect = CORRUPT_REPLICA
        records = [{'filename': '/out/f', 'data': b'x\n'}]

        for expected in ('/out/f.0', '/out/f.1', '/out/f.2'):
            with self.assertRaises(RotationEligibleAppendFailure) as ctx:
                coordinator.append(records)
            self.assertEqual(ctx.exception.new_filename, expected)

        with self.assertRaises(RotationExceeded):
            coordinator.append(records)

    def test_other_failure_is_fatal(self):
        self.backend.append.side_effect = HDFSError('Quota exceeded', 'DSQuotaExceededException')

        with self.assertRaises(OtherAppendFailure) as ctx:
            self.coordinator.append([{'filename': '/out/f', 'data': b'x\n'}])
        self.assertEqual(ctx.exception.filename, '/out/f')
        self.assertEqual(self.coordinator.tracker.snapshot(), {})

    def test_lease_conflict_does_not_rotate(self):
        """With the default markers a lease held by another writer is fatal"""
        config_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, config_dir, True)
        config = Config(os.path.join(config_dir, 'absent.json'))
        tracker = Mock(wraps=RotationTracker(config.max_write_errors))
        coordinator = AppendCoordinator(config, self.backend, tracker)
        self.backend.append.side_effect = HDFSError(
            'Failed to APPEND_FILE /out/f for DFSClient_1 because this file lease '
            'is currently owned by DFSClient_2',
            'AlreadyBeingCreatedException',
            'org.apache.hadoop.hdfs.protocol.AlreadyBeingCreatedException', 403,
        )

        with self.assertRaises(OtherAppendFailure):
            coordinator.append([{'filename': '/out/f', 'data': b'x\n'}])
        tracker.record_failure.assert_not_called()
        self.assertEqual(tracker.snapshot(), {})

    def test_default_markers_rotate_on_bad_datanode(self):
        config_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, config_dir, True)
        coordinator = AppendCoordinator(Config(os.path.join(config_dir, 'absent.json')),
                                        self.backend)
        self.assertTrue(coordinator.is_rotation_error(CORRUPT_REPLICA))
        self.assertFalse(coordinator.is_rotation_error(
            HDFSError('lease recovery in progress', 'RecoveryInProgressException')))

    def test_data_included_only_when_enabled(self):
        self.backend.append.side_effect = HDFSError('boom')
        coordinator = AppendCoordinator(make_config(log_data_on_error=True), self.backend)

        with self.assertRaises(OtherAppendFailure) as ctx:
            coordinator.append([{'filename': '/out/f', 'data': b'secret\n'}])
        self.assertEqual(ctx.exception.data, [b'secret\n'])
        self.assertIn('secret', str(ctx.exception))

    def test_one_failed_file_fails_the_batch(self):
        """Other files still get written when one fails"""
        def append(path, data):
            if path == '/out/bad':
                raise HDFSError('boom')

        self.backend.append.side_effect = append
        with self.assertRaises(OtherAppendFailure):
            self.coordinator.append([
                {'filename': '/out/good', 'data': b'1\n'},
                {'filename': '/out/bad', 'data': b'2\n'},
            ])
        self.backend.append.assert_any_call('/out/good', b'1\n')

    def test_several_failures_raise_batch_failure(self):
        self.backend.append.side_effect = HDFSError('boom')
        with self.assertRaises(BatchFailure) as ctx:
            self.coordinator.append([
                {'filename': '/out/a', 'data': b'1\n'},
                {'filename': '/out/b', 'data': b'2\n'},
            ])
        self.assertEqual(sorted(e.filename for e in ctx.exception.errors), ['/out/a', '/out/b'])

    def test_marker_matches_exception_name(self):
        error = HDFSError('Replica not found for BP-1:blk_1', 'ReplicaNotFoundException')
        self.assertTrue(self.coordinator.is_rotation_error(error))
        self.assertFalse(self.coordinator.is_rotation_error(HDFSError('Permission denied')))

    def test_shared_tracker(self):
        tracker = RotationTracker(max_rotations=5)
        coordinator = AppendCoordinator(self.config, self.backend, tracker)
        self.assertIs(coordinator.tracker, tracker)

    def test_empty_batch(self):
        self.assertEqual(self.coordinator.append([{'filename': '/out/f', 'data': ''}]), [])
        self.backend.append.assert_not_called()


if __name__ == '__main__':
    unittest.main()
