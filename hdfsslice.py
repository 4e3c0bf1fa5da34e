#!/usr/bin/env python3
"""
hdfsslice - Read and append line-delimited record files on HDFS.

Main entry point and CLI.
"""

# hdfsslice/hdfsslice.py

import argparse
import json
import logging
import sys
from typing import Any, Iterable, Iterator, List

from appender import AppendCoordinator
from config import Config
from errors import ConfigError, HdfsSliceError
from file_chunker import FileChunker
from formatters import get_formatter
from local_backend import LocalBackend
from reader import ChunkReader, ParallelReader
from retry import RetryConfig, redrive
from rotation import RotationTracker
from slicer import DirectoryWalker, RangeDescriptor, RangePlanner, drain
from webhdfs_backend import WebHDFSBackend

log = logging.getLogger('hdfsslice')


class HdfsSlice:
    """Main orchestrator for hdfsslice operations."""

    def __init__(self, config_path: str = None, local_root: str = None,
                 overrides: dict = None, backend=None):
        self.config = Config(config_path, overrides).validate()
        if backend is not None:
            self.backend = backend
        elif local_root:
            self.backend = LocalBackend(local_root)
        else:
            self.backend = WebHDFSBackend(self.config)

        self.planner = RangePlanner(self.config.size)
        self.walker = DirectoryWalker(self.backend, self.planner)
        self.reader = ChunkReader(self.backend, self.config.delimiter)
        self.tracker = RotationTracker(self.config.max_write_errors)
        self.appender = AppendCoordinator(self.config, self.backend, self.tracker)
        self.file_chunker = FileChunker(self.config)

    def _root(self, path: str = None) -> str:
        root = path or self.config.path
        if not root:
            raise ConfigError('path must specify a valid path in hdfs!')
        return root

    def plan(self, path: str = None) -> List[RangeDescriptor]:
        """List the slices of every file under a path."""
        return list(drain(self.walker.fill(self._root(path))))

    def read(self, path: str = None) -> Iterator[Any]:
        """Read and parse every record under a path, slice by slice."""
        root = self._root(path)
        log.info(f"Reading {root} in {self.config.size} byte slices")

        parallel = ParallelReader(self.reader, max_workers=self.config.workers)
        formatter = get_formatter(self.config.format)

        total = slices = 0
        for _, records in parallel.iter_ranges(self.walker.iter_ranges(root), formatter):
            slices += 1
            total += len(records)
            yield from records
        log.info(f"  ✓ Read {total} records from {slices} slices")

    def write(self, records: Iterable[Any]) -> List[str]:
        """Chunk records into payloads and append them, redriving after rotations."""
        chunks = self.file_chunker.chunk(records)
        if not chunks:
            log.info("Nothing to write.")
            return []

        written = redrive(
            lambda: self.appender.append(chunks),
            RetryConfig.from_config(self.config),
            operation_name="append",
        )
        log.info(f"  ✓ Appended {len(chunks)} payloads to {len(written)} files")
        return written

    def append_file(self, local_path: str) -> List[str]:
        """Append the records of a local line-delimited file."""
        formatter = get_formatter(self.config.format)
        with open(local_path, 'rb') as f:
            records = formatter(f.read().splitlines())
        log.info(f"Appending {len(records)} records from {local_path} to {self.config.directory}")
        return self.write(records)


def main():
    parser = argparse.ArgumentParser(
        prog='hdfsslice',
        description='Read and append line-delimited record files on HDFS'
    )
    parser.add_argument('-c', '--config', default='~/.config/hdfsslice/config.json',
                        help='Config file path')
    parser.add_argument('--local', metavar='ROOT',
                        help='Use a local directory instead of WebHDFS')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')

    subparsers = parser.add_subparsers(dest='command', help='Command')

    # plan
    p_plan = subparsers.add_parser('plan', help='Print the slices of a file or directory')
    p_plan.add_argument('path', nargs='?', help='HDFS path (defaults to config path)')
    p_plan.add_argument('--size', type=int, help='Slice size in bytes')

    # read
    p_read = subparsers.add_parser('read', help='Print the records of a file or directory')
    p_read.add_argument('path', nargs='?', help='HDFS path (defaults to config path)')
    p_read.add_argument('--size', type=int, help='Slice size in bytes')
    p_read.add_argument('--format', help='Record format')
    p_read.add_argument('--workers', type=int, help='Parallel slice reads')

    # append
    p_append = subparsers.add_parser('append', help='Append a local file to HDFS')
    p_append.add_argument('local_path', help='Local line-delimited file')
    p_append.add_argument('directory', help='Target HDFS directory')
    p_append.add_argument('--filename', help='Target filename (defaults to host name)')
    p_append.add_argument('--chunk-size', type=int, help='Records per appended payload')
    p_append.add_argument('--format', help='Record format')

    # init
    subparsers.add_parser('init', help='Initialize config')

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(message)s'
    )

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == 'init':
        Config.init_interactive()
        return

    overrides = {
        'size': getattr(args, 'size', None),
        'format': getattr(args, 'format', None),
        'workers': getattr(args, 'workers', None),
        'chunk_size': getattr(args, 'chunk_size', None),
        'filename': getattr(args, 'filename', None),
        'directory': getattr(args, 'directory', None),
    }

    try:
        tool = HdfsSlice(args.config, local_root=args.local, overrides=overrides)

        if args.command == 'plan':
            for descriptor in tool.plan(args.path):
                print(json.dumps(descriptor.to_dict()))
        elif args.command == 'read':
            for record in tool.read(args.path):
                print(record if isinstance(record, str) else json.dumps(record))
        elif args.command == 'append':
            tool.append_file(args.local_path)
    except HdfsSliceError as e:
        log.error(f"  {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
