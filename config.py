"""
Configuration management for hdfsslice.
"""

# hdfsslice/config.py

import json
import os
import sys
import logging

from errors import ConfigError
from formatters import RecordFormat

log = logging.getLogger('hdfsslice')

DEFAULT_CONFIG_PATH = '~/.config/hdfsslice/config.json'

TIMESERIES_INTERVALS = ('daily', 'monthly', 'yearly')

DEFAULT_CONFIG = {
    "namenode_url": "http://localhost:9870",
    "user": "hdfs",
    "timeout": 600,  # seconds per WebHDFS request
    # Read side
    "path": "",
    "size": 100000,  # bytes per slice
    "line_delimiter": "\n",
    "format": "json_lines",
    "workers": 4,
    # Write side
    "max_write_errors": 100,
    "log_data_on_error": False,
    "rotation_error_markers": [
        "Failed to replace a bad datanode",
        "ReplicaNotFoundException",
    ],
    "chunk_size": 50000,  # records per appended payload
    "timeseries": None,
    "date_field": "date",
    "directory": "/",
    "filename": "",
    "retry_attempts": 3,
    "retry_base_delay": 1.0,
}


class Config:
    def __init__(self, config_path: str = None, overrides: dict = None):
        if config_path:
            self.config_path = os.path.expanduser(config_path)
        else:
            self.config_path = os.path.expanduser(DEFAULT_CONFIG_PATH)

        self._data = dict(DEFAULT_CONFIG)

        if os.path.exists(self.config_path):
            with open(self.config_path, 'r') as f:
                user_config = json.load(f)
                self._data.update(user_config)
            log.info(f"Loaded config from {self.config_path}")
        else:
            log.warning(f"No config found at {self.config_path}, using defaults")
            log.warning(f"Run 'hdfsslice init' to create a config")

        if overrides:
            self._data.update({k: v for k, v in overrides.items() if v is not None})

    @property
    def namenode_url(self) -> str:
        return self._data['namenode_url'].rstrip('/')

    @property
    def user(self) -> str:
        return self._data['user']

    @property
    def timeout(self) -> float:
        return self._data['timeout']

    @property
    def path(self) -> str:
        return self._data['path']

    @property
    def size(self) -> int:
        return self._data['size']

    @property
    def line_delimiter(self) -> str:
        return self._data['line_delimiter']

    @property
    def delimiter(self) -> bytes:
        """The record delimiter as the single byte the reader splits on."""
        return self._data['line_delimiter'].encode('utf-8')

    @property
    def format(self) -> str:
        return self._data['format']

    @property
    def workers(self) -> int:
        return self._data['workers']

    @property
    def max_write_errors(self) -> int:
        return self._data['max_write_errors']

    @property
    def log_data_on_error(self) -> bool:
        return self._data['log_data_on_error'] is True

    @property
    def rotation_error_markers(self) -> list:
        return self._data['rotation_error_markers']

    @property
    def chunk_size(self) -> int:
        return self._data['chunk_size']

    @property
    def timeseries(self):
        return self._data['timeseries']

    @property
    def date_field(self) -> str:
        return self._data['date_field']

    @property
    def directory(self) -> str:
        return self._data['directory']

    @property
    def filename(self) -> str:
        return self._data['filename']

    @property
    def retry_attempts(self) -> int:
        return self._data['retry_attempts']

    @property
    def retry_base_delay(self) -> float:
        return self._data['retry_base_delay']

    def validate(self, reading: bool = False):
        """
        Check option values, raising ConfigError on the first bad one.

        ``reading`` additionally requires a non-empty ``path``.
        """
        if reading:
            if not isinstance(self.path, str):
                raise ConfigError('path must be a string!')
            if len(self.path) == 0:
                raise ConfigError('path must specify a valid path in hdfs!')

        for key in ('size', 'chunk_size', 'max_write_errors', 'workers'):
            value = self._data[key]
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"{key} must be a number!")
            if value <= 0:
                raise ConfigError(f"{key} must be greater than zero!")

        if self.format not in RecordFormat.names():
            raise ConfigError(
                f"Unsupported format '{self.format}', expected one of {RecordFormat.names()}"
            )

        if self.timeseries is not None and self.timeseries not in TIMESERIES_INTERVALS:
            raise ConfigError(
                f"timeseries must be one of {TIMESERIES_INTERVALS} or null, got {self.timeseries!r}"
            )

        if not isinstance(self.line_delimiter, str) or len(self.delimiter) != 1:
            raise ConfigError('line_delimiter must be a single byte')

        if not isinstance(self._data['log_data_on_error'], bool):
            raise ConfigError('log_data_on_error must be a boolean')

        return self

    def save(self):
        os.makedirs(os.path.dirname(self.config_path), exist_ok=True)
        with open(self.config_path, 'w') as f:
            json.dump(self._data, f, indent=2)
        log.info(f"Config saved to {self.config_path}")

    @staticmethod
    def init_interactive():
        """Interactive config initialization."""
        print("=== hdfsslice Configuration ===\n")

        config_path = os.path.expanduser(DEFAULT_CONFIG_PATH)
        print(f"Config will be saved to: {config_path}\n")

        print("Enter the WebHDFS address of your namenode.")
        print("Example: http://namenode.example.com:9870")
        namenode_url = input("Namenode URL [http://localhost:9870]: ").strip() or "http://localhost:9870"

        if not namenode_url.startswith(('http://', 'https://')):
            print("Error: Namenode URL must start with http:// or https://")
            sys.exit(1)

        user = input("\nHDFS user [hdfs]: ").strip() or "hdfs"

        path = input("\nPath to read (file or directory, optional): ").strip()

        size_input = input("\nSlice size in bytes [100000]: ").strip()
        size = int(size_input) if size_input else 100000

        max_input = input("\nMaximum file rotations after append errors [100]: ").strip()
        max_write_errors = int(max_input) if max_input else 100

        config = dict(DEFAULT_CONFIG)
        config['namenode_url'] = namenode_url
        config['user'] = user
        config['path'] = path
        config['size'] = size
        config['max_write_errors'] = max_write_errors

        os.makedirs(os.path.dirname(config_path), exist_ok=True)
        with open(config_path, 'w') as f:
            json.dump(config, f, indent=2)

        print(f"\n✓ Config saved to {config_path}")
        print(f"\nYou can now use:")
        print(f"  hdfsslice plan [path]")
        print(f"  hdfsslice read [path]")
        print(f"  hdfsslice append <local_file> <directory>")
