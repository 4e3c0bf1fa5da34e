"""
WebHDFS backend — wraps the namenode REST API for byte-range reads,
listing, file creation and appends.
"""

# hdfsslice/webhdfs_backend.py

import json
import logging
import posixpath
from typing import List, Optional
from urllib.parse import quote

import httpx

from backend import FILE, FileStatus, StorageBackend
from errors import FileNotFound, HDFSError

log = logging.getLogger('hdfsslice')


class WebHDFSBackend(StorageBackend):
    def __init__(self, config, client: Optional[httpx.Client] = None):
        self.config = config
        self.base_url = f"{config.namenode_url}/webhdfs/v1"
        self.user = config.user
        if client is None:
            # Datanode redirects are followed in _request
            client = httpx.Client(timeout=config.timeout, follow_redirects=False)
        self._client = client

    def close(self):
        self._client.close()

    def _request(self, method: str, path: str, op: str, params: dict = None,
                 data: Optional[bytes] = None) -> bytes:
        """
        Run one WebHDFS operation.

        Operations that touch file contents are answered by the namenode
        with a redirect to a datanode; the request (and its body) is sent
        again to that location.
        """
        query = {'op': op, 'user.name': self.user}
        if params:
            query.update({k: v for k, v in params.items() if v is not None})
        url = f"{self.base_url}{quote(path)}"
        log.debug(f"  Running: {method} {op} {path}")

        try:
            response = self._client.request(method, url, params=query)
            if response.is_redirect:
                location = response.headers['location']
                log.debug(f"  Redirected {op} {path} -> {location}")
                headers = None
                if data is not None:
                    headers = {'Content-Type': 'application/octet-stream'}
                response = self._client.request(method, location, content=data, headers=headers)
            response.raise_for_status()
            return response.content
        except httpx.HTTPStatusError as e:
            err = self._parse_error(e.response, path)
            log.debug(f"  WebHDFS error (code {e.response.status_code}): {err}")
            raise err from e
        except httpx.TransportError as e:
            log.error(f"  WebHDFS request failed: {method} {op} {path}: {e}")
            raise HDFSError(f"{method} {op} {path} failed: {e}") from e

    @staticmethod
    def _parse_error(response: httpx.Response, path: str) -> HDFSError:
        """Turn a RemoteException body into an HDFSError."""
        body = response.text
        status = response.status_code

        exception = java_class = ''
        message = body[:500] or f"HTTP {status} for {path}"
        try:
            remote = json.loads(body)['RemoteException']
            exception = remote.get('exception', '')
            java_class = remote.get('javaClassName', '')
            message = remote.get('message', message)
        except (ValueError, KeyError, TypeError):
            pass

        if status == 404 or exception == 'FileNotFoundException':
            return FileNotFound(message, exception, java_class, status)
        return HDFSError(message, exception, java_class, status)

    @staticmethod
    def _status(parent: str, entry: dict) -> FileStatus:
        suffix = entry.get('pathSuffix', '')
        path = posixpath.join(parent, suffix) if suffix else parent
        return FileStatus(path=path, type=entry.get('type', FILE),
                          length=int(entry.get('length', 0)))

    def open(self, path: str, offset: Optional[int] = None,
             length: Optional[int] = None) -> bytes:
        return self._request('GET', path, 'OPEN', {'offset': offset, 'length': length})

    def list_status(self, path: str) -> List[FileStatus]:
        body = self._request('GET', path, 'LISTSTATUS')
        entries = json.loads(body.decode('utf-8'))['FileStatuses']['FileStatus']
        return [self._status(path, entry) for entry in entries]

    def get_file_status(self, path: str) -> FileStatus:
        body = self._request('GET', path, 'GETFILESTATUS')
        return self._status(path, json.loads(body.decode('utf-8'))['FileStatus'])

    def mkdirs(self, path: str) -> bool:
        body = self._request('PUT', path, 'MKDIRS')
        return bool(json.loads(body.decode('utf-8')).get('boolean'))

    def create(self, path: str, data: bytes = b'') -> None:
        self._request('PUT', path, 'CREATE', {'overwrite': 'false'}, data=data)

    def append(self, path: str, data: bytes) -> None:
        self._request('POST', path, 'APPEND', data=data)
