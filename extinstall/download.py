"""
Package Fetcher - Download Extension Archives

Streams a package over HTTP into a temporary file and checks that what
arrived is a zip or tar archive. The temporary file is removed when the
caller's ``with`` block exits, whatever happens inside it.
"""

import logging
import os
import tarfile
import tempfile
import threading
import time
import zipfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import requests

from extinstall.core.errors import DownloadError, PackageError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8 * 1024
DEFAULT_MAX_BYTES = 50 * 1024 * 1024


class PackageFetcher:
    """
    Download packages with bounded time and size.

    Args:
        timeout: Seconds allowed for the whole download, also used as the
            per-socket-operation timeout
        max_bytes: Largest package accepted
        session: Optional ``requests.Session`` (tests pass a mock)
    """

    def __init__(
        self,
        timeout: float = 30.0,
        max_bytes: int = DEFAULT_MAX_BYTES,
        session: Optional[requests.Session] = None,
    ):
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.session = session or requests.Session()

    @contextmanager
    def fetch(self, url: str) -> Iterator[Path]:
        """
        Download ``url`` and yield the path of the temporary archive.

        Raises:
            DownloadError: network failure, timeout, HTTP error, oversize
            PackageError: the payload is not a zip or tar archive
        """
        fd, name = tempfile.mkstemp(prefix="extinstall_", suffix=".pkg")
        path = Path(name)
        try:
            with os.fdopen(fd, "wb") as handle:
                self._stream(url, handle)
            if not (zipfile.is_zipfile(path) or tarfile.is_tarfile(path)):
                raise PackageError(f"Downloaded file from {url} is not a zip or tar archive")
            yield path
        finally:
            try:
                path.unlink()
            except FileNotFoundError:
                pass

    def _stream(self, url: str, handle) -> None:
        logger.info(f"Downloading {url}")
        started = time.monotonic()
        received = 0
        expired = threading.Event()
        timer = None
        try:
            with self.session.get(url, timeout=self.timeout, stream=True) as response:
                response.raise_for_status()

                # a read blocked on a trickling server is cut off by closing the response
                def abort():
                    expired.set()
                    response.close()

                remaining = self.timeout - (time.monotonic() - started)
                timer = threading.Timer(max(remaining, 0), abort)
                timer.daemon = True
                timer.start()

                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if expired.is_set():
                        raise DownloadError(f"Download timeout ({self.timeout}s exceeded)")
                    if not chunk:
                        continue
                    received += len(chunk)
                    if received > self.max_bytes:
                        raise DownloadError(f"Package exceeds {self.max_bytes} bytes")
                    handle.write(chunk)
                if expired.is_set():
                    raise DownloadError(f"Download timeout ({self.timeout}s exceeded)")
        except DownloadError:
            raise
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else "?"
            raise DownloadError(f"HTTP error {status} fetching {url}") from e
        except requests.exceptions.Timeout as e:
            raise DownloadError(f"Download timeout ({self.timeout}s exceeded)") from e
        except Exception as e:
            # reading from a response closed at the deadline fails in transport-specific ways
            if expired.is_set():
                raise DownloadError(f"Download timeout ({self.timeout}s exceeded)") from e
            if isinstance(e, requests.exceptions.RequestException):
                raise DownloadError(f"Network error: {e}") from e
            raise
        finally:
            if timer is not None:
                timer.cancel()
        logger.info(f"Downloaded {received} bytes from {url}")
