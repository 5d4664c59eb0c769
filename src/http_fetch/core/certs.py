"""
CA bundle store.

Downloads ``cacert.pem`` once into a writable directory and hands its path to
the executor, which then turns peer verification on. Without an initialized
directory (or when the download fails) ``resolve()`` returns None and peer
verification stays off.
"""

import logging
import os
import threading
from pathlib import Path
from typing import Callable, Optional

import requests

from .exceptions import ConfigurationError
from .utils import ensure_writable_directory

logger = logging.getLogger(__name__)

CACERT_SOURCE = "https://curl.se/ca/cacert.pem"


class CertificateStore:
    """
    Lazily downloaded, cached CA bundle.

    Thread-safe: the download happens at most once per store.

    Example:
        >>> store = CertificateStore()
        >>> store.initialize("/var/cache/http_fetch")
        >>> store.resolve()
        '/var/cache/http_fetch/cacert.pem'
    """

    def __init__(
        self,
        directory: Optional[str] = None,
        source: str = CACERT_SOURCE,
        session_factory: Callable[[], requests.Session] = requests.Session,
        timeout: float = 30.0,
    ):
        self._source = source
        self._session_factory = session_factory
        self._timeout = timeout
        self._lock = threading.Lock()
        self._file: Optional[Path] = None
        self._resolved: Optional[str] = None
        if directory is not None:
            self.initialize(directory)

    @property
    def source(self) -> str:
        return self._source

    @property
    def file(self) -> Optional[Path]:
        """Where the bundle lives (or will live) once initialized."""
        return self._file

    @property
    def initialized(self) -> bool:
        return self._file is not None

    def initialize(self, directory: str) -> None:
        """
        Set the download directory, creating it when needed.

        Raises:
            ConfigurationError: directory cannot be created or is not writable
        """
        try:
            path = ensure_writable_directory(directory)
        except OSError as e:
            raise ConfigurationError(
                f"{directory} is not an existing directory or is not writable."
            ) from e

        with self._lock:
            self._file = path / os.path.basename(self._source)
            self._resolved = None

    def resolve(self) -> Optional[str]:
        """
        Absolute path of the CA bundle, downloading it on first use.

        Returns:
            Path or None when not initialized or the download failed
        """
        with self._lock:
            if self._resolved is not None or self._file is None:
                return self._resolved

            if not self._file.is_file() and not self._download(self._file):
                return None

            self._resolved = str(self._file.resolve())
            return self._resolved

    def _download(self, target: Path) -> bool:
        logger.info("Downloading CA bundle from %s", self._source)
        session = self._session_factory()
        try:
            response = session.get(self._source, timeout=self._timeout)
            response.raise_for_status()
            contents = response.content
        except requests.exceptions.RequestException as e:
            logger.warning("CA bundle download failed: %s", e)
            return False
        finally:
            session.close()

        if not contents:
            logger.warning("CA bundle download returned an empty body")
            return False

        partial = target.with_name(target.name + ".part")
        try:
            partial.write_bytes(contents)
            os.replace(partial, target)
        except OSError as e:
            logger.warning("Could not store CA bundle in %s: %s", target, e)
            partial.unlink(missing_ok=True)
            return False
        return True


# Process-wide store used when an executor is not given one
default_store = CertificateStore()


def set_certificate_directory(directory: str) -> None:
    """Initialize the process-wide store (see ``CertificateStore.initialize``)."""
    default_store.initialize(directory)
