"""
Temporary in-memory storage for uploaded spreadsheets.

Lets the prediction service download the file by URL while the job that
uploaded it is still running. Entries expire after a TTL; a background
thread sweeps expired entries. Nothing survives a restart.
"""

import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional
import structlog

from exceptions import StoredFileNotFoundError

logger = structlog.get_logger(__name__)

DEFAULT_TTL_SECONDS = 3600
DEFAULT_SWEEP_INTERVAL_SECONDS = 60


@dataclass(frozen=True)
class EphemeralFile:
    """Stored file. Readable any number of times until it expires."""
    token: str
    content: bytes
    filename: str
    mime_type: str
    expires_at: float

    @property
    def size(self) -> int:
        return len(self.content)


class EphemeralFileStore:
    """
    Token → file table guarded by a single lock.

    Expiry is the only eviction policy; there is no size bound.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self.sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock
        self._files: dict[str, EphemeralFile] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._files)

    def put(self, content: bytes, filename: str, mime_type: str) -> str:
        """Store a file, return its token."""
        token = secrets.token_urlsafe(32)
        entry = EphemeralFile(
            token=token,
            content=content,
            filename=filename,
            mime_type=mime_type,
            expires_at=self._clock() + self.ttl_seconds,
        )
        with self._lock:
            self._files[token] = entry

        logger.info("ephemeral_file_stored", filename=filename, size=len(content), ttl=self.ttl_seconds)
        return token

    def get(self, token: str) -> EphemeralFile:
        """
        Fetch a stored file.

        Raises:
            StoredFileNotFoundError: If the token is unknown or expired,
                whether or not the sweep has removed it yet
        """
        with self._lock:
            entry = self._files.get(token)

        if entry is None or self._clock() >= entry.expires_at:
            raise StoredFileNotFoundError(token)
        return entry

    def delete(self, token: str) -> None:
        """Remove a file once its job no longer needs it."""
        with self._lock:
            self._files.pop(token, None)

    def sweep(self) -> int:
        """Remove every expired entry. Returns number removed."""
        now = self._clock()
        with self._lock:
            expired = [t for t, entry in self._files.items() if now >= entry.expires_at]
            for token in expired:
                del self._files[token]

        if expired:
            logger.info("ephemeral_files_swept", removed=len(expired))
        return len(expired)

    # ===================
    # BACKGROUND SWEEPER
    # ===================

    def _run_sweeper(self) -> None:
        while not self._stop.wait(self.sweep_interval_seconds):
            try:
                self.sweep()
            except Exception as e:
                logger.error("ephemeral_file_sweep_failed", error=str(e), exc_info=True)

    def start(self) -> None:
        """Start the periodic sweep thread (idempotent)."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run_sweeper,
            name="ephemeral-file-sweeper",
            daemon=True,
        )
        self._thread.start()
        logger.info("ephemeral_file_sweeper_started", interval=self.sweep_interval_seconds)

    def stop(self) -> None:
        """Stop the sweep thread and wait for it to exit."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
        logger.info("ephemeral_file_sweeper_stopped")
