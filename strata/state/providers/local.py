"""
Local State Store on the file system.

The snapshot is a JSON file replaced atomically on every swap. A lock file
created with O_EXCL serializes the read-compare-write between processes.
"""

from __future__ import annotations

__all__ = ["Local"]

import os
import shutil
import tempfile
import threading
import time
from typing import Any

from strata.core import Context, Response, get_logger
from strata.core.exceptions import ConflictError

from .._models import StateSnapshot
from .._provider import StateProvider

logger = get_logger(__name__)

DEFAULT_PATH = os.path.join(".strata", "state.json")


class Local(StateProvider):
    path: str
    backup: bool
    lock_timeout: float
    stale_lock_timeout: float

    _lock: threading.Lock
    _init: bool

    def __init__(
        self,
        path: str = DEFAULT_PATH,
        backup: bool = True,
        lock_timeout: float = 10.0,
        stale_lock_timeout: float = 60.0,
        **kwargs,
    ):
        """Initialize.

        Args:
            path:
                State file path.
            backup:
                Keep the previous snapshot next to the state file.
            lock_timeout:
                Seconds to wait for the lock file.
            stale_lock_timeout:
                Age in seconds after which a lock file left behind by a
                crashed process is broken.
        """
        self.path = path
        self.backup = backup
        self.lock_timeout = lock_timeout
        self.stale_lock_timeout = stale_lock_timeout

        self._lock = threading.Lock()
        self._init = False

        super().__init__(**kwargs)

    @property
    def lock_path(self) -> str:
        return f"{self.path}.lock"

    @property
    def backup_path(self) -> str:
        return f"{self.path}.backup"

    def __setup__(self, context: Context | None = None) -> None:
        if self._init:
            return
        folder = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(folder, exist_ok=True)
        self._init = True

    def get_snapshot(self, **kwargs: Any) -> Response[StateSnapshot]:
        self.__setup__()
        return Response(result=self._read())

    def compare_and_swap(
        self,
        expected_version: int,
        snapshot: StateSnapshot,
        **kwargs: Any,
    ) -> Response[StateSnapshot]:
        self.__setup__()
        with self._lock:
            self._acquire_file_lock()
            try:
                current = self._read()
                stored = self._next(current, expected_version, snapshot)
                if self.backup and os.path.exists(self.path):
                    shutil.copyfile(self.path, self.backup_path)
                self._write(stored)
            finally:
                self._release_file_lock()
        return Response(result=stored)

    def _read(self) -> StateSnapshot:
        try:
            with open(self.path, "r", encoding="utf-8") as file:
                content = file.read()
        except FileNotFoundError:
            return StateSnapshot()
        if not content.strip():
            return StateSnapshot()
        return StateSnapshot.from_json(content)

    def _write(self, snapshot: StateSnapshot) -> None:
        folder = os.path.dirname(os.path.abspath(self.path))
        fd, tmp_path = tempfile.mkstemp(
            prefix=".state-", suffix=".tmp", dir=folder
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as file:
                file.write(snapshot.to_json(indent=2))
                file.flush()
                os.fsync(file.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def _acquire_file_lock(self) -> None:
        deadline = time.monotonic() + self.lock_timeout
        while True:
            try:
                fd = os.open(
                    self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY
                )
                with os.fdopen(fd, "w") as file:
                    file.write(str(os.getpid()))
                return
            except FileExistsError:
                if self._break_stale_lock():
                    continue
                if time.monotonic() > deadline:
                    raise ConflictError(
                        f"timed out waiting for {self.lock_path}"
                    )
                time.sleep(0.05)

    def _break_stale_lock(self) -> bool:
        try:
            age = time.time() - os.path.getmtime(self.lock_path)
        except FileNotFoundError:
            return True
        if age < self.stale_lock_timeout:
            return False
        logger.warning("Breaking stale lock file %s", self.lock_path)
        try:
            os.remove(self.lock_path)
        except FileNotFoundError:
            pass
        return True

    def _release_file_lock(self) -> None:
        try:
            os.remove(self.lock_path)
        except FileNotFoundError:
            logger.warning("Lock file %s disappeared", self.lock_path)
