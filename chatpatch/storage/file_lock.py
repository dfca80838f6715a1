# chatpatch/storage/file_lock.py
"""
跨进程文件锁，保护持久化的撤销日志和变更历史，避免两个 CLI 进程交错写入。

基于 fcntl.flock (Unix) / msvcrt.locking (Windows)，支持 with 语句。
"""

import logging
import sys
from pathlib import Path
from typing import Union

if sys.platform == "win32":
    import msvcrt
else:
    import fcntl

logger = logging.getLogger(__name__)


class FileLock:
    def __init__(self, lock_file_path: Union[str, Path]):
        self.lock_file_path = Path(lock_file_path)
        self._lock_file = None

    def __enter__(self) -> "FileLock":
        """阻塞直到获得独占锁"""
        self.lock_file_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._lock_file = open(self.lock_file_path, "w")
            if sys.platform == "win32":
                msvcrt.locking(self._lock_file.fileno(), msvcrt.LK_LOCK, 1)
            else:
                fcntl.flock(self._lock_file.fileno(), fcntl.LOCK_EX)
        except OSError as e:
            if self._lock_file:
                self._lock_file.close()
                self._lock_file = None
            raise RuntimeError(f"Could not acquire lock {self.lock_file_path}: {e}") from e
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if not self._lock_file:
            return
        try:
            if sys.platform == "win32":
                msvcrt.locking(self._lock_file.fileno(), msvcrt.LK_UNLCK, 1)
            else:
                fcntl.flock(self._lock_file.fileno(), fcntl.LOCK_UN)
        except OSError as e:
            logger.warning("Failed to release lock %s: %s", self.lock_file_path, e)
        finally:
            self._lock_file.close()
            self._lock_file = None
