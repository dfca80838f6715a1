# tests/conftest.py
"""
ChatEdit / ChatPatch 测试配置和共享 fixtures
"""

import fnmatch
from typing import Dict, List, Optional

import pytest

from chatpatch.storage.fs import IProjectFileSystem, LocalFileSystem
from chatpatch.storage.staging import StagedMutationStore
from chatpatch.storage.undo_log import UndoLog


class MemoryFileSystem(IProjectFileSystem):
    """内存文件系统，可以让指定路径的读取/写入/删除失败"""

    def __init__(self, files: Optional[Dict[str, str]] = None):
        self.files: Dict[str, str] = dict(files or {})
        self.directories: set = set()
        self.fail_writes: set = set()
        self.fail_deletes: set = set()
        self.fail_reads: set = set()

    def read_text(self, path: str) -> str:
        if path in self.fail_reads:
            raise PermissionError(f"unreadable: {path}")
        if path not in self.files:
            raise FileNotFoundError(path)
        return self.files[path]

    def write_text(self, path: str, text: str) -> None:
        if path in self.fail_writes:
            raise PermissionError(f"read-only: {path}")
        self.files[path] = text

    def delete(self, path: str) -> None:
        if path in self.fail_deletes:
            raise PermissionError(f"read-only: {path}")
        if path not in self.files:
            raise FileNotFoundError(path)
        del self.files[path]

    def create_directory(self, path: str) -> None:
        self.directories.add(path)

    def exists(self, path: str) -> bool:
        return path in self.files

    def list_files(self, pattern: str = "**/*", limit: int = 50) -> List[str]:
        if pattern.startswith("**/"):
            matches = [p for p in sorted(self.files) if fnmatch.fnmatch(p, pattern) or fnmatch.fnmatch(p, pattern[3:])]
        else:
            matches = [p for p in sorted(self.files) if fnmatch.fnmatch(p, pattern)]
        return matches[:limit]


# --- Pytest Fixtures ---

@pytest.fixture
def memory_fs():
    return MemoryFileSystem({"a.txt": "a\nb\nc\n", "src/app.py": "print('hello')\n"})


@pytest.fixture
def store(memory_fs):
    return StagedMutationStore(memory_fs)


@pytest.fixture
def project_dir(tmp_path, monkeypatch):
    """
    提供一个隔离的项目目录，并切换当前工作目录。
    """
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def local_fs(project_dir):
    return LocalFileSystem(project_dir)


@pytest.fixture
def undo_log(local_fs):
    return UndoLog(local_fs)


# --- CLI 测试的特殊 Fixture ---
@pytest.fixture
def runner():
    """提供一个 Click CliRunner 实例用于测试 CLI 命令"""
    from click.testing import CliRunner
    return CliRunner()
