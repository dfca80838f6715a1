# chatpatch/storage/fs.py
"""
ChatPatch 存储接口 - 项目文件系统 (IProjectFileSystem)
所有路径都是相对于单个项目根目录的 `/` 分隔路径。
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Union


class IProjectFileSystem(ABC):
    """
    抽象基类，定义暂存区和撤销日志需要的最小文件系统接口。
    """

    @abstractmethod
    def read_text(self, path: str) -> str:
        """读取文件。文件不存在时抛出 FileNotFoundError；其他读取失败不代表文件不存在。"""
        pass

    @abstractmethod
    def write_text(self, path: str, text: str) -> None:
        pass

    @abstractmethod
    def delete(self, path: str) -> None:
        """删除文件。文件不存在时抛出 FileNotFoundError。"""
        pass

    @abstractmethod
    def create_directory(self, path: str) -> None:
        pass

    @abstractmethod
    def exists(self, path: str) -> bool:
        pass

    @abstractmethod
    def list_files(self, pattern: str = "**/*", limit: int = 50) -> List[str]:
        pass


class LocalFileSystem(IProjectFileSystem):
    """基于 pathlib 的实现，限定在一个项目根目录内。"""

    EXCLUDED_DIRS = {".git", "node_modules", "__pycache__", ".venv", "dist", "build", ".chatedit"}

    def __init__(self, root: Union[str, Path] = "."):
        self.root = Path(root).resolve()

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if target != self.root and self.root not in target.parents:
            raise PermissionError(f"Path escapes project root: {path}")
        return target

    def read_text(self, path: str) -> str:
        target = self._resolve(path)
        if not target.is_file():
            raise FileNotFoundError(path)
        # 非 UTF-8 字节以代理字符保留，write_text 原样写回
        return target.read_text(encoding="utf-8", errors="surrogateescape")

    def write_text(self, path: str, text: str) -> None:
        target = self._resolve(path)
        # newline="" 保持内容中的换行符原样写入
        with open(target, "w", encoding="utf-8", errors="surrogateescape", newline="") as f:
            f.write(text)

    def delete(self, path: str) -> None:
        self._resolve(path).unlink()

    def create_directory(self, path: str) -> None:
        self._resolve(path).mkdir(parents=True, exist_ok=True)

    def exists(self, path: str) -> bool:
        try:
            return self._resolve(path).is_file()
        except PermissionError:
            return False

    def list_files(self, pattern: str = "**/*", limit: int = 50) -> List[str]:
        results: List[str] = []
        for p in sorted(self.root.glob(pattern)):
            if not p.is_file():
                continue
            rel = p.relative_to(self.root)
            if any(part in self.EXCLUDED_DIRS for part in rel.parts[:-1]):
                continue
            results.append(rel.as_posix())
            if len(results) >= limit:
                break
        return results


def parent_dir(path: str) -> str:
    """`a/b/c.py` -> `a/b`；顶层文件返回空字符串"""
    return "/".join(path.split("/")[:-1])
