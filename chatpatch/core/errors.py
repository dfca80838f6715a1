# chatpatch/core/errors.py
"""
ChatPatch 错误分类。

底层解析函数会抛出这些异常；批量级别的 API（extract_directives、
apply_edits、提交/撤销）把它们转换成返回值，调用方不会因为单条指令失败
而丢失整批结果。
"""

from enum import Enum
from typing import Optional


class PatchFailure(Enum):
    MISSING_SEPARATOR = "missing-separator"
    MISSING_TERMINATOR = "missing-terminator"
    NO_BLOCKS = "no-blocks"
    SEARCH_NOT_FOUND = "search-not-found"
    SEARCH_NOT_UNIQUE = "search-not-unique"


class ChatPatchError(Exception):
    """所有 chatpatch 错误的基类"""


class ParseError(ChatPatchError):
    """Malformed directive header or body. The directive is skipped."""


class InvalidPath(ChatPatchError):
    """路径逃逸出项目根目录（绝对路径、~、..、反斜杠、盘符）"""

    def __init__(self, path: str, message: Optional[str] = None):
        self.path = path
        super().__init__(message or f"Invalid path: {path!r}")


class PatchError(ChatPatchError):
    """SEARCH/REPLACE 编辑块无法应用"""

    MESSAGES = {
        PatchFailure.MISSING_SEPARATOR: "Malformed edit block (missing =======).",
        PatchFailure.MISSING_TERMINATOR: "Malformed edit block (missing >>>>>>> REPLACE).",
        PatchFailure.NO_BLOCKS: "No SEARCH/REPLACE blocks found.",
        PatchFailure.SEARCH_NOT_FOUND: "SEARCH block not found in file.",
        PatchFailure.SEARCH_NOT_UNIQUE: "SEARCH block is not unique in file.",
    }

    def __init__(self, reason: PatchFailure, message: Optional[str] = None):
        self.reason = reason
        super().__init__(message or self.MESSAGES[reason])


class CommitError(ChatPatchError):
    """写入或删除磁盘文件失败（按路径报告）"""

    def __init__(self, path: str, cause: Exception):
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to commit {path}: {cause}")


class RevertNoMatch(ChatPatchError):
    """No checkpoint recorded for the requested step."""

    def __init__(self, step: int):
        self.step = step
        super().__init__(f"No checkpoint for step {step}")
