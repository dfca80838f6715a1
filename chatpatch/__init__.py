# chatpatch/__init__.py
"""
ChatPatch 库 - 把模型输出中的文件指令安全、可回滚地应用到项目中。
"""

from .core.directives import parse_fenced_blocks, parse_path_directive, extract_directives
from .core.patch import apply_edits
from .core.errors import ChatPatchError, ParseError, PatchError, PatchFailure, InvalidPath, CommitError, RevertNoMatch
from .storage.fs import IProjectFileSystem, LocalFileSystem
from .storage.staging import StagedMutationStore
from .storage.undo_log import UndoLog
from .storage.history_store import HistoryStore

__all__ = [
    'parse_fenced_blocks', 'parse_path_directive', 'extract_directives', 'apply_edits',
    'ChatPatchError', 'ParseError', 'PatchError', 'PatchFailure', 'InvalidPath', 'CommitError', 'RevertNoMatch',
    'IProjectFileSystem', 'LocalFileSystem', 'StagedMutationStore', 'UndoLog', 'HistoryStore',
]
