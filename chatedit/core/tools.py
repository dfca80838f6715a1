# chatedit/core/tools.py
"""
Agent 工具执行。所有写操作都只进入暂存区，不直接写磁盘。
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from chatpatch.core.errors import ChatPatchError
from chatpatch.core.models import ToolCall
from chatpatch.core.patch import apply_edits
from chatpatch.storage.staging import StagedMutationStore
from chatpatch.utils.cache import FreshnessCache

logger = logging.getLogger(__name__)

MAX_LIST_FILES = 500

TOOL_SPECS: List[Dict[str, str]] = [
    {"name": "list_files", "signature": "{ glob?, max? }", "note": ""},
    {"name": "read_file", "signature": "{ path, maxChars? }", "note": ""},
    {"name": "write_file", "signature": "{ path, content }", "note": "staged; will be reviewed"},
    {"name": "apply_edit", "signature": "{ path, edits }",
     "note": "edits is the inside of an edit block (SEARCH/REPLACE)"},
]


class ToolError(Exception):
    pass


class ToolExecutor:
    def __init__(
        self,
        store: StagedMutationStore,
        max_read_chars: int = 2_000_000,
        list_cache: Optional[FreshnessCache] = None,
    ):
        self.store = store
        self.max_read_chars = max_read_chars
        self.list_cache = list_cache or FreshnessCache(ttl_seconds=30)
        self._handlers: Dict[str, Callable[[Dict[str, Any]], str]] = {
            "list_files": self._list_files,
            "read_file": self._read_file,
            "write_file": self._write_file,
            "apply_edit": self._apply_edit,
        }

    @property
    def specs(self) -> List[Dict[str, str]]:
        return TOOL_SPECS

    def execute(self, call: ToolCall) -> str:
        """执行一次工具调用；失败以结果文本返回，不抛异常"""
        handler = self._handlers.get(call.name)
        if handler is None:
            logger.warning("Unknown tool requested: %s", call.name or "[empty]")
            return f"unknown_tool: {call.name}"
        try:
            return handler(call.args)
        except (ToolError, ChatPatchError) as e:
            logger.warning("Tool %s failed: %s", call.name, e)
            return f"{call.name} failed: {e}"

    # ==================== 工具实现 ====================

    def _list_files(self, args: Dict[str, Any]) -> str:
        pattern = args.get("glob") if isinstance(args.get("glob"), str) else "**/*"
        try:
            limit = max(1, min(MAX_LIST_FILES, int(args.get("max", 50))))
        except (TypeError, ValueError):
            limit = 50
        files = self.list_cache.get_or_compute(
            (pattern, limit), lambda: self.store.fs.list_files(pattern, limit)
        )
        logger.info("Listed files (glob: %s): found %d", pattern, len(files))
        return "list_files:\n" + "\n".join(files)

    def _read_file(self, args: Dict[str, Any]) -> str:
        path = str(args.get("path") or "").strip()
        try:
            max_chars = int(args.get("maxChars", self.max_read_chars))
        except (TypeError, ValueError):
            max_chars = self.max_read_chars
        text = self.store.read_file(path, max(1, min(self.max_read_chars, max_chars)))
        return f"read_file ({path}):\n{text if text is not None else '[missing or unreadable]'}"

    def _write_file(self, args: Dict[str, Any]) -> str:
        path = str(args.get("path") or "").strip()
        content = args.get("content")
        change = self.store.stage_write(path, "" if content is None else str(content))
        logger.info("Staged write to %s", change.path)
        return f"write_file: staged {change.path}"

    def _apply_edit(self, args: Dict[str, Any]) -> str:
        path = str(args.get("path") or "").strip()
        edits = str(args.get("edits") or "")
        current = self.store.read_file(path)
        if current is None:
            raise ToolError("File missing or unreadable.")
        result = apply_edits(current, edits)
        if not result.ok:
            raise ToolError(f"[{result.reason.value}] {result.message}")
        change = self.store.stage_write(path, result.updated)
        logger.info("Staged %d edit block(s) for %s", result.applied_count, change.path)
        return f"apply_edit: staged edits for {change.path} ({result.applied_count} block(s))"
