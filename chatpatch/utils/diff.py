# chatpatch/utils/diff.py
"""行级差异统计与统一 diff 预览（基于 difflib）"""

import difflib
from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class LineDelta:
    added: int
    removed: int

    @property
    def total(self) -> int:
        return self.added + self.removed


def _lines(text: str) -> List[str]:
    return str(text or "").replace("\r\n", "\n").split("\n")


def line_delta(before: str, after: str) -> LineDelta:
    a = _lines(before) if before else []
    b = _lines(after) if after else []
    added = removed = 0
    for tag, i1, i2, j1, j2 in difflib.SequenceMatcher(None, a, b, autojunk=False).get_opcodes():
        if tag in ("replace", "delete"):
            removed += i2 - i1
        if tag in ("replace", "insert"):
            added += j2 - j1
    return LineDelta(added=added, removed=removed)


def classify_change_scope(total_changed_lines: int) -> str:
    if total_changed_lines <= 3:
        return "tiny"
    if total_changed_lines <= 20:
        return "small"
    if total_changed_lines <= 50:
        return "medium"
    return "large"


def unified_diff(before: str, after: str, path: str) -> str:
    diff = difflib.unified_diff(
        _lines(before) if before else [],
        _lines(after) if after else [],
        fromfile=f"a/{path}",
        tofile=f"b/{path}",
        lineterm="",
    )
    return "\n".join(diff)
