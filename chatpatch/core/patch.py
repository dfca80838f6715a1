# chatpatch/core/patch.py
"""
补丁引擎: 把 SEARCH/REPLACE 三元组应用到文本上。

    <<<<<<< SEARCH
    旧文本
    =======
    新文本
    >>>>>>> REPLACE

每个 SEARCH 必须在当前文本中精确且唯一地出现；有歧义的锚点直接拒绝。
纯函数，不做任何 I/O。
"""

from typing import List

from .errors import PatchError, PatchFailure
from .models import EditBlock, PatchResult

SEARCH_MARKER = "<<<<<<< SEARCH"
SEPARATOR_MARKER = "======="
REPLACE_MARKER = ">>>>>>> REPLACE"


def _normalize(text: str) -> str:
    return str(text or "").replace("\r\n", "\n")


def parse_edit_blocks(edit_body: str) -> List[EditBlock]:
    """
    Raises:
        PatchError: missing-separator / missing-terminator / no-blocks
    """
    lines = _normalize(edit_body).split("\n")
    blocks: List[EditBlock] = []

    i = 0
    while i < len(lines):
        if lines[i].strip() != SEARCH_MARKER:
            i += 1
            continue
        i += 1

        search_lines: List[str] = []
        while i < len(lines) and lines[i].strip() != SEPARATOR_MARKER:
            search_lines.append(lines[i])
            i += 1
        if i >= len(lines):
            raise PatchError(PatchFailure.MISSING_SEPARATOR)
        i += 1

        replace_lines: List[str] = []
        while i < len(lines) and lines[i].strip() != REPLACE_MARKER:
            replace_lines.append(lines[i])
            i += 1
        if i >= len(lines):
            raise PatchError(PatchFailure.MISSING_TERMINATOR)
        i += 1

        blocks.append(EditBlock(search="\n".join(search_lines), replace="\n".join(replace_lines)))

    if not blocks:
        raise PatchError(PatchFailure.NO_BLOCKS)
    return blocks


def apply_edits(original: str, edit_body: str) -> PatchResult:
    """
    依次应用每个三元组（后面的三元组作用于前面已修改过的文本）。
    任何一个失败则整体失败，不返回部分结果。
    """
    try:
        blocks = parse_edit_blocks(edit_body)
    except PatchError as e:
        return PatchResult.failure(e.reason, str(e))

    updated = _normalize(original)
    count = 0
    for block in blocks:
        idx = updated.find(block.search)
        if idx == -1:
            err = PatchError(PatchFailure.SEARCH_NOT_FOUND)
            return PatchResult.failure(err.reason, str(err))
        if updated.find(block.search, idx + 1) != -1:
            err = PatchError(PatchFailure.SEARCH_NOT_UNIQUE)
            return PatchResult.failure(err.reason, str(err))
        updated = updated[:idx] + block.replace + updated[idx + len(block.search):]
        count += 1

    return PatchResult.success(updated, count)


def estimate_edit_ranges(original: str, edit_body: str) -> List[str]:
    """估算每个 SEARCH 锚点命中的行号范围（1 起始），如 ["12-14"]。仅用于日志。"""
    try:
        blocks = parse_edit_blocks(edit_body)
    except PatchError:
        return []

    text = _normalize(original)
    ranges: List[str] = []
    for block in blocks:
        if not block.search.strip():
            continue
        idx = text.find(block.search)
        if idx < 0:
            continue
        start_line = text[:idx].count("\n") + 1
        span = max(1, block.search.count("\n") + 1)
        ranges.append(f"{start_line}-{start_line + span - 1}")
    return ranges
