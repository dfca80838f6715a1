# chatpatch/core/directives.py
"""
指令解析器

模型输出是夹杂在普通文本中的围栏块:

    ```file
    path: src/app.py
    <完整文件内容>
    ```

支持的标签: file / edit / delete / request / tool。
未闭合的围栏（生成可能还在进行中）直接丢弃，不报错。
"""

import json
import logging
import re
from typing import List, Optional

from .errors import ParseError, InvalidPath
from .models import (
    DirectiveBatch, DirectiveError, DirectiveKind, FencedBlock, OpenFence, PathDirective,
    WriteFile, ApplyEdit, DeleteFile, RequestFiles, ToolCall,
)
from .paths import normalize_rel_path, strip_quotes

logger = logging.getLogger(__name__)

FENCE = "```"
MAX_REQUESTED_PATHS = 20

_PATH_HEADER = re.compile(r"^path:\s*(.+?)\s*$", re.IGNORECASE)
_TOOL_BLOCK = re.compile(r"```tool[\s\S]*?```")
_LIST_ITEM = re.compile(r"^-\s*(.+)$")


def parse_fenced_blocks(text: str) -> List[FencedBlock]:
    """按文档顺序返回所有已闭合的围栏块"""
    blocks: List[FencedBlock] = []
    s = str(text or "")
    i = 0
    while i < len(s):
        start = s.find(FENCE, i)
        if start == -1:
            break
        lang_end = s.find("\n", start + len(FENCE))
        if lang_end == -1:
            break
        lang = s[start + len(FENCE):lang_end].strip().lower()
        end = s.find(FENCE, lang_end + 1)
        if end == -1:
            break
        body = s[lang_end + 1:end].replace("\r\n", "\n").strip()
        blocks.append(FencedBlock(lang=lang, body=body))
        i = end + len(FENCE)
    return blocks


def parse_path_directive(body: str) -> PathDirective:
    """
    解析 file/edit/delete 块: 第一个非空行必须是 `path: <相对路径>`。

    Raises:
        ParseError: 缺少 path 头部
        InvalidPath: 路径逃逸出项目根目录
    """
    lines = str(body or "").replace("\r\n", "\n").split("\n")
    first_idx = next((idx for idx, line in enumerate(lines) if line.strip()), None)
    if first_idx is None:
        raise ParseError("Empty block. Expected first line like: path: src/file.py")

    match = _PATH_HEADER.match(lines[first_idx].strip())
    if not match:
        raise ParseError("Expected first line like: path: src/file.py")

    raw_path = strip_quotes(match.group(1))
    if not raw_path:
        raise ParseError("Empty path in header.")
    path = normalize_rel_path(raw_path)
    if path is None:
        raise InvalidPath(raw_path)

    payload = "\n".join(lines[first_idx + 1:])
    return PathDirective(path=path, payload=payload)


def parse_requested_paths(body: str) -> List[str]:
    """`request` 块: `paths:` 头部后跟 `- <路径>` 行。无效路径被跳过。"""
    text = str(body or "").replace("\r\n", "\n").strip()
    if not text:
        return []

    out: List[str] = []
    for line in (l.strip() for l in text.split("\n")):
        if not line:
            continue
        lowered = line.lower()
        if lowered in ("paths:", "path:") or lowered.startswith("#"):
            continue
        m = _LIST_ITEM.match(line)
        candidate = normalize_rel_path(m.group(1) if m else line)
        if candidate and candidate not in out:
            out.append(candidate)
    return out[:MAX_REQUESTED_PATHS]


def parse_tool_call(body: str) -> Optional[ToolCall]:
    try:
        parsed = json.loads(body)
    except (TypeError, ValueError):
        return None
    if not isinstance(parsed, dict) or not isinstance(parsed.get("name"), str):
        return None
    args = parsed.get("args")
    return ToolCall(name=parsed["name"], args=args if isinstance(args, dict) else {})


def extract_directives(text: str) -> DirectiveBatch:
    """
    解析全部指令。单个块的失败记录在 batch.errors 中，不影响其他块。
    未知标签（普通代码示例）被忽略。
    """
    batch = DirectiveBatch()
    for block in parse_fenced_blocks(text):
        kind = DirectiveKind.from_lang(block.lang)
        if kind is None:
            continue

        if kind is DirectiveKind.TOOL_CALL:
            call = parse_tool_call(block.body)
            if call is None:
                logger.debug("Skipping malformed tool block: %.80s", block.body)
            else:
                batch.directives.append(call)
            continue

        if kind is DirectiveKind.REQUEST_FILES:
            paths = parse_requested_paths(block.body)
            if paths:
                batch.directives.append(RequestFiles(paths=paths))
            else:
                batch.errors.append(DirectiveError(block.lang, "parse", "Request block lists no valid paths."))
            continue

        try:
            parsed = parse_path_directive(block.body)
        except InvalidPath as e:
            batch.errors.append(DirectiveError(block.lang, "invalid-path", str(e)))
            continue
        except ParseError as e:
            batch.errors.append(DirectiveError(block.lang, "parse", f"Could not parse {block.lang} block. {e}"))
            continue

        if kind is DirectiveKind.WRITE_FILE:
            batch.directives.append(WriteFile(path=parsed.path, content=parsed.payload))
        elif kind is DirectiveKind.APPLY_EDIT:
            batch.directives.append(ApplyEdit(path=parsed.path, edits=parsed.payload))
        else:
            batch.directives.append(DeleteFile(path=parsed.path))

    if batch.errors:
        logger.info("Parsed %d directive(s), %d failed", len(batch.directives), len(batch.errors))
    return batch


def strip_tool_blocks(text: str) -> str:
    """去掉 tool 块后的可展示文本"""
    return _TOOL_BLOCK.sub("", str(text or "")).strip()


def find_open_fence(text: str) -> Optional[OpenFence]:
    """
    检测末尾未闭合的围栏（生成被截断时使用）。
    返回其标签和（file/edit/delete 块的）路径。
    """
    lines = str(text or "").replace("\r\n", "\n").split("\n")
    open_lang: Optional[str] = None
    open_path: Optional[str] = None

    for i, line in enumerate(lines):
        if not line.startswith(FENCE):
            continue
        if open_lang is None:
            open_lang = line[len(FENCE):].strip() or "text"
            open_path = None
            if open_lang in ("file", "edit", "delete") and i + 1 < len(lines):
                nxt = lines[i + 1].strip()
                if nxt.lower().startswith("path:"):
                    open_path = nxt[5:].strip()
        else:
            open_lang = None
            open_path = None

    return OpenFence(lang=open_lang, path=open_path) if open_lang else None
