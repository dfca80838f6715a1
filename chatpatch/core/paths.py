# chatpatch/core/paths.py
"""项目相对路径的规范化与校验"""

from typing import Optional

from .errors import InvalidPath

_QUOTES = "\"'"


def strip_quotes(raw: str) -> str:
    text = raw.strip()
    if text[:1] in _QUOTES:
        text = text[1:]
    if text[-1:] in _QUOTES:
        text = text[:-1]
    return text.strip()


def normalize_rel_path(raw: Optional[str]) -> Optional[str]:
    """
    返回规范化后的相对路径；路径为空或逃逸出项目根目录时返回 None。

    拒绝: 前导 `/`、`~`、`..`，任何反斜杠，任何 `:`（盘符、URL scheme）。
    """
    text = strip_quotes(str(raw or ""))
    if not text:
        return None
    if text.startswith(("/", "~", "..")) or "\\" in text or ":" in text:
        return None
    # `a/../../x` 同样会逃逸
    if ".." in text.split("/"):
        return None
    while text.startswith("./"):
        text = text[2:]
    return text or None


def require_rel_path(raw: Optional[str]) -> str:
    """Same as normalize_rel_path but raises InvalidPath instead of returning None."""
    path = normalize_rel_path(raw)
    if path is None:
        raise InvalidPath(str(raw or ""))
    return path
