# chatedit/core/client.py
"""
模型客户端接口。真正的网络客户端（重试、SSE、端点选择）不在本项目范围内，
这里只定义 agent 循环依赖的请求/响应契约。
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterable, List, Union

ChatMessage = Dict[str, str]  # {"role": "system"|"user"|"assistant", "content": str}


class ModelClient(ABC):

    @abstractmethod
    def complete(self, messages: List[ChatMessage]) -> str:
        """返回助手回复的完整文本"""
        pass


class ScriptedModelClient(ModelClient):
    """按顺序重放预先录制的回复；用完后返回空字符串。"""

    def __init__(self, responses: Iterable[str]):
        self._responses = list(responses)
        self.calls: List[List[ChatMessage]] = []

    @classmethod
    def from_files(cls, paths: Iterable[Union[str, Path]]) -> "ScriptedModelClient":
        return cls(Path(p).read_text(encoding="utf-8") for p in paths)

    @property
    def remaining(self) -> int:
        return len(self._responses)

    def complete(self, messages: List[ChatMessage]) -> str:
        self.calls.append([dict(m) for m in messages])
        if not self._responses:
            return ""
        return self._responses.pop(0)
