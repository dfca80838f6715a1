# chatedit/core/models.py
"""
定义 ChatEdit 服务层的结果结构。
这些模型在应用服务、agent 循环和 CLI 输出之间传递。
"""

from dataclasses import dataclass, field
from typing import List, Optional

from chatpatch.core.models import CommitResult, DirectiveError, StagedChange, UndoBatch


@dataclass
class ApplyReport:
    """一次提交（直接应用或暂存应用）的结果"""
    results: List[CommitResult] = field(default_factory=list)
    errors: List[DirectiveError] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    batch: Optional[UndoBatch] = None
    cancelled: bool = False

    @property
    def succeeded(self) -> List[CommitResult]:
        return [r for r in self.results if r.ok]

    @property
    def failed(self) -> List[CommitResult]:
        return [r for r in self.results if not r.ok]

    @property
    def all_ok(self) -> bool:
        return bool(self.results) and not self.failed and not self.errors


@dataclass
class AgentRunResult:
    steps: int = 0
    display: str = ""
    staged: List[StagedChange] = field(default_factory=list)
    tool_results: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    skipped_deletes: List[str] = field(default_factory=list)
    cancelled: bool = False
