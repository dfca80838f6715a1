# chatpatch/core/models.py
"""
ChatPatch 核心数据模型
定义了指令解析、暂存区、检查点和撤销日志之间传递的数据结构。
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, Any, List, Optional, Union

from .errors import PatchFailure


class DirectiveKind(Enum):
    WRITE_FILE = "file"
    APPLY_EDIT = "edit"
    DELETE_FILE = "delete"
    REQUEST_FILES = "request"
    TOOL_CALL = "tool"

    @classmethod
    def from_lang(cls, lang: str) -> Optional["DirectiveKind"]:
        for kind in cls:
            if kind.value == lang:
                return kind
        return None


@dataclass(frozen=True)
class FencedBlock:
    lang: str
    body: str


@dataclass(frozen=True)
class PathDirective:
    """`path:` 头部 + 载荷"""
    path: str
    payload: str


# --- 指令（封闭的变体集合） ---

@dataclass(frozen=True)
class WriteFile:
    path: str
    content: str
    kind: DirectiveKind = field(default=DirectiveKind.WRITE_FILE, init=False)


@dataclass(frozen=True)
class ApplyEdit:
    path: str
    edits: str
    kind: DirectiveKind = field(default=DirectiveKind.APPLY_EDIT, init=False)


@dataclass(frozen=True)
class DeleteFile:
    path: str
    kind: DirectiveKind = field(default=DirectiveKind.DELETE_FILE, init=False)


@dataclass(frozen=True)
class RequestFiles:
    paths: List[str]
    kind: DirectiveKind = field(default=DirectiveKind.REQUEST_FILES, init=False)


@dataclass(frozen=True)
class ToolCall:
    name: str
    args: Dict[str, Any] = field(default_factory=dict)
    kind: DirectiveKind = field(default=DirectiveKind.TOOL_CALL, init=False)


Directive = Union[WriteFile, ApplyEdit, DeleteFile, RequestFiles, ToolCall]


@dataclass(frozen=True)
class DirectiveError:
    """单条指令的解析失败，以值的形式与其他指令一起返回"""
    lang: str
    reason: str  # "parse" | "invalid-path"
    message: str


@dataclass
class DirectiveBatch:
    directives: List[Directive] = field(default_factory=list)
    errors: List[DirectiveError] = field(default_factory=list)

    def of_kind(self, kind: DirectiveKind) -> List[Directive]:
        return [d for d in self.directives if d.kind is kind]

    @property
    def file_changes(self) -> List[Directive]:
        """Directives that mutate files (file/edit/delete) in document order."""
        mutating = (DirectiveKind.WRITE_FILE, DirectiveKind.APPLY_EDIT, DirectiveKind.DELETE_FILE)
        return [d for d in self.directives if d.kind in mutating]

    @property
    def tool_calls(self) -> List[ToolCall]:
        return self.of_kind(DirectiveKind.TOOL_CALL)


@dataclass(frozen=True)
class OpenFence:
    lang: str
    path: Optional[str] = None


# --- 补丁引擎 ---

@dataclass(frozen=True)
class EditBlock:
    search: str
    replace: str


@dataclass(frozen=True)
class PatchResult:
    ok: bool
    updated: Optional[str] = None
    applied_count: int = 0
    reason: Optional[PatchFailure] = None
    message: str = ""

    @classmethod
    def success(cls, updated: str, applied_count: int) -> "PatchResult":
        return cls(ok=True, updated=updated, applied_count=applied_count)

    @classmethod
    def failure(cls, reason: PatchFailure, message: str) -> "PatchResult":
        return cls(ok=False, reason=reason, message=message)


# --- 暂存区 ---

@dataclass
class StagedChange:
    path: str
    prior_exists: bool
    prior_content: str
    next_content: str

    def copy(self) -> "StagedChange":
        return StagedChange(self.path, self.prior_exists, self.prior_content, self.next_content)


@dataclass(frozen=True)
class Checkpoint:
    step: int
    timestamp: float
    label: str
    snapshot: Dict[str, str] = field(default_factory=dict)


# --- 撤销日志 ---

@dataclass(frozen=True)
class UndoOp:
    path: str
    prior_exists: bool
    prior_content: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UndoOp":
        return cls(
            path=str(data.get("path") or ""),
            prior_exists=bool(data.get("prior_exists")),
            prior_content=str(data.get("prior_content") or ""),
        )


@dataclass(frozen=True)
class UndoBatch:
    id: str
    timestamp: float
    label: str
    ops: List[UndoOp] = field(default_factory=list)

    @property
    def paths(self) -> List[str]:
        seen: List[str] = []
        for op in self.ops:
            if op.path not in seen:
                seen.append(op.path)
        return seen

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "label": self.label,
            "ops": [op.to_dict() for op in self.ops],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UndoBatch":
        return cls(
            id=str(data.get("id") or ""),
            timestamp=float(data.get("timestamp") or 0),
            label=str(data.get("label") or ""),
            ops=[UndoOp.from_dict(o) for o in data.get("ops") or [] if isinstance(o, dict)],
        )


@dataclass
class UndoReport:
    """undo_last / restore 的结果。batch 为 None 表示没有可撤销的内容。"""
    batch: Optional[UndoBatch] = None
    restored: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def nothing_to_undo(self) -> bool:
        return self.batch is None


@dataclass(frozen=True)
class CommitResult:
    path: str
    ok: bool
    kind: str = "file"  # "file" | "delete"
    added: int = 0
    removed: int = 0
    error: Optional[str] = None


@dataclass(frozen=True)
class HistorySnapshot:
    id: str
    timestamp: float
    action: str
    files: List[str] = field(default_factory=list)
    ops: List[UndoOp] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "action": self.action,
            "files": list(self.files),
            "ops": [op.to_dict() for op in self.ops],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistorySnapshot":
        return cls(
            id=str(data.get("id") or ""),
            timestamp=float(data.get("timestamp") or 0),
            action=str(data.get("action") or "Change"),
            files=[str(f) for f in data.get("files") or []],
            ops=[UndoOp.from_dict(o) for o in data.get("ops") or [] if isinstance(o, dict)],
        )
