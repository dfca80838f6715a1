# chatpatch/storage/undo_log.py
"""
ChatPatch 核心实现 - 撤销日志 (UndoLog)

每次真正写入磁盘的提交都会推入一个 UndoBatch，记录提交前每个路径的状态。
undo_last() 以相反顺序重放这些操作；单个路径失败只记录，不中断其余路径。
批次被撤销后即出栈，不能重做。

可选地把栈持久化到 JSON 文件，使 `chatedit undo` 能跨进程工作。
"""

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from ..core.models import UndoBatch, UndoOp, UndoReport
from ..utils.id_generator import generate_id, generate_timestamp
from .file_lock import FileLock
from .fs import IProjectFileSystem, parent_dir
from .history_store import HistoryStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_BATCHES = 20


def capture_state(fs: IProjectFileSystem, path: str) -> UndoOp:
    """
    在写入/删除之前捕获路径的当前状态。只有 FileNotFoundError 表示文件不存在；
    文件存在但无法读取时异常向上抛出，调用方必须拒绝提交该路径，
    否则撤销会把它当作新建文件删除。
    """
    try:
        return UndoOp(path=path, prior_exists=True, prior_content=fs.read_text(path))
    except FileNotFoundError:
        return UndoOp(path=path, prior_exists=False, prior_content="")


def replay_ops(fs: IProjectFileSystem, ops: Iterable[UndoOp]) -> Tuple[List[str], Dict[str, str]]:
    """
    逆序把每个路径恢复到 op 记录的状态。
    返回 (已恢复路径, {失败路径: 原因})，单个失败不会中断其他路径。
    """
    restored: List[str] = []
    failed: Dict[str, str] = {}
    for op in reversed(list(ops)):
        if not op.prior_exists:
            try:
                fs.delete(op.path)
            except FileNotFoundError:
                pass
            except OSError as e:
                failed[op.path] = str(e)
                continue
            restored.append(op.path)
            continue

        try:
            directory = parent_dir(op.path)
            if directory:
                fs.create_directory(directory)
            fs.write_text(op.path, op.prior_content)
        except OSError as e:
            failed[op.path] = str(e)
            continue
        restored.append(op.path)

    for path, reason in failed.items():
        logger.warning("Could not restore %s: %s", path, reason)
    return restored, failed


class UndoLog:
    def __init__(
        self,
        fs: IProjectFileSystem,
        max_batches: int = DEFAULT_MAX_BATCHES,
        storage_path: Optional[Union[str, Path]] = None,
        history: Optional[HistoryStore] = None,
    ):
        self.fs = fs
        self.max_batches = max(1, max_batches)
        self.storage_path = Path(storage_path) if storage_path else None
        self.history = history
        self._batches: List[UndoBatch] = []
        if self.storage_path:
            self._lock_path = self.storage_path.parent / ".locks" / f"{self.storage_path.stem}.lock"
            self._batches = self._load()

    # ==================== 持久化 ====================

    def _load(self) -> List[UndoBatch]:
        with FileLock(self._lock_path):
            if not self.storage_path.exists():
                return []
            try:
                raw = json.loads(self.storage_path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                logger.warning("Ignoring unreadable undo log %s: %s", self.storage_path, e)
                return []
        items = raw.get("batches", []) if isinstance(raw, dict) else []
        return [UndoBatch.from_dict(b) for b in items if isinstance(b, dict)][-self.max_batches:]

    def _persist(self) -> None:
        if not self.storage_path:
            return
        with FileLock(self._lock_path):
            self.storage_path.parent.mkdir(parents=True, exist_ok=True)
            temp_file = self.storage_path.with_suffix(".json.tmp")
            payload = {"batches": [b.to_dict() for b in self._batches]}
            temp_file.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            temp_file.replace(self.storage_path)

    # ==================== 栈操作 ====================

    @property
    def can_undo(self) -> bool:
        return bool(self._batches)

    def __len__(self) -> int:
        return len(self._batches)

    def peek(self) -> Optional[UndoBatch]:
        return self._batches[-1] if self._batches else None

    def list_batches(self) -> List[UndoBatch]:
        """最新的在前"""
        return list(reversed(self._batches))

    def push_batch(self, label: str, ops: Iterable[UndoOp]) -> Optional[UndoBatch]:
        """ops 必须是提交时（写入前那一刻）捕获的状态。空 ops 不记录。"""
        ops = list(ops)
        if not ops:
            return None
        batch = UndoBatch(id=generate_id(), timestamp=generate_timestamp(), label=label, ops=ops)
        self._batches.append(batch)
        if len(self._batches) > self.max_batches:
            self._batches = self._batches[-self.max_batches:]
        self._persist()
        if self.history:
            self.history.record(batch)
        logger.info("Recorded undo batch %r (%d path(s))", label, len(ops))
        return batch

    def undo_last(self) -> UndoReport:
        if not self._batches:
            return UndoReport()
        batch = self._batches.pop()
        self._persist()
        restored, failed = replay_ops(self.fs, batch.ops)
        if self.history:
            self.history.append_change_log(f"- Revert: {batch.label}")
        logger.info("Undid %r: %d restored, %d failed", batch.label, len(restored), len(failed))
        return UndoReport(batch=batch, restored=restored, failed=failed)

    def restore_snapshot(self, snapshot_id: str) -> Optional[UndoReport]:
        """
        恢复一个历史快照。恢复前先捕获每个路径的当前状态，
        使恢复本身也能被撤销。快照不存在或没有操作时返回 None。
        """
        if not self.history:
            return None
        snapshot = self.history.get(snapshot_id)
        if snapshot is None:
            logger.warning("History snapshot %s not found", snapshot_id)
            return None
        if not snapshot.ops:
            logger.warning("Snapshot %s has no restorable operations", snapshot_id)
            return None

        current: List[UndoOp] = []
        replayable: List[UndoOp] = []
        unreadable: Dict[str, str] = {}
        for op in snapshot.ops:
            try:
                current.append(capture_state(self.fs, op.path))
            except (OSError, UnicodeDecodeError) as e:
                unreadable[op.path] = str(e)
                continue
            replayable.append(op)
        restored, failed = replay_ops(self.fs, replayable)
        failed.update(unreadable)
        batch = self.push_batch(f"Restore snapshot: {snapshot.action}", current)
        return UndoReport(batch=batch, restored=restored, failed=failed)

    def status(self) -> Dict[str, object]:
        last = self.peek()
        return {
            "can_undo": last is not None,
            "label": last.label if last else "",
            "paths": last.paths[:50] if last else [],
        }
