# chatpatch/storage/staging.py
"""
ChatPatch 核心实现 - 暂存区 (StagedMutationStore)

在真正写入磁盘之前保存所有待定的文件状态，让多步的 agent 循环可以
累积、修改、回滚编辑。暂存区是覆盖层状态的唯一所有者: 调用方只能通过
这里的方法读写条目。
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional

from ..core.errors import CommitError, InvalidPath, RevertNoMatch
from ..core.models import Checkpoint, StagedChange
from ..core.paths import normalize_rel_path
from ..utils.id_generator import generate_timestamp
from .fs import IProjectFileSystem

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHECKPOINTS = 50


class StagedMutationStore:
    def __init__(
        self,
        fs: IProjectFileSystem,
        max_checkpoints: int = DEFAULT_MAX_CHECKPOINTS,
        clock: Callable[[], float] = generate_timestamp,
    ):
        self.fs = fs
        self.max_checkpoints = max(1, max_checkpoints)
        self._clock = clock
        self._staged: Dict[str, StagedChange] = {}
        self._checkpoints: List[Checkpoint] = []
        self._step = 0

    @property
    def step(self) -> int:
        return self._step

    def __len__(self) -> int:
        return len(self._staged)

    # ==================== 读写 ====================

    def stage_write(self, path: str, next_content: str) -> StagedChange:
        """
        暂存一次写入。第一次暂存某路径时捕获磁盘上的真实状态；之后的暂存
        只更新 next_content，保证回滚总能回到 agent 开始前的状态。

        Raises:
            InvalidPath: 路径逃逸出项目根目录
            CommitError: 文件存在但无法读取，无法捕获它的原始状态
        """
        p = normalize_rel_path(path)
        if p is None:
            raise InvalidPath(str(path or ""))

        existing = self._staged.get(p)
        if existing is not None:
            existing.next_content = next_content
            return existing.copy()

        try:
            prior_content = self.fs.read_text(p)
            prior_exists = True
        except FileNotFoundError:
            prior_content = ""
            prior_exists = False
        except (OSError, UnicodeDecodeError) as e:
            raise CommitError(p, e) from e

        change = StagedChange(path=p, prior_exists=prior_exists, prior_content=prior_content, next_content=next_content)
        self._staged[p] = change
        logger.debug("Staged %s (prior_exists=%s)", p, prior_exists)
        return change.copy()

    def read_file(self, path: str, max_chars: Optional[int] = None) -> Optional[str]:
        """暂存内容优先，否则读磁盘。max_chars 为 None 时不截断。文件缺失或路径无效时返回 None。"""
        p = normalize_rel_path(path)
        if p is None:
            return None
        staged = self._staged.get(p)
        if staged is not None:
            return staged.next_content[:max_chars]
        try:
            return self.fs.read_text(p)[:max_chars]
        except (OSError, UnicodeDecodeError):
            return None

    def list_staged(self) -> List[StagedChange]:
        return [self._staged[p].copy() for p in sorted(self._staged)]

    def get_staged(self, path: str) -> Optional[StagedChange]:
        p = normalize_rel_path(path)
        staged = self._staged.get(p) if p else None
        return staged.copy() if staged else None

    def is_staged(self, path: str) -> bool:
        p = normalize_rel_path(path)
        return bool(p) and p in self._staged

    # ==================== 检查点 ====================

    def begin_step(self, label: str) -> Checkpoint:
        self._step += 1
        snapshot = {p: c.next_content for p, c in self._staged.items()}
        checkpoint = Checkpoint(step=self._step, timestamp=self._clock(), label=label, snapshot=snapshot)
        self._checkpoints.append(checkpoint)
        if len(self._checkpoints) > self.max_checkpoints:
            self._checkpoints = self._checkpoints[-self.max_checkpoints:]
        return checkpoint

    def list_checkpoints(self) -> List[Checkpoint]:
        return sorted(self._checkpoints, key=lambda c: c.step)

    def checkpoint_for(self, step: int) -> Checkpoint:
        """最近一次匹配的检查点。找不到时抛出 RevertNoMatch。"""
        for checkpoint in reversed(self._checkpoints):
            if checkpoint.step == step:
                return checkpoint
        raise RevertNoMatch(step)

    def revert_to_step(self, step: int) -> bool:
        """
        把覆盖层恢复到 step 开始时的快照，并丢弃之后的检查点（历史是线性的，
        回滚后不能重做）。没有对应检查点时什么都不做，返回 False。
        """
        try:
            checkpoint = self.checkpoint_for(step)
        except RevertNoMatch as e:
            logger.info("%s; revert ignored", e)
            return False

        for p in list(self._staged):
            if p not in checkpoint.snapshot:
                del self._staged[p]
        for p, change in self._staged.items():
            change.next_content = checkpoint.snapshot[p]

        while self._checkpoints and self._checkpoints[-1].step > step:
            self._checkpoints.pop()
        self._step = step
        logger.info("Reverted staged changes to step %d (%d file(s) staged)", step, len(self._staged))
        return True

    # ==================== 清理 ====================

    def discard_all(self) -> None:
        """清空覆盖层，不影响检查点和磁盘"""
        self._staged.clear()

    def discard(self, path: str) -> bool:
        p = normalize_rel_path(path)
        return self._staged.pop(p, None) is not None if p else False

    def mark_committed(self, paths: Iterable[str]) -> None:
        for p in paths:
            self._staged.pop(p, None)

    def subset(self, paths: Iterable[str]) -> "StagedMutationStore":
        """只包含指定路径的新暂存区，保留原始的 prior_* 状态"""
        wanted = set(paths)
        other = StagedMutationStore(self.fs, max_checkpoints=self.max_checkpoints, clock=self._clock)
        for p, change in self._staged.items():
            if p in wanted:
                other._staged[p] = change.copy()
        return other
