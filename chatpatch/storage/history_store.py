# chatpatch/storage/history_store.py
"""
ChatPatch 核心实现 - 变更历史存储 (HistoryStore)

每个推入撤销日志的批次都会在这里留一份持久化快照
(<base_dir>/session-history.json)，并在 <base_dir>/change-log.md
追加一条 Markdown 记录。撤销栈有上限，历史快照则可以在之后按 ID 恢复。
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from ..core.models import HistorySnapshot, UndoBatch
from .file_lock import FileLock

logger = logging.getLogger(__name__)

HISTORY_FILE = "session-history.json"
CHANGE_LOG_FILE = "change-log.md"
MAX_SNAPSHOTS = 1000


class HistoryStore:
    def __init__(self, base_dir: Union[str, Path] = ".chatedit", max_snapshots: int = MAX_SNAPSHOTS):
        self.base_dir = Path(base_dir)
        self.history_file = self.base_dir / HISTORY_FILE
        self.change_log_file = self.base_dir / CHANGE_LOG_FILE
        self.lock_file = self.base_dir / ".locks" / "history.lock"
        self.max_snapshots = max_snapshots

    def _read(self) -> List[HistorySnapshot]:
        if not self.history_file.exists():
            return []
        try:
            raw = json.loads(self.history_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable history file %s: %s", self.history_file, e)
            return []
        if not isinstance(raw, list):
            return []
        snapshots = [HistorySnapshot.from_dict(item) for item in raw if isinstance(item, dict)]
        return [s for s in snapshots if s.id]

    def _write(self, snapshots: List[HistorySnapshot]) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        trimmed = snapshots[-self.max_snapshots:]
        temp_file = self.history_file.with_suffix(".json.tmp")
        temp_file.write_text(json.dumps([s.to_dict() for s in trimmed], indent=2), encoding="utf-8")
        temp_file.replace(self.history_file)

    def list_snapshots(self) -> List[HistorySnapshot]:
        with FileLock(self.lock_file):
            return self._read()

    def get(self, snapshot_id: str) -> Optional[HistorySnapshot]:
        for snapshot in self.list_snapshots():
            if snapshot.id == snapshot_id:
                return snapshot
        return None

    def record(self, batch: UndoBatch) -> HistorySnapshot:
        snapshot = HistorySnapshot(
            id=batch.id,
            timestamp=batch.timestamp,
            action=batch.label,
            files=batch.paths,
            ops=list(batch.ops),
        )
        with FileLock(self.lock_file):
            current = self._read()
            current.append(snapshot)
            self._write(current)
        files = ", ".join(snapshot.files) or "n/a"
        self.append_change_log(f"- Action: {batch.label}\n- Files: {files}")
        return snapshot

    def append_change_log(self, entry: str) -> None:
        stamp = datetime.now(timezone.utc).isoformat()
        self.base_dir.mkdir(parents=True, exist_ok=True)
        try:
            with open(self.change_log_file, "a", encoding="utf-8") as f:
                f.write(f"## {stamp}\n{entry}\n\n")
        except OSError as e:
            logger.warning("Failed to append change log: %s", e)
