# tests/test_undo_log.py
import json

import pytest

from chatpatch.core.models import UndoOp
from chatpatch.storage.history_store import HistoryStore
from chatpatch.storage.undo_log import UndoLog, capture_state, replay_ops


def commit(fs, log, label, writes):
    """模拟一次提交: 写入前捕获状态，然后推入批次"""
    ops = []
    for path, content in writes.items():
        ops.append(capture_state(fs, path))
        if content is None:
            fs.delete(path)
        else:
            fs.write_text(path, content)
    return log.push_batch(label, ops)


def test_push_then_undo_restores_pre_commit_state(memory_fs):
    log = UndoLog(memory_fs)
    commit(memory_fs, log, "Apply 3 file(s)", {"a.txt": "changed", "new.txt": "created", "src/app.py": None})
    assert memory_fs.files == {"a.txt": "changed", "new.txt": "created"}

    report = log.undo_last()
    assert report.batch.label == "Apply 3 file(s)"
    assert sorted(report.restored) == ["a.txt", "new.txt", "src/app.py"]
    assert report.failed == {}
    assert memory_fs.files == {"a.txt": "a\nb\nc\n", "src/app.py": "print('hello')\n"}


def test_undo_twice_pops_distinct_batches_then_reports_nothing(memory_fs):
    log = UndoLog(memory_fs)
    first = commit(memory_fs, log, "first", {"a.txt": "1"})
    second = commit(memory_fs, log, "second", {"a.txt": "2"})

    assert log.undo_last().batch.id == second.id
    assert log.undo_last().batch.id == first.id
    assert log.undo_last().nothing_to_undo
    assert memory_fs.files["a.txt"] == "a\nb\nc\n"


def test_ops_replay_in_reverse_order(memory_fs):
    ops = [
        UndoOp(path="a.txt", prior_exists=True, prior_content="original"),
        UndoOp(path="a.txt", prior_exists=True, prior_content="intermediate"),
    ]
    restored, failed = replay_ops(memory_fs, ops)
    assert memory_fs.files["a.txt"] == "original"
    assert failed == {}


def test_missing_file_on_delete_is_not_an_error(memory_fs):
    restored, failed = replay_ops(memory_fs, [UndoOp(path="ghost.txt", prior_exists=False, prior_content="")])
    assert restored == ["ghost.txt"]
    assert failed == {}


def test_one_failing_path_does_not_stop_the_rest(memory_fs):
    log = UndoLog(memory_fs)
    commit(memory_fs, log, "two files", {"a.txt": "x", "src/app.py": "y"})
    memory_fs.fail_writes.add("a.txt")

    report = log.undo_last()
    assert "a.txt" in report.failed
    assert report.restored == ["src/app.py"]
    assert memory_fs.files["src/app.py"] == "print('hello')\n"
    assert not log.can_undo


def test_empty_batch_is_not_recorded(memory_fs):
    log = UndoLog(memory_fs)
    assert log.push_batch("nothing", []) is None
    assert len(log) == 0


def test_stack_is_capped(memory_fs):
    log = UndoLog(memory_fs, max_batches=20)
    for i in range(25):
        commit(memory_fs, log, f"batch {i}", {"a.txt": str(i)})
    assert len(log) == 20
    assert log.list_batches()[0].label == "batch 24"
    assert log.list_batches()[-1].label == "batch 5"


def test_restore_recreates_parent_directories(memory_fs):
    replay_ops(memory_fs, [UndoOp(path="deep/nested/x.txt", prior_exists=True, prior_content="x")])
    assert "deep/nested" in memory_fs.directories
    assert memory_fs.files["deep/nested/x.txt"] == "x"


def test_persisted_stack_survives_reload(memory_fs, tmp_path):
    storage = tmp_path / "state" / "undo.json"
    log = UndoLog(memory_fs, storage_path=storage)
    commit(memory_fs, log, "persisted", {"a.txt": "new"})

    data = json.loads(storage.read_text(encoding="utf-8"))
    assert data["batches"][0]["label"] == "persisted"

    reloaded = UndoLog(memory_fs, storage_path=storage)
    assert reloaded.peek().label == "persisted"
    reloaded.undo_last()
    assert memory_fs.files["a.txt"] == "a\nb\nc\n"
    assert UndoLog(memory_fs, storage_path=storage).can_undo is False


def test_corrupt_undo_file_is_ignored(memory_fs, tmp_path):
    storage = tmp_path / "undo.json"
    storage.write_text("{not json", encoding="utf-8")
    assert len(UndoLog(memory_fs, storage_path=storage)) == 0


def test_status_reports_latest_batch(memory_fs):
    log = UndoLog(memory_fs)
    assert log.status() == {"can_undo": False, "label": "", "paths": []}
    commit(memory_fs, log, "Apply a.txt", {"a.txt": "x"})
    assert log.status() == {"can_undo": True, "label": "Apply a.txt", "paths": ["a.txt"]}


def test_history_records_batches_and_restores_snapshot(memory_fs, tmp_path):
    history = HistoryStore(tmp_path / ".chatedit")
    log = UndoLog(memory_fs, history=history)
    batch = commit(memory_fs, log, "Apply a.txt", {"a.txt": "first"})
    commit(memory_fs, log, "Apply a.txt again", {"a.txt": "second"})

    report = log.restore_snapshot(batch.id)
    assert report.restored == ["a.txt"]
    assert memory_fs.files["a.txt"] == "a\nb\nc\n"
    assert log.peek().label == "Restore snapshot: Apply a.txt"

    # 恢复本身也可以撤销
    log.undo_last()
    assert memory_fs.files["a.txt"] == "second"

    assert log.restore_snapshot("missing-id") is None
    change_log = (tmp_path / ".chatedit" / "change-log.md").read_text(encoding="utf-8")
    assert "- Action: Apply a.txt" in change_log
    assert "- Revert: Restore snapshot: Apply a.txt" in change_log


def test_capture_state_only_treats_missing_file_as_absent(memory_fs):
    assert capture_state(memory_fs, "ghost.txt").prior_exists is False
    memory_fs.fail_reads.add("a.txt")
    with pytest.raises(PermissionError):
        capture_state(memory_fs, "a.txt")


def test_restore_snapshot_reports_unreadable_paths(memory_fs, tmp_path):
    log = UndoLog(memory_fs, history=HistoryStore(tmp_path / ".chatedit"))
    batch = commit(memory_fs, log, "Apply 2 file(s)", {"a.txt": "first", "src/app.py": "changed"})
    memory_fs.fail_reads.add("a.txt")

    report = log.restore_snapshot(batch.id)
    assert report.restored == ["src/app.py"]
    assert list(report.failed) == ["a.txt"]
    assert memory_fs.files["a.txt"] == "first"
    assert log.peek().paths == ["src/app.py"]
