# chatedit/core/applier.py
import logging
import threading
from typing import Callable, Iterable, List, Optional, Tuple

from chatpatch.core.directives import extract_directives
from chatpatch.core.errors import CommitError
from chatpatch.core.models import ApplyEdit, CommitResult, DeleteFile, Directive, UndoOp, WriteFile
from chatpatch.core.patch import apply_edits, estimate_edit_ranges
from chatpatch.storage.fs import IProjectFileSystem, parent_dir
from chatpatch.storage.staging import StagedMutationStore
from chatpatch.storage.undo_log import UndoLog, capture_state
from chatpatch.utils.diff import classify_change_scope, line_delta, unified_diff

from .confirm import Confirmer, AutoConfirmer
from .models import ApplyReport

logger = logging.getLogger(__name__)

PreviewCallback = Callable[[str, str, str], None]  # (path, before, after)


class Applier:
    """
    负责把指令和暂存的变更写入项目文件系统，并为每次提交记录撤销批次。
    """

    def __init__(
        self,
        fs: IProjectFileSystem,
        undo_log: UndoLog,
        confirmer: Optional[Confirmer] = None,
        on_preview: Optional[PreviewCallback] = None,
    ):
        self.fs = fs
        self.undo_log = undo_log
        self.confirmer = confirmer or AutoConfirmer()
        self.on_preview = on_preview

    # ==================== 单条指令 ====================

    def _write(self, path: str, content: str) -> None:
        directory = parent_dir(path)
        if directory:
            self.fs.create_directory(directory)
        self.fs.write_text(path, content)

    def _commit_result(self, path: str, before: str, after: str, kind: str = "file") -> CommitResult:
        delta = line_delta(before, after)
        scope = classify_change_scope(delta.total)
        logger.info("%s change to %s: +%d -%d", scope.upper(), path, delta.added, delta.removed)
        return CommitResult(path=path, ok=True, kind=kind, added=delta.added, removed=delta.removed)

    def _preview(self, path: str, before: str, after: str) -> None:
        if self.on_preview:
            self.on_preview(path, before, after)
        else:
            logger.info("Preview %s:\n%s", path, unified_diff(before, after, path))

    def _capture(self, path: str, kind: str = "file") -> Tuple[Optional[UndoOp], Optional[CommitResult]]:
        """捕获写入前状态。文件存在但读不出来时拒绝提交，返回失败结果。"""
        try:
            return capture_state(self.fs, path), None
        except (OSError, UnicodeDecodeError) as e:
            return None, CommitResult(path=path, ok=False, kind=kind, error=str(CommitError(path, e)))

    def apply_directive(self, directive: Directive, confirm: bool, ops: List[UndoOp]) -> Optional[CommitResult]:
        """
        应用单条 file/edit/delete 指令。用户拒绝时返回 None；
        失败以 CommitResult(ok=False) 返回，不抛异常。
        成功写入前捕获的状态追加到 ops。
        """
        path = directive.path
        prior, failure = self._capture(path, kind="delete" if isinstance(directive, DeleteFile) else "file")
        if failure is not None:
            return failure

        if isinstance(directive, DeleteFile):
            if not prior.prior_exists:
                return CommitResult(path=path, ok=False, kind="delete", error=f"{path} does not exist.")
            if confirm and not self.confirmer.confirm(f"Delete file {path}?"):
                return None
            try:
                self.fs.delete(path)
            except OSError as e:
                return CommitResult(path=path, ok=False, kind="delete", error=str(CommitError(path, e)))
            ops.append(prior)
            return self._commit_result(path, prior.prior_content, "", kind="delete")

        if isinstance(directive, ApplyEdit):
            if not prior.prior_exists:
                return CommitResult(
                    path=path, ok=False,
                    error=f"Cannot apply edits: {path} does not exist yet. Use a file block to create it.",
                )
            ranges = estimate_edit_ranges(prior.prior_content, directive.edits)
            if ranges:
                logger.info("Targeting %s lines %s", path, ", ".join(ranges))
            result = apply_edits(prior.prior_content, directive.edits)
            if not result.ok:
                return CommitResult(path=path, ok=False, error=f"[{result.reason.value}] {result.message}")
            next_content = result.updated
            if confirm:
                picked = self.confirmer.choose_one(
                    f"Apply {result.applied_count} edit(s) to {path}?", ["Apply", "Preview", "Skip"]
                )
                if picked == "Preview":
                    self._preview(path, prior.prior_content, next_content)
                    if not self.confirmer.confirm(f"Apply edits to {path}?"):
                        return None
                elif picked != "Apply":
                    return None
        elif isinstance(directive, WriteFile):
            next_content = directive.content
            if confirm and not self.confirmer.confirm(
                f"Write file {path}? This will overwrite it if it already exists."
            ):
                return None
        else:
            raise TypeError(f"Unsupported directive for apply: {directive!r}")

        try:
            self._write(path, next_content)
        except OSError as e:
            return CommitResult(path=path, ok=False, error=str(CommitError(path, e)))
        ops.append(prior)
        return self._commit_result(path, prior.prior_content, next_content)

    # ==================== 直接应用 ====================

    def apply_response(
        self,
        ai_response: str,
        confirm: bool = True,
        label: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ApplyReport:
        """
        解析模型回复并逐条应用 file/edit/delete 指令。
        单条失败不会回滚之前已提交的指令；整批作为一个撤销批次记录。
        """
        batch = extract_directives(ai_response)
        report = ApplyReport(errors=list(batch.errors))
        ops: List[UndoOp] = []

        for directive in batch.file_changes:
            if cancel_event is not None and cancel_event.is_set():
                report.cancelled = True
                break
            res = self.apply_directive(directive, confirm=confirm, ops=ops)
            if res is None:
                report.skipped.append(directive.path)
            else:
                report.results.append(res)
                if not res.ok:
                    logger.warning("Failed to apply %s: %s", res.path, res.error)

        committed = [r.path for r in report.succeeded]
        if ops:
            batch_label = label or (f"Apply {committed[0]}" if len(committed) == 1 else f"Apply {len(committed)} file(s)")
            report.batch = self.undo_log.push_batch(batch_label, ops)
        return report

    def preview_response(self, ai_response: str) -> Tuple[List[Tuple[str, str]], ApplyReport]:
        """--dry-run: 计算每个指令的 diff，不写磁盘"""
        batch = extract_directives(ai_response)
        report = ApplyReport(errors=list(batch.errors))
        diffs: List[Tuple[str, str]] = []
        for directive in batch.file_changes:
            prior, failure = self._capture(directive.path)
            if failure is not None:
                report.results.append(failure)
                continue
            if isinstance(directive, DeleteFile):
                after = ""
            elif isinstance(directive, ApplyEdit):
                result = apply_edits(prior.prior_content, directive.edits) if prior.prior_exists else None
                if result is None or not result.ok:
                    reason = result.message if result else f"{directive.path} does not exist yet."
                    report.results.append(CommitResult(path=directive.path, ok=False, error=reason))
                    continue
                after = result.updated
            else:
                after = directive.content
            diffs.append((directive.path, unified_diff(prior.prior_content, after, directive.path)))
        return diffs, report

    # ==================== 暂存应用 ====================

    def apply_staged(
        self,
        store: StagedMutationStore,
        confirm: bool = True,
        paths: Optional[Iterable[str]] = None,
        label: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ApplyReport:
        """
        把暂存区（或其中 paths 指定的部分）写入磁盘。已写入的条目从暂存区移除，
        未写入的（失败或取消）保留以便之后再次审阅。
        """
        source = store.subset(paths) if paths is not None else store
        staged = source.list_staged()
        report = ApplyReport()
        if not staged:
            return report
        if confirm and not self.confirmer.confirm(f"Apply {len(staged)} staged change(s) to your workspace?"):
            report.skipped = [c.path for c in staged]
            return report

        ops: List[UndoOp] = []
        for change in staged:
            if cancel_event is not None and cancel_event.is_set():
                report.cancelled = True
                break
            prior, failure = self._capture(change.path)
            if failure is not None:
                logger.warning("%s", failure.error)
                report.results.append(failure)
                continue
            try:
                self._write(change.path, change.next_content)
            except OSError as e:
                err = CommitError(change.path, e)
                logger.warning("%s", err)
                report.results.append(CommitResult(path=change.path, ok=False, error=str(err)))
                continue
            ops.append(prior)
            report.results.append(self._commit_result(change.path, prior.prior_content, change.next_content))

        committed = [r.path for r in report.succeeded]
        store.mark_committed(committed)
        if ops:
            report.batch = self.undo_log.push_batch(label or f"Agent apply ({len(committed)} file(s))", ops)
        return report
