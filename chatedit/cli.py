# chatedit/cli
"""
ChatEdit CLI 主入口: 解析模型回复中的文件指令，预览、应用、回滚和撤销。
"""
import logging
import signal
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

import click
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text

from chatpatch.core.directives import extract_directives
from chatpatch.core.models import ApplyEdit, DeleteFile, RequestFiles, ToolCall, WriteFile
from chatpatch.storage.fs import LocalFileSystem
from chatpatch.storage.history_store import HistoryStore
from chatpatch.storage.staging import StagedMutationStore
from chatpatch.storage.undo_log import UndoLog
from chatpatch.utils.diff import classify_change_scope, unified_diff

from chatedit import __version__
from chatedit.core.agent import AgentRunner
from chatedit.core.applier import Applier
from chatedit.core.client import ScriptedModelClient
from chatedit.core.config import CONFIG_FILE, STATE_DIR, ConfigError, EditorConfig, load_config
from chatedit.core.confirm import AutoConfirmer, ConsoleConfirmer
from chatedit.core.models import ApplyReport
from chatedit.core.tools import ToolExecutor
from chatedit.init import init_project as perform_init_project, validate_config_content
from chatedit.utils.console import (
    console, info, success, warning, error,
    heading, show_welcome, show_diff, scope_badge, print_table,
)

# ------------------------------
# CLI 主入口
# ------------------------------

def _configure_logging(level: str):
    root = logging.getLogger()
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        root.addHandler(RichHandler(console=console, show_path=False, markup=False))
    root.setLevel(level.upper())


@click.group(invoke_without_command=True)
@click.version_option(__version__, message="ChatEdit CLI v%(version)s")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, verbose: bool):
    """🩹 ChatEdit - apply, review and undo AI-proposed file changes"""
    ctx.ensure_object(dict)
    ctx.obj["VERBOSE"] = verbose
    show_welcome()
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())

# ------------------------------
# 辅助函数：加载配置与服务
# ------------------------------

class Services:
    def __init__(self, config: EditorConfig, confirmer):
        self.config = config
        self.fs = LocalFileSystem(config.project_root)
        self.history = HistoryStore(Path(config.state_dir))
        self.undo_log = UndoLog(
            self.fs,
            max_batches=config.max_undo_batches,
            storage_path=config.undo_log_path,
            history=self.history,
        )
        self.applier = Applier(self.fs, self.undo_log, confirmer=confirmer, on_preview=_show_preview)


def _show_preview(path: str, before: str, after: str):
    show_diff(unified_diff(before, after, path), title=path)


def _load_services(ctx, assume_yes: bool = False) -> Services:
    """
    Helper function: load .chatedit/config.yaml (defaults when absent) and build services.
    """
    try:
        config = load_config(CONFIG_FILE)
    except ConfigError as e:
        error(f"Failed to read {CONFIG_FILE}: {e}")
        raise click.Abort()
    verbose = bool(ctx.find_root().obj and ctx.find_root().obj.get("VERBOSE"))
    _configure_logging("DEBUG" if verbose else config.log_level)
    confirmer = AutoConfirmer() if assume_yes else ConsoleConfirmer()
    return Services(config, confirmer)


def _read_response(response_file: str) -> str:
    try:
        return Path(response_file).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        error(f"Failed to read AI response file '{response_file}': {e}")
        raise click.Abort()


def _print_apply_report(report: ApplyReport):
    for err in report.errors:
        warning(f"Skipped {err.lang} block: {err.message}")
    for path in report.skipped:
        info(f"Skipped {path}")
    for res in report.results:
        if res.ok:
            scope = classify_change_scope(res.added + res.removed)
            verb = "Deleted" if res.kind == "delete" else "Wrote"
            console.print(f"  {scope_badge(scope)} {verb} [path]{escape(res.path)}[/path] (+{res.added} -{res.removed})")
        else:
            error(f"{res.path}: {res.error}")
    if report.cancelled:
        warning("Apply cancelled; remaining changes were not written.")
    if report.batch:
        success(f"Recorded undo batch: {report.batch.label}")

# ------------------------------
# 命令: init / validate
# ------------------------------

@cli.command()
@click.option("--defaults", is_flag=True, help="Write the default configuration without prompting")
@click.pass_context
def init(ctx, defaults: bool):
    """🔧 Initialize .chatedit/config.yaml"""
    heading("Project Initialization")
    if CONFIG_FILE.exists():
        if not click.confirm("Configuration already exists. Overwrite?", default=False):
            info("Cancelled.")
            return
    try:
        content = perform_init_project(interactive=not defaults)
        STATE_DIR.mkdir(exist_ok=True)
        CONFIG_FILE.write_text(content, encoding="utf-8")
        success(f"Generated: {CONFIG_FILE}")
    except Exception as e:
        error(f"Initialization failed: {e}")
        raise click.Abort()


@cli.command(name="validate")
def config_validate():
    """✅ Validate config.yaml syntax"""
    heading("Validating Configuration")
    if not CONFIG_FILE.exists():
        error(f"{CONFIG_FILE} not found. Run `chatedit init` first.")
        raise click.Abort()
    validate_config_content(CONFIG_FILE.read_text(encoding="utf-8"))

# ------------------------------
# 命令: parse / apply
# ------------------------------

@cli.command(name="parse")
@click.argument("response_file", type=click.Path(exists=True, dir_okay=False))
def parse_response(response_file: str):
    """🔍 List the directives found in an AI response file"""
    heading(f"Directives in {response_file}")
    batch = extract_directives(_read_response(response_file))
    rows = []
    for d in batch.directives:
        if isinstance(d, (WriteFile, ApplyEdit, DeleteFile)):
            rows.append((d.kind.value, d.path, ""))
        elif isinstance(d, RequestFiles):
            rows.append((d.kind.value, ", ".join(d.paths), ""))
        elif isinstance(d, ToolCall):
            rows.append((d.kind.value, d.name, ", ".join(sorted(d.args))))
    for err in batch.errors:
        rows.append((err.lang, "-", f"[{err.reason}] {err.message}"))
    if not rows:
        console.print("No directives found.", style="yellow")
        return
    print_table(rows, ["Kind", "Target", "Details"], title="Directives")


@cli.command(name="apply")
@click.argument("response_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Apply without asking for confirmation")
@click.option("--dry-run", is_flag=True, help="Show diffs without writing anything")
@click.pass_context
def apply_response(ctx, response_file: str, assume_yes: bool, dry_run: bool):
    """💾 Apply file/edit/delete blocks from an AI response file"""
    services = _load_services(ctx, assume_yes=assume_yes)
    text = _read_response(response_file)

    if dry_run:
        heading(f"Dry run: {response_file}")
        diffs, report = services.applier.preview_response(text)
        for path, diff in diffs:
            show_diff(diff, title=path)
        _print_apply_report(report)
        return

    heading(f"Applying AI response: {response_file}")
    report = services.applier.apply_response(text, confirm=not assume_yes)
    _print_apply_report(report)
    if not report.results and not report.errors and not report.skipped:
        warning("AI response contains no applicable file changes.")

# ------------------------------
# 命令: agent
# ------------------------------

def _review_staged(services: Services, store: StagedMutationStore, confirmer) -> Optional[ApplyReport]:
    """交互式审阅: 应用全部 / 丢弃全部 / 回滚到检查点 / 预览单个文件"""
    while True:
        staged = store.list_staged()
        if not staged:
            info("Nothing staged.")
            return None
        options = ["Apply all", "Discard all"]
        if len(store.list_checkpoints()) > 1:
            options.append("Revert to checkpoint")
        options.extend(f"Preview {c.path}" for c in staged)

        picked = confirmer.choose_one(f"Review {len(staged)} staged change(s)", options)
        if picked is None:
            info("Review cancelled; staged changes were not applied.")
            return None
        if picked == "Apply all":
            return services.applier.apply_staged(store, confirm=False)
        if picked == "Discard all":
            store.discard_all()
            info("Discarded staged changes.")
            return None
        if picked == "Revert to checkpoint":
            checkpoints = list(reversed(store.list_checkpoints()))
            labels = [f"Step {c.step}: {c.label}" for c in checkpoints]
            chosen = confirmer.choose_one("Revert staged changes to which step?", labels)
            if chosen is not None:
                step = checkpoints[labels.index(chosen)].step
                store.revert_to_step(step)
                info(f"Reverted staged changes to step {step}.")
            continue
        change = next(c for c in staged if picked == f"Preview {c.path}")
        _show_preview(change.path, change.prior_content, change.next_content)


@cli.command(name="agent")
@click.argument("response_files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--task", "-t", default="Apply the requested changes.", help="Task description sent as the first user message")
@click.option("--max-steps", type=click.IntRange(1, 20), default=None, help="Override agent.max_steps")
@click.option("--apply", "apply_all", is_flag=True, help="Apply all staged changes without review")
@click.option("--discard", is_flag=True, help="Discard staged changes after the run")
@click.pass_context
def agent_run(ctx, response_files, task: str, max_steps: Optional[int], apply_all: bool, discard: bool):
    """🧠 Run the agent loop over recorded model responses and review staged changes"""
    if apply_all and discard:
        raise click.UsageError("Only one of '--apply' or '--discard' can be provided.")
    services = _load_services(ctx, assume_yes=apply_all)
    config = services.config
    heading(f"Agent run ({len(response_files)} recorded response(s))")

    store = StagedMutationStore(services.fs, max_checkpoints=config.max_checkpoints)
    runner = AgentRunner(
        store,
        ScriptedModelClient.from_files(response_files),
        tools=ToolExecutor(store, max_read_chars=config.max_read_chars),
        max_steps=max_steps or config.agent.max_steps,
    )

    cancel_event = threading.Event()
    previous_handler = signal.signal(signal.SIGINT, lambda *_: cancel_event.set())
    try:
        result = runner.run(task, cancel_event=cancel_event)
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    if result.display:
        console.print(Panel(Text(result.display), title=f"🤖 Assistant ({result.steps} step(s))", border_style="blue"))
    for line in result.tool_results:
        console.print(f"  [dim]•[/dim] {escape(line)}")
    for err in result.errors:
        warning(err)
    if result.cancelled:
        warning("Agent run cancelled; staged changes are kept for review.")

    if not result.staged:
        info("Agent staged no file changes.")
        return
    success(f"Agent staged {len(result.staged)} file(s).")

    if discard:
        store.discard_all()
        info("Discarded staged changes.")
        return
    if apply_all or config.agent.auto_apply:
        report = services.applier.apply_staged(store, confirm=False)
    else:
        report = _review_staged(services, store, services.applier.confirmer)
    if report is not None:
        _print_apply_report(report)

# ------------------------------
# 命令: undo / status / history
# ------------------------------

@cli.command(name="undo")
@click.pass_context
def undo_last(ctx):
    """↩️ Undo the last applied batch"""
    services = _load_services(ctx)
    report = services.undo_log.undo_last()
    if report.nothing_to_undo:
        info("Nothing to undo.")
        return
    for path, reason in report.failed.items():
        error(f"Could not restore {path}: {reason}")
    success(f'Undid "{report.batch.label}" ({len(report.restored)} path(s) restored).')


@cli.command(name="status")
@click.pass_context
def undo_status(ctx):
    """📊 Show the undo stack"""
    services = _load_services(ctx)
    heading("Undo Status")
    batches = services.undo_log.list_batches()
    if not batches:
        console.print("Nothing to undo.", style="yellow")
        return
    rows = [
        (b.id, datetime.fromtimestamp(b.timestamp).strftime("%Y-%m-%d %H:%M:%S"), b.label, ", ".join(b.paths))
        for b in batches
    ]
    print_table(rows, ["Batch ID", "Applied At", "Label", "Files"], title="Undo stack (latest first)")


@cli.group()
def history():
    """🕘 Browse and restore persisted change history"""
    pass


@history.command(name="list")
@click.option("--limit", default=20, show_default=True, help="Number of entries to show")
@click.pass_context
def history_list(ctx, limit: int):
    """📋 List history snapshots"""
    services = _load_services(ctx)
    snapshots = services.history.list_snapshots()[-limit:]
    if not snapshots:
        console.print("No history recorded.", style="yellow")
        return
    rows = [
        (s.id, datetime.fromtimestamp(s.timestamp).strftime("%Y-%m-%d %H:%M:%S"), s.action, len(s.ops))
        for s in reversed(snapshots)
    ]
    print_table(rows, ["Snapshot ID", "At", "Action", "Ops"], title="Change history")


@history.command(name="restore")
@click.argument("snapshot_id")
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Restore without asking for confirmation")
@click.pass_context
def history_restore(ctx, snapshot_id: str, assume_yes: bool):
    """⏪ Restore files to the state recorded before a snapshot"""
    services = _load_services(ctx, assume_yes=assume_yes)
    snapshot = services.history.get(snapshot_id)
    if snapshot is None:
        warning("History snapshot not found.")
        return
    if not services.applier.confirmer.confirm(f"Restore {len(snapshot.ops)} file(s) from '{snapshot.action}'?"):
        info("Cancelled.")
        return
    report = services.undo_log.restore_snapshot(snapshot_id)
    if report is None:
        warning("Snapshot has no restorable operations.")
        return
    for path, reason in report.failed.items():
        error(f"Could not restore {path}: {reason}")
    success(f"Restored snapshot: {snapshot.action}")

# ------------------------------
# 主入口
# ------------------------------
if __name__ == '__main__':
    cli(obj={})
