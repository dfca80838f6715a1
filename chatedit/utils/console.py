"""
统一的控制台输出工具，基于 rich 实现 CLI 交互。
"""
from rich.console import Console as RichConsole
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table
from rich.theme import Theme
from typing import List, Optional, Sequence

# 自定义主题
CUSTOM_THEME = Theme({
    "info": "cyan bold",
    "success": "green bold",
    "warning": "yellow bold",
    "error": "red bold",
    "heading": "bold underline",
    "path": "magenta",
    "prompt": "green",
    "scope.tiny": "green",
    "scope.small": "yellow",
    "scope.medium": "dark_orange",
    "scope.large": "red",
})

# 全局控制台实例（单例）
console = RichConsole(theme=CUSTOM_THEME, soft_wrap=True)


# --- 便捷输出函数 ---

def info(message: str):
    console.print(f"💡 [info]INFO[/info]: {escape(message)}")


def success(message: str):
    console.print(f"✅ [success]SUCCESS[/success]: {escape(message)}")


def warning(message: str):
    console.print(f"⚠️  [warning]WARNING[/warning]: {escape(message)}")


def error(message: str):
    console.print(f"❌ [error]ERROR[/error]: {escape(message)}")


def heading(title: str):
    console.print(f"\n🎯 [heading]{escape(title)}[/heading]\n")


def show_diff(diff_text: str, title: Optional[str] = None):
    """高亮输出统一 diff"""
    if title:
        console.print(f"[path]{escape(title)}[/path]")
    if not diff_text.strip():
        console.print("[dim](no changes)[/dim]")
        return
    console.print(Syntax(diff_text, "diff", theme="ansi_dark", word_wrap=True))


def scope_badge(scope: str) -> str:
    return f"[scope.{scope}]{scope.upper()}[/scope.{scope}]"


# --- 交互式输入 ---

def confirm(prompt: str, default: bool = True) -> bool:
    """确认对话（Y/N）"""
    yes_no = "[Y/n]" if default else "[y/N]"
    response = console.input(f"❓ {escape(prompt)} {escape(yes_no)}: ").strip().lower()
    if not response:
        return default
    return response in ("y", "yes", "是")


def choose(prompt: str, options: Sequence[str]) -> Optional[str]:
    """编号列表选择；空输入或无效输入视为取消"""
    console.print(f"❓ [prompt]{escape(prompt)}[/prompt]")
    for idx, option in enumerate(options, start=1):
        console.print(f"  [cyan]{idx}[/cyan]. {escape(option)}")
    response = console.input("   Select (empty to cancel): ").strip()
    if not response.isdigit():
        return None
    idx = int(response)
    if 1 <= idx <= len(options):
        return options[idx - 1]
    return None


# --- 表格 ---

def print_table(rows: List[Sequence[object]], headers: List[str], title: Optional[str] = None):
    table = Table(title=title, show_header=True, header_style="bold magenta")
    for h in headers:
        table.add_column(h)
    for row in rows:
        table.add_row(*[escape(str(cell)) for cell in row])
    console.print(table)


def show_welcome():
    console.print("\n" + "═" * 50, style="bold blue")
    console.print("🩹 [bold green]ChatEdit CLI[/bold green] - review, apply and undo AI file changes")
    console.print("═" * 50 + "\n", style="bold blue")
