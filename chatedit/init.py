# chatedit/init.py
"""
项目初始化模块 (CLI 层交互与渲染)
此模块负责通过 CLI 交互收集信息并渲染配置文件内容。
文件的实际创建操作由 CLI 层 (chatedit/cli.py) 执行。
"""

from pathlib import Path
import jinja2
import click
import yaml

TEMPLATE_DIR = Path(__file__).parent / "templates"


def render_template(name: str, **values) -> str:
    env = jinja2.Environment(loader=jinja2.FileSystemLoader(str(TEMPLATE_DIR)), keep_trailing_newline=True)
    return env.get_template(name).render(**values)


def init_project(interactive: bool = True) -> str:
    """
    收集配置项并返回渲染好的 config.yaml 内容。
    文件创建由调用者 (cli.py) 负责。
    """
    project_name = Path(".").resolve().name
    values = {
        "project_name": project_name,
        "project_root": ".",
        "max_checkpoints": 50,
        "max_undo_batches": 20,
        "agent_max_steps": 6,
        "auto_apply": False,
    }
    if interactive:
        values["agent_max_steps"] = click.prompt(
            "Agent 最大步数 (1-20)", type=click.IntRange(1, 20), default=values["agent_max_steps"]
        )
        values["max_undo_batches"] = click.prompt(
            "撤销栈上限", type=click.IntRange(1, 500), default=values["max_undo_batches"]
        )
        values["auto_apply"] = click.confirm("Agent 结束后自动应用暂存的变更?", default=False)

    try:
        return render_template("config.yaml.j2", **values)
    except jinja2.TemplateError as e:
        click.echo(f"❌ config 模板渲染失败: {e}")
        raise


def validate_config_content(content: str):
    """验证配置内容字符串的合法性"""
    click.echo("🔍 正在验证配置内容... ")
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        click.echo(click.style("❌ YAML 语法错误！", fg="red"))
        click.echo(f"   {e}")
        raise click.Abort()

    if data is None:
        click.echo(click.style("⚠️ 警告：配置内容为空。", fg="yellow"))
        return

    if not isinstance(data, dict):
        click.echo(click.style("❌ 错误：配置内容必须是一个 YAML 对象。", fg="red"))
        raise click.Abort()

    for key in ("max_checkpoints", "max_undo_batches", "max_read_chars"):
        if key in data and (not isinstance(data[key], int) or data[key] < 1):
            click.echo(click.style(f"❌ 错误：{key} 必须是正整数。", fg="red"))
            click.echo(f"   当前值: {data[key]!r}")
            raise click.Abort()

    if "agent" in data:
        agent = data["agent"]
        if not isinstance(agent, dict):
            click.echo(click.style("❌ 错误：agent 字段应为对象", fg="red"))
            raise click.Abort()
        steps = agent.get("max_steps")
        if steps is not None and (not isinstance(steps, int) or not 1 <= steps <= 20):
            click.echo(click.style("⚠️ 警告：agent.max_steps 将被限制在 1-20 之间", fg="yellow"))
        else:
            click.echo(click.style(f"✅ agent: max_steps={steps or 6}, auto_apply={bool(agent.get('auto_apply'))}", fg="green"))

    click.echo(click.style("🎉 配置内容验证通过！", fg="green"))
