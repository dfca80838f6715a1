# chatedit/core/prompts.py
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import jinja2

from chatpatch.core.directives import find_open_fence

# 📁 模板根目录（相对于当前文件）
TEMPLATES_DIR = Path(__file__).parent.parent / "templates" / "prompts"

ALIASES = {
    'agent': 'agent_tools.md.j2',
    'tool_results': 'tool_results.md.j2',
    'requested_files': 'requested_files.md.j2',
    'continue': 'continue.md.j2',
}


class PromptRenderer:
    def __init__(self, templates_dir: Path = TEMPLATES_DIR):
        self.env = self._create_jinja_env(templates_dir)

    def _create_jinja_env(self, templates_dir: Path) -> jinja2.Environment:
        loader = jinja2.FileSystemLoader(str(templates_dir))
        return jinja2.Environment(loader=loader, autoescape=False, trim_blocks=True, lstrip_blocks=True)

    def render(self, template: str, **context: Any) -> str:
        template_path = ALIASES.get(template, template)
        try:
            tmpl = self.env.get_template(template_path)
        except jinja2.TemplateNotFound:
            raise FileNotFoundError(f"Template not found: {template_path}")
        return tmpl.render(**context).strip()

    def agent_system_prompt(self, tools: Sequence[Dict[str, str]]) -> str:
        return self.render('agent', tools=tools)

    def tool_results(self, step: int, results: List[str]) -> str:
        return self.render('tool_results', step=step, results=results)

    def requested_files(self, files: List[Dict[str, Optional[str]]]) -> str:
        return self.render('requested_files', files=files)

    def continuation(self, partial_text: str) -> str:
        """生成被截断时的续写提示"""
        return self.render('continue', open_fence=find_open_fence(partial_text))
