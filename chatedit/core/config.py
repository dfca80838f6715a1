# chatedit/core/config.py
"""
配置加载: .chatedit/config.yaml（文件中的值覆盖默认值）
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

STATE_DIR = Path(".chatedit")
CONFIG_FILE = STATE_DIR / "config.yaml"

MAX_AGENT_STEPS = 20


class ConfigError(Exception):
    pass


@dataclass
class AgentConfig:
    max_steps: int = 6
    auto_apply: bool = False


@dataclass
class EditorConfig:
    project_root: str = "."
    state_dir: str = str(STATE_DIR)
    max_checkpoints: int = 50
    max_undo_batches: int = 20
    max_read_chars: int = 2_000_000
    log_level: str = "INFO"
    agent: AgentConfig = field(default_factory=AgentConfig)

    @property
    def undo_log_path(self) -> Path:
        return Path(self.state_dir) / "undo.json"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EditorConfig":
        data = dict(data)
        agent_data = data.pop("agent", None) or {}
        if not isinstance(agent_data, dict):
            raise ConfigError("'agent' must be a mapping")

        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__ and k != "agent"}
        try:
            config = cls(**known)
            config.agent = AgentConfig(**{k: v for k, v in agent_data.items() if k in AgentConfig.__dataclass_fields__})
            config.max_checkpoints = int(config.max_checkpoints)
            config.max_undo_batches = int(config.max_undo_batches)
            config.max_read_chars = int(config.max_read_chars)
            config.agent.max_steps = max(1, min(MAX_AGENT_STEPS, int(config.agent.max_steps)))
            config.agent.auto_apply = bool(config.agent.auto_apply)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration value: {e}") from e
        return config


def load_config(path: Optional[Union[str, Path]] = None) -> EditorConfig:
    """配置文件不存在时返回默认配置"""
    config_path = Path(path) if path else CONFIG_FILE
    if not config_path.exists():
        return EditorConfig()
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse {config_path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a YAML mapping")
    return EditorConfig.from_dict(data)
