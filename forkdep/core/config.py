"""集中配置管理

配置来源（后者覆盖前者）:
  1. 用户配置   $XDG_CONFIG_HOME/forkdep/config.yml（login 命令写入 token 的位置）
  2. 工作区配置 <workspace>/.forkdep.yml
  3. 命令行 --config 指定的文件
  4. 环境变量   FORKDEP_GITHUB_TOKEN / GITHUB_TOKEN（仅 token）

Config 由入口显式构造后逐层传递，不提供全局单例。
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from forkdep.core.exceptions import ConfigError
from forkdep.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

WORKSPACE_CONFIG_NAME = ".forkdep.yml"

FORK_MODES = ("github", "prompt", "upstream")
CLONE_MODES = ("auto", "submodule", "clone")


@dataclass
class Config:
    """forkdep 配置"""

    # 本地副本目录（相对工作区根目录）
    patches_dir: str = "patches"

    # fork / clone 策略
    fork_mode: str = "github"
    clone_mode: str = "auto"

    # 远端
    github_api_url: str = "https://api.github.com"
    github_token: str = ""
    crate_download_url: str = "https://static.crates.io/crates"
    http_timeout: int = 30

    # 外部命令
    cargo_bin: str = "cargo"
    git_bin: str = "git"

    # 自定义扩展 (放不到字段里的配置项)
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Config:
        known = {f.name for f in cls.__dataclass_fields__.values()}
        matched = {k: v for k, v in data.items() if k in known and k != "extra"}
        extra = {k: v for k, v in data.items() if k not in known}
        cfg = cls(**matched)
        cfg.extra = extra
        cfg.validate()
        return cfg

    @classmethod
    def from_file(cls, path: str | Path) -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        return cls.from_dict(load_yaml(path))

    def validate(self) -> None:
        if self.fork_mode not in FORK_MODES:
            raise ConfigError(
                f"fork_mode 不支持: {self.fork_mode}，可选: {', '.join(FORK_MODES)}"
            )
        if self.clone_mode not in CLONE_MODES:
            raise ConfigError(
                f"clone_mode 不支持: {self.clone_mode}，可选: {', '.join(CLONE_MODES)}"
            )
        if not self.patches_dir or Path(self.patches_dir).is_absolute():
            raise ConfigError(f"patches_dir 必须是相对路径: {self.patches_dir!r}")
        if not isinstance(self.http_timeout, int) or self.http_timeout <= 0:
            raise ConfigError(f"http_timeout 必须是正整数: {self.http_timeout!r}")


def user_config_path() -> Path:
    """用户级配置文件路径"""
    base = os.getenv("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / "forkdep" / "config.yml"


def load_config(
    workspace_root: str | Path | None = None,
    explicit: str | Path | None = None,
) -> Config:
    """按优先级合并各层配置"""
    merged: dict[str, Any] = {}
    layers: list[Path] = [user_config_path()]
    if workspace_root is not None:
        layers.append(Path(workspace_root) / WORKSPACE_CONFIG_NAME)
    if explicit:
        p = Path(explicit)
        if not p.exists():
            raise ConfigError(f"配置文件不存在: {p}")
        layers.append(p)

    for layer in layers:
        data = load_yaml(layer)
        if data:
            logger.debug("配置层已加载: %s", layer)
            merged.update(data)

    token = os.getenv("FORKDEP_GITHUB_TOKEN") or os.getenv("GITHUB_TOKEN")
    if token:
        merged["github_token"] = token

    return Config.from_dict(merged)
