"""本地副本 - 把 fork 仓库放到 <workspace>/<patches_dir>/<name>

工作区在 git 仓库内时作为 submodule 添加，否则普通 clone（clone_mode 可强制）。
目标目录已经是 git 仓库时直接复用，便于失败后重跑。
"""

from __future__ import annotations

import logging
from pathlib import Path

from forkdep.core.exceptions import ConfigError, ExternalCollaboratorError
from forkdep.utils.shell import CommandExecutor, run_cmd

logger = logging.getLogger(__name__)


class RepoCloner:
    """git clone / git submodule add"""

    def __init__(self, executor: CommandExecutor, git_bin: str = "git", mode: str = "auto") -> None:
        if mode not in ("auto", "submodule", "clone"):
            raise ConfigError(f"clone_mode 不支持: {mode}")
        self.executor = executor
        self.git_bin = git_bin
        self.mode = mode

    def clone(self, url: str, root: Path, dest: Path) -> Path:
        """clone url 到 root/dest，返回相对 root 的路径"""
        if dest.is_absolute():
            raise ConfigError(f"本地副本目录必须是相对路径: {dest}")
        target = root / dest
        if (target / ".git").exists():
            logger.info("本地副本已存在，复用: %s", target)
            return dest
        if target.exists() and any(target.iterdir()):
            raise ExternalCollaboratorError(f"目标目录已存在且非空: {target}")

        target.parent.mkdir(parents=True, exist_ok=True)
        if self._use_submodule(root):
            run_cmd(
                self.executor,
                [self.git_bin, "submodule", "add", url, dest.as_posix()],
                cwd=str(root), label="git submodule add",
            )
        else:
            run_cmd(
                self.executor,
                [self.git_bin, "clone", url, dest.as_posix()],
                cwd=str(root), label="git clone",
            )
        logger.info("本地副本就绪: %s -> %s", url, target)
        return dest

    def _use_submodule(self, root: Path) -> bool:
        if self.mode != "auto":
            return self.mode == "submodule"
        try:
            r = self.executor.execute(
                [self.git_bin, "rev-parse", "--is-inside-work-tree"], cwd=str(root),
            )
        except OSError:
            return False
        return r.success and r.stdout.strip() == "true"
