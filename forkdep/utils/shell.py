"""子进程执行 - cargo / git 调用的唯一出口

CommandExecutor 是注入点: 业务代码只依赖协议，测试注入假实现，
不需要本机安装 cargo 或 git。命令一律以参数列表传递，不经过 shell。
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol

from forkdep.core.exceptions import ExternalCollaboratorError

logger = logging.getLogger(__name__)

# 子进程不得等待终端输入（git 凭据提示会让命令挂住）
NON_INTERACTIVE_ENV = {"GIT_TERMINAL_PROMPT": "0"}

_STDERR_LIMIT = 500


@dataclass
class CommandResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0


class CommandExecutor(Protocol):
    """执行参数列表形式的命令，返回 CommandResult（非零退出码不抛异常）"""

    def execute(
        self,
        cmd: list[str],
        *,
        cwd: str = ".",
        timeout: int | None = None,
    ) -> CommandResult:
        ...


class LocalExecutor:
    """subprocess 实现，在当前环境变量上叠加 env"""

    def __init__(self, env: Mapping[str, str] | None = None) -> None:
        self.env = dict(NON_INTERACTIVE_ENV if env is None else env)

    def execute(
        self,
        cmd: list[str],
        *,
        cwd: str = ".",
        timeout: int | None = None,
    ) -> CommandResult:
        proc = subprocess.run(
            cmd, cwd=cwd, env={**os.environ, **self.env},
            capture_output=True, text=True, check=False, timeout=timeout,
        )
        return CommandResult(proc.returncode, proc.stdout, proc.stderr)


def run_cmd(
    executor: CommandExecutor,
    cmd: list[str],
    *,
    cwd: str = ".",
    label: str = "cmd",
    timeout: int | None = None,
) -> CommandResult:
    """执行命令，启动失败或非零退出都抛 ExternalCollaboratorError

    label 用于日志和错误信息，如 "git clone"。
    """
    logger.info("  %s: %s (cwd=%s)", label, " ".join(cmd), cwd)
    try:
        result = executor.execute(cmd, cwd=cwd, timeout=timeout)
    except (OSError, subprocess.SubprocessError) as e:
        raise ExternalCollaboratorError(f"{label}无法执行: {e}") from e
    if not result.success:
        stderr = result.stderr.strip()[:_STDERR_LIMIT]
        raise ExternalCollaboratorError(f"{label}失败 (rc={result.returncode}): {stderr}")
    logger.debug("  %s 完成", label)
    return result
