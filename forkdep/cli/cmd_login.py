"""GitHub token 登录命令"""

from __future__ import annotations

from pathlib import Path

import click

from forkdep.core.config import user_config_path
from forkdep.core.exceptions import ForkdepError, PersistenceError
from forkdep.utils.yaml_io import load_yaml, save_yaml


def register(main: click.Group) -> None:
    main.add_command(login)


@click.command()
@click.option("--token", default=None, help="GitHub personal access token（不指定则交互输入）")
def login(token: str | None) -> None:
    """保存 GitHub token，供自动 fork 使用"""
    if not token:
        token = click.prompt("请输入 GitHub personal access token", hide_input=True)
    token = token.strip()
    if not token:
        raise click.ClickException("token 不能为空")

    path = user_config_path()
    try:
        _store_token(path, token)
    except ForkdepError as e:
        raise click.ClickException(f"[{e.code}] {e}") from e
    click.echo(f"token 已保存到: {path}")


def _store_token(path: Path, token: str) -> None:
    data = load_yaml(path)
    data["github_token"] = token
    save_yaml(path, data)
    try:
        path.chmod(0o600)
    except OSError as e:
        raise PersistenceError(str(path), f"无法设置文件权限: {path} ({e.strerror or e})") from e
