"""依赖 fork / 定位 / patch 命令"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click

from forkdep.core.config import FORK_MODES, Config, load_config
from forkdep.core.dep.models import CRATES_IO_KEY
from forkdep.core.dep.workspace import find_manifest, load_workspace
from forkdep.core.exceptions import ForkdepError
from forkdep.services.container import ServiceContainer
from forkdep.services.forkdep_service import ForkdepRequest, ForkdepService

logger = logging.getLogger(__name__)


def register(main: click.Group) -> None:
    """注册依赖相关命令"""
    main.add_command(forkdep)
    main.add_command(locate)
    main.add_command(patch)


def _reports_errors(func: Callable[..., None]) -> Callable[..., None]:
    """把 ForkdepError 与文件系统错误转为非零退出码 + stderr 提示"""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> None:
        try:
            func(*args, **kwargs)
        except ForkdepError as e:
            logger.debug("命令失败", exc_info=True)
            subject = kwargs.get("dependency") or ""
            prefix = f"{subject}: " if subject else ""
            raise click.ClickException(f"{prefix}[{e.code}] {e}") from e
        except OSError as e:
            logger.debug("命令失败", exc_info=True)
            target = e.filename or kwargs.get("dependency") or ""
            raise click.ClickException(f"{target}: [IO_ERROR] {e.strerror or e}") from e

    return wrapper


def _manifest(manifest_path: str | None) -> Path:
    if manifest_path:
        return Path(manifest_path).resolve()
    return find_manifest(Path.cwd())


def _config(manifest: Path, config_path: str | None, **overrides: Any) -> Config:
    # patch 写到工作区根清单，配置也从工作区根读取
    workspace = load_workspace(manifest)
    cfg = load_config(workspace_root=workspace.root, explicit=config_path)
    for key, value in overrides.items():
        if value:
            setattr(cfg, key, value)
    cfg.validate()
    return cfg


_manifest_option = click.option(
    "--manifest-path", default=None, type=click.Path(dir_okay=False),
    help="Cargo.toml 路径（默认从当前目录向上查找）",
)
_config_option = click.option(
    "--config", "config_path", default=None, type=click.Path(dir_okay=False),
    help="forkdep 配置文件",
)


@click.command()
@click.argument("dependency")
@_manifest_option
@_config_option
@click.option(
    "--fork-mode", default=None, type=click.Choice(list(FORK_MODES)),
    help="fork 方式（覆盖配置）",
)
@click.option("--no-clone", is_flag=True, help="不 clone，直接以 git 地址 patch")
@click.option("--patches-dir", default=None, help="本地副本目录（相对工作区根）")
@_reports_errors
def forkdep(
    dependency: str, manifest_path: str | None, config_path: str | None,
    fork_mode: str | None, no_clone: bool, patches_dir: str | None,
) -> None:
    """fork 依赖的上游仓库并 patch 到本地副本"""
    manifest = _manifest(manifest_path)
    cfg = _config(manifest, config_path, fork_mode=fork_mode, patches_dir=patches_dir)
    svc = ForkdepService(ServiceContainer(cfg))
    result = svc.run(ForkdepRequest(
        dependency=dependency, manifest_path=manifest, clone=not no_clone,
    ))
    if result.lock_generated:
        click.echo(f"注意: 已生成新的 Cargo.lock ({result.manifest_path.parent})")
    click.echo(
        f"已 patch: {dependency} ({result.package.version}) -> "
        f"{result.kind} = {result.location}  [patch.{result.registry}]"
    )


@click.command()
@click.argument("dependency")
@_manifest_option
@_config_option
@_reports_errors
def locate(dependency: str, manifest_path: str | None, config_path: str | None) -> None:
    """只打印依赖的上游仓库地址"""
    manifest = _manifest(manifest_path)
    svc = ForkdepService(ServiceContainer(_config(manifest, config_path)))
    _, _, resolved = svc.locate(dependency, manifest)
    click.echo(resolved.url)


@click.command()
@click.argument("dependency")
@click.argument("location")
@click.option("--git", "as_git", is_flag=True, help="LOCATION 是 git 地址而非本地路径")
@click.option("--registry", default=CRATES_IO_KEY, help="patch 表键（registry 名或地址）")
@_manifest_option
@_reports_errors
def patch(
    dependency: str, location: str, as_git: bool,
    registry: str, manifest_path: str | None,
) -> None:
    """直接写入 patch 条目（不解析、不 fork）"""
    svc = ForkdepService(ServiceContainer())
    written = svc.patch(
        _manifest(manifest_path), dependency, location,
        registry=registry, kind="git" if as_git else "path",
    )
    click.echo(f"已写入: {written}")
