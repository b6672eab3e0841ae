"""cargo-forkdep 命令行接口

以 cargo 子命令方式调用: `cargo forkdep <dependency>`
（cargo 会执行 `cargo-forkdep forkdep <dependency>`）。
"""

import click

from forkdep import __version__
from forkdep.utils.logger import setup_logging


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="输出调试日志")
def main(verbose: bool) -> None:
    """cargo-forkdep - 把依赖替换为本地 fork 副本"""
    setup_logging(level="DEBUG" if verbose else None)


# 注册各领域子命令
from forkdep.cli.cmd_forkdep import register as _reg_forkdep  # noqa: E402
from forkdep.cli.cmd_login import register as _reg_login  # noqa: E402

_reg_forkdep(main)
_reg_login(main)
