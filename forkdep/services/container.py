"""服务容器 - 统一构造各协作者

所有协作者从同一个 Config 构造，懒加载并在容器内共享。
测试时通过构造参数注入替身（命令执行器、HTTP 客户端、fork 解析器）。

依赖关系:
  lock_reader → executor
  resolver    → fetcher → http, executor
  fork        → http
  cloner      → executor
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from forkdep.core.config import Config

if TYPE_CHECKING:
    from forkdep.core.dep.fetcher import PackageFetcher
    from forkdep.core.dep.lockfile import LockGraphReader
    from forkdep.core.dep.models import Workspace
    from forkdep.core.dep.resolver import RepositoryResolver
    from forkdep.services.clone import RepoCloner
    from forkdep.services.fork import ForkResolver
    from forkdep.utils.net import HttpClient
    from forkdep.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)


class ServiceContainer:
    """懒加载服务容器"""

    def __init__(
        self,
        config: Config | None = None,
        *,
        executor: CommandExecutor | None = None,
        http: HttpClient | None = None,
        fork_resolver: ForkResolver | None = None,
    ) -> None:
        self._config = config or Config()
        self._instances: dict[str, object] = {}
        if executor is not None:
            self._instances["executor"] = executor
        if http is not None:
            self._instances["http"] = http
        if fork_resolver is not None:
            self._instances["fork"] = fork_resolver

    @property
    def config(self) -> Config:
        return self._config

    # ---- 基础设施 ----

    @property
    def executor(self) -> CommandExecutor:
        if "executor" not in self._instances:
            from forkdep.utils.shell import LocalExecutor
            self._instances["executor"] = LocalExecutor()
        return self._instances["executor"]  # type: ignore[return-value]

    @property
    def http(self) -> HttpClient:
        if "http" not in self._instances:
            from forkdep.utils.net import HttpClient
            self._instances["http"] = HttpClient(timeout=self._config.http_timeout)
        return self._instances["http"]  # type: ignore[return-value]

    # ---- 协作者 ----

    @property
    def lock_reader(self) -> LockGraphReader:
        if "lock_reader" not in self._instances:
            from forkdep.core.dep.lockfile import LockGraphReader
            self._instances["lock_reader"] = LockGraphReader(
                self.executor, cargo_bin=self._config.cargo_bin,
            )
        return self._instances["lock_reader"]  # type: ignore[return-value]

    @property
    def fork(self) -> ForkResolver:
        if "fork" not in self._instances:
            from forkdep.services.fork import make_fork_resolver
            self._instances["fork"] = make_fork_resolver(self._config, self.http)
        return self._instances["fork"]  # type: ignore[return-value]

    @property
    def cloner(self) -> RepoCloner:
        if "cloner" not in self._instances:
            from forkdep.services.clone import RepoCloner
            self._instances["cloner"] = RepoCloner(
                self.executor,
                git_bin=self._config.git_bin,
                mode=self._config.clone_mode,
            )
        return self._instances["cloner"]  # type: ignore[return-value]

    # fetcher 需要定位 path 依赖，按工作区构造，不缓存

    def fetcher(self, workspace: Workspace) -> PackageFetcher:
        from forkdep.core.dep.fetcher import PackageFetcher
        return PackageFetcher(
            self.http,
            self.executor,
            workspace,
            crate_download_url=self._config.crate_download_url,
            git_bin=self._config.git_bin,
        )

    def resolver(self, workspace: Workspace) -> RepositoryResolver:
        from forkdep.core.dep.resolver import RepositoryResolver
        return RepositoryResolver(self.fetcher(workspace))
