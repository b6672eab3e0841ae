"""ServiceContainer 单元测试"""

from __future__ import annotations

from conftest import FakeExecutor, FakeHttp

from forkdep.core.config import Config
from forkdep.core.dep.models import Workspace
from forkdep.services.container import ServiceContainer
from forkdep.services.fork import UpstreamForkResolver
from forkdep.utils.net import HttpClient
from forkdep.utils.shell import LocalExecutor


class TestServiceContainer:
    def test_lazy_loading(self) -> None:
        c = ServiceContainer()
        assert "lock_reader" not in c._instances
        _ = c.lock_reader
        assert "lock_reader" in c._instances

    def test_shared_instances(self) -> None:
        c = ServiceContainer()
        assert c.cloner is c.cloner
        assert c.executor is c.lock_reader.executor

    def test_defaults(self) -> None:
        c = ServiceContainer(Config(http_timeout=5, git_bin="/opt/git"))
        assert isinstance(c.executor, LocalExecutor)
        assert isinstance(c.http, HttpClient)
        assert c.http.timeout == 5
        assert c.cloner.git_bin == "/opt/git"

    def test_injected_collaborators(self) -> None:
        executor, http, fork = FakeExecutor(), FakeHttp(), UpstreamForkResolver()
        c = ServiceContainer(executor=executor, http=http, fork_resolver=fork)
        assert c.executor is executor
        assert c.http is http
        assert c.fork is fork

    def test_fork_follows_config(self) -> None:
        c = ServiceContainer(Config(fork_mode="upstream"), http=FakeHttp())
        assert isinstance(c.fork, UpstreamForkResolver)

    def test_fetcher_is_per_workspace(self, tmp_path) -> None:
        c = ServiceContainer(Config(crate_download_url="https://mirror.example/crates"),
                             executor=FakeExecutor(), http=FakeHttp())
        ws = Workspace(tmp_path / "Cargo.toml", [])
        fetcher = c.fetcher(ws)
        assert fetcher.workspace is ws
        assert fetcher is not c.fetcher(ws)
        assert c.resolver(ws).fetcher.workspace is ws
