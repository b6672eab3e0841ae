"""测试共享 fixture - 假命令执行器 / 假 HTTP 客户端 / 工作区构造器

所有测试都不访问网络，也不需要本机安装 cargo 或 git:
  FakeExecutor  按命令前缀分派到回调，记录全部调用
  FakeHttp      URL -> bytes 映射，记录 POST 请求
  make_crate()  在内存里构造 .crate (tar.gz)
"""

from __future__ import annotations

import io
import json
import tarfile
import textwrap
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from forkdep.core.exceptions import ExternalCollaboratorError
from forkdep.utils.logger import reset_logging
from forkdep.utils.shell import CommandResult

CRATES_IO = "registry+https://github.com/rust-lang/crates.io-index"


# =========================================================================
# 替身实现
# =========================================================================


class FakeExecutor:
    """按 argv 前缀匹配回调；未匹配的命令视为成功"""

    def __init__(self) -> None:
        self.calls: list[tuple[list[str], str]] = []
        self._handlers: list[tuple[tuple[str, ...], Callable[[list[str], str], CommandResult]]] = []

    def on(self, *prefix: str, handler: Callable[[list[str], str], CommandResult] | None = None,
           returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        if handler is None:
            def handler(cmd: list[str], cwd: str) -> CommandResult:
                return CommandResult(returncode, stdout, stderr)
        self._handlers.insert(0, (prefix, handler))

    def execute(self, cmd: list[str], *, cwd: str = ".", timeout: int | None = None) -> CommandResult:
        self.calls.append((list(cmd), cwd))
        for prefix, handler in self._handlers:
            if tuple(cmd[:len(prefix)]) == prefix:
                return handler(cmd, cwd)
        return CommandResult(0, "", "")

    def commands(self) -> list[list[str]]:
        return [c for c, _ in self.calls]


class FakeHttp:
    """URL -> 响应体 映射"""

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        self.responses: dict[str, Any] = dict(responses or {})
        self.requests: list[tuple[str, str, dict[str, str]]] = []
        self.posts: list[tuple[str, dict[str, Any] | None]] = []

    def get_bytes(self, url: str, headers: dict[str, str] | None = None) -> bytes:
        self.requests.append(("GET", url, headers or {}))
        if url not in self.responses:
            raise ExternalCollaboratorError(f"HTTP GET 失败: {url} - 404 Not Found")
        return self.responses[url]

    def get_json(self, url: str, headers: dict[str, str] | None = None) -> Any:
        return json.loads(self.get_bytes(url, headers))

    def post_json(self, url: str, payload: dict[str, Any] | None = None,
                  headers: dict[str, str] | None = None) -> Any:
        self.requests.append(("POST", url, headers or {}))
        self.posts.append((url, payload))
        if url not in self.responses:
            raise ExternalCollaboratorError(f"HTTP POST 失败: {url} - 404 Not Found")
        return self.responses[url]


# =========================================================================
# 构造器
# =========================================================================


def make_crate(name: str, version: str, repository: str | None = None) -> bytes:
    """构造只包含 Cargo.toml 的 .crate 包"""
    lines = ["[package]", f'name = "{name}"', f'version = "{version}"']
    if repository is not None:
        lines.append(f'repository = "{repository}"')
    data = ("\n".join(lines) + "\n").encode("utf-8")

    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tf:
        info = tarfile.TarInfo(f"{name}-{version}/Cargo.toml")
        info.size = len(data)
        tf.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def crate_url(name: str, version: str) -> str:
    return f"https://static.crates.io/crates/{name}/{name}-{version}.crate"


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text).lstrip(), encoding="utf-8")
    return path


APP_MANIFEST = """
# 应用清单
[package]
name = "app"
version = "0.1.0"
edition = "2021"

[dependencies]
libfoo = "1.2"   # 上游版本
"""

APP_LOCK = f"""
version = 3

[[package]]
name = "app"
version = "0.1.0"
dependencies = [
 "libfoo",
]

[[package]]
name = "libfoo"
version = "1.2.0"
source = "{CRATES_IO}"
"""


# =========================================================================
# Fixtures
# =========================================================================


@pytest.fixture(autouse=True)
def _isolate_logging_and_config(tmp_path_factory: pytest.TempPathFactory,
                                monkeypatch: pytest.MonkeyPatch):
    """隔离用户配置与 token 环境变量，测试后清理日志 handler"""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path_factory.mktemp("xdg")))
    monkeypatch.delenv("FORKDEP_GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    yield
    reset_logging()


@pytest.fixture()
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture()
def http() -> FakeHttp:
    return FakeHttp({
        crate_url("libfoo", "1.2.0"): make_crate("libfoo", "1.2.0", "https://github.com/acme/libfoo"),
    })


@pytest.fixture()
def app_workspace(tmp_path: Path) -> Path:
    """单包工作区: app 直接依赖 libfoo 1.2.0，返回清单路径"""
    root = tmp_path / "app"
    manifest = write(root / "Cargo.toml", APP_MANIFEST)
    write(root / "Cargo.lock", APP_LOCK)
    return manifest
