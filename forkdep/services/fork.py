"""Fork 解析器 - 上游仓库地址 -> fork 仓库地址

ForkResolver 是一个能力接口，由配置项 fork_mode 选择实现:
- github:   调用 GitHub REST API 创建 fork（需要 token）
- prompt:   提示用户手动 fork 后输入地址或 GitHub 用户名
- upstream: 不 fork，直接使用上游地址
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol
from urllib.parse import urlsplit

import click

from forkdep.core.exceptions import ConfigError, ExternalCollaboratorError

if TYPE_CHECKING:
    from forkdep.core.config import Config
    from forkdep.utils.net import HttpClient

logger = logging.getLogger(__name__)

_SCP_RE = re.compile(r"^(?:[\w.-]+@)?(?P<host>[\w.-]+):(?P<path>[^/].*)$")
_OWNER_RE = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9-]{0,38})$")

GITHUB_API_VERSION = "2022-11-28"


class ForkResolver(Protocol):
    """能力接口: 上游地址 -> 可 clone 的 fork 地址"""

    def fork(self, upstream_url: str) -> str:
        ...


def parse_repo_url(url: str) -> tuple[str, str, str]:
    """解析仓库地址为 (host, owner, repo)

    支持 https://host/owner/repo(.git)(/tree/...) 与 git@host:owner/repo.git
    """
    url = url.strip()
    m = _SCP_RE.match(url) if "://" not in url else None
    if m:
        host, path = m["host"], m["path"]
    else:
        parts = urlsplit(url)
        host, path = parts.hostname or "", parts.path
    segments = [s for s in path.split("/") if s]
    if not host or len(segments) < 2:
        raise ExternalCollaboratorError(f"无法解析仓库地址: {url}")
    repo = segments[1]
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    return host.lower(), segments[0], repo


class GitHubForkResolver:
    """通过 GitHub API 创建 fork"""

    def __init__(self, http: HttpClient, token: str, api_url: str = "https://api.github.com") -> None:
        self.http = http
        self.token = token
        self.api_url = api_url.rstrip("/")

    def fork(self, upstream_url: str) -> str:
        if not self.token:
            raise ConfigError(
                "缺少 GitHub token: 请执行 `cargo forkdep login`，"
                "或设置 FORKDEP_GITHUB_TOKEN，或改用 --fork-mode prompt"
            )
        host, owner, repo = parse_repo_url(upstream_url)
        if host != "github.com":
            raise ExternalCollaboratorError(
                f"仓库不在 GitHub 上，无法自动 fork: {upstream_url}"
            )

        logger.info("创建 fork: %s/%s", owner, repo)
        resp = self.http.post_json(
            f"{self.api_url}/repos/{owner}/{repo}/forks",
            headers={
                "Authorization": f"Bearer {self.token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": GITHUB_API_VERSION,
            },
        )
        clone_url = resp.get("clone_url") if isinstance(resp, dict) else None
        if not clone_url:
            raise ExternalCollaboratorError(f"GitHub 未返回 fork 地址: {owner}/{repo}")
        logger.info("fork 就绪: %s", clone_url)
        return clone_url


class InteractiveForkResolver:
    """提示用户手动 fork，再输入 fork 地址或所属用户名"""

    def __init__(
        self,
        prompt: Callable[..., str] = click.prompt,
        echo: Callable[[str], None] = click.echo,
    ) -> None:
        self.prompt = prompt
        self.echo = echo

    def fork(self, upstream_url: str) -> str:
        self.echo(f"请先在浏览器中 fork 上游仓库: {upstream_url}")
        answer = self.prompt("fork 仓库地址或 GitHub 用户名").strip()
        if not answer:
            raise ExternalCollaboratorError("未输入 fork 地址")
        if _OWNER_RE.match(answer):
            host, _, repo = parse_repo_url(upstream_url)
            return f"https://{host}/{answer}/{repo}.git"
        parse_repo_url(answer)
        return answer


class UpstreamForkResolver:
    """不 fork，直接使用上游地址"""

    def fork(self, upstream_url: str) -> str:
        logger.info("跳过 fork，使用上游仓库: %s", upstream_url)
        return upstream_url


_FACTORIES: dict[str, Callable[[Config, HttpClient], ForkResolver]] = {
    "github": lambda cfg, http: GitHubForkResolver(http, cfg.github_token, cfg.github_api_url),
    "prompt": lambda cfg, http: InteractiveForkResolver(),
    "upstream": lambda cfg, http: UpstreamForkResolver(),
}


def make_fork_resolver(config: Config, http: HttpClient) -> ForkResolver:
    """按 config.fork_mode 构造 ForkResolver"""
    factory = _FACTORIES.get(config.fork_mode)
    if factory is None:
        raise ConfigError(f"fork_mode 不支持: {config.fork_mode}")
    return factory(config, http)
