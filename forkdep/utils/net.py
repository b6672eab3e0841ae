"""网络工具 - URL 安全校验 + 阻塞式 HTTP 客户端

HttpClient 由调用方显式构造并传入（包拉取器、GitHub fork），不存在进程级单例。
所有请求失败直接抛出，不做重试。
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from typing import Any
from urllib.parse import urlparse

from forkdep import __version__
from forkdep.core.exceptions import ConfigError, ExternalCollaboratorError

logger = logging.getLogger(__name__)

_ALLOWED_SCHEMES = frozenset(("http", "https"))

# crates.io 要求请求带可识别的 User-Agent
DEFAULT_USER_AGENT = f"cargo-forkdep/{__version__}"


def validate_url_scheme(url: str, *, context: str = "") -> None:
    """校验 URL 仅使用 http/https，防止 file:// 等非预期协议访问

    Raises:
        ConfigError: URL scheme 不在白名单内
    """
    parsed = urlparse(url)
    if parsed.scheme not in _ALLOWED_SCHEMES:
        label = f" ({context})" if context else ""
        raise ConfigError(
            f"不允许的 URL 协议 '{parsed.scheme}'{label}，"
            f"仅支持 http/https: {url}"
        )


class HttpClient:
    """基于 urllib 的最小 HTTP 客户端"""

    def __init__(
        self,
        timeout: int = 30,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self.timeout = timeout
        self.user_agent = user_agent

    def get_bytes(self, url: str, headers: dict[str, str] | None = None) -> bytes:
        return self._request("GET", url, headers=headers)

    def get_json(self, url: str, headers: dict[str, str] | None = None) -> Any:
        return self._decode(url, self._request("GET", url, headers=headers))

    def post_json(
        self,
        url: str,
        payload: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        body = json.dumps(payload or {}).encode("utf-8")
        hdrs = {"Content-Type": "application/json", **(headers or {})}
        return self._decode(url, self._request("POST", url, headers=hdrs, body=body))

    def _request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        body: bytes | None = None,
    ) -> bytes:
        validate_url_scheme(url, context=f"{method} request")
        req = urllib.request.Request(url, data=body, method=method)
        req.add_header("User-Agent", self.user_agent)
        for k, v in (headers or {}).items():
            req.add_header(k, v)

        logger.debug("HTTP %s %s", method, url)
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:  # nosec B310
                return resp.read()
        except urllib.error.HTTPError as e:
            raise ExternalCollaboratorError(
                f"HTTP {method} 失败: {url} - {e.code} {e.reason}"
            ) from e
        except (urllib.error.URLError, OSError) as e:
            raise ExternalCollaboratorError(f"HTTP {method} 失败: {url} - {e}") from e

    @staticmethod
    def _decode(url: str, raw: bytes) -> Any:
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ExternalCollaboratorError(f"响应不是合法 JSON: {url}") from e
