"""YAML 配置读写 + 原子写文件

forkdep 只在配置层使用 YAML；Cargo.toml 写回也复用这里的 atomic_write。
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml

from forkdep.core.exceptions import ConfigError, PersistenceError

logger = logging.getLogger(__name__)

# 配置文件上限 1MB
MAX_YAML_SIZE = 1 << 20


def atomic_write(path: Path, content: str) -> None:
    """写同目录临时文件后 os.replace；已有文件的权限位保持不变

    异常:
        OSError: 写入或替换失败（临时文件会被清理）
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    mode = path.stat().st_mode & 0o7777 if path.exists() else None
    fd, name = tempfile.mkstemp(
        dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp",
    )
    tmp = Path(name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        if mode is not None:
            tmp.chmod(mode)
        os.replace(tmp, path)
    except Exception:
        tmp.unlink(missing_ok=True)
        raise
    logger.debug("已写入: %s", path)


def load_yaml(path: str | Path) -> dict[str, Any]:
    """读取 YAML 配置；文件不存在或为空时返回空字典

    异常:
        ConfigError: 文件过大、无法读取、语法错误，或顶层不是字典
    """
    p = Path(path)
    if not p.exists():
        return {}
    if p.stat().st_size > MAX_YAML_SIZE:
        raise ConfigError(f"配置文件过大: {p} (上限 {MAX_YAML_SIZE} 字节)")

    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"配置文件无效: {p} ({e})") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"配置文件顶层必须是字典: {p} (实际: {type(data).__name__})")
    return data


def save_yaml(path: str | Path, data: dict[str, Any]) -> None:
    """按插入顺序写出 YAML（允许 Unicode）

    异常:
        PersistenceError: 写入失败
    """
    p = Path(path)
    try:
        atomic_write(p, yaml.safe_dump(data, allow_unicode=True, sort_keys=False))
    except OSError as e:
        raise PersistenceError(str(p), f"无法写入文件: {p} ({e.strerror or e})") from e
