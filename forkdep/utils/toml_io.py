"""TOML 文件读写工具

基于 tomlkit 的保格式解析：注释、空行、键顺序在写回时原样保留。
"""

from __future__ import annotations

import logging
from pathlib import Path

import tomlkit
from tomlkit.exceptions import TOMLKitError
from tomlkit.toml_document import TOMLDocument

from forkdep.core.exceptions import ConfigError, MalformedManifestError, PersistenceError
from forkdep.utils.yaml_io import atomic_write

logger = logging.getLogger(__name__)


def load_toml(path: str | Path) -> TOMLDocument:
    """读取 TOML 文件为可编辑文档

    Raises:
        ConfigError: 文件不存在或不可读
        MalformedManifestError: TOML 语法错误
    """
    p = Path(path)
    try:
        text = p.read_bytes().decode("utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"无法读取文件: {p} ({e})") from e
    try:
        return tomlkit.parse(text)
    except TOMLKitError as e:
        raise MalformedManifestError(str(p), f"TOML 解析失败: {p}: {e}") from e


def dump_toml(doc: TOMLDocument) -> str:
    return tomlkit.dumps(doc)


def save_toml(path: str | Path, doc: TOMLDocument) -> None:
    """整文件原子写回

    Raises:
        PersistenceError: 写入失败（原文件保持不变）
    """
    p = Path(path)
    try:
        atomic_write(p, dump_toml(doc))
    except OSError as e:
        raise PersistenceError(str(p), f"无法写入文件: {p} ({e.strerror or e})") from e
    logger.info("已写入: %s", p)
