"""Cargo.toml patch 表改写

在 [patch.<registry>] 下插入/更新 `<name> = { path = "..." }`（或 git）。
文档基于 tomlkit，只改动目标子树，其余键、注释与格式保持原样。
改写只发生在内存中，写回由 save_manifest 单独完成。
"""

from __future__ import annotations

import logging
from collections.abc import MutableMapping
from pathlib import Path
from typing import Any

import tomlkit
from tomlkit.items import InlineTable
from tomlkit.toml_document import TOMLDocument

from forkdep.core.dep.models import CRATES_IO_KEY
from forkdep.core.exceptions import ConfigError, MalformedManifestError
from forkdep.utils.toml_io import load_toml, save_toml

logger = logging.getLogger(__name__)

PATCH_KEY = "patch"
OVERRIDE_KINDS = ("path", "git")


def load_manifest(path: str | Path) -> TOMLDocument:
    return load_toml(path)


def save_manifest(path: str | Path, document: TOMLDocument) -> None:
    save_toml(path, document)


def apply_patch(
    document: TOMLDocument,
    dependency_name: str,
    override_location: str,
    *,
    registry: str = CRATES_IO_KEY,
    kind: str = "path",
) -> None:
    """把 dependency_name 重定向到 override_location

    重复调用结果相同；条目中的其他字段（如手写的 branch）保持不变。

    Raises:
        MalformedManifestError: 路径上已有值但不是表（此时文档不被修改）
    """
    if kind not in OVERRIDE_KINDS:
        raise ConfigError(f"不支持的 patch 类型: {kind}，可选: {', '.join(OVERRIDE_KINDS)}")
    check_patchable(document, dependency_name, registry=registry)

    patch = document.get(PATCH_KEY)
    table = patch.get(registry) if patch is not None else None
    entry = table.get(dependency_name) if table is not None else None
    if entry is not None:
        entry[kind] = override_location
    else:
        # 自底向上建表，新表插入时已经非空
        entry = tomlkit.inline_table()
        entry[kind] = override_location
        if table is None:
            # 内联的 patch 里只能放内联表
            table = tomlkit.inline_table() if isinstance(patch, InlineTable) else tomlkit.table()
            table[dependency_name] = entry
            if patch is None:
                # super table: 只渲染 [patch.<registry>]，不产生空的 [patch] 段
                patch = tomlkit.table(is_super_table=True)
                patch[registry] = table
                document[PATCH_KEY] = patch
            else:
                patch[registry] = table
        else:
            table[dependency_name] = entry

    logger.info("patch.%s.%s.%s = %s", registry, dependency_name, kind, override_location)


def check_patchable(
    document: TOMLDocument,
    dependency_name: str,
    *,
    registry: str = CRATES_IO_KEY,
) -> None:
    """检查 patch -> registry -> name 路径上的已有值均为表"""
    node: Any = document
    trail: list[str] = []
    for key in (PATCH_KEY, registry, dependency_name):
        trail.append(key)
        value = node.get(key)
        if value is None:
            return
        if not isinstance(value, MutableMapping):
            dotted = ".".join(trail)
            raise MalformedManifestError(
                dotted,
                f"清单中 '{dotted}' 已存在且不是表 ({type(value).__name__})，拒绝覆盖",
            )
        node = value


def read_patch(
    document: TOMLDocument,
    dependency_name: str,
    *,
    registry: str = CRATES_IO_KEY,
) -> dict[str, Any] | None:
    """读取已有的 patch 条目（不存在返回 None）"""
    node: Any = document
    for key in (PATCH_KEY, registry, dependency_name):
        if not isinstance(node, MutableMapping) or key not in node:
            return None
        node = node[key]
    if not isinstance(node, MutableMapping):
        return None
    return {k: (v.unwrap() if hasattr(v, "unwrap") else v) for k, v in node.items()}
