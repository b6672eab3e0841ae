"""Cargo.lock 读取器

职责:
- 解析 Cargo.lock（v1 ~ v4）为 LockGraph
- Cargo.lock 不存在时调用 `cargo generate-lockfile` 生成后再读取
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from pathlib import Path
from typing import Any

import tomlkit
from tomlkit.exceptions import TOMLKitError

from forkdep.core.dep.models import LockGraph, PackageId, Workspace
from forkdep.core.exceptions import ExternalCollaboratorError, ResolutionError
from forkdep.utils.shell import CommandExecutor, run_cmd

logger = logging.getLogger(__name__)

# "name", "name version", "name version (source)"
_DEP_RE = re.compile(r"^(?P<name>\S+)(?: (?P<version>[^\s(]+))?(?: \((?P<source>[^)]+)\))?$")

# v1 格式把校验和放在 [metadata] 段: "checksum <name> <version> (<source>)"
_V1_CHECKSUM_PREFIX = "checksum "


def parse_lockfile(text: str, *, origin: str = "Cargo.lock") -> LockGraph:
    """解析 Cargo.lock 文本

    Raises:
        ResolutionError: TOML 无效，或依赖字符串无法对应到唯一的锁定包
    """
    try:
        data: dict[str, Any] = tomlkit.parse(text).unwrap()
    except TOMLKitError as e:
        raise ResolutionError(f"{origin} 解析失败: {e}") from e

    version = int(data.get("version", 1))
    entries = data.get("package") or []
    if not isinstance(entries, list):
        raise ResolutionError(f"{origin} 中 package 不是数组")

    ids: list[PackageId] = []
    by_name: dict[str, list[PackageId]] = defaultdict(list)
    checksums: dict[PackageId, str] = {}
    for entry in entries:
        try:
            pkg = PackageId(entry["name"], entry["version"], entry.get("source"))
        except (KeyError, TypeError) as e:
            raise ResolutionError(f"{origin} 中存在不完整的 package 条目: {entry!r}") from e
        ids.append(pkg)
        by_name[pkg.name].append(pkg)
        if entry.get("checksum"):
            checksums[pkg] = entry["checksum"]

    for key, value in (data.get("metadata") or {}).items():
        if not key.startswith(_V1_CHECKSUM_PREFIX) or value == "<none>":
            continue
        pkg = _match(key[len(_V1_CHECKSUM_PREFIX):], by_name, origin)
        checksums[pkg] = value

    edges: dict[PackageId, list[PackageId]] = {}
    for pkg, entry in zip(ids, entries):
        edges[pkg] = [
            _match(dep, by_name, origin) for dep in entry.get("dependencies") or []
        ]

    logger.debug("%s: %d 个锁定包 (version=%d)", origin, len(edges), version)
    return LockGraph(edges, version=version, checksums=checksums)


def _match(spec: str, by_name: dict[str, list[PackageId]], origin: str) -> PackageId:
    """把依赖字符串解析为唯一的 PackageId"""
    m = _DEP_RE.match(spec.strip())
    if not m:
        raise ResolutionError(f"{origin} 中无法识别的依赖: {spec!r}")
    candidates = [
        p for p in by_name.get(m["name"], [])
        if (m["version"] is None or p.version == m["version"])
        and (m["source"] is None or p.source == m["source"])
    ]
    if len(candidates) != 1:
        state = "不存在" if not candidates else "不唯一"
        raise ResolutionError(f"{origin} 中依赖 {spec!r} 对应的锁定包{state}")
    return candidates[0]


class LockGraphReader:
    """加载工作区的 Cargo.lock，必要时生成"""

    def __init__(self, executor: CommandExecutor, cargo_bin: str = "cargo") -> None:
        self.executor = executor
        self.cargo_bin = cargo_bin

    def load(self, workspace: Workspace) -> LockGraph:
        lock_path = workspace.lock_path
        generated = False
        if not lock_path.exists():
            self._generate(workspace)
            if not lock_path.exists():
                raise ResolutionError(f"cargo 未生成锁文件: {lock_path}")
            generated = True
            logger.warning("已生成新的锁文件: %s", lock_path)

        graph = parse_lockfile(self._read(lock_path), origin=str(lock_path))
        graph.generated = generated
        return graph

    def _generate(self, workspace: Workspace) -> None:
        logger.info("锁文件不存在，执行依赖解析: %s", workspace.root_manifest)
        try:
            run_cmd(
                self.executor,
                [
                    self.cargo_bin, "generate-lockfile",
                    "--manifest-path", str(workspace.root_manifest),
                ],
                cwd=str(workspace.root),
                label="cargo generate-lockfile",
            )
        except ExternalCollaboratorError as e:
            raise ResolutionError(f"无法生成 {workspace.lock_path}: {e}") from e

    @staticmethod
    def _read(path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise ResolutionError(f"无法读取锁文件: {path} ({e})") from e
