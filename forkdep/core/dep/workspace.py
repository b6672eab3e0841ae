"""工作区发现

职责:
- 从当前目录向上查找最近的 Cargo.toml
- 从成员清单向上查找工作区根（含 [workspace] 的清单）
- 枚举工作区成员: members 通配 - exclude，加上根包与工作区内的 path 依赖
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

from forkdep.core.dep.models import MANIFEST_NAME, MemberPackage, PackageId, Workspace
from forkdep.core.exceptions import ConfigError, ResolutionError
from forkdep.utils.toml_io import load_toml

logger = logging.getLogger(__name__)

DEPENDENCY_TABLES = ("dependencies", "dev-dependencies", "build-dependencies")

# Cargo 1.75 起 package.version 可省略
_DEFAULT_VERSION = "0.0.0"


def find_manifest(start: Path) -> Path:
    """从 start 向上查找最近的 Cargo.toml"""
    start = start.resolve()
    for d in (start, *start.parents):
        candidate = d / MANIFEST_NAME
        if candidate.is_file():
            return candidate
    raise ConfigError(f"在 {start} 及其上级目录中找不到 {MANIFEST_NAME}")


def read_manifest_data(path: Path) -> dict[str, Any]:
    """读取清单为普通字典（只读用途）"""
    return load_toml(path).unwrap()


def iter_dependency_tables(data: dict[str, Any]) -> Iterator[dict[str, Any]]:
    """遍历清单中的所有依赖表（含 target.<cfg>.* 下的）"""
    for key in DEPENDENCY_TABLES:
        table = data.get(key)
        if isinstance(table, dict):
            yield table
    for target in (data.get("target") or {}).values():
        if not isinstance(target, dict):
            continue
        for key in DEPENDENCY_TABLES:
            table = target.get(key)
            if isinstance(table, dict):
                yield table


def load_workspace(manifest_path: Path) -> Workspace:
    """从任意成员（或根）清单构建 Workspace"""
    manifest_path = manifest_path.resolve()
    if not manifest_path.is_file():
        raise ConfigError(f"清单文件不存在: {manifest_path}")

    root_manifest = _find_workspace_root(manifest_path)
    root_data = read_manifest_data(root_manifest)
    ws_table = root_data.get("workspace")

    members: list[MemberPackage] = []
    seen: set[Path] = set()

    def add(path: Path) -> None:
        path = path.resolve()
        if path in seen:
            return
        seen.add(path)
        data = root_data if path == root_manifest else read_manifest_data(path)
        pkg = data.get("package")
        if not isinstance(pkg, dict):
            return
        members.append(MemberPackage(
            id=PackageId(pkg["name"], _package_version(pkg, root_data)),
            manifest_path=path,
        ))

    if isinstance(ws_table, dict):
        excluded = [
            (root_manifest.parent / e).resolve() for e in ws_table.get("exclude", [])
        ]
        for pattern in ws_table.get("members", []):
            for d in sorted(root_manifest.parent.glob(pattern)):
                member_manifest = d / MANIFEST_NAME
                if not member_manifest.is_file() or _is_excluded(d, excluded):
                    continue
                add(member_manifest)
        add(root_manifest)
        _add_path_members(root_manifest.parent, excluded, members, add)
    else:
        add(root_manifest)

    if not members:
        raise ConfigError(f"工作区没有任何成员包: {root_manifest}")
    logger.debug(
        "工作区 %s: %s", root_manifest, ", ".join(m.name for m in members),
    )
    return Workspace(root_manifest=root_manifest, members=members)


def _find_workspace_root(manifest_path: Path) -> Path:
    data = read_manifest_data(manifest_path)
    if "workspace" in data:
        return manifest_path

    explicit = (data.get("package") or {}).get("workspace")
    if explicit:
        root = (manifest_path.parent / explicit / MANIFEST_NAME).resolve()
        if not root.is_file():
            raise ConfigError(f"package.workspace 指向的清单不存在: {root}")
        return root

    for d in manifest_path.parent.parents:
        candidate = d / MANIFEST_NAME
        if not candidate.is_file():
            continue
        ws_table = read_manifest_data(candidate).get("workspace")
        if isinstance(ws_table, dict) and _declares_member(d, ws_table, manifest_path.parent):
            return candidate
    return manifest_path


def _declares_member(root: Path, ws_table: dict[str, Any], member_dir: Path) -> bool:
    excluded = [(root / e).resolve() for e in ws_table.get("exclude", [])]
    if _is_excluded(member_dir, excluded):
        return False
    for pattern in ws_table.get("members", []):
        if any(d.resolve() == member_dir for d in root.glob(pattern)):
            return True
    return False


def _is_excluded(path: Path, excluded: list[Path]) -> bool:
    path = path.resolve()
    return any(path == e or e in path.parents for e in excluded)


def _add_path_members(
    root: Path,
    excluded: list[Path],
    members: list[MemberPackage],
    add: Callable[[Path], None],
) -> None:
    """工作区根目录下被成员以 path 引用的包也是成员"""
    i = 0
    while i < len(members):
        member = members[i]
        data = read_manifest_data(member.manifest_path)
        for table in iter_dependency_tables(data):
            for spec in table.values():
                if not isinstance(spec, dict) or "path" not in spec:
                    continue
                dep_dir = (member.root / spec["path"]).resolve()
                if root.resolve() not in (dep_dir, *dep_dir.parents):
                    continue
                if _is_excluded(dep_dir, excluded) or not (dep_dir / MANIFEST_NAME).is_file():
                    continue
                add(dep_dir / MANIFEST_NAME)
        i += 1


def _package_version(pkg: dict[str, Any], root_data: dict[str, Any]) -> str:
    version = pkg.get("version", _DEFAULT_VERSION)
    if isinstance(version, dict) and version.get("workspace"):
        inherited = ((root_data.get("workspace") or {}).get("package") or {}).get("version")
        if not inherited:
            raise ResolutionError(
                f"包 {pkg.get('name')} 继承 workspace.package.version，但根清单未定义"
            )
        return inherited
    if not isinstance(version, str):
        raise ResolutionError(f"包 {pkg.get('name')} 的 version 无效: {version!r}")
    return version
