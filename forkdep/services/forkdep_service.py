"""forkdep 编排服务

流程:
  1. 发现工作区，加载（必要时生成）Cargo.lock
  2. 解析依赖的上游仓库地址
  3. 读取根清单并预检 patch 路径（失败时不触发任何外部副作用）
  4. fork → 本地 clone / submodule
  5. 内存中写入 patch 条目，最后整文件原子写回

任何一步失败都直接抛出，清单保持原样。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from forkdep.core.dep.models import CRATES_IO_KEY, LockGraph, PackageId, Workspace
from forkdep.core.dep.resolver import ResolvedRepository
from forkdep.core.dep.workspace import load_workspace
from forkdep.core.manifest import apply_patch, check_patchable, load_manifest, save_manifest
from forkdep.services.container import ServiceContainer

logger = logging.getLogger(__name__)


@dataclass
class ForkdepRequest:
    """一次 forkdep 运行的输入"""

    dependency: str
    manifest_path: Path
    clone: bool = True
    patches_dir: str = ""  # 覆盖配置中的 patches_dir


@dataclass
class ForkdepResult:
    """一次 forkdep 运行的结果"""

    dependency: str
    package: PackageId
    upstream_url: str
    fork_url: str
    registry: str
    kind: str
    location: str
    manifest_path: Path
    lock_generated: bool = False


class ForkdepService:
    """依赖 fork 编排"""

    def __init__(self, container: ServiceContainer) -> None:
        self.container = container

    def locate(
        self, dependency: str, manifest_path: Path,
    ) -> tuple[Workspace, LockGraph, ResolvedRepository]:
        """解析依赖的上游仓库，不产生 fork / clone / 清单改动"""
        workspace = load_workspace(manifest_path)
        graph = self.container.lock_reader.load(workspace)
        resolved = self.container.resolver(workspace).locate(
            graph, workspace.members, dependency,
        )
        return workspace, graph, resolved

    def run(self, request: ForkdepRequest) -> ForkdepResult:
        dep = request.dependency
        workspace, graph, resolved = self.locate(dep, request.manifest_path)
        registry = _registry_key(resolved.package)

        document = load_manifest(workspace.root_manifest)
        check_patchable(document, dep, registry=registry)

        fork_url = self.container.fork.fork(resolved.url)
        if request.clone:
            patches_dir = request.patches_dir or self.container.config.patches_dir
            rel = self.container.cloner.clone(
                fork_url, workspace.root, Path(patches_dir) / dep,
            )
            kind, location = "path", rel.as_posix()
        else:
            kind, location = "git", fork_url

        apply_patch(document, dep, location, registry=registry, kind=kind)
        save_manifest(workspace.root_manifest, document)

        return ForkdepResult(
            dependency=dep,
            package=resolved.package,
            upstream_url=resolved.url,
            fork_url=fork_url,
            registry=registry,
            kind=kind,
            location=location,
            manifest_path=workspace.root_manifest,
            lock_generated=graph.generated,
        )

    def patch(
        self,
        manifest_path: Path,
        dependency: str,
        location: str,
        *,
        registry: str = CRATES_IO_KEY,
        kind: str = "path",
    ) -> Path:
        """直接写入 patch 条目（不解析、不 fork），返回被改写的清单路径"""
        workspace = load_workspace(manifest_path)
        document = load_manifest(workspace.root_manifest)
        apply_patch(document, dependency, location, registry=registry, kind=kind)
        save_manifest(workspace.root_manifest, document)
        return workspace.root_manifest


def _registry_key(pkg: PackageId) -> str:
    key = pkg.registry_key()
    if key is None:
        logger.warning("%s 是 path 依赖，[patch.%s] 不会覆盖它", pkg, CRATES_IO_KEY)
        return CRATES_IO_KEY
    return key
