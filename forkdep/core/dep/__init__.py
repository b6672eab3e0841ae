"""依赖图模块

- models.py: PackageId / LockGraph / Workspace 等数据模型
- workspace.py: 工作区与成员发现
- lockfile.py: Cargo.lock 读取与生成
- fetcher.py: 单包物化，读取 repository 元信息
- resolver.py: 依赖名 -> 上游仓库地址
"""

from forkdep.core.dep.fetcher import PackageFetcher
from forkdep.core.dep.lockfile import LockGraphReader, parse_lockfile
from forkdep.core.dep.models import (
    LockGraph,
    MemberPackage,
    PackageId,
    PackageMetadata,
    Workspace,
)
from forkdep.core.dep.resolver import RepositoryResolver, ResolvedRepository
from forkdep.core.dep.workspace import find_manifest, load_workspace

__all__ = [
    "LockGraph",
    "LockGraphReader",
    "MemberPackage",
    "PackageFetcher",
    "PackageId",
    "PackageMetadata",
    "RepositoryResolver",
    "ResolvedRepository",
    "Workspace",
    "find_manifest",
    "load_workspace",
    "parse_lockfile",
]
