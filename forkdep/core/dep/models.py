"""依赖图数据模型

数据类:
- PackageId: 锁定包标识 (name, version, source)，按三元组判等
- PackageMetadata: 物化后读取到的包元信息
- MemberPackage / Workspace: 工作区及其成员
- LockGraph: Cargo.lock 的只读快照
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit

CRATES_IO_KEY = "crates-io"
CRATES_IO_INDEX = "https://github.com/rust-lang/crates.io-index"
CRATES_IO_SPARSE_INDEX = "sparse+https://index.crates.io/"

LOCKFILE_NAME = "Cargo.lock"
MANIFEST_NAME = "Cargo.toml"


@dataclass(frozen=True)
class PackageId:
    """锁定包标识；同名不同版本/来源是不同节点"""

    name: str
    version: str
    source: str | None = None

    def __str__(self) -> str:
        if self.source:
            return f"{self.name} {self.version} ({self.source})"
        return f"{self.name} {self.version}"

    @property
    def is_path(self) -> bool:
        return self.source is None

    @property
    def is_git(self) -> bool:
        return bool(self.source) and self.source.startswith("git+")

    @property
    def is_registry(self) -> bool:
        return bool(self.source) and self.source.startswith(("registry+", "sparse+"))

    @property
    def is_crates_io(self) -> bool:
        if not self.source:
            return False
        src = self.source.rstrip("/")
        return src in (f"registry+{CRATES_IO_INDEX}", CRATES_IO_SPARSE_INDEX.rstrip("/"))

    @property
    def git_url(self) -> str:
        """git 来源的仓库地址（去掉 git+ 前缀、查询参数与 commit 片段）"""
        if not self.is_git:
            return ""
        parts = urlsplit(self.source[len("git+"):])
        return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))

    @property
    def git_commit(self) -> str:
        if not self.is_git:
            return ""
        return urlsplit(self.source).fragment

    def registry_key(self) -> str | None:
        """该包在 [patch.<key>] 中使用的键

        - crates.io（git 索引或 sparse 索引）: crates-io
        - 其他 registry: 索引 URL（sparse 保留 sparse+ 前缀）
        - git 来源: 仓库地址
        - path 来源: None（path 依赖无需 patch）
        """
        if self.source is None:
            return None
        if self.is_crates_io:
            return CRATES_IO_KEY
        if self.source.startswith("registry+"):
            return self.source[len("registry+"):]
        if self.is_git:
            return self.git_url
        return self.source


@dataclass
class PackageMetadata:
    """物化后的包元信息"""

    package: PackageId
    repository: str | None = None


@dataclass
class MemberPackage:
    """工作区成员"""

    id: PackageId
    manifest_path: Path

    @property
    def name(self) -> str:
        return self.id.name

    @property
    def root(self) -> Path:
        return self.manifest_path.parent


@dataclass
class Workspace:
    """工作区：根清单 + 有序成员列表"""

    root_manifest: Path
    members: list[MemberPackage] = field(default_factory=list)

    @property
    def root(self) -> Path:
        return self.root_manifest.parent

    @property
    def lock_path(self) -> Path:
        return self.root / LOCKFILE_NAME

    def member(self, name: str) -> MemberPackage | None:
        for m in self.members:
            if m.name == name:
                return m
        return None


class LockGraph:
    """Cargo.lock 的只读快照: PackageId -> 直接依赖 PackageId 列表"""

    def __init__(
        self,
        edges: Mapping[PackageId, Iterable[PackageId]],
        *,
        version: int = 1,
        checksums: Mapping[PackageId, str] | None = None,
        generated: bool = False,
    ) -> None:
        self._edges: dict[PackageId, tuple[PackageId, ...]] = {
            k: tuple(v) for k, v in edges.items()
        }
        self._checksums = dict(checksums or {})
        self.version = version
        # 本次运行是否新生成了 Cargo.lock
        self.generated = generated

    def __contains__(self, pkg: object) -> bool:
        return pkg in self._edges

    def __len__(self) -> int:
        return len(self._edges)

    def deps(self, pkg: PackageId) -> tuple[PackageId, ...]:
        """直接依赖（未知包返回空）"""
        return self._edges.get(pkg, ())

    def checksum(self, pkg: PackageId) -> str:
        return self._checksums.get(pkg, "")
