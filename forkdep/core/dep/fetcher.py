"""单包物化器

职责:
- 只物化一个锁定包（而非整个依赖图），读取其清单中的 repository 字段
- registry 来源: 下载单个 .crate 包并校验 sha256，从中读取 Cargo.toml
- git 来源: 临时 clone 后定位同名包的清单
- path 来源: 直接读取本地清单
"""

from __future__ import annotations

import hashlib
import io
import json
import logging
import tarfile
import tempfile
from pathlib import Path, PurePosixPath
from typing import Any

import tomlkit
from tomlkit.exceptions import TOMLKitError

from forkdep.core.dep.models import (
    MANIFEST_NAME,
    MemberPackage,
    PackageId,
    PackageMetadata,
    Workspace,
)
from forkdep.core.dep.workspace import iter_dependency_tables, read_manifest_data
from forkdep.core.exceptions import (
    ConfigError,
    ExternalCollaboratorError,
    MalformedManifestError,
    ResolutionError,
)
from forkdep.utils.net import HttpClient
from forkdep.utils.shell import CommandExecutor, run_cmd

logger = logging.getLogger(__name__)

DEFAULT_CRATE_DOWNLOAD_URL = "https://static.crates.io/crates"

_DL_MARKERS = ("{crate}", "{version}", "{prefix}", "{lowerprefix}", "{sha256-checksum}")

# 在 git 仓库中搜索清单时跳过的目录
_SKIP_DIRS = frozenset(("target", ".git"))


class PackageFetcher:
    """按 PackageId 物化单个包的元信息"""

    def __init__(
        self,
        http: HttpClient,
        executor: CommandExecutor,
        workspace: Workspace | None = None,
        *,
        crate_download_url: str = DEFAULT_CRATE_DOWNLOAD_URL,
        git_bin: str = "git",
    ) -> None:
        self.http = http
        self.executor = executor
        self.workspace = workspace
        self.crate_download_url = crate_download_url.rstrip("/")
        self.git_bin = git_bin

    def materialize(
        self,
        pkg: PackageId,
        origin: MemberPackage | None = None,
        checksum: str = "",
    ) -> PackageMetadata:
        """物化 pkg 并返回其元信息

        Args:
            pkg: 锁定包标识
            origin: 引用 pkg 的工作区成员（path 来源用于定位目录）
            checksum: Cargo.lock 中记录的 .crate sha256
        """
        logger.info("物化: %s", pkg)
        if pkg.is_registry:
            data = self._registry_manifest(pkg, checksum)
        elif pkg.is_git:
            data = self._git_manifest(pkg)
        elif pkg.is_path:
            data = self._path_manifest(pkg, origin)
        else:
            raise ResolutionError(f"不支持的包来源: {pkg.source}")
        return PackageMetadata(package=pkg, repository=data.get("repository") or None)

    # ---- registry ----

    def _registry_manifest(self, pkg: PackageId, checksum: str) -> dict[str, Any]:
        url = self._download_url(pkg, checksum)
        logger.info("  下载: %s", url)
        blob = self.http.get_bytes(url)
        if checksum:
            actual = hashlib.sha256(blob).hexdigest()
            if actual != checksum:
                raise ExternalCollaboratorError(
                    f"校验和不匹配 {pkg}: 期望 {checksum}, 实际 {actual}"
                )
        return _package_table(_crate_manifest(blob, pkg), str(pkg))

    def _download_url(self, pkg: PackageId, checksum: str) -> str:
        if pkg.is_crates_io:
            template = self.crate_download_url
        else:
            template = self._registry_dl(pkg)
        return expand_dl_template(template, pkg, checksum)

    def _registry_dl(self, pkg: PackageId) -> str:
        """读取第三方 registry 索引的 config.json 中的 dl 模板"""
        source = pkg.source or ""
        if source.startswith("sparse+"):
            config = self.http.get_json(source[len("sparse+"):].rstrip("/") + "/config.json")
        else:
            index_url = source[len("registry+"):]
            with tempfile.TemporaryDirectory(prefix="forkdep-index-") as tmp:
                run_cmd(
                    self.executor,
                    [self.git_bin, "clone", "--depth", "1", index_url, tmp],
                    label="git clone index",
                )
                try:
                    config = json.loads((Path(tmp) / "config.json").read_text(encoding="utf-8"))
                except (OSError, json.JSONDecodeError) as e:
                    raise ExternalCollaboratorError(
                        f"registry 索引缺少有效的 config.json: {index_url}"
                    ) from e
        dl = config.get("dl") if isinstance(config, dict) else None
        if not dl:
            raise ExternalCollaboratorError(f"registry 索引未声明 dl: {source}")
        return dl

    # ---- git ----

    def _git_manifest(self, pkg: PackageId) -> dict[str, Any]:
        with tempfile.TemporaryDirectory(prefix="forkdep-git-") as tmp:
            checkout = Path(tmp) / "repo"
            run_cmd(
                self.executor,
                [self.git_bin, "clone", "--quiet", pkg.git_url, str(checkout)],
                label="git clone",
            )
            if pkg.git_commit:
                run_cmd(
                    self.executor,
                    [self.git_bin, "checkout", "--quiet", pkg.git_commit],
                    cwd=str(checkout),
                    label="git checkout",
                )
            manifest = find_package_manifest(checkout, pkg.name)
            if manifest is None:
                raise ResolutionError(f"git 仓库 {pkg.git_url} 中没有包 {pkg.name}")
            return resolve_package_table(manifest, boundary=checkout)

    # ---- path ----

    def _path_manifest(self, pkg: PackageId, origin: MemberPackage | None) -> dict[str, Any]:
        manifest = self._locate_path_package(pkg, origin)
        if manifest is None:
            raise ResolutionError(f"无法定位 path 依赖 {pkg} 的清单")
        boundary = self.workspace.root if self.workspace else None
        return resolve_package_table(manifest, boundary=boundary)

    def _locate_path_package(self, pkg: PackageId, origin: MemberPackage | None) -> Path | None:
        if self.workspace is not None:
            member = self.workspace.member(pkg.name)
            if member is not None and member.id.version == pkg.version:
                return member.manifest_path
        if origin is None:
            return None

        root_deps: dict[str, Any] = {}
        if self.workspace is not None:
            root_data = read_manifest_data(self.workspace.root_manifest)
            root_deps = (root_data.get("workspace") or {}).get("dependencies") or {}

        for table in iter_dependency_tables(read_manifest_data(origin.manifest_path)):
            for key, spec in table.items():
                if not isinstance(spec, dict) or spec.get("package", key) != pkg.name:
                    continue
                base = origin.root
                if spec.get("workspace") and self.workspace is not None:
                    spec = root_deps.get(key) or {}
                    base = self.workspace.root
                if isinstance(spec, dict) and "path" in spec:
                    candidate = (base / spec["path"] / MANIFEST_NAME).resolve()
                    if candidate.is_file():
                        return candidate
        return None


def expand_dl_template(template: str, pkg: PackageId, checksum: str = "") -> str:
    """展开 registry 的 dl 模板（无占位符时追加 /{crate}/{version}/download）

    crates.io 的静态地址没有占位符，按 /{crate}/{crate}-{version}.crate 拼接。
    """
    if not any(marker in template for marker in _DL_MARKERS):
        if pkg.is_crates_io:
            return f"{template.rstrip('/')}/{pkg.name}/{pkg.name}-{pkg.version}.crate"
        return f"{template.rstrip('/')}/{pkg.name}/{pkg.version}/download"
    prefix = _index_prefix(pkg.name)
    return (
        template.replace("{crate}", pkg.name)
        .replace("{version}", pkg.version)
        .replace("{prefix}", prefix)
        .replace("{lowerprefix}", prefix.lower())
        .replace("{sha256-checksum}", checksum)
    )


def _index_prefix(name: str) -> str:
    if len(name) <= 2:
        return str(len(name))
    if len(name) == 3:
        return f"3/{name[0]}"
    return f"{name[:2]}/{name[2:4]}"


def _crate_manifest(blob: bytes, pkg: PackageId) -> dict[str, Any]:
    """从 .crate（tar.gz）中读取 <name>-<version>/Cargo.toml"""
    member = str(PurePosixPath(f"{pkg.name}-{pkg.version}") / MANIFEST_NAME)
    try:
        with tarfile.open(fileobj=io.BytesIO(blob), mode="r:gz") as tf:
            f = tf.extractfile(member)
            if f is None:
                raise ExternalCollaboratorError(f".crate 包中缺少 {member}: {pkg}")
            text = f.read().decode("utf-8")
    except KeyError as e:
        raise ExternalCollaboratorError(f".crate 包中缺少 {member}: {pkg}") from e
    except (tarfile.TarError, OSError, UnicodeDecodeError) as e:
        raise ExternalCollaboratorError(f".crate 包损坏: {pkg} ({e})") from e
    try:
        return tomlkit.parse(text).unwrap()
    except TOMLKitError as e:
        raise ExternalCollaboratorError(f".crate 包清单无法解析: {pkg} ({e})") from e


def _package_table(data: dict[str, Any], label: str) -> dict[str, Any]:
    pkg = data.get("package")
    if not isinstance(pkg, dict):
        raise ResolutionError(f"清单缺少 [package]: {label}")
    return pkg


def find_package_manifest(root: Path, name: str) -> Path | None:
    """在目录树中查找 package.name == name 的清单（浅层优先）"""
    candidates = sorted(
        (p for p in root.rglob(MANIFEST_NAME) if not _SKIP_DIRS & set(p.relative_to(root).parts)),
        key=lambda p: (len(p.parts), str(p)),
    )
    for manifest in candidates:
        try:
            data = read_manifest_data(manifest)
        except (ConfigError, MalformedManifestError):
            logger.debug("跳过无法解析的清单: %s", manifest)
            continue
        if (data.get("package") or {}).get("name") == name:
            return manifest
    return None


def resolve_package_table(manifest: Path, *, boundary: Path | None = None) -> dict[str, Any]:
    """读取 [package]，把 `repository.workspace = true` 替换为工作区根的值"""
    pkg = dict(_package_table(read_manifest_data(manifest), str(manifest)))
    repo = pkg.get("repository")
    if isinstance(repo, dict) and repo.get("workspace"):
        pkg["repository"] = _inherited_repository(manifest, boundary)
    return pkg


def _inherited_repository(manifest: Path, boundary: Path | None) -> str | None:
    for d in (manifest.parent, *manifest.parent.parents):
        candidate = d / MANIFEST_NAME
        if candidate.is_file():
            ws = read_manifest_data(candidate).get("workspace")
            if isinstance(ws, dict):
                return (ws.get("package") or {}).get("repository")
        if boundary is not None and d == boundary:
            break
    return None
