"""单包物化测试 - registry / git / path 三种来源"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path

import pytest
from conftest import CRATES_IO, FakeExecutor, FakeHttp, crate_url, make_crate, write

from forkdep.core.dep.fetcher import PackageFetcher, expand_dl_template, find_package_manifest
from forkdep.core.dep.models import PackageId
from forkdep.core.dep.workspace import load_workspace
from forkdep.core.exceptions import ExternalCollaboratorError, ResolutionError
from forkdep.utils.shell import CommandResult

LIBFOO = PackageId("libfoo", "1.2.0", CRATES_IO)


class TestRegistrySource:
    def test_reads_repository_from_crate(self, http: FakeHttp) -> None:
        meta = PackageFetcher(http, FakeExecutor()).materialize(LIBFOO)
        assert meta.repository == "https://github.com/acme/libfoo"
        assert meta.package == LIBFOO
        # 只下载这一个包
        assert [url for _, url, _ in http.requests] == [crate_url("libfoo", "1.2.0")]

    def test_checksum_verified(self, http: FakeHttp) -> None:
        blob = http.responses[crate_url("libfoo", "1.2.0")]
        fetcher = PackageFetcher(http, FakeExecutor())

        ok = fetcher.materialize(LIBFOO, checksum=hashlib.sha256(blob).hexdigest())
        assert ok.repository

        with pytest.raises(ExternalCollaboratorError, match="校验和不匹配"):
            fetcher.materialize(LIBFOO, checksum="0" * 64)

    def test_missing_repository_is_none(self) -> None:
        http = FakeHttp({crate_url("bare", "0.1.0"): make_crate("bare", "0.1.0")})
        meta = PackageFetcher(http, FakeExecutor()).materialize(PackageId("bare", "0.1.0", CRATES_IO))
        assert meta.repository is None

    def test_download_failure_propagates(self) -> None:
        with pytest.raises(ExternalCollaboratorError, match="404"):
            PackageFetcher(FakeHttp(), FakeExecutor()).materialize(LIBFOO)

    def test_corrupt_crate(self) -> None:
        http = FakeHttp({crate_url("libfoo", "1.2.0"): b"not a tarball"})
        with pytest.raises(ExternalCollaboratorError, match="损坏"):
            PackageFetcher(http, FakeExecutor()).materialize(LIBFOO)

    def test_sparse_alternate_registry_uses_config_dl(self) -> None:
        pkg = PackageId("inhouse", "2.0.0", "sparse+https://cargo.example/index/")
        http = FakeHttp({
            "https://cargo.example/index/config.json": json.dumps(
                {"dl": "https://cargo.example/dl/{crate}/{version}"},
            ).encode(),
            "https://cargo.example/dl/inhouse/2.0.0": make_crate(
                "inhouse", "2.0.0", "https://git.example/team/inhouse",
            ),
        })
        meta = PackageFetcher(http, FakeExecutor()).materialize(pkg)
        assert meta.repository == "https://git.example/team/inhouse"


class TestExpandDlTemplate:
    @pytest.mark.parametrize(("template", "name", "expected"), [
        ("https://static.crates.io/crates", "serde",
         "https://static.crates.io/crates/serde/serde-1.0.0.crate"),
        ("https://r.example/api/v1/crates", "serde",
         "https://r.example/api/v1/crates/serde/1.0.0/download"),
        ("https://r.example/{prefix}/{crate}-{version}", "serde",
         "https://r.example/se/rd/serde-1.0.0"),
        ("https://r.example/{lowerprefix}/{crate}", "Abc",
         "https://r.example/3/a/Abc"),
        ("https://r.example/{prefix}/{crate}", "ab",
         "https://r.example/2/ab"),
        ("https://r.example/{crate}?sum={sha256-checksum}", "serde",
         "https://r.example/serde?sum=feed"),
    ])
    def test_expand(self, template: str, name: str, expected: str) -> None:
        source = CRATES_IO if "crates.io" in template else "registry+https://r.example/index"
        pkg = PackageId(name, "1.0.0", source)
        assert expand_dl_template(template, pkg, checksum="feed") == expected


class TestGitSource:
    def test_clone_and_read_inherited_repository(self) -> None:
        pkg = PackageId("libbar", "0.3.0", "git+https://github.com/acme/bar-workspace?branch=main#abc123")

        def clone(cmd: list[str], cwd: str) -> CommandResult:
            dest = Path(cmd[-1])
            write(dest / "Cargo.toml", """
                [workspace]
                members = ["libbar"]

                [workspace.package]
                repository = "https://github.com/acme/bar-workspace"
                """)
            write(dest / "libbar" / "Cargo.toml", """
                [package]
                name = "libbar"
                version = "0.3.0"
                repository.workspace = true
                """)
            return CommandResult(0, "", "")

        executor = FakeExecutor()
        executor.on("git", "clone", handler=clone)

        meta = PackageFetcher(FakeHttp(), executor).materialize(pkg)
        assert meta.repository == "https://github.com/acme/bar-workspace"
        cmds = executor.commands()
        assert cmds[0][:3] == ["git", "clone", "--quiet"]
        assert cmds[0][3] == "https://github.com/acme/bar-workspace"
        assert cmds[1] == ["git", "checkout", "--quiet", "abc123"]

    def test_package_missing_from_repo(self) -> None:
        pkg = PackageId("libbar", "0.3.0", "git+https://github.com/acme/other#abc")

        def clone(cmd: list[str], cwd: str) -> CommandResult:
            write(Path(cmd[-1]) / "Cargo.toml", '[package]\nname = "other"\nversion = "1.0.0"\n')
            return CommandResult(0, "", "")

        executor = FakeExecutor()
        executor.on("git", "clone", handler=clone)
        with pytest.raises(ResolutionError, match="没有包 libbar"):
            PackageFetcher(FakeHttp(), executor).materialize(pkg)

    def test_clone_failure(self) -> None:
        pkg = PackageId("libbar", "0.3.0", "git+https://github.com/acme/bar#abc")
        executor = FakeExecutor()
        executor.on("git", "clone", returncode=128, stderr="repository not found")
        with pytest.raises(ExternalCollaboratorError, match="repository not found"):
            PackageFetcher(FakeHttp(), executor).materialize(pkg)


class TestPathSource:
    def test_path_dependency_outside_workspace(self, tmp_path: Path) -> None:
        app = write(tmp_path / "app" / "Cargo.toml", """
            [package]
            name = "app"
            version = "0.1.0"

            [dependencies]
            vendored = { path = "../vendor/vendored" }
            """)
        write(tmp_path / "vendor" / "vendored" / "Cargo.toml", """
            [package]
            name = "vendored"
            version = "0.9.0"
            repository = "https://github.com/acme/vendored"
            """)
        ws = load_workspace(app)
        fetcher = PackageFetcher(FakeHttp(), FakeExecutor(), ws)

        meta = fetcher.materialize(PackageId("vendored", "0.9.0"), origin=ws.members[0])
        assert meta.repository == "https://github.com/acme/vendored"

    def test_unlocatable_path_dependency(self, app_workspace: Path) -> None:
        ws = load_workspace(app_workspace)
        fetcher = PackageFetcher(FakeHttp(), FakeExecutor(), ws)
        with pytest.raises(ResolutionError, match="无法定位"):
            fetcher.materialize(PackageId("ghost", "0.1.0"), origin=ws.members[0])


def test_find_package_manifest_skips_target(tmp_path: Path) -> None:
    write(tmp_path / "target" / "pkg" / "Cargo.toml", '[package]\nname = "x"\nversion = "1.0.0"\n')
    write(tmp_path / "broken" / "Cargo.toml", "[package\n")
    real = write(tmp_path / "crates" / "x" / "Cargo.toml", '[package]\nname = "x"\nversion = "1.0.0"\n')
    assert find_package_manifest(tmp_path, "x") == real
