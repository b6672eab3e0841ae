"""PackageId / LockGraph 模型测试"""

from __future__ import annotations

import pytest

from forkdep.core.dep.models import LockGraph, PackageId

CRATES_IO = "registry+https://github.com/rust-lang/crates.io-index"


class TestPackageId:
    def test_equality_uses_full_triple(self) -> None:
        a = PackageId("serde", "1.0.0", CRATES_IO)
        assert a == PackageId("serde", "1.0.0", CRATES_IO)
        assert a != PackageId("serde", "1.0.1", CRATES_IO)
        assert a != PackageId("serde", "1.0.0", None)
        assert len({a, PackageId("serde", "1.0.0", CRATES_IO)}) == 1

    @pytest.mark.parametrize(("source", "expected"), [
        (CRATES_IO, "crates-io"),
        ("sparse+https://index.crates.io/", "crates-io"),
        ("registry+https://my-registry.example/index", "https://my-registry.example/index"),
        ("sparse+https://cargo.example/api/", "sparse+https://cargo.example/api/"),
        ("git+https://github.com/acme/libfoo?branch=dev#0123abcd", "https://github.com/acme/libfoo"),
        (None, None),
    ])
    def test_registry_key(self, source: str | None, expected: str | None) -> None:
        assert PackageId("x", "1.0.0", source).registry_key() == expected

    def test_git_parts(self) -> None:
        pkg = PackageId("libfoo", "0.3.0", "git+https://github.com/acme/libfoo?rev=abc#abcdef1234")
        assert pkg.is_git and not pkg.is_registry and not pkg.is_path
        assert pkg.git_url == "https://github.com/acme/libfoo"
        assert pkg.git_commit == "abcdef1234"

    def test_str(self) -> None:
        assert str(PackageId("app", "0.1.0")) == "app 0.1.0"
        assert str(PackageId("a", "1.0.0", CRATES_IO)) == f"a 1.0.0 ({CRATES_IO})"


class TestLockGraph:
    def test_deps(self) -> None:
        app = PackageId("app", "0.1.0")
        foo1 = PackageId("foo", "1.0.0", CRATES_IO)
        foo2 = PackageId("foo", "2.0.0", CRATES_IO)
        graph = LockGraph({app: [foo1, foo2], foo1: [], foo2: []})

        assert graph.deps(app) == (foo1, foo2)
        assert graph.deps(PackageId("ghost", "0.0.0")) == ()
        assert app in graph and len(graph) == 3
        assert graph.generated is False
