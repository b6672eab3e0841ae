"""依赖 -> 上游仓库地址解析

只看工作区成员在 Cargo.lock 中的直接依赖边；仅以传递依赖出现的包不解析。

多个成员（或同名的多个版本）声明了不同仓库地址时不做协调：
按成员顺序、再按边顺序，返回第一个非空的 repository，其余匹配不会被物化。
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from forkdep.core.dep.fetcher import PackageFetcher
from forkdep.core.dep.models import LockGraph, MemberPackage, PackageId
from forkdep.core.exceptions import DependencyNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedRepository:
    """解析结果：命中的锁定包及其上游仓库地址"""

    package: PackageId
    member: MemberPackage
    url: str


class RepositoryResolver:
    """在锁定图中定位依赖并读取其 repository 元信息"""

    def __init__(self, fetcher: PackageFetcher) -> None:
        self.fetcher = fetcher

    def resolve(
        self,
        graph: LockGraph,
        members: Sequence[MemberPackage],
        dependency_name: str,
    ) -> str:
        return self.locate(graph, members, dependency_name).url

    def locate(
        self,
        graph: LockGraph,
        members: Sequence[MemberPackage],
        dependency_name: str,
    ) -> ResolvedRepository:
        """返回第一个声明了 repository 的直接依赖

        Raises:
            DependencyNotFoundError: 没有直接依赖边，或命中的包都未声明 repository
        """
        matched = 0
        for member, dep in direct_matches(graph, members, dependency_name):
            matched += 1
            meta = self.fetcher.materialize(dep, origin=member, checksum=graph.checksum(dep))
            if meta.repository:
                logger.info("%s -> %s (经由 %s)", dep, meta.repository, member.name)
                return ResolvedRepository(package=dep, member=member, url=meta.repository)
            logger.info("%s 未声明 repository，继续查找", dep)

        if matched:
            raise DependencyNotFoundError(
                dependency_name,
                f"依赖 '{dependency_name}' 的 {matched} 个直接引用均未声明 repository",
            )
        raise DependencyNotFoundError(
            dependency_name,
            f"工作区成员中没有对 '{dependency_name}' 的直接依赖",
        )


def direct_matches(
    graph: LockGraph,
    members: Sequence[MemberPackage],
    dependency_name: str,
) -> Iterator[tuple[MemberPackage, PackageId]]:
    """按成员顺序、边顺序产出名称匹配的直接依赖"""
    for member in members:
        if member.id not in graph:
            logger.warning("成员 %s 不在锁文件中，跳过", member.id)
            continue
        for dep in graph.deps(member.id):
            if dep.name == dependency_name:
                yield member, dep
