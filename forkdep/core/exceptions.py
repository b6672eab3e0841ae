"""统一异常体系

所有业务异常继承 ForkdepError，CLI 层据此输出友好提示并以非零状态退出。
"""

from __future__ import annotations


class ForkdepError(Exception):
    """forkdep 基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(ForkdepError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ResolutionError(ForkdepError):
    """Cargo.lock 无法加载或生成"""

    code = "RESOLUTION_ERROR"


class DependencyNotFoundError(ForkdepError):
    """工作区成员中没有声明仓库地址的直接依赖"""

    code = "DEPENDENCY_NOT_FOUND"

    def __init__(self, dependency: str, message: str = "") -> None:
        super().__init__(
            message or f"未找到依赖 '{dependency}' 的直接引用或其仓库地址"
        )
        self.dependency = dependency


class MalformedManifestError(ForkdepError):
    """清单中已有的值结构不允许插入 patch"""

    code = "MALFORMED_MANIFEST"

    def __init__(self, key: str, message: str = "") -> None:
        super().__init__(message or f"清单中 '{key}' 不是表，拒绝覆盖")
        self.key = key


class ExternalCollaboratorError(ForkdepError):
    """fork / clone / 网络等外部步骤失败"""

    code = "EXTERNAL_ERROR"


class PersistenceError(ForkdepError):
    """清单或配置文件写回失败"""

    code = "IO_ERROR"

    def __init__(self, path: str, message: str = "") -> None:
        super().__init__(message or f"无法写入文件: {path}")
        self.path = path
