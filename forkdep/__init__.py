"""cargo-forkdep - 将 Cargo 依赖重定向到本地 fork 副本"""

__version__ = "0.1.0"
