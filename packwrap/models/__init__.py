"""
PackWrap 数据模型包

包含整合包模型、导出目标和配置模型定义。
"""

from packwrap.models.pack import (
    METAFILE_SUFFIX,
    LoaderKind,
    Side,
    Platform,
    LoaderInfo,
    IndexEntry,
    IndexFile,
    PlatformRef,
    ModDescriptor,
    PackDescriptor,
)
from packwrap.models.target import ExportTarget, TARGET_ALIASES
from packwrap.models.config import (
    BuildConfig,
    ServerConfig,
    JavaConfig,
    DownloadConfig,
    PackWrapConfig,
)

__all__ = [
    # 整合包模型
    "METAFILE_SUFFIX",
    "LoaderKind",
    "Side",
    "Platform",
    "LoaderInfo",
    "IndexEntry",
    "IndexFile",
    "PlatformRef",
    "ModDescriptor",
    "PackDescriptor",
    # 导出目标
    "ExportTarget",
    "TARGET_ALIASES",
    # 配置模型
    "BuildConfig",
    "ServerConfig",
    "JavaConfig",
    "DownloadConfig",
    "PackWrapConfig",
]
