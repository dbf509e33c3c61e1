"""
配置模型

packwrap.toml 的数据类定义与加载。
"""

import os
from dataclasses import dataclass, field
from typing import Optional

import toml

from packwrap.exceptions import ConfigError

CONFIG_FILENAME = "packwrap.toml"


@dataclass
class BuildConfig:
    """导出配置"""

    use_local: bool = False
    lwjgl_version: str = "3.3.3"

    @classmethod
    def from_dict(cls, data: dict) -> "BuildConfig":
        return cls(
            use_local=bool(data.get("use_local", False)),
            lwjgl_version=str(data.get("lwjgl_version", "3.3.3")),
        )


@dataclass
class ServerConfig:
    """服务端启动脚本配置"""

    min_memory: str = "1G"
    max_memory: str = "4G"

    @classmethod
    def from_dict(cls, data: dict) -> "ServerConfig":
        return cls(
            min_memory=str(data.get("min_memory", "1G")),
            max_memory=str(data.get("max_memory", "4G")),
        )


@dataclass
class JavaConfig:
    """Java 选择配置"""

    path: Optional[str] = None
    auto_download: bool = True

    @classmethod
    def from_dict(cls, data: dict) -> "JavaConfig":
        return cls(
            path=data.get("path") or None,
            auto_download=bool(data.get("auto_download", True)),
        )


@dataclass
class DownloadConfig:
    """下载重试配置"""

    max_retries: int = 3
    retry_delay: float = 1.0

    @classmethod
    def from_dict(cls, data: dict) -> "DownloadConfig":
        max_retries = data.get("max_retries", 3)
        if not isinstance(max_retries, int) or max_retries < 0:
            raise ConfigError(
                "download.max_retries 必须为非负整数",
                context={"value": max_retries},
            )
        return cls(
            max_retries=max_retries,
            retry_delay=float(data.get("retry_delay", 1.0)),
        )


@dataclass
class PackWrapConfig:
    """PackWrap 完整配置"""

    build: BuildConfig = field(default_factory=BuildConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    java: JavaConfig = field(default_factory=JavaConfig)
    download: DownloadConfig = field(default_factory=DownloadConfig)

    @classmethod
    def from_dict(cls, data: dict) -> "PackWrapConfig":
        return cls(
            build=BuildConfig.from_dict(data.get("build", {})),
            server=ServerConfig.from_dict(data.get("server", {})),
            java=JavaConfig.from_dict(data.get("java", {})),
            download=DownloadConfig.from_dict(data.get("download", {})),
        )

    @classmethod
    def load(cls, path: Optional[str] = None, pack_dir: Optional[str] = None):
        """
        加载配置文件

        Args:
            path: 显式指定的配置文件，必须存在
            pack_dir: 整合包目录，存在 packwrap.toml 时读取

        Returns:
            PackWrapConfig，无配置文件时使用默认值
        """
        if path is None and pack_dir is not None:
            candidate = os.path.join(pack_dir, CONFIG_FILENAME)
            if os.path.isfile(candidate):
                path = candidate

        if path is None:
            return cls()

        if not os.path.isfile(path):
            raise ConfigError(f"配置文件不存在: {path}", context={"path": path})

        try:
            data = toml.load(path)
        except toml.TomlDecodeError as e:
            raise ConfigError(
                f"配置文件解析失败: {e}", context={"path": path}
            ) from e
        return cls.from_dict(data)
