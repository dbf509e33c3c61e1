"""
整合包数据模型

定义 pack.toml / index.toml / *.pw.toml 对应的数据类。
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

METAFILE_SUFFIX = ".pw.toml"


def _table(data: dict, key: str) -> dict:
    """取子表，类型不符时视为空表"""
    value = data.get(key)
    return value if isinstance(value, dict) else {}


def _text(data: dict, key: str) -> str:
    value = data.get(key)
    return "" if value is None else str(value)


class LoaderKind(Enum):
    """模组加载器类型"""

    FABRIC = "fabric"
    FORGE = "forge"
    QUILT = "quilt"
    NONE = "none"


class Side(Enum):
    """模组运行端"""

    CLIENT = "client"
    SERVER = "server"
    BOTH = "both"

    @classmethod
    def parse(cls, value) -> "Side":
        try:
            return cls(str(value or "").lower())
        except ValueError:
            return cls.BOTH


class Platform(Enum):
    """模组来源平台"""

    MODRINTH = "modrinth"
    CURSEFORGE = "curseforge"


@dataclass(frozen=True)
class LoaderInfo:
    """加载器信息"""

    kind: LoaderKind = LoaderKind.NONE
    version: str = ""


@dataclass(frozen=True)
class IndexEntry:
    """index.toml 中的单个文件条目"""

    file: str
    hash: str = ""
    metafile: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "IndexEntry":
        return cls(
            file=data.get("file", ""),
            hash=data.get("hash", ""),
            metafile=bool(data.get("metafile", False)),
        )


@dataclass
class IndexFile:
    """index.toml"""

    hash_format: str = ""
    entries: List[IndexEntry] = field(default_factory=list)

    @property
    def metafiles(self) -> List[IndexEntry]:
        return [entry for entry in self.entries if entry.metafile]

    @classmethod
    def from_dict(cls, data: dict) -> "IndexFile":
        return cls(
            hash_format=data.get("hash-format", ""),
            entries=[IndexEntry.from_dict(item) for item in data.get("files", [])],
        )


@dataclass(frozen=True)
class PlatformRef:
    """模组在 Modrinth / CurseForge 上的引用"""

    platform: Platform
    project_id: str
    version_id: str = ""


@dataclass(frozen=True)
class ModDescriptor:
    """
    单个模组的元数据（*.pw.toml）。

    每次列出或导出时重新解码，不在内存中修改；更新通过 packwiz 的
    remove / add 完成。
    """

    name: str
    filename: str
    side: Side = Side.BOTH
    download_url: str = ""
    download_hash: str = ""
    download_hash_format: str = ""
    platform_ref: Optional[PlatformRef] = None
    parse_id: str = ""
    path: str = ""

    @property
    def platform(self) -> str:
        if self.platform_ref is None:
            return "url"
        return self.platform_ref.platform.value

    @classmethod
    def from_dict(cls, data: dict, path: str = "") -> "ModDescriptor":
        """
        将 *.pw.toml 的内容转换为 ModDescriptor。

        Args:
            data: 解析后的 TOML 字典
            path: 元文件相对路径，用于推导 parse_id
        """
        download = _table(data, "download")
        update = _table(data, "update")

        platform_ref = None
        modrinth = _table(update, "modrinth")
        curseforge = _table(update, "curseforge")
        if modrinth.get("mod-id"):
            platform_ref = PlatformRef(
                platform=Platform.MODRINTH,
                project_id=str(modrinth["mod-id"]),
                version_id=str(modrinth.get("version", "")),
            )
        elif curseforge.get("project-id"):
            platform_ref = PlatformRef(
                platform=Platform.CURSEFORGE,
                project_id=str(curseforge["project-id"]),
                version_id=str(curseforge.get("file-id", "") or ""),
            )

        basename = os.path.basename(path.replace("\\", "/"))
        if basename.endswith(METAFILE_SUFFIX):
            basename = basename[: -len(METAFILE_SUFFIX)]

        return cls(
            name=_text(data, "name"),
            filename=_text(data, "filename"),
            side=Side.parse(data.get("side")),
            download_url=_text(download, "url"),
            download_hash=_text(download, "hash"),
            download_hash_format=_text(download, "hash-format"),
            platform_ref=platform_ref,
            parse_id=basename,
            path=path,
        )


@dataclass
class PackDescriptor:
    """
    pack.toml 的结构化表示，每次导出运行构造一次。

    minecraft_version 为空时，任何 Java 兼容性查询或服务端下载都必须
    先报配置错误。
    """

    name: str = ""
    author: str = ""
    version: str = ""
    description: str = ""
    pack_format: str = ""
    minecraft_version: str = ""
    loader: LoaderInfo = field(default_factory=LoaderInfo)
    index_path: str = "index.toml"
    index: IndexFile = field(default_factory=IndexFile)
    mods: List[ModDescriptor] = field(default_factory=list)
    location: str = ""

    @classmethod
    def from_dict(cls, data: dict, location: str = "") -> "PackDescriptor":
        versions = _table(data, "versions")
        index = _table(data, "index")

        # 优先使用 [versions] minecraft，回退到旧的 mc-version
        mc_version = _text(versions, "minecraft") or _text(data, "mc-version")

        loader = LoaderInfo()
        for kind in (LoaderKind.FABRIC, LoaderKind.FORGE, LoaderKind.QUILT):
            if versions.get(kind.value):
                loader = LoaderInfo(kind=kind, version=str(versions[kind.value]))
                break

        return cls(
            name=data.get("name", ""),
            author=data.get("author", ""),
            version=data.get("version", ""),
            description=data.get("description", ""),
            pack_format=data.get("pack-format", ""),
            minecraft_version=mc_version,
            loader=loader,
            index_path=index.get("file") or "index.toml",
            location=location,
        )

    @property
    def mod_count(self) -> int:
        return len(self.index.metafiles)
