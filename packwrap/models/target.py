"""
导出目标定义
"""

from enum import Enum
from typing import Optional


class ExportTarget(Enum):
    """导出格式（封闭枚举，顺序即 build all 的执行顺序）"""

    CURSEFORGE = "curseforge"
    MODRINTH = "modrinth"
    MULTIMC = "multimc"
    TECHNIC = "technic"
    SERVER = "server"

    @property
    def extension(self) -> str:
        return ".mrpack" if self is ExportTarget.MODRINTH else ".zip"

    @property
    def timestamped(self) -> bool:
        """CurseForge / Modrinth 的文件名带时间戳以避免重名"""
        return self in (ExportTarget.CURSEFORGE, ExportTarget.MODRINTH)

    @property
    def staging_suffix(self) -> str:
        return _STAGING_SUFFIXES[self]

    @classmethod
    def parse(cls, name: str) -> Optional["ExportTarget"]:
        """解析目标名称或别名，未知名称返回 None"""
        name = name.lower()
        name = TARGET_ALIASES.get(name, name)
        try:
            return cls(name)
        except ValueError:
            return None


TARGET_ALIASES = {
    "cf": "curseforge",
    "mr": "modrinth",
    "mmc": "multimc",
}

_STAGING_SUFFIXES = {
    ExportTarget.CURSEFORGE: "temp",
    ExportTarget.MODRINTH: "temp",
    ExportTarget.MULTIMC: "mmc-temp",
    ExportTarget.TECHNIC: "technic",
    ExportTarget.SERVER: "server",
}
