"""
文件集过滤

按导出目标决定整合包中每个相对路径是复制、跳过还是整棵跳过。
"""

from enum import Enum
from typing import FrozenSet

from packwrap.models import METAFILE_SUFFIX, ExportTarget

INSTALLER_JAR = "packwiz-installer-bootstrap.jar"


class Decision(Enum):
    """过滤结果"""

    INCLUDE = "include"
    SKIP = "skip"
    SKIP_SUBTREE = "skip_subtree"


# 构建产物、版本控制与各目标的临时目录
COMMON_EXCLUDES = frozenset(
    {".build", ".git", ".temp", ".server", ".technic", ".mmc-temp", ".run"}
)

SERVER_EXCLUDES = COMMON_EXCLUDES | {
    "resourcepacks",
    "shaderpacks",
    "screenshots",
    "saves",
    "logs",
    "crash-reports",
    "options.txt",
    "optionsof.txt",
}

MULTIMC_EXCLUDES = COMMON_EXCLUDES | {"mods", INSTALLER_JAR}

_RULES = {
    ExportTarget.SERVER: (SERVER_EXCLUDES, True),
    ExportTarget.TECHNIC: (COMMON_EXCLUDES, True),
    ExportTarget.MULTIMC: (MULTIMC_EXCLUDES, False),
    ExportTarget.CURSEFORGE: (COMMON_EXCLUDES, False),
    ExportTarget.MODRINTH: (COMMON_EXCLUDES, False),
}


class FileSetFilter:
    """
    单个导出目标的过滤规则

    Server / Technic 复制 *.pw.toml 而跳过 mods/*.jar，由安装器重新下载；
    MultiMC 整体跳过 mods，由实例启动时的安装器从零开始安装。
    """

    def __init__(self, target: ExportTarget):
        self.target = target
        self.excludes: FrozenSet[str]
        self.excludes, self.keep_metafiles = _RULES[target]

    def decide(self, rel_path: str, is_dir: bool = False) -> Decision:
        """
        判断相对路径的处理方式

        Args:
            rel_path: 相对整合包根目录的路径
            is_dir: 是否为目录（决定跳过时是否整棵跳过）
        """
        rel_path = rel_path.replace("\\", "/").strip("/")
        skip = Decision.SKIP_SUBTREE if is_dir else Decision.SKIP

        if self.keep_metafiles and not is_dir:
            # 元文件始终保留，优先于任何前缀排除
            if rel_path.endswith(METAFILE_SUFFIX):
                return Decision.INCLUDE

        if (
            self.keep_metafiles
            and not is_dir
            and rel_path.startswith("mods/")
            and rel_path.endswith(".jar")
        ):
            return Decision.SKIP

        first = rel_path.split("/", 1)[0]
        if first in self.excludes:
            return skip
        return Decision.INCLUDE

    def should_include(self, rel_path: str, is_dir: bool = False) -> bool:
        return self.decide(rel_path, is_dir) is Decision.INCLUDE
