"""
PackWrap 导出模块

包含文件过滤、暂存区、模组安装、清单生成、ZIP 打包与导出流水线。
"""

from packwrap.build.archive import ArchiveBuilder
from packwrap.build.filters import INSTALLER_JAR, Decision, FileSetFilter
from packwrap.build.installer import ModInstaller
from packwrap.build.pipeline import (
    BatchReport,
    ExportPipeline,
    ExportResult,
    ExportStage,
)
from packwrap.build.staging import StagingArea

__all__ = [
    "ArchiveBuilder",
    "INSTALLER_JAR",
    "Decision",
    "FileSetFilter",
    "ModInstaller",
    "BatchReport",
    "ExportPipeline",
    "ExportResult",
    "ExportStage",
    "StagingArea",
]
