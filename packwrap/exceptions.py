"""
PackWrap 统一异常体系

提供分层的异常结构，支持错误代码、上下文信息和 JSON 序列化。
"""

from typing import Any, Dict, List, Optional


class PackWrapError(Exception):
    """PackWrap 基础异常类"""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self._get_default_code()
        self.context = context or {}

    def _get_default_code(self) -> str:
        """获取默认错误代码"""
        return "E000"

    def to_dict(self) -> Dict[str, Any]:
        """将异常转换为字典格式"""
        return {
            "error": True,
            "code": self.code,
            "message": self.message,
            "context": self.context,
            "type": self.__class__.__name__,
        }

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class ConfigError(PackWrapError):
    """配置相关错误"""

    def _get_default_code(self) -> str:
        return "E100"


class PackNotFoundError(ConfigError):
    """找不到 pack.toml"""

    def __init__(self, start_dir: str):
        super().__init__(
            f"在 {start_dir} 及其上级目录中找不到 pack.toml "
            "(请在整合包目录中运行，或使用 --dir 指定目录)",
            context={"start_dir": start_dir},
        )

    def _get_default_code(self) -> str:
        return "E101"


class PackFormatError(ConfigError):
    """pack.toml / index.toml 无法解析"""

    def _get_default_code(self) -> str:
        return "E102"


class MissingMinecraftVersionError(ConfigError):
    """pack.toml 中未声明 Minecraft 版本"""

    def __init__(self, pack_dir: str):
        super().__init__(
            "无法从 pack.toml 确定 Minecraft 版本 "
            "(请设置 [versions] minecraft 或 mc-version)",
            context={"pack_dir": pack_dir},
        )

    def _get_default_code(self) -> str:
        return "E103"


class ExternalToolError(PackWrapError):
    """外部工具调用失败（非零退出码或不在 PATH 中）"""

    tool = "external"

    def __init__(
        self,
        message: str,
        returncode: Optional[int] = None,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, code, context)
        self.returncode = returncode
        self.context["tool"] = self.tool
        if returncode is not None:
            self.context["returncode"] = returncode

    def _get_default_code(self) -> str:
        return "E200"


class PackwizError(ExternalToolError):
    """packwiz 调用失败"""

    tool = "packwiz"

    def _get_default_code(self) -> str:
        return "E201"


class InstallerError(ExternalToolError):
    """packwiz-installer-bootstrap 调用失败"""

    tool = "packwiz-installer"

    def _get_default_code(self) -> str:
        return "E202"


class GitError(ExternalToolError):
    """git 调用失败"""

    tool = "git"

    def _get_default_code(self) -> str:
        return "E203"


class JavaNotFoundError(ExternalToolError):
    """找不到兼容的 Java"""

    tool = "java"

    def _get_default_code(self) -> str:
        return "E210"


class DownloadError(PackWrapError):
    """下载相关错误"""

    def _get_default_code(self) -> str:
        return "E300"


class DownloadChecksumError(DownloadError):
    """下载校验错误"""

    def _get_default_code(self) -> str:
        return "E302"


class ExportError(PackWrapError):
    """导出失败，记录失败所在阶段"""

    def __init__(
        self,
        message: str,
        target: Optional[str] = None,
        stage: Optional[str] = None,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, code, context)
        self.target = target
        self.stage = stage
        if target:
            self.context["target"] = target
        if stage:
            self.context["stage"] = stage

    def _get_default_code(self) -> str:
        return "E400"


class OutputCollisionError(ExportError):
    """输出文件已存在"""

    def _get_default_code(self) -> str:
        return "E401"


class ArchiveError(PackWrapError):
    """ZIP 生成错误"""

    def _get_default_code(self) -> str:
        return "E402"


class ManifestError(PackWrapError):
    """清单文件生成错误"""

    def _get_default_code(self) -> str:
        return "E403"


class BatchExportError(PackWrapError):
    """批量导出中至少有一个目标失败"""

    def __init__(self, failed: List[str]):
        super().__init__(
            f"{len(failed)} 个导出目标失败: {', '.join(failed)}",
            context={"failed": failed},
        )

    def _get_default_code(self) -> str:
        return "E410"


__all__ = [
    # 基础异常
    "PackWrapError",
    # 配置异常
    "ConfigError",
    "PackNotFoundError",
    "PackFormatError",
    "MissingMinecraftVersionError",
    # 外部工具异常
    "ExternalToolError",
    "PackwizError",
    "InstallerError",
    "GitError",
    "JavaNotFoundError",
    # 下载异常
    "DownloadError",
    "DownloadChecksumError",
    # 导出异常
    "ExportError",
    "OutputCollisionError",
    "ArchiveError",
    "ManifestError",
    "BatchExportError",
]
