"""
Java 运行时管理

实现 Minecraft 版本到 Java 版本的映射、本机 Java 探测，以及从
Adoptium (Temurin) 下载受管 JRE。
"""

import asyncio
import os
import platform
import re
import shutil
import sys
import tarfile
import zipfile
from dataclasses import dataclass
from typing import List, Optional, Tuple

from loguru import logger

from packwrap.download import Downloader
from packwrap.exceptions import ConfigError, DownloadError, JavaNotFoundError

JAVA_8 = 8
JAVA_17 = 17
JAVA_21 = 21

SUPPORTED_JAVA_VERSIONS = (JAVA_8, JAVA_17, JAVA_21)

ADOPTIUM_REPOS = {
    JAVA_8: "adoptium/temurin8-binaries",
    JAVA_17: "adoptium/temurin17-binaries",
    JAVA_21: "adoptium/temurin21-binaries",
}

_JAVA_VERSION_RE = re.compile(r'version "([^"]+)"')
_LEADING_INT_RE = re.compile(r"^(\d+)")


def parse_minecraft_version(version: str) -> Tuple[int, int, int]:
    """
    解析 Minecraft 版本号为可比较的三元组

    无法解析的部分按 0 处理，例如 "1.20.5-pre1" -> (1, 20, 5)，"1.21" -> (1, 21, 0)。
    """
    parts = []
    for part in version.strip().split(".")[:3]:
        match = _LEADING_INT_RE.match(part)
        parts.append(int(match.group(1)) if match else 0)
    while len(parts) < 3:
        parts.append(0)
    return parts[0], parts[1], parts[2]


def get_required_java_version(mc_version: str) -> int:
    """
    获取 Minecraft 版本推荐的 Java 主版本

    <=1.12.2 -> 8, 1.13 ~ 1.20.4 -> 17, >=1.20.5 -> 21
    """
    version = parse_minecraft_version(mc_version)
    if version >= (1, 20, 5):
        return JAVA_21
    if version >= (1, 13, 0):
        return JAVA_17
    return JAVA_8


def get_strict_java_version(mc_version: str) -> int:
    """获取 Minecraft 版本可运行的最低 Java 主版本"""
    version = parse_minecraft_version(mc_version)
    if version >= (1, 20, 5):
        return JAVA_21
    if version >= (1, 17, 0):
        return JAVA_17
    return JAVA_8


def parse_java_version_string(output: str) -> str:
    """从 java -version 输出中提取版本字符串"""
    match = _JAVA_VERSION_RE.search(output)
    return match.group(1) if match else ""


def parse_java_major_version(version: str) -> int:
    """
    提取 Java 主版本号

    兼容旧格式 1.8.0_391 -> 8 与新格式 21.0.1 -> 21。
    """
    parts = version.split(".")
    index = 1 if version.startswith("1.") else 0
    if len(parts) > index:
        match = _LEADING_INT_RE.match(parts[index])
        if match:
            return int(match.group(1))
    return 0


@dataclass(frozen=True)
class JavaInstallation:
    """已探测到的 Java"""

    path: str
    version: str
    major: int


def get_data_dir() -> str:
    """受管数据目录（存放下载的 JRE）"""
    override = os.environ.get("PACKWRAP_DATA_DIR")
    if override:
        return override

    if sys.platform.startswith("win"):
        base = os.environ.get("APPDATA") or os.path.join(
            os.path.expanduser("~"), "AppData", "Roaming"
        )
        return os.path.join(base, "packwrap")
    if sys.platform == "darwin":
        return os.path.join(
            os.path.expanduser("~"), "Library", "Application Support", "packwrap"
        )
    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg:
        return os.path.join(xdg, "packwrap")
    return os.path.join(os.path.expanduser("~"), ".local", "share", "packwrap")


def java_executable(java_home: str) -> str:
    name = "java.exe" if sys.platform.startswith("win") else "java"
    return os.path.join(java_home, "bin", name)


def _adoptium_arch() -> str:
    machine = platform.machine().lower()
    if machine in ("x86_64", "amd64"):
        return "x64"
    if machine in ("i386", "i686", "x86"):
        return "x86-32"
    if machine in ("aarch64", "arm64"):
        return "aarch64"
    if machine.startswith("arm"):
        return "arm"
    return "x64"


def _adoptium_os() -> str:
    if sys.platform.startswith("win"):
        return "windows"
    if sys.platform == "darwin":
        return "mac"
    return "linux"


async def detect_java_version(java_cmd: str) -> JavaInstallation:
    """
    运行 `java -version` 探测版本

    Raises:
        JavaNotFoundError: 命令不存在、执行失败或输出无法解析
    """
    try:
        process = await asyncio.create_subprocess_exec(
            java_cmd,
            "-version",
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        output, _ = await process.communicate()
    except OSError as e:
        raise JavaNotFoundError(
            f"无法运行 {java_cmd} -version: {e}", context={"path": java_cmd}
        ) from e

    if process.returncode != 0:
        raise JavaNotFoundError(
            f"{java_cmd} -version 退出码 {process.returncode}",
            returncode=process.returncode,
            context={"path": java_cmd},
        )

    version = parse_java_version_string(output.decode("utf-8", errors="replace"))
    if not version:
        raise JavaNotFoundError(
            f"无法解析 {java_cmd} 的版本输出", context={"path": java_cmd}
        )

    return JavaInstallation(
        path=java_cmd, version=version, major=parse_java_major_version(version)
    )


class JavaManager:
    """Java 探测与受管 JRE 下载"""

    def __init__(
        self,
        data_dir: Optional[str] = None,
        downloader: Optional[Downloader] = None,
        explicit_path: Optional[str] = None,
        auto_download: bool = True,
    ):
        self.data_dir = data_dir or get_data_dir()
        self.downloader = downloader
        self.explicit_path = explicit_path
        self.auto_download = auto_download

    @property
    def java_root(self) -> str:
        return os.path.join(self.data_dir, "java")

    def managed_path(self, major: int) -> str:
        return os.path.join(self.java_root, f"java-{major}")

    def _candidates(self) -> List[str]:
        candidates = [self.explicit_path] if self.explicit_path else []
        on_path = shutil.which("java")
        if on_path:
            candidates.append(on_path)

        java_home = os.environ.get("JAVA_HOME")
        if java_home:
            candidates.append(java_executable(java_home))

        if os.path.isdir(self.java_root):
            for entry in sorted(os.listdir(self.java_root)):
                install_dir = os.path.join(self.java_root, entry)
                if os.path.isdir(install_dir):
                    candidates.append(java_executable(install_dir))

        # 去重并保持顺序
        seen = set()
        unique = []
        for candidate in candidates:
            key = os.path.realpath(candidate)
            if key not in seen:
                seen.add(key)
                unique.append(candidate)
        return unique

    async def find_installations(self) -> List[JavaInstallation]:
        """查找所有可用的 Java（PATH、JAVA_HOME、受管目录）"""
        installations = []
        for candidate in self._candidates():
            try:
                installations.append(await detect_java_version(candidate))
            except JavaNotFoundError as e:
                logger.debug(f"跳过 {candidate}: {e}")
        return installations

    async def find_compatible(self, mc_version: str) -> JavaInstallation:
        """
        查找与 Minecraft 版本兼容的 Java

        优先精确匹配推荐版本，其次任意不低于最低版本的安装。
        """
        if not mc_version:
            raise ConfigError("Minecraft 版本为空，无法选择 Java")

        if self.explicit_path:
            java = await detect_java_version(self.explicit_path)
            if java.major < get_strict_java_version(mc_version):
                logger.warning(
                    f"配置的 Java {java.version} 可能不兼容 Minecraft {mc_version}"
                )
            return java

        required = get_required_java_version(mc_version)
        strict = get_strict_java_version(mc_version)
        installations = await self.find_installations()

        for java in installations:
            if java.major == required:
                return java
        for java in installations:
            if java.major >= strict:
                return java

        found = [java.major for java in installations]
        raise JavaNotFoundError(
            f"未找到兼容的 Java (需要 Java {strict}+，已找到: {found or '无'})",
            context={"minecraft": mc_version, "found": found},
        )

    async def ensure(self, mc_version: str) -> JavaInstallation:
        """确保有兼容的 Java，必要时下载受管 JRE"""
        try:
            return await self.find_compatible(mc_version)
        except JavaNotFoundError:
            if self.explicit_path or not self.auto_download:
                raise

        required = get_required_java_version(mc_version)
        logger.info(f"未找到适用于 Minecraft {mc_version} 的 Java，开始下载 Java {required}")
        java_home = await self.download_and_install(required)
        java = await detect_java_version(java_executable(java_home))
        logger.success(f"Java {required} 已就绪: {java_home}")
        return java

    async def download_and_install(self, major: int) -> str:
        """
        下载并解压 Temurin JRE 到受管目录

        Returns:
            JRE 根目录
        """
        if major not in SUPPORTED_JAVA_VERSIONS:
            raise ConfigError(
                f"不支持的 Java 版本: {major} (支持: {list(SUPPORTED_JAVA_VERSIONS)})"
            )

        target_dir = self.managed_path(major)
        if os.path.isdir(target_dir):
            return target_dir

        os.makedirs(self.java_root, exist_ok=True)
        downloader = self.downloader or Downloader()
        try:
            url, name, checksum_url = await self._find_asset(downloader, major)
            expected = None
            if checksum_url:
                expected = (await downloader.fetch_text(checksum_url)).split()[0]

            archive_path = os.path.join(self.java_root, name)
            await downloader.download_file(
                url, archive_path, expected_hash=expected, algorithm="sha256"
            )
        finally:
            if self.downloader is None:
                await downloader.close()

        try:
            self._extract(archive_path, target_dir)
        finally:
            if os.path.exists(archive_path):
                os.remove(archive_path)

        logger.success(f"Java {major} 安装完成")
        return target_dir

    async def _find_asset(
        self, downloader: Downloader, major: int
    ) -> Tuple[str, str, Optional[str]]:
        pattern = re.compile(
            rf"OpenJDK{major}U-jre_{re.escape(_adoptium_arch())}_"
            rf"{_adoptium_os()}_hotspot_.*\.(zip|tar\.gz)$"
        )
        assets = await downloader.latest_release_assets(ADOPTIUM_REPOS[major])
        by_name = {asset.get("name", ""): asset for asset in assets}

        for name, asset in by_name.items():
            if pattern.match(name):
                checksum = by_name.get(f"{name}.sha256.txt")
                return (
                    asset["browser_download_url"],
                    name,
                    checksum["browser_download_url"] if checksum else None,
                )

        raise DownloadError(
            f"未找到适用于 {_adoptium_os()} {_adoptium_arch()} 的 Java {major}",
            context={"repo": ADOPTIUM_REPOS[major]},
        )

    def _extract(self, archive_path: str, target_dir: str):
        """解压归档，将唯一的顶层目录内容移动到 target_dir"""
        temp_dir = f"{target_dir}-temp"
        if os.path.exists(temp_dir):
            shutil.rmtree(temp_dir)

        try:
            if archive_path.endswith(".zip"):
                with zipfile.ZipFile(archive_path) as archive:
                    archive.extractall(temp_dir)
            else:
                with tarfile.open(archive_path, "r:gz") as archive:
                    archive.extractall(temp_dir)

            roots = [
                os.path.join(temp_dir, entry)
                for entry in os.listdir(temp_dir)
                if os.path.isdir(os.path.join(temp_dir, entry))
            ]
            if not roots:
                raise DownloadError(
                    "归档中没有 Java 目录", context={"archive": archive_path}
                )

            java_home = roots[0]
            # macOS 包内为 Contents/Home
            mac_home = os.path.join(java_home, "Contents", "Home")
            if os.path.isdir(mac_home):
                java_home = mac_home

            shutil.move(java_home, target_dir)
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)

        executable = java_executable(target_dir)
        if os.path.exists(executable):
            os.chmod(executable, 0o755)
