"""
模组安装器

调用 packwiz-installer-bootstrap 将模组元数据实际下载到暂存区。
"""

import asyncio
import os
import shutil
from typing import Optional

from loguru import logger

from packwrap.build.filters import INSTALLER_JAR
from packwrap.download import Downloader
from packwrap.exceptions import DownloadError, InstallerError
from packwrap.models import PackDescriptor
from packwrap.pack.locator import PACK_FILENAME

INSTALLER_REPO = "packwiz/packwiz-installer-bootstrap"


class ModInstaller:
    """packwiz-installer-bootstrap 调用封装"""

    def __init__(self, downloader: Optional[Downloader] = None):
        self.downloader = downloader

    async def ensure_installer_jar(self, pack_location: str) -> str:
        """
        获取安装器 jar，缺失时从 GitHub 最新 Release 下载并缓存到整合包目录

        Returns:
            jar 路径
        """
        jar_path = os.path.join(pack_location, INSTALLER_JAR)
        if os.path.isfile(jar_path):
            return jar_path

        logger.info(f"下载 {INSTALLER_JAR}...")
        downloader = self.downloader or Downloader()
        try:
            assets = await downloader.latest_release_assets(INSTALLER_REPO)
            url = next(
                (
                    asset["browser_download_url"]
                    for asset in assets
                    if asset.get("name") == INSTALLER_JAR
                ),
                None,
            )
            if url is None:
                raise DownloadError(
                    f"最新 Release 中没有 {INSTALLER_JAR}",
                    context={"repo": INSTALLER_REPO},
                )
            await downloader.download_file(url, jar_path)
        finally:
            if self.downloader is None:
                await downloader.close()
        return jar_path

    def stage(self, staging_dir: str, pack: PackDescriptor, installer_jar: str):
        """将 pack.toml、索引文件与安装器 jar 复制到暂存区"""
        shutil.copy2(
            os.path.join(pack.location, PACK_FILENAME),
            os.path.join(staging_dir, PACK_FILENAME),
        )

        index_src = os.path.join(pack.location, pack.index_path)
        index_dest = os.path.join(staging_dir, pack.index_path)
        os.makedirs(os.path.dirname(index_dest), exist_ok=True)
        shutil.copy2(index_src, index_dest)

        shutil.copy2(installer_jar, os.path.join(staging_dir, INSTALLER_JAR))

    async def install(
        self,
        staging_dir: str,
        pack: PackDescriptor,
        java_path: str,
        server_only: bool = False,
    ) -> None:
        """
        在暂存区中运行安装器

        执行 `java -jar packwiz-installer-bootstrap.jar pack.toml [-s server] -g`，
        不连接标准输入以避免交互提示阻塞，输出直通控制台。

        Raises:
            InstallerError: 前置文件缺失、java 无法执行或退出码非零
        """
        for required in (PACK_FILENAME, pack.index_path, INSTALLER_JAR):
            if not os.path.isfile(os.path.join(staging_dir, required)):
                raise InstallerError(
                    f"暂存区缺少 {required}",
                    context={"staging_dir": staging_dir},
                )

        args = ["-jar", INSTALLER_JAR, PACK_FILENAME]
        if server_only:
            args += ["-s", "server"]
        args.append("-g")

        side = "服务端" if server_only else "全部"
        logger.info(f"安装{side}模组 ({pack.name or pack.location})...")
        try:
            process = await asyncio.create_subprocess_exec(
                java_path,
                *args,
                cwd=staging_dir,
                stdin=asyncio.subprocess.DEVNULL,
            )
            returncode = await process.wait()
        except OSError as e:
            raise InstallerError(
                f"无法运行 {java_path}: {e}", context={"java": java_path}
            ) from e

        if returncode != 0:
            raise InstallerError(
                f"packwiz 安装器失败 (退出码 {returncode})",
                returncode=returncode,
                context={"java": java_path},
            )
        logger.success("模组安装完成")
