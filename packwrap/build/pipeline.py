"""
导出流水线

按目标依次完成：定位 -> 暂存 -> 过滤复制 -> 安装模组 -> 写清单 -> 打包 -> 交付到 .build/。
"""

import os
import shutil
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, List, Optional, Tuple

from loguru import logger

from packwrap.build.archive import ArchiveBuilder
from packwrap.build.filters import INSTALLER_JAR, FileSetFilter
from packwrap.build.installer import ModInstaller
from packwrap.build.manifest import (
    sanitize_icon_name,
    sanitize_pack_name,
    write_instance_cfg,
    write_mmc_pack,
    write_server_files,
)
from packwrap.build.staging import StagingArea
from packwrap.download import Downloader
from packwrap.exceptions import (
    ConfigError,
    ExportError,
    MissingMinecraftVersionError,
    OutputCollisionError,
    PackWrapError,
)
from packwrap.java import JavaManager
from packwrap.models import METAFILE_SUFFIX, ExportTarget, PackDescriptor, PackWrapConfig
from packwrap.pack import load_pack, require_pack
from packwrap.pack.locator import NESTED_DIRNAME, PACK_FILENAME
from packwrap.packwiz import PackwizClient
from packwrap.remote import resolve_pack_url

BUILD_DIRNAME = ".build"
TIMESTAMP_FORMAT = "_%m-%d_%H-%M-%S"


class ExportStage(Enum):
    """导出阶段，失败时记录在 ExportError.stage 中"""

    LOCATE = "locate"
    STAGE = "stage"
    COPY = "copy"
    INSTALL = "install"
    MANIFEST = "manifest"
    ZIP = "zip"
    DELIVER = "deliver"


@dataclass
class ExportResult:
    """单个目标的导出结果"""

    target: ExportTarget
    path: str


@dataclass
class BatchReport:
    """批量导出汇总"""

    succeeded: List[ExportResult] = field(default_factory=list)
    failed: List[Tuple[ExportTarget, PackWrapError]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def log_summary(self):
        total = len(self.succeeded) + len(self.failed)
        for result in self.succeeded:
            logger.success(f"  ✓ {result.target.value}: {result.path}")
        for target, error in self.failed:
            logger.error(f"  ✗ {target.value}: {error}")
        if self.failed:
            logger.warning(f"导出完成: {len(self.succeeded)}/{total} 成功")
        else:
            logger.success(f"导出完成: {len(self.succeeded)}/{total} 成功")


@contextmanager
def _stage(target: ExportTarget, stage: ExportStage):
    """将阶段内的异常统一包装为带阶段信息的 ExportError，配置错误原样抛出"""
    try:
        yield
    except (ExportError, ConfigError):
        raise
    except PackWrapError as e:
        raise ExportError(
            f"{stage.value} 阶段失败: {e.message}",
            target=target.value,
            stage=stage.value,
            code=e.code,
            context=dict(e.context),
        ) from e
    except OSError as e:
        raise ExportError(
            f"{stage.value} 阶段失败: {e}",
            target=target.value,
            stage=stage.value,
        ) from e
    except Exception as e:
        logger.exception(f"{target.value} 在 {stage.value} 阶段发生意外错误")
        raise ExportError(
            f"{stage.value} 阶段发生意外错误: {e}",
            target=target.value,
            stage=stage.value,
        ) from e


class ExportPipeline:
    """整合包导出协调器"""

    def __init__(
        self,
        pack_dir: str,
        config: Optional[PackWrapConfig] = None,
        java_manager: Optional[JavaManager] = None,
        installer: Optional[ModInstaller] = None,
        archive_builder: Optional[ArchiveBuilder] = None,
        packwiz: Optional[PackwizClient] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.pack_dir = os.path.abspath(pack_dir)
        self.config = config or PackWrapConfig()
        self.downloader = Downloader(
            max_retries=self.config.download.max_retries,
            retry_delay=self.config.download.retry_delay,
        )
        self.java_manager = java_manager or JavaManager(
            downloader=self.downloader,
            explicit_path=self.config.java.path,
            auto_download=self.config.java.auto_download,
        )
        self.installer = installer or ModInstaller(self.downloader)
        self.archive_builder = archive_builder or ArchiveBuilder()
        self._packwiz = packwiz
        self.clock = clock

    async def close(self):
        await self.downloader.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # ---- 公共接口 ----

    async def export(self, target: ExportTarget, use_local: Optional[bool] = None):
        """
        导出单个目标

        Args:
            target: 导出格式
            use_local: 仅 MultiMC，使用本地 pack.toml 路径而非 git 远程地址

        Returns:
            ExportResult

        Raises:
            ExportError: 任一阶段失败（含 OutputCollisionError）
        """
        logger.info(f"=== 导出 {target.value} ===")
        try:
            if target is ExportTarget.CURSEFORGE or target is ExportTarget.MODRINTH:
                path = await self._export_platform(target)
            elif target is ExportTarget.MULTIMC:
                if use_local is None:
                    use_local = self.config.build.use_local
                path = await self._export_multimc(use_local)
            elif target is ExportTarget.TECHNIC:
                path = await self._export_technic()
            else:
                path = await self._export_server()
        except PackWrapError as e:
            logger.error(f"❌ {target.value} 导出失败: {e}")
            raise

        logger.success(f"✅ {target.value} 导出完成: {path}")
        return ExportResult(target=target, path=path)

    async def export_all(
        self,
        targets: Optional[Iterable[ExportTarget]] = None,
        use_local: Optional[bool] = None,
    ) -> BatchReport:
        """按固定顺序依次导出，单个目标失败不影响其余目标"""
        report = BatchReport()
        for target in targets or list(ExportTarget):
            try:
                report.succeeded.append(await self.export(target, use_local))
            except PackWrapError as e:
                report.failed.append((target, e))
            except Exception as e:
                logger.exception(f"❌ {target.value} 导出失败")
                report.failed.append(
                    (target, ExportError(f"意外错误: {e}", target=target.value))
                )
        report.log_summary()
        return report

    def output_path(self, base_dir: str, target: ExportTarget) -> str:
        """<base>/.build/<pack>-<target>[_MM-DD_HH-MM-SS].<ext>"""
        name = f"{sanitize_pack_name(os.path.basename(base_dir))}-{target.value}"
        if target.timestamped:
            name += self.clock().strftime(TIMESTAMP_FORMAT)
        return os.path.join(base_dir, BUILD_DIRNAME, name + target.extension)

    # ---- 各阶段 ----

    def _locate(self, target: ExportTarget) -> Tuple[PackDescriptor, str, str]:
        """定位整合包，返回 (pack, 基准目录, 输出路径)"""
        with _stage(target, ExportStage.LOCATE):
            location = require_pack(self.pack_dir)
            pack = load_pack(location)

            # .minecraft 约定下，输出与暂存目录放在其上级
            base_dir = os.path.abspath(location)
            if os.path.basename(base_dir) == NESTED_DIRNAME:
                base_dir = os.path.dirname(base_dir)

            output = self.output_path(base_dir, target)
            os.makedirs(os.path.dirname(output), exist_ok=True)
            self._check_collision(target, output)
        return pack, base_dir, output

    def _staging(self, target: ExportTarget, base_dir: str) -> StagingArea:
        staging = StagingArea(base_dir, target.staging_suffix)
        with _stage(target, ExportStage.STAGE):
            staging.acquire()
        return staging

    @staticmethod
    def _check_collision(target: ExportTarget, output: str):
        if os.path.exists(output):
            raise OutputCollisionError(
                f"输出文件已存在: {output}",
                target=target.value,
                stage=ExportStage.DELIVER.value,
                context={"path": output},
            )

    @staticmethod
    def _require_minecraft_version(target: ExportTarget, pack: PackDescriptor):
        if not pack.minecraft_version:
            raise MissingMinecraftVersionError(pack.location)

    async def _install_mods(
        self,
        target: ExportTarget,
        staging: StagingArea,
        pack: PackDescriptor,
        server_only: bool,
    ):
        with _stage(target, ExportStage.INSTALL):
            jar = await self.installer.ensure_installer_jar(pack.location)
            self.installer.stage(staging.path, pack, jar)
            java = await self.java_manager.ensure(pack.minecraft_version)
            logger.info(f"使用 Java {java.version} ({java.path}) 安装模组")
            await self.installer.install(staging.path, pack, java.path, server_only)

    async def _zip_and_deliver(
        self, target: ExportTarget, source_dir: str, output: str
    ) -> str:
        partial = output + ".partial"
        with _stage(target, ExportStage.ZIP):
            await self.archive_builder.build_zip(source_dir, partial)
        return self._deliver(target, partial, output)

    def _deliver(self, target: ExportTarget, produced: str, output: str) -> str:
        with _stage(target, ExportStage.DELIVER):
            try:
                self._check_collision(target, output)
            except OutputCollisionError:
                os.remove(produced)
                raise
            shutil.move(produced, output)
        return output

    # ---- 各目标 ----

    async def _export_platform(self, target: ExportTarget) -> str:
        """CurseForge / Modrinth：交由 packwiz 生成，产物移动到 .build/"""
        pack, base_dir, output = self._locate(target)

        with self._staging(target, base_dir) as staging:
            produced = staging.join(os.path.basename(output))
            with _stage(target, ExportStage.MANIFEST):
                client = self._packwiz or PackwizClient(pack.location)
                await client.export(
                    target.value,
                    os.path.join(pack.location, PACK_FILENAME),
                    produced,
                )
                if not os.path.isfile(produced):
                    raise ExportError(
                        f"packwiz 未生成输出文件: {produced}",
                        target=target.value,
                        stage=ExportStage.MANIFEST.value,
                    )
            return self._deliver(target, produced, output)

    async def _export_multimc(self, use_local: bool) -> str:
        target = ExportTarget.MULTIMC
        pack, base_dir, output = self._locate(target)
        self._require_minecraft_version(target, pack)
        instance_name = pack.name or os.path.basename(base_dir)

        with self._staging(target, base_dir) as staging:
            with _stage(target, ExportStage.COPY):
                staging.copy_from(
                    pack.location, FileSetFilter(target), subdir=NESTED_DIRNAME
                )

            with _stage(target, ExportStage.MANIFEST):
                pack_url = await resolve_pack_url(pack.location, use_local)
                write_instance_cfg(staging.path, instance_name, pack_url)
                write_mmc_pack(staging.path, pack, self.config.build.lwjgl_version)

                icon = os.path.join(pack.location, "icon.png")
                if os.path.isfile(icon):
                    shutil.copy2(
                        icon,
                        staging.join(f"{sanitize_icon_name(instance_name)}_icon.png"),
                    )

                jar = await self.installer.ensure_installer_jar(pack.location)
                shutil.copy2(jar, staging.join(INSTALLER_JAR))

            return await self._zip_and_deliver(target, staging.path, output)

    async def _export_technic(self) -> str:
        target = ExportTarget.TECHNIC
        pack, base_dir, output = self._locate(target)
        self._require_minecraft_version(target, pack)

        with self._staging(target, base_dir) as staging:
            with _stage(target, ExportStage.COPY):
                staging.copy_from(pack.location, FileSetFilter(target))

            await self._install_mods(target, staging, pack, server_only=False)

            with _stage(target, ExportStage.MANIFEST):
                self._strip_packwiz_files(staging.path, pack)

            return await self._zip_and_deliver(target, staging.path, output)

    async def _export_server(self) -> str:
        target = ExportTarget.SERVER
        pack, base_dir, output = self._locate(target)
        self._require_minecraft_version(target, pack)

        with self._staging(target, base_dir) as staging:
            with _stage(target, ExportStage.COPY):
                staging.copy_from(pack.location, FileSetFilter(target))
                icon = os.path.join(pack.location, "icon.png")
                if os.path.isfile(icon):
                    shutil.copy2(icon, staging.join("server-icon.png"))

            await self._install_mods(target, staging, pack, server_only=True)

            with _stage(target, ExportStage.MANIFEST):
                write_server_files(
                    staging.path,
                    pack,
                    min_memory=self.config.server.min_memory,
                    max_memory=self.config.server.max_memory,
                )

            return await self._zip_and_deliver(target, staging.path, output)

    @staticmethod
    def _strip_packwiz_files(staging_dir: str, pack: PackDescriptor):
        """Technic 包不需要 packwiz 文件：删除安装器、pack/index 与 mods 中的元文件"""
        for name in (INSTALLER_JAR, PACK_FILENAME, pack.index_path):
            path = os.path.join(staging_dir, name)
            if os.path.isfile(path):
                os.remove(path)

        mods_dir = os.path.join(staging_dir, "mods")
        for root, _, files in os.walk(mods_dir):
            for name in files:
                if name.endswith(METAFILE_SUFFIX):
                    os.remove(os.path.join(root, name))
