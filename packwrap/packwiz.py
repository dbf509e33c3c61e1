"""
packwiz 客户端

以子进程方式调用外部 packwiz 命令，标准输入输出直通。
"""

import asyncio
import shutil
from typing import Optional

from loguru import logger

from packwrap.exceptions import PackwizError

PACKWIZ_BINARY = "packwiz"
PACKWIZ_INSTALL_HINT = "go install github.com/packwiz/packwiz@latest"


def is_packwiz_installed(binary: str = PACKWIZ_BINARY) -> bool:
    """检查 packwiz 是否可执行（PATH 中的命令名或可执行文件路径）"""
    return shutil.which(binary) is not None


class PackwizClient:
    """packwiz 命令客户端"""

    def __init__(self, pack_dir: str, binary: str = PACKWIZ_BINARY):
        self.pack_dir = pack_dir
        self.binary = binary

    async def run(self, args: list[str], interactive: bool = True) -> None:
        """
        在整合包目录中执行 packwiz

        Args:
            args: 子命令与参数
            interactive: 是否连接标准输入（导出等非交互操作应关闭）

        Raises:
            PackwizError: packwiz 不存在或退出码非零
        """
        if not is_packwiz_installed(self.binary):
            raise PackwizError(
                f"未找到 {self.binary}，请先安装 packwiz: {PACKWIZ_INSTALL_HINT}"
            )
        logger.info(f"[packwiz] ({self.pack_dir}) {self.binary} {' '.join(args)}")
        try:
            process = await asyncio.create_subprocess_exec(
                self.binary,
                *args,
                cwd=self.pack_dir,
                stdin=None if interactive else asyncio.subprocess.DEVNULL,
            )
            returncode = await process.wait()
        except OSError as e:
            raise PackwizError(
                f"无法运行 {self.binary}: {e} (请确认 packwiz 已安装并在 PATH 中)"
            ) from e

        if returncode != 0:
            raise PackwizError(
                f"packwiz {' '.join(args)} 失败 (退出码 {returncode})",
                returncode=returncode,
            )

    async def refresh(self):
        await self.run(["refresh"])

    async def add(self, source: str, slug: str, version: Optional[str] = None):
        """
        通过指定平台添加模组

        Args:
            source: modrinth 或 curseforge
            slug: 项目 slug 或 URL
            version: Modrinth 版本 ID 或 CurseForge 文件 ID
        """
        args = [source, "add", slug]
        if version:
            args += ["--version" if source == "modrinth" else "--file", version]
        await self.run(args)

    async def remove(self, name: str):
        await self.run(["remove", name])

    async def update(self, name: Optional[str] = None):
        await self.run(["update", name] if name else ["update", "--all"])

    async def list(self):
        await self.run(["list"])

    async def export(self, platform: str, pack_file: str, output: str):
        """调用 packwiz <platform> export 生成平台整合包"""
        await self.run(
            [platform, "export", "--pack-file", pack_file, "-o", output],
            interactive=False,
        )


def parse_mod_identifier(identifier: str) -> tuple[str, str, str]:
    """
    解析模组标识

    支持 URL、source:slug、source:slug:version 与裸 slug。

    Returns:
        (source, slug, version)，source 为 url / auto / modrinth / curseforge
    """
    if identifier.startswith(("http://", "https://")):
        return "url", identifier, ""

    parts = identifier.split(":")
    aliases = {"mr": "modrinth", "cf": "curseforge"}
    if len(parts) == 2:
        return aliases.get(parts[0], parts[0]), parts[1], ""
    if len(parts) == 3:
        return aliases.get(parts[0], parts[0]), parts[1], parts[2]
    return "auto", identifier, ""


async def add_mod(client: PackwizClient, identifier: str) -> None:
    """按标识添加模组，未指明来源时先尝试 Modrinth 再尝试 CurseForge"""
    source, slug, version = parse_mod_identifier(identifier)

    if source in ("modrinth", "curseforge"):
        await client.add(source, slug, version or None)
        return

    if source == "url":
        if "modrinth.com" in slug:
            await client.add("modrinth", slug)
            return
        if "curseforge.com" in slug:
            await client.add("curseforge", slug)
            return

    if source not in ("url", "auto"):
        raise PackwizError(f"未知的模组来源: {source}")

    try:
        await client.add("modrinth", slug, version or None)
    except PackwizError as e:
        logger.warning(f"Modrinth 添加失败，尝试 CurseForge: {e}")
        await client.add("curseforge", slug, version or None)
