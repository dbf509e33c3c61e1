"""
CLI 模块

命令行接口实现。
"""

import asyncio
import functools
import os
from dataclasses import dataclass, field
from typing import Optional

import click
from loguru import logger

from packwrap import __version__
from packwrap.build import ExportPipeline
from packwrap.download import Downloader
from packwrap.exceptions import BatchExportError, PackWrapError
from packwrap.java import (
    JavaManager,
    get_required_java_version,
    get_strict_java_version,
)
from packwrap.logger import resolve_level, setup_logger
from packwrap.models import ExportTarget, PackDescriptor, PackWrapConfig
from packwrap.modlist import render_modlist, write_modlist
from packwrap.pack import load_pack, locate_pack, require_pack
from packwrap.packwiz import PackwizClient, add_mod
from packwrap.remote import resolve_pack_url

# 别名 -> 命令名
COMMAND_ALIASES = {
    "export": "build",
    "mods": "modlist",
    "url": "detect",
    "jdk": "java",
}


class AliasedGroup(click.Group):
    """支持别名的命令组"""

    def get_command(self, ctx, cmd_name):
        return super().get_command(ctx, COMMAND_ALIASES.get(cmd_name, cmd_name))

    def resolve_command(self, ctx, args):
        _, cmd, args = super().resolve_command(ctx, args)
        return cmd.name if cmd else None, cmd, args


@dataclass
class PackContext:
    """命令间共享的整合包目录与配置"""

    start_dir: str = "."
    config_path: Optional[str] = None
    _config: Optional[PackWrapConfig] = field(default=None, repr=False)

    @property
    def pack_location(self) -> str:
        return require_pack(self.start_dir)

    @property
    def config(self) -> PackWrapConfig:
        if self._config is None:
            self._config = PackWrapConfig.load(
                self.config_path, pack_dir=locate_pack(self.start_dir)
            )
        return self._config

    def load_pack(self, with_mods: bool = True) -> PackDescriptor:
        return load_pack(self.pack_location, with_mods=with_mods)

    def downloader(self) -> Downloader:
        return Downloader(
            max_retries=self.config.download.max_retries,
            retry_delay=self.config.download.retry_delay,
        )


def coro(func):
    """以 asyncio.run 执行异步命令，并将 PackWrapError 转换为 ClickException"""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return asyncio.run(func(*args, **kwargs))
        except (click.ClickException, click.Abort, click.exceptions.Exit):
            raise
        except PackWrapError as e:
            raise click.ClickException(str(e)) from e
        except Exception as e:
            logger.exception(f"运行时错误: {e}")
            raise click.ClickException(f"运行时错误: {e}") from e

    return wrapper


@click.group(cls=AliasedGroup)
@click.option(
    "-d",
    "--dir",
    "pack_dir",
    default=".",
    type=click.Path(file_okay=False),
    help="整合包目录（向上查找 pack.toml）",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    help="配置文件路径（默认读取整合包目录中的 packwrap.toml）",
)
@click.option("--debug", is_flag=True, help="启用调试模式")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    help="同时将完整 DEBUG 日志写入文件",
)
@click.version_option(version=__version__, prog_name="packwrap")
@click.pass_context
def cli(
    ctx: click.Context,
    pack_dir: str,
    config_path: Optional[str],
    debug: bool,
    log_file: Optional[str],
):
    """PackWrap - packwiz 整合包管理与多格式导出工具"""
    setup_logger(level=resolve_level(debug), log_file=log_file)
    ctx.obj = PackContext(start_dir=pack_dir, config_path=config_path)


# ---- 导出 ----


@cli.command()
@click.argument("target")
@click.option("-l", "--local", is_flag=True, help="MultiMC: 使用本地 pack.toml 路径")
@click.pass_obj
@coro
async def build(obj: PackContext, target: str, local: bool):
    """
    导出整合包

    TARGET: curseforge|cf, modrinth|mr, multimc|mmc, technic, server 或 all
    """
    if target.lower() == "all":
        targets = None
    else:
        parsed = ExportTarget.parse(target)
        if parsed is None:
            raise click.BadParameter(
                f"未知的导出目标: {target}", param_hint="TARGET"
            )
        targets = [parsed]

    # 未指定 --local 时使用配置文件中的 build.use_local
    use_local = True if local else None
    async with ExportPipeline(obj.start_dir, config=obj.config) as pipeline:
        if targets is not None:
            result = await pipeline.export(targets[0], use_local)
            click.echo(result.path)
            return

        report = await pipeline.export_all(use_local=use_local)
    if not report.ok:
        raise BatchExportError([failed.value for failed, _ in report.failed])


# ---- 模组列表 / 信息 ----


@cli.command()
@click.option("--raw", is_flag=True, help="纯文本格式")
@click.option("--versions", is_flag=True, help="链接指向具体版本")
@click.option("--print", "print_only", is_flag=True, help="输出到终端而不写文件")
@click.pass_obj
@coro
async def modlist(obj: PackContext, raw: bool, versions: bool, print_only: bool):
    """生成 modlist.md"""
    pack = obj.load_pack()
    if print_only:
        click.echo(render_modlist(pack.mods, raw=raw, versions=versions), nl=False)
        return
    click.echo(write_modlist(pack, raw=raw, versions=versions))


@cli.command()
@click.pass_obj
@coro
async def info(obj: PackContext):
    """显示整合包信息"""
    pack = obj.load_pack()
    loader = pack.loader.kind.value
    if pack.loader.version:
        loader += f" {pack.loader.version}"

    click.echo(f"名称: {pack.name}")
    click.echo(f"作者: {pack.author or '-'}")
    click.echo(f"版本: {pack.version or '-'}")
    click.echo(f"Minecraft: {pack.minecraft_version or '-'}")
    click.echo(f"加载器: {loader}")
    click.echo(f"模组数量: {pack.mod_count}")
    click.echo(f"目录: {pack.location}")


@cli.command()
@click.option("-l", "--local", is_flag=True, help="直接输出本地路径")
@click.pass_obj
@coro
async def detect(obj: PackContext, local: bool):
    """输出 pack.toml 的远程 raw 地址（检测失败时为本地路径）"""
    click.echo(await resolve_pack_url(obj.pack_location, use_local=local))


# ---- Java ----


@cli.group()
def java():
    """Java 版本管理"""


@java.command("required")
@click.argument("mc_version")
def java_required(mc_version: str):
    """显示 Minecraft 版本所需的 Java"""
    click.echo(f"推荐: Java {get_required_java_version(mc_version)}")
    click.echo(f"最低: Java {get_strict_java_version(mc_version)}")


@java.command("list")
@click.pass_obj
@coro
async def java_list(obj: PackContext):
    """列出已安装的 Java"""
    manager = JavaManager(explicit_path=obj.config.java.path)
    installations = await manager.find_installations()
    if not installations:
        click.echo("未找到 Java")
        return
    for java_install in installations:
        click.echo(
            f"Java {java_install.major} ({java_install.version}): {java_install.path}"
        )


@java.command("ensure")
@click.argument("mc_version", required=False)
@click.pass_obj
@coro
async def java_ensure(obj: PackContext, mc_version: Optional[str]):
    """确保有适用的 Java（默认使用整合包的 Minecraft 版本）"""
    if not mc_version:
        mc_version = obj.load_pack(with_mods=False).minecraft_version

    async with obj.downloader() as downloader:
        manager = JavaManager(
            downloader=downloader,
            explicit_path=obj.config.java.path,
            auto_download=obj.config.java.auto_download,
        )
        java_install = await manager.ensure(mc_version)
    click.echo(java_install.path)


# ---- 模组管理 ----


@cli.group()
def mod():
    """通过 packwiz 管理模组"""


@mod.command("add")
@click.argument("identifier")
@click.pass_obj
@coro
async def mod_add(obj: PackContext, identifier: str):
    """
    添加模组

    IDENTIFIER: URL、mr:slug[:version]、cf:slug[:file] 或 slug
    """
    await add_mod(PackwizClient(obj.pack_location), identifier)


@mod.command("remove")
@click.argument("name")
@click.pass_obj
@coro
async def mod_remove(obj: PackContext, name: str):
    """移除模组"""
    await PackwizClient(obj.pack_location).remove(name)


@mod.command("update")
@click.argument("name", required=False)
@click.pass_obj
@coro
async def mod_update(obj: PackContext, name: Optional[str]):
    """更新模组（不指定名称时更新全部）"""
    await PackwizClient(obj.pack_location).update(name)


@mod.command("list")
@click.pass_obj
@coro
async def mod_list(obj: PackContext):
    """列出模组"""
    await PackwizClient(obj.pack_location).list()


@cli.command(
    context_settings={"ignore_unknown_options": True, "allow_extra_args": True}
)
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_obj
@coro
async def run(obj: PackContext, args: tuple):
    """直接调用 packwiz"""
    pack_dir = locate_pack(obj.start_dir) or os.path.abspath(obj.start_dir)
    await PackwizClient(pack_dir).run(list(args))


def main():
    cli(prog_name="packwrap")


if __name__ == "__main__":
    main()
