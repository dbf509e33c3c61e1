"""
模组列表

按客户端 / 通用 / 服务端分组，生成 Markdown 格式的 modlist.md。
"""

import os
from typing import Iterable, List

from loguru import logger

from packwrap.exceptions import PackWrapError
from packwrap.models import ModDescriptor, PackDescriptor, Platform, Side

MODLIST_FILENAME = "modlist.md"

MODRINTH_MOD_URL = "https://modrinth.com/mod/"
CURSEFORGE_MOD_URL = "https://www.curseforge.com/minecraft/mc-mods/"

SECTIONS = (
    ("Client Mods", Side.CLIENT),
    ("Shared Mods", Side.BOTH),
    ("Server Mods", Side.SERVER),
)


def mod_url(mod: ModDescriptor, versions: bool = False) -> str:
    """模组页面地址，没有平台信息时退回下载地址"""
    ref = mod.platform_ref
    if ref is not None and ref.platform is Platform.MODRINTH:
        url = MODRINTH_MOD_URL + ref.project_id
        if versions and ref.version_id:
            url += f"/version/{ref.version_id}"
        return url
    if ref is not None and ref.platform is Platform.CURSEFORGE:
        url = CURSEFORGE_MOD_URL + (mod.parse_id or ref.project_id)
        if versions and ref.version_id:
            url += f"/files/{ref.version_id}"
        return url
    return mod.download_url or "#"


def _format_mod(mod: ModDescriptor, raw: bool, versions: bool) -> str:
    url = mod_url(mod, versions)
    if raw:
        return f"{mod.name}\n{url}\n\n"
    return f"- [{mod.name}]({url})\n"


def render_modlist(
    mods: Iterable[ModDescriptor], raw: bool = False, versions: bool = False
) -> str:
    """
    渲染模组列表

    Args:
        mods: 模组元数据（保持索引顺序）
        raw: 纯文本格式（名称与地址各占一行），不输出标题
        versions: 地址指向具体版本
    """
    mods = list(mods)
    parts: List[str] = [] if raw else ["# Modlist\n\n"]

    for title, side in SECTIONS:
        section = [mod for mod in mods if mod.side is side]
        if section:
            parts.append(f"## {title}\n\n")
            parts.extend(_format_mod(mod, raw, versions) for mod in section)
        parts.append("\n")
    return "".join(parts)


def write_modlist(
    pack: PackDescriptor, raw: bool = False, versions: bool = False
) -> str:
    """写入 <整合包目录>/modlist.md，返回文件路径"""
    path = os.path.join(pack.location, MODLIST_FILENAME)
    content = render_modlist(pack.mods, raw=raw, versions=versions)
    try:
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
    except OSError as e:
        raise PackWrapError(f"写入 {MODLIST_FILENAME} 失败: {e}") from e

    logger.success(f"已写入 {len(pack.mods)} 个模组到 {path}")
    return path
