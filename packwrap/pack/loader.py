"""
整合包加载器

读取 pack.toml、index.toml 与各模组的 *.pw.toml。
"""

import os

import toml
from loguru import logger

from packwrap.exceptions import PackFormatError
from packwrap.models import IndexFile, ModDescriptor, PackDescriptor
from packwrap.pack.locator import PACK_FILENAME


def _read_toml(path: str) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return toml.load(f)


def load_pack(pack_dir: str, with_mods: bool = True) -> PackDescriptor:
    """
    加载整合包描述

    Args:
        pack_dir: 包含 pack.toml 的目录
        with_mods: 是否同时解码 index 中的模组元文件

    Returns:
        PackDescriptor

    Raises:
        PackFormatError: pack.toml 不存在或无法解析
    """
    pack_path = os.path.join(pack_dir, PACK_FILENAME)
    try:
        data = _read_toml(pack_path)
    except FileNotFoundError as e:
        raise PackFormatError(
            f"pack.toml 不存在: {pack_path}", context={"path": pack_path}
        ) from e
    except (toml.TomlDecodeError, UnicodeDecodeError) as e:
        raise PackFormatError(
            f"pack.toml 解析失败: {e}", context={"path": pack_path}
        ) from e

    pack = PackDescriptor.from_dict(data, location=pack_dir)
    pack.index = load_index(pack)
    if with_mods:
        pack.mods = load_mods(pack)
    return pack


def load_index(pack: PackDescriptor) -> IndexFile:
    """读取 index.toml，文件缺失时返回空索引"""
    index_path = os.path.join(pack.location, pack.index_path)
    if not os.path.isfile(index_path):
        logger.warning(f"索引文件不存在: {pack.index_path}")
        return IndexFile()

    try:
        data = _read_toml(index_path)
    except (toml.TomlDecodeError, UnicodeDecodeError) as e:
        raise PackFormatError(
            f"{pack.index_path} 解析失败: {e}", context={"path": index_path}
        ) from e
    return IndexFile.from_dict(data)


def load_mods(pack: PackDescriptor) -> list[ModDescriptor]:
    """
    解码索引中所有元文件

    单个元文件缺失或损坏时记录警告并跳过，不影响其余模组。
    """
    # 元文件路径相对于 index.toml 所在目录
    index_dir = os.path.dirname(os.path.join(pack.location, pack.index_path))

    mods = []
    for entry in pack.index.metafiles:
        mod_path = os.path.join(index_dir, entry.file)
        try:
            mod = ModDescriptor.from_dict(_read_toml(mod_path), path=entry.file)
        except (
            OSError,
            toml.TomlDecodeError,
            UnicodeDecodeError,
            AttributeError,
            TypeError,
            ValueError,
        ) as e:
            logger.warning(f"无法解码 {entry.file}: {e}")
            continue
        # 截断的元文件可能仍是合法 TOML
        if not mod.filename:
            logger.warning(f"跳过 {entry.file}: 缺少 filename")
            continue
        mods.append(mod)

    logger.debug(f"已加载 {len(mods)}/{len(pack.index.metafiles)} 个模组元文件")
    return mods
