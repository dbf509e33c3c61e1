"""
整合包定位

从起始目录向上查找 pack.toml，支持 .minecraft 子目录约定。
"""

import os
from typing import Optional

from loguru import logger

from packwrap.exceptions import PackNotFoundError

PACK_FILENAME = "pack.toml"
NESTED_DIRNAME = ".minecraft"


def _to_slash(path: str) -> str:
    return path.replace("\\", "/")


def locate_pack(start_dir: str) -> Optional[str]:
    """
    查找包含 pack.toml 的目录

    每一级依次检查 <dir>/pack.toml 和 <dir>/.minecraft/pack.toml，
    然后进入上级目录，直到文件系统根目录。不搜索兄弟目录，也不向下递归。

    Args:
        start_dir: 起始目录

    Returns:
        包含 pack.toml 的目录（正斜杠形式），找不到时返回 None
    """
    current = os.path.abspath(start_dir)
    while True:
        if os.path.isfile(os.path.join(current, PACK_FILENAME)):
            logger.debug(f"找到整合包目录: {current}")
            return _to_slash(current)

        nested = os.path.join(current, NESTED_DIRNAME)
        if os.path.isfile(os.path.join(nested, PACK_FILENAME)):
            logger.debug(f"使用 .minecraft 中的 pack.toml: {nested}")
            return _to_slash(nested)

        parent = os.path.dirname(current)
        if parent == current:
            return None
        current = parent


def require_pack(start_dir: str) -> str:
    """定位整合包，找不到时抛出 PackNotFoundError"""
    location = locate_pack(start_dir)
    if location is None:
        raise PackNotFoundError(_to_slash(os.path.abspath(start_dir)))
    return location
