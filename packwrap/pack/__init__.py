"""
PackWrap 整合包层

包含 pack.toml 定位与整合包描述加载。
"""

from packwrap.pack.locator import locate_pack, require_pack
from packwrap.pack.loader import load_pack, load_index, load_mods

__all__ = [
    "locate_pack",
    "require_pack",
    "load_pack",
    "load_index",
    "load_mods",
]
