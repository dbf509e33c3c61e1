"""
暂存区

每次导出独占的临时目录，任何退出路径都会被清理。
"""

import os
import shutil
from typing import Optional

from loguru import logger

from packwrap.build.filters import Decision, FileSetFilter


class StagingArea:
    """
    导出暂存目录 (<base_dir>/.<suffix>)

    作为上下文管理器使用时，退出时无条件删除目录树。上次异常退出遗留的
    同名目录会在创建时先行清理。
    """

    def __init__(self, base_dir: str, suffix: str):
        self.base_dir = base_dir
        self.suffix = suffix
        self.path = os.path.join(base_dir, f".{suffix}")
        self._acquired = False

    def acquire(self) -> "StagingArea":
        if os.path.exists(self.path):
            logger.debug(f"清理遗留暂存目录: {self.path}")
            shutil.rmtree(self.path)
        os.makedirs(self.path)
        self._acquired = True
        return self

    def release(self) -> None:
        """删除暂存目录（可重复调用），删除失败只记录警告，不掩盖导出错误"""
        if os.path.exists(self.path):
            shutil.rmtree(self.path, ignore_errors=True)
            if os.path.exists(self.path):
                logger.warning(f"暂存目录未能完全删除，请手动清理: {self.path}")
        self._acquired = False

    def __enter__(self) -> "StagingArea":
        return self if self._acquired else self.acquire()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()

    def join(self, *parts: str) -> str:
        return os.path.join(self.path, *parts)

    def copy_from(
        self,
        source_dir: str,
        file_filter: FileSetFilter,
        subdir: Optional[str] = None,
    ) -> int:
        """
        按过滤规则将 source_dir 复制到暂存区

        Args:
            source_dir: 整合包目录
            file_filter: 目标过滤规则
            subdir: 暂存区内的目标子目录

        Returns:
            复制的文件数
        """
        dest_root = self.join(subdir) if subdir else self.path
        own_path = os.path.abspath(self.path)
        copied = 0

        os.makedirs(dest_root, exist_ok=True)
        for root, dirs, files in os.walk(source_dir):
            rel_root = os.path.relpath(root, source_dir)
            rel_root = "" if rel_root == "." else rel_root

            kept = []
            for name in sorted(dirs):
                rel_path = os.path.join(rel_root, name)
                if os.path.abspath(os.path.join(root, name)) == own_path:
                    continue
                if file_filter.decide(rel_path, is_dir=True) is Decision.INCLUDE:
                    kept.append(name)
                    os.makedirs(os.path.join(dest_root, rel_path), exist_ok=True)
            dirs[:] = kept

            for name in sorted(files):
                rel_path = os.path.join(rel_root, name)
                if file_filter.decide(rel_path) is not Decision.INCLUDE:
                    continue
                shutil.copy2(os.path.join(root, name), os.path.join(dest_root, rel_path))
                copied += 1

        logger.debug(f"已复制 {copied} 个文件到 {dest_root}")
        return copied
