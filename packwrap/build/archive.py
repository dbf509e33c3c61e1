"""
ZIP 生成器

将暂存目录或显式的路径映射打包为 ZIP，条目统一使用正斜杠。
"""

import os
import zipfile
from typing import Mapping

from packwrap.exceptions import ArchiveError


def _arcname(*parts: str) -> str:
    joined = "/".join(part.replace("\\", "/").strip("/") for part in parts if part)
    return joined


class ArchiveBuilder:
    """ZIP 构建器"""

    def __init__(self, compression: int = zipfile.ZIP_DEFLATED):
        self.compression = compression

    async def build_zip(self, source_dir: str, output_path: str) -> str:
        """
        将目录打包为 ZIP

        每个子目录写入带尾部斜杠的目录条目，文件按相对路径写入。遇到第一个
        I/O 错误即失败，并删除不完整的输出文件。

        Args:
            source_dir: 源目录（自身不作为条目）
            output_path: 输出文件路径

        Returns:
            生成的文件路径
        """
        try:
            with zipfile.ZipFile(output_path, "w", self.compression) as archive:
                self._add_tree(archive, source_dir, "")
        except (OSError, zipfile.BadZipFile, ValueError) as e:
            self._discard(output_path)
            raise ArchiveError(
                f"构建 ZIP 失败: {e}",
                context={"source_dir": source_dir, "output_path": output_path},
            ) from e
        return output_path

    async def build_zip_from_map(
        self, path_map: Mapping[str, str], output_path: str
    ) -> str:
        """
        按显式映射打包

        Args:
            path_map: ZIP 内路径 -> 本地路径；本地路径为目录时递归加入
            output_path: 输出文件路径

        Returns:
            生成的文件路径
        """
        try:
            with zipfile.ZipFile(output_path, "w", self.compression) as archive:
                for archive_path, local_path in path_map.items():
                    archive_path = _arcname(archive_path)
                    if os.path.isdir(local_path):
                        if archive_path:
                            archive.write(local_path, archive_path + "/")
                        self._add_tree(archive, local_path, archive_path)
                    else:
                        archive.write(local_path, archive_path)
        except (OSError, zipfile.BadZipFile, ValueError) as e:
            self._discard(output_path)
            raise ArchiveError(
                f"构建 ZIP 失败: {e}",
                context={"output_path": output_path},
            ) from e
        return output_path

    def _add_tree(self, archive: zipfile.ZipFile, source_dir: str, prefix: str):
        for root, dirs, files in os.walk(source_dir, onerror=_raise):
            dirs.sort()
            rel_root = os.path.relpath(root, source_dir)
            rel_root = "" if rel_root == "." else rel_root

            for name in dirs:
                archive.write(
                    os.path.join(root, name), _arcname(prefix, rel_root, name) + "/"
                )
            for name in sorted(files):
                archive.write(
                    os.path.join(root, name), _arcname(prefix, rel_root, name)
                )

    @staticmethod
    def _discard(output_path: str):
        if os.path.exists(output_path):
            try:
                os.remove(output_path)
            except OSError:
                pass


def _raise(error: OSError):
    raise error
