"""
下载器

基于 aiohttp 的单文件下载，支持重试、哈希校验与 GitHub Release 查询。
"""

import asyncio
import hashlib
import os
from typing import Optional

import aiofiles
import aiohttp
from loguru import logger

from packwrap.exceptions import DownloadChecksumError, DownloadError

GITHUB_API_URL = "https://api.github.com"


class FileVerifier:
    """文件校验器"""

    @staticmethod
    async def calc_hash(file_path: str, algorithm: str = "sha1") -> Optional[str]:
        """
        计算文件哈希

        Args:
            file_path: 文件路径
            algorithm: hashlib 支持的算法名 (sha1, sha256, sha512, md5)

        Returns:
            十六进制哈希值，文件不存在时返回 None
        """
        if not os.path.exists(file_path):
            return None

        digest = hashlib.new(algorithm)
        try:
            async with aiofiles.open(file_path, "rb") as f:
                while True:
                    data = await f.read(65536)
                    if not data:
                        break
                    digest.update(data)
            return digest.hexdigest()
        except (IOError, OSError):
            return None

    @staticmethod
    async def verify(
        file_path: str, expected: Optional[str], algorithm: str = "sha1"
    ) -> bool:
        """校验文件哈希，没有预期值时视为通过"""
        if not expected:
            return True

        current = await FileVerifier.calc_hash(file_path, algorithm)
        if current is None:
            return False
        return current.lower() == expected.strip().lower()


class Downloader:
    """单文件下载器"""

    def __init__(
        self,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._session = session
        self._owned_session = session is None

    @property
    def session(self) -> aiohttp.ClientSession:
        """获取或创建 aiohttp session"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": "packwrap"}
            )
        return self._session

    async def fetch_json(self, url: str) -> dict:
        """请求 JSON 接口"""
        try:
            async with self.session.get(url) as response:
                if response.status != 200:
                    raise DownloadError(
                        f"HTTP {response.status}",
                        context={"url": url, "status": response.status},
                    )
                return await response.json()
        except aiohttp.ClientError as e:
            raise DownloadError(f"请求失败: {e}", context={"url": url}) from e

    async def fetch_text(self, url: str) -> str:
        """请求文本内容"""
        try:
            async with self.session.get(url) as response:
                if response.status != 200:
                    raise DownloadError(
                        f"HTTP {response.status}",
                        context={"url": url, "status": response.status},
                    )
                return await response.text()
        except aiohttp.ClientError as e:
            raise DownloadError(f"请求失败: {e}", context={"url": url}) from e

    async def latest_release_assets(self, repo: str) -> list[dict]:
        """
        获取 GitHub 仓库最新 Release 的资源列表

        Args:
            repo: owner/name

        Returns:
            [{"name": ..., "browser_download_url": ...}, ...]
        """
        release = await self.fetch_json(
            f"{GITHUB_API_URL}/repos/{repo}/releases/latest"
        )
        return release.get("assets", [])

    async def download_file(
        self,
        url: str,
        file_path: str,
        expected_hash: Optional[str] = None,
        algorithm: str = "sha1",
    ) -> str:
        """
        下载单个文件

        失败时按指数退避重试；最终失败或校验不通过时删除残留文件并抛出异常。

        Returns:
            下载后的文件路径
        """
        filename = os.path.basename(file_path)
        os.makedirs(os.path.dirname(file_path) or ".", exist_ok=True)

        logger.info(f"[开始] 下载: {filename}")

        for attempt in range(self.max_retries + 1):
            try:
                async with self.session.get(url) as response:
                    if response.status != 200:
                        raise DownloadError(
                            f"HTTP {response.status}",
                            context={"url": url, "status": response.status},
                        )

                    total_size = int(response.headers.get("Content-Length", 0))
                    if attempt == 0 and total_size:
                        logger.info(
                            f"[信息] 文件大小: {total_size / (1024 * 1024):.2f} MB"
                        )

                    async with aiofiles.open(file_path, "wb") as f:
                        async for chunk in response.content.iter_chunked(65536):
                            await f.write(chunk)

                if not await FileVerifier.verify(file_path, expected_hash, algorithm):
                    raise DownloadChecksumError(
                        f"{algorithm} 校验失败: {filename}",
                        context={"file": filename, "expected": expected_hash},
                    )

                logger.success(f"[完成] '{filename}' 下载完成")
                return file_path

            except (DownloadError, aiohttp.ClientError, OSError) as e:
                if os.path.exists(file_path):
                    try:
                        os.remove(file_path)
                    except OSError:
                        pass

                if attempt < self.max_retries:
                    delay = self.retry_delay * (2**attempt)
                    logger.warning(
                        f"[重试] 下载 '{filename}' 失败 (第 {attempt + 1} 次): {e}. "
                        f"{delay:.1f}s 后重试..."
                    )
                    await asyncio.sleep(delay)
                    continue

                logger.error(f"[错误] 下载 '{filename}' 最终失败: {e}")
                if isinstance(e, DownloadError):
                    raise
                raise DownloadError(
                    f"下载失败: {filename}", context={"url": url, "error": str(e)}
                ) from e

        raise DownloadError(f"下载失败: {filename}", context={"url": url})

    async def close(self):
        """关闭 session"""
        if self._owned_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
