"""
远程地址检测

根据 git 远程仓库与当前分支推导 pack.toml 的 raw 地址。
"""

import asyncio
import os
import re

from loguru import logger

from packwrap.exceptions import GitError
from packwrap.pack.locator import PACK_FILENAME

_SCP_REMOTE_RE = re.compile(r"^[\w.-]+@([\w.-]+):(.+)$")


async def run_git(args: list[str], cwd: str) -> str:
    """
    执行 git 命令并返回去除首尾空白的标准输出

    Raises:
        GitError: git 不存在或退出码非零
    """
    try:
        process = await asyncio.create_subprocess_exec(
            "git",
            *args,
            cwd=cwd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate()
    except OSError as e:
        raise GitError(f"无法运行 git: {e}") from e

    if process.returncode != 0:
        raise GitError(
            f"git {' '.join(args)} 失败: {stderr.decode(errors='replace').strip()}",
            returncode=process.returncode,
        )
    return stdout.decode(errors="replace").strip()


def normalize_remote(remote: str) -> str:
    """
    将远程地址规范为 https 形式并去掉 .git 后缀

    git@github.com:owner/repo.git -> https://github.com/owner/repo
    """
    remote = remote.strip()
    if remote.endswith(".git"):
        remote = remote[: -len(".git")]

    match = _SCP_REMOTE_RE.match(remote)
    if match and "://" not in remote:
        return f"https://{match.group(1)}/{match.group(2)}"

    if remote.startswith("ssh://"):
        remote = remote[len("ssh://") :]
        if "@" in remote.split("/", 1)[0]:
            remote = remote.split("@", 1)[1]
        return f"https://{remote}"

    return remote


def build_raw_url(remote: str, branch: str, rel_path: str) -> str:
    """按托管平台拼接 raw 文件地址"""
    remote = normalize_remote(remote)
    rel_path = rel_path.replace("\\", "/").lstrip("/")

    if "github.com" in remote:
        remote = remote.replace("github.com", "raw.githubusercontent.com", 1)
        return "/".join([remote, branch, rel_path])
    if "gitlab.com" in remote:
        return f"{remote}/-/raw/{branch}/{rel_path}"
    # Gitea 等
    return f"{remote}/raw/branch/{branch}/{rel_path}"


def local_pack_path(pack_location: str) -> str:
    """pack.toml 的本地绝对路径（正斜杠形式）"""
    return os.path.abspath(os.path.join(pack_location, PACK_FILENAME)).replace(
        "\\", "/"
    )


async def detect_remote_pack_url(pack_location: str) -> str:
    """
    检测 pack.toml 的远程 raw 地址

    分支名为空（CI 中的 detached HEAD）时使用 GITHUB_HEAD_REF。

    Raises:
        GitError: 不是 git 仓库、没有 origin 或无法确定分支
    """
    remote = await run_git(["remote", "get-url", "origin"], cwd=pack_location)
    branch = await run_git(["branch", "--show-current"], cwd=pack_location)
    if not branch:
        branch = os.environ.get("GITHUB_HEAD_REF", "").strip()
        if not branch:
            raise GitError("无法确定当前分支")

    top_level = await run_git(["rev-parse", "--show-toplevel"], cwd=pack_location)
    rel_path = os.path.relpath(
        os.path.join(os.path.abspath(pack_location), PACK_FILENAME),
        os.path.abspath(top_level),
    )

    url = build_raw_url(remote, branch, rel_path)
    logger.debug(f"检测到远程地址: {url}")
    return url


async def resolve_pack_url(pack_location: str, use_local: bool = False) -> str:
    """获取 pack.toml 地址，检测失败时回退到本地路径"""
    if use_local:
        return local_pack_path(pack_location)
    try:
        return await detect_remote_pack_url(pack_location)
    except GitError as e:
        logger.warning(f"远程地址检测失败，使用本地路径: {e}")
        return local_pack_path(pack_location)
