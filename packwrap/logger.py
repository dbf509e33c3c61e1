"""
日志模块

使用 loguru 提供统一的日志记录功能。日志写入标准错误，标准输出只留给
命令结果（导出路径、raw 地址、模组列表），便于脚本直接使用。
"""

import os
import sys
from typing import Optional

from loguru import logger

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}"
DEBUG_ENV = "PACKWRAP_DEBUG"


def resolve_level(debug: bool = False) -> str:
    """--debug 或 PACKWRAP_DEBUG=1 时为 DEBUG，否则为 INFO"""
    if debug or os.environ.get(DEBUG_ENV, "0") == "1":
        return "DEBUG"
    return "INFO"


def setup_logger(
    level: Optional[str] = None,
    sink=None,
    enqueue: bool = True,
    colorize: Optional[bool] = None,
    log_file: Optional[str] = None,
) -> None:
    """
    设置日志记录器

    Args:
        level: 日志级别 (DEBUG, INFO, WARNING, ERROR)，默认由环境变量决定
        sink: 输出目标，默认为调用时的 sys.stderr
        enqueue: 是否启用队列（线程安全）
        colorize: 是否启用颜色，默认仅在终端中启用
        log_file: 额外写入完整 DEBUG 日志的文件
    """
    level = level or resolve_level()
    sink = sink or sys.stderr
    if colorize is None:
        colorize = hasattr(sink, "isatty") and sink.isatty()
    debug = level == "DEBUG"

    logger.remove()
    logger.add(
        sink=sink,
        format=LOG_FORMAT,
        enqueue=enqueue,
        level=level,
        colorize=colorize,
        backtrace=debug,
        diagnose=debug,
    )

    if log_file:
        os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
        logger.add(
            log_file,
            format=LOG_FORMAT,
            enqueue=enqueue,
            level="DEBUG",
            encoding="utf-8",
            rotation="5 MB",
            retention=3,
        )

    if debug:
        logger.debug("DEBUG 模式已启用")


__all__ = ["logger", "setup_logger", "resolve_level"]
