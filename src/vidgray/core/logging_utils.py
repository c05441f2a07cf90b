"""轻量日志工具：统一格式，并提供按阶段计时的辅助函数。"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Iterator, Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """设置全局日志级别，默认 INFO，可在 CLI 入口覆盖。"""

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """获取模块专属 logger。"""

    return logging.getLogger(name or "vidgray")


@contextmanager
def log_phase(logger: logging.Logger, phase: str) -> Iterator[None]:
    """记录流水线阶段的开始与耗时；异常照常向上抛出。"""

    logger.info("%s: start", phase)
    started = time.perf_counter()
    try:
        yield
    except Exception:
        logger.info("%s: failed after %.2fs", phase, time.perf_counter() - started)
        raise
    logger.info("%s: done in %.2fs", phase, time.perf_counter() - started)
