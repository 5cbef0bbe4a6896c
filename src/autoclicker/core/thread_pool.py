"""
线程池

事件循环线程只做调度，阻塞工作分两类 offload：
- io: ADB 子进程（截图、输入注入）
- compute: OpenCV 解码、缩放与模板匹配

池按需创建，大小来自 settings（<= 0 表示自动）。
"""
from __future__ import annotations

import asyncio
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Dict

from .config import settings
from .logger import logger

_IO = "io"
_COMPUTE = "compute"

_pools: Dict[str, ThreadPoolExecutor] = {}


def _auto_size(kind: str) -> int:
    if kind == _IO:
        return 4
    # 匹配是 CPU 密集型，超过一半核数收益不大
    return min(8, max(2, (os.cpu_count() or 4) // 2))


def _pool(kind: str) -> ThreadPoolExecutor:
    pool = _pools.get(kind)
    if pool is None:
        configured = settings.io_thread_pool_size if kind == _IO else settings.compute_thread_pool_size
        workers = configured if configured > 0 else _auto_size(kind)
        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"autoclicker-{kind}")
        _pools[kind] = pool
        logger.debug("线程池 {} 已创建: max_workers={}", kind, workers)
    return pool


def get_io_pool() -> ThreadPoolExecutor:
    return _pool(_IO)


def get_compute_pool() -> ThreadPoolExecutor:
    return _pool(_COMPUTE)


async def run_in_io(func, *args):
    """在 I/O 池中执行阻塞调用"""
    return await asyncio.get_running_loop().run_in_executor(get_io_pool(), func, *args)


async def run_in_compute(func, *args):
    """在计算池中执行阻塞调用"""
    return await asyncio.get_running_loop().run_in_executor(get_compute_pool(), func, *args)


def shutdown_pools() -> None:
    """关闭全部线程池，之后的调用会重新创建"""
    while _pools:
        kind, pool = _pools.popitem()
        pool.shutdown(wait=False)
        logger.debug("线程池 {} 已关闭", kind)
