import asyncio
import threading

import pytest

from autoclicker.core.thread_pool import (
    get_compute_pool,
    get_io_pool,
    run_in_compute,
    run_in_io,
    shutdown_pools,
)


@pytest.fixture(autouse=True)
def _reset_pools():
    shutdown_pools()
    yield
    shutdown_pools()


@pytest.mark.asyncio
async def test_jobs_run_off_the_event_loop_thread():
    loop_thread = threading.get_ident()

    io_thread, compute_thread = await asyncio.gather(
        run_in_io(threading.get_ident),
        run_in_compute(threading.get_ident),
    )

    assert io_thread != loop_thread
    assert compute_thread != loop_thread


@pytest.mark.asyncio
async def test_arguments_are_forwarded():
    assert await run_in_compute(pow, 2, 10) == 1024
    assert await run_in_io(max, 3, 7) == 7


def test_compute_pool_size_from_settings(monkeypatch):
    from autoclicker.core.config import settings

    monkeypatch.setattr(settings, "compute_thread_pool_size", 3)

    assert get_compute_pool()._max_workers == 3


def test_shutdown_pools_recreates_pools():
    io1, compute1 = get_io_pool(), get_compute_pool()
    shutdown_pools()
    io2, compute2 = get_io_pool(), get_compute_pool()

    assert io1 is not io2
    assert compute1 is not compute2
