import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Awaitable, Callable, Optional

class RequestThreadPool:
    """Process-wide worker pool that runs blocking outbound requests off the event loop."""

    __thread_pool: Optional[ThreadPoolExecutor] = None
    __logger = logging.getLogger("RequestThreadPool")

    @staticmethod
    def init(max_workers: int) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be positive, got: {max_workers}")
        if RequestThreadPool.__thread_pool is not None:
            RequestThreadPool.__thread_pool.shutdown(wait=False)
        RequestThreadPool.__thread_pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="request")
        RequestThreadPool.__logger.debug(f"Initialized with {max_workers} workers")

    @staticmethod
    def shutdown(wait: bool = True) -> None:
        if RequestThreadPool.__thread_pool is None:
            return
        RequestThreadPool.__thread_pool.shutdown(wait=wait, cancel_futures=True)
        RequestThreadPool.__thread_pool = None

    @staticmethod
    def run_async(func: Callable[..., Any], *args, **kwargs) -> Awaitable[Any]:
        if not RequestThreadPool.__thread_pool:
            raise RuntimeError("RequestThreadPool not initialized. Call RequestThreadPool.init() first.")

        loop = asyncio.get_running_loop()
        return loop.run_in_executor(RequestThreadPool.__thread_pool, lambda: func(*args, **kwargs))
