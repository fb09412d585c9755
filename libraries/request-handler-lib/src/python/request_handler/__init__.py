from .request_thread_pool import RequestThreadPool

__all__ = [
    "RequestThreadPool"
]
