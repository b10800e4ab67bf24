"""Per-call timeout for gateway fetches."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout

from replyline.errors import SourceUnavailable
from replyline.sources.base import MessageRetrievalGateway


class TimeoutGuard:
    """Runs gateway calls on a small pool so a slow contact cannot block a caller.

    A call that overruns its budget is abandoned: the worker finishes in the
    background and its result is discarded.
    """

    def __init__(self, timeout: float = 10.0, max_workers: int = 4):
        self.timeout = timeout
        self.executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="gateway")

    def fetch(self, gateway: MessageRetrievalGateway, account_id: str, contact_email: str) -> list:
        future = self.executor.submit(gateway.fetch_thread, account_id, contact_email)
        try:
            result = future.result(timeout=self.timeout)
        except FutureTimeout as e:
            future.cancel()
            raise SourceUnavailable("gateway", f"timed out after {self.timeout:g}s") from e
        return list(result or [])

    def shutdown(self) -> None:
        self.executor.shutdown(wait=False, cancel_futures=True)
