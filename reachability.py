"""TCP reachability probing."""

import asyncio
import logging
import threading
from typing import AsyncIterator, Optional

from constants import LIVENESS_PORT, PROBE_TIMEOUT, STATUS_CHECK_INTERVAL
from models import Status

logger = logging.getLogger(__name__)


class ProbeResolution:
    """
    Single-writer-wins result slot shared by the timeout path and the
    connection-event path.

    Both paths may fire from different contexts; the lock makes the
    "already resolved" check-and-set atomic so the future is completed
    exactly once. Later calls return False and do nothing.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self._loop = loop
        self._lock = threading.Lock()
        self._resolved = False
        self.future: asyncio.Future = loop.create_future()

    @property
    def resolved(self) -> bool:
        with self._lock:
            return self._resolved

    def resolve(self, value: bool) -> bool:
        with self._lock:
            if self._resolved:
                return False
            self._resolved = True
        # Deliver on the owning loop regardless of the calling context.
        self._loop.call_soon_threadsafe(self._deliver, value)
        return True

    def _deliver(self, value: bool):
        if not self.future.done():
            self.future.set_result(value)


class ReachabilityProber:
    """Races a TCP connect against a timeout."""

    def __init__(self, timeout: float = PROBE_TIMEOUT):
        self.timeout = timeout

    async def probe(self, host: str, port: int, timeout: Optional[float] = None) -> bool:
        """
        True if a TCP connection to (host, port) becomes ready before the
        timeout. Connect failure, cancellation, or timeout give False. The
        socket is closed on every path; a timeout cancels the pending connect.
        """
        timeout = self.timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        resolution = ProbeResolution(loop)

        connect = loop.create_task(loop.create_connection(asyncio.Protocol, host, port))

        def _on_timeout():
            if resolution.resolve(False):
                logger.debug(f"Probe {host}:{port} timed out after {timeout}s")
                connect.cancel()

        def _on_connect(task: asyncio.Task):
            if task.cancelled():
                resolution.resolve(False)
                return
            exc = task.exception()
            if exc is not None:
                logger.debug(f"Probe {host}:{port} failed: {exc}")
                resolution.resolve(False)
                return
            transport, _ = task.result()
            # Close even if the timeout already won the race.
            transport.close()
            resolution.resolve(True)

        timer = loop.call_later(timeout, _on_timeout)
        connect.add_done_callback(_on_connect)
        try:
            return await resolution.future
        finally:
            timer.cancel()
            if not connect.done():
                connect.cancel()

    async def check_status(self, host: str, port: int) -> Status:
        reachable = await self.probe(host, port)
        return Status.ONLINE if reachable else Status.OFFLINE

    async def is_host_awake(self, host: str) -> bool:
        """Basic liveness via port 80, independent of the status endpoint."""
        return await self.probe(host, LIVENESS_PORT)

    async def watch(
        self, host: str, port: int, interval: float = STATUS_CHECK_INTERVAL
    ) -> AsyncIterator[Status]:
        """Yield an initial status, then one per interval until the consumer stops."""
        yield await self.check_status(host, port)
        while True:
            await asyncio.sleep(interval)
            yield await self.check_status(host, port)
