"""Status monitor: owns the live status and publishes snapshots."""

import asyncio
import logging
from typing import Optional, Protocol, Tuple

import aiohttp

from constants import (
    HTTP_REQUEST_TIMEOUT,
    HTTP_RESOURCE_TIMEOUT,
    IS_ONLINE_PATH,
    ONLINE_BODY,
    STATUS_CHECK_INTERVAL,
)
from errors import InvalidEndpoint
from models import ControlEndpoint, EndpointSummary, Status, StatusSnapshot

logger = logging.getLogger(__name__)

HTTP_TIMEOUT = aiohttp.ClientTimeout(
    total=HTTP_RESOURCE_TIMEOUT,
    sock_connect=HTTP_REQUEST_TIMEOUT,
    sock_read=HTTP_REQUEST_TIMEOUT,
)


class EndpointProvider(Protocol):
    def endpoint(self) -> ControlEndpoint: ...

    def summary(self) -> Optional[EndpointSummary]: ...


class SnapshotPublisher(Protocol):
    async def publish_snapshot(self, snapshot: StatusSnapshot) -> None: ...


class StatusMonitor:
    """
    Sole owner of the current Status and last error.

    Refreshes on a fixed timer and on demand. A new snapshot is published
    only when status, error or endpoint summary differ from the last
    published one. Transport failures read as OFFLINE; UNKNOWN is kept
    for "no usable endpoint configured".
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        endpoints: EndpointProvider,
        publisher: Optional[SnapshotPublisher] = None,
        interval: float = STATUS_CHECK_INTERVAL,
    ):
        self.session = session
        self.endpoints = endpoints
        self.publisher = publisher
        self.interval = interval

        self.status = Status.UNKNOWN
        self.last_error: Optional[str] = None
        self.latest: StatusSnapshot = StatusSnapshot.default()

        self._published_state: Optional[Tuple] = None
        self._task: Optional[asyncio.Task] = None

    def current_endpoint(self) -> ControlEndpoint:
        """Raises InvalidEndpoint if the configured base URL is not acceptable."""
        return self.endpoints.endpoint()

    async def refresh(self) -> Status:
        """Run one status cycle and publish if anything changed."""
        try:
            endpoint = self.current_endpoint()
        except InvalidEndpoint as e:
            logger.debug(f"Status check skipped, invalid endpoint {e.url!r}")
            endpoint = None

        if endpoint is None or not endpoint.has_http:
            status = Status.UNKNOWN
        else:
            status = await self._fetch_status(endpoint)

        self.status = status
        await self._publish_if_changed()
        return status

    async def _fetch_status(self, endpoint: ControlEndpoint) -> Status:
        url = endpoint.url_for(IS_ONLINE_PATH)
        logger.debug(f"Checking status at {url}")
        try:
            async with self.session.get(url, headers=endpoint.headers(), timeout=HTTP_TIMEOUT) as resp:
                if resp.status != 200:
                    logger.debug(f"Status check returned HTTP {resp.status}")
                    return Status.OFFLINE
                body = await resp.text()
        except (aiohttp.ClientError, asyncio.TimeoutError, UnicodeDecodeError) as e:
            logger.debug(f"Status check failed: {e!r}")
            return Status.OFFLINE
        return Status.ONLINE if body.strip().lower() == ONLINE_BODY else Status.OFFLINE

    async def report_error(self, message: Optional[str]):
        """Record the latest user-visible error (None clears it)."""
        self.last_error = message
        if message:
            logger.warning(f"Control error: {message}")
        await self._publish_if_changed()

    def _summary(self) -> Optional[EndpointSummary]:
        try:
            return self.endpoints.summary()
        except Exception as e:
            logger.warning(f"Could not summarize endpoint: {e}")
            return None

    async def _publish_if_changed(self):
        summary = self._summary()
        state = (self.status, self.last_error, summary)
        if state == self._published_state:
            logger.debug(f"Status unchanged ({self.status.value}), not publishing")
            return
        self._published_state = state

        snapshot = StatusSnapshot(status=self.status, endpoint=summary, last_error=self.last_error)
        self.latest = snapshot
        logger.info(f"Status {snapshot.status.value}, last error: {snapshot.last_error}")
        if self.publisher is None:
            return
        try:
            await self.publisher.publish_snapshot(snapshot)
        except Exception as e:
            # Retry on the next cycle.
            self._published_state = None
            logger.error(f"Failed to publish snapshot: {e}", exc_info=True)

    def start(self):
        """Start the periodic timer; the first refresh runs immediately."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.periodic_refresh_task(), name="status_refresh")
            logger.info(f"Status monitoring started ({self.interval}s interval)")

    async def stop(self):
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def periodic_refresh_task(self):
        """Refresh forever; errors are logged and never stop the timer."""
        while True:
            try:
                await self.refresh()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Status refresh error: {e}", exc_info=True)
            await asyncio.sleep(self.interval)
