"""Remote power control over HTTP with Wake-on-LAN fallback."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

import aiohttp

from constants import ACTION_SUCCESS_BODIES, WAKE_PORT, WAKE_SETTLE_DELAY
from errors import (
    ControlError,
    InvalidEndpoint,
    NotConfigured,
    ServerError,
    TransportError,
)
from magic_packet import wake
from models import ActionKind, ControlEndpoint, Status
from reachability import ReachabilityProber
from status_monitor import HTTP_TIMEOUT, StatusMonitor

logger = logging.getLogger(__name__)

WakeSender = Callable[[str, str, int], Awaitable[str]]


class RemoteControlClient:
    """Send power actions to the machine's control endpoint."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        monitor: StatusMonitor,
        settle_delay: float = WAKE_SETTLE_DELAY,
        wake_sender: WakeSender = wake,
        prober: Optional[ReachabilityProber] = None,
    ):
        self.session = session
        self.monitor = monitor
        self.settle_delay = settle_delay
        self.wake_sender = wake_sender
        self.prober = prober or ReachabilityProber()
        self.is_loading = False

    async def turn_on(self) -> Optional[ControlError]:
        return await self.perform_action(ActionKind.POWER_ON, allow_wake_fallback=True)

    async def turn_off(self) -> Optional[ControlError]:
        return await self.perform_action(ActionKind.POWER_OFF, allow_wake_fallback=False)

    async def check_status(self) -> Status:
        return await self.monitor.refresh()

    async def perform_action(
        self, action: ActionKind, allow_wake_fallback: bool = False
    ) -> Optional[ControlError]:
        """
        Issue one HTTP action and return the final error, if any.

        The error is also recorded on the monitor, which publishes it. A
        failed power-on falls back to Wake-on-LAN when allowed; power-off
        never wakes. There is no retry beyond the single attempt.
        """
        if action.path is None:
            raise ValueError(f"{action.value} is not a power action")

        self.is_loading = True
        try:
            await self.monitor.report_error(None)

            try:
                endpoint = self.monitor.current_endpoint()
            except InvalidEndpoint as e:
                logger.warning(f"Ignoring invalid base URL '{e.url}': {e}")
                return await self._fail(NotConfigured())
            if not endpoint.has_http:
                return await self._fail(NotConfigured())

            try:
                await self._send(endpoint, action)
            except (TransportError, ServerError) as e:
                if action is ActionKind.POWER_ON and allow_wake_fallback:
                    logger.info(f"{action.value} failed ({e}), falling back to Wake-on-LAN")
                    return await self._wake_and_refresh(endpoint)
                logger.error(f"{action.value} failed: {e}")
                await self.monitor.report_error(str(e))
                return e
            return None
        finally:
            self.is_loading = False

    async def _fail(self, error: ControlError) -> ControlError:
        logger.warning(f"Action not attempted: {error}")
        await self.monitor.report_error(str(error))
        await self.monitor.refresh()
        return error

    async def _send(self, endpoint: ControlEndpoint, action: ActionKind):
        url = endpoint.url_for(action.path)
        logger.info(f"Sending {action.value} to {url}")
        try:
            async with self.session.get(url, headers=endpoint.headers(), timeout=HTTP_TIMEOUT) as resp:
                if resp.status != 200:
                    raise ServerError(resp.status)
                body = await resp.text()
        except asyncio.TimeoutError as e:
            raise TransportError(timed_out=True) from e
        except (aiohttp.ClientError, UnicodeDecodeError) as e:
            raise TransportError(str(e) or type(e).__name__) from e

        reply = body.strip()
        if reply.lower() in ACTION_SUCCESS_BODIES:
            logger.info(f"{action.value} accepted")
            await self.monitor.refresh()
        elif reply:
            # The server explained itself; show that text verbatim.
            await self.monitor.report_error(reply)
        else:
            logger.info(f"{action.value} accepted (empty reply)")

    async def wake(self, endpoint: Optional[ControlEndpoint] = None) -> str:
        """Send the magic packet; works without a base URL."""
        endpoint = endpoint or self.monitor.current_endpoint()
        return await self.wake_sender(endpoint.physical_address, endpoint.last_known_ip, WAKE_PORT)

    async def _wake_and_refresh(self, endpoint: ControlEndpoint) -> Optional[ControlError]:
        error: Optional[ControlError] = None
        try:
            await self.wake(endpoint)
        except ControlError as e:
            error = e
            await self.monitor.report_error(f"Wake-on-LAN failed: {e}")

        # Refresh regardless of how the wake attempt went.
        await asyncio.sleep(self.settle_delay)
        status = await self.monitor.refresh()
        await self._log_liveness(endpoint, status)
        return error

    async def _log_liveness(self, endpoint: ControlEndpoint, status: Status):
        # LAN liveness is informational only; the monitor owns Status.
        if not endpoint.last_known_ip:
            return
        awake = await self.prober.is_host_awake(endpoint.last_known_ip)
        logger.info(
            f"After wake: {endpoint.last_known_ip} "
            f"{'answers' if awake else 'does not answer'} on the LAN, status {status.value}"
        )
