"""Cross-process mailbox between the controller and the display surface."""

import asyncio
import logging
import math
import time
from typing import Awaitable, Callable, Optional, Set

from constants import (
    ACTION_FRESHNESS_WINDOW,
    KEY_ACTION,
    KEY_ACTION_TIME,
    KEY_SNAPSHOT,
    MAILBOX_POLL_INTERVAL,
)
from models import ActionKind, ActionRequest, StatusSnapshot
from shared_store import SharedStore

logger = logging.getLogger(__name__)

Dispatcher = Callable[[ActionRequest], Awaitable[None]]


class ControllerMailbox:
    """
    Controller side: polls for action requests and publishes snapshots.

    A request is claimed (read and deleted in one atomic store operation)
    before anything else happens, so it is dispatched at most once.
    Requests older than the freshness window are dropped undispatched.
    """

    def __init__(
        self,
        store: SharedStore,
        dispatcher: Dispatcher,
        poll_interval: float = MAILBOX_POLL_INTERVAL,
        freshness_window: float = ACTION_FRESHNESS_WINDOW,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.poll_interval = poll_interval
        self.freshness_window = freshness_window
        self.clock = clock
        self._poll_task: Optional[asyncio.Task] = None
        self._dispatches: Set[asyncio.Task] = set()

    async def publish_snapshot(self, snapshot: StatusSnapshot):
        """Write the latest snapshot as a single blob."""
        await self.store.set_many({KEY_SNAPSHOT: snapshot.to_json()})
        logger.debug(f"Published snapshot: status={snapshot.status.value} error={snapshot.last_error!r}")

    async def poll_once(self) -> Optional[ActionRequest]:
        """Claim a pending request; schedule and return it if still fresh."""
        claimed = await self.store.claim(KEY_ACTION, KEY_ACTION_TIME)
        if claimed is None:
            return None

        request = self._parse(claimed.get(KEY_ACTION), claimed.get(KEY_ACTION_TIME))
        if request is None:
            return None

        age = self.clock() - request.issued_at
        if not 0 <= age < self.freshness_window:
            logger.warning(f"Dropping stale action '{request.kind.value}' (age {age:.1f}s)")
            return None

        logger.info(f"Dispatching action '{request.kind.value}' from mailbox")
        task = asyncio.create_task(self._dispatch(request), name=f"dispatch-{request.kind.value}")
        self._dispatches.add(task)
        task.add_done_callback(self._dispatches.discard)
        return request

    def _parse(self, action: Optional[str], issued_at: Optional[str]) -> Optional[ActionRequest]:
        try:
            kind = ActionKind(action)
        except ValueError:
            logger.warning(f"Dropping unknown action {action!r}")
            return None
        try:
            timestamp = float(issued_at)
            if not math.isfinite(timestamp):
                raise ValueError(issued_at)
        except (TypeError, ValueError):
            logger.warning(f"Dropping action '{kind.value}' with bad timestamp {issued_at!r}")
            return None
        return ActionRequest(kind=kind, issued_at=timestamp)

    async def _dispatch(self, request: ActionRequest):
        try:
            await self.dispatcher(request)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Action '{request.kind.value}' failed: {e}", exc_info=True)

    async def wait_idle(self):
        """Wait for every dispatched action to finish."""
        while self._dispatches:
            await asyncio.gather(*list(self._dispatches), return_exceptions=True)

    def start(self):
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.create_task(self._poll_loop(), name="mailbox_poller")
            logger.info(f"Mailbox poller started ({self.poll_interval}s interval)")

    async def stop(self):
        tasks = list(self._dispatches)
        if self._poll_task is not None:
            tasks.append(self._poll_task)
            self._poll_task = None
        for t in tasks:
            t.cancel()
        for t in tasks:
            try:
                await t
            except asyncio.CancelledError:
                pass
            except Exception:
                pass

    async def _poll_loop(self):
        while True:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Mailbox poll error: {e}", exc_info=True)
            await asyncio.sleep(self.poll_interval)


class DisplayMailbox:
    """Display side: requests actions and reads the latest snapshot."""

    def __init__(self, store: SharedStore, clock: Callable[[], float] = time.time):
        self.store = store
        self.clock = clock

    async def request_action(self, kind: ActionKind) -> ActionRequest:
        request = ActionRequest(kind=kind, issued_at=self.clock())
        # Timestamp first: a reader that sees the action also sees its time.
        await self.store.set_many({
            KEY_ACTION_TIME: repr(request.issued_at),
            KEY_ACTION: request.kind.value,
        })
        logger.debug(f"Requested action '{kind.value}'")
        return request

    async def read_snapshot(self) -> StatusSnapshot:
        """Latest snapshot, or the default (unknown) one if none is readable."""
        blob = await self.store.get(KEY_SNAPSHOT)
        if not blob:
            return StatusSnapshot.default()
        try:
            return StatusSnapshot.from_json(blob)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring unreadable snapshot: {e}")
            return StatusSnapshot.default()
