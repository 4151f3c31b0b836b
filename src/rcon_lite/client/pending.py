"""Pending request table: one single-fulfilment result slot per request id.

Each in-flight request owns an asyncio.Future and a timer handle. The
future is settled by exactly one of:

    resolve()     a reply with the matching id arrived
    timer expiry  RequestTimeout after `timeout` seconds
    reject()      the request failed individually (e.g. write error)
    reject_all()  the connection ended; every entry gets ConnectionClosed

Whichever comes first wins and the entry is removed immediately, so a
late reply for an expired id is simply unknown to the table. A caller
cancelling the future (asyncio.wait_for, task cancellation) removes the
entry the same way.

Everything runs on the event loop thread; no locking is needed.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable

from rcon_lite.protocol.errors import RequestTimeout
from rcon_lite.protocol.packet import Packet

log = logging.getLogger(__name__)


@dataclass(slots=True)
class PendingRequest:
    request_id: int
    future: asyncio.Future[Packet]
    timer: asyncio.TimerHandle


class PendingRequestTable:
    """Maps request id -> PendingRequest, with a per-entry timeout.

    Args:
        timeout: seconds before an unanswered request fails with
            RequestTimeout.
    """

    def __init__(self, timeout: float) -> None:
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        self._timeout = timeout
        self._entries: dict[int, PendingRequest] = {}

    @property
    def timeout(self) -> float:
        return self._timeout

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._entries

    def register(self, request_id: int) -> asyncio.Future[Packet]:
        """Create the result slot for `request_id` and arm its timer.

        Raises:
            ValueError: if the id already has an entry.
        """
        if request_id in self._entries:
            raise ValueError(f"Request id {request_id} is already pending")
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Packet] = loop.create_future()
        timer = loop.call_later(self._timeout, self._expire, request_id)
        self._entries[request_id] = PendingRequest(request_id, future, timer)
        future.add_done_callback(lambda _f: self._discard(request_id, future))
        return future

    def resolve(self, request_id: int, packet: Packet) -> bool:
        """Deliver a reply. Returns False if nothing waits for this id."""
        entry = self._pop(request_id)
        if entry is None:
            return False
        entry.future.set_result(packet)
        return True

    def reject(self, request_id: int, exc: BaseException) -> bool:
        """Fail one request. Returns False if nothing waits for this id."""
        entry = self._pop(request_id)
        if entry is None:
            return False
        entry.future.set_exception(exc)
        return True

    def reject_all(self, exc_factory: Callable[[], BaseException]) -> int:
        """Fail every pending request with a fresh exception; clear the table.

        Returns the number of requests rejected.
        """
        entries = list(self._entries.values())
        self._entries.clear()
        for entry in entries:
            entry.timer.cancel()
            if not entry.future.done():
                entry.future.set_exception(exc_factory())
        return len(entries)

    def _expire(self, request_id: int) -> None:
        entry = self._entries.pop(request_id, None)
        if entry is None or entry.future.done():
            return
        log.debug("Request %d timed out after %.3fs", request_id, self._timeout)
        entry.future.set_exception(RequestTimeout(request_id, self._timeout))

    def _pop(self, request_id: int) -> PendingRequest | None:
        entry = self._entries.pop(request_id, None)
        if entry is None:
            return None
        entry.timer.cancel()
        if entry.future.done():
            return None
        return entry

    def _discard(self, request_id: int, future: asyncio.Future[Packet]) -> None:
        # Only drop the entry if it still belongs to this future.
        entry = self._entries.get(request_id)
        if entry is not None and entry.future is future:
            del self._entries[request_id]
            entry.timer.cancel()
