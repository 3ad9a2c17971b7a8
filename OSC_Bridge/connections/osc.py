"""OscClient: request/response correlation over the OSC transport.

AbletonOSC replies on the same address it was queried on and carries no
request id, so the address is the only correlation key. To keep replies
unambiguous the client allows at most one unanswered request per address:
a second ``query`` to the same address is sent only after the first one
settles. Requests to different addresses run fully concurrently.
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from OSC_Bridge.constants import (
    DEFAULT_HOST, DEFAULT_RECEIVE_PORT, DEFAULT_SEND_PORT,
    ENV_HOST, ENV_RECEIVE_PORT, ENV_SEND_PORT,
    HEALTH_CHECK_ADDRESS, HEALTH_CHECK_RESPONSE, TIMEOUTS,
)
from OSC_Bridge.connections.codec import encode_args
from OSC_Bridge.connections.errors import (
    ClassifiedError, ClientClosingError, ErrorKind, HealthCheckError,
    NotReadyError, OscTimeoutError, is_port_in_use,
)
from OSC_Bridge.connections.transport import OscTransport

logger = logging.getLogger("ParanoidAbleton")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %d", name, raw, default)
        return default


@dataclass(frozen=True)
class OscConfig:
    host: str = DEFAULT_HOST
    send_port: int = DEFAULT_SEND_PORT
    receive_port: int = DEFAULT_RECEIVE_PORT

    @classmethod
    def from_env(cls, host: str = None, send_port: int = None, receive_port: int = None) -> "OscConfig":
        """Explicit values win, then OSC_HOST / OSC_SEND_PORT / OSC_RECEIVE_PORT, then defaults."""
        return cls(
            host=host or os.environ.get(ENV_HOST) or DEFAULT_HOST,
            send_port=send_port or _env_int(ENV_SEND_PORT, DEFAULT_SEND_PORT),
            receive_port=receive_port or _env_int(ENV_RECEIVE_PORT, DEFAULT_RECEIVE_PORT),
        )


@dataclass
class PendingRequest:
    address: str
    future: asyncio.Future
    timer: asyncio.TimerHandle = field(repr=False)


class OscClient:
    """Turns the fire-and-forget OSC channel into awaitable queries."""

    def __init__(self, config: OscConfig = None, *, host: str = None,
                 send_port: int = None, receive_port: int = None,
                 transport_factory: Callable[..., OscTransport] = OscTransport):
        self.config = config or OscConfig.from_env(host, send_port, receive_port)
        self.is_ready = False
        self.last_error: Optional[BaseException] = None

        self._pending: Dict[str, PendingRequest] = {}
        # address -> "settled" future of the most recently issued request
        self._request_queues: Dict[str, asyncio.Future] = {}
        self._listeners: Dict[str, Callable[[List[Any]], Any]] = {}
        self._dispatcher: Optional[asyncio.Task] = None
        # in-flight bind shared by concurrent open() callers
        self._opening: Optional[asyncio.Task] = None

        self._transport = transport_factory(
            self.config.host, self.config.receive_port,
            self.config.host, self.config.send_port,
            on_error=self.handle_error,
        )

    @property
    def host(self) -> str:
        return self.config.host

    @property
    def send_port(self) -> int:
        return self.config.send_port

    @property
    def receive_port(self) -> int:
        return self.config.receive_port

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self):
        """Bind the transport and start routing inbound messages.

        Callers that arrive while a bind is in progress await that same bind,
        so the port is only ever bound once per client.
        """
        if self.is_ready:
            return
        task = self._opening
        if task is None:
            task = asyncio.get_running_loop().create_task(self._open(), name="osc-open")
            self._opening = task
            task.add_done_callback(self._open_done)
        await asyncio.shield(task)

    async def _open(self):
        await self._transport.open()
        self._dispatcher = asyncio.get_running_loop().create_task(
            self._dispatch_loop(), name="osc-dispatcher"
        )
        self.is_ready = True

    def _open_done(self, task: asyncio.Task):
        if self._opening is task:
            self._opening = None
        if not task.cancelled() and task.exception() is not None:
            self.last_error = task.exception()

    async def close(self):
        """Reject every in-flight request, then release the transport."""
        self.is_ready = False
        opening, self._opening = self._opening, None
        if opening is not None and not opening.done():
            opening.cancel()
            try:
                await opening
            except (asyncio.CancelledError, Exception):
                pass
        pending, self._pending = self._pending, {}
        for entry in pending.values():
            entry.timer.cancel()
            if not entry.future.done():
                entry.future.set_exception(ClientClosingError("Client closing"))
        self._request_queues.clear()
        if pending:
            logger.info("Rejected %d pending OSC request(s) on close", len(pending))

        dispatcher, self._dispatcher = self._dispatcher, None
        if dispatcher is not None:
            dispatcher.cancel()
            try:
                await dispatcher
            except asyncio.CancelledError:
                pass
        await self._transport.close()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def query(self, address: str, args: Sequence[Any] = None,
                    timeout_ms: int = TIMEOUTS["QUERY"]) -> List[Any]:
        """Send ``address`` with ``args`` and return the reply's plain values.

        Raises NotReadyError before ``open()``, OscTimeoutError when no reply
        arrives within ``timeout_ms``, ClientClosingError when ``close()``
        intervenes, or whatever the transport raised while sending.
        """
        if not self.is_ready:
            raise NotReadyError("OSC client not ready. Call open() first.")
        args = list(args or [])

        settled = asyncio.get_running_loop().create_future()
        previous = self._request_queues.get(address)
        self._request_queues[address] = settled
        try:
            if previous is not None:
                # Outcome of the earlier request is its caller's business
                await asyncio.wait([previous])
                if not self.is_ready:
                    raise ClientClosingError("Client closing")
            return await self._send_and_wait(address, args, timeout_ms)
        finally:
            if previous is not None and not previous.done():
                # cancelled while queued: hold the turn until the earlier request settles
                previous.add_done_callback(lambda _: self._release(address, settled))
            else:
                self._release(address, settled)

    def _release(self, address: str, settled: asyncio.Future):
        if not settled.done():
            settled.set_result(None)
        if self._request_queues.get(address) is settled:
            del self._request_queues[address]

    async def _send_and_wait(self, address: str, args: List[Any], timeout_ms: int) -> List[Any]:
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        timer = loop.call_later(timeout_ms / 1000.0, self._expire, address, future, timeout_ms)
        entry = PendingRequest(address, future, timer)
        self._pending[address] = entry
        try:
            self._transport.send(address, encode_args(args))
            return await future
        finally:
            timer.cancel()
            if self._pending.get(address) is entry:
                del self._pending[address]

    def _expire(self, address: str, future: asyncio.Future, timeout_ms: int):
        entry = self._pending.get(address)
        if entry is not None and entry.future is future:
            del self._pending[address]
        if not future.done():
            future.set_exception(OscTimeoutError(
                f"OSC query timeout after {timeout_ms}ms for address: {address}"
            ))

    def send(self, address: str, args: Sequence[Any] = None):
        """Fire-and-forget command; no reply is expected or correlated."""
        if not self.is_ready:
            raise NotReadyError("OSC client not ready. Call open() first.")
        self._transport.send(address, encode_args(list(args or [])))

    # ------------------------------------------------------------------
    # Inbound routing
    # ------------------------------------------------------------------

    def add_listener(self, address: str, callback: Callable[[List[Any]], Any]):
        """Route unsolicited messages on ``address`` to ``callback``."""
        self._listeners[address] = callback

    def remove_listener(self, address: str):
        self._listeners.pop(address, None)

    async def _dispatch_loop(self):
        inbound = self._transport.inbound
        while True:
            address, values = await inbound.get()
            self.handle_message(address, values)

    def handle_message(self, address: str, values: Sequence[Any]):
        entry = self._pending.pop(address, None)
        if entry is not None:
            entry.timer.cancel()
            if not entry.future.done():
                entry.future.set_result(list(values))
            return

        listener = self._listeners.get(address)
        if listener is not None:
            try:
                listener(list(values))
            except Exception as e:
                logger.error("Listener for %s failed: %s", address, e)
            return

        logger.debug("Dropping unsolicited OSC message %s %r", address, values)

    # ------------------------------------------------------------------
    # Errors and health
    # ------------------------------------------------------------------

    def handle_error(self, err: BaseException):
        """Transport-level fault callback."""
        self.last_error = err
        classified = self.classify_error(err)
        if classified.kind is ErrorKind.PORT_IN_USE:
            logger.error("OSC port error: %s", classified.message)
            logger.error("Check if another process is using port %d", self.receive_port)
        else:
            logger.warning("OSC transport error (%s): %s", classified.kind.value, err)

    def classify_error(self, err: BaseException) -> ClassifiedError:
        if not self.is_ready:
            return ClassifiedError(
                ErrorKind.NOT_READY,
                "OSC client not ready. Call open() and wait for the port to bind.",
                True,
            )
        message = str(err) if err is not None else ""
        if "timeout" in message.lower():
            return ClassifiedError(
                ErrorKind.TIMEOUT,
                "OSC request timed out. Check if AbletonOSC is running and responding.",
                True,
            )
        if err is not None and is_port_in_use(err):
            return ClassifiedError(
                ErrorKind.PORT_IN_USE,
                f"Port {self.receive_port} already in use. "
                f"Close other OSC clients or change {ENV_RECEIVE_PORT}.",
                False,
            )
        return ClassifiedError(ErrorKind.UNKNOWN, message or "Unknown OSC error", False)

    async def health_check(self, timeout_ms: int = TIMEOUTS["HEALTH_CHECK"]) -> bool:
        """True only if the liveness sentinel answers "ok". Never raises."""
        try:
            response = await self.query(HEALTH_CHECK_ADDRESS, [], timeout_ms)
        except Exception as e:
            logger.debug("Health check failed: %s", e)
            return False
        return bool(response) and response[0] == HEALTH_CHECK_RESPONSE

    async def ensure_connected(self):
        if not await self.health_check():
            raise HealthCheckError(
                "AbletonOSC health check failed. Troubleshooting steps:\n"
                "1. Ensure Ableton Live is running\n"
                "2. Check that AbletonOSC is installed and enabled as a Control Surface\n"
                f"3. Verify OSC host and ports: host={self.host}, "
                f"send={self.send_port}, receive={self.receive_port}\n"
                f"4. Check firewall settings for UDP port {self.receive_port}"
            )

    def status(self) -> Dict[str, Any]:
        return {
            "ready": self.is_ready,
            "host": self.host,
            "send_port": self.send_port,
            "receive_port": self.receive_port,
            "pending_requests": len(self._pending),
            "listeners": len(self._listeners),
            "last_error": str(self.last_error) if self.last_error else None,
        }
