"""OscTransport: connectionless UDP channel to AbletonOSC.

One datagram socket is bound to (local_host, local_port); every outbound
message goes to the fixed peer (remote_host, remote_port). Inbound
datagrams are decoded and queued on ``inbound`` for a single consumer.
"""

import asyncio
import errno
import logging
from typing import Any, Callable, Optional, Sequence, Tuple

from OSC_Bridge.connections.codec import TypedArg, build_message, parse_datagram
from OSC_Bridge.connections.errors import PortInUseError

logger = logging.getLogger("ParanoidAbleton")


class _OscDatagramProtocol(asyncio.DatagramProtocol):
    def __init__(self, owner: "OscTransport"):
        self._owner = owner

    def connection_made(self, transport):
        self._owner._on_ready(transport)

    def datagram_received(self, data, addr):
        self._owner._on_datagram(data, addr)

    def error_received(self, exc):
        self._owner._on_error(exc)

    def connection_lost(self, exc):
        self._owner._on_closed(exc)


class OscTransport:
    """Bidirectional OSC message channel with an explicit open/close lifecycle."""

    def __init__(self, local_host: str, local_port: int,
                 remote_host: str, remote_port: int,
                 on_error: Optional[Callable[[BaseException], Any]] = None):
        self.local_host = local_host
        self.local_port = local_port
        self.remote_host = remote_host
        self.remote_port = remote_port
        self.on_error = on_error
        self.inbound: "asyncio.Queue[Tuple[str, list]]" = asyncio.Queue()
        self._transport: Optional[asyncio.DatagramTransport] = None
        self._closed: Optional[asyncio.Future] = None

    @property
    def is_open(self) -> bool:
        return self._transport is not None and not self._transport.is_closing()

    @property
    def local_address(self) -> Optional[Tuple[str, int]]:
        if self._transport is None:
            return None
        return self._transport.get_extra_info("sockname")[:2]

    async def open(self):
        """Bind the local endpoint. Returns once the socket is ready."""
        if self.is_open:
            return
        loop = asyncio.get_running_loop()
        self._closed = loop.create_future()
        try:
            await loop.create_datagram_endpoint(
                lambda: _OscDatagramProtocol(self),
                local_addr=(self.local_host, self.local_port),
            )
        except OSError as e:
            self._closed = None
            if e.errno == errno.EADDRINUSE:
                raise PortInUseError(
                    f"Port {self.local_port} already in use on {self.local_host}",
                    port=self.local_port,
                ) from e
            raise
        logger.info(
            "OSC transport ready (recv<-%s:%s, send->%s:%d)",
            self.local_host, self.local_address[1] if self.local_address else self.local_port,
            self.remote_host, self.remote_port,
        )

    def send(self, address: str, typed_args: Sequence[TypedArg]):
        """Fire-and-forget one message to the remote peer."""
        if not self.is_open:
            raise ConnectionError("OSC transport is not open")
        dgram = build_message(address, typed_args)
        self._transport.sendto(dgram, (self.remote_host, self.remote_port))
        logger.debug("Sent OSC %s (%d args)", address, len(typed_args))

    async def close(self):
        """Release the local binding. Safe to call more than once."""
        transport, self._transport = self._transport, None
        if transport is None:
            return
        transport.close()
        if self._closed is not None:
            await self._closed
            self._closed = None
        logger.info("OSC transport closed (port %s)", self.local_port)

    # -- protocol callbacks -------------------------------------------------

    def _on_ready(self, transport):
        self._transport = transport

    def _on_datagram(self, data: bytes, addr):
        try:
            messages = parse_datagram(data)
        except ValueError as e:
            logger.warning("Dropping undecodable datagram from %s: %s", addr, e)
            return
        for message in messages:
            self.inbound.put_nowait(message)

    def _on_error(self, exc: BaseException):
        logger.debug("OSC transport error: %s", exc)
        if self.on_error is not None:
            self.on_error(exc)

    def _on_closed(self, exc: Optional[BaseException]):
        if exc is not None:
            self._on_error(exc)
        if self._closed is not None and not self._closed.done():
            self._closed.set_result(None)
