"""ConnectionSession: owns the process-wide OscClient and its liveness state.

State machine::

    UNINITIALIZED -> OPENING -> VERIFYING -> VERIFIED
                                    ^            |
                                    +-- UNVERIFIED (invalidate)

Concurrent callers that arrive while the session is being established all
await the same establishment task, so a burst of tool calls costs one
health check. A failed establishment runs a bounded reconnect sequence;
when that is exhausted the client is discarded and the session returns to
UNINITIALIZED.
"""

import asyncio
import enum
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

import OSC_Bridge.state as state
from OSC_Bridge.constants import RECONNECT_ATTEMPTS, RECONNECT_DELAY, TIMEOUTS
from OSC_Bridge.connections.errors import ConnectionLostError, OscError, PortInUseError
from OSC_Bridge.connections.osc import OscClient, OscConfig

logger = logging.getLogger("ParanoidAbleton")


class SessionState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    OPENING = "opening"
    VERIFYING = "verifying"
    VERIFIED = "verified"
    UNVERIFIED = "unverified"


class ConnectionSession:
    def __init__(self, config: OscConfig = None,
                 client_factory: Callable[[OscConfig], OscClient] = OscClient,
                 reconnect_attempts: int = RECONNECT_ATTEMPTS,
                 reconnect_delay: float = RECONNECT_DELAY):
        self.config = config or OscConfig.from_env()
        self.client_factory = client_factory
        self.reconnect_attempts = reconnect_attempts
        self.reconnect_delay = reconnect_delay

        self.state = SessionState.UNINITIALIZED
        self.client: Optional[OscClient] = None
        self.last_error: Optional[BaseException] = None
        self._establishing: Optional[asyncio.Task] = None

    @property
    def is_verified(self) -> bool:
        return (
            self.state is SessionState.VERIFIED
            and self.client is not None
            and self.client.is_ready
        )

    async def ensure_connected(self) -> OscClient:
        """Return a verified client, opening and verifying it if needed."""
        if self.is_verified:
            return self.client

        task = self._establishing
        if task is None:
            task = asyncio.get_running_loop().create_task(
                self._establish(), name="osc-session-establish"
            )
            self._establishing = task
            task.add_done_callback(self._establish_done)
        # shield: one caller giving up must not cancel the shared attempt
        return await asyncio.shield(task)

    def _establish_done(self, task: asyncio.Task):
        if self._establishing is task:
            self._establishing = None
        if not task.cancelled() and task.exception() is not None:
            self.last_error = task.exception()

    async def _establish(self) -> OscClient:
        try:
            return await self._open_and_verify()
        except PortInUseError:
            await self._discard()
            raise
        except Exception as e:
            logger.warning("OSC connection check failed: %s", e)
            return await self._reconnect(e)

    async def _open_and_verify(self) -> OscClient:
        if self.client is None:
            self.client = self.client_factory(self.config)
        client = self.client
        if not client.is_ready:
            self.state = SessionState.OPENING
            await client.open()
        self.state = SessionState.VERIFYING
        await client.ensure_connected()
        self.state = SessionState.VERIFIED
        logger.info(
            "AbletonOSC verified on %s (send %d, receive %d)",
            self.config.host, self.config.send_port, self.config.receive_port,
        )
        return client

    async def _reconnect(self, cause: BaseException) -> OscClient:
        last_error = cause
        for attempt in range(1, self.reconnect_attempts + 1):
            logger.info("Reconnecting to AbletonOSC (attempt %d/%d)...", attempt, self.reconnect_attempts)
            await self._discard()
            await asyncio.sleep(self.reconnect_delay)
            try:
                return await self._open_and_verify()
            except PortInUseError:
                await self._discard()
                raise
            except Exception as e:
                logger.warning("Reconnect attempt %d failed: %s", attempt, e)
                last_error = e

        await self._discard()
        logger.error("AbletonOSC unreachable after %d reconnect attempts", self.reconnect_attempts)
        raise ConnectionLostError(
            f"Lost connection to AbletonOSC after {self.reconnect_attempts} reconnect attempts: "
            f"{last_error}\n"
            "Troubleshooting steps:\n"
            "1. Ensure Ableton Live is running with AbletonOSC enabled\n"
            f"2. Check that host {self.config.host} is reachable\n"
            f"3. Check that UDP port {self.config.send_port} (send) matches AbletonOSC's listen port\n"
            f"4. Check that UDP port {self.config.receive_port} (receive) is not used by another process"
        ) from last_error

    async def _discard(self):
        client, self.client = self.client, None
        self.state = SessionState.UNINITIALIZED
        if client is not None:
            try:
                await client.close()
            except Exception as e:
                logger.warning("Error closing OSC client: %s", e)

    async def check_health(self, timeout_ms: int = TIMEOUTS["HEALTH_CHECK"]) -> bool:
        """Run the liveness sentinel once, without the reconnect sequence.

        Opens the session's client if needed. Errors from opening propagate
        unchanged so the caller can report their classified cause. A passing
        check marks the session verified, a failing one unverified.
        """
        if self.client is None:
            self.client = self.client_factory(self.config)
        client = self.client
        try:
            await client.open()
        except PortInUseError:
            if self.client is client:
                await self._discard()
            raise

        healthy = await client.health_check(timeout_ms)
        if not healthy:
            self.invalidate()
        elif self.client is client and self._establishing is None:
            self.state = SessionState.VERIFIED
        return healthy

    def invalidate(self):
        """Force the next ``ensure_connected()`` to verify liveness again."""
        if self.state is SessionState.VERIFIED:
            self.state = SessionState.UNVERIFIED
            logger.info("OSC session marked unverified")

    async def reset(self):
        """Close and discard the client; the next call rebuilds it from scratch."""
        await self._discard()

    async def close(self):
        task, self._establishing = self._establishing, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except (asyncio.CancelledError, Exception):
                pass
        await self._discard()

    # ------------------------------------------------------------------
    # Gated requests
    # ------------------------------------------------------------------

    async def query(self, address: str, args: Sequence[Any] = None,
                    timeout_ms: int = TIMEOUTS["QUERY"]) -> List[Any]:
        client = await self.ensure_connected()
        try:
            return await client.query(address, args, timeout_ms)
        except OscError as e:
            self._note_failure(client, e)
            raise

    async def send(self, address: str, args: Sequence[Any] = None):
        client = await self.ensure_connected()
        try:
            client.send(address, args)
        except OscError as e:
            self._note_failure(client, e)
            raise

    def _note_failure(self, client: OscClient, err: OscError):
        self.last_error = err
        if client.classify_error(err).recoverable:
            self.invalidate()

    def status(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "host": self.config.host,
            "send_port": self.config.send_port,
            "receive_port": self.config.receive_port,
            "pending_requests": self.client.pending_count if self.client else 0,
            "last_error": str(self.last_error) if self.last_error else None,
        }


def get_session() -> ConnectionSession:
    """Get or create the process-wide connection session."""
    if state.osc_session is None:
        state.osc_session = ConnectionSession(OscConfig.from_env())
    return state.osc_session


def reset_session():
    state.osc_session = None
