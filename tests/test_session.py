import asyncio
import pytest
from unittest.mock import AsyncMock

import OSC_Bridge.state as state
from OSC_Bridge.connections.errors import (
    ClassifiedError, ConnectionLostError, ErrorKind, HealthCheckError,
    OscTimeoutError, PortInUseError,
)
from OSC_Bridge.connections.osc import OscClient, OscConfig
from OSC_Bridge.connections.session import (
    ConnectionSession, SessionState, get_session, reset_session,
)
from conftest import alive, transport_factory


class FakeClient:
    """Client double whose health is scripted per instance."""

    def __init__(self, config, healthy=True, open_error=None):
        self.config = config
        self.healthy = healthy
        self.open_error = open_error
        self.is_ready = False
        self.closed = False
        self.health_checks = 0
        self.pending_count = 0
        self.query = AsyncMock(return_value=[120.0])
        self.send = lambda address, args=None: None

    async def open(self):
        if self.open_error is not None:
            raise self.open_error
        self.is_ready = True

    async def close(self):
        self.is_ready = False
        self.closed = True

    async def ensure_connected(self):
        self.health_checks += 1
        await asyncio.sleep(0)
        if not self.healthy:
            raise HealthCheckError("AbletonOSC health check failed.")

    async def health_check(self, timeout_ms=3000):
        self.health_checks += 1
        await asyncio.sleep(0)
        return self.healthy

    def classify_error(self, err):
        if isinstance(err, OscTimeoutError):
            return ClassifiedError(ErrorKind.TIMEOUT, str(err), True)
        return ClassifiedError(ErrorKind.UNKNOWN, str(err), False)


def scripted_factory(outcomes, created):
    """Each new client takes the next outcome; the last one repeats.

    An outcome is True (healthy), False (unhealthy) or an exception raised by open().
    """
    outcomes = list(outcomes)

    def factory(config):
        outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        if isinstance(outcome, BaseException):
            client = FakeClient(config, open_error=outcome)
        else:
            client = FakeClient(config, healthy=outcome)
        created.append(client)
        return client

    return factory


def make_session(outcomes, attempts=3):
    created = []
    session = ConnectionSession(
        OscConfig(), client_factory=scripted_factory(outcomes, created),
        reconnect_attempts=attempts, reconnect_delay=0,
    )
    return session, created


class TestEnsureConnected:
    @pytest.mark.asyncio
    async def test_first_call_opens_and_verifies(self):
        session, created = make_session([True])
        assert session.state is SessionState.UNINITIALIZED
        client = await session.ensure_connected()
        assert client is created[0]
        assert client.is_ready
        assert session.state is SessionState.VERIFIED
        assert session.is_verified

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_health_check(self):
        session, created = make_session([True])
        clients = await asyncio.gather(*(session.ensure_connected() for _ in range(5)))
        assert len(created) == 1
        assert created[0].health_checks == 1
        assert all(c is created[0] for c in clients)

    @pytest.mark.asyncio
    async def test_verified_session_skips_health_check(self):
        session, created = make_session([True])
        await session.ensure_connected()
        await session.ensure_connected()
        await session.ensure_connected()
        assert created[0].health_checks == 1

    @pytest.mark.asyncio
    async def test_invalidate_forces_reverification(self):
        session, created = make_session([True])
        await session.ensure_connected()
        session.invalidate()
        assert session.state is SessionState.UNVERIFIED
        await session.ensure_connected()
        assert len(created) == 1
        assert created[0].health_checks == 2
        assert session.state is SessionState.VERIFIED

    @pytest.mark.asyncio
    async def test_invalidate_is_noop_unless_verified(self):
        session, _ = make_session([True])
        session.invalidate()
        assert session.state is SessionState.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_reconnect_recovers(self):
        session, created = make_session([False, True])
        client = await session.ensure_connected()
        assert len(created) == 2
        assert created[0].closed
        assert client is created[1]
        assert session.state is SessionState.VERIFIED

    @pytest.mark.asyncio
    async def test_reconnect_exhaustion(self):
        session, created = make_session([False], attempts=3)
        with pytest.raises(ConnectionLostError) as excinfo:
            await session.ensure_connected()
        assert "3 reconnect attempts" in str(excinfo.value)
        assert "Troubleshooting" in str(excinfo.value)
        assert len(created) == 4
        assert all(c.closed for c in created)
        assert session.state is SessionState.UNINITIALIZED
        assert session.client is None
        assert session.last_error is excinfo.value

    @pytest.mark.asyncio
    async def test_exhaustion_does_not_poison_next_attempt(self):
        session, created = make_session([False, False, True], attempts=1)
        with pytest.raises(ConnectionLostError):
            await session.ensure_connected()
        await session.ensure_connected()
        assert session.state is SessionState.VERIFIED
        assert len(created) == 3

    @pytest.mark.asyncio
    async def test_port_in_use_is_not_retried(self):
        session, created = make_session([PortInUseError("Port 11000 already in use", port=11000)])
        with pytest.raises(PortInUseError):
            await session.ensure_connected()
        assert len(created) == 1
        assert session.state is SessionState.UNINITIALIZED
        assert session.client is None


class TestGatedRequests:
    @pytest.mark.asyncio
    async def test_query_goes_through_verified_client(self):
        session, created = make_session([True])
        assert await session.query("/live/song/get/tempo") == [120.0]
        created[0].query.assert_awaited_once_with("/live/song/get/tempo", None, 5000)

    @pytest.mark.asyncio
    async def test_recoverable_failure_invalidates(self):
        session, created = make_session([True])
        await session.ensure_connected()
        created[0].query.side_effect = OscTimeoutError("OSC query timeout after 5000ms")
        with pytest.raises(OscTimeoutError):
            await session.query("/live/song/get/tempo")
        assert session.state is SessionState.UNVERIFIED
        assert isinstance(session.last_error, OscTimeoutError)

    @pytest.mark.asyncio
    async def test_status(self):
        session, _ = make_session([True])
        await session.ensure_connected()
        status = session.status()
        assert status["state"] == "verified"
        assert status["send_port"] == 11001
        assert status["receive_port"] == 11000
        assert status["last_error"] is None

    @pytest.mark.asyncio
    async def test_close_discards_client(self):
        session, created = make_session([True])
        await session.ensure_connected()
        await session.close()
        assert created[0].closed
        assert session.client is None
        assert session.state is SessionState.UNINITIALIZED


class TestCheckHealth:
    @pytest.mark.asyncio
    async def test_healthy_check_verifies_session(self):
        session, created = make_session([True])
        assert await session.check_health() is True
        assert session.client is created[0]
        assert session.state is SessionState.VERIFIED
        # the gate reuses the verified client without another check
        await session.ensure_connected()
        assert created[0].health_checks == 1

    @pytest.mark.asyncio
    async def test_unhealthy_check_does_not_reconnect(self):
        session, created = make_session([True])
        await session.ensure_connected()
        created[0].healthy = False
        assert await session.check_health() is False
        assert len(created) == 1
        assert session.state is SessionState.UNVERIFIED

    @pytest.mark.asyncio
    async def test_port_in_use_discards_client(self):
        session, created = make_session([PortInUseError("Port 11000 already in use", port=11000)])
        with pytest.raises(PortInUseError):
            await session.check_health()
        assert created[0].closed
        assert session.client is None
        assert session.state is SessionState.UNINITIALIZED


class TestWithRealClient:
    @pytest.mark.asyncio
    async def test_status_check_shares_in_flight_open(self):
        transports = []
        session = ConnectionSession(
            OscConfig(),
            client_factory=lambda config: OscClient(
                config, transport_factory=transport_factory(transports, responder=alive)),
            reconnect_delay=0,
        )
        establishing = asyncio.ensure_future(session.ensure_connected())
        await asyncio.sleep(0)
        healthy, client = await asyncio.gather(session.check_health(), establishing)
        assert healthy is True
        assert len(transports) == 1
        assert transports[0].open_calls == 1
        assert session.client is client
        assert session.state is SessionState.VERIFIED
        await session.close()

    @pytest.mark.asyncio
    async def test_health_check_over_fake_transport(self):
        transports = []
        session = ConnectionSession(
            OscConfig(),
            client_factory=lambda config: OscClient(
                config, transport_factory=transport_factory(transports, responder=alive)),
            reconnect_delay=0,
        )
        client = await session.ensure_connected()
        assert client.is_ready
        assert transports[0].sent == [("/live/test", [])]
        await session.close()
        assert transports[0].is_open is False


class TestProcessSession:
    def test_get_session_is_a_singleton(self, monkeypatch):
        monkeypatch.setenv("OSC_SEND_PORT", "9001")
        reset_session()
        session = get_session()
        assert session is get_session()
        assert state.osc_session is session
        assert session.config.send_port == 9001

    def test_reset_session(self):
        first = get_session()
        reset_session()
        assert get_session() is not first
