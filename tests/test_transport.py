import asyncio
import socket
import pytest

from OSC_Bridge.connections.codec import encode_args
from OSC_Bridge.connections.errors import PortInUseError
from OSC_Bridge.connections.transport import OscTransport


class TestOscTransport:
    @pytest.mark.asyncio
    async def test_loopback_exchange(self):
        receiver = OscTransport("127.0.0.1", 0, "127.0.0.1", 9)
        await receiver.open()
        port = receiver.local_address[1]
        sender = OscTransport("127.0.0.1", 0, "127.0.0.1", port)
        await sender.open()
        try:
            sender.send("/live/test", encode_args(["ok", 1, 2.5]))
            message = await asyncio.wait_for(receiver.inbound.get(), 2.0)
            assert message == ("/live/test", ["ok", 1, 2.5])
        finally:
            await sender.close()
            await receiver.close()

    @pytest.mark.asyncio
    async def test_port_in_use(self):
        blocker = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        blocker.bind(("127.0.0.1", 0))
        port = blocker.getsockname()[1]
        transport = OscTransport("127.0.0.1", port, "127.0.0.1", 11001)
        try:
            with pytest.raises(PortInUseError) as excinfo:
                await transport.open()
            assert excinfo.value.port == port
            assert str(port) in str(excinfo.value)
            assert transport.is_open is False
        finally:
            blocker.close()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        transport = OscTransport("127.0.0.1", 0, "127.0.0.1", 11001)
        await transport.open()
        assert transport.is_open
        await transport.close()
        await transport.close()
        assert transport.is_open is False
        assert transport.local_address is None

    def test_send_requires_open(self):
        transport = OscTransport("127.0.0.1", 0, "127.0.0.1", 11001)
        with pytest.raises(ConnectionError):
            transport.send("/live/test", [])

    def test_undecodable_datagram_is_dropped(self):
        transport = OscTransport("127.0.0.1", 0, "127.0.0.1", 11001)
        transport._on_datagram(b"\x00garbage", ("127.0.0.1", 11001))
        assert transport.inbound.empty()

    def test_transport_errors_reach_callback(self):
        seen = []
        transport = OscTransport("127.0.0.1", 0, "127.0.0.1", 11001, on_error=seen.append)
        err = ConnectionRefusedError("refused")
        transport._on_error(err)
        assert seen == [err]
