# MIT License © 2025 Motohiro Suzuki
import asyncio

import pytest

from kxchannel.protocol.channel import SecureChannel
from kxchannel.protocol.config import KeyExchangeConfig
from kxchannel.protocol.errors import HandshakeTimeout
from kxchannel.protocol.failure import KeyExchangeError
from kxchannel.protocol.messages import HandshakeStep
from kxchannel.transport.io_async import AsyncFrameIO, open_connection
from kxchannel.transport.message_frame import FT_CLOSE, MessageFrame


async def _connected():
    accepted = asyncio.get_running_loop().create_future()

    def on_client(reader, writer):
        accepted.set_result(AsyncFrameIO(reader, writer))

    server = await asyncio.start_server(on_client, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    client_io = await open_connection("127.0.0.1", port)
    server_io = await accepted
    return server, client_io, server_io


async def _shutdown(server, *channels):
    for ch in channels:
        await ch.close()
    server.close()
    await server.wait_closed()


def test_handshake_and_encrypted_round_trip():
    cfg = KeyExchangeConfig(cipher="ecies", log_progress=False, handshake_timeout=5)

    async def go():
        server, cio, sio = await _connected()
        a = SecureChannel(cio, cfg=cfg)
        b = SecureChannel(sio, cfg=cfg)
        try:
            await asyncio.gather(a.run_handshake(initiator=True), b.run_handshake(initiator=False))
            assert a.kx.handshake_complete is True
            assert a.kx.remote_public_key == b.kx.public_key
            assert b.kx.remote_public_key == a.kx.public_key

            request = {"method": "eth_chainId", "id": 1}
            assert (await a.send(request)).ok
            got = await b.recv_payload()
            # the ACK was read on the way to the app data
            assert b.kx.handshake_complete is True

            assert (await b.send({"id": 1, "result": "0x1"})).ok
            return got, await a.recv_payload()
        finally:
            await _shutdown(server, a, b)

    got, reply = asyncio.run(go())
    assert got == {"method": "eth_chainId", "id": 1}
    assert reply == {"id": 1, "result": "0x1"}


def test_initiator_resends_syn_while_waiting(capsys):
    cfg = KeyExchangeConfig(cipher="toy", handshake_timeout=5, resend_interval=0.05)

    async def go():
        server, cio, sio = await _connected()
        a = SecureChannel(cio, cfg=cfg)
        b = SecureChannel(sio, cfg=cfg)

        async def late_responder():
            await asyncio.sleep(0.3)
            await b.run_handshake(initiator=False)

        try:
            await asyncio.gather(a.run_handshake(initiator=True), late_responder())
            # duplicate SYNs are still queued at b; they are answered and ignored by a
            assert (await b.send("pong")).ok
            return (await a.recv()).unwrap()
        finally:
            await _shutdown(server, a, b)

    assert asyncio.run(go()) == '"pong"'
    assert "re-sending SYN" in capsys.readouterr().out


def test_handshake_timeout_when_peer_is_silent():
    cfg = KeyExchangeConfig(cipher="toy", log_progress=False, handshake_timeout=0.3, resend_interval=0.1)

    async def go():
        server, cio, sio = await _connected()
        a = SecureChannel(cio, cfg=cfg)
        try:
            with pytest.raises(HandshakeTimeout):
                await a.run_handshake(initiator=True)
            assert a.kx.handshake_complete is False
        finally:
            await sio.close()
            await _shutdown(server, a)

    asyncio.run(go())


def test_send_before_handshake_is_refused():
    cfg = KeyExchangeConfig(cipher="toy", log_progress=False)

    async def go():
        server, cio, sio = await _connected()
        a = SecureChannel(cio, cfg=cfg)
        b = SecureChannel(sio, cfg=cfg)
        try:
            return await a.send({"too": "early"})
        finally:
            await _shutdown(server, a, b)

    r = asyncio.run(go())
    assert r.unwrap_err().code is KeyExchangeError.KEYS_NOT_EXCHANGED


def test_peer_close_surfaces_as_connection_error():
    cfg = KeyExchangeConfig(cipher="toy", log_progress=False)

    async def go():
        server, cio, sio = await _connected()
        a = SecureChannel(cio, cfg=cfg)
        b = SecureChannel(sio, cfg=cfg)
        try:
            await b.close()
            with pytest.raises(ConnectionError):
                await a.recv()
        finally:
            await _shutdown(server, a)

    asyncio.run(go())


def test_truncated_close_frame_is_still_a_connection_error():
    cfg = KeyExchangeConfig(cipher="toy", log_progress=False)

    async def go():
        server, cio, sio = await _connected()
        a = SecureChannel(cio, cfg=cfg)
        try:
            await sio.write_frame(MessageFrame(frame_type=FT_CLOSE, flags=0, payload=b"\x00"))
            with pytest.raises(ConnectionError, match="code=unknown"):
                await a.recv()
        finally:
            await sio.close()
            await _shutdown(server, a)

    asyncio.run(go())


def test_synack_key_is_recorded_by_channel_not_engine():
    cfg = KeyExchangeConfig(cipher="toy", log_progress=False)

    async def go():
        server, cio, sio = await _connected()
        a = SecureChannel(cio, cfg=cfg)
        b = SecureChannel(sio, cfg=cfg)
        try:
            synack = b.kx.build_message(HandshakeStep.SYNACK)
            frame = MessageFrame(frame_type=1, flags=0, payload=synack.to_json().encode())
            assert await a.handle_frame(frame) is None
            assert a.kx.remote_public_key == b.kx.public_key
            assert a.kx.handshake_complete is True

            unknown = MessageFrame(frame_type=99, flags=0, payload=b"")
            assert await a.handle_frame(unknown) is None
        finally:
            await _shutdown(server, a, b)

    asyncio.run(go())


def test_runners_end_to_end(monkeypatch):
    from kxchannel.runners import run_initiator, run_responder

    cfg = KeyExchangeConfig(cipher="ecies", log_progress=False, handshake_timeout=5)
    payload = {"method": "ping", "params": ["a"]}

    async def go():
        server = await asyncio.start_server(
            lambda r, w: run_responder.serve_one(r, w, cfg), "127.0.0.1", 0
        )
        monkeypatch.setattr(run_initiator, "HOST", "127.0.0.1")
        monkeypatch.setattr(run_initiator, "PORT", server.sockets[0].getsockname()[1])
        try:
            return await run_initiator.run(payload, cfg)
        finally:
            server.close()
            await server.wait_closed()

    assert asyncio.run(go()) == {"ok": True, "echo": payload}
