# MIT License © 2025 Motohiro Suzuki
"""
runners/run_responder.py

Localhost demo, responder side:
  accept one connection -> wait for SYN -> answer SYNACK
  -> decrypt one request -> send one encrypted reply -> close

Env: KX_HOST, KX_PORT, plus the KeyExchangeConfig variables.
"""

from __future__ import annotations

import asyncio
import os

from kxchannel.protocol.channel import SecureChannel
from kxchannel.protocol.config import KeyExchangeConfig
from kxchannel.protocol.errors import HandshakeTimeout
from kxchannel.protocol.failure import CloseReason
from kxchannel.transport.io_async import AsyncFrameIO

HOST = os.getenv("KX_HOST", "127.0.0.1")
PORT = int(os.getenv("KX_PORT", "9100"))


async def serve_one(reader: asyncio.StreamReader, writer: asyncio.StreamWriter, cfg: KeyExchangeConfig) -> dict:
    ch = SecureChannel(AsyncFrameIO(reader, writer), cfg=cfg)
    reason = CloseReason.NORMAL
    try:
        await ch.run_handshake(initiator=False)
        request = await ch.recv_payload()
        print(f"[responder] request={request!r}")

        reply = {"ok": True, "echo": request}
        r = await ch.send(reply)
        if not r.ok:
            code = r.unwrap_err().code
            print(f"[responder] reply not sent: {code.value}")
            reason = CloseReason.from_failure_code(code)
        return reply
    except HandshakeTimeout:
        reason = CloseReason.HANDSHAKE_TIMEOUT
        raise
    finally:
        await ch.close(reason)


async def main() -> None:
    cfg = KeyExchangeConfig.from_env()
    done: asyncio.Future = asyncio.get_running_loop().create_future()

    async def _on_client(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            await serve_one(reader, writer, cfg)
        except Exception as e:
            if not done.done():
                done.set_exception(e)
            return
        if not done.done():
            done.set_result(None)

    server = await asyncio.start_server(_on_client, HOST, PORT)
    print(f"[responder] listening on {HOST}:{PORT} cipher={cfg.cipher}")
    async with server:
        await done


def cli() -> int:
    asyncio.run(main())
    return 0


if __name__ == "__main__":
    raise SystemExit(cli())
