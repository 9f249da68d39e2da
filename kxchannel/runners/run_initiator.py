# MIT License © 2025 Motohiro Suzuki
"""
runners/run_initiator.py

Localhost demo, initiator side:
  connect -> SYN (re-sent until SYNACK) -> ACK
  -> send one encrypted request -> print the decrypted reply

Run run_responder.py first. Exit code 0 on a matching echo.
"""

from __future__ import annotations

import asyncio
import os
import sys

from kxchannel.protocol.channel import SecureChannel
from kxchannel.protocol.config import KeyExchangeConfig
from kxchannel.transport.io_async import open_connection

HOST = os.getenv("KX_HOST", "127.0.0.1")
PORT = int(os.getenv("KX_PORT", "9100"))


async def run(payload: dict, cfg: KeyExchangeConfig) -> dict:
    io = await open_connection(HOST, PORT)
    ch = SecureChannel(io, cfg=cfg)
    try:
        await ch.run_handshake(initiator=True)
        (await ch.send(payload)).unwrap()
        return await ch.recv_payload()
    finally:
        await ch.close()


def main() -> int:
    cfg = KeyExchangeConfig.from_env()
    payload = {"method": "ping", "params": sys.argv[1:]}
    reply = asyncio.run(run(payload, cfg))
    print(f"[initiator] reply={reply!r}")
    if reply.get("echo") == payload:
        print("[OK] encrypted round trip")
        return 0
    print("[FAIL] reply does not echo the request")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
