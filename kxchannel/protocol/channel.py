# MIT License © 2025 Motohiro Suzuki
"""
protocol/channel.py

SecureChannel: the owning application of one KeyExchange engine.

- Feeds inbound FT_KEY_EXCHANGE frames to the engine and sends whatever
  it asks for (as kx.build_message(step), so every outbound message
  carries the local public key).
- Records the responder key carried by SYNACK itself. The engine never
  adopts a key from SYNACK; this is the application doing it through
  record_remote_public_key().
- Owns liveness: re-sends SYN every resend_interval while the initiator
  waits and raises HandshakeTimeout after handshake_timeout.

One task owns a channel. Nothing here is safe to call concurrently.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Any, Deque, Optional

from kxchannel.protocol.codec import PayloadEncodingError, decode_payload
from kxchannel.protocol.config import KeyExchangeConfig
from kxchannel.protocol.errors import HandshakeTimeout
from kxchannel.protocol.failure import ClosePayload, CloseReason
from kxchannel.protocol.key_exchange import KeyExchange, key_fingerprint
from kxchannel.protocol.messages import HandshakeMessage, HandshakeStep
from kxchannel.protocol.result import Result
from kxchannel.transport.io_async import AsyncFrameIO
from kxchannel.transport.message_frame import (
    FT_APP_DATA,
    FT_CLOSE,
    FT_KEY_EXCHANGE,
    MessageFrame,
)


class SecureChannel:
    def __init__(
        self,
        io: AsyncFrameIO,
        kx: Optional[KeyExchange] = None,
        cfg: Optional[KeyExchangeConfig] = None,
    ) -> None:
        self.cfg = cfg if cfg is not None else KeyExchangeConfig()
        self.io = io
        self.kx = kx if kx is not None else KeyExchange(cfg=self.cfg)
        self._inbox: Deque[Result[str]] = deque()
        self._reader_task: Optional[asyncio.Task] = None

    def _log(self, line: str) -> None:
        if self.cfg.log_progress:
            print(f"[channel] {line}")

    async def start(self) -> None:
        await self.io.send_key_exchange(self.kx.initiate())
        self._log(f"sent {HandshakeStep.SYN.value} fp={key_fingerprint(self.kx.public_key)}")

    async def handle_frame(self, frame: MessageFrame) -> Optional[Result[str]]:
        if frame.frame_type == FT_KEY_EXCHANGE:
            msg = HandshakeMessage.from_json(frame.payload)
            if (
                msg.step == HandshakeStep.SYNACK
                and msg.public_key is not None
                and self.kx.remote_public_key is None
                and not self.kx.handshake_complete
            ):
                self.kx.record_remote_public_key(msg.public_key)

            intent = self.kx.on_inbound_message(msg)
            if intent is not None:
                await self.io.send_key_exchange(self.kx.build_message(intent.step))
                self._log(f"sent {intent.step.value}")
            return None

        if frame.frame_type == FT_APP_DATA:
            return self.kx.decrypt(bytes(frame.payload).decode("utf-8", errors="replace"))

        if frame.frame_type == FT_CLOSE:
            try:
                cp = ClosePayload.decode(bytes(frame.payload))
            except ValueError:
                raise ConnectionError("peer sent CLOSE code=unknown (truncated payload)") from None
            raise ConnectionError(f"peer sent CLOSE code={cp.close_code} message={cp.message}")

        self._log(f"ignoring unknown frame type={frame.frame_type}")
        return None

    async def _next_frame(self, timeout: Optional[float]) -> MessageFrame | None:
        # a pending read survives a timeout so no partially read frame is lost
        if self._reader_task is None:
            self._reader_task = asyncio.ensure_future(self.io.read_frame())
        done, _ = await asyncio.wait({self._reader_task}, timeout=timeout)
        if not done:
            raise asyncio.TimeoutError
        task, self._reader_task = self._reader_task, None
        return task.result()

    def _ready(self, initiator: bool) -> bool:
        if initiator:
            return self.kx.handshake_complete
        return self.kx.remote_public_key is not None

    async def run_handshake(self, *, initiator: bool) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.cfg.handshake_timeout

        if initiator:
            await self.start()

        while not self._ready(initiator):
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise HandshakeTimeout(f"no handshake progress within {self.cfg.handshake_timeout}s")

            wait = min(remaining, self.cfg.resend_interval) if initiator else remaining
            try:
                frame = await self._next_frame(wait)
            except asyncio.TimeoutError:
                if initiator and loop.time() < deadline:
                    self._log("no SYNACK yet, re-sending SYN")
                    await self.start()
                continue

            if frame is None:
                raise ConnectionError("connection closed during handshake")
            out = await self.handle_frame(frame)
            if out is not None:
                self._inbox.append(out)

        if self.kx.remote_public_key is None:
            self._log("handshake complete but remote key unknown; encrypt/decrypt will fail")
        else:
            self._log(f"ready remote fp={key_fingerprint(self.kx.remote_public_key)}")

    async def send(self, payload: Any) -> Result[str]:
        r = self.kx.encrypt(payload)
        if r.ok:
            await self.io.send_app_data(r.unwrap())
        return r

    async def recv(self) -> Result[str]:
        while True:
            if self._inbox:
                return self._inbox.popleft()
            frame = await self._next_frame(None)
            if frame is None:
                raise ConnectionError("connection closed")
            out = await self.handle_frame(frame)
            if out is not None:
                return out

    async def recv_payload(self) -> Any:
        text = (await self.recv()).unwrap()
        if not text:
            raise PayloadEncodingError("ciphertext did not decrypt under the local key")
        return decode_payload(text)

    async def close(self, reason: CloseReason = CloseReason.NORMAL, message: str | None = None) -> None:
        if self._reader_task is not None:
            self._reader_task.cancel()
            self._reader_task = None
        if not self.io.closed:
            try:
                await self.io.send_close(int(reason), message)
            except (ConnectionError, OSError):
                pass
        await self.io.close()
