# MIT License © 2025 Motohiro Suzuki
"""
transport/io_async.py

Frame I/O over asyncio streams. No retransmission or ordering guarantees
beyond what the stream gives; the key exchange tolerates duplicates and
losses on its own terms.
"""

from __future__ import annotations

import asyncio

from kxchannel.protocol.failure import ClosePayload
from kxchannel.protocol.messages import HandshakeMessage
from kxchannel.transport.message_frame import (
    FT_APP_DATA,
    FT_CLOSE,
    FT_KEY_EXCHANGE,
    MessageFrame,
)


class AsyncFrameIO:
    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._r = reader
        self._w = writer
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def read_frame(self) -> MessageFrame | None:
        return await MessageFrame.read_from(self._r)

    async def write_frame(self, frame: MessageFrame) -> None:
        if self._closed:
            return
        self._w.write(frame.to_bytes())
        await self._w.drain()

    async def send_key_exchange(self, message: HandshakeMessage) -> None:
        await self.write_frame(
            MessageFrame(frame_type=FT_KEY_EXCHANGE, flags=0, payload=message.to_json().encode("utf-8"))
        )

    async def send_app_data(self, ciphertext: str) -> None:
        await self.write_frame(
            MessageFrame(frame_type=FT_APP_DATA, flags=0, payload=ciphertext.encode("utf-8"))
        )

    async def send_close(self, close_code: int, message: str | None = None) -> None:
        payload = ClosePayload(close_code=int(close_code), message=message).encode()
        await self.write_frame(MessageFrame(frame_type=FT_CLOSE, flags=0, payload=payload))

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._w.close()
            await self._w.wait_closed()
        except (ConnectionError, OSError):
            pass


async def open_connection(host: str, port: int) -> AsyncFrameIO:
    reader, writer = await asyncio.open_connection(host, port)
    return AsyncFrameIO(reader, writer)
