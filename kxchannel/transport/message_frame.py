# MIT License © 2025 Motohiro Suzuki
"""
transport/message_frame.py

Versioned, self-identifying frame for a byte stream:
    magic(4) "KXC0" | version(u8) | reserved(u8) | type(u8) | flags(u8) | payload_len(u32)

Payload by type:
- FT_KEY_EXCHANGE : HandshakeMessage JSON (protocol/messages.py)
- FT_APP_DATA     : ciphertext text, utf-8
- FT_CLOSE        : ClosePayload (protocol/failure.py)
"""

from __future__ import annotations

import asyncio
import struct
from dataclasses import dataclass

FT_KEY_EXCHANGE = 1
FT_APP_DATA = 2
FT_CLOSE = 3

_MAGIC = b"KXC0"
_VERSION = 1
MAX_PAYLOAD = 16 * 1024 * 1024

_HDR = struct.Struct("!4sBBBBI")


@dataclass(frozen=True)
class MessageFrame:
    frame_type: int
    flags: int
    payload: bytes

    def to_bytes(self) -> bytes:
        p = bytes(self.payload)
        if len(p) > MAX_PAYLOAD:
            raise ValueError("payload too large")
        header = _HDR.pack(
            _MAGIC,
            _VERSION,
            0,  # reserved
            int(self.frame_type) & 0xFF,
            int(self.flags) & 0xFF,
            len(p),
        )
        return header + p

    @staticmethod
    def parse_header(hdr: bytes) -> tuple[int, int, int]:
        magic, ver, _rsv, ftype, flags, plen = _HDR.unpack(hdr)
        if magic != _MAGIC:
            raise ValueError("bad magic (not KXC0)")
        if ver != _VERSION:
            raise ValueError(f"unsupported wire version: {ver}")
        if plen > MAX_PAYLOAD:
            raise ValueError("payload too large")
        return int(ftype), int(flags), int(plen)

    @staticmethod
    async def read_from(reader: asyncio.StreamReader) -> "MessageFrame | None":
        try:
            hdr = await reader.readexactly(_HDR.size)
        except asyncio.IncompleteReadError:
            return None

        ftype, flags, plen = MessageFrame.parse_header(hdr)
        payload = await reader.readexactly(plen) if plen else b""
        return MessageFrame(frame_type=ftype, flags=flags, payload=bytes(payload))


HEADER_SIZE = _HDR.size
