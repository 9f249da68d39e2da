# MIT License © 2025 Motohiro Suzuki
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class KeyExchangeError(str, Enum):
    KEYS_NOT_EXCHANGED = "keysNotExchanged"
    ENCODING_ERROR = "encodingError"


class FailurePhase(str, Enum):
    ENCRYPT = "encrypt"
    DECRYPT = "decrypt"


@dataclass(frozen=True)
class Failure:
    """
    Error carrier for encrypt/decrypt.
    Both codes are local and recoverable: engine state is left untouched.
    detail is LOCAL-ONLY (MUST NOT be sent on wire).
    """
    code: KeyExchangeError
    phase: FailurePhase
    detail: Optional[str] = None

    def redacted(self) -> "Failure":
        return Failure(code=self.code, phase=self.phase, detail=None)


class CloseReason(int, Enum):
    """
    Wire-stable close codes for FT_CLOSE. Keep values stable once published.
    """
    NORMAL = 0
    HANDSHAKE_TIMEOUT = 1
    PROTOCOL = 2
    ENCODING = 3
    INTERNAL = 255

    @staticmethod
    def from_failure_code(code: KeyExchangeError) -> "CloseReason":
        m = {
            KeyExchangeError.KEYS_NOT_EXCHANGED: CloseReason.PROTOCOL,
            KeyExchangeError.ENCODING_ERROR: CloseReason.ENCODING,
        }
        return m.get(code, CloseReason.INTERNAL)


@dataclass(frozen=True)
class ClosePayload:
    """
    Payload format for FT_CLOSE (transport/message_frame.py):
      - 1 byte: close_code (0..255)
      - 2 bytes: msg_len (u16 big-endian)
      - msg bytes: utf-8 (optional, non-secret)
    """
    close_code: int
    message: Optional[str] = None

    def encode(self) -> bytes:
        msg = (self.message or "").encode("utf-8")
        if len(msg) > 65535:
            msg = msg[:65535]
        return bytes([int(self.close_code) & 0xFF]) + len(msg).to_bytes(2, "big") + msg

    @staticmethod
    def decode(b: bytes) -> "ClosePayload":
        if len(b) < 1 + 2:
            raise ValueError("close payload too short")
        ln = int.from_bytes(b[1:3], "big")
        msg_b = b[3:3 + ln]
        try:
            msg = msg_b.decode("utf-8") or None
        except UnicodeDecodeError:
            msg = None
        return ClosePayload(close_code=b[0], message=msg)
