# MIT License © 2025 Motohiro Suzuki
"""
protocol/messages.py

Key exchange envelope (JSON):
    {"type": "<step>", "publicKey": "<key>"}

- "publicKey" is omitted when there is no key (never sent as null).
- Receivers treat an absent and a null "publicKey" the same way.

Step strings:
    none
    key_handshake_SYN
    key_handshake_SYNACK
    key_handshake_ACK

Decoding is lenient: an unknown, missing or malformed "type" becomes
HandshakeStep.NONE, and a document that is not a JSON object becomes a
NONE message. Peers on newer wire revisions are ignored, not rejected.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

T_TYPE = "type"
T_PUBLIC_KEY = "publicKey"


class HandshakeStep(str, Enum):
    NONE = "none"
    SYN = "key_handshake_SYN"
    SYNACK = "key_handshake_SYNACK"
    ACK = "key_handshake_ACK"

    @classmethod
    def parse(cls, value: Any) -> "HandshakeStep":
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return cls.NONE
        try:
            return cls(value)
        except ValueError:
            return cls.NONE


@dataclass(frozen=True)
class HandshakeMessage:
    step: HandshakeStep
    public_key: Optional[str] = None

    def to_dict(self) -> dict:
        d = {T_TYPE: self.step.value}
        if self.public_key is not None:
            d[T_PUBLIC_KEY] = self.public_key
        return d

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @staticmethod
    def from_dict(d: Any) -> "HandshakeMessage":
        if not isinstance(d, Mapping):
            return HandshakeMessage(step=HandshakeStep.NONE)
        pk = d.get(T_PUBLIC_KEY)
        return HandshakeMessage(
            step=HandshakeStep.parse(d.get(T_TYPE)),
            public_key=pk if isinstance(pk, str) else None,
        )

    @staticmethod
    def from_json(blob: str | bytes) -> "HandshakeMessage":
        try:
            if isinstance(blob, (bytes, bytearray)):
                blob = bytes(blob).decode("utf-8")
            d = json.loads(blob)
        except (TypeError, ValueError, RecursionError):
            return HandshakeMessage(step=HandshakeStep.NONE)
        return HandshakeMessage.from_dict(d)
