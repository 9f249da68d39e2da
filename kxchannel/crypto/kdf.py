# MIT License © 2025 Motohiro Suzuki
from __future__ import annotations

import hashlib
import hmac


def hkdf_sha256(ikm: bytes, salt: bytes, info: bytes, length: int) -> bytes:
    """
    RFC 5869 extract-then-expand. An empty salt means HashLen zero bytes.
    """
    if length <= 0:
        raise ValueError("length must be > 0")
    if length > 255 * hashlib.sha256().digest_size:
        raise ValueError("hkdf too long")

    prk = hmac.new(salt or b"\x00" * 32, ikm, hashlib.sha256).digest()
    t = b""
    okm = b""
    c = 1
    while len(okm) < length:
        t = hmac.new(prk, t + info + bytes([c]), hashlib.sha256).digest()
        okm += t
        c += 1
    return okm[:length]


def ecies_ikm(ephemeral_pub: bytes, shared_x: bytes) -> bytes:
    """IKM = ephemeral public point (uncompressed) || ECDH x-coordinate."""
    return bytes(ephemeral_pub) + bytes(shared_x)
