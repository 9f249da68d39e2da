# MIT License © 2025 Motohiro Suzuki
"""
crypto/cipher.py

Asymmetric cipher backends used by the key exchange.

Interface (all synchronous, keys and ciphertexts are text):
    generate_private_key() -> str
    public_key(private_key) -> str
    encrypt(text, public_key) -> str
    decrypt(text, private_key) -> str

Backends:
- ecies : secp256k1 ECDH + HKDF-SHA256 + AES-256-GCM (cryptography)
- toy   : no cryptography at all, deterministic test double (NOT secure)

encrypt() and decrypt() never raise. A recipient key that is not a curve
point encrypts to "". Wrong key, corrupted or truncated ciphertext all
decrypt to "" so callers above this layer have no view of the outcome.
Only a malformed local private key raises CipherError.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
import os

from kxchannel.crypto.kdf import ecies_ikm, hkdf_sha256
from kxchannel.crypto.zeroize import wipe_bytes_like
from kxchannel.protocol.errors import CipherError


class CipherBackend:
    name: str

    def generate_private_key(self) -> str:
        raise NotImplementedError

    def public_key(self, private_key: str) -> str:
        raise NotImplementedError

    def encrypt(self, text: str, public_key: str) -> str:
        raise NotImplementedError

    def decrypt(self, text: str, private_key: str) -> str:
        raise NotImplementedError


def _unhex(s: str) -> bytes:
    h = s.strip()
    if h[:2].lower() == "0x":
        h = h[2:]
    return bytes.fromhex(h)


# =========================
# ECIES / secp256k1 (real)
# =========================

_ECIES_INFO = b"kxchannel-ecies-v1"
_PUB_LEN = 65  # uncompressed SEC1 point
_NONCE_LEN = 12
_TAG_LEN = 16


class _ECIES(CipherBackend):
    """
    Ciphertext layout (base64):
        ephemeral_pub(65) || nonce(12) || AES-256-GCM(plaintext) || tag(16)
    AES key = HKDF-SHA256(ephemeral_pub || shared_x, salt="", info=_ECIES_INFO)
    """

    def __init__(self) -> None:
        self.name = "ecies"
        try:
            from cryptography.exceptions import InvalidTag
            from cryptography.hazmat.primitives import serialization
            from cryptography.hazmat.primitives.asymmetric import ec
            from cryptography.hazmat.primitives.ciphers.aead import AESGCM
        except Exception as e:
            raise RuntimeError("cryptography ECIES primitives not available") from e

        self._ec = ec
        self._curve = ec.SECP256K1()
        self._serialization = serialization
        self._AESGCM = AESGCM
        self._InvalidTag = InvalidTag

    def _load_private(self, private_key: str):
        try:
            raw = _unhex(private_key)
        except ValueError as e:
            raise CipherError("private key is not hex") from e
        if len(raw) != 32:
            raise CipherError("private key must be 32 bytes")
        try:
            return self._ec.derive_private_key(int.from_bytes(raw, "big"), self._curve)
        except ValueError as e:
            raise CipherError("private key out of range") from e

    def _point_bytes(self, pub, *, compressed: bool) -> bytes:
        fmt = self._serialization.PublicFormat
        return pub.public_bytes(
            self._serialization.Encoding.X962,
            fmt.CompressedPoint if compressed else fmt.UncompressedPoint,
        )

    def generate_private_key(self) -> str:
        sk = self._ec.generate_private_key(self._curve)
        return sk.private_numbers().private_value.to_bytes(32, "big").hex()

    def public_key(self, private_key: str) -> str:
        sk = self._load_private(private_key)
        return self._point_bytes(sk.public_key(), compressed=True).hex()

    def encrypt(self, text: str, public_key: str) -> str:
        try:
            recipient = self._ec.EllipticCurvePublicKey.from_encoded_point(self._curve, _unhex(public_key))
        except ValueError:
            return ""
        try:
            pt = text.encode("utf-8")
        except UnicodeEncodeError:
            return ""

        eph = self._ec.generate_private_key(self._curve)
        eph_pub = self._point_bytes(eph.public_key(), compressed=False)
        shared = bytearray(eph.exchange(self._ec.ECDH(), recipient))
        key = bytearray(hkdf_sha256(ecies_ikm(eph_pub, bytes(shared)), b"", _ECIES_INFO, 32))
        try:
            nonce = os.urandom(_NONCE_LEN)
            ct = self._AESGCM(bytes(key)).encrypt(nonce, pt, None)
        finally:
            wipe_bytes_like(shared)
            wipe_bytes_like(key)
        return base64.b64encode(eph_pub + nonce + ct).decode("ascii")

    def decrypt(self, text: str, private_key: str) -> str:
        try:
            blob = base64.b64decode(text, validate=True)
            sk = self._load_private(private_key)
        except (binascii.Error, ValueError, CipherError):
            return ""

        if len(blob) < _PUB_LEN + _NONCE_LEN + _TAG_LEN:
            return ""
        eph_pub = blob[:_PUB_LEN]
        nonce = blob[_PUB_LEN:_PUB_LEN + _NONCE_LEN]
        ct = blob[_PUB_LEN + _NONCE_LEN:]

        try:
            sender = self._ec.EllipticCurvePublicKey.from_encoded_point(self._curve, eph_pub)
        except ValueError:
            return ""

        shared = bytearray(sk.exchange(self._ec.ECDH(), sender))
        key = bytearray(hkdf_sha256(ecies_ikm(eph_pub, bytes(shared)), b"", _ECIES_INFO, 32))
        try:
            pt = self._AESGCM(bytes(key)).decrypt(nonce, ct, None)
        except self._InvalidTag:
            return ""
        finally:
            wipe_bytes_like(shared)
            wipe_bytes_like(key)

        try:
            return pt.decode("utf-8")
        except UnicodeDecodeError:
            return ""


# =========================
# Toy (tests only)
# =========================

class _ToyCipher(CipherBackend):
    """
    NOT secure. Ciphertext is a readable envelope addressed to a public key.
    Public key = "toy" + SHA256(private_key)[:40 hex].
    """

    def __init__(self) -> None:
        self.name = "toy"

    def generate_private_key(self) -> str:
        return os.urandom(16).hex()

    def public_key(self, private_key: str) -> str:
        return "toy" + hashlib.sha256(b"toy|pk|" + private_key.encode("utf-8")).hexdigest()[:40]

    def encrypt(self, text: str, public_key: str) -> str:
        env = json.dumps({"to": public_key, "body": text})
        return base64.b64encode(env.encode("utf-8")).decode("ascii")

    def decrypt(self, text: str, private_key: str) -> str:
        try:
            env = json.loads(base64.b64decode(text, validate=True).decode("utf-8"))
        except (binascii.Error, ValueError):
            return ""
        if not isinstance(env, dict) or env.get("to") != self.public_key(private_key):
            return ""
        body = env.get("body")
        return body if isinstance(body, str) else ""


# =========================
# Resolver
# =========================

def get_cipher_backend(name: str) -> CipherBackend:
    n = name.strip().lower()

    if n in ("ecies", "secp256k1", "ecies-secp256k1"):
        return _ECIES()

    if n in ("toy", "demo"):
        return _ToyCipher()

    raise ValueError(f"unknown cipher backend: {name}")
