# MIT License © 2025 Motohiro Suzuki
from dataclasses import dataclass

import pytest

from kxchannel.protocol.codec import PayloadEncodingError, canonical_text, decode_payload
from kxchannel.protocol.config import KeyExchangeConfig
from kxchannel.protocol.errors import KeyExchangeFault
from kxchannel.protocol.failure import FailurePhase, KeyExchangeError
from kxchannel.protocol.key_exchange import KeyExchange
from kxchannel.protocol.messages import HandshakeMessage, HandshakeStep


def _pair(cipher: str = "ecies"):
    cfg = KeyExchangeConfig(cipher=cipher, log_progress=False)
    a, b = KeyExchange(cfg=cfg), KeyExchange(cfg=cfg)
    # full handshake, with the initiator taking the responder key from SYNACK
    synack = b.on_inbound_message(a.initiate())
    a.record_remote_public_key(synack.public_key)
    ack = a.on_inbound_message(synack.to_message())
    b.on_inbound_message(ack.to_message())
    return a, b


def test_encrypt_before_keys_fails():
    kx = KeyExchange(cfg=KeyExchangeConfig(cipher="toy", log_progress=False))
    r = kx.encrypt({"x": 1})
    assert r.ok is False
    f = r.unwrap_err()
    assert f.code is KeyExchangeError.KEYS_NOT_EXCHANGED
    assert f.phase is FailurePhase.ENCRYPT
    with pytest.raises(KeyExchangeFault):
        r.unwrap()


def test_decrypt_before_keys_fails():
    kx = KeyExchange(cfg=KeyExchangeConfig(cipher="toy", log_progress=False))
    r = kx.decrypt("anything")
    assert r.unwrap_err().code is KeyExchangeError.KEYS_NOT_EXCHANGED
    assert r.unwrap_err().phase is FailurePhase.DECRYPT


def test_gate_ignores_completion_flag():
    kx = KeyExchange(cfg=KeyExchangeConfig(cipher="toy", log_progress=False))
    kx.on_inbound_message(HandshakeMessage(step=HandshakeStep.ACK))
    assert kx.handshake_complete is True
    assert kx.encrypt("hi").unwrap_err().code is KeyExchangeError.KEYS_NOT_EXCHANGED

    peer = KeyExchange(cfg=KeyExchangeConfig(cipher="toy", log_progress=False))
    peer.on_inbound_message(kx.initiate())
    assert peer.handshake_complete is False
    assert peer.encrypt("hi").ok is True


def test_failure_leaves_state_unchanged():
    kx = KeyExchange(cfg=KeyExchangeConfig(cipher="toy", log_progress=False))
    kx.encrypt({"x": 1})
    kx.decrypt("x")
    assert kx.remote_public_key is None
    assert kx.handshake_complete is False
    assert kx.current_step is HandshakeStep.NONE


@pytest.mark.parametrize(
    "payload",
    [
        {1, 2},
        {"n": float("nan")},
        {"inf": float("inf")},
        object(),
        "\ud800",
        {1: "a", "b": 2},
    ],
)
def test_unserializable_payload_is_encoding_error(payload):
    a, _ = _pair("toy")
    r = a.encrypt(payload)
    assert r.unwrap_err().code is KeyExchangeError.ENCODING_ERROR
    assert r.unwrap_err().redacted().detail is None


def test_keys_not_exchanged_takes_precedence_over_encoding():
    kx = KeyExchange(cfg=KeyExchangeConfig(cipher="toy", log_progress=False))
    assert kx.encrypt({1, 2}).unwrap_err().code is KeyExchangeError.KEYS_NOT_EXCHANGED


@dataclass
class Ping:
    method: str
    params: list


@pytest.mark.parametrize(
    "payload",
    [
        {"method": "eth_requestAccounts", "params": []},
        ["a", 1, None, True],
        "plain string",
        42,
        {"unicode": "こんにちは", "nested": {"z": 1, "a": [1.5]}},
        Ping(method="ping", params=[1, 2]),
    ],
)
def test_ecies_round_trip_both_directions(payload):
    a, b = _pair("ecies")
    expected = canonical_text(payload)
    assert b.decrypt(a.encrypt(payload).unwrap()).unwrap() == expected
    assert a.decrypt(b.encrypt(payload).unwrap()).unwrap() == expected


def test_toy_round_trip():
    a, b = _pair("toy")
    assert b.decrypt(a.encrypt({"k": "v"}).unwrap()).unwrap() == '{"k":"v"}'


def test_decrypt_is_unchecked_delegation():
    a, b = _pair("ecies")
    c, _ = _pair("ecies")
    ct = a.encrypt({"for": "b"}).unwrap()
    # c holds a remote key, so the gate opens; the cipher just yields nothing
    r = c.decrypt(ct)
    assert r.ok is True
    assert r.unwrap() == ""


def test_garbage_syn_key_does_not_break_encrypt():
    cfg = KeyExchangeConfig(cipher="ecies", log_progress=False)
    b = KeyExchange(cfg=cfg)
    b.on_inbound_message({"type": "key_handshake_SYN", "publicKey": "not-a-point"})
    assert b.remote_public_key == "not-a-point"

    r = b.encrypt({"x": 1})
    assert r.ok is True
    assert r.unwrap() == ""


def test_deeply_nested_payload_text_is_a_decode_error():
    with pytest.raises(PayloadEncodingError):
        decode_payload("[" * 200000)
