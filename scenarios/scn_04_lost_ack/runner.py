# MIT License © 2025 Motohiro Suzuki
"""
scenarios/scn_04_lost_ack/runner.py

SCN-04: ACK lost in transit

- A -> B SYN, B -> A SYNACK (A records B's key from it), A's ACK is dropped
Expected: B stays incomplete but can encrypt; A decrypts B's message

Exit code:
- 0 if the message round-trips
- 1 otherwise
"""

from kxchannel.protocol.codec import canonical_text
from kxchannel.protocol.config import KeyExchangeConfig
from kxchannel.protocol.key_exchange import KeyExchange


def main() -> int:
    cfg = KeyExchangeConfig(cipher="ecies")
    a, b = KeyExchange(cfg=cfg), KeyExchange(cfg=cfg)

    synack = b.on_inbound_message(a.initiate())
    a.record_remote_public_key(synack.public_key)
    a.on_inbound_message(synack.to_message())  # ACK intent is dropped

    if b.handshake_complete:
        print("[FAIL] responder completed without ACK")
        return 1

    payload = {"seq": 1, "body": "still works"}
    ct = b.encrypt(payload).unwrap()
    pt = a.decrypt(ct).unwrap()
    if pt != canonical_text(payload):
        print("[FAIL] round trip mismatch:", pt)
        return 1

    print("[OK] responder incomplete, encrypted traffic flows")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
