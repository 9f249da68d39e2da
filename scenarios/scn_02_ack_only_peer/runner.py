# MIT License © 2025 Motohiro Suzuki
"""
scenarios/scn_02_ack_only_peer/runner.py

SCN-02: ACK-only peer

- SYN and SYNACK are lost; B only ever receives ACK
Expected: B is complete, has no remote key, encrypt fails with keysNotExchanged

Exit code:
- 0 if encrypt is refused
- 1 otherwise
"""

from kxchannel.protocol.config import KeyExchangeConfig
from kxchannel.protocol.failure import KeyExchangeError
from kxchannel.protocol.key_exchange import KeyExchange
from kxchannel.protocol.messages import HandshakeStep


def main() -> int:
    cfg = KeyExchangeConfig(cipher="toy")
    a, b = KeyExchange(cfg=cfg), KeyExchange(cfg=cfg)

    b.on_inbound_message(a.build_message(HandshakeStep.ACK))

    if not b.handshake_complete:
        print("[FAIL] ACK did not complete the handshake")
        return 1

    r = b.encrypt({"hello": "world"})
    if r.ok:
        print("[FAIL] encrypt succeeded without a remote key")
        return 1
    if r.unwrap_err().code != KeyExchangeError.KEYS_NOT_EXCHANGED:
        print("[FAIL] unexpected failure code:", r.unwrap_err().code.value)
        return 1

    print("[OK] complete without key, encrypt refused:", r.unwrap_err().code.value)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
