# MIT License © 2025 Motohiro Suzuki
"""
scenarios/scn_03_synack_before_syn/runner.py

SCN-03: SYNACK arrives before any SYN

- A receives a stray SYNACK, then a SYN from B
Expected: SYNACK completes A without adopting a key; the later SYN is ignored

Exit code:
- 0 if the SYN after completion has no effect
- 1 otherwise
"""

from kxchannel.protocol.config import KeyExchangeConfig
from kxchannel.protocol.key_exchange import KeyExchange
from kxchannel.protocol.messages import HandshakeStep


def main() -> int:
    cfg = KeyExchangeConfig(cipher="toy")
    a, b = KeyExchange(cfg=cfg), KeyExchange(cfg=cfg)

    intent = a.on_inbound_message(b.build_message(HandshakeStep.SYNACK))
    if intent is None or intent.step != HandshakeStep.ACK or intent.public_key is not None:
        print("[FAIL] SYNACK was not answered with a keyless ACK")
        return 1
    if not a.handshake_complete or a.remote_public_key is not None:
        print("[FAIL] SYNACK must complete without adopting a key")
        return 1

    late = a.on_inbound_message(b.initiate())
    if late is not None or a.remote_public_key is not None or a.current_step != HandshakeStep.NONE:
        print("[FAIL] SYN after completion changed state")
        return 1

    print("[OK] complete after SYNACK, late SYN ignored")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
