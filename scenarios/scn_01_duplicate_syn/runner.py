# MIT License © 2025 Motohiro Suzuki
"""
scenarios/scn_01_duplicate_syn/runner.py

SCN-01: duplicate SYN

- B receives SYN from A, then a second SYN carrying C's key
Expected: B keeps A's key (first write wins) and answers SYNACK both times

Exit code:
- 0 if the first key is kept
- 1 otherwise
"""

from kxchannel.protocol.config import KeyExchangeConfig
from kxchannel.protocol.key_exchange import KeyExchange
from kxchannel.protocol.messages import HandshakeStep


def main() -> int:
    cfg = KeyExchangeConfig(cipher="toy")
    a, b, c = KeyExchange(cfg=cfg), KeyExchange(cfg=cfg), KeyExchange(cfg=cfg)

    first = b.on_inbound_message(a.initiate())
    second = b.on_inbound_message(c.initiate())

    if b.remote_public_key != a.public_key:
        print("[FAIL] second SYN replaced the recorded key")
        return 1
    if first is None or second is None or {first.step, second.step} != {HandshakeStep.SYNACK}:
        print("[FAIL] SYN was not answered with SYNACK")
        return 1

    print("[OK] first SYN key kept, both SYNs answered")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
