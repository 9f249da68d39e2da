# MIT License © 2025 Motohiro Suzuki
from __future__ import annotations

import os
from typing import Any

_FALSE_WORDS = ("0", "false", "no", "off")


class KeyExchangeConfig:
    """
    Settings for the key exchange engine and the channel that drives it.

      cipher            : cipher backend name ("ecies" | "toy")
      log_progress      : print "[key_exchange] ..." progress lines
      handshake_timeout : seconds before SecureChannel gives up waiting
      resend_interval   : seconds between SYN re-sends by the initiator

    Unknown keywords are accepted and ignored.
    """

    def __init__(
        self,
        *,
        cipher: str = "ecies",
        log_progress: bool = True,
        handshake_timeout: float = 10.0,
        resend_interval: float = 1.0,
        **_ignored: Any,
    ) -> None:
        self.cipher = str(cipher).strip() or "ecies"
        self.log_progress = bool(log_progress)
        self.handshake_timeout = float(handshake_timeout)
        self.resend_interval = float(resend_interval)

        if self.handshake_timeout <= 0:
            raise ValueError("handshake_timeout must be > 0")
        if self.resend_interval <= 0:
            raise ValueError("resend_interval must be > 0")

    @classmethod
    def from_env(cls, **overrides: Any) -> "KeyExchangeConfig":
        """
        Environment:
          KX_CIPHER, KX_LOG, KX_HANDSHAKE_TIMEOUT, KX_RESEND_INTERVAL
        Explicit keyword overrides win.
        """
        kw: dict[str, Any] = {}

        v = os.getenv("KX_CIPHER", "").strip()
        if v:
            kw["cipher"] = v

        v = os.getenv("KX_LOG", "").strip().lower()
        if v:
            kw["log_progress"] = v not in _FALSE_WORDS

        v = os.getenv("KX_HANDSHAKE_TIMEOUT", "").strip()
        if v:
            kw["handshake_timeout"] = float(v)

        v = os.getenv("KX_RESEND_INTERVAL", "").strip()
        if v:
            kw["resend_interval"] = float(v)

        kw.update(overrides)
        return cls(**kw)
