# MIT License © 2025 Motohiro Suzuki
from __future__ import annotations

from typing import Any


class KXChannelError(Exception):
    pass


class KeyExchangeFault(KXChannelError):
    """Raised by Result.unwrap() on an Err; carries the Failure."""

    def __init__(self, failure: Any) -> None:
        super().__init__(f"unwrap() on Err: {failure}")
        self.failure = failure


class CipherError(KXChannelError):
    pass


class HandshakeTimeout(KXChannelError):
    pass
