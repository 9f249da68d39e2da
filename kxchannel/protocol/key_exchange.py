# MIT License © 2025 Motohiro Suzuki
"""
protocol/key_exchange.py

Public-key exchange between two peers:

    initiator                     responder
    ---------  SYN(pk_i)  ----->  adopts pk_i (first write wins)
               <-- SYNACK(pk_r)
    complete   ---  ACK  ------>  complete

The engine only decides. It never sends: every reply is returned as an
OutboundIntent (and also passed to on_outbound(step, public_key) when a
callback is registered). The owner builds and transmits the message.

Rules:
- Once complete, every inbound message is a no-op (absorbing state).
- Only SYN adopts a remote key. SYNACK and ACK never do.
- encrypt/decrypt are gated on the remote key alone, not on completion.
  A peer that only ever sees ACK is complete but cannot encrypt.

Not thread-safe. One owner drives an engine serially.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Union

from kxchannel.crypto.cipher import CipherBackend, get_cipher_backend
from kxchannel.protocol.codec import PayloadEncodingError, canonical_text
from kxchannel.protocol.config import KeyExchangeConfig
from kxchannel.protocol.failure import Failure, FailurePhase, KeyExchangeError
from kxchannel.protocol.messages import HandshakeMessage, HandshakeStep
from kxchannel.protocol.result import Result

OutboundCallback = Callable[[HandshakeStep, Optional[str]], None]
LogSink = Callable[[str], None]


class KeyAdoption(str, Enum):
    FIRST_WRITE_WINS = "first_write_wins"
    IGNORE = "ignore"


@dataclass(frozen=True)
class Transition:
    advisory_step: Optional[HandshakeStep]  # None: leave current_step as is
    reply: Optional[HandshakeStep]
    attach_local_key: bool
    key_adoption: KeyAdoption
    completes: bool


# inbound step -> transition, for an engine that is not yet complete.
# Steps missing here (NONE) are ignored.
TRANSITIONS: Dict[HandshakeStep, Transition] = {
    HandshakeStep.SYN: Transition(
        advisory_step=HandshakeStep.ACK,
        reply=HandshakeStep.SYNACK,
        attach_local_key=True,
        key_adoption=KeyAdoption.FIRST_WRITE_WINS,
        completes=False,
    ),
    HandshakeStep.SYNACK: Transition(
        advisory_step=None,
        reply=HandshakeStep.ACK,
        attach_local_key=False,
        key_adoption=KeyAdoption.IGNORE,
        completes=True,
    ),
    HandshakeStep.ACK: Transition(
        advisory_step=None,
        reply=None,
        attach_local_key=False,
        key_adoption=KeyAdoption.IGNORE,
        completes=True,
    ),
}


@dataclass(frozen=True)
class OutboundIntent:
    step: HandshakeStep
    public_key: Optional[str] = None

    def to_message(self) -> HandshakeMessage:
        return HandshakeMessage(step=self.step, public_key=self.public_key)


def _print_log(line: str) -> None:
    print(f"[key_exchange] {line}")


def key_fingerprint(key: Optional[str]) -> str:
    if key is None:
        return "-"
    return hashlib.sha256(key.encode("utf-8")).hexdigest()[:12]


class KeyExchange:
    def __init__(
        self,
        cipher: Optional[CipherBackend] = None,
        *,
        on_outbound: Optional[OutboundCallback] = None,
        log: Optional[LogSink] = None,
        cfg: Optional[KeyExchangeConfig] = None,
    ) -> None:
        cfg = cfg if cfg is not None else KeyExchangeConfig()
        self._cipher = cipher if cipher is not None else get_cipher_backend(cfg.cipher)

        self._private_key = self._cipher.generate_private_key()
        self._public_key = self._cipher.public_key(self._private_key)

        self._remote_public_key: Optional[str] = None
        self._handshake_complete = False
        self._current_step = HandshakeStep.NONE

        self.on_outbound = on_outbound
        if log is None and cfg.log_progress:
            log = _print_log
        self._log = log

    # --- read-only state ---
    @property
    def public_key(self) -> str:
        return self._public_key

    @property
    def remote_public_key(self) -> Optional[str]:
        return self._remote_public_key

    @property
    def handshake_complete(self) -> bool:
        return self._handshake_complete

    @property
    def current_step(self) -> HandshakeStep:
        return self._current_step

    @property
    def cipher_name(self) -> str:
        return self._cipher.name

    # --- messages ---
    def initiate(self) -> HandshakeMessage:
        return self.build_message(HandshakeStep.SYN)

    def build_message(self, step: HandshakeStep) -> HandshakeMessage:
        return HandshakeMessage(step=step, public_key=self._public_key)

    def record_remote_public_key(self, key: Optional[str]) -> None:
        """Unconditional overwrite; unlike SYN handling this also replaces a known key."""
        self._remote_public_key = key

    # --- state machine ---
    def on_inbound_message(
        self, message: Union[HandshakeMessage, Mapping[str, Any]]
    ) -> Optional[OutboundIntent]:
        if not isinstance(message, HandshakeMessage):
            message = HandshakeMessage.from_dict(message)

        if self._handshake_complete:
            self._emit_log(f"keys exchanged; ignoring {message.step.value}")
            return None

        self._emit_log(f"status: {message.step.value}")

        t = TRANSITIONS.get(message.step)
        if t is None:
            return None

        if t.advisory_step is not None:
            self._current_step = t.advisory_step

        if (
            t.key_adoption == KeyAdoption.FIRST_WRITE_WINS
            and self._remote_public_key is None
            and message.public_key is not None
        ):
            self._remote_public_key = message.public_key
            self._emit_log(f"remote key recorded fp={key_fingerprint(message.public_key)}")

        intent: Optional[OutboundIntent] = None
        if t.reply is not None:
            intent = OutboundIntent(
                step=t.reply,
                public_key=self._public_key if t.attach_local_key else None,
            )
            if self.on_outbound is not None:
                self.on_outbound(intent.step, intent.public_key)

        if t.completes:
            self._handshake_complete = True

        return intent

    # --- encrypt / decrypt gate ---
    def encrypt(self, payload: Any) -> Result[str]:
        if self._remote_public_key is None:
            return Result.Err(
                Failure(
                    code=KeyExchangeError.KEYS_NOT_EXCHANGED,
                    phase=FailurePhase.ENCRYPT,
                    detail="remote public key unknown",
                )
            )
        try:
            text = canonical_text(payload)
        except PayloadEncodingError as e:
            return Result.Err(
                Failure(
                    code=KeyExchangeError.ENCODING_ERROR,
                    phase=FailurePhase.ENCRYPT,
                    detail=str(e),
                )
            )
        return Result.Ok(self._cipher.encrypt(text, self._remote_public_key))

    def decrypt(self, ciphertext: str) -> Result[str]:
        if self._remote_public_key is None:
            return Result.Err(
                Failure(
                    code=KeyExchangeError.KEYS_NOT_EXCHANGED,
                    phase=FailurePhase.DECRYPT,
                    detail="remote public key unknown",
                )
            )
        return Result.Ok(self._cipher.decrypt(ciphertext, self._private_key))

    def _emit_log(self, line: str) -> None:
        if self._log is not None:
            self._log(line)
