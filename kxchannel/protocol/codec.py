# MIT License © 2025 Motohiro Suzuki
"""
protocol/codec.py

Canonical text form of application payloads (what gets encrypted):
    json, sorted keys, compact separators, utf-8, no NaN/Infinity
"""

from __future__ import annotations

import dataclasses
import json
from typing import Any


class PayloadEncodingError(ValueError):
    pass


def _to_jsonable(payload: Any) -> Any:
    if dataclasses.is_dataclass(payload) and not isinstance(payload, type):
        return dataclasses.asdict(payload)
    to_dict = getattr(payload, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return payload


def canonical_text(payload: Any) -> str:
    try:
        s = json.dumps(
            _to_jsonable(payload),
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        )
        # lone surrogates survive dumps() but are not valid utf-8 text
        return s.encode("utf-8").decode("utf-8")
    except (TypeError, ValueError) as e:
        raise PayloadEncodingError(f"{type(e).__name__}: {e}") from e


def decode_payload(text: str) -> Any:
    try:
        return json.loads(text)
    except (ValueError, RecursionError) as e:
        raise PayloadEncodingError(f"{type(e).__name__}: {e}") from e
