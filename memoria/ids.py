from __future__ import annotations

import secrets
import time

_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(n: int) -> str:
    if n == 0:
        return "0"
    out = []
    while n:
        n, r = divmod(n, 36)
        out.append(_ALPHABET[r])
    return "".join(reversed(out))


def new_id(prefix: str = "") -> str:
    """
    Opaque unique id: base36 millisecond clock + 64 random bits.
    The clock part keeps ids roughly sortable by creation time.
    """
    ident = _base36(time.time_ns() // 1_000_000) + secrets.token_hex(8)
    return f"{prefix}_{ident}" if prefix else ident


def new_place_id() -> str:
    return new_id("pl")
