from __future__ import annotations

import ipaddress
import re
import threading
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from experia_router_client_exceptions import ConfigException

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1"):
            return True
        if lowered in ("false", "0"):
            return False
    return None


def as_float(value: Any) -> Optional[float]:
    # JSON booleans are not numbers, even though bool subclasses int
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return float(value)
        except OverflowError:
            return None
    if isinstance(value, str):
        if value.strip() == "":
            return None
        try:
            return float(value)
        except ValueError:
            return None
    return None


def as_string(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value
    return None


def lookup(mapping: Optional[dict], key: str) -> Any:
    """Case-insensitive dict lookup; exact key wins over a case-folded match."""
    if not isinstance(mapping, dict):
        return None
    if key in mapping:
        return mapping[key]
    lowered = key.lower()
    for k, v in mapping.items():
        if isinstance(k, str) and k.lower() == lowered:
            return v
    return None


def mask_token(token: str, visible: int = 4) -> str:
    """Keep the first `visible` characters of a secret for diagnostics."""
    if len(token) <= visible:
        return "*" * len(token)
    return token[:visible] + "*" * (len(token) - visible)


def parse_candidates(raw: Optional[str]) -> list[str]:
    """Split a comma separated interface list into upper-cased identifiers."""
    if not raw:
        return []
    return [p.strip().upper() for p in raw.split(",") if p.strip()]


def parse_timeout(value: str | float | int) -> float:
    """
    Parse a request timeout in seconds.

    Accepts plain numbers ("5", 2.5) and Go-style durations ("5s", "500ms", "1m30s").
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = float(value)
    else:
        text = str(value).strip()
        try:
            seconds = float(text)
        except ValueError:
            parts = _DURATION_PART.findall(text)
            if not parts or "".join(n + u for n, u in parts) != text:
                raise ConfigException(f"invalid timeout: {value!r}")
            seconds = sum(float(n) * _DURATION_UNITS[u] for n, u in parts)
    if seconds <= 0:
        raise ConfigException(f"timeout must be positive: {value!r}")
    return seconds


def parse_router_ip(value: str) -> str:
    try:
        return str(ipaddress.ip_address(value.strip()))
    except ValueError:
        raise ConfigException(f"invalid router IP: {value!r}")


def parse_listen_addr(value: str) -> tuple[str, int]:
    """':9100' -> ('0.0.0.0', 9100); '127.0.0.1:9100' -> ('127.0.0.1', 9100)."""
    host, sep, port = value.strip().rpartition(":")
    if not sep:
        host, port = "", value.strip()
    try:
        port_num = int(port)
    except ValueError:
        raise ConfigException(f"invalid listen address: {value!r}")
    if not 0 < port_num < 65536:
        raise ConfigException(f"invalid listen port: {value!r}")
    return host.strip("[]") or "0.0.0.0", port_num


class ReadWriteLock:
    """Many concurrent readers or one writer."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._readers > 0:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()
