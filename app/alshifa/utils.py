"""Common utility helpers."""

from __future__ import annotations

import hashlib
import logging
import sys
from datetime import datetime, timezone


_TRIAGE_ORDER = {"ROUTINE": 0, "URGENT": 1, "EMERGENCY": 2}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def max_triage(a: str, b: str) -> str:
    return a if _TRIAGE_ORDER[a] >= _TRIAGE_ORDER[b] else b


def triage_rank(level: str) -> int:
    return _TRIAGE_ORDER[level]


def short_digest(text: str, length: int = 10) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()[:length]


def normalize_token(value: str | None) -> str:
    text = str(value or "").strip().upper()
    for ch in ("-", " ", "."):
        text = text.replace(ch, "_")
    return text


def setup_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    if root.handlers:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
    root.addHandler(handler)
