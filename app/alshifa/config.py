"""Runtime settings for the Al-Shifa decision engine."""

from __future__ import annotations

import os
from dataclasses import dataclass, field


def _as_bool(value: str | None, *, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _as_int(value: str | None, *, default: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _audit_backend(value: str | None) -> str:
    if not value:
        return "memory"
    token = value.strip().lower().replace("-", "_")
    mapping = {
        "memory": "memory",
        "in_memory": "memory",
        "mem": "memory",
        "jsonl": "jsonl",
        "file": "jsonl",
        "local": "jsonl",
    }
    return mapping.get(token, "memory")


@dataclass(frozen=True)
class Settings:
    app_name: str = field(default_factory=lambda: os.getenv("ALSHIFA_APP_NAME", "alshifa-triage"))

    # Audit persistence.
    audit_backend: str = field(default_factory=lambda: _audit_backend(os.getenv("ALSHIFA_AUDIT_BACKEND")))
    audit_log_path: str = field(
        default_factory=lambda: os.getenv(
            "ALSHIFA_AUDIT_LOG_PATH",
            os.path.join(".alshifa_local_store", "audit", "audit.jsonl"),
        )
    )

    recommendation_limit: int = field(
        default_factory=lambda: _as_int(os.getenv("ALSHIFA_RECOMMENDATION_LIMIT"), default=5)
    )
    emergency_number: str = field(default_factory=lambda: os.getenv("ALSHIFA_EMERGENCY_NUMBER", "1122"))

    # Widen eligibility to any active+verified+mode-capable doctor when no
    # specialist is in the pool. Off until clinical sign-off.
    allow_specialty_fallback: bool = field(
        default_factory=lambda: _as_bool(os.getenv("ALSHIFA_SPECIALTY_FALLBACK"), default=False)
    )

    system_actor: str = field(default_factory=lambda: os.getenv("ALSHIFA_SYSTEM_ACTOR", "SYSTEM"))
    log_level: str = field(default_factory=lambda: os.getenv("ALSHIFA_LOG_LEVEL", "INFO"))


def get_settings() -> Settings:
    return Settings()
