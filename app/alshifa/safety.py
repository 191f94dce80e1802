"""Consultation-mode safety gate."""

from __future__ import annotations

from dataclasses import dataclass

from alshifa.schemas import ConsultationMode, TriageLevel
from alshifa.utils import max_triage

EMERGENCY_REASON = "Emergency cases require physical consultation"
ZONE_REASON = "The reported pain location requires a physical examination"
ALLOWED_REASON = "Allowed"


@dataclass(frozen=True)
class SafetyDecision:
    allowed: bool
    reason: str


@dataclass(frozen=True)
class SafeModes:
    online: bool
    physical: bool
    primary_recommendation: ConsultationMode


def combined_triage_level(*levels: TriageLevel | None) -> TriageLevel:
    """Most severe of the given levels; None entries are skipped."""
    combined: TriageLevel = "ROUTINE"
    for level in levels:
        if level is not None:
            combined = max_triage(combined, level)
    return combined


def check_online_allowed(
    triage_level: TriageLevel,
    allowed_modes: list[ConsultationMode] | tuple[ConsultationMode, ...] | None = None,
) -> SafetyDecision:
    """Decide whether ONLINE may be offered.

    EMERGENCY always blocks. When the zone knowledge base supplied a mode set
    without ONLINE, that blocks too.
    """
    if triage_level == "EMERGENCY":
        return SafetyDecision(allowed=False, reason=EMERGENCY_REASON)
    if allowed_modes is not None and "ONLINE" not in allowed_modes:
        return SafetyDecision(allowed=False, reason=ZONE_REASON)
    return SafetyDecision(allowed=True, reason=ALLOWED_REASON)


def get_safe_modes(
    triage_level: TriageLevel,
    allowed_modes: list[ConsultationMode] | tuple[ConsultationMode, ...] | None = None,
) -> SafeModes:
    online = check_online_allowed(triage_level, allowed_modes).allowed
    return SafeModes(
        online=online,
        physical=True,
        primary_recommendation="ONLINE" if online else "PHYSICAL",
    )
