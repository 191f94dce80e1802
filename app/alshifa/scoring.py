"""Triage scoring.

``TriageScorer`` is the canonical 0-100 additive model. The older
three-level scorer survives only behind ``LegacyTriageScorer`` so both are
called through the same ``score(intake)`` interface; the legacy one warns.
"""

from __future__ import annotations

import math
import re
import warnings
from typing import Any, Protocol

from alshifa.schemas import IntakeRecord, Language, TriageLevel, TriageScore

MAX_SCORE = 100

_SEVERITY_KEYS = ("severity", "pain_severity", "pain_intensity", "painIntensity")
_DURATION_KEYS = ("duration", "onset")
_ASSOCIATED_KEYS = ("associated", "associated_symptoms", "associatedSymptoms")

# Checked in order; "today" must win over "day".
_DURATION_RULES: tuple[tuple[tuple[str, ...], int, str], ...] = (
    (("hour", "today", "گھنٹے", "آج"), 15, "Acute onset (hours)"),
    (("day", "yesterday", "دن", "کل"), 12, "Recent onset (days)"),
    (("week", "ہفتہ"), 8, "Subacute (weeks)"),
    (("month", "مہینہ"), 5, "Chronic (months)"),
)

URGENT_COMPLAINT_KEYWORDS: tuple[str, ...] = (
    "severe",
    "acute",
    "sudden",
    "worsening",
    "can't",
    "unable",
    "شدید",
    "اچانک",
    "بگڑ",
    "نہیں",
)

# (lower bound, category, priority, wait text)
_BANDS: tuple[tuple[int, str, int, str], ...] = (
    (70, "immediate", 1, "See immediately or call emergency services ({number})"),
    (50, "urgent", 2, "See within 1-2 hours"),
    (30, "semi-urgent", 3, "See within 4-6 hours"),
    (0, "non-urgent", 4, "Routine scheduling: book a regular appointment"),
)

_IMMEDIATE_FLOOR = 70

_CATEGORY_LEVEL: dict[str, TriageLevel] = {
    "immediate": "EMERGENCY",
    "urgent": "URGENT",
    "semi-urgent": "ROUTINE",
    "non-urgent": "ROUTINE",
}


class Scorer(Protocol):
    def score(self, intake: IntakeRecord) -> TriageScore: ...


def _first_answer(answers: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = answers.get(key)
        if value not in (None, "", []):
            return value
    return None


def parse_severity(raw: Any) -> int:
    """Leading integer of the answer, clamped to 0-10. Anything else is 0."""
    if isinstance(raw, bool) or raw is None:
        return 0
    if isinstance(raw, (int, float)):
        if not math.isfinite(raw):
            return 0
        value = int(raw)
    else:
        match = re.match(r"\s*(\d+)", str(raw))
        if not match:
            return 0
        value = int(match.group(1))
    return max(0, min(10, value))


def classify_duration(text: Any) -> tuple[int, str | None]:
    lowered = str(text or "").lower()
    if not lowered:
        return 0, None
    for needles, points, reason in _DURATION_RULES:
        if any(needle in lowered for needle in needles):
            return points, reason
    return 0, None


def band_for(total: int, *, emergency_number: str = "1122") -> tuple[str, int, str]:
    for lower, category, priority, wait in _BANDS:
        if total >= lower:
            return category, priority, wait.format(number=emergency_number)
    raise ValueError(f"score out of range: {total}")


def level_for_score(score: TriageScore) -> TriageLevel:
    return _CATEGORY_LEVEL[score.category]


def _has_critical_indicator(intake: IntakeRecord) -> bool:
    return intake.is_emergency or bool(intake.red_flags.get("critical"))


class TriageScorer:
    """Weighted additive urgency model, clamped to 0-100.

    A critical emergency indicator also acts as a floor: the case is never
    scored below the immediate band, whatever the other signals say.
    """

    def __init__(self, *, emergency_number: str = "1122"):
        self._emergency_number = emergency_number

    def score(self, intake: IntakeRecord) -> TriageScore:
        total = 0.0
        reasoning: list[str] = []
        answers = intake.answers or {}

        critical = _has_critical_indicator(intake)
        if critical:
            total += 40
            reasoning.append("Critical emergency indicators detected")
        elif any(intake.red_flags.values()):
            total += 25
            flagged = [name for name, value in intake.red_flags.items() if value]
            reasoning.append("Red flag symptoms present: " + ", ".join(flagged))

        severity = parse_severity(_first_answer(answers, _SEVERITY_KEYS))
        if severity >= 8:
            total += 20
            reasoning.append(f"High pain severity: {severity}/10")
        elif severity >= 5:
            total += 15
            reasoning.append(f"Moderate pain severity: {severity}/10")
        elif severity >= 3:
            total += 10
            reasoning.append(f"Mild pain severity: {severity}/10")
        elif severity > 0:
            total += (severity / 10) * 20
            reasoning.append(f"Low pain severity: {severity}/10")

        points, duration_reason = classify_duration(_first_answer(answers, _DURATION_KEYS))
        if points:
            total += points
            reasoning.append(duration_reason or "Onset recorded")

        associated = _first_answer(answers, _ASSOCIATED_KEYS)
        if isinstance(associated, (list, tuple)) and associated:
            total += min(10, len(associated) * 2)
            reasoning.append(f"{len(associated)} associated symptoms")
        elif isinstance(associated, str) and len(associated) > 20:
            total += 8
            reasoning.append("Multiple associated symptoms described")

        age = intake.age or 0
        if age > 0:
            if age < 5 or age > 70:
                total += 5
                reasoning.append(f"Age consideration: {age} years")
            elif age < 12 or age > 60:
                total += 3
                reasoning.append(f"Age consideration: {age} years")

        complaint = (intake.chief_complaint or "").lower()
        matched = [keyword for keyword in URGENT_COMPLAINT_KEYWORDS if keyword in complaint]
        if matched:
            total += min(10, len(matched) * 3)
            reasoning.append("Urgent descriptors in complaint: " + ", ".join(matched))

        final = int(round(max(0.0, min(float(MAX_SCORE), total))))
        if critical and final < _IMMEDIATE_FLOOR:
            final = _IMMEDIATE_FLOOR
            reasoning.append(f"Safety floor: critical indicator escalates score to {_IMMEDIATE_FLOOR}")

        category, priority, wait = band_for(final, emergency_number=self._emergency_number)
        return TriageScore(
            total_score=final,
            category=category,
            priority_level=priority,
            wait_time_recommendation=wait,
            reasoning=reasoning,
        )


def legacy_triage_level(
    *,
    duration_days: float,
    pain_level: int,
    fever: bool,
    breathing_issue: bool,
) -> TriageLevel:
    """Three-level scorer from the first intake flow.

    Deprecated: it disagrees with ``TriageScorer`` on the same patient. Use
    ``TriageScorer.score`` instead.
    """
    warnings.warn(
        "legacy_triage_level is deprecated; use TriageScorer.score",
        DeprecationWarning,
        stacklevel=2,
    )
    return _legacy_level(duration_days, pain_level, fever, breathing_issue)[0]


def _legacy_level(duration_days: float, pain_level: int, fever: bool, breathing_issue: bool) -> tuple[TriageLevel, int]:
    points = pain_level * 2
    points += 2 if duration_days > 3 else 0
    points += 2 if fever else 0
    points += 10 if breathing_issue else 0
    if points >= 12 or breathing_issue:
        return "EMERGENCY", points
    if points >= 6:
        return "URGENT", points
    return "ROUTINE", points


class LegacyTriageScorer:
    """Adapter exposing the legacy scorer through ``score(intake)``.

    The legacy level is mapped onto the lower bound of the matching canonical
    band (EMERGENCY -> 70, URGENT -> 50) so priority stays a function of the
    total. Routine cases keep their raw legacy points, capped at 29.
    """

    def __init__(self, *, emergency_number: str = "1122"):
        warnings.warn(
            "LegacyTriageScorer is deprecated; use TriageScorer",
            DeprecationWarning,
            stacklevel=2,
        )
        self._emergency_number = emergency_number

    def score(self, intake: IntakeRecord) -> TriageScore:
        answers = intake.answers or {}
        try:
            duration_days = float(answers.get("duration_days") or 0)
        except (TypeError, ValueError):
            duration_days = 0.0
        pain = parse_severity(_first_answer(answers, _SEVERITY_KEYS))
        fever = bool(answers.get("fever"))
        breathing = bool(answers.get("breathing_issue"))

        level, points = _legacy_level(duration_days, pain, fever, breathing)
        total = {"EMERGENCY": 70, "URGENT": 50}.get(level, min(points, 29))
        category, priority, wait = band_for(total, emergency_number=self._emergency_number)
        return TriageScore(
            total_score=total,
            category=category,
            priority_level=priority,
            wait_time_recommendation=wait,
            reasoning=[f"Legacy scorer: {level} ({points} points)"],
        )


_DISPLAY_ICON = {"immediate": "🚨", "urgent": "⚠️", "semi-urgent": "⏰", "non-urgent": "📋"}
_CATEGORY_UR = {"immediate": "فوری", "urgent": "ضروری", "semi-urgent": "نیم ضروری", "non-urgent": "عام"}
_WAIT_UR = {
    "immediate": "فوری طور پر یا ایمرجنسی سروس پر کال کریں",
    "urgent": "1-2 گھنٹوں میں",
    "semi-urgent": "4-6 گھنٹوں میں",
    "non-urgent": "باقاعدہ اپائنٹمنٹ",
}

_LEVEL_MESSAGES = {
    "EMERGENCY": {
        "en": "Symptoms appear severe. Please seek immediate medical attention or visit an Emergency Room.",
        "ur": "علامات سنگین معلوم ہوتی ہیں۔ فوری طور پر ڈاکٹر یا اسپتال کے ایمرجنسی وارڈ سے رجوع کریں۔",
    },
    "URGENT": {
        "en": "It is recommended to consult a doctor as soon as possible.",
        "ur": "ڈاکٹر سے مشورہ کرنا بہتر ہوگا۔",
    },
    "ROUTINE": {
        "en": "Currently, symptoms appear mild, but please monitor them closely.",
        "ur": "فی الحال علامات ہلکی ہیں، لیکن اپنی صحت پر نظر رکھیں۔",
    },
}


def format_triage_display(score: TriageScore, language: Language = "en") -> str:
    icon = _DISPLAY_ICON[score.category]
    if language == "ur":
        return f"{icon} {_CATEGORY_UR[score.category]} - {_WAIT_UR[score.category]}"
    return f"{icon} {score.category.upper()} - {score.wait_time_recommendation}"


def triage_message(level: TriageLevel, language: Language = "en") -> str:
    return _LEVEL_MESSAGES[level]["ur" if language == "ur" else "en"]
