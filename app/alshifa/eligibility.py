"""Doctor eligibility filtering.

Eligibility is evaluated fresh on every call. Hard constraints are active,
verified, mode-capable and a specialty match; the specialty constraint may be
widened only when the caller explicitly asks for it, and the result says so.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from alshifa.schemas import ConsultationMode, Doctor


@dataclass(frozen=True)
class EligibilityOutcome:
    doctors: list[Doctor] = field(default_factory=list)
    fallback_used: bool = False


def _basic_ok(doctor: Doctor, mode: ConsultationMode) -> bool:
    return doctor.active and doctor.verified and mode in doctor.consultation_modes


def is_eligible(doctor: Doctor, specialty: str, mode: ConsultationMode) -> bool:
    return _basic_ok(doctor, mode) and specialty in doctor.specialties


def filter_eligible(doctors: list[Doctor], specialty: str, mode: ConsultationMode) -> list[Doctor]:
    return [doctor for doctor in doctors if is_eligible(doctor, specialty, mode)]


def select_eligible(
    doctors: list[Doctor],
    specialty: str,
    mode: ConsultationMode,
    *,
    allow_fallback: bool = False,
) -> EligibilityOutcome:
    matched = filter_eligible(doctors, specialty, mode)
    if matched or not allow_fallback:
        return EligibilityOutcome(doctors=matched)

    widened = [doctor for doctor in doctors if _basic_ok(doctor, mode)]
    return EligibilityOutcome(doctors=widened, fallback_used=bool(widened))


def eligibility_reasons(doctor: Doctor, specialty: str, mode: ConsultationMode) -> list[str]:
    reasons: list[str] = []
    if not doctor.active:
        reasons.append("Doctor is not currently active")
    if not doctor.verified:
        reasons.append("Doctor credentials are not verified")
    if mode not in doctor.consultation_modes:
        reasons.append(f"Doctor does not offer {mode} consultations")
    if specialty not in doctor.specialties:
        reasons.append(f"Doctor does not practise {specialty}")
    return reasons
