"""End-to-end recommendation orchestration.

The engine composes keyword detection, zone lookup, scoring, the safety gate,
eligibility and ranking, and writes an audit entry at each decision point.
It holds no per-request state; the injected audit log is the only shared
resource.
"""

from __future__ import annotations

import logging
from uuid import uuid4

from alshifa import zones
from alshifa.audit import AuditLog
from alshifa.config import Settings, get_settings
from alshifa.eligibility import eligibility_reasons, select_eligible
from alshifa.emergency import detect, emergency_response
from alshifa.errors import OnlineBlocked
from alshifa.ranking import DEFAULT_WEIGHTS, DistanceFn, RankingWeights, rank, score_doctor, top_n
from alshifa.safety import check_online_allowed, combined_triage_level, get_safe_modes
from alshifa.schemas import (
    ActorRole,
    AuditAction,
    BothModesResult,
    CaseAssessment,
    ConsultationMode,
    Doctor,
    DoctorValidation,
    IntakeRecord,
    RecommendationResult,
)
from alshifa.scoring import Scorer, TriageScorer, level_for_score, triage_message
from alshifa.utils import short_digest

logger = logging.getLogger(__name__)

NO_MATCH_WARNING = "No eligible doctors found for your condition"
URGENT_WARNING = "Your condition requires prompt medical attention"

_GENERIC_FLAG_KEYS = {"present", "critical"}


def _merge_flags(zone_flags: list[str], intake: IntakeRecord) -> list[str]:
    merged: list[str] = []
    seen: set[str] = set()
    reported = [name for name, value in intake.red_flags.items() if value and name not in _GENERIC_FLAG_KEYS]
    for flag in [*zone_flags, *reported]:
        if flag in seen:
            continue
        seen.add(flag)
        merged.append(flag)
    return merged


def _other_mode(mode: ConsultationMode) -> ConsultationMode:
    return "PHYSICAL" if mode == "ONLINE" else "ONLINE"


class RecommendationEngine:
    def __init__(
        self,
        audit_log: AuditLog,
        *,
        settings: Settings | None = None,
        scorer: Scorer | None = None,
    ):
        self._audit = audit_log
        self._settings = settings or get_settings()
        self._scorer: Scorer = scorer or TriageScorer(emergency_number=self._settings.emergency_number)

    @property
    def audit_log(self) -> AuditLog:
        return self._audit

    def _limit(self, limit: int | None) -> int:
        return self._settings.recommendation_limit if limit is None else limit

    def _record(
        self,
        action: AuditAction,
        details: str,
        intake: IntakeRecord,
        *,
        actor_id: str | None = None,
        actor_role: ActorRole = "SYSTEM",
    ) -> None:
        self._audit.record(
            actor_id or self._settings.system_actor,
            action,
            details,
            actor_role=actor_role,
            patient_id=intake.patient_id,
        )

    def assess(self, intake: IntakeRecord) -> CaseAssessment:
        intake_id = intake.intake_id or f"intake-{uuid4().hex[:12]}"
        message = " ".join(part for part in (intake.chief_complaint, intake.free_text) if part)

        detected = detect(message, intake.language)
        instruction: str | None = None
        if detected:
            instruction = emergency_response(intake.language, self._settings.emergency_number)
            self._record(
                "EMERGENCY_KEYWORD_DETECTED",
                f"Intake: {intake_id}, Language: {intake.language}, MessageDigest: {short_digest(message)}",
                intake,
            )

        zone_assessment = zones.assess(intake.zone) if intake.zone else None
        triage_score = self._scorer.score(intake)

        level = combined_triage_level(
            zone_assessment.triage_level if zone_assessment else None,
            level_for_score(triage_score),
            "EMERGENCY" if detected else None,
        )

        allowed_modes = list(zone_assessment.allowed_modes) if zone_assessment else ["ONLINE", "PHYSICAL"]
        if level == "EMERGENCY":
            allowed_modes = ["PHYSICAL"]

        return CaseAssessment(
            intake_id=intake_id,
            triage_level=level,
            red_flags=_merge_flags(list(zone_assessment.red_flags) if zone_assessment else [], intake),
            recommended_specialty=(
                zone_assessment.recommended_specialty if zone_assessment else "GENERAL_MEDICINE"
            ),
            allowed_modes=allowed_modes,
            zone_assessment=zone_assessment,
            triage_score=triage_score,
            emergency_detected=detected,
            emergency_instruction=instruction,
        )

    def recommend(
        self,
        doctors: list[Doctor],
        intake: IntakeRecord,
        mode: ConsultationMode,
        limit: int | None = None,
        *,
        distance_fn: DistanceFn | None = None,
        weights: RankingWeights = DEFAULT_WEIGHTS,
    ) -> RecommendationResult:
        """Recommend doctors for one consultation mode.

        Raises ``OnlineBlocked`` when ONLINE is requested for a case the
        safety gate rejects; no doctor list is produced in that case. An empty
        eligible pool is not an error and comes back as a result with a
        warning and, where safe, a suggestion to try the other mode.
        """
        case = self.assess(intake)
        return self._recommend_for_case(case, doctors, intake, mode, self._limit(limit), distance_fn, weights)

    def _recommend_for_case(
        self,
        case: CaseAssessment,
        doctors: list[Doctor],
        intake: IntakeRecord,
        mode: ConsultationMode,
        limit: int,
        distance_fn: DistanceFn | None,
        weights: RankingWeights,
    ) -> RecommendationResult:
        if mode == "ONLINE":
            decision = check_online_allowed(case.triage_level, case.allowed_modes)
            if not decision.allowed:
                self._record(
                    "ONLINE_BLOCKED",
                    f"Intake: {case.intake_id}, Reason: {decision.reason}, Triage: {case.triage_level}, "
                    f"RedFlags: {', '.join(case.red_flags)}",
                    intake,
                )
                if case.triage_level == "EMERGENCY":
                    self._record(
                        "EMERGENCY_REDIRECT",
                        f"Intake: {case.intake_id}, Triage: {case.triage_level}, "
                        f"RedFlags: {', '.join(case.red_flags)}, Complaint: {intake.chief_complaint}",
                        intake,
                    )
                raise OnlineBlocked(
                    decision.reason,
                    triage_level=case.triage_level,
                    red_flags=case.red_flags,
                    emergency_instruction=case.emergency_instruction,
                )

        specialty = case.recommended_specialty
        outcome = select_eligible(
            doctors,
            specialty,
            mode,
            allow_fallback=self._settings.allow_specialty_fallback,
        )
        self._record(
            "ELIGIBILITY_FILTER",
            f"Intake: {case.intake_id}, Mode: {mode}, Specialty: {specialty}, "
            f"Total: {len(doctors)}, Eligible: {len(outcome.doctors)}",
            intake,
        )
        if outcome.fallback_used:
            logger.info("No %s doctors for intake %s; widened to %d doctors", specialty, case.intake_id, len(outcome.doctors))
            self._record(
                "SPECIALTY_FALLBACK",
                f"Intake: {case.intake_id}, Mode: {mode}, Specialty: {specialty}, Widened: {len(outcome.doctors)}",
                intake,
            )

        if not outcome.doctors:
            safe = get_safe_modes(case.triage_level, case.allowed_modes)
            alternatives: list[str] = []
            if mode == "ONLINE" and safe.physical:
                alternatives.append("Try searching for physical consultations instead")
            elif mode == "PHYSICAL" and safe.online:
                alternatives.append("Try searching for online consultations instead")
            return RecommendationResult(
                doctors=[],
                mode=mode,
                triage_level=case.triage_level,
                safety_warnings=[NO_MATCH_WARNING],
                alternative_suggestions=alternatives,
                emergency_instruction=case.emergency_instruction,
            )

        chosen = top_n(rank(outcome.doctors, specialty, mode, distance_fn, weights), limit)
        top_score = chosen[0].score if chosen else 0
        self._record(
            "DOCTOR_RECOMMENDATION",
            f"Intake: {case.intake_id}, Mode: {mode}, "
            f"Doctors: {', '.join(item.doctor.id for item in chosen)}, TopScore: {top_score}",
            intake,
        )

        warnings: list[str] = []
        if case.triage_level == "EMERGENCY":
            warnings.append(triage_message("EMERGENCY", intake.language))
        elif case.triage_level == "URGENT":
            warnings.append(URGENT_WARNING)
        if case.red_flags and mode == "PHYSICAL":
            warnings.append("Please mention these symptoms to your doctor: " + ", ".join(case.red_flags))
        if outcome.fallback_used:
            warnings.append(f"No {specialty} specialist is available; showing other qualified doctors")

        return RecommendationResult(
            doctors=chosen,
            mode=mode,
            triage_level=case.triage_level,
            safety_warnings=warnings,
            fallback_used=outcome.fallback_used,
            emergency_instruction=case.emergency_instruction,
        )

    def recommend_both_modes(
        self,
        doctors: list[Doctor],
        intake: IntakeRecord,
        limit: int | None = None,
        *,
        distance_fn: DistanceFn | None = None,
        weights: RankingWeights = DEFAULT_WEIGHTS,
    ) -> BothModesResult:
        case = self.assess(intake)
        resolved_limit = self._limit(limit)

        online: RecommendationResult | None = None
        unavailable: str | None = None
        try:
            online = self._recommend_for_case(case, doctors, intake, "ONLINE", resolved_limit, distance_fn, weights)
        except OnlineBlocked as exc:
            unavailable = exc.reason
            logger.info("Online consultation unavailable for intake %s: %s", case.intake_id, exc.reason)

        physical = self._recommend_for_case(case, doctors, intake, "PHYSICAL", resolved_limit, distance_fn, weights)
        safe = get_safe_modes(case.triage_level, case.allowed_modes)
        return BothModesResult(
            online=online,
            online_unavailable_reason=unavailable,
            physical=physical,
            recommended_mode=safe.primary_recommendation,
        )

    def emergency_override(
        self,
        doctors: list[Doctor],
        intake: IntakeRecord,
        mode: ConsultationMode,
        *,
        reason: str,
        authorized_by: str,
        actor_role: ActorRole = "DOCTOR",
        limit: int | None = None,
        distance_fn: DistanceFn | None = None,
    ) -> RecommendationResult:
        """Recommend without the safety gate. Staff use only; always audited."""
        case = self.assess(intake)
        logger.warning(
            "Emergency override for intake %s (mode=%s, authorized_by=%s)",
            case.intake_id,
            mode,
            authorized_by,
        )
        self._record(
            "EMERGENCY_OVERRIDE",
            f"Intake: {case.intake_id}, Mode: {mode}, Triage: {case.triage_level}, "
            f"Reason: {reason}, AuthorizedBy: {authorized_by}",
            intake,
            actor_id=authorized_by,
            actor_role=actor_role,
        )

        specialty = case.recommended_specialty
        eligible = [d for d in doctors if d.active and d.verified and specialty in d.specialties]
        chosen = top_n(rank(eligible, specialty, mode, distance_fn), self._limit(limit))
        self._record(
            "DOCTOR_RECOMMENDATION",
            f"Intake: {case.intake_id}, Mode: {mode}, Override: true, "
            f"Doctors: {', '.join(item.doctor.id for item in chosen)}, "
            f"TopScore: {chosen[0].score if chosen else 0}",
            intake,
            actor_id=authorized_by,
            actor_role=actor_role,
        )
        return RecommendationResult(
            doctors=chosen,
            mode=mode,
            triage_level=case.triage_level,
            safety_warnings=[f"EMERGENCY OVERRIDE: {reason} (Authorized by: {authorized_by})"],
            emergency_instruction=case.emergency_instruction,
        )

    def validate_doctor_for_patient(
        self,
        doctor: Doctor,
        intake: IntakeRecord,
        mode: ConsultationMode,
    ) -> DoctorValidation:
        case = self.assess(intake)
        reasons = eligibility_reasons(doctor, case.recommended_specialty, mode)
        if reasons:
            return DoctorValidation(eligible=False, reasons=reasons)

        if mode == "ONLINE":
            decision = check_online_allowed(case.triage_level, case.allowed_modes)
            if not decision.allowed:
                return DoctorValidation(eligible=False, reasons=[decision.reason])

        scored = score_doctor(doctor, case.recommended_specialty, mode)
        return DoctorValidation(
            eligible=True,
            reasons=["Doctor is eligible for this consultation"],
            score=scored.score,
        )
