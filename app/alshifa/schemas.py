"""Pydantic schemas for the Al-Shifa decision engine and its HTTP contracts."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


ConsultationMode = Literal["ONLINE", "PHYSICAL"]
TriageLevel = Literal["EMERGENCY", "URGENT", "ROUTINE"]
TriageCategory = Literal["immediate", "urgent", "semi-urgent", "non-urgent"]
Language = Literal["en", "ur"]
ActorRole = Literal["SYSTEM", "PATIENT", "DOCTOR", "NURSE", "ADMIN"]

Specialty = Literal[
    "GENERAL_MEDICINE",
    "PEDIATRICS",
    "GYNECOLOGY",
    "CARDIOLOGY",
    "DERMATOLOGY",
    "ORTHOPEDICS",
    "ENT",
    "PSYCHIATRY",
    "NEUROLOGY",
    "GASTROENTEROLOGY",
    "UROLOGY",
]

AuditAction = Literal[
    "ELIGIBILITY_FILTER",
    "SPECIALTY_FALLBACK",
    "ONLINE_BLOCKED",
    "EMERGENCY_REDIRECT",
    "EMERGENCY_KEYWORD_DETECTED",
    "DOCTOR_RECOMMENDATION",
    "EMERGENCY_OVERRIDE",
]


class IntakeRecord(BaseModel):
    """Snapshot handed over by the intake stepper. Read-only to the engine."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    intake_id: str | None = Field(default=None, validation_alias=AliasChoices("intake_id", "intakeId"))
    patient_id: str | None = Field(default=None, validation_alias=AliasChoices("patient_id", "patientId"))
    chief_complaint: str = Field(
        default="",
        validation_alias=AliasChoices("chief_complaint", "chiefComplaint", "complaint"),
    )
    answers: dict[str, Any] = Field(default_factory=dict)
    zone: str | None = Field(default=None, validation_alias=AliasChoices("zone", "microZone", "micro_zone"))
    is_emergency: bool = Field(default=False, validation_alias=AliasChoices("is_emergency", "isEmergency"))
    red_flags: dict[str, bool] = Field(default_factory=dict, validation_alias=AliasChoices("red_flags", "redFlags"))
    age: int | None = Field(default=None, ge=0, le=130, validation_alias=AliasChoices("age", "age_years"))
    language: Language = "en"
    free_text: str | None = Field(default=None, validation_alias=AliasChoices("free_text", "message"))


class ZoneAssessment(BaseModel):
    model_config = ConfigDict(frozen=True)

    zone: str
    red_flags: list[str] = Field(default_factory=list)
    triage_level: TriageLevel = "ROUTINE"
    recommended_specialty: Specialty = "GENERAL_MEDICINE"
    allowed_modes: list[ConsultationMode] = Field(default_factory=lambda: ["ONLINE", "PHYSICAL"])
    clinical_pattern: str = ""


class TriageScore(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_score: int = Field(ge=0, le=100)
    category: TriageCategory
    priority_level: int = Field(ge=1, le=4)
    wait_time_recommendation: str
    reasoning: list[str] = Field(default_factory=list)


class Rating(BaseModel):
    average: float = Field(default=0.0, ge=0.0, le=5.0)
    count: int = Field(default=0, ge=0)


class Doctor(BaseModel):
    id: str
    full_name: str = Field(default="", validation_alias=AliasChoices("full_name", "fullName", "name"))
    specialties: list[str] = Field(default_factory=list)
    consultation_modes: list[ConsultationMode] = Field(
        default_factory=list,
        validation_alias=AliasChoices("consultation_modes", "consultationModes", "modes"),
    )
    active: bool = True
    verified: bool = False
    distance_km: float | None = Field(
        default=None,
        ge=0.0,
        validation_alias=AliasChoices("distance_km", "distanceKm", "distance"),
    )
    city: str | None = None
    languages: list[str] = Field(default_factory=list)
    experience_years: int = Field(default=0, ge=0, validation_alias=AliasChoices("experience_years", "experienceYears"))
    rating: Rating = Field(default_factory=Rating, validation_alias=AliasChoices("rating", "ratings"))


class ScoredDoctor(BaseModel):
    doctor: Doctor
    score: float
    score_breakdown: dict[str, float] = Field(default_factory=dict)


class RecommendationResult(BaseModel):
    doctors: list[ScoredDoctor] = Field(default_factory=list)
    mode: ConsultationMode
    triage_level: TriageLevel = "ROUTINE"
    safety_warnings: list[str] = Field(default_factory=list)
    alternative_suggestions: list[str] = Field(default_factory=list)
    fallback_used: bool = False
    emergency_instruction: str | None = None


class CaseAssessment(BaseModel):
    """Combined outcome of keyword detection, zone lookup and scoring."""

    model_config = ConfigDict(frozen=True)

    intake_id: str
    triage_level: TriageLevel
    red_flags: list[str] = Field(default_factory=list)
    recommended_specialty: Specialty = "GENERAL_MEDICINE"
    allowed_modes: list[ConsultationMode] = Field(default_factory=lambda: ["ONLINE", "PHYSICAL"])
    zone_assessment: ZoneAssessment | None = None
    triage_score: TriageScore
    emergency_detected: bool = False
    emergency_instruction: str | None = None


class BothModesResult(BaseModel):
    online: RecommendationResult | None = None
    online_unavailable_reason: str | None = None
    physical: RecommendationResult
    recommended_mode: ConsultationMode


class DoctorValidation(BaseModel):
    eligible: bool
    reasons: list[str]
    score: float | None = None


class AuditEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    entry_id: str
    timestamp: datetime
    actor_id: str
    actor_role: ActorRole = "SYSTEM"
    action: AuditAction
    details: str = ""
    patient_id: str | None = None
    integrity_token: str = ""


class RecommendationRequest(BaseModel):
    doctors: list[Doctor] = Field(default_factory=list)
    intake: IntakeRecord = Field(default_factory=IntakeRecord)
    mode: ConsultationMode = "PHYSICAL"
    limit: int | None = Field(default=None, ge=1, le=50)
    use_distance: bool = False


class BothModesRequest(BaseModel):
    doctors: list[Doctor] = Field(default_factory=list)
    intake: IntakeRecord = Field(default_factory=IntakeRecord)
    limit: int | None = Field(default=None, ge=1, le=50)
    use_distance: bool = False


class EmergencyOverrideRequest(BaseModel):
    doctors: list[Doctor] = Field(default_factory=list)
    intake: IntakeRecord = Field(default_factory=IntakeRecord)
    mode: ConsultationMode = "PHYSICAL"
    reason: str = Field(min_length=1)
    authorized_by: str = Field(min_length=1)
    actor_role: ActorRole = "DOCTOR"
