"""HTTP entrypoint for the Al-Shifa decision engine."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import Body, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from alshifa import zones
from alshifa.audit import build_audit_log
from alshifa.config import get_settings
from alshifa.errors import OnlineBlocked
from alshifa.orchestration import RecommendationEngine
from alshifa.ranking import distance_from_hint
from alshifa.schemas import (
    AuditAction,
    BothModesRequest,
    EmergencyOverrideRequest,
    IntakeRecord,
    RecommendationRequest,
)
from alshifa.scoring import format_triage_display
from alshifa.utils import setup_logging, utc_now


settings = get_settings()
setup_logging(settings.log_level)
audit_log = build_audit_log(settings)
engine = RecommendationEngine(audit_log, settings=settings)

app = FastAPI(title="Al-Shifa Triage & Referral API", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


def _parse(model, payload: dict[str, Any]):
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors(include_url=False)) from exc


@app.get("/health")
def health() -> dict[str, Any]:
    return {
        "status": "ok",
        "service": settings.app_name,
        "timestamp": utc_now().isoformat(),
        "audit_backend": settings.audit_backend,
        "audit_entries": len(audit_log),
        "audit_failed_writes": audit_log.failed_writes,
        "specialty_fallback_enabled": settings.allow_specialty_fallback,
        "declared_zones": len(zones.declared_zones()),
    }


@app.get("/v1/zones/{zone}")
def zone_lookup(zone: str, language: str = "en") -> dict[str, Any]:
    lang = "ur" if language == "ur" else "en"
    assessment = zones.assess(zone)
    return {
        **assessment.model_dump(mode="json"),
        "known": assessment.zone in zones.ZONE_TABLE,
        "label": zones.zone_label(zone, lang),
        "guidance": zones.clinical_guidance(zone),
    }


@app.post("/v1/triage/assess")
def triage_assess(payload: dict[str, Any] = Body(...)) -> dict[str, Any]:
    intake = _parse(IntakeRecord, payload)
    case = engine.assess(intake)
    return {
        **case.model_dump(mode="json"),
        "display": format_triage_display(case.triage_score, intake.language),
    }


@app.post("/v1/recommendations")
def recommendations(payload: dict[str, Any] = Body(...)) -> dict[str, Any]:
    request = _parse(RecommendationRequest, payload)
    try:
        result = engine.recommend(
            request.doctors,
            request.intake,
            request.mode,
            request.limit,
            distance_fn=distance_from_hint if request.use_distance else None,
        )
    except OnlineBlocked as exc:
        raise HTTPException(status_code=409, detail=exc.to_dict()) from exc
    return result.model_dump(mode="json")


@app.post("/v1/recommendations/both-modes")
def recommendations_both_modes(payload: dict[str, Any] = Body(...)) -> dict[str, Any]:
    request = _parse(BothModesRequest, payload)
    result = engine.recommend_both_modes(
        request.doctors,
        request.intake,
        request.limit,
        distance_fn=distance_from_hint if request.use_distance else None,
    )
    return result.model_dump(mode="json")


@app.post("/v1/recommendations/override")
def recommendations_override(payload: dict[str, Any] = Body(...)) -> dict[str, Any]:
    request = _parse(EmergencyOverrideRequest, payload)
    result = engine.emergency_override(
        request.doctors,
        request.intake,
        request.mode,
        reason=request.reason,
        authorized_by=request.authorized_by,
        actor_role=request.actor_role,
    )
    return result.model_dump(mode="json")


@app.get("/v1/audit")
def audit_entries(
    actor_id: str | None = None,
    action: AuditAction | None = None,
    patient_id: str | None = None,
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
) -> dict[str, Any]:
    entries = audit_log.query(actor_id=actor_id, action=action, patient_id=patient_id, start=start, end=end)
    return {
        "count": len(entries),
        "entries": [entry.model_dump(mode="json") for entry in entries],
    }


@app.get("/v1/audit/verify")
def audit_verify() -> dict[str, Any]:
    tampered = audit_log.find_tampered()
    return {
        "ok": not tampered,
        "total": len(audit_log),
        "tampered_entry_ids": tampered,
    }
