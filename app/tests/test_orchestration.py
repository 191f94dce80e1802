from pathlib import Path

import pytest

from alshifa.audit import AuditLog, JsonlAuditStore
from alshifa.config import Settings
from alshifa.errors import AuditWriteError, OnlineBlocked
from alshifa.orchestration import NO_MATCH_WARNING, URGENT_WARNING, RecommendationEngine
from alshifa.ranking import distance_from_hint
from alshifa.safety import EMERGENCY_REASON, ZONE_REASON
from alshifa.schemas import Doctor, IntakeRecord


def _settings(tmp_path: Path, *, fallback: bool = False) -> Settings:
    return Settings(
        audit_backend="jsonl",
        audit_log_path=str(tmp_path / "audit.jsonl"),
        recommendation_limit=5,
        emergency_number="1122",
        allow_specialty_fallback=fallback,
        system_actor="SYSTEM",
    )


def _engine(tmp_path: Path, *, fallback: bool = False) -> RecommendationEngine:
    settings = _settings(tmp_path, fallback=fallback)
    return RecommendationEngine(AuditLog(JsonlAuditStore(settings.audit_log_path)), settings=settings)


def _doctor(doctor_id: str, specialty: str, modes=("ONLINE", "PHYSICAL"), **kwargs) -> Doctor:
    return Doctor(
        id=doctor_id,
        specialties=[specialty],
        consultation_modes=list(modes),
        verified=True,
        **kwargs,
    )


def _actions(engine: RecommendationEngine) -> list[str]:
    return [entry.action for entry in engine.audit_log.entries()]


def test_online_request_for_cardiac_zone_is_blocked_and_audited(tmp_path):
    engine = _engine(tmp_path)
    intake = IntakeRecord(intake_id="in-1", patient_id="p-1", zone="LEFT_PRECORDIAL")

    with pytest.raises(OnlineBlocked) as caught:
        engine.recommend([_doctor("c1", "CARDIOLOGY")], intake, "ONLINE")

    assert caught.value.reason == EMERGENCY_REASON
    assert caught.value.details["redirect_mode"] == "PHYSICAL"
    assert "CARDIAC_PATTERN" in caught.value.red_flags
    assert _actions(engine) == ["ONLINE_BLOCKED", "EMERGENCY_REDIRECT"]
    assert all(entry.patient_id == "p-1" for entry in engine.audit_log.entries())


def test_physical_request_for_cardiac_zone_returns_specialists(tmp_path):
    engine = _engine(tmp_path)
    intake = IntakeRecord(zone="LEFT_PRECORDIAL")
    pool = [_doctor("gp", "GENERAL_MEDICINE"), _doctor("c1", "CARDIOLOGY"), _doctor("c2", "CARDIOLOGY", active=False)]

    result = engine.recommend(pool, intake, "PHYSICAL")

    assert [item.doctor.id for item in result.doctors] == ["c1"]
    assert result.triage_level == "EMERGENCY"
    assert result.safety_warnings[0].startswith("Symptoms appear severe")
    assert any("CARDIAC_PATTERN" in warning for warning in result.safety_warnings)
    assert _actions(engine) == ["ELIGIBILITY_FILTER", "DOCTOR_RECOMMENDATION"]


def test_urgent_zone_blocks_online_with_zone_reason(tmp_path):
    engine = _engine(tmp_path)
    intake = IntakeRecord(zone="RIGHT_LOWER_QUADRANT")

    with pytest.raises(OnlineBlocked) as caught:
        engine.recommend([_doctor("g1", "GASTROENTEROLOGY")], intake, "ONLINE")

    assert caught.value.reason == ZONE_REASON
    assert _actions(engine) == ["ONLINE_BLOCKED"]

    result = engine.recommend([_doctor("g1", "GASTROENTEROLOGY")], intake, "PHYSICAL")
    assert result.triage_level == "URGENT"
    assert URGENT_WARNING in result.safety_warnings


def test_online_routine_case_ranks_specialists_first(tmp_path):
    engine = _engine(tmp_path)
    intake = IntakeRecord(zone="EPIGASTRIC")
    pool = [_doctor(f"g{i}", "GASTROENTEROLOGY") for i in range(7)]

    result = engine.recommend(pool, intake, "ONLINE", limit=3)

    assert result.mode == "ONLINE"
    assert [item.doctor.id for item in result.doctors] == ["g0", "g1", "g2"]
    assert all(item.score == 15 for item in result.doctors)


def test_empty_pool_is_a_warning_not_an_error(tmp_path):
    engine = _engine(tmp_path)
    intake = IntakeRecord(zone="FRONTAL")

    result = engine.recommend([_doctor("derm", "DERMATOLOGY")], intake, "ONLINE")

    assert result.doctors == []
    assert result.safety_warnings == [NO_MATCH_WARNING]
    assert result.alternative_suggestions == ["Try searching for physical consultations instead"]
    assert _actions(engine) == ["ELIGIBILITY_FILTER"]


def test_no_online_suggestion_for_emergency_empty_pool(tmp_path):
    engine = _engine(tmp_path)

    result = engine.recommend([], IntakeRecord(zone="CENTRAL_STERNAL"), "PHYSICAL")

    assert result.doctors == []
    assert result.alternative_suggestions == []


def test_emergency_keyword_escalates_and_audits_without_raw_text(tmp_path):
    engine = _engine(tmp_path)
    intake = IntakeRecord(zone="FRONTAL", chief_complaint="headache", free_text="now I also have chest pain")

    case = engine.assess(intake)

    assert case.emergency_detected is True
    assert case.triage_level == "EMERGENCY"
    assert case.allowed_modes == ["PHYSICAL"]
    assert "1122" in case.emergency_instruction
    entries = engine.audit_log.query(action="EMERGENCY_KEYWORD_DETECTED")
    assert len(entries) == 1
    assert "chest pain" not in entries[0].details


def test_score_alone_can_escalate_to_emergency(tmp_path):
    engine = _engine(tmp_path)
    intake = IntakeRecord(is_emergency=True, answers={"severity": 9})

    case = engine.assess(intake)

    assert case.triage_score.total_score >= 70
    assert case.triage_level == "EMERGENCY"
    assert case.recommended_specialty == "GENERAL_MEDICINE"
    with pytest.raises(OnlineBlocked):
        engine.recommend([_doctor("gp", "GENERAL_MEDICINE")], intake, "ONLINE")


def test_both_modes_for_emergency_omits_online(tmp_path):
    engine = _engine(tmp_path)
    intake = IntakeRecord(zone="LEFT_PRECORDIAL")

    result = engine.recommend_both_modes([_doctor("c1", "CARDIOLOGY")], intake)

    assert result.online is None
    assert result.online_unavailable_reason == EMERGENCY_REASON
    assert [item.doctor.id for item in result.physical.doctors] == ["c1"]
    assert result.recommended_mode == "PHYSICAL"


def test_both_modes_for_routine_case(tmp_path):
    engine = _engine(tmp_path)
    intake = IntakeRecord(zone="KNEE_LEFT")
    pool = [
        _doctor("near", "ORTHOPEDICS", distance_km=1.0),
        _doctor("far", "ORTHOPEDICS", distance_km=20.0),
    ]

    result = engine.recommend_both_modes(list(reversed(pool)), intake, distance_fn=distance_from_hint)

    assert result.online is not None
    assert result.recommended_mode == "ONLINE"
    assert [item.doctor.id for item in result.physical.doctors] == ["near", "far"]


def test_specialty_fallback_is_flagged_and_audited(tmp_path):
    engine = _engine(tmp_path, fallback=True)

    result = engine.recommend([_doctor("gp", "GENERAL_MEDICINE")], IntakeRecord(zone="KNEE_RIGHT"), "PHYSICAL")

    assert result.fallback_used is True
    assert [item.doctor.id for item in result.doctors] == ["gp"]
    assert result.doctors[0].score == 0
    assert "SPECIALTY_FALLBACK" in _actions(engine)


def test_emergency_override_bypasses_gate_and_is_attributed(tmp_path):
    engine = _engine(tmp_path)
    intake = IntakeRecord(zone="LEFT_PRECORDIAL")

    result = engine.emergency_override(
        [_doctor("c1", "CARDIOLOGY", modes=("PHYSICAL",))],
        intake,
        "ONLINE",
        reason="Remote region, ambulance dispatched",
        authorized_by="dr-ayesha",
    )

    assert [item.doctor.id for item in result.doctors] == ["c1"]
    assert result.safety_warnings == [
        "EMERGENCY OVERRIDE: Remote region, ambulance dispatched (Authorized by: dr-ayesha)"
    ]
    overrides = engine.audit_log.query(action="EMERGENCY_OVERRIDE")
    assert len(overrides) == 1
    assert overrides[0].actor_id == "dr-ayesha"
    assert overrides[0].actor_role == "DOCTOR"


def test_validate_doctor_for_patient(tmp_path):
    engine = _engine(tmp_path)

    ok = engine.validate_doctor_for_patient(_doctor("c1", "CARDIOLOGY"), IntakeRecord(zone="LEFT_PRECORDIAL"), "PHYSICAL")
    assert ok.eligible and ok.score == 10

    blocked = engine.validate_doctor_for_patient(_doctor("c1", "CARDIOLOGY"), IntakeRecord(zone="LEFT_PRECORDIAL"), "ONLINE")
    assert not blocked.eligible
    assert blocked.reasons == [EMERGENCY_REASON]

    wrong = engine.validate_doctor_for_patient(_doctor("e1", "ENT"), IntakeRecord(zone="LEFT_PRECORDIAL"), "PHYSICAL")
    assert wrong.reasons == ["Doctor does not practise CARDIOLOGY"]


class FailingStore:
    def append(self, entry):
        raise AuditWriteError("store unavailable")

    def entries(self):
        return []

    def unreadable(self):
        return []

    def __len__(self):
        return 0


def test_audit_failure_does_not_break_recommendation(tmp_path):
    engine = RecommendationEngine(AuditLog(FailingStore()), settings=_settings(tmp_path))

    result = engine.recommend([_doctor("c1", "CARDIOLOGY")], IntakeRecord(zone="LEFT_PRECORDIAL"), "PHYSICAL")

    assert [item.doctor.id for item in result.doctors] == ["c1"]
    assert engine.audit_log.failed_writes == 2

    with pytest.raises(OnlineBlocked):
        engine.recommend([_doctor("c1", "CARDIOLOGY")], IntakeRecord(zone="LEFT_PRECORDIAL"), "ONLINE")


def test_keyword_block_carries_emergency_instruction(tmp_path):
    engine = _engine(tmp_path)
    intake = IntakeRecord(zone="FRONTAL", free_text="sudden chest pain while walking")

    with pytest.raises(OnlineBlocked) as caught:
        engine.recommend([_doctor("n1", "NEUROLOGY")], intake, "ONLINE")

    assert "1122" in caught.value.emergency_instruction
    assert caught.value.to_dict()["details"]["emergency_instruction"] == caught.value.emergency_instruction
    assert _actions(engine) == ["EMERGENCY_KEYWORD_DETECTED", "ONLINE_BLOCKED", "EMERGENCY_REDIRECT"]


def test_override_entries_keep_actor_and_role(tmp_path):
    engine = _engine(tmp_path)

    engine.emergency_override(
        [_doctor("c1", "CARDIOLOGY")],
        IntakeRecord(zone="LEFT_PRECORDIAL"),
        "PHYSICAL",
        reason="Triage nurse escalation",
        authorized_by="nurse-12",
        actor_role="NURSE",
    )
    engine.recommend([_doctor("c1", "CARDIOLOGY")], IntakeRecord(zone="LEFT_PRECORDIAL"), "PHYSICAL")

    roles = [(entry.actor_id, entry.actor_role) for entry in engine.audit_log.entries()]
    assert roles == [
        ("nurse-12", "NURSE"),
        ("nurse-12", "NURSE"),
        ("SYSTEM", "SYSTEM"),
        ("SYSTEM", "SYSTEM"),
    ]
