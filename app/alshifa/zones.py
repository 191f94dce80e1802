"""Anatomical micro-zone knowledge base.

Every declared zone lives in ``ZONE_TABLE``. Triage level, specialty and the
permitted consultation modes are derived from the small rule tables below, so
``assess`` stays a pure lookup: the same zone always yields the same
assessment, and unknown zones fall back to a routine general-medicine case.
"""

from __future__ import annotations

from dataclasses import dataclass

from alshifa.schemas import ConsultationMode, Language, Specialty, TriageLevel, ZoneAssessment
from alshifa.utils import normalize_token


@dataclass(frozen=True)
class ZoneProfile:
    region: str
    red_flags: tuple[str, ...]
    label_en: str
    label_ur: str
    description: str


# Flanks sit on both the abdominal and the back map; they get their own region
# so neither region's specialty is forced onto renal pain.
ZONE_TABLE: dict[str, ZoneProfile] = {
    # Abdomen, 9-region model.
    "RIGHT_UPPER_QUADRANT": ZoneProfile(
        "ABDOMEN", ("GALLBLADDER_PATTERN", "LIVER_CONCERN"),
        "Right upper abdomen", "دائیں اوپری پیٹ", "Area under right ribs (liver, gallbladder)",
    ),
    "LEFT_UPPER_QUADRANT": ZoneProfile(
        "ABDOMEN", ("SPLENIC_CONCERN", "GASTRIC_PATTERN"),
        "Left upper abdomen", "بائیں اوپری پیٹ", "Area under left ribs (stomach, spleen)",
    ),
    "EPIGASTRIC": ZoneProfile(
        "ABDOMEN", ("PEPTIC_OR_PANCREATIC_PATTERN", "CARDIAC_REFERRED_PAIN_POSSIBLE"),
        "Upper middle abdomen", "پیٹ کا اوپری درمیانی حصہ", "Just below the breastbone",
    ),
    "RIGHT_LOWER_QUADRANT": ZoneProfile(
        "ABDOMEN", ("APPENDICITIS_PATTERN", "OVARIAN_TORSION_RISK"),
        "Right lower abdomen", "دائیں نچلا پیٹ", "Lower right side (appendix area)",
    ),
    "LEFT_LOWER_QUADRANT": ZoneProfile(
        "ABDOMEN", (), "Left lower abdomen", "بائیں نچلا پیٹ", "Lower left side",
    ),
    "PERIUMBILICAL": ZoneProfile(
        "ABDOMEN", (), "Around belly button", "ناف کے گرد", "Central area around navel",
    ),
    "SUPRAPUBIC": ZoneProfile(
        "ABDOMEN", ("URINARY_RETENTION_POSSIBLE", "GYNECOLOGICAL_CONCERN"),
        "Lower abdomen (above pubic area)", "نچلے پیٹ کا حصہ", "Just above pubic bone (bladder area)",
    ),
    "RIGHT_FLANK": ZoneProfile(
        "FLANK", ("RENAL_COLIC_PATTERN", "KIDNEY_INFECTION_POSSIBLE"),
        "Right side", "دائیں پہلو", "Right side between ribs and hip (kidney area)",
    ),
    "LEFT_FLANK": ZoneProfile(
        "FLANK", ("RENAL_COLIC_PATTERN", "KIDNEY_INFECTION_POSSIBLE"),
        "Left side", "بائیں پہلو", "Left side between ribs and hip (kidney area)",
    ),
    # Chest, cardiac-aware.
    "LEFT_PRECORDIAL": ZoneProfile(
        "CHEST", ("CARDIAC_PATTERN", "ACUTE_CORONARY_SYNDROME_RISK", "REQUIRES_IMMEDIATE_EVALUATION"),
        "Left chest (heart area)", "بائیں سینے کا حصہ (دل کی جگہ)", "Over the heart - critical area",
    ),
    "RIGHT_PRECORDIAL": ZoneProfile(
        "CHEST", (), "Right chest", "دائیں سینے کا حصہ", "Right side of chest",
    ),
    "CENTRAL_STERNAL": ZoneProfile(
        "CHEST", ("RETROSTERNAL_PAIN", "CARDIAC_PATTERN", "REQUIRES_IMMEDIATE_EVALUATION"),
        "Center of chest (breastbone)", "سینے کا درمیانی حصہ", "Behind breastbone - cardiac warning zone",
    ),
    "LEFT_LATERAL": ZoneProfile(
        "CHEST", ("PLEURITIC_PATTERN_POSSIBLE", "MSK_VS_CARDIAC_DIFFERENTIATION_NEEDED"),
        "Left side of chest", "سینے کا بایاں پہلو", "Left outer chest wall",
    ),
    "RIGHT_LATERAL": ZoneProfile(
        "CHEST", ("PLEURITIC_PATTERN_POSSIBLE", "MSK_VS_CARDIAC_DIFFERENTIATION_NEEDED"),
        "Right side of chest", "سینے کا دایاں پہلو", "Right outer chest wall",
    ),
    "UPPER_CHEST": ZoneProfile(
        "CHEST", (), "Upper chest", "سینے کا اوپری حصہ", "Upper portion of chest",
    ),
    "LOWER_CHEST": ZoneProfile(
        "CHEST", (), "Lower chest", "سینے کا نچلا حصہ", "Lower portion of chest",
    ),
    # Back, spine-aligned.
    "CERVICAL": ZoneProfile(
        "BACK", ("NEUROLOGICAL_ASSESSMENT_NEEDED", "MENINGITIS_CONSIDERATION"),
        "Neck/upper spine", "گردن / ریڑھ کی ہڈی کا اوپری حصہ", "Neck and upper spine area",
    ),
    "UPPER_THORACIC": ZoneProfile(
        "BACK", (), "Upper back (between shoulder blades)", "کندھوں کے درمیان", "Between shoulder blades",
    ),
    "LOWER_THORACIC": ZoneProfile(
        "BACK", (), "Mid-back", "کمر کا درمیانی حصہ", "Middle of back",
    ),
    "LUMBAR": ZoneProfile(
        "BACK", ("RADICULOPATHY_POSSIBLE", "CAUDA_EQUINA_SCREENING_NEEDED"),
        "Lower back", "کمر کا نچلا حصہ", "Lower back (kidney/spine area)",
    ),
    "SACRAL": ZoneProfile(
        "BACK", ("CAUDA_EQUINA_SYNDROME_RISK",),
        "Tailbone area", "دم کی ہڈی کا حصہ", "Tailbone and lower spine",
    ),
    # Head.
    "FRONTAL": ZoneProfile("HEAD", (), "Forehead", "پیشانی", "Front of head"),
    "TEMPORAL_LEFT": ZoneProfile(
        "HEAD", ("TEMPORAL_ARTERITIS_CONSIDERATION",), "Left temple", "بائیں کنپٹی", "Left side of head",
    ),
    "TEMPORAL_RIGHT": ZoneProfile(
        "HEAD", ("TEMPORAL_ARTERITIS_CONSIDERATION",), "Right temple", "دائیں کنپٹی", "Right side of head",
    ),
    "OCCIPITAL": ZoneProfile(
        "HEAD", ("INTRACRANIAL_PRESSURE_CONCERN", "MENINGITIS_CONSIDERATION"),
        "Back of head", "سر کا پچھلا حصہ", "Back/base of skull",
    ),
    "VERTEX": ZoneProfile("HEAD", (), "Top of head", "سر کا اوپری حصہ", "Crown/top of head"),
    "FACE": ZoneProfile("HEAD", (), "Face", "چہرہ", "Facial area"),
    # Extremities, joint-focused.
    "SHOULDER_LEFT": ZoneProfile("UPPER_EXTREMITY", (), "Left shoulder", "بایاں کندھا", "Left shoulder joint"),
    "SHOULDER_RIGHT": ZoneProfile("UPPER_EXTREMITY", (), "Right shoulder", "دایاں کندھا", "Right shoulder joint"),
    "ELBOW_LEFT": ZoneProfile("UPPER_EXTREMITY", (), "Left elbow", "بائیں کہنی", "Left elbow joint"),
    "ELBOW_RIGHT": ZoneProfile("UPPER_EXTREMITY", (), "Right elbow", "دائیں کہنی", "Right elbow joint"),
    "WRIST_LEFT": ZoneProfile("UPPER_EXTREMITY", (), "Left wrist", "بائیں کلائی", "Left wrist joint"),
    "WRIST_RIGHT": ZoneProfile("UPPER_EXTREMITY", (), "Right wrist", "دائیں کلائی", "Right wrist joint"),
    "HIP_LEFT": ZoneProfile("LOWER_EXTREMITY", (), "Left hip", "بائیں کولہا", "Left hip joint"),
    "HIP_RIGHT": ZoneProfile("LOWER_EXTREMITY", (), "Right hip", "دائیں کولہا", "Right hip joint"),
    "KNEE_LEFT": ZoneProfile("LOWER_EXTREMITY", (), "Left knee", "بائیں گھٹنا", "Left knee joint"),
    "KNEE_RIGHT": ZoneProfile("LOWER_EXTREMITY", (), "Right knee", "دائیں گھٹنا", "Right knee joint"),
    "ANKLE_LEFT": ZoneProfile("LOWER_EXTREMITY", (), "Left ankle", "بائیں ٹخنہ", "Left ankle joint"),
    "ANKLE_RIGHT": ZoneProfile("LOWER_EXTREMITY", (), "Right ankle", "دائیں ٹخنہ", "Right ankle joint"),
}

EMERGENCY_ZONES = frozenset({"LEFT_PRECORDIAL", "CENTRAL_STERNAL"})
URGENT_ZONES = frozenset({"RIGHT_LOWER_QUADRANT", "EPIGASTRIC", "OCCIPITAL", "CERVICAL"})
CRITICAL_FLAGS = frozenset({"CARDIAC_PATTERN", "REQUIRES_IMMEDIATE_EVALUATION", "CAUDA_EQUINA_SYNDROME_RISK"})
ONLINE_BLOCKED_ZONES = frozenset(
    {"LEFT_PRECORDIAL", "CENTRAL_STERNAL", "RIGHT_LOWER_QUADRANT", "OCCIPITAL", "CERVICAL", "SACRAL"}
)

REGION_SPECIALTY: dict[str, Specialty] = {
    "CHEST": "CARDIOLOGY",
    "ABDOMEN": "GASTROENTEROLOGY",
    "BACK": "ORTHOPEDICS",
    "HEAD": "NEUROLOGY",
    "UPPER_EXTREMITY": "ORTHOPEDICS",
    "LOWER_EXTREMITY": "ORTHOPEDICS",
}

# First matching flag wins.
_PATTERN_BY_FLAG: tuple[tuple[str, str], ...] = (
    ("CARDIAC_PATTERN", "Cardiac evaluation needed - chest pain in critical zone"),
    ("APPENDICITIS_PATTERN", "Right lower quadrant pain - appendicitis consideration"),
    ("CAUDA_EQUINA_SYNDROME_RISK", "Sacral pain - cauda equina syndrome must be excluded"),
    ("RENAL_COLIC_PATTERN", "Flank pain - kidney stone or infection pattern"),
    ("NEUROLOGICAL_ASSESSMENT_NEEDED", "Neurological assessment required"),
)

_GUIDANCE: dict[str, dict[str, str]] = {
    "LEFT_PRECORDIAL": {
        "patient_advice": (
            "Chest pain in this area requires immediate medical attention. "
            "Please visit the emergency room or call emergency services."
        ),
        "doctor_note": "Left precordial chest pain - rule out ACS, consider ECG and cardiac enzymes",
    },
    "RIGHT_LOWER_QUADRANT": {
        "patient_advice": "This pain location needs prompt evaluation. Please see a doctor soon.",
        "doctor_note": "RLQ pain - appendicitis, ovarian pathology in differential",
    },
    "EPIGASTRIC": {
        "patient_advice": "Upper abdominal pain should be evaluated by a doctor.",
        "doctor_note": "Epigastric pain - consider peptic ulcer, pancreatitis, cardiac referred pain",
    },
}


def declared_zones() -> tuple[str, ...]:
    return tuple(ZONE_TABLE)


def zones_for_region(region: str) -> tuple[str, ...]:
    wanted = normalize_token(region)
    return tuple(zone for zone, profile in ZONE_TABLE.items() if profile.region == wanted)


def red_flags_for(zone: str) -> tuple[str, ...]:
    profile = ZONE_TABLE.get(normalize_token(zone))
    return profile.red_flags if profile else ()


def triage_level_for(zone: str, red_flags: tuple[str, ...] | list[str]) -> TriageLevel:
    key = normalize_token(zone)
    if key in EMERGENCY_ZONES:
        return "EMERGENCY"
    if key in URGENT_ZONES:
        return "URGENT"
    if any(flag in CRITICAL_FLAGS for flag in red_flags):
        return "EMERGENCY"
    return "ROUTINE"


def specialty_for(zone: str) -> Specialty:
    profile = ZONE_TABLE.get(normalize_token(zone))
    if profile is None:
        return "GENERAL_MEDICINE"
    return REGION_SPECIALTY.get(profile.region, "GENERAL_MEDICINE")


def allowed_modes_for(zone: str, triage_level: TriageLevel) -> tuple[ConsultationMode, ...]:
    # An emergency zone is never ONLINE, even if it is missing from the block list.
    if normalize_token(zone) in ONLINE_BLOCKED_ZONES or triage_level == "EMERGENCY":
        return ("PHYSICAL",)
    return ("ONLINE", "PHYSICAL")


def _clinical_pattern(zone: str, red_flags: tuple[str, ...]) -> str:
    for flag, pattern in _PATTERN_BY_FLAG:
        if flag in red_flags:
            return pattern
    return f"Pain localized to {zone}"


def assess(zone: str) -> ZoneAssessment:
    """Assess a micro-zone identifier.

    Unknown identifiers are not an error: they yield no red flags, ROUTINE,
    GENERAL_MEDICINE and both consultation modes.
    """
    key = normalize_token(zone) or "UNSPECIFIED"
    red_flags = red_flags_for(key)
    level = triage_level_for(key, red_flags)
    return ZoneAssessment(
        zone=key,
        red_flags=list(red_flags),
        triage_level=level,
        recommended_specialty=specialty_for(key),
        allowed_modes=list(allowed_modes_for(key, level)),
        clinical_pattern=_clinical_pattern(key, red_flags),
    )


def zone_label(zone: str, language: Language = "en") -> str:
    key = normalize_token(zone)
    profile = ZONE_TABLE.get(key)
    if profile is None:
        return key.replace("_", " ").title()
    return profile.label_ur if language == "ur" else profile.label_en


def clinical_guidance(zone: str) -> dict[str, str]:
    key = normalize_token(zone)
    guidance = _GUIDANCE.get(key)
    if guidance is not None:
        return dict(guidance)
    return {
        "patient_advice": "Please consult with a doctor about your symptoms.",
        "doctor_note": f"Pain localized to {key}",
    }
