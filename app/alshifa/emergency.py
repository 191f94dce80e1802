"""Emergency keyword detection over free text.

High recall by construction: any case-insensitive substring hit in either
language list counts, regardless of the language the patient selected.
"""

from __future__ import annotations

import logging

from alshifa.schemas import Language
from alshifa.utils import short_digest

logger = logging.getLogger(__name__)

EMERGENCY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "en": (
        "chest pain",
        "can't breathe",
        "cannot breathe",
        "shortness of breath",
        "difficulty breathing",
        "unconscious",
        "severe bleeding",
        "suicide",
        "self harm",
        "overdose",
        "stroke",
        "heart attack",
        "seizure",
        "heavy bleeding",
        "crushing pain",
        "numbness",
        "slurred speech",
        "facial drooping",
    ),
    "ur": (
        "سینے میں درد",
        "سانس نہیں آرہی",
        "سانس لینے میں دقت",
        "بے ہوش",
        "خون بہہ رہا",
        "خودکشی",
        "زیادہ خون",
        "دل کا دورہ",
        "فالج",
        "بولنے میں مشکل",
        "چہرہ لٹک جانا",
    ),
}

_EMERGENCY_RESPONSE = {
    "en": (
        "EMERGENCY DETECTED! Your symptoms may require immediate medical attention. "
        "Please call {number} (Emergency Services) immediately or go to the nearest hospital "
        "Emergency Room. Tell the medical staff exactly what you are feeling."
    ),
    "ur": (
        "ہنگامی حالت! آپ کی علامت ہنگامی طبی توجہ کی ضرورت ہو سکتی ہے۔ "
        "براہ کرم فوری طور پر {number} پر کال کریں یا قریبی ہسپتال کے ایمرجنسی وارڈ میں جائیں۔ "
        "طبی عملے کو بتائیں کہ آپ کو یہ علامت محسوس ہو رہی ہے۔"
    ),
}

# Options from the intake red-flag checklist that stop the intake outright.
CRITICAL_CHECKLIST_OPTIONS: tuple[str, ...] = (
    "💔 سینے میں شدید درد (Severe chest pain)",
    "😮‍💨 سانس لینے میں بہت مشکل (Severe difficulty breathing)",
    "😵 بے ہوشی / چکر (Loss of consciousness / fainting)",
    "🩸 شدید خون بہنا (Severe bleeding)",
    "😰 اچانک شدید کمزوری (Sudden severe weakness)",
    "🤒 تیز بخار اور الجھن (High fever with confusion)",
)


def matched_keyword(message: str | None) -> str | None:
    text = (message or "").lower()
    if not text.strip():
        return None
    for language in ("en", "ur"):
        for keyword in EMERGENCY_KEYWORDS[language]:
            if keyword in text:
                return keyword
    return None


def detect(message: str | None, language: Language = "en") -> bool:
    """Return True when the message contains any emergency phrase.

    ``language`` only selects the caller's display language; both keyword
    lists are always scanned.
    """
    keyword = matched_keyword(message)
    if keyword is None:
        return False
    logger.warning(
        "Emergency keyword detected (language=%s, message_digest=%s)",
        language,
        short_digest(message or ""),
    )
    return True


def emergency_response(language: Language = "en", number: str = "1122") -> str:
    template = _EMERGENCY_RESPONSE["ur" if language == "ur" else "en"]
    return template.format(number=number)


def handle_red_flag_selection(selected: list[str], number: str = "1122") -> dict[str, object]:
    if any(option in CRITICAL_CHECKLIST_OPTIONS for option in selected):
        return {
            "action": "STOP_AND_EMERGENCY",
            "allow_continue": False,
            "message": {
                "ur": f"یہ ایمرجنسی ہے! فوری طور پر ہسپتال جائیں یا {number} کال کریں",
                "en": f"This is an emergency! Go to hospital immediately or call {number}",
            },
        }
    return {"action": "CONTINUE", "allow_continue": True, "message": None}
