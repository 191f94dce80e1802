"""Exception hierarchy for the decision engine."""

from __future__ import annotations

from typing import Any


class AlShifaError(Exception):
    """Base exception for all engine errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class OnlineBlocked(AlShifaError):
    """An ONLINE consultation was requested for a case the safety gate rejects.

    Callers redirect to PHYSICAL. Retrying ONLINE is never correct.
    """

    def __init__(
        self,
        reason: str,
        *,
        triage_level: str = "EMERGENCY",
        red_flags: list[str] | tuple[str, ...] = (),
        emergency_instruction: str | None = None,
    ):
        super().__init__(
            message=f"ONLINE_CONSULTATION_BLOCKED: {reason}",
            code="ONLINE_CONSULTATION_BLOCKED",
            details={
                "reason": reason,
                "triage_level": triage_level,
                "red_flags": list(red_flags),
                "redirect_mode": "PHYSICAL",
                "emergency_instruction": emergency_instruction,
            },
        )
        self.reason = reason
        self.triage_level = triage_level
        self.red_flags = tuple(red_flags)
        self.emergency_instruction = emergency_instruction


class AuditWriteError(AlShifaError):
    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message=message, code="AUDIT_WRITE_ERROR", details=details)
