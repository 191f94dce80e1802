"""Doctor ranking."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from alshifa.schemas import ConsultationMode, Doctor, ScoredDoctor

DistanceFn = Callable[[Doctor], "float | None"]

DEFAULT_LIMIT = 5


@dataclass(frozen=True)
class RankingWeights:
    specialty: float = 10.0
    online: float = 5.0
    distance: float = 0.1


DEFAULT_WEIGHTS = RankingWeights()


def distance_from_hint(doctor: Doctor) -> float | None:
    return doctor.distance_km


def score_doctor(
    doctor: Doctor,
    specialty: str,
    mode: ConsultationMode,
    distance_fn: DistanceFn | None = None,
    weights: RankingWeights = DEFAULT_WEIGHTS,
) -> ScoredDoctor:
    breakdown: dict[str, float] = {
        "specialty": weights.specialty if specialty in doctor.specialties else 0.0,
        "mode": weights.online if mode == "ONLINE" else 0.0,
    }
    if distance_fn is not None:
        distance = distance_fn(doctor)
        if distance is not None:
            breakdown["distance"] = -weights.distance * float(distance)
    return ScoredDoctor(doctor=doctor, score=round(sum(breakdown.values()), 4), score_breakdown=breakdown)


def rank(
    doctors: list[Doctor],
    specialty: str,
    mode: ConsultationMode,
    distance_fn: DistanceFn | None = None,
    weights: RankingWeights = DEFAULT_WEIGHTS,
) -> list[ScoredDoctor]:
    scored = [score_doctor(doctor, specialty, mode, distance_fn, weights) for doctor in doctors]
    # sorted() is stable, so ties keep directory order.
    return sorted(scored, key=lambda item: item.score, reverse=True)


def top_n(ranked: list[ScoredDoctor], limit: int = DEFAULT_LIMIT) -> list[ScoredDoctor]:
    if limit <= 0:
        return []
    return ranked[:limit]
