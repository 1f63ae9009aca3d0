"""
bed_finder.py — Smart bed suggestion for admissions

For a patient's care profile, every FREE bed is scored as a weighted sum:

  isolation   hard filter for isolation patients (capable beds only);
              otherwise earned only on ordinary beds, keeping the
              isolation rooms free while alternatives exist
  care_level  ward specialization (A general / B intensive) == care level
  mobility    assisted / bedbound patients: entrance beds score higher
              (1 - position / beds_in_room); independent patients: full
  balance     1 - ward occupancy fraction (spread load across wards)

Highest score wins.  Ties keep the first bed in (ward, room, position)
order, so the result is deterministic.  Confidence is the score as a
percentage of the maximum attainable score (sum of the weights).

Returns None when no bed qualifies; the caller queues the patient on the
waiting list instead of failing the admission.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from hospital_admin.beds import BedRegistry
from hospital_admin.facility_config import BED_SCORING_WEIGHTS, LOW_MOBILITY_LEVELS
from hospital_admin.models import Bed, enum_text

logger = logging.getLogger(__name__)


@dataclass
class BedSuggestion:
    bed: Bed
    ward_id: str
    score: float
    max_score: float
    confidence: int
    rationale: str
    components: Dict[str, float] = field(default_factory=dict)

    @property
    def bed_id(self) -> str:
        return self.bed.bed_id


def _profile_value(profile: Any, name: str, default: str) -> str:
    raw = getattr(profile, name, default)
    return enum_text(raw if raw is not None else default)


class SmartBedFinder:
    """Scores free beds in a BedRegistry against a patient profile."""

    def __init__(
        self,
        registry: BedRegistry,
        weights: Optional[Dict[str, float]] = None,
    ):
        self.registry = registry
        self.weights = dict(BED_SCORING_WEIGHTS)
        if weights:
            self.weights.update(weights)

    @property
    def max_score(self) -> float:
        return sum(self.weights.values())

    # -----------------------------------------------------------------------
    # Suitability
    # -----------------------------------------------------------------------

    def is_suitable(self, bed: Bed, profile: Any) -> bool:
        """Hard filter only: isolation patients need an isolation-capable bed."""
        if getattr(profile, "needs_isolation", False) and not bed.isolation_capable:
            return False
        return True

    def score_bed(self, bed: Bed, profile: Any) -> Optional[Dict[str, float]]:
        """
        Component scores for one bed, or None when the bed is excluded.
        Occupancy is read live from the registry; call under its lock.
        """
        if not self.is_suitable(bed, profile):
            return None

        w = self.weights
        ward = self.registry.ward_of(bed)
        room = self.registry.room_of(bed)
        needs_isolation = bool(getattr(profile, "needs_isolation", False))
        care_level = _profile_value(profile, "care_level", "general")
        mobility = _profile_value(profile, "mobility", "independent")

        if needs_isolation:
            isolation = w["isolation"]
        else:
            isolation = 0.0 if bed.isolation_capable else w["isolation"]

        care = w["care_level"] if ward.specialization.value == care_level else 0.0

        if mobility in LOW_MOBILITY_LEVELS:
            proximity = 1.0 - bed.position / max(len(room.beds), 1)
            mobility_score = w["mobility"] * proximity
        else:
            mobility_score = w["mobility"]

        balance = w["balance"] * (1.0 - self.registry.ward_occupancy(ward.ward_id))

        return {
            "isolation":  isolation,
            "care_level": care,
            "mobility":   mobility_score,
            "balance":    balance,
        }

    # -----------------------------------------------------------------------
    # Best bed
    # -----------------------------------------------------------------------

    def rank_beds(self, profile: Any) -> List[BedSuggestion]:
        """All qualifying free beds, best first (stable: registry order on ties)."""
        with self.registry.lock:
            scored = []
            for bed in self.registry.iter_beds():
                if bed.occupied:
                    continue
                components = self.score_bed(bed, profile)
                if components is None:
                    continue
                scored.append(self._suggestion(bed, components, profile))
        # sorted() is stable, so equal scores keep registry order
        return sorted(scored, key=lambda s: -s.score)

    def find_best_bed(self, profile: Any) -> Optional[BedSuggestion]:
        ranked = self.rank_beds(profile)
        if not ranked:
            logger.info(
                f"No suitable free bed for {getattr(profile, 'patient_id', '?')} "
                f"(isolation={getattr(profile, 'needs_isolation', False)})"
            )
            return None
        best = ranked[0]
        logger.info(
            f"Suggested bed {best.bed_id} for {getattr(profile, 'patient_id', '?')} "
            f"score={best.score:.1f} confidence={best.confidence}%"
        )
        return best

    def _suggestion(self, bed: Bed, components: Dict[str, float], profile: Any) -> BedSuggestion:
        score = round(sum(components.values()), 6)
        max_score = self.max_score
        confidence = int(round(100.0 * score / max_score)) if max_score else 0
        return BedSuggestion(
            bed=bed,
            ward_id=bed.ward_id,
            score=score,
            max_score=max_score,
            confidence=confidence,
            rationale=self._explain(bed, components, profile),
            components=components,
        )

    def _explain(self, bed: Bed, components: Dict[str, float], profile: Any) -> str:
        ward = self.registry.ward_of(bed)
        parts = []
        if getattr(profile, "needs_isolation", False):
            parts.append("isolation-capable room")
        if components["care_level"] > 0:
            parts.append(f"{ward.name} matches {ward.specialization.value} care")
        else:
            parts.append(f"{ward.name} does not match requested care level")
        if _profile_value(profile, "mobility", "independent") in LOW_MOBILITY_LEVELS:
            parts.append("near room entrance" if bed.position == 0 else f"bed position {bed.position + 1}")
        occupancy = self.registry.ward_occupancy(ward.ward_id)
        parts.append(f"ward {occupancy:.0%} occupied")
        return "; ".join(parts)
