"""
ReDPlAD — Compatibility scoring between two member profiles.

Four sub-scores, each an integer percentage in [0, 100]:

  cultural     tribe, languages, religion, value ratings, birth country
  personality  Big-Five trait closeness / complementarity
  location     same city (100), same country (70), elsewhere (30)
  age          step table on the absolute age gap

blended into

  overall = w_c·cultural + w_p·personality + w_l·location + w_a·age

with default weights 0.4 / 0.3 / 0.2 / 0.1.

All absence handling happens once, in ``normalize_profile``.  After that the
arithmetic only compares values; a missing cultural background yields 50, a
missing or non-overlapping personality assessment yields 70 and an unknown
age yields 60.  The scorer never raises.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any

import structlog

from redplad.config import get_settings

logger = structlog.get_logger("redplad.compatibility_service")

# ── Neutral defaults ──────────────────────────────────────────────────────────

CULTURAL_DEFAULT = 50
PERSONALITY_DEFAULT = 70
AGE_UNKNOWN_DEFAULT = 60

CULTURAL_POINT_BUDGET = 100

# (max |age gap|, score) in ascending order; anything wider scores AGE_FLOOR.
AGE_STEPS: tuple[tuple[int, int], ...] = (
    (2, 100),
    (5, 90),
    (8, 75),
    (12, 60),
    (15, 40),
)
AGE_FLOOR = 20

TRAITS: tuple[str, ...] = (
    "openness",
    "conscientiousness",
    "extraversion",
    "agreeableness",
    "neuroticism",
)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (62.5 -> 63)."""
    return int(math.floor(round(value, 9) + 0.5))


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


# ──────────────────────────────────────────────────────────────────────────────
# Normalised input
# ──────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CulturalTraits:
    primary_tribe: str | None = None
    secondary_tribes: frozenset[str] = frozenset()
    birth_country: str | None = None
    languages: frozenset[str] = frozenset()
    religion: str | None = None
    traditional_values: int | None = None
    family_involvement: int | None = None


@dataclass(frozen=True)
class ScoringProfile:
    """Everything the scorer reads about one member, absence made explicit."""

    city: str | None = None
    country: str | None = None
    age: int | None = None
    cultural: CulturalTraits | None = None
    traits: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class CompatibilityScores:
    cultural: int
    personality: int
    location: int
    age: int
    overall: int

    def as_dict(self) -> dict[str, int]:
        return {
            "cultural": self.cultural,
            "personality": self.personality,
            "location": self.location,
            "age": self.age,
            "overall": self.overall,
        }


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip().casefold()
    return text or None


def _text_set(values: Any) -> frozenset[str]:
    if not values:
        return frozenset()
    if isinstance(values, str):
        values = [values]
    return frozenset(t for t in (_text(v) for v in values) if t)


def _rating(value: Any) -> int | None:
    """An importance rating is an integer 1..5; anything else is absent."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not number.is_integer() or not 1 <= number <= 5:
        return None
    return int(number)


def _trait(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or not 0.0 <= number <= 5.0:
        return None
    return number


def calculate_age(date_of_birth: date, today: date | None = None) -> int:
    """Whole years since ``date_of_birth``, minus one before this year's birthday."""
    today = today or date.today()
    age = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


def normalize_profile(profile: Any, today: date | None = None) -> ScoringProfile:
    """Build a ``ScoringProfile`` from a Profile row (or any look-alike).

    ``cultural_background`` and ``personality_assessment`` may be absent or
    ``None``.  Strings are stripped and case-folded, empty values become
    ``None``, out-of-range ratings and trait scores are dropped.
    """
    if profile is None:
        return ScoringProfile()

    dob = getattr(profile, "date_of_birth", None)
    age = calculate_age(dob, today) if isinstance(dob, date) else None

    background = getattr(profile, "cultural_background", None)
    cultural = None
    if background is not None:
        cultural = CulturalTraits(
            primary_tribe=_text(getattr(background, "primary_tribe", None)),
            secondary_tribes=_text_set(getattr(background, "secondary_tribes", None)),
            birth_country=_text(getattr(background, "birth_country", None)),
            languages=_text_set(getattr(background, "languages_spoken", None)),
            religion=_text(getattr(background, "religion", None)),
            traditional_values=_rating(
                getattr(background, "traditional_values_importance", None)
            ),
            family_involvement=_rating(
                getattr(background, "family_involvement_preference", None)
            ),
        )

    assessment = getattr(profile, "personality_assessment", None)
    traits: dict[str, float] = {}
    if assessment is not None:
        for name in TRAITS:
            value = _trait(getattr(assessment, f"{name}_score", None))
            if value is not None:
                traits[name] = value

    return ScoringProfile(
        city=_text(getattr(profile, "location_city", None)),
        country=_text(getattr(profile, "location_country", None)),
        age=age,
        cultural=cultural,
        traits=traits,
    )


# ──────────────────────────────────────────────────────────────────────────────
# Sub-scores
# ──────────────────────────────────────────────────────────────────────────────

def cultural_score(a: ScoringProfile, b: ScoringProfile) -> int:
    ca, cb = a.cultural, b.cultural
    if ca is None or cb is None:
        return CULTURAL_DEFAULT

    points = 0.0

    # Tribe: exact match, else secondary cross match.  Never both.
    if ca.primary_tribe and ca.primary_tribe == cb.primary_tribe:
        points += 30
    elif (ca.primary_tribe and ca.primary_tribe in cb.secondary_tribes) or (
        cb.primary_tribe and cb.primary_tribe in ca.secondary_tribes
    ):
        points += 20

    points += min(20, 5 * len(ca.languages & cb.languages))

    if ca.religion and cb.religion:
        points += 15 if ca.religion == cb.religion else 5

    if ca.traditional_values is not None and cb.traditional_values is not None:
        points += max(0, 15 - 3 * abs(ca.traditional_values - cb.traditional_values))

    if ca.family_involvement is not None and cb.family_involvement is not None:
        points += max(0, 10 - 2 * abs(ca.family_involvement - cb.family_involvement))

    if ca.birth_country and ca.birth_country == cb.birth_country:
        points += 10

    return int(_clamp(round_half_up(points / CULTURAL_POINT_BUDGET * 100)))


def _trait_compatibility(trait: str, x: float, y: float) -> float:
    diff = abs(x - y)
    if trait == "neuroticism":
        value = 100 - 25 * diff
    elif trait in ("agreeableness", "conscientiousness"):
        value = ((x + y) / 2) / 5 * 100 - 10 * diff
    elif diff <= 1:
        value = 100 - 15 * diff
    else:
        value = 85 - 20 * diff
    return _clamp(value)


def personality_score(a: ScoringProfile, b: ScoringProfile) -> int:
    shared = [t for t in TRAITS if t in a.traits and t in b.traits]
    if not shared:
        return PERSONALITY_DEFAULT
    total = sum(_trait_compatibility(t, a.traits[t], b.traits[t]) for t in shared)
    return int(_clamp(round_half_up(total / len(shared))))


def location_score(a: ScoringProfile, b: ScoringProfile) -> int:
    same_country = a.country is not None and a.country == b.country
    if same_country and a.city is not None and a.city == b.city:
        return 100
    if same_country:
        return 70
    return 30


def age_gap_score(gap: int) -> int:
    gap = abs(gap)
    for limit, score in AGE_STEPS:
        if gap <= limit:
            return score
    return AGE_FLOOR


def age_score(a: ScoringProfile, b: ScoringProfile) -> int:
    if a.age is None or b.age is None:
        return AGE_UNKNOWN_DEFAULT
    return age_gap_score(a.age - b.age)


# ──────────────────────────────────────────────────────────────────────────────
# Scorer
# ──────────────────────────────────────────────────────────────────────────────

class CompatibilityScorer:
    """Blend the four sub-scores with the configured weights.

    Weights are read from settings at construction; pass them explicitly to
    score under a different blend.
    """

    def __init__(
        self,
        cultural_weight: float | None = None,
        personality_weight: float | None = None,
        location_weight: float | None = None,
        age_weight: float | None = None,
    ) -> None:
        settings = get_settings()
        self.w_cultural: float = (
            settings.CULTURAL_WEIGHT if cultural_weight is None else cultural_weight
        )
        self.w_personality: float = (
            settings.PERSONALITY_WEIGHT if personality_weight is None else personality_weight
        )
        self.w_location: float = (
            settings.LOCATION_WEIGHT if location_weight is None else location_weight
        )
        self.w_age: float = settings.AGE_WEIGHT if age_weight is None else age_weight

        total = self.w_cultural + self.w_personality + self.w_location + self.w_age
        if not math.isclose(total, 1.0, abs_tol=1e-6):
            logger.warning("compatibility_weights_do_not_sum_to_one", total=round(total, 6))

    def score(
        self, a: Any, b: Any, today: date | None = None
    ) -> CompatibilityScores:
        """Score two profiles.  Accepts ORM rows or ``ScoringProfile`` objects."""
        pa = a if isinstance(a, ScoringProfile) else normalize_profile(a, today)
        pb = b if isinstance(b, ScoringProfile) else normalize_profile(b, today)

        cultural = cultural_score(pa, pb)
        personality = personality_score(pa, pb)
        location = location_score(pa, pb)
        age = age_score(pa, pb)

        blended = (
            self.w_cultural * cultural
            + self.w_personality * personality
            + self.w_location * location
            + self.w_age * age
        )
        overall = int(_clamp(round_half_up(blended)))

        return CompatibilityScores(
            cultural=cultural,
            personality=personality,
            location=location,
            age=age,
            overall=overall,
        )
