"""Unit tests for the compatibility scorer — sub-scores and the weighted blend."""
import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import patch

from redplad.services.compatibility_service import (
    AGE_UNKNOWN_DEFAULT,
    CULTURAL_DEFAULT,
    PERSONALITY_DEFAULT,
    CompatibilityScorer,
    ScoringProfile,
    age_gap_score,
    calculate_age,
    cultural_score,
    location_score,
    normalize_profile,
    personality_score,
    round_half_up,
)
from tests.conftest import TODAY, make_background, make_personality, make_profile


@pytest.fixture
def scorer(mock_settings):
    with patch("redplad.services.compatibility_service.get_settings") as mock:
        mock.return_value = mock_settings
        service = CompatibilityScorer()
    return service


class TestCulturalScore:
    """Tests for the cultural sub-score point budget."""

    def test_worked_example_yoruba_pair(self, yoruba_profile_a, yoruba_profile_b):
        """Tribe 30 + one language 5 + differing religion 5 + values 12 + family 10 = 62."""
        a = normalize_profile(yoruba_profile_a, TODAY)
        b = normalize_profile(yoruba_profile_b, TODAY)
        assert cultural_score(a, b) == 62

    def test_missing_background_is_neutral(self, yoruba_profile_a):
        a = normalize_profile(yoruba_profile_a, TODAY)
        b = normalize_profile(make_profile(cultural_background=None), TODAY)
        assert cultural_score(a, b) == CULTURAL_DEFAULT
        assert cultural_score(b, a) == CULTURAL_DEFAULT

    def test_identical_backgrounds_score_full(self):
        background = make_background(
            traditional_values_importance=3, family_involvement_preference=2
        )
        a = normalize_profile(make_profile(cultural_background=background), TODAY)
        b = normalize_profile(make_profile(cultural_background=background), TODAY)
        # 30 + 10 (two languages) + 15 + 15 + 10 + 10 = 90
        assert cultural_score(a, b) == 90

    def test_language_points_capped_at_twenty(self):
        langs = ["English", "Yoruba", "Igbo", "Hausa", "French", "Twi"]
        a = normalize_profile(
            make_profile(
                cultural_background=make_background(
                    primary_tribe="Akan",
                    birth_country="Ghana",
                    languages_spoken=langs,
                    religion=None,
                    traditional_values_importance=None,
                    family_involvement_preference=None,
                )
            ),
            TODAY,
        )
        b = normalize_profile(
            make_profile(
                cultural_background=make_background(
                    primary_tribe="Zulu",
                    birth_country="South Africa",
                    languages_spoken=langs,
                    religion=None,
                    traditional_values_importance=None,
                    family_involvement_preference=None,
                )
            ),
            TODAY,
        )
        assert cultural_score(a, b) == 20

    def test_secondary_tribe_cross_match(self):
        a = normalize_profile(
            make_profile(
                cultural_background=make_background(
                    primary_tribe="Igbo",
                    languages_spoken=[],
                    religion=None,
                    birth_country="Ghana",
                    traditional_values_importance=None,
                    family_involvement_preference=None,
                )
            ),
            TODAY,
        )
        b = normalize_profile(
            make_profile(
                cultural_background=make_background(
                    primary_tribe="Yoruba",
                    secondary_tribes=["igbo"],
                    languages_spoken=[],
                    religion=None,
                    traditional_values_importance=None,
                    family_involvement_preference=None,
                )
            ),
            TODAY,
        )
        assert cultural_score(a, b) == 20

    def test_comparison_is_case_insensitive(self):
        a = normalize_profile(
            make_profile(cultural_background=make_background(primary_tribe="YORUBA ")),
            TODAY,
        )
        b = normalize_profile(
            make_profile(cultural_background=make_background(primary_tribe="yoruba")),
            TODAY,
        )
        assert cultural_score(a, b) >= 30


class TestPersonalityScore:
    """Tests for Big-Five trait compatibility."""

    def test_missing_assessment_is_neutral(self):
        a = normalize_profile(make_profile(personality_assessment=make_personality()), TODAY)
        b = normalize_profile(make_profile(), TODAY)
        assert personality_score(a, b) == PERSONALITY_DEFAULT

    def test_no_overlapping_traits_is_neutral(self):
        a = normalize_profile(
            make_profile(
                personality_assessment=make_personality(
                    conscientiousness_score=None,
                    extraversion_score=None,
                    agreeableness_score=None,
                    neuroticism_score=None,
                )
            ),
            TODAY,
        )
        b = normalize_profile(
            make_profile(
                personality_assessment=make_personality(
                    openness_score=None,
                )
            ),
            TODAY,
        )
        # a has only openness, b has everything except openness
        assert personality_score(a, b) == PERSONALITY_DEFAULT

    def test_identical_traits(self):
        """openness 100, conscientiousness 80, extraversion 100, agreeableness 80, neuroticism 100."""
        a = normalize_profile(make_profile(personality_assessment=make_personality()), TODAY)
        b = normalize_profile(make_profile(personality_assessment=make_personality()), TODAY)
        assert personality_score(a, b) == 92

    def test_large_openness_gap(self):
        a = ScoringProfile(traits={"openness": 1.0})
        b = ScoringProfile(traits={"openness": 4.0})
        # diff 3 -> 85 - 60 = 25
        assert personality_score(a, b) == 25

    def test_neuroticism_clamped_at_zero(self):
        a = ScoringProfile(traits={"neuroticism": 0.0})
        b = ScoringProfile(traits={"neuroticism": 5.0})
        assert personality_score(a, b) == 0


class TestLocationAndAge:
    """Tests for the location tiers and the age step table."""

    def test_same_city(self):
        a = ScoringProfile(city="london", country="uk")
        b = ScoringProfile(city="london", country="uk")
        assert location_score(a, b) == 100

    def test_same_country(self):
        a = ScoringProfile(city="london", country="uk")
        b = ScoringProfile(city="manchester", country="uk")
        assert location_score(a, b) == 70

    def test_different_country(self):
        a = ScoringProfile(city="london", country="uk")
        b = ScoringProfile(city="lagos", country="nigeria")
        assert location_score(a, b) == 30

    def test_unknown_countries_never_match(self):
        assert location_score(ScoringProfile(), ScoringProfile()) == 30

    @pytest.mark.parametrize(
        "gap, expected",
        [(0, 100), (2, 100), (3, 90), (5, 90), (6, 75), (8, 75), (9, 60), (12, 60),
         (13, 40), (15, 40), (16, 20), (40, 20), (-4, 90)],
    )
    def test_age_steps(self, gap, expected):
        assert age_gap_score(gap) == expected

    def test_age_before_birthday(self):
        assert calculate_age(date(1995, 6, 16), TODAY) == 29
        assert calculate_age(date(1995, 6, 15), TODAY) == 30

    def test_unknown_age_default(self, scorer):
        a = ScoringProfile(age=None)
        b = ScoringProfile(age=30)
        assert scorer.score(a, b).age == AGE_UNKNOWN_DEFAULT


class TestBlend:
    """Tests for the weighted overall score."""

    def test_worked_example_overall(self, scorer, yoruba_profile_a, yoruba_profile_b):
        """0.4*62 + 0.3*70 + 0.2*70 + 0.1*100 = 69.8 -> 70."""
        scores = scorer.score(yoruba_profile_a, yoruba_profile_b, today=TODAY)
        assert scores.cultural == 62
        assert scores.personality == PERSONALITY_DEFAULT
        assert scores.location == 70
        assert scores.age == 100
        assert scores.overall == 70

    def test_all_defaults(self, scorer):
        scores = scorer.score(make_profile(date_of_birth=None), make_profile(), today=TODAY)
        # 0.4*50 + 0.3*70 + 0.2*100 + 0.1*60 = 67
        assert scores.as_dict() == {
            "cultural": 50,
            "personality": 70,
            "location": 100,
            "age": 60,
            "overall": 67,
        }

    def test_symmetric(self, scorer, yoruba_profile_a, yoruba_profile_b):
        ab = scorer.score(yoruba_profile_a, yoruba_profile_b, today=TODAY)
        ba = scorer.score(yoruba_profile_b, yoruba_profile_a, today=TODAY)
        assert ab == ba

    def test_overall_within_bounds(self, scorer):
        far = make_profile(
            location_country="Nigeria",
            location_city="Lagos",
            date_of_birth=date(1960, 1, 1),
            personality_assessment=make_personality(
                neuroticism_score=Decimal("0"), openness_score=Decimal("0")
            ),
        )
        near = make_profile(
            personality_assessment=make_personality(
                neuroticism_score=Decimal("5"), openness_score=Decimal("5")
            ),
        )
        scores = scorer.score(far, near, today=TODAY)
        for value in scores.as_dict().values():
            assert 0 <= value <= 100

    def test_explicit_weights_override_settings(self, mock_settings):
        with patch("redplad.services.compatibility_service.get_settings") as mock:
            mock.return_value = mock_settings
            location_only = CompatibilityScorer(
                cultural_weight=0.0, personality_weight=0.0, location_weight=1.0, age_weight=0.0
            )
        a = ScoringProfile(city="london", country="uk")
        b = ScoringProfile(city="leeds", country="uk")
        assert location_only.score(a, b).overall == 70

    def test_scorer_never_raises_on_garbage(self, scorer):
        odd = make_profile(
            date_of_birth="not-a-date",
            location_city=None,
            cultural_background=make_background(
                languages_spoken=None, traditional_values_importance="high"
            ),
            personality_assessment=make_personality(openness_score="abc"),
        )
        scores = scorer.score(odd, make_profile(), today=TODAY)
        assert 0 <= scores.overall <= 100


class TestNormalisation:
    """Tests for the single absence/range-handling step."""

    def test_out_of_range_values_dropped(self):
        profile = make_profile(
            cultural_background=make_background(
                traditional_values_importance=7, family_involvement_preference=0
            ),
            personality_assessment=make_personality(
                openness_score=Decimal("6.0"), neuroticism_score=True
            ),
        )
        normalised = normalize_profile(profile, TODAY)
        assert normalised.cultural.traditional_values is None
        assert normalised.cultural.family_involvement is None
        assert "openness" not in normalised.traits
        assert "neuroticism" not in normalised.traits
        assert normalised.traits["extraversion"] == 3.0

    def test_strings_case_folded_and_blank_is_absent(self):
        profile = make_profile(
            location_city="  London ",
            cultural_background=make_background(religion="   ", languages_spoken=["EN", ""]),
        )
        normalised = normalize_profile(profile, TODAY)
        assert normalised.city == "london"
        assert normalised.cultural.religion is None
        assert normalised.cultural.languages == frozenset({"en"})

    def test_none_profile(self):
        assert normalize_profile(None) == ScoringProfile()


class TestRounding:
    """Half-up rounding of percentages."""

    @pytest.mark.parametrize("value, expected", [(62.5, 63), (0.5, 1), (2.5, 3), (69.8, 70), (69.49, 69)])
    def test_half_up(self, value, expected):
        assert round_half_up(value) == expected
