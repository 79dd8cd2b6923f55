"""
Tests for cover classification.

Covers the rule table on reference notifications, the charterer
business-role filter and the unclear fallback.
"""

import pytest

from src.claims.classifier import (
    INCLUSION_THRESHOLD,
    CoverClassifier,
    apply_business_role,
    classify,
    detect_business_role,
)
from src.claims.schema import BusinessRole, CoverAssessment, CoverType, Extraction, ExtractionSource
from src.claims.text_extractor import extract


def classify_text(text):
    return classify(extract(text))


# ============================================================================
# Test: Reference notifications
# ============================================================================


class TestReferenceNotifications:

    def test_collision_with_injuries_is_pi(self):
        classification = classify_text(
            "MV Nova Star collided with a tug near Singapore, minor injuries reported"
        )

        assert classification.business_role == BusinessRole.VESSEL_OWNER
        assert classification.cover_types() == ["P&I"]
        assert classification.covers[0].confidence == pytest.approx(0.85)
        assert classification.source == ExtractionSource.RULES

    def test_charterer_cargo_damage(self):
        classification = classify_text(
            "As charterer under time charter, cargo hold sustained wet damage at berth"
        )

        assert classification.business_role == BusinessRole.CHARTERER
        assert classification.cover_types() == ["Charterers' Liability", "Cargo"]
        assert not classification.has_cover(CoverType.HM)

    def test_charterer_grounding_drops_hull(self):
        classification = classify_text("Under time charter the vessel grounded, damage to hull")

        assert classification.cover_types() == ["Charterers' Liability"]
        assert classification.covers[0].confidence == pytest.approx(0.5)

    def test_below_threshold_keeps_best_candidate(self):
        classification = classify_text("Heavy weather encountered")

        assert classification.cover_types() == ["H&M"]
        assert classification.covers[0].confidence < INCLUSION_THRESHOLD

    def test_no_indicators_is_unclear(self):
        classification = classify_text("Please call me back")

        assert classification.cover_types() == ["Unclear / Needs Review"]
        assert classification.covers[0].confidence == pytest.approx(0.25)

    def test_none_extraction_is_unclear(self):
        assert classify(None).cover_types() == ["Unclear / Needs Review"]

    def test_lower_threshold_admits_more_covers(self):
        extraction = extract("MV Nova Star collided with a tug near Singapore, minor injuries reported")
        classification = CoverClassifier(threshold=0.2).classify(extraction)

        assert classification.cover_types() == ["P&I", "H&M"]


# ============================================================================
# Test: Charterer business role
# ============================================================================


class TestCharterer:

    @pytest.mark.parametrize("text", [
        "Vessel on time charter grounded off Port Said, hull breached",
        "Charterers report fire in engine room, main engine damaged",
        "Off-hire after collision with pier, propeller damaged",
        "Voyage charter: heavy weather damage to shell plating",
        "Charter party dispute after rudder damage",
    ])
    def test_charterer_never_gets_hull(self, text):
        classification = classify_text(text)

        assert classification.business_role == BusinessRole.CHARTERER
        assert not classification.has_cover(CoverType.HM)
        assert classification.covers[0].type == CoverType.CHARTERERS_LIABILITY

    def test_pi_kept_with_third_party_liability(self):
        classification = classify_text("As time charterer we report our vessel collided with a barge")

        assert classification.cover_types() == ["Charterers' Liability", "P&I"]

    def test_pi_dropped_without_third_party_liability(self):
        classification = classify_text("Charterers notified of stowaway found on board")

        assert not classification.has_cover(CoverType.PI)
        assert classification.cover_types() == ["Charterers' Liability"]

    def test_detect_role(self):
        assert detect_business_role(Extraction(raw_text="Vessel placed off-hire")) == BusinessRole.CHARTERER
        assert detect_business_role(Extraction(raw_text="Crew member injured")) == BusinessRole.VESSEL_OWNER

    def test_filter_promotes_charterers_liability(self):
        covers = [
            CoverAssessment(type=CoverType.HM, confidence=0.9),
            CoverAssessment(type=CoverType.CARGO, confidence=0.6),
        ]
        filtered = apply_business_role(covers, BusinessRole.CHARTERER, third_party_liability=False)

        by_type = {c.type: c.confidence for c in filtered}
        assert CoverType.HM not in by_type
        assert by_type[CoverType.CHARTERERS_LIABILITY] == pytest.approx(0.6)

    def test_filter_leaves_owner_covers_alone(self):
        covers = [CoverAssessment(type=CoverType.HM, confidence=0.9)]
        assert apply_business_role(covers, BusinessRole.VESSEL_OWNER, False) == covers


# ============================================================================
# Test: Classification properties
# ============================================================================


@pytest.mark.parametrize("text", [
    "MV Nova Star collided with a tug near Singapore, minor injuries reported",
    "As charterer under time charter, cargo hold sustained wet damage at berth",
    "Oil spill during bunkering, pollution response engaged, arbitration threatened",
    "Fire in cargo hold, containers damaged, flooding of engine room",
    "Unpaid hire and demurrage dispute with receivers",
    "",
    "hello",
])
def test_classification_properties(text):
    classification = classify_text(text)
    confidences = [c.confidence for c in classification.covers]
    types = [c.type for c in classification.covers]

    assert classification.covers
    assert confidences == sorted(confidences, reverse=True)
    assert len(types) == len(set(types))
    assert all(0.0 <= c <= 1.0 for c in confidences)
