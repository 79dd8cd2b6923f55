"""
Cover classification for marine incident claims.

Scores each candidate cover with an additive rule table over the
extraction's raw text and incident keywords, then applies the business-role
filter: a charterer cannot claim on Hull & Machinery, which belongs to the
vessel owner.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .schema import (
    BusinessRole,
    Classification,
    CoverAssessment,
    CoverType,
    Extraction,
    ExtractionSource,
)

logger = logging.getLogger(__name__)

INCLUSION_THRESHOLD = 0.35
UNCLEAR_CONFIDENCE = 0.25
UNCLEAR_REASONING = (
    "Insufficient indicators to classify confidently from the initial text; "
    "recommend manual review and follow-up questions."
)

CHARTERER_SIGNALS = (
    "charterer", "charterers", "time charter", "voyage charter", "under charter",
    "charter party", "charterparty", "off-hire", "offhire", "off hire",
)

# Keywords that make P&I relevant whatever the operator's role.
THIRD_PARTY_LIABILITY_TAGS = ("collision", "contact", "pollution", "injury")


@dataclass(frozen=True)
class Indicator:
    """One scoring rule: fires on any listed keyword tag or text term."""
    name: str
    weight: float
    reason: str
    tags: Tuple[str, ...] = ()
    terms: Tuple[str, ...] = ()

    def fires(self, text: str, keywords: Sequence[str]) -> bool:
        return any(tag in keywords for tag in self.tags) or any(term in text for term in self.terms)


RULE_TABLE: Dict[CoverType, Tuple[Indicator, ...]] = {
    CoverType.PI: (
        Indicator(
            "collision_contact", 0.35,
            "Contact/collision suggests third-party property or collision liabilities (typical P&I).",
            tags=("collision", "contact"), terms=("allision", "damaged berth", "damaged jetty"),
        ),
        Indicator(
            "pollution", 0.4,
            "Pollution/spill exposure is primarily P&I.",
            tags=("pollution",), terms=("oil spill", "bunker spill"),
        ),
        Indicator(
            "injury", 0.35,
            "Crew/third-party injury or fatality exposure is primarily P&I.",
            tags=("injury",), terms=("medevac", "fatality"),
        ),
        Indicator(
            "wreck_stowaway", 0.35,
            "Wreck removal, stowaways and quarantine are P&I risks.",
            terms=("wreck removal", "stowaway", "quarantine"),
        ),
        Indicator(
            "third_party_involvement", 0.15,
            "Operational third-party involvement often triggers P&I handling.",
            terms=("pilot", "tug", "mooring", "stevedore", "third party", "third-party"),
        ),
    ),
    CoverType.HM: (
        Indicator(
            "hull_machinery_damage", 0.45,
            "Physical damage to hull/machinery suggests H&M.",
            tags=("machinery",),
            terms=("hull", "shell plating", "denting", "propeller", "rudder", "damage to vessel",
                   "damage to the vessel"),
        ),
        Indicator(
            "grounding", 0.45,
            "Grounding often involves hull damage (H&M) as well as liabilities.",
            tags=("grounding",),
        ),
        Indicator(
            "fire_flooding", 0.35,
            "Fire, explosion or flooding frequently results in damage to the vessel.",
            tags=("fire", "flooding"),
        ),
        Indicator(
            "collision_own_damage", 0.25,
            "Collision/contact usually damages the vessel itself.",
            tags=("collision", "contact"),
        ),
        Indicator(
            "heavy_weather", 0.2,
            "Heavy weather may have damaged the vessel.",
            tags=("weather",),
        ),
    ),
    CoverType.CHARTERERS_LIABILITY: (
        Indicator(
            "charterer_role", 0.5,
            "Text indicates the operator is acting as charterer.",
            terms=CHARTERER_SIGNALS,
        ),
        Indicator(
            "unsafe_port_orders", 0.35,
            "Unsafe port/berth or employment orders can trigger charterers' liability exposure.",
            terms=("unsafe port", "unsafe berth", "employment orders", "berth nomination"),
        ),
        Indicator(
            "bunkers_cargo_ops", 0.15,
            "Bunker quality or cargo operations under charterers' control.",
            terms=("bunker quality", "off-spec bunkers", "loading delay", "discharging delay", "cargo operations"),
        ),
    ),
    CoverType.CARGO: (
        Indicator(
            "cargo_damage", 0.5,
            "Cargo damage/shortage indicators suggest cargo-related claim handling.",
            tags=("cargo damage",), terms=("loss of cargo", "cargo loss"),
        ),
        Indicator(
            "commodity_hold", 0.2,
            "Commodity/hold-related incident hints at cargo interest involvement.",
            terms=("cargo hold", "hold fire", "reefer", "containers", "pulp", "coal", "grain", "clinker", "steel coils"),
        ),
    ),
    CoverType.FDD: (
        Indicator(
            "dispute", 0.4,
            "Potential legal/contractual dispute indicated; FD&D may support legal costs.",
            terms=("dispute", "arbitration", "lawyer", "litigation", "legal action", "claim against", "breach"),
        ),
        Indicator(
            "freight_demurrage", 0.25,
            "Freight, hire or demurrage disagreements are FD&D matters.",
            terms=("demurrage", "detention", "unpaid freight", "unpaid hire", "despatch"),
        ),
    ),
}


def detect_business_role(extraction: Extraction) -> BusinessRole:
    """Charterer when any charterer signal occurs in the text."""
    text = (extraction.raw_text or "").lower()
    if any(signal in text for signal in CHARTERER_SIGNALS):
        return BusinessRole.CHARTERER
    return BusinessRole.VESSEL_OWNER


def has_third_party_liability(extraction: Extraction) -> bool:
    return any(tag in extraction.incident_keywords for tag in THIRD_PARTY_LIABILITY_TAGS)


def score_cover(cover_type: CoverType, text: str, keywords: Sequence[str]) -> Tuple[float, List[str]]:
    """Sum the weights of the fired indicators, clamped to [0, 1]."""
    score = 0.0
    reasons: List[str] = []
    for indicator in RULE_TABLE[cover_type]:
        if indicator.fires(text, keywords):
            score += indicator.weight
            reasons.append(indicator.reason)
    return round(max(0.0, min(1.0, score)), 2), reasons


def unclear_classification(
    business_role: BusinessRole = BusinessRole.VESSEL_OWNER,
    source: ExtractionSource = ExtractionSource.RULES,
) -> Classification:
    return Classification(
        covers=[CoverAssessment(type=CoverType.UNCLEAR, confidence=UNCLEAR_CONFIDENCE, reasoning=UNCLEAR_REASONING)],
        business_role=business_role,
        source=source,
    )


def apply_business_role(
    covers: List[CoverAssessment],
    business_role: BusinessRole,
    third_party_liability: bool,
) -> List[CoverAssessment]:
    """
    Hard role filter shared by the rule-based and oracle paths.

    Charterer: H&M removed, P&I only with third-party liability indicators,
    Charterers' Liability lifted to at least the best remaining confidence.
    """
    if business_role != BusinessRole.CHARTERER:
        return list(covers)

    kept = [
        c for c in covers
        if c.type != CoverType.HM and (c.type != CoverType.PI or third_party_liability)
    ]
    best_other = max((c.confidence for c in kept if c.type != CoverType.CHARTERERS_LIABILITY), default=0.0)
    existing = next((c for c in kept if c.type == CoverType.CHARTERERS_LIABILITY), None)

    reasoning = "Operator acts as charterer; H&M belongs to the vessel owner and is not offered."
    if existing is not None:
        reasoning = f"{existing.reasoning} {reasoning}".strip()
    confidence = max(existing.confidence if existing else 0.0, best_other, INCLUSION_THRESHOLD)

    promoted = CoverAssessment(
        type=CoverType.CHARTERERS_LIABILITY, confidence=round(min(1.0, confidence), 2), reasoning=reasoning,
    )
    return [c for c in kept if c.type != CoverType.CHARTERERS_LIABILITY] + [promoted]


class CoverClassifier:
    """Rule-table classifier with the business-role hard filter."""

    candidates: Tuple[CoverType, ...] = (
        CoverType.PI,
        CoverType.HM,
        CoverType.CHARTERERS_LIABILITY,
        CoverType.CARGO,
        CoverType.FDD,
    )

    def __init__(self, threshold: float = INCLUSION_THRESHOLD):
        self.threshold = threshold

    def classify(self, extraction: Optional[Extraction]) -> Classification:
        """
        Classify applicable covers.

        Args:
            extraction: Extraction to classify (None is treated as empty)

        Returns:
            Non-empty Classification sorted by descending confidence
        """
        extraction = extraction or Extraction()
        text = (extraction.raw_text or "").lower()
        keywords = extraction.incident_keywords
        role = detect_business_role(extraction)

        scored: List[CoverAssessment] = []
        for cover_type in self.candidates:
            score, reasons = score_cover(cover_type, text, keywords)
            scored.append(CoverAssessment(type=cover_type, confidence=score, reasoning=" ".join(reasons)))

        if all(c.confidence == 0.0 for c in scored):
            logger.info("No cover indicators fired; classification is unclear")
            return unclear_classification(role)

        candidates = apply_business_role(
            [c for c in scored if c.confidence > 0.0], role, has_third_party_liability(extraction),
        )
        selected = [c for c in candidates if c.confidence >= self.threshold]
        if not selected:
            selected = Classification(covers=candidates, business_role=role).covers[:1]

        classification = Classification(covers=selected, business_role=role, source=ExtractionSource.RULES)
        logger.debug(f"Rule classification: role={role.value}, covers={classification.cover_types()}")
        return classification


_default_classifier = CoverClassifier()


def classify(extraction: Optional[Extraction]) -> Classification:
    """Classify with the default rule table."""
    return _default_classifier.classify(extraction)
