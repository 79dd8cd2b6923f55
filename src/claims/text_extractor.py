"""
Rule-based field extraction for first notifications.

Each field is produced by an ordered list of named rules. A rule is a pure
function `(text) -> Optional[str]`; the first candidate that passes the
field's acceptance check wins. Absence of a signal yields None.
"""

import logging
import re
import time
from typing import Callable, List, Optional, Sequence

from .normalizer import non_empty_lines, normalize_text, summarize
from .schema import Extraction, ExtractionSource

logger = logging.getLogger(__name__)

Rule = Callable[[str], Optional[str]]

RULE_BASED_CONFIDENCE = 0.45
MAX_VESSEL_NAME_CHARS = 60


# ============================================================================
# Patterns
# ============================================================================

VESSEL_LABEL_RE = re.compile(r"^(?:vessel|ship)(?:[ \t]+name)?[ \t]*:[ \t]*(.+)$", re.IGNORECASE | re.MULTILINE)

# Prefix must be upper-case: lower-case "mt" is usually metric tonnes.
VESSEL_PREFIX_RE = re.compile(
    r"\b(M/V|MV|M/T|MT)\.?[ \t]+"
    r"((?!IMO(?![A-Za-z]))[A-Z0-9][\w'&\-]*(?:[ \t]+(?!IMO(?![A-Za-z]))[A-Z0-9][\w'&\-]*){0,4})"
)

VESSEL_REJECT_RE = re.compile(
    r"\b(?:incident|accident|damage|damaged|position|location|collision|collided|contact|"
    r"grounding|aground|fire|explosion|pollution|spill|injury|injured|casualty|report|"
    r"notification|urgent|dear|regards|hello|hi|subject|sirs|fw|fwd|re|good\s+morning|"
    r"good\s+afternoon|good\s+evening)\b",
    re.IGNORECASE,
)

HEADING_MAX_CHARS = 40
HEADING_MAX_WORDS = 5
HEADING_SCAN_LINES = 5
HEADING_PUNCTUATION = set(".,;:!?@()[]<>\"")

IMO_RE = re.compile(r"\bIMO\s*(?:No\.?|Number)?\s*[:#\-]?\s*(\d{7})(?!\d)", re.IGNORECASE)

_MONTHS = (
    r"(?:Jan(?:uary)?|Feb(?:ruary)?|Mar(?:ch)?|Apr(?:il)?|May|June?|July?|Aug(?:ust)?|"
    r"Sep(?:t(?:ember)?)?|Oct(?:ober)?|Nov(?:ember)?|Dec(?:ember)?)"
)
EVENT_DATE_RE = re.compile(
    rf"\b(\d{{1,2}}(?:st|nd|rd|th)?\s+{_MONTHS}\.?,?\s+\d{{4}}|\d{{4}}-\d{{2}}-\d{{2}})(?!\d)",
    re.IGNORECASE,
)

LOCATION_LABEL_RE = re.compile(r"^(?:position|location|port)[ \t]*:[ \t]*(.+)$", re.IGNORECASE | re.MULTILINE)

_LEADING_STOPWORDS = r"(?!(?:At|In|On|Off|Near|The|While|Whilst|Vessel|Ship|Our|We)\b)"
ANCHORAGE_RE = re.compile(rf"\b((?:{_LEADING_STOPWORDS}[A-Z][\w'\-]*[ \t]+){{1,3}}Anchorage)\b")

PLACE_RE = re.compile(
    r"\b(?i:off|near|at|in|outside|approaching)[ \t]+"
    r"((?!The\b)[A-Z][\w'\-]*(?:[ \t]+[A-Z][\w'\-]*){0,3})"
)

CALENDAR_WORDS = {
    "january", "february", "march", "april", "may", "june", "july", "august",
    "september", "october", "november", "december",
    "jan", "feb", "mar", "apr", "jun", "jul", "aug", "sep", "sept", "oct", "nov", "dec",
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
}

COUNTERPARTY_RE = re.compile(
    r"^(charterers?|receivers?|shipper|terminal|stevedores?|pilot|counterparty)[ \t]*:[ \t]*(.+)$",
    re.IGNORECASE | re.MULTILINE,
)

# Canonical tag -> lower-case substrings that signal it.
INCIDENT_LEXICON = [
    ("collision", ("collision", "collided", "allision")),
    ("contact", ("contact with", "made contact", "allision", "struck the", "hit the",
                 "damaged berth", "damaged jetty", "damaged quay", "fender")),
    ("grounding", ("grounding", "grounded", "aground", "stranded")),
    ("fire", ("fire", "explosion", "blaze")),
    ("pollution", ("pollution", "spill", "oil leak", "sheen", "slick")),
    ("injury", ("injur", "fatal", "death", "man overboard", "medevac")),
    ("cargo damage", ("cargo damage", "damaged cargo", "wet damage", "contamination",
                      "shortage", "condensation", "sweat damage")),
    ("machinery", ("machinery", "main engine", "aux engine", "auxiliary engine",
                   "engine failure", "engine breakdown", "breakdown", "blackout", "steering")),
    ("weather", ("heavy weather", "rough weather", "storm", "typhoon", "monsoon",
                 "hurricane", "cyclone")),
    ("piracy", ("piracy", "pirate", "armed robbery", "hijack")),
    ("flooding", ("flooding", "flooded", "water ingress")),
    ("salvage", ("salvage",)),
]


# ============================================================================
# Vessel name rules
# ============================================================================


def _clean_vessel_candidate(candidate: str) -> str:
    """Cut trailing IMO references/brackets and stray punctuation."""
    candidate = re.split(r"\bIMO(?![A-Za-z])|\(", candidate, maxsplit=1, flags=re.IGNORECASE)[0]
    return " ".join(candidate.split()).strip(" ,;:-/")


def vessel_from_label(text: str) -> Optional[str]:
    """'Vessel: MV Nova Star' / 'Ship: Nova Star'."""
    match = VESSEL_LABEL_RE.search(text)
    return _clean_vessel_candidate(match.group(1)) if match else None


def vessel_from_prefix(text: str) -> Optional[str]:
    """'MV Nova Star collided ...' -> 'MV Nova Star' (prefix kept)."""
    match = VESSEL_PREFIX_RE.search(text)
    if not match:
        return None
    return _clean_vessel_candidate(f"{match.group(1)} {match.group(2)}")


def vessel_from_heading(text: str) -> Optional[str]:
    """First short, punctuation-light line near the top of a multi-line message."""
    lines = non_empty_lines(text)
    if len(lines) < 2:
        return None
    for line in lines[:HEADING_SCAN_LINES]:
        line = line.strip()
        if len(line) > HEADING_MAX_CHARS or len(line.split()) > HEADING_MAX_WORDS:
            continue
        if any(ch in HEADING_PUNCTUATION for ch in line):
            continue
        if not line[0].isupper():
            continue
        return _clean_vessel_candidate(line)
    return None


def is_plausible_vessel_name(candidate: Optional[str]) -> bool:
    """Reject long strings, incident/salutation wording and letter-free tokens."""
    if not candidate:
        return False
    if len(candidate) > MAX_VESSEL_NAME_CHARS:
        return False
    if not any(ch.isalpha() for ch in candidate):
        return False
    return not VESSEL_REJECT_RE.search(candidate)


# ============================================================================
# Other field rules
# ============================================================================


def imo_from_label(text: str) -> Optional[str]:
    match = IMO_RE.search(text)
    return match.group(1) if match else None


def event_date_from_text(text: str) -> Optional[str]:
    """Earliest '<day> <month> <year>' or ISO date, kept as written."""
    match = EVENT_DATE_RE.search(text)
    return " ".join(match.group(1).split()) if match else None


def location_from_label(text: str) -> Optional[str]:
    match = LOCATION_LABEL_RE.search(text)
    return match.group(1).strip() if match else None


def location_from_anchorage(text: str) -> Optional[str]:
    match = ANCHORAGE_RE.search(text)
    return match.group(1).strip() if match else None


def location_from_place_phrase(text: str) -> Optional[str]:
    """'near Singapore', 'off Port Said', 'at Rotterdam'."""
    for match in PLACE_RE.finditer(text):
        candidate = match.group(1).strip()
        first_word = candidate.split()[0].lower()
        if first_word in CALENDAR_WORDS or len(candidate) < 3:
            continue
        return candidate
    return None


def counterparty_from_label(text: str) -> Optional[str]:
    match = COUNTERPARTY_RE.search(text)
    if not match:
        return None
    value = match.group(2).strip()
    return f"{match.group(1).capitalize()}: {value}" if value else None


def incident_keywords(text: str) -> List[str]:
    """Canonical tags whose lexicon terms occur in the text."""
    lower = (text or "").lower()
    tags = []
    for tag, terms in INCIDENT_LEXICON:
        if tag not in tags and any(term in lower for term in terms):
            tags.append(tag)
    return tags


def first_accepted(rules: Sequence[Rule], text: str, accept: Callable[[Optional[str]], bool] = bool) -> Optional[str]:
    """Run rules in order; return the first candidate that passes `accept`."""
    for rule in rules:
        candidate = rule(text)
        if accept(candidate):
            return candidate
        if candidate:
            logger.debug(f"Rule {rule.__name__} candidate rejected: {candidate!r}")
    return None


# ============================================================================
# Extractor
# ============================================================================


class FieldExtractor:
    """Deterministic extractor: normalized text in, Extraction out."""

    vessel_rules: Sequence[Rule] = (vessel_from_label, vessel_from_prefix, vessel_from_heading)
    imo_rules: Sequence[Rule] = (imo_from_label,)
    event_date_rules: Sequence[Rule] = (event_date_from_text,)
    location_rules: Sequence[Rule] = (location_from_label, location_from_anchorage, location_from_place_phrase)
    counterparty_rules: Sequence[Rule] = (counterparty_from_label,)

    def extract(self, raw_text: Optional[str]) -> Extraction:
        """
        Extract structured fields from a notification.

        Args:
            raw_text: Notification text as received (normalized here)

        Returns:
            Extraction with source=rules; missing fields are None
        """
        start_time = time.perf_counter()
        text = normalize_text(raw_text)

        extraction = Extraction(
            raw_text=text,
            summary=summarize(text),
            vessel_name=first_accepted(self.vessel_rules, text, is_plausible_vessel_name),
            imo=first_accepted(self.imo_rules, text),
            event_date_text=first_accepted(self.event_date_rules, text),
            location_text=first_accepted(self.location_rules, text),
            counterparty_text=first_accepted(self.counterparty_rules, text),
            incident_keywords=incident_keywords(text),
            source=ExtractionSource.RULES,
            confidence=RULE_BASED_CONFIDENCE,
        )

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(
            f"Rule extraction complete: vessel={extraction.vessel_name!r}, "
            f"keywords={extraction.incident_keywords}, extraction_time={elapsed_ms:.1f}ms"
        )
        return extraction


_default_extractor = FieldExtractor()


def extract(raw_text: Optional[str]) -> Extraction:
    """Extract fields with the default rule set."""
    return _default_extractor.extract(raw_text)
