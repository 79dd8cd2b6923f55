"""
Language-model oracle for notification extraction and cover classification.

Best effort only: every method returns None on any failure and the pipeline
falls back to the rule-based extractor/classifier.
"""

import json
import logging
import math
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .config import OracleConfig
from .normalizer import summarize
from .schema import BusinessRole, Classification, CoverAssessment, Extraction, ExtractionSource, normalize_cover_type
from .text_extractor import INCIDENT_LEXICON, incident_keywords

logger = logging.getLogger(__name__)

CANONICAL_TAGS = [tag for tag, _ in INCIDENT_LEXICON]


EXTRACTION_SYSTEM_PROMPT = f"""You are a marine insurance claims assistant for a ship operator.
Extract structured fields from a messy first notification (email, chat message or forwarded chain).

IMPORTANT RULES:
1. Extract ONLY information explicitly stated in the notification
2. Use null for any field not stated - never an empty string, never a guess
3. Keep vessel name, date and location exactly as written
4. imo must be exactly 7 digits or null

Return ONLY a valid JSON object with this structure:
{{
  "summary": "two or three sentence summary",
  "vessel_name": "string or null",
  "imo": "string or null",
  "event_date_text": "string or null",
  "location_text": "port, position or place name or null",
  "counterparty_text": "string or null",
  "incident_keywords": ["zero or more of: {', '.join(CANONICAL_TAGS)}"],
  "confidence": 0.0-1.0,
  "warnings": ["anything ambiguous or contradictory"]
}}"""


CLASSIFICATION_SYSTEM_PROMPT = """You are a marine insurance expert for a ship operator.
Classify which insurance covers plausibly apply to the incident.

Covers: "P&I", "H&M", "Charterers' Liability", "Cargo", "FD&D".
Business role: if the operator acts as charterer (time/voyage charter, off-hire, charterparty),
H&M does NOT apply - hull & machinery belongs to the vessel owner.

Return ONLY a valid JSON object:
{
  "business_role": "vessel_owner|charterer",
  "covers": [{"type": "cover name", "confidence": 0.0-1.0, "reasoning": "one sentence"}]
}"""


def _clamp(value: Any, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return default
    if not math.isfinite(number):
        return default
    return max(0.0, min(1.0, number))


class ExtractionOracle(ABC):
    """External, unreliable extraction/classification service."""

    @abstractmethod
    async def try_extract(self, raw_text: str) -> Optional[Extraction]:
        """Extraction from the notification, or None on failure."""

    @abstractmethod
    async def try_classify(self, extraction: Extraction) -> Optional[Classification]:
        """Classification of the extraction, or None on failure."""


class LLMExtractionOracle(ExtractionOracle):
    """Oracle backed by OpenAI or Anthropic JSON output."""

    def __init__(self, config: OracleConfig):
        """Initialize with configuration."""
        self.config = config

        if config.llm_provider == "claude":
            try:
                import anthropic
                self.client = anthropic.AsyncAnthropic(api_key=config.api_key)
            except ImportError:
                raise ImportError(
                    "anthropic package required for Claude. "
                    "Install with: pip install anthropic"
                )
        elif config.llm_provider == "openai":
            from openai import AsyncOpenAI
            self.client = AsyncOpenAI(api_key=config.api_key)
        else:
            raise ValueError(f"Unsupported LLM provider: {config.llm_provider}")

    async def _complete(self, system: str, user: str) -> str:
        if self.config.llm_provider == "claude":
            response = await self.client.messages.create(
                model=self.config.llm_model,
                max_tokens=1500,
                system=system,
                messages=[{"role": "user", "content": user}],
            )
            return response.content[0].text
        response = await self.client.chat.completions.create(
            model=self.config.llm_model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            response_format={"type": "json_object"},
            temperature=0.0,
        )
        return response.choices[0].message.content or ""

    @staticmethod
    def _parse_json(response: str) -> Dict[str, Any]:
        """Parse the first JSON object found in the response."""
        json_match = re.search(r"\{.*\}", response or "", re.DOTALL)
        if not json_match:
            raise ValueError(f"No JSON found in oracle response: {response!r}")
        data = json.loads(json_match.group(0))
        if not isinstance(data, dict):
            raise ValueError("Oracle response is not a JSON object")
        return data

    async def try_extract(self, raw_text: str) -> Optional[Extraction]:
        user = f"FIRST NOTIFICATION TEXT (raw):\n```\n{raw_text}\n```"
        try:
            data = self._parse_json(await self._complete(EXTRACTION_SYSTEM_PROMPT, user))
            extraction = self.to_extraction(data, raw_text)
        except (json.JSONDecodeError, ValueError, ValidationError) as e:
            logger.warning(f"Oracle extraction returned invalid output: {e}")
            return None
        except Exception as e:
            logger.warning(f"Oracle extraction failed: {e}")
            return None

        logger.info(f"Oracle extraction complete (confidence={extraction.confidence:.2f})")
        return extraction

    async def try_classify(self, extraction: Extraction) -> Optional[Classification]:
        facts = extraction.model_dump(include={"vessel_name", "event_date_text", "location_text", "incident_keywords"})
        user = (
            f"EXTRACTED FACTS:\n{json.dumps(facts)}\n\n"
            f"NOTIFICATION TEXT:\n```\n{extraction.raw_text}\n```"
        )
        try:
            data = self._parse_json(await self._complete(CLASSIFICATION_SYSTEM_PROMPT, user))
            classification = self.to_classification(data)
        except (json.JSONDecodeError, ValueError, ValidationError) as e:
            logger.warning(f"Oracle classification returned invalid output: {e}")
            return None
        except Exception as e:
            logger.warning(f"Oracle classification failed: {e}")
            return None
        return classification

    @staticmethod
    def to_extraction(data: Dict[str, Any], raw_text: str) -> Extraction:
        """Validate an oracle payload into an Extraction."""
        tags: List[str] = [
            str(t).lower().strip() for t in data.get("incident_keywords") or []
            if str(t).lower().strip() in CANONICAL_TAGS
        ]
        # Rule tags keep classification consistent with the lexicon.
        tags.extend(incident_keywords(raw_text))

        summary = str(data.get("summary") or "").strip()
        warnings = data.get("warnings") or []
        return Extraction(
            raw_text=raw_text,
            summary=summarize(summary or raw_text),
            vessel_name=data.get("vessel_name"),
            imo=data.get("imo"),
            event_date_text=data.get("event_date_text"),
            location_text=data.get("location_text"),
            counterparty_text=data.get("counterparty_text"),
            incident_keywords=tags,
            source=ExtractionSource.ORACLE,
            confidence=_clamp(data.get("confidence"), 0.6),
            warnings=[str(w) for w in warnings] if isinstance(warnings, list) else [],
        )

    @staticmethod
    def to_classification(data: Dict[str, Any]) -> Optional[Classification]:
        """Validate an oracle payload into a Classification; None if no usable cover."""
        covers = []
        for item in data.get("covers") or []:
            if not isinstance(item, dict):
                continue
            cover_type = normalize_cover_type(item.get("type"))
            if cover_type is None:
                continue
            covers.append(CoverAssessment(
                type=cover_type,
                confidence=_clamp(item.get("confidence"), 0.5),
                reasoning=str(item.get("reasoning") or "").strip(),
            ))
        if not covers:
            return None

        role = BusinessRole.CHARTERER if data.get("business_role") == "charterer" else BusinessRole.VESSEL_OWNER
        return Classification(covers=covers, business_role=role, source=ExtractionSource.ORACLE)


def create_oracle(config: Optional[OracleConfig] = None) -> Optional[ExtractionOracle]:
    """Factory: an oracle for a configured provider, None for rule-based only."""
    if config is None:
        config = OracleConfig.from_env()

    if config.llm_provider == "mock":
        return None
    if not config.validate():
        logger.warning(f"No API key for oracle provider {config.llm_provider!r}; using rule-based extraction")
        return None
    return LLMExtractionOracle(config)
