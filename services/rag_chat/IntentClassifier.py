"""Intent classification of user messages.

The generation chain is asked for a JSON classification first. Anything that
goes wrong on that path falls back to deterministic keyword matching, so
classify() never raises for a non-empty message.
"""

import json
import re

from pydantic import ValidationError

from services.rag_chat.GenerationService import GenerationService
from shared.exceptions import AllProvidersExhaustedError
from shared.helper.HelperConfig import HelperConfig
from shared.models.conversation import Intent, Urgency

FUNDING_TERMS = ("scholarship", "funding", "grant", "fellowship", "financial aid")
LEARNING_TERMS = ("roadmap", "learn", "course", "study")
CAREER_TERMS = ("career", "job", "internship")

# entity families: (entity, trigger terms)
ENTITY_FAMILIES: list[tuple[str, tuple[str, ...]]] = [
    ("scholarship", FUNDING_TERMS),
    ("career", CAREER_TERMS + ("work", "profession")),
    ("skills", ("skill", "training") + LEARNING_TERMS),
]

POSITIVE_WORDS = {"good", "great", "excellent", "amazing", "helpful", "thank", "thanks"}
NEGATIVE_WORDS = {"bad", "terrible", "awful", "confused", "frustrated", "difficult"}

CLASSIFICATION_PROMPT = """Analyze this user message and extract intent information:

Message: "{message}"

Provide analysis in this JSON format:
{{
  "primary": "primary intent (scholarship, roadmap, career, technical, general)",
  "secondary": "secondary intent if applicable",
  "entities": ["list", "of", "key", "entities"],
  "urgency": "low/medium/high",
  "actionRequired": true/false
}}"""

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def extract_entities(text: str) -> list[str]:
    """Entity families mentioned in the text, in fixed family order."""
    lower = text.lower()
    return [entity for entity, terms in ENTITY_FAMILIES if any(term in lower for term in terms)]


def analyze_sentiment(text: str) -> float:
    """Lexical sentiment: +0.1 per positive word, -0.1 per negative word, clamped to [-1, 1]."""
    score = 0.0
    for word in re.findall(r"[a-z']+", text.lower()):
        if word in POSITIVE_WORDS:
            score += 0.1
        elif word in NEGATIVE_WORDS:
            score -= 0.1
    return max(-1.0, min(1.0, round(score, 4)))


def keyword_intent(message: str) -> Intent:
    lower = message.lower()
    if any(term in lower for term in FUNDING_TERMS):
        primary = "scholarship"
    elif any(term in lower for term in LEARNING_TERMS):
        primary = "roadmap"
    elif any(term in lower for term in CAREER_TERMS):
        primary = "career"
    else:
        primary = "general"
    return Intent(
        primary=primary,
        entities=extract_entities(message),
        urgency=Urgency.MEDIUM,
        action_required=False,
    )


def parse_intent_reply(reply: str) -> Intent:
    """Parse a JSON classification reply, tolerating markdown code fences.

    Raises:
        ValueError: If the reply is not a JSON object with a string "primary".
    """
    cleaned = _FENCE_RE.sub("", reply.strip())
    data = json.loads(cleaned)
    if not isinstance(data, dict) or not isinstance(data.get("primary"), str) or not data["primary"].strip():
        raise ValueError("classification reply has no primary intent")

    urgency = str(data.get("urgency") or "medium").strip().lower()
    if urgency not in {u.value for u in Urgency}:
        urgency = Urgency.MEDIUM.value
    entities = data.get("entities") or []
    if not isinstance(entities, list):
        raise ValueError("classification reply entities is not a list")

    return Intent(
        primary=data["primary"].strip().lower(),
        secondary=data.get("secondary") or None,
        entities=sorted({str(entity) for entity in entities}),
        urgency=urgency,
        action_required=bool(data.get("actionRequired", False)),
    )


class IntentClassifier:
    def __init__(self, helper_config: HelperConfig, generation_service: GenerationService) -> None:
        self.logging = helper_config.get_logger()
        self._generation_service = generation_service

    async def classify(self, message: str) -> Intent:
        """Classify a message with the generation chain, falling back to keywords.

        Args:
            message (str): The user message.

        Returns:
            Intent: The classification.
        """
        try:
            result = await self._generation_service.generate(
                CLASSIFICATION_PROMPT.format(message=message), urgency=Urgency.HIGH.value
            )
        except AllProvidersExhaustedError as e:
            self.logging.warning("Intent classification unavailable, using keywords: %s", e)
            return keyword_intent(message)

        try:
            return parse_intent_reply(result.response_text)
        except (ValueError, ValidationError) as e:
            self.logging.warning("Could not parse intent classification from '%s', using keywords: %s", result.provider_id, e)
            return keyword_intent(message)

    def extract_entities(self, text: str) -> list[str]:
        return extract_entities(text)

    def analyze_sentiment(self, text: str) -> float:
        return analyze_sentiment(text)
