"""Static follow-up suggestions derived from intent and retrieved context."""

from shared.models.context import RetrievedContext
from shared.models.conversation import Intent

MAX_SUGGESTIONS = 3

INTENT_SUGGESTIONS: dict[str, list[str]] = {
    "scholarship": [
        "Tell me about application deadlines for these scholarships",
        "How can I improve my scholarship application?",
        "What documents do I need for scholarship applications?",
    ],
    "roadmap": [
        "Create a personalized study schedule for this learning plan",
        "What skills should I focus on first?",
        "How do I track my progress on this learning plan?",
    ],
    "career": [
        "What are the job prospects in this field?",
        "How do I build a portfolio for this career?",
        "What networking opportunities are available?",
    ],
}

GENERIC_SUGGESTIONS = [
    "Find scholarships related to my interests",
    "Show me relevant learning plans",
    "Help me set career goals",
]

COMPARE_OPPORTUNITIES = "Compare these opportunities for me"
BEST_LEARNING_PLAN = "Which learning plan is best for my skill level?"

DEFAULT_SUGGESTIONS = [
    "Find scholarships for my field of interest",
    "Create a learning plan for my career goals",
    "What skills should I develop next?",
    "Help me find internship opportunities",
    "How can I improve my application profile?",
]

FALLBACK_SUGGESTIONS = [
    "Ask about scholarships",
    "Get career guidance",
    "Find learning resources",
]


class SuggestionGenerator:
    def suggest(self, intent: Intent, context: RetrievedContext | None = None) -> list[str]:
        """Up to 3 unique follow-up prompts for the given intent and context."""
        suggestions = list(INTENT_SUGGESTIONS.get(intent.primary, GENERIC_SUGGESTIONS))
        if context is not None:
            if context.opportunities:
                suggestions.append(COMPARE_OPPORTUNITIES)
            if context.learning_plans:
                suggestions.append(BEST_LEARNING_PLAN)
        return list(dict.fromkeys(suggestions))[:MAX_SUGGESTIONS]

    def default_suggestions(self, limit: int = 5) -> list[str]:
        return DEFAULT_SUGGESTIONS[:max(0, limit)]

    def fallback_suggestions(self) -> list[str]:
        return list(FALLBACK_SUGGESTIONS)
