from services.rag_chat.SuggestionGenerator import (
    BEST_LEARNING_PLAN,
    COMPARE_OPPORTUNITIES,
    FALLBACK_SUGGESTIONS,
    GENERIC_SUGGESTIONS,
    INTENT_SUGGESTIONS,
    SuggestionGenerator,
)
from shared.models.context import ContextItem, RetrievedContext, SourceType
from shared.models.conversation import Intent


def _context(opportunities: int = 0, plans: int = 0) -> RetrievedContext:
    return RetrievedContext(
        opportunities=[
            ContextItem(id=f"s{i}", text_content="x", source_type=SourceType.OPPORTUNITY) for i in range(opportunities)
        ],
        learning_plans=[
            ContextItem(id=f"r{i}", text_content="x", source_type=SourceType.LEARNING_PLAN) for i in range(plans)
        ],
    )


def test_intent_specific_suggestions():
    suggestions = SuggestionGenerator().suggest(Intent(primary="scholarship"))
    assert suggestions == INTENT_SUGGESTIONS["scholarship"]


def test_unknown_intent_gets_generic_suggestions():
    assert SuggestionGenerator().suggest(Intent(primary="weather")) == GENERIC_SUGGESTIONS


def test_never_more_than_three_and_unique():
    suggestions = SuggestionGenerator().suggest(Intent(primary="career"), _context(opportunities=2, plans=2))
    assert len(suggestions) == 3
    assert len(set(suggestions)) == 3


def test_context_suggestions_are_candidates():
    generator = SuggestionGenerator()
    # with the cap of three the intent suggestions come first
    assert COMPARE_OPPORTUNITIES not in generator.suggest(Intent(primary="roadmap"), _context(opportunities=1))
    assert BEST_LEARNING_PLAN not in generator.suggest(Intent(primary="roadmap"), _context(plans=1))


def test_default_and_fallback_suggestions():
    generator = SuggestionGenerator()
    assert len(generator.default_suggestions()) == 5
    assert len(generator.default_suggestions(limit=2)) == 2
    assert generator.fallback_suggestions() == FALLBACK_SUGGESTIONS
    assert len(generator.fallback_suggestions()) == 3
