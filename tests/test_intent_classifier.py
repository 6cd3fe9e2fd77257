import pytest

from fakes import FakeLLMClient
from services.rag_chat.GenerationService import GenerationService
from services.rag_chat.IntentClassifier import (
    IntentClassifier,
    analyze_sentiment,
    extract_entities,
    keyword_intent,
    parse_intent_reply,
)


def _classifier(helper_config, reply=None, fail=False) -> IntentClassifier:
    client = FakeLLMClient("gemini", reply=reply or "{}", fail=fail)
    return IntentClassifier(
        helper_config=helper_config,
        generation_service=GenerationService(helper_config=helper_config, llm_clients=[client]),
    )


@pytest.mark.parametrize(
    "message,primary",
    [
        ("Any scholarships for engineering?", "scholarship"),
        ("I need funding for my masters", "scholarship"),
        ("How do I learn machine learning?", "roadmap"),
        ("Looking for an internship", "career"),
        ("Hello there", "general"),
    ],
)
def test_keyword_intent(message, primary):
    intent = keyword_intent(message)
    assert intent.primary == primary
    assert intent.urgency == "medium"
    assert intent.action_required is False


def test_keyword_intent_prefers_funding_over_learning():
    assert keyword_intent("scholarship to study abroad").primary == "scholarship"


def test_extract_entities_in_family_order():
    assert extract_entities("A job and a grant for training") == ["scholarship", "career", "skills"]
    assert extract_entities("nothing relevant") == []


def test_analyze_sentiment():
    assert analyze_sentiment("thanks, this is great and helpful") == pytest.approx(0.3)
    assert analyze_sentiment("I am confused and frustrated") == pytest.approx(-0.2)
    assert analyze_sentiment("neutral words") == 0.0
    assert analyze_sentiment("great " * 20) == 1.0


def test_parse_intent_reply_with_code_fence():
    reply = '```json\n{"primary": "Career", "entities": ["job", "job", "cv"], "urgency": "HIGH", "actionRequired": true}\n```'

    intent = parse_intent_reply(reply)

    assert intent.primary == "career"
    assert intent.entities == ["cv", "job"]
    assert intent.urgency == "high"
    assert intent.action_required is True


def test_parse_intent_reply_defaults_unknown_urgency():
    assert parse_intent_reply('{"primary": "general", "urgency": "asap"}').urgency == "medium"


@pytest.mark.parametrize("reply", ["not json", '{"secondary": "x"}', '["primary"]', '{"primary": "x", "entities": "a"}'])
def test_parse_intent_reply_rejects_bad_replies(reply):
    with pytest.raises(ValueError):
        parse_intent_reply(reply)


async def test_classify_uses_model_reply(helper_config):
    classifier = _classifier(helper_config, reply='{"primary": "roadmap", "entities": ["python"], "urgency": "low"}')

    intent = await classifier.classify("teach me python")

    assert intent.primary == "roadmap"
    assert intent.entities == ["python"]
    assert intent.urgency == "low"


async def test_classify_falls_back_to_keywords_on_bad_reply(helper_config):
    classifier = _classifier(helper_config, reply="I think this is about scholarships")

    intent = await classifier.classify("Any scholarship for nursing?")

    assert intent.primary == "scholarship"
    assert intent.entities == ["scholarship"]


async def test_classify_falls_back_to_keywords_when_generation_is_down(helper_config):
    classifier = _classifier(helper_config, fail=True)

    intent = await classifier.classify("Where can I find a job?")

    assert intent.primary == "career"
