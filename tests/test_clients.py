import json
from datetime import datetime, timezone

import httpx
import pytest

from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.embed.cohere.EmbedClientCohere import EmbedClientCohere
from shared.clients.embed.gemini.EmbedClientGemini import EmbedClientGemini
from shared.clients.embed.ollama.EmbedClientOllama import EmbedClientOllama
from shared.clients.embed.openai.EmbedClientOpenai import EmbedClientOpenai
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.llm.cohere.LLMClientCohere import LLMClientCohere
from shared.clients.llm.gemini.LLMClientGemini import LLMClientGemini
from shared.clients.llm.ollama.LLMClientOllama import LLMClientOllama
from shared.clients.llm.openai.LLMClientOpenai import LLMClientOpenai
from shared.clients.rag.supabase.RAGClientSupabase import RAGClientSupabase
from shared.clients.store.supabase.StoreClientSupabase import StoreClientSupabase


class Recorder:
    """MockTransport handler that records requests and replies with a canned response."""

    def __init__(self, status: int = 200, payload=None):
        self.status = status
        self.payload = payload if payload is not None else {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status, json=self.payload)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self):
        return json.loads(self.last.content)


@pytest.fixture
def api_keys(monkeypatch):
    for key in (
        "EMBED_OPENAI_API_KEY",
        "EMBED_COHERE_API_KEY",
        "EMBED_GEMINI_API_KEY",
        "LLM_OPENAI_API_KEY",
        "LLM_GEMINI_API_KEY",
        "LLM_COHERE_API_KEY",
        "RAG_SUPABASE_API_KEY",
        "STORE_SUPABASE_API_KEY",
    ):
        monkeypatch.setenv(key, "test-key")
    monkeypatch.setenv("RAG_SUPABASE_BASE_URL", "https://project.supabase.co")
    monkeypatch.setenv("STORE_SUPABASE_BASE_URL", "https://project.supabase.co/")


async def _booted(client, recorder: Recorder):
    await client.boot(transport=httpx.MockTransport(recorder))
    return client


##########################################
################ EMBED ###################
##########################################

async def test_openai_embed_request_and_ordering(helper_config, api_keys, monkeypatch):
    monkeypatch.setenv("EMBED_OPENAI_DIMENSIONS", "3")
    recorder = Recorder(payload={
        "data": [{"index": 1, "embedding": [0.0, 1.0, 0.0]}, {"index": 0, "embedding": [1.0, 0.0, 0.0]}],
        "usage": {"total_tokens": 5},
    })
    client = await _booted(EmbedClientOpenai(helper_config=helper_config), recorder)

    response = await client.do_embed(["first", "second"])
    await client.close()

    assert response.vectors == [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]]
    assert response.total_tokens == 5
    assert recorder.last.url.path == "/v1/embeddings"
    assert recorder.last.headers["Authorization"] == "Bearer test-key"
    assert recorder.last_json() == {"model": "text-embedding-3-small", "input": ["first", "second"], "dimensions": 3}


async def test_embed_truncates_long_inputs(helper_config, api_keys, monkeypatch):
    monkeypatch.setenv("EMBED_OPENAI_DIMENSIONS", "1")
    monkeypatch.setenv("EMBED_OPENAI_MODEL_MAX_CHARS", "10")
    recorder = Recorder(payload={"data": [{"index": 0, "embedding": [1.0]}]})
    client = await _booted(EmbedClientOpenai(helper_config=helper_config), recorder)

    await client.do_embed("x" * 50)

    assert recorder.last_json()["input"] == ["x" * 10]


async def test_embed_non_200_raises(helper_config, api_keys):
    client = await _booted(EmbedClientOpenai(helper_config=helper_config), Recorder(status=429, payload={"error": "rate"}))

    with pytest.raises(Exception, match="status 429"):
        await client.do_embed(["hello"])


async def test_embed_vector_count_mismatch_raises(helper_config, api_keys):
    recorder = Recorder(payload={"data": [{"index": 0, "embedding": [1.0]}]})
    client = await _booted(EmbedClientOpenai(helper_config=helper_config), recorder)

    with pytest.raises(ValueError):
        await client.do_embed(["a", "b"])


async def test_cohere_embed_parses_typed_embeddings(helper_config, api_keys):
    recorder = Recorder(payload={
        "embeddings": {"float": [[0.1, 0.2]]},
        "meta": {"billed_units": {"input_tokens": 3}},
    })
    client = await _booted(EmbedClientCohere(helper_config=helper_config), recorder)

    response = await client.do_embed(["hello"])

    assert client.dimension == 384
    assert response.vectors == [[0.1, 0.2]]
    assert response.total_tokens == 3
    assert recorder.last.url.path == "/v1/embed"
    assert recorder.last_json()["input_type"] == "search_document"
    assert recorder.last_json()["texts"] == ["hello"]


async def test_gemini_embed_uses_key_param(helper_config, api_keys):
    recorder = Recorder(payload={"embeddings": [{"values": [0.5, 0.5]}]})
    client = await _booted(EmbedClientGemini(helper_config=helper_config), recorder)

    response = await client.do_embed(["hello"])

    assert response.vectors == [[0.5, 0.5]]
    assert response.total_tokens is None
    assert recorder.last.url.path == "/v1beta/models/embedding-001:batchEmbedContents"
    assert recorder.last.url.params["key"] == "test-key"
    assert "Authorization" not in recorder.last.headers
    assert recorder.last_json()["requests"][0]["model"] == "models/embedding-001"
    assert recorder.last_json()["requests"][0]["content"]["parts"] == [{"text": "hello"}]


async def test_ollama_embed_without_api_key(helper_config, monkeypatch):
    monkeypatch.setenv("EMBED_OLLAMA_BASE_URL", "http://ollama:11434")
    monkeypatch.setenv("EMBED_OLLAMA_DIMENSIONS", "2")
    recorder = Recorder(payload={"embeddings": [[0.1, 0.2]], "prompt_eval_count": 3})
    client = await _booted(EmbedClientOllama(helper_config=helper_config), recorder)

    response = await client.do_embed(["hello"])

    assert response.vectors == [[0.1, 0.2]]
    assert response.total_tokens == 3
    assert recorder.last.url.path == "/api/embed"
    assert "Authorization" not in recorder.last.headers
    assert recorder.last_json() == {"model": "nomic-embed-text", "input": ["hello"]}
    assert client.estimate_cost(1000) == 0.0


def test_embed_capacity_profile(helper_config, api_keys):
    openai = EmbedClientOpenai(helper_config=helper_config)
    cohere = EmbedClientCohere(helper_config=helper_config)

    assert openai.get_capacity() > cohere.get_capacity()
    assert cohere.get_latency_rank() < openai.get_latency_rank()
    assert openai.get_batch_size() == 20
    assert openai.get_batch_delay_seconds() == pytest.approx(0.1)
    assert openai.estimate_cost(1000) == pytest.approx(0.00002)


def test_missing_api_key_fails_fast(helper_config, monkeypatch):
    monkeypatch.delenv("EMBED_OPENAI_API_KEY", raising=False)
    with pytest.raises(ValueError):
        EmbedClientOpenai(helper_config=helper_config)


def test_timeout_is_configurable_per_type(helper_config, api_keys, monkeypatch):
    assert EmbedClientOpenai(helper_config=helper_config).timeout == 15.0
    monkeypatch.setenv("EMBED_TIMEOUT", "5")
    assert EmbedClientOpenai(helper_config=helper_config).timeout == 5


async def test_request_before_boot_raises(helper_config, api_keys):
    client = EmbedClientOpenai(helper_config=helper_config)
    with pytest.raises(Exception, match="not initialised"):
        await client.do_embed(["hello"])


##########################################
################# LLM ####################
##########################################

async def test_openai_completion(helper_config, api_keys):
    recorder = Recorder(payload={"choices": [{"message": {"content": "Apply early."}}], "usage": {"total_tokens": 42}})
    client = await _booted(LLMClientOpenai(helper_config=helper_config), recorder)

    reply = await client.do_complete("prompt")

    assert reply.text == "Apply early."
    assert reply.total_tokens == 42
    body = recorder.last_json()
    assert body["model"] == "gpt-3.5-turbo"
    assert body["messages"] == [{"role": "user", "content": "prompt"}]
    assert body["temperature"] == pytest.approx(0.7)


async def test_completion_error_status_raises(helper_config, api_keys):
    client = await _booted(LLMClientOpenai(helper_config=helper_config), Recorder(status=500))

    with pytest.raises(Exception, match="status 500"):
        await client.do_complete("prompt")


async def test_gemini_completion_joins_parts(helper_config, api_keys):
    recorder = Recorder(payload={
        "candidates": [{"content": {"parts": [{"text": "Hello "}, {"text": "there"}]}}],
        "usageMetadata": {"totalTokenCount": 12},
    })
    client = await _booted(LLMClientGemini(helper_config=helper_config), recorder)

    reply = await client.do_complete("prompt")

    assert reply.text == "Hello there"
    assert reply.total_tokens == 12
    assert recorder.last.url.path == "/v1beta/models/gemini-1.5-flash:generateContent"
    assert recorder.last.url.params["key"] == "test-key"
    assert recorder.last_json()["generationConfig"]["temperature"] == pytest.approx(0.7)


async def test_gemini_completion_without_candidates_raises(helper_config, api_keys):
    client = await _booted(LLMClientGemini(helper_config=helper_config), Recorder(payload={"promptFeedback": {}}))

    with pytest.raises(ValueError):
        await client.do_complete("prompt")


async def test_cohere_completion_token_usage(helper_config, api_keys):
    recorder = Recorder(payload={"text": "Sure.", "meta": {"billed_units": {"input_tokens": 10, "output_tokens": 4}}})
    client = await _booted(LLMClientCohere(helper_config=helper_config), recorder)

    reply = await client.do_complete("prompt")

    assert reply.text == "Sure."
    assert reply.total_tokens == 14
    assert recorder.last_json()["message"] == "prompt"


async def test_ollama_completion(helper_config, monkeypatch):
    monkeypatch.setenv("LLM_OLLAMA_BASE_URL", "http://ollama:11434")
    monkeypatch.setenv("LLM_OLLAMA_API_KEY", "local-key")
    recorder = Recorder(payload={"message": {"role": "assistant", "content": "Start small."}, "eval_count": 6})
    client = await _booted(LLMClientOllama(helper_config=helper_config), recorder)

    reply = await client.do_complete("prompt")

    assert reply.text == "Start small."
    assert reply.total_tokens == 6
    assert recorder.last.url.path == "/api/chat"
    assert recorder.last.headers["Authorization"] == "Bearer local-key"
    body = recorder.last_json()
    assert body["stream"] is False
    assert body["messages"] == [{"role": "user", "content": "prompt"}]


def test_llm_ranks(helper_config, api_keys):
    gemini = LLMClientGemini(helper_config=helper_config)
    cohere = LLMClientCohere(helper_config=helper_config)

    assert gemini.get_latency_rank() < cohere.get_latency_rank()
    assert cohere.get_cost_rank() < gemini.get_cost_rank()
    assert gemini.get_confidence() == pytest.approx(0.9)


##########################################
############## VECTOR SEARCH #############
##########################################

async def test_supabase_match_opportunities(helper_config, api_keys):
    recorder = Recorder(payload=[{"scholarship_id": "s1", "similarity": 0.9}])
    client = await _booted(RAGClientSupabase(helper_config=helper_config), recorder)

    rows = await client.do_match_opportunities([0.1, 0.2], "user-1", threshold=0.7, count=10)

    assert rows == [{"scholarship_id": "s1", "similarity": 0.9}]
    assert recorder.last.method == "POST"
    assert recorder.last.url.path == "/rest/v1/rpc/match_contextual_scholarships"
    assert recorder.last.headers["apikey"] == "test-key"
    assert recorder.last_json() == {
        "query_embedding": [0.1, 0.2],
        "user_id_param": "user-1",
        "match_threshold": 0.7,
        "match_count": 10,
        "recency_boost": 0.1,
    }


async def test_supabase_match_learning_plans_payload(helper_config, api_keys):
    recorder = Recorder(payload=[])
    client = await _booted(RAGClientSupabase(helper_config=helper_config), recorder)

    rows = await client.do_match_learning_plans([0.1], ["python"], "easy", threshold=0.7, count=5)

    assert rows == []
    assert recorder.last.url.path == "/rest/v1/rpc/match_relevant_roadmaps"
    assert recorder.last_json()["user_skills"] == ["python"]
    assert recorder.last_json()["difficulty_preference"] == "easy"


async def test_supabase_recent_turns_filters(helper_config, api_keys):
    recorder = Recorder(payload=[])
    client = await _booted(RAGClientSupabase(helper_config=helper_config), recorder)
    since = datetime(2025, 1, 1, 12, 30)

    await client.do_fetch_recent_turns("user-1", since=since, limit=10)

    params = recorder.last.url.params
    assert recorder.last.url.path == "/rest/v1/chat_history_embeddings"
    assert params["user_id"] == "eq.user-1"
    assert params["created_at"] == f"gte.{since.isoformat()}"
    assert params["order"] == "created_at.desc"
    assert params["limit"] == "10"


async def test_supabase_user_context_record_missing(helper_config, api_keys):
    client = await _booted(RAGClientSupabase(helper_config=helper_config), Recorder(payload=[]))

    assert await client.do_fetch_user_context_record("user-1") is None


async def test_supabase_store_turn_embedding(helper_config, api_keys):
    recorder = Recorder(status=201, payload={})
    client = await _booted(RAGClientSupabase(helper_config=helper_config), recorder)
    created = datetime(2025, 1, 1, tzinfo=timezone.utc)

    await client.do_store_turn_embedding(
        user_id="u", session_id="s", message_id="m", role="user", text="hi",
        embedding=[0.1], intent="career", entities=["career"], sentiment=0.1, created_at=created,
    )

    body = recorder.last_json()
    assert recorder.last.headers["Prefer"] == "return=minimal"
    assert body["message_type"] == "user"
    assert body["message_intent"] == "career"
    assert body["created_at"] == created.isoformat()


##########################################
################# STORE ##################
##########################################

async def test_store_profile_lookup(helper_config, api_keys):
    recorder = Recorder(payload=[{"user_id": "u", "name": "Amara"}])
    client = await _booted(StoreClientSupabase(helper_config=helper_config), recorder)

    profile = await client.do_get_user_profile("u")

    assert profile == {"user_id": "u", "name": "Amara"}
    assert recorder.last.url.path == "/rest/v1/user_profiles"
    assert recorder.last.url.params["user_id"] == "eq.u"


async def test_store_profile_missing_is_none(helper_config, api_keys):
    client = await _booted(StoreClientSupabase(helper_config=helper_config), Recorder(payload=[]))

    assert await client.do_get_user_profile("nobody") is None


async def test_store_active_goals_filter(helper_config, api_keys):
    recorder = Recorder(payload=[])
    client = await _booted(StoreClientSupabase(helper_config=helper_config), recorder)

    await client.do_get_active_goals("u", limit=5)

    params = recorder.last.url.params
    assert params["status"] == "eq.active"
    assert params["limit"] == "5"


async def test_store_append_and_upsert_headers(helper_config, api_keys):
    recorder = Recorder(status=201, payload={})
    client = await _booted(StoreClientSupabase(helper_config=helper_config), recorder)

    await client.do_append_turns([{"message_id": "1"}, {"message_id": "2"}])
    assert recorder.last.url.path == "/rest/v1/chat_messages"
    assert recorder.last.headers["Prefer"] == "return=minimal"
    assert [row["message_id"] for row in recorder.last_json()] == ["1", "2"]

    await client.do_upsert_session({"session_id": "s"})
    assert recorder.last.url.path == "/rest/v1/conversation_sessions"
    assert "merge-duplicates" in recorder.last.headers["Prefer"]


async def test_store_end_session_patch(helper_config, api_keys):
    recorder = Recorder(status=204, payload={})
    client = await _booted(StoreClientSupabase(helper_config=helper_config), recorder)

    await client.do_end_session("s1", {"is_active": False})

    assert recorder.last.method == "PATCH"
    assert recorder.last.url.params["session_id"] == "eq.s1"
    assert recorder.last_json() == {"is_active": False}


async def test_store_increment_rpc(helper_config, api_keys):
    recorder = Recorder(payload={})
    client = await _booted(StoreClientSupabase(helper_config=helper_config), recorder)

    await client.do_increment_session_messages("s1", by=2)

    assert recorder.last.url.path == "/rest/v1/rpc/increment_session_messages"
    assert recorder.last_json() == {"session_id_param": "s1", "increment_by": 2}


async def test_store_list_turns_order(helper_config, api_keys):
    recorder = Recorder(payload=[])
    client = await _booted(StoreClientSupabase(helper_config=helper_config), recorder)

    await client.do_list_session_turns("s1", limit=5, newest_first=True)

    assert recorder.last.url.params["order"] == "created_at.desc"
    assert recorder.last.url.params["limit"] == "5"


async def test_store_write_failure_raises(helper_config, api_keys):
    client = await _booted(StoreClientSupabase(helper_config=helper_config), Recorder(status=409))

    with pytest.raises(Exception):
        await client.do_append_turns([{"message_id": "1"}])


##########################################
################ MANAGERS ################
##########################################

def test_embed_manager_builds_configured_engines(helper_config, api_keys, monkeypatch):
    monkeypatch.setenv("EMBED_ENGINES", "[OpenAI, cohere]")
    monkeypatch.setenv("EMBED_PREFERRED_ENGINE", "cohere")

    manager = EmbedClientManager(helper_config=helper_config)

    assert manager.get_engine_names() == ["openai", "cohere"]
    assert manager.get_preferred_engine() == "cohere"
    assert isinstance(manager.get_client("OpenAI"), EmbedClientOpenai)


def test_embed_manager_ignores_unknown_preferred_engine(helper_config, api_keys, monkeypatch):
    monkeypatch.setenv("EMBED_ENGINES", "[gemini,openai]")
    monkeypatch.setenv("EMBED_PREFERRED_ENGINE", "voyage")

    assert EmbedClientManager(helper_config=helper_config).get_preferred_engine() == "gemini"


def test_embed_manager_rejects_unknown_engine(helper_config, api_keys, monkeypatch):
    monkeypatch.setenv("EMBED_ENGINES", "[openai,voyage]")

    with pytest.raises(ValueError, match="Unsupported"):
        EmbedClientManager(helper_config=helper_config)


def test_llm_manager_keeps_configured_order(helper_config, api_keys, monkeypatch):
    monkeypatch.setenv("LLM_ENGINES", "[gemini,openai,cohere]")

    manager = LLMClientManager(helper_config=helper_config)

    assert [client.get_engine_name() for client in manager.get_clients()] == ["gemini", "openai", "cohere"]
