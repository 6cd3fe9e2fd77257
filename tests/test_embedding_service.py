import pytest

from fakes import FakeEmbedClient, FakeStoreClient
from services.rag_chat.EmbeddingService import get_provider_order
from shared.exceptions import AllProvidersExhaustedError, EmptyInputError


def _names(clients):
    return [client.get_engine_name() for client in clients]


def _clients():
    return [
        FakeEmbedClient("openai", capacity=8191, latency_rank=1),
        FakeEmbedClient("cohere", capacity=512, latency_rank=0),
        FakeEmbedClient("gemini", capacity=2048, latency_rank=2),
    ]


##########################################
############# PROVIDER ORDER #############
##########################################

def test_short_texts_go_to_fastest_provider_first():
    assert _names(get_provider_order("gemini", 200, _clients())) == ["cohere", "openai", "gemini"]


def test_medium_texts_go_to_preferred_provider_first():
    assert _names(get_provider_order("gemini", 2000, _clients())) == ["gemini", "openai", "cohere"]


def test_long_texts_go_to_largest_capacity_first():
    assert _names(get_provider_order("cohere", 5000, _clients())) == ["openai", "gemini", "cohere"]


@pytest.mark.parametrize("length", [10, 1500, 6000])
def test_every_provider_appears_exactly_once(length):
    order = get_provider_order("openai", length, _clients())
    assert sorted(_names(order)) == ["cohere", "gemini", "openai"]


##########################################
################ EMBED ###################
##########################################

async def test_embed_returns_vector_of_declared_dimension(make_embedding_service):
    service = make_embedding_service([FakeEmbedClient("openai", dimension=6)])

    result = await service.embed("Find scholarships for me")

    assert result.provider_id == "openai"
    assert result.dimension_count == 6
    assert len(result.vector) == 6
    assert result.token_usage > 0


async def test_embed_twice_hits_cache(make_embedding_service):
    client = FakeEmbedClient("openai")
    service = make_embedding_service([client])

    first = await service.embed("data science scholarships")
    second = await service.embed("  data   science scholarships ")

    assert first == second
    assert len(client.calls) == 1


async def test_embed_without_cache_calls_backend_each_time(make_embedding_service):
    client = FakeEmbedClient("openai")
    service = make_embedding_service([client])

    await service.embed("hello", use_cache=False)
    await service.embed("hello", use_cache=False)

    assert len(client.calls) == 2


async def test_empty_text_is_rejected_without_calling_backends(make_embedding_service):
    client = FakeEmbedClient("openai")
    service = make_embedding_service([client])

    with pytest.raises(EmptyInputError):
        await service.embed("   \n\t ")
    assert client.calls == []


async def test_failed_provider_falls_back_to_next(make_embedding_service):
    broken = FakeEmbedClient("cohere", latency_rank=0, fail=True)
    healthy = FakeEmbedClient("openai", latency_rank=1)
    service = make_embedding_service([healthy, broken])

    result = await service.embed("short query")

    assert result.provider_id == "openai"
    assert len(broken.calls) == 1


async def test_wrong_dimension_counts_as_failure(make_embedding_service):
    bad = FakeEmbedClient("cohere", latency_rank=0, wrong_dimension=True)
    good = FakeEmbedClient("openai", latency_rank=1)
    service = make_embedding_service([bad, good])

    result = await service.embed("short query")

    assert result.provider_id == "openai"
    assert len(result.vector) == good.dimension


async def test_all_providers_failing_raises_exhausted(make_embedding_service):
    service = make_embedding_service([
        FakeEmbedClient("openai", fail=True),
        FakeEmbedClient("cohere", fail=True),
    ])

    with pytest.raises(AllProvidersExhaustedError) as exc_info:
        await service.embed("anything")
    assert sorted(exc_info.value.attempted) == ["cohere", "openai"]


async def test_usage_is_logged_in_background(make_embedding_service, dispatcher):
    store = FakeStoreClient()
    service = make_embedding_service([FakeEmbedClient("openai", total_tokens=7)], store_client=store)

    await service.embed("career advice", content_type="query", owner_id="user-1")
    await dispatcher.drain()

    assert len(store.usage_logs) == 1
    record = store.usage_logs[0]
    assert record["provider_id"] == "openai"
    assert record["owner_id"] == "user-1"
    assert record["content_type"] == "query"
    assert record["tokens"] == 7


async def test_failed_usage_log_does_not_fail_embed(make_embedding_service, dispatcher):
    store = FakeStoreClient(failing={"usage"})
    service = make_embedding_service([FakeEmbedClient("openai")], store_client=store)

    result = await service.embed("career advice")
    await dispatcher.drain()

    assert result.provider_id == "openai"
    assert store.usage_logs == []


async def test_unknown_preferred_provider_is_ignored(make_embedding_service):
    service = make_embedding_service([FakeEmbedClient("openai")])

    result = await service.embed("hello", preferred_provider="voyage")

    assert result.provider_id == "openai"


##########################################
################ BATCH ###################
##########################################

async def test_batch_keeps_input_order_across_chunks(make_embedding_service):
    client = FakeEmbedClient("openai", batch_size=2)
    service = make_embedding_service([client])
    texts = ["a", "bb", "ccc", "dddd", "eeeee"]

    results = await service.embed_batch([(text, {}) for text in texts])

    assert len(results) == 5
    assert [r.vector[0] for r in results] == [float(len(t) % 7 + 1) for t in texts]
    assert len(client.calls) == 5


async def test_batch_aborts_on_any_failure(make_embedding_service):
    client = FakeEmbedClient("openai", batch_size=2, fail_on={"ccc"})
    service = make_embedding_service([client])

    with pytest.raises(AllProvidersExhaustedError):
        await service.embed_batch([(text, {}) for text in ["a", "bb", "ccc", "dddd", "eeeee"]])
    # the chunk after the failing one is never sent
    assert ["eeeee"] not in client.calls


##########################################
############## CONTEXTUAL ################
##########################################

async def test_contextual_chat_embedding_prefers_cohere(make_embedding_service):
    openai = FakeEmbedClient("openai")
    cohere = FakeEmbedClient("cohere")
    service = make_embedding_service([openai, cohere])
    content = "x" * 1500  # medium length, so the preferred engine goes first

    embedding = await service.embed_contextual(content, "chat", {"session": "s1"})

    assert embedding.result.provider_id == "cohere"
    assert embedding.metadata["content_type"] == "chat"
    assert embedding.metadata["original_length"] == 1500
    assert embedding.metadata["enhanced_length"] == len("Chat message: ") + 1500
    assert embedding.metadata["session"] == "s1"


def test_decorate_for_opportunity():
    from services.rag_chat.EmbeddingService import EmbeddingService

    text = EmbeddingService.decorate_for_context(
        "Full tuition", "opportunity", {"title": "Mastercard Scholars", "provider": "MCF", "category": "STEM"}
    )
    assert text.startswith("Opportunity: Mastercard Scholars")
    assert "Provider: MCF" in text
    assert "Category: STEM" in text
