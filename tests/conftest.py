import logging
from types import SimpleNamespace

import pytest

from fakes import FakeEmbedClient, FakeLLMClient, FakeRAGClient, FakeStoreClient
from services.rag_chat.ContextRetriever import ContextRetriever
from services.rag_chat.EmbeddingCache import EmbeddingCache
from services.rag_chat.EmbeddingService import EmbeddingService
from services.rag_chat.GenerationService import GenerationService
from services.rag_chat.IntentClassifier import IntentClassifier
from services.rag_chat.PromptAssembler import PromptAssembler
from services.rag_chat.RAGChatService import RAGChatService
from services.rag_chat.SessionManager import SessionManager
from services.rag_chat.SuggestionGenerator import SuggestionGenerator
from shared.helper.HelperBackground import BackgroundDispatcher
from shared.helper.HelperConfig import HelperConfig


@pytest.fixture
def helper_config() -> HelperConfig:
    return HelperConfig(logger=logging.getLogger("coach_rag.tests"))


@pytest.fixture
def dispatcher(helper_config) -> BackgroundDispatcher:
    return BackgroundDispatcher(helper_config=helper_config)


@pytest.fixture
def make_embedding_service(helper_config, dispatcher):
    def _make(clients, store_client=None, preferred_engine=None, cache=None) -> EmbeddingService:
        return EmbeddingService(
            helper_config=helper_config,
            embed_clients=clients,
            cache=cache or EmbeddingCache(max_size=100),
            dispatcher=dispatcher,
            store_client=store_client,
            preferred_engine=preferred_engine,
        )

    return _make


@pytest.fixture
def make_pipeline(helper_config, dispatcher, make_embedding_service):
    """Wire every chat service on top of fake clients."""

    def _make(llm_clients=None, rag_client=None, store_client=None, embed_clients=None) -> SimpleNamespace:
        llm_clients = llm_clients or [FakeLLMClient("gemini")]
        rag_client = rag_client or FakeRAGClient()
        store_client = store_client or FakeStoreClient()
        embed_clients = embed_clients or [FakeEmbedClient("openai"), FakeEmbedClient("cohere", latency_rank=1)]

        embedding_service = make_embedding_service(embed_clients, store_client=store_client)
        generation_service = GenerationService(helper_config=helper_config, llm_clients=llm_clients)
        context_retriever = ContextRetriever(
            helper_config=helper_config,
            rag_client=rag_client,
            store_client=store_client,
            embedding_service=embedding_service,
        )
        session_manager = SessionManager(
            helper_config=helper_config,
            store_client=store_client,
            rag_client=rag_client,
            embedding_service=embedding_service,
            generation_service=generation_service,
            context_retriever=context_retriever,
            dispatcher=dispatcher,
        )
        chat_service = RAGChatService(
            helper_config=helper_config,
            embedding_service=embedding_service,
            context_retriever=context_retriever,
            prompt_assembler=PromptAssembler(helper_config=helper_config, token_budget=3500),
            generation_service=generation_service,
            intent_classifier=IntentClassifier(helper_config=helper_config, generation_service=generation_service),
            session_manager=session_manager,
            suggestion_generator=SuggestionGenerator(),
        )
        return SimpleNamespace(
            llm_clients=llm_clients,
            rag_client=rag_client,
            store_client=store_client,
            embed_clients=embed_clients,
            embedding_service=embedding_service,
            generation_service=generation_service,
            context_retriever=context_retriever,
            session_manager=session_manager,
            chat_service=chat_service,
            dispatcher=dispatcher,
        )

    return _make
