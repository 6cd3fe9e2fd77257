"""FastAPI application entry point for coach_rag_bridge."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from services.rag_chat.ContextRetriever import ContextRetriever
from services.rag_chat.EmbeddingCache import DEFAULT_MAX_SIZE, EmbeddingCache
from services.rag_chat.EmbeddingService import EmbeddingService
from services.rag_chat.GenerationService import GenerationService
from services.rag_chat.IntentClassifier import IntentClassifier
from services.rag_chat.PromptAssembler import PromptAssembler
from services.rag_chat.RAGChatService import RAGChatService
from services.rag_chat.SessionManager import SessionManager
from services.rag_chat.SuggestionGenerator import SuggestionGenerator
from server.routers.ChatRouter import router as chat_router
from shared.clients.ClientInterface import ClientInterface
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.clients.store.StoreClientManager import StoreClientManager
from shared.helper.HelperBackground import BackgroundDispatcher
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # when the app starts
    app.state.logging = logging
    helper_config = HelperConfig(logger=logging)
    app.state.helper_config = helper_config

    embed_manager = EmbedClientManager(helper_config=helper_config)
    embed_clients = embed_manager.get_clients()
    llm_clients = LLMClientManager(helper_config=helper_config).get_clients()
    rag_client = RAGClientManager(helper_config=helper_config).get_client()
    store_client = StoreClientManager(helper_config=helper_config).get_client()
    all_clients: list[ClientInterface] = [*embed_clients, *llm_clients, rag_client, store_client]

    logging.info("Booting all clients...")
    for client in all_clients:
        await client.boot()
    logging.info("All clients booted successfully.")

    await check_connections(
        {
            "embed": embed_clients,
            "llm": llm_clients,
            "rag": [rag_client],
            "store": [store_client],
        }
    )

    dispatcher = BackgroundDispatcher(helper_config=helper_config)
    cache = EmbeddingCache(max_size=int(helper_config.get_number_val("EMBED_CACHE_MAX_SIZE", default=DEFAULT_MAX_SIZE)))
    embedding_service = EmbeddingService(
        helper_config=helper_config,
        embed_clients=embed_clients,
        cache=cache,
        dispatcher=dispatcher,
        store_client=store_client,
        preferred_engine=embed_manager.get_preferred_engine(),
    )
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

    app.state.dispatcher = dispatcher
    app.state.session_manager = session_manager
    app.state.chat_service = RAGChatService(
        helper_config=helper_config,
        embedding_service=embedding_service,
        context_retriever=context_retriever,
        prompt_assembler=PromptAssembler(helper_config=helper_config),
        generation_service=generation_service,
        intent_classifier=IntentClassifier(helper_config=helper_config, generation_service=generation_service),
        session_manager=session_manager,
        suggestion_generator=SuggestionGenerator(),
    )

    # while the app is running...
    yield

    # when the app shuts down, finish background writes and close all client connections
    logging.info("Shutting down, draining %d background writes...", dispatcher.pending())
    await dispatcher.drain()
    for client in all_clients:
        await client.close()
    logging.info("All clients closed.")


app = FastAPI(
    title="coach_rag_bridge",
    description=(
        "Retrieval-augmented conversational coach. Answers user messages about scholarships, "
        "learning plans and careers from retrieved opportunities, learning plans, profile data "
        "and conversation history, with provider fallback for embeddings and generation."
    ),
    version=app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chat_router)


@app.get("/health", tags=["health"])
async def health() -> dict:
    return {"status": "ok", "version": app_version}


async def check_connections(clients_by_type: dict[str, list[ClientInterface]]) -> None:
    """Check connectivity to all configured backends on startup.

    A single unreachable engine is a warning, the fallback chains route
    around it. A type with no reachable engine at all is fatal.

    Raises:
        Exception: If no engine of some client type is reachable.
    """
    for client_type, clients in clients_by_type.items():
        reachable = 0
        for client in clients:
            try:
                result = await client.do_healthcheck()
            except Exception as e:
                logging.warning("%s client '%s' is not reachable: %s", client_type, client.get_engine_name(), e)
                continue
            if result.is_success:
                reachable += 1
            else:
                logging.warning(
                    "%s client '%s' is not reachable (status %d).",
                    client_type,
                    client.get_engine_name(),
                    result.status_code,
                )
        if clients and reachable == 0:
            raise Exception(f"No {client_type} engine is reachable. Cannot serve chat requests.")
        logging.info("%d/%d %s engines reachable.", reachable, len(clients), client_type)


if __name__ == "__main__":
    import uvicorn

    logging.info(
        "Starting coach_rag_bridge API Server v%s from root dir: %s on port 8000...",
        app_version,
        os.environ.get("ROOT_DIR", "unknown"),
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
