"""Embedding generation with caching and ordered provider fallback.

Texts are normalised once, looked up in the cache under the preferred
provider, then sent to the configured backends in an order that depends on
the text length. The first backend that returns a vector of its declared
dimension wins. Usage records are written in the background.
"""

import asyncio
import hashlib

from services.rag_chat.EmbeddingCache import EmbeddingCache
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.exceptions import AllProvidersExhaustedError, EmptyInputError, ProviderError
from shared.helper.HelperBackground import BackgroundDispatcher
from shared.helper.HelperConfig import HelperConfig
from shared.helper.text_helper import estimate_tokens, normalize_text
from shared.models.embedding import ContextualEmbedding, EmbeddingResult, EmbeddingUsageRecord

LONG_TEXT_CHARS = 4000
MEDIUM_TEXT_CHARS = 1000

# content type -> engine best suited for it
OPTIMAL_ENGINES: dict[str, str] = {
    "opportunity": "openai",
    "learning_plan": "openai",
    "user_profile": "openai",
    "chat": "cohere",
}


def get_provider_order(
    preferred: str,
    text_length: int,
    clients: list[EmbedClientInterface],
) -> list[EmbedClientInterface]:
    """Order embedding backends for one text.

    Long texts go to the backends with the largest input capacity first,
    medium texts to the preferred backend first, short texts to the fastest
    backends first. Ties keep the configured order. Every configured backend
    appears exactly once.

    Args:
        preferred (str): Engine name of the preferred backend.
        text_length (int): Length of the normalised text in characters.
        clients (list[EmbedClientInterface]): Configured backends in configured order.

    Returns:
        list[EmbedClientInterface]: Candidates in the order they are tried.
    """
    if text_length > LONG_TEXT_CHARS:
        return sorted(clients, key=lambda c: -c.get_capacity())
    if text_length > MEDIUM_TEXT_CHARS:
        head = [c for c in clients if c.get_engine_name() == preferred]
        return head + [c for c in clients if c.get_engine_name() != preferred]
    return sorted(clients, key=lambda c: c.get_latency_rank())


class EmbeddingService:
    def __init__(
        self,
        helper_config: HelperConfig,
        embed_clients: list[EmbedClientInterface],
        cache: EmbeddingCache,
        dispatcher: BackgroundDispatcher,
        store_client: StoreClientInterface | None = None,
        preferred_engine: str | None = None,
    ) -> None:
        if not embed_clients:
            raise ValueError("EmbeddingService needs at least one embedding client.")
        self.logging = helper_config.get_logger()
        self._clients = embed_clients
        self._cache = cache
        self._dispatcher = dispatcher
        self._store_client = store_client
        self._default_preferred = self._known_engine(preferred_engine) or embed_clients[0].get_engine_name()

    ##########################################
    ################ GETTER ##################
    ##########################################

    def _known_engine(self, engine: str | None) -> str | None:
        if not engine:
            return None
        engine = engine.strip().lower()
        if engine in self.get_engine_names():
            return engine
        self.logging.warning("Embedding provider '%s' is not configured, ignoring preference.", engine)
        return None

    def get_engine_names(self) -> list[str]:
        return [client.get_engine_name() for client in self._clients]

    def _get_client(self, engine: str) -> EmbedClientInterface:
        for client in self._clients:
            if client.get_engine_name() == engine:
                return client
        raise KeyError(engine)

    def optimal_provider_for(self, content_type: str | None) -> str:
        """Engine best suited for a content type, or the default preferred engine if it is not configured."""
        engine = OPTIMAL_ENGINES.get(content_type or "", "openai")
        return engine if engine in self.get_engine_names() else self._default_preferred

    ##########################################
    ################ EMBED ###################
    ##########################################

    async def embed(
        self,
        text: str,
        preferred_provider: str | None = None,
        use_cache: bool = True,
        content_type: str | None = None,
        owner_id: str | None = None,
    ) -> EmbeddingResult:
        """Embed one text with cache lookup and provider fallback.

        Args:
            text (str): Raw input text.
            preferred_provider (str | None): Engine to try first for medium-length texts and to key the cache.
            use_cache (bool): Read from and write to the embedding cache.
            content_type (str | None): Recorded in the usage log.
            owner_id (str | None): Recorded in the usage log.

        Returns:
            EmbeddingResult: The embedding of the normalised text.

        Raises:
            EmptyInputError: If the text is empty after normalisation.
            AllProvidersExhaustedError: If every backend failed.
        """
        clean_text = normalize_text(text)
        if not clean_text:
            raise EmptyInputError("Text is empty after normalisation.")

        preferred = self._known_engine(preferred_provider) or self._default_preferred

        if use_cache:
            cached = self._cache.get(preferred, clean_text)
            if cached is not None:
                self.logging.debug("Embedding cache hit for %s content.", content_type or "untyped")
                return cached

        attempted: list[str] = []
        for client in get_provider_order(preferred, len(clean_text), self._clients):
            attempted.append(client.get_engine_name())
            try:
                result = await self._embed_with(client, clean_text)
            except ProviderError as e:
                self.logging.warning("Embedding failed, trying next provider: %s", e)
                continue

            if use_cache:
                self._cache.put(preferred, clean_text, result)
            self._dispatch_usage(client, result, owner_id, content_type)
            return result

        raise AllProvidersExhaustedError("embedding", attempted)

    async def _embed_with(self, client: EmbedClientInterface, clean_text: str) -> EmbeddingResult:
        engine = client.get_engine_name()
        try:
            response = await client.do_embed([clean_text])
        except Exception as e:
            raise ProviderError(engine, str(e)) from e

        vector = response.vectors[0]
        if len(vector) != client.dimension:
            raise ProviderError(
                engine,
                "returned %d dimensions, declared %d" % (len(vector), client.dimension),
            )
        tokens = response.total_tokens if response.total_tokens is not None else estimate_tokens(clean_text)
        return EmbeddingResult(
            vector=vector,
            provider_id=engine,
            model_id=client.embed_model,
            dimension_count=client.dimension,
            token_usage=tokens,
            content_hash=hashlib.sha256(clean_text.encode("utf-8")).hexdigest(),
        )

    def _dispatch_usage(
        self,
        client: EmbedClientInterface,
        result: EmbeddingResult,
        owner_id: str | None,
        content_type: str | None,
    ) -> None:
        if self._store_client is None:
            return
        record = EmbeddingUsageRecord(
            provider_id=result.provider_id,
            model_id=result.model_id,
            dimension_count=result.dimension_count,
            owner_id=owner_id,
            content_type=content_type,
            tokens=result.token_usage,
            estimated_cost=client.estimate_cost(result.token_usage),
        )
        self._dispatcher.dispatch(
            self._store_client.do_log_embedding_usage(record.model_dump(mode="json")),
            "embedding usage log",
        )

    ##########################################
    ################ BATCH ###################
    ##########################################

    async def embed_batch(
        self,
        items: list[tuple[str, dict]],
        preferred_provider: str | None = None,
    ) -> list[EmbeddingResult]:
        """Embed many texts in rate-limited chunks.

        Chunk size and the pause between chunks come from the preferred
        backend. Items of one chunk run concurrently. Any failure aborts the
        whole batch and nothing is returned.

        Args:
            items (list[tuple[str, dict]]): (text, metadata) pairs. metadata may carry "content_type" and "owner_id".
            preferred_provider (str | None): Engine whose limits size the chunks.

        Returns:
            list[EmbeddingResult]: One result per item, in input order.
        """
        preferred = self._known_engine(preferred_provider) or self._default_preferred
        client = self._get_client(preferred)
        batch_size = client.get_batch_size()
        delay = client.get_batch_delay_seconds()

        results: list[EmbeddingResult] = []
        for start in range(0, len(items), batch_size):
            chunk = items[start:start + batch_size]
            try:
                chunk_results = await asyncio.gather(*[
                    self.embed(
                        text,
                        preferred_provider=preferred,
                        content_type=(metadata or {}).get("content_type"),
                        owner_id=(metadata or {}).get("owner_id"),
                    )
                    for text, metadata in chunk
                ])
            except Exception as e:
                self.logging.error(
                    "Batch embedding failed for items %d-%d, discarding batch: %s",
                    start, start + len(chunk) - 1, e,
                )
                raise
            results.extend(chunk_results)
            if start + batch_size < len(items):
                await asyncio.sleep(delay)
        return results

    ##########################################
    ############## CONTEXTUAL ################
    ##########################################

    @staticmethod
    def decorate_for_context(content: str, content_type: str | None, metadata: dict) -> str:
        if content_type == "opportunity":
            return (
                f"Opportunity: {metadata.get('title', '')}\n{content}\n"
                f"Provider: {metadata.get('provider', '')}\nCategory: {metadata.get('category', '')}"
            )
        if content_type == "learning_plan":
            skills = ", ".join(metadata.get("skills") or [])
            return (
                f"Learning Plan: {metadata.get('title', '')}\n{content}\n"
                f"Skills: {skills}\nDifficulty: {metadata.get('difficulty', '')}"
            )
        if content_type == "chat":
            return f"Chat message: {content}"
        if content_type == "user_profile":
            return f"User profile: {content}"
        return content

    async def embed_contextual(
        self,
        content: str,
        content_type: str,
        metadata: dict | None = None,
        owner_id: str | None = None,
    ) -> ContextualEmbedding:
        """Embed content decorated for its type with the backend best suited for that type.

        Returns:
            ContextualEmbedding: The result, a hash of the decorated text and enriched metadata.
        """
        metadata = metadata or {}
        decorated = self.decorate_for_context(content, content_type, metadata)
        result = await self.embed(
            decorated,
            preferred_provider=self.optimal_provider_for(content_type),
            content_type=content_type,
            owner_id=owner_id,
        )
        return ContextualEmbedding(
            result=result,
            context_hash=hashlib.sha256(decorated.encode("utf-8")).hexdigest(),
            metadata={
                **metadata,
                "original_length": len(content),
                "enhanced_length": len(decorated),
                "content_type": content_type,
            },
        )
