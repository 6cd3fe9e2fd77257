"""Text generation with urgency-dependent provider order and sequential fallback."""

from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.exceptions import AllProvidersExhaustedError, ProviderError
from shared.helper.HelperConfig import HelperConfig
from shared.helper.text_helper import estimate_tokens
from shared.models.conversation import Urgency
from shared.models.generation import GenerationResult


def get_generation_order(urgency: str, clients: list[LLMClientInterface]) -> list[LLMClientInterface]:
    """Order generation backends for one request.

    high: fastest first. low: cheapest first. Anything else keeps the
    configured order. sorted() is stable, so ties keep the configured order.
    """
    if urgency == Urgency.HIGH.value:
        return sorted(clients, key=lambda c: c.get_latency_rank())
    if urgency == Urgency.LOW.value:
        return sorted(clients, key=lambda c: c.get_cost_rank())
    return list(clients)


class GenerationService:
    def __init__(self, helper_config: HelperConfig, llm_clients: list[LLMClientInterface]) -> None:
        if not llm_clients:
            raise ValueError("GenerationService needs at least one LLM client.")
        self.logging = helper_config.get_logger()
        self._clients = llm_clients

    async def generate(self, prompt: str, urgency: str = Urgency.MEDIUM.value) -> GenerationResult:
        """Generate a reply, trying backends one after another until one succeeds.

        A later backend is only called once the earlier one has failed. An
        empty reply counts as a failure.

        Args:
            prompt (str): The assembled prompt.
            urgency (str): "low", "medium" or "high".

        Returns:
            GenerationResult: The first successful reply with the backend's static confidence.

        Raises:
            AllProvidersExhaustedError: If every backend failed.
        """
        attempted: list[str] = []
        for client in get_generation_order(urgency, self._clients):
            engine = client.get_engine_name()
            attempted.append(engine)
            try:
                return await self._generate_with(client, prompt)
            except ProviderError as e:
                self.logging.warning("Generation failed, trying next provider: %s", e)

        raise AllProvidersExhaustedError("generation", attempted)

    async def _generate_with(self, client: LLMClientInterface, prompt: str) -> GenerationResult:
        engine = client.get_engine_name()
        try:
            reply = await client.do_complete(prompt)
        except Exception as e:
            raise ProviderError(engine, str(e)) from e

        text = (reply.text or "").strip()
        if not text:
            raise ProviderError(engine, "returned an empty reply")

        tokens = reply.total_tokens if reply.total_tokens is not None else estimate_tokens(prompt + text)
        self.logging.debug("Generated %d characters with '%s' (%d tokens).", len(text), engine, tokens)
        return GenerationResult(
            response_text=text,
            confidence=client.get_confidence(),
            provider_id=engine,
            model_id=client.chat_model,
            token_estimate=tokens,
        )
