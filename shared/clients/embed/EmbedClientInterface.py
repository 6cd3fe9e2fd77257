from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.clients.embed.models.EmbedResponse import EmbedResponse
from shared.helper.HelperConfig import HelperConfig


class EmbedClientInterface(ClientInterface):
    """Base class of all embedding backends.

    Subclasses declare their capacity and cost profile as class constants.
    Model name, dimension and max input length can be overridden per engine
    through env, e.g. EMBED_OPENAI_MODEL, EMBED_OPENAI_DIMENSIONS,
    EMBED_OPENAI_MODEL_MAX_CHARS.
    """

    DEFAULT_MODEL: str = ""
    DEFAULT_DIMENSION: int = 0
    MAX_INPUT_TOKENS: int = 512
    BATCH_SIZE: int = 10
    BATCH_DELAY_MS: int = 100
    COST_PER_1K_TOKENS: float = 0.0
    # lower is faster / cheaper per call
    LATENCY_RANK: int = 99

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # model and embedding config
        self.embed_model: str = self.get_config_val("MODEL", default=self.DEFAULT_MODEL, val_type="string")
        self.dimension: int = int(self.get_config_val("DIMENSIONS", default=self.DEFAULT_DIMENSION, val_type="number"))
        self.max_input_chars: int = int(
            self.get_config_val("MODEL_MAX_CHARS", default=self.MAX_INPUT_TOKENS * 4, val_type="number")
        )

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "embed"

    def get_capacity(self) -> int:
        """Maximum input tokens accepted per text. Used to order providers for long texts."""
        return self.MAX_INPUT_TOKENS

    def get_batch_size(self) -> int:
        return self.BATCH_SIZE

    def get_batch_delay_seconds(self) -> float:
        return self.BATCH_DELAY_MS / 1000.0

    def get_latency_rank(self) -> int:
        return self.LATENCY_RANK

    def estimate_cost(self, tokens: int) -> float:
        """Estimated cost in USD of embedding the given number of tokens."""
        return (tokens / 1000.0) * self.COST_PER_1K_TOKENS

    ################ ENDPOINTS ##################
    @abstractmethod
    def get_endpoint_embedding(self) -> str:
        """
        Returns the endpoint path for embedding requests (e.g. "/embeddings").
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_embed_payload(self, texts: list[str]) -> dict:
        """Build the backend-specific request body for an embedding request.

        Args:
            texts (list[str]): The texts to embed, already truncated to max_input_chars.

        Returns:
            dict: JSON-serialisable request body.
        """
        pass

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    @abstractmethod
    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract embedding vectors from a raw embedding API response.

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the input texts.

        Raises:
            ValueError: If the response format is invalid or embeddings are empty.
        """
        pass

    def extract_token_usage(self, response_data: dict) -> int | None:
        """Total tokens billed for the request, or None when the backend does not say."""
        return None

    ##########################################
    ############### REQUESTS #################
    ##########################################

    def truncate(self, text: str) -> str:
        return text[: self.max_input_chars]

    async def do_embed(self, texts: list[str] | str) -> EmbedResponse:
        """Send an embedding request and return the extracted vectors.

        Args:
            texts (list[str] | str): One or more texts to embed.

        Returns:
            EmbedResponse: Vectors in input order plus reported token usage.

        Raises:
            Exception: If the HTTP request fails (status != 200).
            ValueError: If the response does not contain one valid embedding per input.
        """
        texts = [texts] if isinstance(texts, str) else texts
        body = self.get_embed_payload([self.truncate(t) for t in texts])
        response = await self.do_request(method="POST", endpoint=self.get_endpoint_embedding(), json=body)
        if response.status_code != 200:
            self.logging.error(
                "Embedding request to '%s' failed: status %d, body: %s",
                self.get_engine_name(),
                response.status_code,
                response.text[:200],
            )
            raise Exception("Embedding request to '%s' failed with status %d." % (self.get_engine_name(), response.status_code))
        response_data = response.json()
        vectors = self.extract_embeddings_from_response(response_data)
        if len(vectors) != len(texts):
            raise ValueError(
                "Embedding backend '%s' returned %d vectors for %d inputs."
                % (self.get_engine_name(), len(vectors), len(texts))
            )
        return EmbedResponse(vectors=vectors, total_tokens=self.extract_token_usage(response_data))
