from abc import abstractmethod

import httpx
from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.generation import LLMReply


class LLMClientInterface(ClientInterface):
    """Base class of all text generation backends.

    Subclasses declare a latency rank, a cost rank and a static confidence
    prior. The generation service orders backends by these ranks depending on
    the urgency of a request.
    """

    DEFAULT_MODEL: str = ""
    DEFAULT_TEMPERATURE: float = 0.7
    DEFAULT_MAX_TOKENS: int = 4096
    # lower is faster
    LATENCY_RANK: int = 99
    # lower is cheaper
    COST_RANK: int = 99
    CONFIDENCE: float = 0.5

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # chat / completion config
        self.chat_model: str = self.get_config_val("MODEL", default=self.DEFAULT_MODEL, val_type="string")
        self.temperature: float = float(self.get_config_val("TEMPERATURE", default=self.DEFAULT_TEMPERATURE, val_type="number"))
        self.max_tokens: int = int(self.get_config_val("MAX_TOKENS", default=self.DEFAULT_MAX_TOKENS, val_type="number"))

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "llm"

    def get_latency_rank(self) -> int:
        return self.LATENCY_RANK

    def get_cost_rank(self) -> int:
        return self.COST_RANK

    def get_confidence(self) -> float:
        return self.CONFIDENCE

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_completion(self) -> str:
        """Returns the endpoint path for completion requests (e.g. "/chat/completions")."""
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_completion_payload(self, prompt: str) -> dict:
        """Build the backend-specific request body for a single-prompt completion.

        Args:
            prompt (str): The fully assembled prompt.

        Returns:
            dict: JSON-serialisable request body.
        """
        pass

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    @abstractmethod
    def extract_completion_text(self, response_data: dict) -> str:
        """Extract the reply text from a raw completion response.

        Raises:
            ValueError: If the response does not contain a reply.
        """
        pass

    def extract_token_usage(self, response_data: dict) -> int | None:
        """Total tokens (prompt and reply) reported by the backend, or None."""
        return None

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_complete(self, prompt: str) -> LLMReply:
        """Send a completion request and return the reply text.

        Args:
            prompt (str): The fully assembled prompt.

        Returns:
            LLMReply: Reply text plus reported token usage.

        Raises:
            Exception: If the HTTP request fails.
            ValueError: If the response does not contain a valid reply.
        """
        response: httpx.Response = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_completion(),
            json=self.get_completion_payload(prompt),
            raise_on_error=True,
        )
        response_data = response.json()
        return LLMReply(
            text=self.extract_completion_text(response_data),
            total_tokens=self.extract_token_usage(response_data),
        )
