from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class EmbedClientCohere(EmbedClientInterface):
    DEFAULT_MODEL = "embed-english-light-v3.0"
    DEFAULT_DIMENSION = 384
    MAX_INPUT_TOKENS = 512
    BATCH_SIZE = 50
    BATCH_DELAY_MS = 50  # 20 RPS
    COST_PER_1K_TOKENS = 0.0001
    LATENCY_RANK = 0

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://api.cohere.com/v1", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")
        self._input_type = self.get_config_val("INPUT_TYPE", default="search_document", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Cohere"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://api.cohere.com/v1"),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
            EnvConfig(env_key="INPUT_TYPE", val_type="string", default="search_document"),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"Authorization": f"Bearer {self._api_key}"}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/models"

    def get_endpoint_embedding(self) -> str:
        return "/embed"

    ################ PAYLOAD BUILDER ##################
    def get_embed_payload(self, texts: list[str]) -> dict:
        return {"model": self.embed_model, "texts": texts, "input_type": self._input_type}

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract vectors from {"embeddings": [[...]]} or {"embeddings": {"float": [[...]]}}."""
        embeddings = response_data.get("embeddings")
        if isinstance(embeddings, dict):
            embeddings = embeddings.get("float")
        if not embeddings or not embeddings[0]:
            raise ValueError(
                "Cohere response does not contain valid embeddings. "
                f"Response keys: {list(response_data.keys())}"
            )
        return embeddings

    def extract_token_usage(self, response_data: dict) -> int | None:
        billed = (response_data.get("meta") or {}).get("billed_units") or {}
        tokens = billed.get("input_tokens")
        return int(tokens) if tokens is not None else None
