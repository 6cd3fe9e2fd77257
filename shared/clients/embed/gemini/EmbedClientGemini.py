from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class EmbedClientGemini(EmbedClientInterface):
    DEFAULT_MODEL = "embedding-001"
    DEFAULT_DIMENSION = 768
    MAX_INPUT_TOKENS = 2048
    BATCH_SIZE = 10
    BATCH_DELAY_MS = 200  # 5 RPS
    COST_PER_1K_TOKENS = 0.0000125
    LATENCY_RANK = 2

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val(
            "BASE_URL", default="https://generativelanguage.googleapis.com/v1beta", val_type="string"
        )
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Gemini"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://generativelanguage.googleapis.com/v1beta"),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        # Gemini authenticates with the ?key= query parameter
        return {}

    def _get_auth_params(self) -> dict:
        return {"key": self._api_key}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/models"

    def get_endpoint_embedding(self) -> str:
        return f"/models/{self.embed_model}:batchEmbedContents"

    ################ PAYLOAD BUILDER ##################
    def get_embed_payload(self, texts: list[str]) -> dict:
        model = f"models/{self.embed_model}"
        return {
            "requests": [
                {"model": model, "content": {"parts": [{"text": text}]}}
                for text in texts
            ]
        }

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract vectors from {"embeddings": [{"values": [...]}, ...]}."""
        embeddings = response_data.get("embeddings")
        if not embeddings or not embeddings[0].get("values"):
            raise ValueError(
                "Gemini response does not contain valid embeddings. "
                f"Response keys: {list(response_data.keys())}"
            )
        return [item["values"] for item in embeddings]
