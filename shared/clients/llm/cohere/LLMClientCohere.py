from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class LLMClientCohere(LLMClientInterface):
    DEFAULT_MODEL = "command"
    DEFAULT_MAX_TOKENS = 4096
    LATENCY_RANK = 2
    COST_RANK = 1
    CONFIDENCE = 0.8

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://api.cohere.com/v1", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")

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
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"Authorization": f"Bearer {self._api_key}"}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/models"

    def _get_endpoint_completion(self) -> str:
        return "/chat"

    ################ PAYLOAD BUILDER ##################
    def get_completion_payload(self, prompt: str) -> dict:
        return {
            "model": self.chat_model,
            "message": prompt,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_completion_text(self, response_data: dict) -> str:
        text = response_data.get("text")
        if text is None:
            raise ValueError(
                "Cohere chat response does not contain text. "
                "Response keys: %s" % list(response_data.keys())
            )
        return text

    def extract_token_usage(self, response_data: dict) -> int | None:
        billed = (response_data.get("meta") or {}).get("billed_units") or {}
        if not billed:
            return None
        return int(billed.get("input_tokens", 0)) + int(billed.get("output_tokens", 0))
