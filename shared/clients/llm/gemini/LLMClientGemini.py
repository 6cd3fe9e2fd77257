from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class LLMClientGemini(LLMClientInterface):
    DEFAULT_MODEL = "gemini-1.5-flash"
    DEFAULT_MAX_TOKENS = 8192
    LATENCY_RANK = 0
    COST_RANK = 3
    CONFIDENCE = 0.9

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
        return {}

    def _get_auth_params(self) -> dict:
        return {"key": self._api_key}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/models"

    def _get_endpoint_completion(self) -> str:
        return f"/models/{self.chat_model}:generateContent"

    ################ PAYLOAD BUILDER ##################
    def get_completion_payload(self, prompt: str) -> dict:
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": self.temperature, "maxOutputTokens": self.max_tokens},
        }

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_completion_text(self, response_data: dict) -> str:
        """Extract the reply from {"candidates": [{"content": {"parts": [{"text": "..."}]}}]}."""
        candidates = response_data.get("candidates") or []
        if not candidates:
            raise ValueError(
                "Gemini response does not contain candidates. "
                "Response keys: %s" % list(response_data.keys())
            )
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(part.get("text", "") for part in parts)

    def extract_token_usage(self, response_data: dict) -> int | None:
        return (response_data.get("usageMetadata") or {}).get("totalTokenCount")
