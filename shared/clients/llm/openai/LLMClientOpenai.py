from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class LLMClientOpenai(LLMClientInterface):
    DEFAULT_MODEL = "gpt-3.5-turbo"
    DEFAULT_MAX_TOKENS = 4096
    LATENCY_RANK = 1
    COST_RANK = 2
    CONFIDENCE = 0.85

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://api.openai.com/v1", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "OpenAI"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://api.openai.com/v1"),
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
        return "/chat/completions"

    ################ PAYLOAD BUILDER ##################
    def get_completion_payload(self, prompt: str) -> dict:
        return {
            "model": self.chat_model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_completion_text(self, response_data: dict) -> str:
        """Extract the reply from {"choices": [{"message": {"content": "..."}}]}."""
        choices = response_data.get("choices") or []
        if not choices:
            raise ValueError(
                "OpenAI response does not contain choices. "
                "Response keys: %s" % list(response_data.keys())
            )
        content = (choices[0].get("message") or {}).get("content")
        if content is None:
            raise ValueError("OpenAI response choice does not contain message content.")
        return content

    def extract_token_usage(self, response_data: dict) -> int | None:
        return (response_data.get("usage") or {}).get("total_tokens")
