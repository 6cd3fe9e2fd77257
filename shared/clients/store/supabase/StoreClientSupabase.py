from typing import Any

from shared.helper.HelperConfig import HelperConfig
from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.models.config import EnvConfig


class StoreClientSupabase(StoreClientInterface):
    """Record store on Supabase tables through the PostgREST API."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Supabase"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"apikey": self._api_key, "Authorization": f"Bearer {self._api_key}"}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return f"{self._base_url.rstrip('/')}/rest/v1"

    def _get_endpoint_healthcheck(self) -> str:
        return ""

    def _get_endpoint_profiles(self) -> str:
        return "/user_profiles"

    def _get_endpoint_goals(self) -> str:
        return "/goals"

    def _get_endpoint_turns(self) -> str:
        return "/chat_messages"

    def _get_endpoint_sessions(self) -> str:
        return "/conversation_sessions"

    def _get_endpoint_increment_session_messages(self) -> str:
        return "/rpc/increment_session_messages"

    def _get_endpoint_usage_logs(self) -> str:
        return "/embedding_usage_logs"

    ################ FILTER BUILDER ##################
    def get_equals_params(self, field: str, value: Any, limit: int | None = None, order: str | None = None, descending: bool = False) -> dict:
        params: dict = {field: f"eq.{value}"}
        if order:
            params["order"] = f"{order}.{'desc' if descending else 'asc'}"
        if limit is not None:
            params["limit"] = limit
        return params

    def get_active_goals_params(self, user_id: str, limit: int) -> dict:
        return {
            "select": "id,title,description",
            "user_id": f"eq.{user_id}",
            "status": "eq.active",
            "order": "created_at.desc",
            "limit": limit,
        }

    def get_increment_payload(self, session_id: str, by: int) -> dict:
        return {"session_id_param": session_id, "increment_by": by}

    def get_insert_headers(self, upsert: bool = False) -> dict:
        if upsert:
            return {"Prefer": "resolution=merge-duplicates,return=minimal"}
        return {"Prefer": "return=minimal"}
