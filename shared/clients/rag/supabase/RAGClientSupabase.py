from datetime import datetime

from shared.helper.HelperConfig import HelperConfig
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.models.config import EnvConfig


class RAGClientSupabase(RAGClientInterface):
    """Vector search on Supabase (pgvector) through its PostgREST API."""

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

    def _get_endpoint_match_opportunities(self) -> str:
        return "/rpc/match_contextual_scholarships"

    def _get_endpoint_match_learning_plans(self) -> str:
        return "/rpc/match_relevant_roadmaps"

    def _get_endpoint_conversation_context(self) -> str:
        return "/rpc/get_conversation_context"

    def _get_endpoint_turn_index(self) -> str:
        return "/chat_history_embeddings"

    def _get_endpoint_user_context(self) -> str:
        return "/user_context_embeddings"

    def _get_endpoint_knowledge_entities(self) -> str:
        return "/knowledge_entities"

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def get_match_opportunities_payload(self, query_embedding: list[float], user_id: str, threshold: float, count: int, recency_boost: float) -> dict:
        return {
            "query_embedding": query_embedding,
            "user_id_param": user_id,
            "match_threshold": threshold,
            "match_count": count,
            "recency_boost": recency_boost,
        }

    def get_match_learning_plans_payload(self, query_embedding: list[float], user_skills: list[str], difficulty: str, threshold: float, count: int) -> dict:
        return {
            "query_embedding": query_embedding,
            "user_skills": user_skills,
            "difficulty_preference": difficulty,
            "match_threshold": threshold,
            "match_count": count,
        }

    def get_conversation_context_payload(self, user_id: str, session_id: str | None, limit: int, threshold: float) -> dict:
        return {
            "user_id_param": user_id,
            "session_id_param": session_id,
            "context_limit": limit,
            "similarity_threshold": threshold,
        }

    def get_recent_turns_params(self, user_id: str, since: datetime, limit: int) -> dict:
        return {
            "select": "message_id,message_text,message_type,message_intent,created_at,embedding",
            "user_id": f"eq.{user_id}",
            "created_at": f"gte.{since.isoformat()}",
            "order": "created_at.desc",
            "limit": limit,
        }

    def get_user_context_params(self, user_id: str) -> dict:
        return {"select": "*", "user_id": f"eq.{user_id}", "limit": 1}

    def get_knowledge_entities_params(self, limit: int) -> dict:
        return {"select": "*", "order": "popularity_score.desc", "limit": limit}

    def get_turn_embedding_row(self, user_id: str, session_id: str, message_id: str, role: str, text: str, embedding: list[float], intent: str | None, entities: list[str], sentiment: float | None, created_at: datetime) -> dict:
        return {
            "user_id": user_id,
            "session_id": session_id,
            "message_id": message_id,
            "message_text": text,
            "message_type": role,
            "embedding": embedding,
            "message_intent": intent,
            "context_entities": entities,
            "sentiment_score": sentiment,
            "created_at": created_at.isoformat(),
        }
