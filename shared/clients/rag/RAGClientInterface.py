from abc import abstractmethod
from datetime import datetime
from typing import Any

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig


class RAGClientInterface(ClientInterface):
    """Base class of vector-similarity search backends.

    The backend owns the vector index and the ranking RPCs; this client only
    builds requests and returns the raw result rows. Mapping rows to
    ContextItems is done by the ContextRetriever.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "rag"
        """
        return "rag"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_match_opportunities(self) -> str:
        """
        Returns the endpoint path of the opportunity ranking RPC.
        """
        pass

    @abstractmethod
    def _get_endpoint_match_learning_plans(self) -> str:
        """
        Returns the endpoint path of the learning-plan ranking RPC.
        """
        pass

    @abstractmethod
    def _get_endpoint_conversation_context(self) -> str:
        """
        Returns the endpoint path of the conversation-context RPC.
        """
        pass

    @abstractmethod
    def _get_endpoint_turn_index(self) -> str:
        """
        Returns the endpoint path of the semantic chat turn index.
        """
        pass

    @abstractmethod
    def _get_endpoint_user_context(self) -> str:
        """
        Returns the endpoint path of the user-context embedding records.
        """
        pass

    @abstractmethod
    def _get_endpoint_knowledge_entities(self) -> str:
        """
        Returns the endpoint path of the knowledge entity records.
        """
        pass

    ########### PAYLOAD BUILDER ##############
    @abstractmethod
    def get_match_opportunities_payload(self, query_embedding: list[float], user_id: str, threshold: float, count: int, recency_boost: float) -> dict:
        """
        Builds the request body of the opportunity ranking RPC.

        Args:
            query_embedding (list[float]): The query vector.
            user_id (str): The user the ranking is personalised for.
            threshold (float): Minimum similarity of returned rows.
            count (int): Maximum number of returned rows.
            recency_boost (float): Weight of the recency bonus applied by the RPC.

        Returns:
            dict: The payload for the RPC request.
        """
        pass

    @abstractmethod
    def get_match_learning_plans_payload(self, query_embedding: list[float], user_skills: list[str], difficulty: str, threshold: float, count: int) -> dict:
        """
        Builds the request body of the learning-plan ranking RPC.

        Args:
            query_embedding (list[float]): The query vector.
            user_skills (list[str]): Current skills of the user, used for skill matching.
            difficulty (str): Preferred difficulty ("easy", "medium", "hard" or "any").
            threshold (float): Minimum similarity of returned rows.
            count (int): Maximum number of returned rows.

        Returns:
            dict: The payload for the RPC request.
        """
        pass

    @abstractmethod
    def get_conversation_context_payload(self, user_id: str, session_id: str | None, limit: int, threshold: float) -> dict:
        pass

    @abstractmethod
    def get_recent_turns_params(self, user_id: str, since: datetime, limit: int) -> dict:
        """
        Builds the query parameters selecting the turns of a user created at or after `since`, newest first.
        """
        pass

    @abstractmethod
    def get_user_context_params(self, user_id: str) -> dict:
        pass

    @abstractmethod
    def get_knowledge_entities_params(self, limit: int) -> dict:
        """
        Builds the query parameters selecting the most popular knowledge entities.
        """
        pass

    @abstractmethod
    def get_turn_embedding_row(self, user_id: str, session_id: str, message_id: str, role: str, text: str, embedding: list[float], intent: str | None, entities: list[str], sentiment: float | None, created_at: datetime) -> dict:
        """
        Builds the row written to the semantic chat turn index.
        """
        pass

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_rows(self, raw_response: Any) -> list[dict]:
        """
        Extracts the result rows of a search or select response.

        Args:
            raw_response (Any): The parsed JSON response body.

        Returns:
            list[dict]: The result rows, empty if the backend returned none.
        """
        if raw_response is None:
            return []
        if isinstance(raw_response, dict):
            return [raw_response]
        return list(raw_response)

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_match_opportunities(self, query_embedding: list[float], user_id: str, threshold: float, count: int, recency_boost: float = 0.1) -> list[dict]:
        """Rank opportunity records against a query vector.

        Returns:
            list[dict]: Rows with at least id, title, summary, category, provider, similarity and final_score.
        """
        resp = await self.do_request(
            method="POST",
            json=self.get_match_opportunities_payload(query_embedding, user_id, threshold, count, recency_boost),
            endpoint=self._get_endpoint_match_opportunities(),
            raise_on_error=True,
        )
        return self.extract_rows(resp.json())

    async def do_match_learning_plans(self, query_embedding: list[float], user_skills: list[str], difficulty: str, threshold: float, count: int) -> list[dict]:
        """Rank learning-plan records against a query vector and the user's skills.

        Returns:
            list[dict]: Rows with at least id, title, description, skills, difficulty, duration, similarity and skill_match_score.
        """
        resp = await self.do_request(
            method="POST",
            json=self.get_match_learning_plans_payload(query_embedding, user_skills, difficulty, threshold, count),
            endpoint=self._get_endpoint_match_learning_plans(),
            raise_on_error=True,
        )
        return self.extract_rows(resp.json())

    async def do_match_knowledge_entities(self, limit: int) -> list[dict]:
        resp = await self.do_request(
            method="GET",
            params=self.get_knowledge_entities_params(limit),
            endpoint=self._get_endpoint_knowledge_entities(),
            raise_on_error=True,
        )
        return self.extract_rows(resp.json())

    async def do_fetch_conversation_context(self, user_id: str, session_id: str | None, limit: int, threshold: float = 0.75) -> list[dict]:
        """Fetch the conversation context of a user, turns of the given session first.

        Returns:
            list[dict]: Rows with message_id, message_text, message_type, message_intent, created_at and relevance_score.
        """
        resp = await self.do_request(
            method="POST",
            json=self.get_conversation_context_payload(user_id, session_id, limit, threshold),
            endpoint=self._get_endpoint_conversation_context(),
            raise_on_error=True,
        )
        return self.extract_rows(resp.json())

    async def do_fetch_recent_turns(self, user_id: str, since: datetime, limit: int) -> list[dict]:
        """Fetch indexed turns of a user inside a time window, newest first. Rows may carry their embedding."""
        resp = await self.do_request(
            method="GET",
            params=self.get_recent_turns_params(user_id, since, limit),
            endpoint=self._get_endpoint_turn_index(),
            raise_on_error=True,
        )
        return self.extract_rows(resp.json())

    async def do_fetch_user_context_record(self, user_id: str) -> dict | None:
        """Fetch the user-context embedding record of a user.

        Returns:
            dict | None: The record, or None if the user has none yet.
        """
        resp = await self.do_request(
            method="GET",
            params=self.get_user_context_params(user_id),
            endpoint=self._get_endpoint_user_context(),
            raise_on_error=True,
        )
        rows = self.extract_rows(resp.json())
        return rows[0] if rows else None

    async def do_store_turn_embedding(self, user_id: str, session_id: str, message_id: str, role: str, text: str, embedding: list[float], intent: str | None = None, entities: list[str] | None = None, sentiment: float | None = None, created_at: datetime | None = None) -> None:
        """Write one chat turn and its embedding to the semantic turn index."""
        row = self.get_turn_embedding_row(
            user_id=user_id,
            session_id=session_id,
            message_id=message_id,
            role=role,
            text=text,
            embedding=embedding,
            intent=intent,
            entities=entities or [],
            sentiment=sentiment,
            created_at=created_at or datetime.now(),
        )
        await self.do_request(
            method="POST",
            json=row,
            endpoint=self._get_endpoint_turn_index(),
            additional_headers={"Prefer": "return=minimal"},
            raise_on_error=True,
        )
