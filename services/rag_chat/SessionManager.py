"""Conversation session lifecycle: start, turn persistence, end with summary.

Sessions move created -> active -> ended and are never reopened. Turns go to
the primary store first, in arrival order. The message counter and the
semantic turn index are best-effort background writes.
"""

import uuid
from datetime import datetime, timezone

from pydantic import ValidationError

from services.rag_chat.ContextRetriever import ContextRetriever
from services.rag_chat.EmbeddingService import EmbeddingService
from services.rag_chat.GenerationService import GenerationService
from services.rag_chat.IntentClassifier import analyze_sentiment
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.exceptions import AllProvidersExhaustedError, SessionClosedError, SessionNotFoundError
from shared.helper.HelperBackground import BackgroundDispatcher
from shared.helper.HelperConfig import HelperConfig
from shared.models.context import UserContext
from shared.models.conversation import (
    ChatTurn,
    ConversationSession,
    Intent,
    SessionStart,
    SessionSummary,
    TurnRole,
    Urgency,
)

NO_MESSAGES_SUMMARY = "No messages found in this session."

SUMMARY_PROMPT = """Summarize this conversation in 2-3 sentences:

{conversation}

Focus on the main topics discussed and any outcomes or recommendations provided."""

TOPIC_RECOMMENDATIONS: dict[str, str] = {
    "scholarship": "Continue exploring scholarship opportunities that match your profile",
    "roadmap": "Start working on the learning plan tasks we discussed",
    "career": "Research the career paths we talked about",
}


def build_welcome_message(user_context: UserContext) -> str:
    name = user_context.profile.get("name") or "there"
    interests = user_context.profile.get("careerInterests") or []

    message = (
        f"Hi {name}! 👋 I'm your AI opportunity coach, ready to help you discover scholarships, "
        "create learning plans, and guide your career journey."
    )
    if interests:
        message += f" I see you're interested in {' and '.join(interests[:2])}."
    if user_context.active_goals:
        message += " I noticed you have some active goals we can work on together."
    return message + "\n\nWhat would you like to explore today?"


def extract_key_topics(turns: list[ChatTurn]) -> list[str]:
    """Distinct recorded intents in first-seen order."""
    return list(dict.fromkeys(turn.intent for turn in turns if turn.intent))


def average_sentiment(turns: list[ChatTurn]) -> float | None:
    scores = [turn.sentiment_score for turn in turns if turn.sentiment_score is not None]
    if not scores:
        return None
    return sum(scores) / len(scores)


class SessionManager:
    def __init__(
        self,
        helper_config: HelperConfig,
        store_client: StoreClientInterface,
        rag_client: RAGClientInterface,
        embedding_service: EmbeddingService,
        generation_service: GenerationService,
        context_retriever: ContextRetriever,
        dispatcher: BackgroundDispatcher,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._store_client = store_client
        self._rag_client = rag_client
        self._embedding_service = embedding_service
        self._generation_service = generation_service
        self._context_retriever = context_retriever
        self._dispatcher = dispatcher

    ##########################################
    ################ START ###################
    ##########################################

    async def start_session(self, user_id: str, first_message: str | None = None) -> SessionStart:
        """Create and persist a new active session and greet the user.

        Args:
            user_id (str): Owner of the session.
            first_message (str | None): Optional opening message; only logged here, answering it is up to the caller.

        Returns:
            SessionStart: The new session id and a personalised welcome message.
        """
        session = ConversationSession(session_id=str(uuid.uuid4()), user_id=user_id)
        await self._store_client.do_upsert_session(session.model_dump(mode="json", exclude_none=True))
        self.logging.info("Started session %s for user %s.", session.session_id, user_id)
        if first_message:
            self.logging.debug("Session %s opened with a first message of %d characters.", session.session_id, len(first_message))

        user_context = await self._context_retriever.get_user_context(user_id)
        return SessionStart(session_id=session.session_id, welcome_message=build_welcome_message(user_context))

    async def get_active_session(self, session_id: str, user_id: str | None = None) -> ConversationSession:
        """Look up a session that can still take turns.

        A session owned by another user is reported as not found.

        Raises:
            SessionNotFoundError: If no session has this id for this user.
            SessionClosedError: If the session has ended.
        """
        session_row = await self._store_client.do_get_session(session_id)
        if session_row is None or (user_id is not None and session_row.get("user_id") != user_id):
            raise SessionNotFoundError(session_id)
        session = ConversationSession.model_validate(session_row)
        if not session.is_active:
            raise SessionClosedError(session_id)
        return session

    ##########################################
    ################ TURNS ###################
    ##########################################

    async def record_exchange(
        self,
        user_id: str,
        session_id: str,
        user_message: str,
        assistant_message: str,
        intent: Intent,
    ) -> list[ChatTurn]:
        """Append a user/assistant turn pair to the session.

        The primary write is awaited and its failure propagates. Counter and
        semantic index writes run in the background.

        Returns:
            list[ChatTurn]: The user turn followed by the assistant turn.

        Raises:
            SessionNotFoundError: If the session does not exist for this user.
            SessionClosedError: If the session has ended.
        """
        await self.get_active_session(session_id, user_id)

        user_turn = ChatTurn(
            message_id=str(uuid.uuid4()),
            session_id=session_id,
            user_id=user_id,
            role=TurnRole.USER,
            text_content=user_message,
            intent=intent.primary,
            entities=list(intent.entities),
            sentiment_score=analyze_sentiment(user_message),
        )
        assistant_turn = ChatTurn(
            message_id=str(uuid.uuid4()),
            session_id=session_id,
            user_id=user_id,
            role=TurnRole.ASSISTANT,
            text_content=assistant_message,
            sentiment_score=analyze_sentiment(assistant_message),
        )
        turns = [user_turn, assistant_turn]

        await self._store_client.do_append_turns([turn.model_dump(mode="json") for turn in turns])

        self._dispatcher.dispatch(
            self._store_client.do_increment_session_messages(session_id, by=len(turns)),
            "session message counter",
        )
        for turn in turns:
            self._dispatcher.dispatch(self._index_turn(turn), "semantic turn index")
        return turns

    async def _index_turn(self, turn: ChatTurn) -> None:
        result = await self._embedding_service.embed(
            turn.text_content,
            preferred_provider=self._embedding_service.optimal_provider_for("chat"),
            content_type="chat",
            owner_id=turn.user_id,
        )
        await self._rag_client.do_store_turn_embedding(
            user_id=turn.user_id,
            session_id=turn.session_id,
            message_id=turn.message_id,
            role=turn.role,
            text=turn.text_content,
            embedding=result.vector,
            intent=turn.intent,
            entities=turn.entities,
            sentiment=turn.sentiment_score,
            created_at=turn.created_at,
        )

    ##########################################
    ################# END ####################
    ##########################################

    async def end_session(self, session_id: str) -> SessionSummary:
        """Summarise a session and mark it ended.

        is_active, ended_at, summary, key topics and sentiment are written in
        one update. Ending an ended session again overwrites those fields.

        Raises:
            SessionNotFoundError: If no session has this id.
        """
        session_row = await self._store_client.do_get_session(session_id)
        if session_row is None:
            raise SessionNotFoundError(session_id)
        if session_row.get("is_active") is False:
            self.logging.warning("Session %s was already ended, overwriting its summary.", session_id)

        turns = await self.get_history(session_id)
        if not turns:
            summary, topics, sentiment = NO_MESSAGES_SUMMARY, [], None
        else:
            topics = extract_key_topics(turns)
            sentiment = average_sentiment(turns)
            summary = await self._summarize(turns, topics)

        await self._store_client.do_end_session(
            session_id,
            {
                "is_active": False,
                "ended_at": datetime.now(timezone.utc).isoformat(),
                "summary": summary,
                "key_topics": topics,
                "sentiment_trend": sentiment,
            },
        )
        self.logging.info("Ended session %s with %d turns.", session_id, len(turns))
        return SessionSummary(summary=summary, key_topics=topics, recommendations=self.recommendations_for(topics))

    async def _summarize(self, turns: list[ChatTurn], topics: list[str]) -> str:
        conversation = "\n".join(f"{turn.role}: {turn.text_content}" for turn in turns)
        try:
            result = await self._generation_service.generate(
                SUMMARY_PROMPT.format(conversation=conversation), urgency=Urgency.LOW.value
            )
            return result.response_text
        except AllProvidersExhaustedError as e:
            self.logging.warning("Session summary generation failed, using fallback summary: %s", e)
            return f"Session covered {len(turns)} messages with topics including: {', '.join(topics) or 'general questions'}."

    ##########################################
    ################ QUERIES #################
    ##########################################

    def _to_turns(self, rows: list[dict]) -> list[ChatTurn]:
        turns = []
        for row in rows:
            try:
                turns.append(ChatTurn.model_validate(row))
            except ValidationError as e:
                self.logging.warning("Skipping malformed turn row %s: %s", row.get("message_id"), e)
        return turns

    async def get_history(self, session_id: str, limit: int | None = None) -> list[ChatTurn]:
        """Turns of a session, oldest first."""
        rows = await self._store_client.do_list_session_turns(session_id, limit=limit)
        return self._to_turns(rows)

    async def get_recent_turns(self, session_id: str, limit: int = 5) -> list[ChatTurn]:
        """The newest turns of a session, newest first."""
        rows = await self._store_client.do_list_session_turns(session_id, limit=limit, newest_first=True)
        return self._to_turns(rows)

    async def list_sessions(self, user_id: str, limit: int = 20) -> list[ConversationSession]:
        rows = await self._store_client.do_list_user_sessions(user_id, limit=limit)
        return [ConversationSession.model_validate(row) for row in rows]

    @staticmethod
    def recommendations_for(topics: list[str]) -> list[str]:
        return [TOPIC_RECOMMENDATIONS[topic] for topic in topics if topic in TOPIC_RECOMMENDATIONS]
