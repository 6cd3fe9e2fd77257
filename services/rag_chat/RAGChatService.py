"""Chat orchestration.

One user message runs through intent classification, query embedding,
concurrent context retrieval, prompt assembly and generation with provider
fallback. The exchange is then persisted and follow-up suggestions are
attached. Provider exhaustion or any other pipeline failure yields a static
fallback answer instead of an error.
"""

import time

from services.rag_chat.ContextRetriever import ContextRetriever
from services.rag_chat.EmbeddingService import EmbeddingService
from services.rag_chat.GenerationService import GenerationService
from services.rag_chat.IntentClassifier import IntentClassifier
from services.rag_chat.PromptAssembler import PromptAssembler
from services.rag_chat.SessionManager import SessionManager
from services.rag_chat.SuggestionGenerator import SuggestionGenerator
from shared.exceptions import (
    AllProvidersExhaustedError,
    EmptyInputError,
    PersistenceWarning,
    SessionClosedError,
    SessionNotFoundError,
)
from shared.helper.HelperConfig import HelperConfig
from shared.helper.text_helper import normalize_text
from shared.models.conversation import (
    ChatMessage,
    ChatResponse,
    ContextUsage,
    Intent,
    ResponseMetadata,
    SessionStart,
    SessionSummary,
)

FALLBACK_RESPONSE = (
    "I apologize, but I'm experiencing some technical difficulties right now. However, I'm still here "
    "to help! Could you please rephrase your question, or feel free to ask about scholarships, career "
    "advice, or learning roadmaps? I'm here to support your journey! 🌟"
)
FALLBACK_CONFIDENCE = 0.5
# session turns loaded when the caller sends no history
HISTORY_TURNS = 10


class RAGChatService:
    def __init__(
        self,
        helper_config: HelperConfig,
        embedding_service: EmbeddingService,
        context_retriever: ContextRetriever,
        prompt_assembler: PromptAssembler,
        generation_service: GenerationService,
        intent_classifier: IntentClassifier,
        session_manager: SessionManager,
        suggestion_generator: SuggestionGenerator,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._embedding_service = embedding_service
        self._context_retriever = context_retriever
        self._prompt_assembler = prompt_assembler
        self._generation_service = generation_service
        self._intent_classifier = intent_classifier
        self._session_manager = session_manager
        self._suggestion_generator = suggestion_generator

    ##########################################
    ################ CHAT ####################
    ##########################################

    async def generate_response(
        self,
        user_id: str,
        message: str,
        session_id: str | None = None,
        conversation_history: list[ChatMessage] | tuple = (),
    ) -> ChatResponse:
        """Answer one user message.

        Without a session id a new session is started for the message. Without
        a caller-supplied history the latest turns of the session are loaded.

        Args:
            user_id (str): The asking user.
            message (str): The user message.
            session_id (str | None): The active session the exchange belongs to.
            conversation_history (list[ChatMessage]): Recent turns known to the caller.

        Returns:
            ChatResponse: The generated answer, or the static fallback with is_fallback set.

        Raises:
            EmptyInputError: If the message is empty after normalisation.
            SessionNotFoundError: If the session does not exist for this user.
            SessionClosedError: If the session has ended.
        """
        started = time.monotonic()
        if not normalize_text(message):
            raise EmptyInputError("Message is empty after normalisation.")

        try:
            if session_id is None:
                session_id = (await self._session_manager.start_session(user_id, message)).session_id
                history = list(conversation_history)
            else:
                await self._session_manager.get_active_session(session_id, user_id)
                history = list(conversation_history) or await self._load_history(session_id)

            intent = await self._intent_classifier.classify(message)
            query = await self._embedding_service.embed(message, content_type="query", owner_id=user_id)
            context = await self._context_retriever.retrieve(
                user_id=user_id,
                query_text=message,
                session_id=session_id,
                query_embedding=query.vector,
            )
            prompt = self._prompt_assembler.assemble(message, context, intent, history)
            generation = await self._generation_service.generate(prompt, urgency=intent.urgency)
        except (EmptyInputError, SessionNotFoundError, SessionClosedError):
            raise
        except AllProvidersExhaustedError as e:
            self.logging.warning("Answering user %s with the fallback response: %s", user_id, e)
            return self.fallback_response(started, session_id)
        except Exception as e:
            self.logging.error("Chat pipeline failed for user %s: %s", user_id, e, exc_info=True)
            return self.fallback_response(started, session_id)

        try:
            await self._session_manager.record_exchange(
                user_id=user_id,
                session_id=session_id,
                user_message=message,
                assistant_message=generation.response_text,
                intent=intent,
            )
        except Exception as e:
            self.logging.error("%s", PersistenceWarning("chat turns", e))

        elapsed_ms = int((time.monotonic() - started) * 1000)
        self.logging.info(
            "Answered user %s with '%s' in %d ms (%d opportunities, %d learning plans, %d history items).",
            user_id, generation.provider_id, elapsed_ms,
            len(context.opportunities), len(context.learning_plans), len(context.chat_history),
        )
        return ChatResponse(
            session_id=session_id,
            response=generation.response_text,
            confidence=generation.confidence,
            context_used=ContextUsage(
                opportunities=len(context.opportunities),
                learning_plans=len(context.learning_plans),
                chat_history=len(context.chat_history),
            ),
            follow_up_suggestions=self._suggestion_generator.suggest(intent, context),
            metadata=ResponseMetadata(
                model=generation.model_id,
                provider=generation.provider_id,
                total_tokens=generation.token_estimate,
                response_time_ms=elapsed_ms,
            ),
        )

    async def _load_history(self, session_id: str) -> list[ChatMessage]:
        """Latest turns of the session, oldest first. Empty when the store is unavailable."""
        try:
            recent = await self._session_manager.get_recent_turns(session_id, limit=HISTORY_TURNS)
        except Exception as e:
            self.logging.warning("Could not load conversation history of session %s: %s", session_id, e)
            return []
        return [ChatMessage(role=turn.role, content=turn.text_content) for turn in reversed(recent)]

    def fallback_response(self, started: float | None = None, session_id: str | None = None) -> ChatResponse:
        elapsed_ms = int((time.monotonic() - started) * 1000) if started is not None else 0
        return ChatResponse(
            session_id=session_id,
            response=FALLBACK_RESPONSE,
            confidence=FALLBACK_CONFIDENCE,
            context_used=ContextUsage(),
            follow_up_suggestions=self._suggestion_generator.fallback_suggestions(),
            metadata=ResponseMetadata(model="fallback", provider="fallback", total_tokens=0, response_time_ms=elapsed_ms),
            is_fallback=True,
        )

    ##########################################
    ############### SESSIONS #################
    ##########################################

    async def start_session(self, user_id: str, first_message: str | None = None) -> SessionStart:
        return await self._session_manager.start_session(user_id, first_message)

    async def end_session(self, session_id: str) -> SessionSummary:
        return await self._session_manager.end_session(session_id)

    async def get_chat_suggestions(self, user_id: str, session_id: str | None = None, limit: int = 5) -> list[str]:
        """Suggestions steered by the latest intent of the session, padded with defaults.

        Any failure degrades to the default suggestions.
        """
        try:
            intents: list[str] = []
            if session_id:
                recent = await self._session_manager.get_recent_turns(session_id, limit=5)
                intents = [turn.intent for turn in recent if turn.intent]
            suggestions = self._suggestion_generator.suggest(Intent(primary=intents[0])) if intents else []
            suggestions += self._suggestion_generator.default_suggestions(limit)
            return list(dict.fromkeys(suggestions))[:limit]
        except Exception as e:
            self.logging.warning("Could not build chat suggestions for user %s: %s", user_id, e)
            return self._suggestion_generator.default_suggestions(limit)
