"""Concurrent retrieval of opportunities, learning plans, chat history and user context.

The four branches of retrieve() run with asyncio.gather. Every branch absorbs
its own failure: it is logged as a RetrievalPartialFailure and replaced by an
empty list or a default UserContext, so one unreachable backend never aborts
the whole retrieval.
"""

import asyncio
import json
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable

from services.rag_chat.EmbeddingService import EmbeddingService
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.exceptions import RetrievalPartialFailure
from shared.helper.HelperConfig import HelperConfig
from shared.helper.text_helper import cosine_similarity, estimate_tokens
from shared.models.context import (
    ContextItem,
    Goal,
    HybridWeights,
    RetrievedContext,
    SourceType,
    UserContext,
)

OPPORTUNITY_RECENCY_BOOST = 0.1
HISTORY_CONTEXT_THRESHOLD = 0.75
HYBRID_THRESHOLD = 0.6
DEFAULT_HISTORY_SIMILARITY = 0.8
MAX_ACTIVE_GOALS = 5

SKILL_LEVEL_DIFFICULTY: dict[str, str] = {
    "beginner": "easy",
    "intermediate": "medium",
    "advanced": "hard",
}


##########################################
################ SCORING #################
##########################################

def _parse_timestamp(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        ts = value
    else:
        try:
            ts = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def recency_score(timestamp: Any, now: datetime | None = None) -> float:
    """Exponential decay with a 24 hour constant: exp(-age_hours / 24). 0 without a timestamp."""
    ts = _parse_timestamp(timestamp)
    if ts is None:
        return 0.0
    now = now or datetime.now(timezone.utc)
    age_hours = max(0.0, (now - ts).total_seconds() / 3600.0)
    return math.exp(-age_hours / 24.0)


def hybrid_score(item: ContextItem, weights: HybridWeights | None = None, now: datetime | None = None) -> float:
    """Weighted sum of semantic similarity, context score and recency.

    The weights are not normalised; callers keep their sum at or below 1.
    """
    weights = weights or HybridWeights()
    semantic = item.similarity_score or 0.0
    context = float(item.metadata.get("context_score") or 0.0)
    recency = recency_score(item.metadata.get("timestamp"), now=now)
    return semantic * weights.semantic + context * weights.context + recency * weights.recency


def skill_level_to_difficulty(skill_level: str | None) -> str:
    return SKILL_LEVEL_DIFFICULTY.get((skill_level or "").lower(), "any")


def deduplicate_by_id(items: list[ContextItem]) -> list[ContextItem]:
    """Keep the first occurrence of every id, preserving order."""
    seen: set[str] = set()
    unique: list[ContextItem] = []
    for item in items:
        if item.id in seen:
            continue
        seen.add(item.id)
        unique.append(item)
    return unique


def _parse_vector(raw: Any) -> list[float] | None:
    # pgvector columns come back as "[0.1,0.2,...]" strings through PostgREST
    if raw is None:
        return None
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return None
    if isinstance(raw, list):
        return [float(x) for x in raw]
    return None


##########################################
################ MAPPING #################
##########################################

def opportunity_item(row: dict) -> ContextItem:
    title = row.get("title") or ""
    return ContextItem(
        id=str(row.get("scholarship_id") or row.get("id")),
        text_content=f"{title}\n\n{row.get('summary') or ''}",
        source_type=SourceType.OPPORTUNITY,
        metadata={
            "title": title,
            "category": row.get("category"),
            "provider": row.get("provider"),
            "context_score": row.get("context_score"),
            "timestamp": row.get("last_updated") or row.get("created_at"),
        },
        similarity_score=row.get("similarity") or 0.0,
        relevance_score=row.get("final_score"),
    )


def learning_plan_item(row: dict) -> ContextItem:
    title = row.get("title") or ""
    similarity = float(row.get("similarity") or 0.0)
    skill_match = float(row.get("skill_match_score") or 0.0)
    return ContextItem(
        id=str(row.get("roadmap_id") or row.get("id")),
        text_content=f"{title}\n\n{row.get('description') or ''}",
        source_type=SourceType.LEARNING_PLAN,
        metadata={
            "title": title,
            "skills": row.get("skills_involved") or [],
            "difficulty": row.get("difficulty_level"),
            "duration": row.get("estimated_duration"),
            "context_score": skill_match,
            "timestamp": row.get("last_updated"),
        },
        similarity_score=similarity,
        relevance_score=0.7 * similarity + 0.3 * skill_match,
    )


def chat_turn_id(row: dict) -> str | None:
    turn_id = row.get("message_id") or row.get("id")
    return str(turn_id) if turn_id else None


def chat_turn_item(row: dict, similarity: float) -> ContextItem:
    return ContextItem(
        id=chat_turn_id(row),
        text_content=row.get("message_text") or "",
        source_type=SourceType.CHAT_TURN,
        metadata={
            "message_type": row.get("message_type"),
            "intent": row.get("message_intent"),
            "timestamp": row.get("created_at"),
        },
        similarity_score=similarity,
        relevance_score=row.get("relevance_score") or DEFAULT_HISTORY_SIMILARITY,
    )


def knowledge_entity_item(row: dict, similarity: float) -> ContextItem:
    popularity = float(row.get("popularity_score") or 0.0)
    return ContextItem(
        id=str(row.get("entity_id") or row.get("id")),
        text_content=f"{row.get('entity_name') or ''}: {row.get('entity_description') or ''}",
        source_type=SourceType.KNOWLEDGE_ENTITY,
        metadata={
            "name": row.get("entity_name"),
            "type": row.get("entity_type"),
            "context_score": popularity,
            "related_entities": row.get("related_entities") or [],
        },
        similarity_score=similarity,
        relevance_score=popularity * 0.3 + 0.7,
    )


class ContextRetriever:
    def __init__(
        self,
        helper_config: HelperConfig,
        rag_client: RAGClientInterface,
        store_client: StoreClientInterface,
        embedding_service: EmbeddingService,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._rag_client = rag_client
        self._store_client = store_client
        self._embedding_service = embedding_service

    ##########################################
    ############### RETRIEVE #################
    ##########################################

    async def retrieve(
        self,
        user_id: str,
        query_text: str,
        session_id: str | None = None,
        query_embedding: list[float] | None = None,
        max_results: int = 10,
        similarity_threshold: float = 0.7,
        include_history: bool = True,
        time_window_hours: int = 24,
    ) -> RetrievedContext:
        """Fetch all context for one query concurrently.

        Args:
            user_id (str): The asking user.
            query_text (str): The raw query, embedded when no query_embedding is given.
            session_id (str | None): Current session, whose turns are preferred in the history.
            query_embedding (list[float] | None): Precomputed query vector.
            max_results (int): Maximum items per branch.
            similarity_threshold (float): Minimum similarity for opportunities and learning plans.
            include_history (bool): Run the chat history branch at all.
            time_window_hours (int): How far back the recent turns reach.

        Returns:
            RetrievedContext: All branches, failed ones empty.

        Raises:
            EmptyInputError: If the query has to be embedded and is empty.
            AllProvidersExhaustedError: If the query has to be embedded and every provider failed.
        """
        if query_embedding is None:
            result = await self._embedding_service.embed(query_text, content_type="query", owner_id=user_id)
            query_embedding = result.vector

        # the learning-plan branch needs skills and level, so it shares this task
        user_task = asyncio.ensure_future(
            self._guarded("user_context", self._fetch_user_context(user_id), UserContext())
        )

        async def learning_plans() -> list[ContextItem]:
            user_context = await user_task
            return await self._search_learning_plans(
                query_embedding, user_context, max_results, similarity_threshold
            )

        branches: list[Awaitable] = [
            self._guarded(
                "opportunities",
                self._search_opportunities(query_embedding, user_id, max_results, similarity_threshold),
                [],
            ),
            self._guarded("learning_plans", learning_plans(), []),
            self._guarded(
                "chat_history",
                self._search_chat_history(user_id, session_id, query_embedding, max_results, time_window_hours),
                [],
            ) if include_history else self._empty(),
            user_task,
        ]
        opportunities, plans, history, user_context = await asyncio.gather(*branches)

        total_tokens = sum(estimate_tokens(item.text_content) for item in [*opportunities, *plans, *history])
        self.logging.debug(
            "Retrieved %d opportunities, %d learning plans, %d history items (~%d tokens) for user %s.",
            len(opportunities), len(plans), len(history), total_tokens, user_id,
        )
        return RetrievedContext(
            opportunities=opportunities,
            learning_plans=plans,
            chat_history=history,
            user_context=user_context,
            total_estimated_tokens=total_tokens,
        )

    async def _guarded(self, branch: str, coro: Awaitable, default: Any) -> Any:
        try:
            return await coro
        except Exception as e:
            self.logging.warning("%s", RetrievalPartialFailure(branch, e))
            return default

    @staticmethod
    async def _empty() -> list[ContextItem]:
        return []

    ##########################################
    ############### BRANCHES #################
    ##########################################

    async def _search_opportunities(
        self,
        query_embedding: list[float],
        user_id: str,
        limit: int,
        threshold: float,
        recency_boost: float = OPPORTUNITY_RECENCY_BOOST,
    ) -> list[ContextItem]:
        rows = await self._rag_client.do_match_opportunities(
            query_embedding=query_embedding,
            user_id=user_id,
            threshold=threshold,
            count=limit,
            recency_boost=recency_boost,
        )
        return [opportunity_item(row) for row in rows]

    async def _search_learning_plans(
        self,
        query_embedding: list[float],
        user_context: UserContext,
        limit: int,
        threshold: float,
    ) -> list[ContextItem]:
        skills = list(user_context.profile.get("currentSkills") or [])
        rows = await self._rag_client.do_match_learning_plans(
            query_embedding=query_embedding,
            user_skills=skills,
            difficulty=skill_level_to_difficulty(user_context.skill_level),
            threshold=threshold,
            count=limit,
        )
        return [learning_plan_item(row) for row in rows]

    async def _search_chat_history(
        self,
        user_id: str,
        session_id: str | None,
        query_embedding: list[float],
        limit: int,
        time_window_hours: int,
    ) -> list[ContextItem]:
        since = datetime.now(timezone.utc) - timedelta(hours=time_window_hours)
        context_rows, window_rows = await asyncio.gather(
            self._rag_client.do_fetch_conversation_context(
                user_id=user_id,
                session_id=session_id,
                limit=limit,
                threshold=HISTORY_CONTEXT_THRESHOLD,
            ),
            self._rag_client.do_fetch_recent_turns(user_id=user_id, since=since, limit=limit),
        )

        # rows without any id cannot be told apart and are dropped
        context_rows = [row for row in context_rows if chat_turn_id(row)]
        window_rows = [row for row in window_rows if chat_turn_id(row)]

        items = [
            chat_turn_item(row, row.get("similarity") or row.get("relevance_score") or DEFAULT_HISTORY_SIMILARITY)
            for row in context_rows
        ]
        for row in window_rows:
            vector = _parse_vector(row.get("embedding"))
            similarity = cosine_similarity(query_embedding, vector) if vector else DEFAULT_HISTORY_SIMILARITY
            items.append(chat_turn_item(row, similarity))

        return deduplicate_by_id(items)[:limit]

    async def _fetch_user_context(self, user_id: str) -> UserContext:
        profile_row, context_row, goal_rows = await asyncio.gather(
            self._store_client.do_get_user_profile(user_id),
            self._rag_client.do_fetch_user_context_record(user_id),
            self._store_client.do_get_active_goals(user_id, limit=MAX_ACTIVE_GOALS),
        )
        profile_row = profile_row or {}
        context_row = context_row or {}

        profile = dict(profile_row.get("preferences") or {})
        if profile_row.get("name"):
            profile["name"] = profile_row["name"]

        return UserContext(
            profile=profile,
            demographics={
                "age": profile_row.get("age"),
                "education_level": profile.get("educationLevel"),
            },
            learning_style=context_row.get("learning_style") or "mixed",
            career_stage=context_row.get("career_stage") or "student",
            skill_level=context_row.get("skill_level") or "beginner",
            active_goals=[
                Goal(id=str(row.get("id")), title=row.get("title") or "", description=row.get("description"))
                for row in goal_rows[:MAX_ACTIVE_GOALS]
            ],
            last_activity=_parse_timestamp(context_row.get("last_activity")),
        )

    async def get_user_context(self, user_id: str) -> UserContext:
        """User context with failures degraded to the default context."""
        return await self._guarded("user_context", self._fetch_user_context(user_id), UserContext())

    ##########################################
    ############# HYBRID SEARCH ##############
    ##########################################

    async def hybrid_search(
        self,
        user_id: str,
        query_embedding: list[float],
        content_types: tuple[str, ...] = ("opportunities", "learningPlans"),
        max_results: int = 15,
        weights: HybridWeights | None = None,
    ) -> list[ContextItem]:
        """Search several content types and rank all results by hybrid score.

        Args:
            content_types: Any of "opportunities", "learningPlans", "knowledge".
            weights: Semantic, context and recency weights, 0.4/0.4/0.2 by default.

        Returns:
            list[ContextItem]: At most max_results items, best first, relevance_score set to the hybrid score.
        """
        weights = weights or HybridWeights()
        results: list[ContextItem] = []

        for content_type in content_types:
            if content_type == "opportunities":
                found = await self._guarded(
                    content_type,
                    self._search_opportunities(query_embedding, user_id, max_results, HYBRID_THRESHOLD, recency_boost=0.15),
                    [],
                )
            elif content_type == "learningPlans":
                user_context = await self.get_user_context(user_id)
                found = await self._guarded(
                    content_type,
                    self._search_learning_plans(query_embedding, user_context, max_results, HYBRID_THRESHOLD),
                    [],
                )
            elif content_type == "knowledge":
                found = await self._guarded(
                    content_type,
                    self._search_knowledge_entities(query_embedding, max_results, HYBRID_THRESHOLD),
                    [],
                )
            else:
                self.logging.warning("Unknown hybrid search content type '%s', skipping.", content_type)
                continue

            results.extend(
                item.model_copy(update={"relevance_score": hybrid_score(item, weights)}) for item in found
            )

        results = deduplicate_by_id(results)
        results.sort(key=lambda item: item.relevance_score or 0.0, reverse=True)
        return results[:max_results]

    async def _search_knowledge_entities(
        self,
        query_embedding: list[float],
        limit: int,
        threshold: float,
    ) -> list[ContextItem]:
        rows = await self._rag_client.do_match_knowledge_entities(limit=limit)
        items = []
        for row in rows:
            vector = _parse_vector(row.get("embedding"))
            similarity = cosine_similarity(query_embedding, vector) if vector else DEFAULT_HISTORY_SIMILARITY
            if similarity >= threshold:
                items.append(knowledge_entity_item(row, similarity))
        items.sort(key=lambda item: item.relevance_score or 0.0, reverse=True)
        return items
