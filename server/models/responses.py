from pydantic import BaseModel

from shared.models.conversation import ChatTurn, ConversationSession


class HistoryResponse(BaseModel):
    session_id: str
    turns: list[ChatTurn]
    total: int


class SessionsResponse(BaseModel):
    user_id: str
    sessions: list[ConversationSession]
    total: int


class SuggestionsResponse(BaseModel):
    user_id: str
    suggestions: list[str]
