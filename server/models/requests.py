from pydantic import BaseModel, Field

from shared.models.conversation import ChatMessage


class ChatMessageRequest(BaseModel):
    user_id: str
    session_id: str | None = None
    message: str = Field(min_length=1)
    conversation_history: list[ChatMessage] = []


class SessionStartRequest(BaseModel):
    user_id: str
    first_message: str | None = None


class SessionEndRequest(BaseModel):
    session_id: str
