from fastapi import APIRouter, Depends, HTTPException, Request

from server.dependencies.auth import verify_api_key
from server.models.requests import ChatMessageRequest, SessionEndRequest, SessionStartRequest
from server.models.responses import HistoryResponse, SessionsResponse, SuggestionsResponse
from shared.exceptions import EmptyInputError, SessionClosedError, SessionNotFoundError
from shared.models.conversation import ChatResponse, SessionStart, SessionSummary

router = APIRouter(prefix="/chat", tags=["chat"], dependencies=[Depends(verify_api_key)])


@router.post("/message")
async def chat_message(request: Request, body: ChatMessageRequest) -> ChatResponse:
    """Answer a user message within a session.

    Without a session_id a new session is started and its id is returned.
    Provider outages are answered with the fallback response (is_fallback set),
    not with an error status. Unknown sessions are 404, ended sessions 409.

    Args:
        request (Request): FastAPI request (provides app.state.chat_service).
        body (ChatMessageRequest): user_id, message, optional session_id and recent history.

    Returns:
        ChatResponse: The answer with confidence, context usage, suggestions and metadata.
    """
    chat_service = request.app.state.chat_service
    try:
        return await chat_service.generate_response(
            user_id=body.user_id,
            message=body.message,
            session_id=body.session_id,
            conversation_history=body.conversation_history,
        )
    except EmptyInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SessionClosedError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/session/start")
async def start_session(request: Request, body: SessionStartRequest) -> SessionStart:
    return await request.app.state.chat_service.start_session(body.user_id, body.first_message)


@router.post("/session/end")
async def end_session(request: Request, body: SessionEndRequest) -> SessionSummary:
    try:
        return await request.app.state.chat_service.end_session(body.session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/history/{session_id}")
async def get_history(request: Request, session_id: str, limit: int | None = None) -> HistoryResponse:
    turns = await request.app.state.session_manager.get_history(session_id, limit=limit)
    return HistoryResponse(session_id=session_id, turns=turns, total=len(turns))


@router.get("/sessions/{user_id}")
async def list_sessions(request: Request, user_id: str, limit: int = 20) -> SessionsResponse:
    sessions = await request.app.state.session_manager.list_sessions(user_id, limit=limit)
    return SessionsResponse(user_id=user_id, sessions=sessions, total=len(sessions))


@router.get("/suggestions/{user_id}")
async def get_suggestions(
    request: Request,
    user_id: str,
    session_id: str | None = None,
    limit: int = 5,
) -> SuggestionsResponse:
    suggestions = await request.app.state.chat_service.get_chat_suggestions(user_id, session_id, limit=limit)
    return SuggestionsResponse(user_id=user_id, suggestions=suggestions)
