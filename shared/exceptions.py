"""Error taxonomy of the RAG chat pipeline.

Input, session and exhaustion errors propagate to the caller. ProviderError is raised
per backend attempt and consumed by the fallback loops. RetrievalPartialFailure
and PersistenceWarning are only ever logged.
"""


class RAGChatError(Exception):
    """Base class for all pipeline errors."""


class EmptyInputError(RAGChatError, ValueError):
    """The text is empty after normalisation. Never retried."""


class ProviderError(RAGChatError):
    """A single embedding or generation backend failed."""

    def __init__(self, provider_id: str, message: str):
        super().__init__(f"[{provider_id}] {message}")
        self.provider_id = provider_id


class AllProvidersExhaustedError(RAGChatError):
    """Every candidate backend of one kind failed."""

    def __init__(self, kind: str, attempted: list[str]):
        attempted_txt = ", ".join(attempted) if attempted else "none"
        super().__init__(f"All {kind} providers failed (attempted: {attempted_txt}).")
        self.kind = kind
        self.attempted = attempted


class RetrievalPartialFailure(RAGChatError):
    """One retrieval branch failed and was replaced by an empty result."""

    def __init__(self, branch: str, cause: Exception):
        super().__init__(f"Retrieval branch '{branch}' failed: {cause}")
        self.branch = branch
        self.cause = cause


class PersistenceWarning(RAGChatError):
    """A best-effort write (secondary index, usage log, counter) failed."""

    def __init__(self, target: str, cause: Exception):
        super().__init__(f"Best-effort write to '{target}' failed: {cause}")
        self.target = target
        self.cause = cause


class SessionNotFoundError(RAGChatError, LookupError):
    """No conversation session exists for the given id."""

    def __init__(self, session_id: str):
        super().__init__(f"Conversation session '{session_id}' not found.")
        self.session_id = session_id


class SessionClosedError(RAGChatError):
    """The session has ended and accepts no further turns."""

    def __init__(self, session_id: str):
        super().__init__(f"Conversation session '{session_id}' has ended.")
        self.session_id = session_id
