from pydantic import BaseModel


class EmbedResponse(BaseModel):
    """Parsed output of one embedding request.

    Attributes:
        vectors:      One vector per input text, in input order.
        total_tokens: Tokens billed by the backend, None when not reported.
    """

    vectors: list[list[float]]
    total_tokens: int | None = None
