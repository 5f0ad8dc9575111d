"""NatJus Backend — Chat Schemas."""

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    message: str = Field(min_length=1, max_length=4000)


class ChatResponse(BaseModel):
    """
    response: markdown answer, or the inline configuration-error string when
    the selected provider has no key.
    """

    response: str
    provider: str
    used_fallback: bool = False


class GreetingResponse(BaseModel):
    greeting: str
    provider: str
