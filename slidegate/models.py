"""Request and response models for the slide-deck gateway."""

from typing import Optional

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    """A single message in a chat conversation."""

    role: str
    content: str


class UsageInfo(BaseModel):
    """Token usage information returned by the provider."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class StoryRequest(BaseModel):
    """Incoming request to turn raw text into slides."""

    raw: Optional[str] = Field(default=None, description="Free-form source text")
    tone: str = Field(default="inspiring", description="Tone of the deck")
    length: str = Field(default="medium", description="Target deck length")
    model: Optional[str] = Field(
        default=None, description="Model name; defaults to the first allowed model"
    )


class StoryResponse(BaseModel):
    """Successful response: generated slide text."""

    content: str = ""


class ErrorResponse(BaseModel):
    """Error response envelope."""

    error: str
    tier: Optional[str] = None
