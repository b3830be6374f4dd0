"""Title generation request and response models."""

from pydantic import BaseModel, Field

from retitler.utils.errors import ErrorCode


class TitleGenerationRequest(BaseModel):
    """Request body for title generation endpoint."""

    content: str = Field(
        ...,
        min_length=1,
        description="Document text to generate a title from",
    )


class TitleGenerationResponse(BaseModel):
    """Response body for title generation endpoint."""

    title: str = Field(
        ...,
        description="Generated title, empty when generation failed",
    )
    useFallback: bool = Field(
        ...,
        description="Whether generation failed and the caller should keep its own title",
    )
    refined: bool = Field(
        default=False,
        description="Whether a second, shortening call was made",
    )
    errorCode: ErrorCode | None = None
    error: str | None = None
