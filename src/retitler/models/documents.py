"""Document retitling request and response models."""

from enum import Enum

from pydantic import BaseModel, Field

from retitler.utils.errors import ErrorCode


class RetitleStatus(str, Enum):
    """What happened to one document."""

    RENAMED = "renamed"
    UNCHANGED = "unchanged"
    FAILED = "failed"


class RetitleOutcome(BaseModel):
    """Result of retitling one document."""

    path: str
    new_path: str | None = None
    title: str | None = None
    status: RetitleStatus
    duplicates_removed: int = 0
    error_code: ErrorCode | None = None
    error: str | None = None


class RetitleRequest(BaseModel):
    """Request body for retitling documents, processed one at a time."""

    paths: list[str] = Field(..., min_length=1, max_length=500)


class RetitleResponse(BaseModel):
    """Outcomes in request order."""

    outcomes: list[RetitleOutcome]
    renamed: int
    failed: int
