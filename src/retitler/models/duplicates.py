"""Duplicate-title detection models."""

from enum import Enum

from pydantic import BaseModel, Field


class Sensitivity(str, Enum):
    """How close a line must be to the title to count as a duplicate."""

    STRICT = "strict"
    NORMAL = "normal"
    LOOSE = "loose"


class TitleMatch(BaseModel):
    """A document line judged to restate the title."""

    start: int = Field(..., ge=0, description="Offset of the line start in the document")
    end: int = Field(..., ge=0, description="Offset just past the line end, newline excluded")
    line: str
    similarity: float = Field(..., ge=0.0, le=1.0)
    line_number: int = Field(..., ge=1)
    is_header: bool = False
    header_level: int = Field(default=0, ge=0, le=6)


class DuplicateDetectRequest(BaseModel):
    """Request body for duplicate detection."""

    title: str = Field(..., min_length=1)
    content: str
    sensitivity: Sensitivity | None = None


class DuplicateDetectResponse(BaseModel):
    """Matches found for a title."""

    matches: list[TitleMatch]


class DuplicateRemoveRequest(DuplicateDetectRequest):
    """Request body for duplicate removal."""

    exactOnly: bool | None = Field(
        default=None,
        description="Remove only near-exact duplicates. Defaults to the configured policy.",
    )


class DuplicateRemoveResponse(BaseModel):
    """Rewritten content and the matches that were removed."""

    content: str
    removed: list[TitleMatch]
    changed: bool
