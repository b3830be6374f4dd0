"""Duplicate-title detection and removal endpoint handlers."""

from fastapi import APIRouter

from retitler.api.deps import SettingsDep
from retitler.config import DuplicateSettings
from retitler.core.duplicates import detect_title_duplicates, remove_matches, select_matches
from retitler.models.duplicates import (
    DuplicateDetectRequest,
    DuplicateDetectResponse,
    DuplicateRemoveRequest,
    DuplicateRemoveResponse,
    TitleMatch,
)

router = APIRouter()


def _detect(request: DuplicateDetectRequest, settings: DuplicateSettings) -> list[TitleMatch]:
    return detect_title_duplicates(
        request.title,
        request.content,
        request.sensitivity or settings.sensitivity,
        thresholds=settings.thresholds(),
        plain_text_window=settings.plain_text_window,
    )


@router.post("/duplicates/detect", response_model=DuplicateDetectResponse)
async def detect_duplicates(
    request: DuplicateDetectRequest, settings: SettingsDep
) -> DuplicateDetectResponse:
    """Find lines in a document that restate the title."""
    return DuplicateDetectResponse(matches=_detect(request, settings.duplicates))


@router.post("/duplicates/remove", response_model=DuplicateRemoveResponse)
async def remove_duplicates(
    request: DuplicateRemoveRequest, settings: SettingsDep
) -> DuplicateRemoveResponse:
    """Remove duplicate title lines and return the rewritten document."""
    duplicates = settings.duplicates
    exact_only = (
        request.exactOnly
        if request.exactOnly is not None
        else duplicates.remove_policy == "exact"
    )
    matches = select_matches(
        _detect(request, duplicates),
        exact_only=exact_only,
        exact_threshold=duplicates.exact_match_threshold,
    )
    content = remove_matches(request.content, matches, duplicates.max_leading_blank_lines)
    changed = content != request.content
    return DuplicateRemoveResponse(
        content=content,
        removed=matches if changed else [],
        changed=changed,
    )
