"""Title generation endpoint handler."""

import logging

from fastapi import APIRouter

from retitler.api.deps import TitleGeneratorDep
from retitler.models.title import TitleGenerationRequest, TitleGenerationResponse
from retitler.utils.errors import truncate_error

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/title/generate", response_model=TitleGenerationResponse)
async def generate_title(
    request: TitleGenerationRequest,
    generator: TitleGeneratorDep,
) -> TitleGenerationResponse:
    """Generate a title for a document.

    Failures are not HTTP errors: the response carries useFallback=True
    with the error code and a human-readable message.
    """
    result = await generator.generate(request.content)

    if result.error is not None:
        logger.info(
            f"Title generation fell back: {result.error.code.value}",
            extra={"error_code": result.error.code.value},
        )
        return TitleGenerationResponse(
            title="",
            useFallback=True,
            refined=result.refined,
            errorCode=result.error.code,
            error=truncate_error(result.error.user_message),
        )

    return TitleGenerationResponse(
        title=result.title,
        useFallback=False,
        refined=result.refined,
    )
