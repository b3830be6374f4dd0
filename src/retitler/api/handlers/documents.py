"""Document retitling endpoint handler."""

from fastapi import APIRouter

from retitler.api.deps import RetitlerDep
from retitler.models.documents import RetitleRequest, RetitleResponse, RetitleStatus

router = APIRouter()


@router.post("/documents/retitle", response_model=RetitleResponse)
async def retitle_documents(request: RetitleRequest, retitler: RetitlerDep) -> RetitleResponse:
    """Generate titles for documents and rename them, one document at a time."""
    outcomes = await retitler.process_many(request.paths)
    return RetitleResponse(
        outcomes=outcomes,
        renamed=sum(1 for o in outcomes if o.status == RetitleStatus.RENAMED),
        failed=sum(1 for o in outcomes if o.status == RetitleStatus.FAILED),
    )
