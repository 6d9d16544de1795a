"""Deep-dive analysis request endpoints."""

from fastapi import APIRouter, status

from api.deps import DeepDiveServiceDep
from api.schemas.deep_dive import DeepDiveCreate, DeepDiveRequest, DeepDiveUpdate
from api.schemas.responses import ListResponse, SuccessResponse

router = APIRouter(prefix="/deep-dive", tags=["Deep Dive"])
admin_router = APIRouter(prefix="/deep-dive/admin", tags=["Deep Dive Admin"])


@router.post(
    "",
    response_model=SuccessResponse[DeepDiveRequest],
    status_code=status.HTTP_201_CREATED,
    summary="Submit a deep-dive request",
)
async def submit_request(
    body: DeepDiveCreate,
    service: DeepDiveServiceDep,
) -> SuccessResponse[DeepDiveRequest]:
    """Create a pending request; the returned id is used for tracking."""
    return SuccessResponse(data=service.create(body))


@admin_router.get(
    "/all",
    response_model=ListResponse[DeepDiveRequest],
    summary="List all deep-dive requests",
)
async def list_requests(service: DeepDiveServiceDep) -> ListResponse[DeepDiveRequest]:
    """Every request, newest first."""
    return ListResponse[DeepDiveRequest].of(service.list_all())


@admin_router.post(
    "/update",
    response_model=SuccessResponse[DeepDiveRequest],
    summary="Complete a deep-dive request",
)
async def complete_request(
    body: DeepDiveUpdate,
    service: DeepDiveServiceDep,
) -> SuccessResponse[DeepDiveRequest]:
    """Record results and mark the request completed."""
    return SuccessResponse(data=service.complete(body.id, body))


@admin_router.delete(
    "/{request_id}",
    response_model=SuccessResponse[dict[str, str]],
    summary="Delete a deep-dive request",
)
async def delete_request(
    request_id: str,
    service: DeepDiveServiceDep,
) -> SuccessResponse[dict[str, str]]:
    """Remove a request permanently."""
    service.delete(request_id)
    return SuccessResponse(data={"id": request_id, "status": "deleted"})


@router.get(
    "/{request_id}",
    response_model=SuccessResponse[DeepDiveRequest],
    summary="Track a deep-dive request",
)
async def track_request(
    request_id: str,
    service: DeepDiveServiceDep,
) -> SuccessResponse[DeepDiveRequest]:
    """Current status and, once completed, the analyst's findings."""
    return SuccessResponse(data=service.get(request_id))
