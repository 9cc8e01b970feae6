"""Return API endpoints.

Provides endpoints for the caller's return requests:
- POST /returns - request a return for a delivered order
- GET /returns - list the caller's returns
- GET /returns/{id} - return details
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from fulfillment.api.dependencies import Principal, get_principal, get_return_service
from fulfillment.api.errors import raise_for_result
from fulfillment.api.schemas import (
    ErrorResponse,
    ReturnCreateRequest,
    ReturnResponse,
    ReturnsListResponse,
)
from fulfillment.application.return_service import (
    ListReturnsResult,
    ReturnDTO,
    ReturnService,
)

router = APIRouter(prefix="/returns", tags=["Returns"])


def return_to_response(return_request: ReturnDTO) -> ReturnResponse:
    """Convert ReturnDTO to ReturnResponse."""
    return ReturnResponse(
        id=return_request.id,
        order_id=return_request.order_id,
        user_id=return_request.user_id,
        reason=return_request.reason,
        status=return_request.status.value,
        refund_amount_cents=return_request.refund_amount_cents,
        created_at=return_request.created_at,
        updated_at=return_request.updated_at,
    )


def returns_to_list_response(result: ListReturnsResult) -> ReturnsListResponse:
    """Convert ListReturnsResult to a paginated response."""
    return ReturnsListResponse(
        items=[return_to_response(r) for r in result.returns],
        total=result.total,
        page=result.page,
        page_size=result.limit,
        has_more=(result.page * result.limit) < result.total,
    )


@router.post(
    "",
    response_model=ReturnResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Request return",
)
async def create_return(
    request: ReturnCreateRequest,
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[ReturnService, Depends(get_return_service)],
) -> ReturnResponse:
    """Request a return for one of the caller's delivered orders."""
    result = await service.create_return(request.order_id, principal.user_id, request.reason)
    if not result.success or not result.return_request:
        raise_for_result(result)
    return return_to_response(result.return_request)


@router.get("", response_model=ReturnsListResponse, summary="List returns")
async def list_returns(
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[ReturnService, Depends(get_return_service)],
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(default=20, ge=1, le=100, description="Items per page"),
) -> ReturnsListResponse:
    """List the caller's return requests, newest first."""
    result = await service.list_returns(user_id=principal.user_id, page=page, limit=page_size)
    return returns_to_list_response(result)


@router.get(
    "/{return_id}",
    response_model=ReturnResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get return details",
)
async def get_return(
    return_id: str,
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[ReturnService, Depends(get_return_service)],
) -> ReturnResponse:
    """Get one of the caller's return requests."""
    result = await service.get_return(return_id, user_id=principal.user_id)
    if not result.success or not result.return_request:
        raise_for_result(result)
    return return_to_response(result.return_request)
