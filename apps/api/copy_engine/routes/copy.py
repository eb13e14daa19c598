"""Copy generation routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Path, status

from copy_engine.routes.dependencies import get_copy_job_service
from copy_engine.schemas.copy import CopyJobResult, CreateCopyJobResponse, ProductAdaptRequest, RewriteRequest
from copy_engine.schemas.error import ErrorResponse
from copy_engine.services.copy_jobs import CopyJobService

router = APIRouter(tags=["Copy"])


@router.post(
    "/copy/variants",
    response_model=CreateCopyJobResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={400: {"model": ErrorResponse}},
)
async def create_rewrite_job(
    payload: RewriteRequest,
    service: Annotated[CopyJobService, Depends(get_copy_job_service)],
) -> CreateCopyJobResponse:
    return service.create_rewrite_job(payload)


@router.post(
    "/copy/product-variants",
    response_model=CreateCopyJobResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={400: {"model": ErrorResponse}},
)
async def create_product_job(
    payload: ProductAdaptRequest,
    service: Annotated[CopyJobService, Depends(get_copy_job_service)],
) -> CreateCopyJobResponse:
    return service.create_product_job(payload)


@router.get(
    "/jobs/{jobId}",
    response_model=CopyJobResult,
    response_model_exclude_none=True,
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def get_copy_job(
    job_id: Annotated[str, Path(alias="jobId")],
    service: Annotated[CopyJobService, Depends(get_copy_job_service)],
) -> CopyJobResult:
    return service.get_copy_job(job_id)
