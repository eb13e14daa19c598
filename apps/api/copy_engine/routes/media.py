"""Media relay routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Path, Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from copy_engine.core.config import Settings
from copy_engine.errors import ApiError
from copy_engine.routes.dependencies import get_app_settings, get_media_proxy_service
from copy_engine.schemas.error import ErrorCode, ErrorResponse
from copy_engine.schemas.media import CreateProxyUrlRequest, CreateProxyUrlResponse
from copy_engine.services.media_proxy import MediaProxyService

router = APIRouter(prefix="/media-proxy", tags=["Media"])


@router.post(
    "",
    response_model=CreateProxyUrlResponse,
    responses={400: {"model": ErrorResponse}},
)
async def create_proxy_url(
    payload: CreateProxyUrlRequest,
    request: Request,
    service: Annotated[MediaProxyService, Depends(get_media_proxy_service)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> CreateProxyUrlResponse:
    base_url = settings.public_base_url or str(request.base_url)
    proxy_url = service.create_proxy_url(payload.source_url, base_url)
    if proxy_url is None:
        raise ApiError(
            status_code=400,
            code=ErrorCode.INVALID_INPUT.value,
            message="PUBLIC_BASE_URL 不是公网可访问地址，无法生成媒体代理链接。",
        )
    return CreateProxyUrlResponse(proxy_url=proxy_url)


@router.get(
    "/{token}",
    response_class=StreamingResponse,
    responses={404: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def relay_media(
    token: Annotated[str, Path()],
    service: Annotated[MediaProxyService, Depends(get_media_proxy_service)],
    range_header: Annotated[str | None, Header(alias="range")] = None,
) -> StreamingResponse:
    media = await service.open(token, range_header)
    if media is None:
        raise ApiError(
            status_code=404,
            code=ErrorCode.NOT_FOUND.value,
            message="media token expired or not found",
        )
    return StreamingResponse(
        media.body,
        status_code=media.status_code,
        headers=media.headers,
        background=BackgroundTask(media.aclose),
    )
