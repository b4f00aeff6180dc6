"""
Ban list router.

Parses requests, calls the ban service and turns its typed errors into HTTP
status codes.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.core.client_ip import get_client_ip
from app.core.exceptions import (
    BanListError,
    ConflictExhausted,
    InvalidRequest,
    StoreCorrupt,
    StoreUnavailable,
)
from app.models.schemas import BanCheckResponse, BanIPRequest, BanIPResponse
from app.services.ip_ban_service import IPBanService, get_ban_service

router = APIRouter(prefix="/api", tags=["Bans"])
logger = logging.getLogger("uvicorn.error")


def _to_http_error(exc: BanListError, action: str) -> HTTPException:
    if isinstance(exc, InvalidRequest):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, ConflictExhausted):
        logger.warning("[API Error]: %s: %s", action, exc)
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"{exc}. Please retry.",
            headers={"Retry-After": "1"},
        )
    if isinstance(exc, StoreCorrupt):
        logger.error("[API Error]: %s: stored ban list is corrupt: %s", action, exc)
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Could not {action}: stored ban list is unreadable",
        )
    if isinstance(exc, StoreUnavailable):
        logger.error("[API Error]: %s: %s", action, exc)
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Could not {action}: {exc}",
        )
    logger.error("[API Error]: %s: %s", action, exc)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Could not {action}: {exc}",
    )


@router.post("/ban-ip", response_model=BanIPResponse)
async def ban_ip(
    data: BanIPRequest,
    service: Annotated[IPBanService, Depends(get_ban_service)],
) -> BanIPResponse:
    """
    Ban an IP, or extend and refresh an existing ban.

    Body: {"ip": "192.168.1.1", "reason": "spam", "banDuration": 300}.
    A repeated ban never shortens the current expiry.
    """
    try:
        outcome = await service.submit_ban(data.ip, data.reason, data.ban_duration)
    except BanListError as exc:
        raise _to_http_error(exc, "record IP ban") from exc

    if outcome.created:
        logger.info("[BAN]: recorded new ban for IP %s", outcome.identifier)
    else:
        logger.info("[BAN]: refreshed ban for IP %s", outcome.identifier)

    return BanIPResponse(
        message=f"IP {outcome.identifier} has been recorded as banned.",
        ip=outcome.identifier,
        created=outcome.created,
        ban_expiry=outcome.ban_expiry,
    )


@router.get("/check-ban", response_model=BanCheckResponse, response_model_exclude_none=True)
async def check_ban(
    request: Request,
    service: Annotated[IPBanService, Depends(get_ban_service)],
    ip: str | None = None,
) -> BanCheckResponse:
    """
    Check whether an IP is currently banned.

    Without an `ip` query parameter the caller's own address is checked.
    """
    ip_to_check = ip or get_client_ip(request)
    if not ip_to_check:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="IP to check is required or could not be determined",
        )

    try:
        result = await service.check_ban(ip_to_check)
    except BanListError as exc:
        raise _to_http_error(exc, "check ban status") from exc

    if result.banned:
        logger.info(
            "[CHECK BAN]: IP %s is banned, %ds left", ip_to_check, result.time_left_seconds,
        )
    else:
        logger.info("[CHECK BAN]: IP %s is not banned", ip_to_check)

    return BanCheckResponse(
        is_banned=result.banned,
        ip=ip_to_check,
        reason=result.reason,
        ban_expiry=result.ban_expiry,
        time_left_seconds=result.time_left_seconds,
    )
