from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session

from resale_connector.config import settings
from resale_connector.database import get_db
from resale_connector.models.ebay import (
    EbayConnectResponse,
    EbayConnectionStatus,
    EbayLogsResponse,
    EbaySyncRequest,
    EbaySyncResponse,
    EbaySyncStatus,
)
from resale_connector.routers.deps import get_current_user_id
from resale_connector.services.ebay_account_service import (
    STATE_COOKIE_MAX_AGE,
    STATE_COOKIE_NAME,
    ebay_account_service,
)
from resale_connector.services.ebay_sync import EbaySyncService
from resale_connector.services.errors import EbayIntegrationError, NotConnected, UpstreamError
from resale_connector.services.token_store import token_store
from resale_connector.utils.logger import ebay_logger, logger

router = APIRouter(prefix="/api/ebay", tags=["ebay"])

SYNC_TYPES = ("all", "orders", "listings", "payouts", "fees")


def _settings_redirect(query: str) -> RedirectResponse:
    return RedirectResponse(
        f"{settings.FRONTEND_URL.rstrip('/')}/dashboard/settings?{query}",
        status_code=status.HTTP_302_FOUND,
    )


@router.get("/connect", response_model=EbayConnectResponse)
async def connect_ebay(user_id: str = Depends(get_current_user_id)):
    if not settings.ebay_configured:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="eBay API not configured. Set EBAY_CLIENT_ID and EBAY_CLIENT_SECRET.",
        )
    try:
        state, authorization_url = ebay_account_service.build_connect_state(user_id)
    except UpstreamError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    logger.info("[ebay_router] Starting eBay connect for user_id=%s", user_id)
    response = JSONResponse(EbayConnectResponse(authorization_url=authorization_url, state=state).model_dump())
    response.set_cookie(
        STATE_COOKIE_NAME,
        state,
        max_age=STATE_COOKIE_MAX_AGE,
        httponly=True,
        secure=not settings.DEBUG and not settings.is_sandbox,
        samesite="lax",
    )
    return response


@router.get("/callback")
async def ebay_callback(
    request: Request,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    error_description: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    if error:
        logger.error("[ebay_router] eBay OAuth error: %s %s", error, error_description)
        return _settings_redirect(f"ebay_error={quote(error_description or error)}")

    if not code or not state:
        return _settings_redirect(f"ebay_error={quote('Missing authorization code')}")

    user_id = ebay_account_service.user_id_from_state(state, request.cookies.get(STATE_COOKIE_NAME))
    if not user_id:
        return _settings_redirect(f"ebay_error={quote('Invalid state parameter')}")

    try:
        await ebay_account_service.complete_connect(db, user_id, code)
    except (EbayIntegrationError, LookupError) as e:
        logger.error("[ebay_router] eBay callback failed for user_id=%s: %s", user_id, e)
        return _settings_redirect(f"ebay_error={quote(str(e) or 'Connection failed')}")

    response = _settings_redirect("ebay_connected=true")
    response.delete_cookie(STATE_COOKIE_NAME)
    return response


@router.post("/disconnect")
async def disconnect_ebay(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    ebay_account_service.disconnect(db, user_id)
    return {"message": "Successfully disconnected from eBay"}


@router.get("/status", response_model=EbayConnectionStatus)
async def get_ebay_status(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return EbayConnectionStatus(**ebay_account_service.status(db, user_id))


@router.post("/sync", response_model=EbaySyncResponse)
async def run_sync(
    body: Optional[EbaySyncRequest] = None,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    body = body or EbaySyncRequest()
    if body.type not in SYNC_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown sync type {body.type!r}; expected one of {', '.join(SYNC_TYPES)}",
        )

    credential = token_store.get(db, user_id)
    if credential is None or not credential.is_connected:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="eBay account not connected")

    service = EbaySyncService(db)
    try:
        if body.type == "all":
            result = (await service.sync_all(user_id, days_back=body.days_back)).to_dict()
        elif body.type == "fees":
            result = {"fees_updated": await service.sync_fees_for_orders(user_id), "errors": []}
        else:
            outcome = await service.sync_resource(user_id, body.type, days_back=body.days_back)
            result = {
                f"{body.type}_imported": outcome.imported,
                f"{body.type}_updated": outcome.updated,
                "errors": outcome.errors,
            }
            if body.type == "payouts":
                result.pop("payouts_updated")
    except NotConnected as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except UpstreamError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    return EbaySyncResponse(success=True, type=body.type, result=result)


@router.get("/sync", response_model=EbaySyncStatus)
async def get_sync_status(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return EbaySyncStatus(**ebay_account_service.sync_status(db, user_id))


@router.get("/logs", response_model=EbayLogsResponse)
async def get_ebay_logs(
    limit: Optional[int] = Query(100, description="Number of logs to retrieve"),
    user_id: str = Depends(get_current_user_id),
):
    logs = ebay_logger.get_logs(limit=limit)
    return {"logs": logs, "total": len(logs)}
