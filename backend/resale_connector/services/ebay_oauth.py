import base64
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional
from urllib.parse import urlencode

import httpx

from resale_connector.config import settings
from resale_connector.models.ebay import EbayTokenResponse
from resale_connector.services.errors import RefreshFailure, UpstreamError
from resale_connector.utils.logger import ebay_logger, logger


@asynccontextmanager
async def http_client_scope(client: Optional[httpx.AsyncClient] = None) -> AsyncIterator[httpx.AsyncClient]:
    """Yield ``client`` if given, otherwise a short-lived client with the configured timeout."""
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=settings.EBAY_HTTP_TIMEOUT_SECONDS) as owned:
        yield owned


class EbayOAuthService:
    """Authorization-code connect flow and refresh grant against eBay Identity."""

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self.http_client = http_client

    def _basic_auth_header(self) -> str:
        if not settings.ebay_configured:
            ebay_logger.log_ebay_event(
                "token_request_error",
                "eBay credentials not configured",
                status="error",
                error="EBAY_CLIENT_ID or EBAY_CLIENT_SECRET not set",
            )
            raise UpstreamError("eBay credentials not configured")
        credentials = f"{settings.EBAY_CLIENT_ID}:{settings.EBAY_CLIENT_SECRET}"
        return f"Basic {base64.b64encode(credentials.encode()).decode()}"

    def get_authorization_url(self, state: str) -> str:
        if not settings.EBAY_CLIENT_ID or not settings.EBAY_REDIRECT_URI:
            raise UpstreamError("eBay client id or redirect URI not configured")

        params = {
            "client_id": settings.EBAY_CLIENT_ID,
            "redirect_uri": settings.EBAY_REDIRECT_URI,
            "response_type": "code",
            "scope": settings.EBAY_SCOPES,
            "state": state,
        }
        auth_url = f"{settings.ebay_auth_url}?{urlencode(params)}"

        ebay_logger.log_ebay_event(
            "authorization_url_generated",
            f"Generated eBay authorization URL ({settings.EBAY_ENVIRONMENT})",
            request_data={"redirect_uri": settings.EBAY_REDIRECT_URI, "state": state},
        )
        return auth_url

    async def _post_token(self, data: Dict[str, str]) -> httpx.Response:
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Authorization": self._basic_auth_header(),
        }
        async with http_client_scope(self.http_client) as client:
            return await client.post(
                settings.ebay_token_url,
                headers=headers,
                data=data,
                timeout=settings.EBAY_HTTP_TIMEOUT_SECONDS,
            )

    async def exchange_code_for_token(self, code: str) -> EbayTokenResponse:
        ebay_logger.log_ebay_event(
            "token_exchange_request",
            "Exchanging authorization code for access token",
            request_data={"grant_type": "authorization_code", "code": code},
        )
        try:
            response = await self._post_token({
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": settings.EBAY_REDIRECT_URI or "",
            })
        except httpx.HTTPError as e:
            ebay_logger.log_ebay_event(
                "token_exchange_error", "Token exchange request failed", status="error", error=str(e)
            )
            raise UpstreamError(f"Token exchange request failed: {e}") from e

        body = _response_body(response)
        if response.status_code != 200:
            ebay_logger.log_ebay_event(
                "token_exchange_failed",
                f"Token exchange failed with status {response.status_code}",
                response_data={"error": body},
                status="error",
                error=str(body),
            )
            raise UpstreamError(
                f"Failed to exchange code: {body}", status_code=response.status_code, body=body
            )

        try:
            token = EbayTokenResponse(**body)
        except (TypeError, ValueError) as e:
            raise UpstreamError(f"Malformed token response: {e}", status_code=response.status_code, body=body) from e
        ebay_logger.log_ebay_event(
            "token_exchange_success",
            "Successfully obtained eBay access token",
            response_data={"access_token": token.access_token, "expires_in": token.expires_in},
            status="success",
        )
        return token

    async def refresh_access_token(self, refresh_token: str) -> EbayTokenResponse:
        """Run the refresh grant. Every failure surfaces as ``RefreshFailure``."""
        ebay_logger.log_ebay_event(
            "token_refresh_request",
            "Refreshing eBay access token",
            request_data={"grant_type": "refresh_token", "refresh_token": "<hidden>"},
        )
        try:
            response = await self._post_token({
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "scope": settings.EBAY_SCOPES,
            })
        except UpstreamError as e:
            raise RefreshFailure(str(e)) from e
        except httpx.HTTPError as e:
            ebay_logger.log_ebay_event(
                "token_refresh_error", "Token refresh request failed", status="error", error=str(e)
            )
            raise RefreshFailure(f"Token refresh request failed: {e}") from e

        body = _response_body(response)
        if response.status_code != 200:
            ebay_logger.log_ebay_event(
                "token_refresh_failed",
                f"Token refresh failed with status {response.status_code}",
                response_data={"error": body},
                status="error",
                error=str(body),
            )
            raise RefreshFailure(
                f"Failed to refresh token: {body}", status_code=response.status_code
            )

        try:
            token = EbayTokenResponse(**body)
        except (TypeError, ValueError) as e:
            logger.error("[ebay_oauth] Malformed refresh response: %s", e)
            raise RefreshFailure(f"Malformed refresh response: {e}") from e

        ebay_logger.log_ebay_event(
            "token_refresh_success",
            "Successfully refreshed eBay access token",
            response_data={"expires_in": token.expires_in},
            status="success",
        )
        return token


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
