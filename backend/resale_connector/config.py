from pydantic_settings import BaseSettings
from typing import Optional
import os
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    DEBUG: bool = False

    # DATABASE_URL is injected by the deployment; the local default keeps
    # scripts and the dev server runnable without extra setup.
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./resale_connector.db")

    EBAY_ENVIRONMENT: str = "sandbox"  # "sandbox" or "production"

    EBAY_CLIENT_ID: Optional[str] = None
    EBAY_CLIENT_SECRET: Optional[str] = None
    # Must match the RuName / redirect configured in the eBay developer portal.
    EBAY_REDIRECT_URI: Optional[str] = None

    # Space-separated list of user-consent scopes requested on connect.
    EBAY_SCOPES: str = " ".join([
        "https://api.ebay.com/oauth/api_scope",
        "https://api.ebay.com/oauth/api_scope/sell.fulfillment.readonly",
        "https://api.ebay.com/oauth/api_scope/sell.fulfillment",
        "https://api.ebay.com/oauth/api_scope/sell.inventory.readonly",
        "https://api.ebay.com/oauth/api_scope/sell.inventory",
        "https://api.ebay.com/oauth/api_scope/sell.finances",
        "https://api.ebay.com/oauth/api_scope/sell.analytics.readonly",
    ])

    # Sent as X-EBAY-C-MARKETPLACE-ID on every Sell API call.
    EBAY_MARKETPLACE_ID: str = "EBAY_US"
    EBAY_HTTP_TIMEOUT_SECONDS: float = 30.0

    # Tokens expiring within this many minutes are refreshed before use.
    EBAY_TOKEN_REFRESH_BUFFER_MINUTES: int = 5

    SYNC_PAGE_SIZE: int = 50
    SYNC_DEFAULT_DAYS_BACK: int = 90

    # "auto" detects the sales sheet layout from its header row; "simple" or
    # "positional" force one layout for every eBay sales sheet.
    IMPORT_SALES_DIALECT: str = "auto"
    IMPORT_MAX_FILE_BYTES: int = 10 * 1024 * 1024

    FRONTEND_URL: str = "http://localhost:3000"
    ALLOWED_ORIGINS: str = "http://localhost:3000"

    class Config:
        env_file = None
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def is_sandbox(self) -> bool:
        return self.EBAY_ENVIRONMENT == "sandbox"

    @property
    def ebay_configured(self) -> bool:
        return bool(self.EBAY_CLIENT_ID and self.EBAY_CLIENT_SECRET)

    @property
    def ebay_api_base_url(self) -> str:
        if self.is_sandbox:
            return "https://api.sandbox.ebay.com"
        return "https://api.ebay.com"

    @property
    def ebay_finances_base_url(self) -> str:
        """Base URL for the Finances API.

        Production finance endpoints are served from https://apiz.ebay.com,
        sandbox from https://apiz.sandbox.ebay.com.
        """
        if self.is_sandbox:
            return "https://apiz.sandbox.ebay.com"
        return "https://apiz.ebay.com"

    @property
    def ebay_auth_url(self) -> str:
        if self.is_sandbox:
            return "https://auth.sandbox.ebay.com/oauth2/authorize"
        return "https://auth.ebay.com/oauth2/authorize"

    @property
    def ebay_token_url(self) -> str:
        return f"{self.ebay_api_base_url}/identity/v1/oauth2/token"


settings = Settings()
