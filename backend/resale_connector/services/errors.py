"""Exception taxonomy for the eBay integration and spreadsheet ingestion.

Sync and import entry points never raise these for partial failures; they
are converted into entries of the ``errors`` list on the result objects.
The HTTP layer maps ``NotConnected`` to 400 and ``UpstreamError`` to 502.
"""

from typing import Any, Optional


class EbayIntegrationError(Exception):
    """Base class for every error raised by the integration core."""


class NotConnected(EbayIntegrationError):
    """The account has no usable eBay credential."""

    def __init__(self, message: str = "eBay account not connected or token expired"):
        super().__init__(message)


class RefreshFailure(NotConnected):
    """The refresh grant was rejected or could not be performed.

    The stored credential has already been cleared when this is raised.
    """

    def __init__(self, message: str = "eBay token refresh failed", status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UpstreamError(EbayIntegrationError):
    """eBay answered with a non-2xx status, or the request never completed.

    ``status_code`` is ``None`` for transport errors (timeouts, DNS, resets).
    """

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class CredentialConflict(EbayIntegrationError):
    """A credential write lost a compare-and-swap against a concurrent writer."""


class SheetParseError(EbayIntegrationError):
    """A workbook or sheet could not be read at all."""

    def __init__(self, message: str, sheet_name: Optional[str] = None):
        super().__init__(message)
        self.sheet_name = sheet_name
