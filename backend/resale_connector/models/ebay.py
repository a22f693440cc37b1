from pydantic import BaseModel
from typing import Optional, List, Dict
from datetime import datetime


class EbayTokenResponse(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: int
    token_type: str = "User Access Token"
    refresh_token_expires_in: Optional[int] = None


class EbayConnectResponse(BaseModel):
    authorization_url: str
    state: str


class EbayConnectionStatus(BaseModel):
    connected: bool
    configured: bool
    environment: str
    ebay_username: Optional[str] = None
    ebay_user_id: Optional[str] = None
    connected_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class EbaySyncRequest(BaseModel):
    type: str = "all"
    days_back: Optional[int] = None


class EbaySyncResponse(BaseModel):
    success: bool
    type: str
    result: Dict


class EbaySyncStatus(BaseModel):
    connected: bool
    counts: Dict[str, int]
    last_sync: Optional[datetime] = None


class EbayLogEntry(BaseModel):
    timestamp: str
    event_type: str
    description: str
    status: str
    error: Optional[str] = None


class EbayLogsResponse(BaseModel):
    logs: List[EbayLogEntry]
    total: int
