"""
Bounce scan API endpoints for mailmatch.
"""
from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from api.services.bounce_extractor import scan_bounces, update_ledger
from api.services.gmail import get_gmail_service
from api.services.rate_limiter import RateLimiter
from api.services.sheets import get_bounce_ledger_sheet
from config.settings import settings

router = APIRouter(prefix="/api/bounces", tags=["bounces"])


class ScanBouncesRequest(BaseModel):
    """Look-back window and whether to record results in the ledger tab."""
    days: Optional[int] = Field(default=None, ge=1, le=365)
    record: bool = False


class BounceResponse(BaseModel):
    """One recipient named by one bounce notification."""
    email: str
    date: str
    subject: str
    from_header: str
    thread_url: str


class LedgerUpdateResponse(BaseModel):
    created: int
    updated: int


class ScanBouncesResponse(BaseModel):
    """Scan counts, bounced addresses and the ledger changes (when recorded)."""
    days: int
    threads: int
    bounce_messages: int
    unextracted: int
    addresses: list[str]
    bounces: list[BounceResponse]
    ledger: Optional[LedgerUpdateResponse] = None


@router.post("/scan", response_model=ScanBouncesResponse)
def scan_recent_bounces(request: ScanBouncesRequest):
    """
    **Find hard-bounced recipients in recent mail.**

    Scans the last `days` days (spam and trash included) for delivery
    failure notices and reports the recipients that bounced. With
    `record` set, the results are merged into the bounce ledger tab of
    the configured spreadsheet.
    """
    if request.record and not settings.sheet_enabled:
        raise HTTPException(status_code=400, detail="No spreadsheet configured for the bounce ledger")

    days = request.days or settings.bounce_scan_days
    try:
        gmail = get_gmail_service()
        self_addresses = frozenset(gmail.get_self_addresses() | set(settings.self_aliases))
        scan = scan_bounces(
            gmail,
            days,
            self_addresses=self_addresses,
            rate_limiter=RateLimiter(settings.query_spacing_seconds),
            max_threads=settings.max_bounce_threads,
        )
        ledger = update_ledger(get_bounce_ledger_sheet(), scan.bounces) if request.record else None
    except FileNotFoundError as e:
        raise HTTPException(status_code=401, detail=str(e))

    return ScanBouncesResponse(
        **scan.to_dict(),
        ledger=ledger.to_dict() if ledger else None,
    )
