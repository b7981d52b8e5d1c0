"""
Suspicious sender API endpoints for mailmatch.
"""
from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from api.services.gmail import get_gmail_service
from api.services.rate_limiter import RateLimiter
from api.services.sender_checker import check_senders, normalize_addresses
from config.settings import settings

router = APIRouter(prefix="/api/senders", tags=["senders"])

MAX_ADDRESSES = 500


class CheckSendersRequest(BaseModel):
    """Addresses to check, one per entry."""
    addresses: list[str] = Field(max_length=MAX_ADDRESSES)


class SenderHitResponse(BaseModel):
    """An address the mailbox has exchanged mail with."""
    email: str
    thread_count: int
    last_date: Optional[str] = None


class CheckSendersResponse(BaseModel):
    """Report over all checked addresses."""
    checked: int
    found: int
    errors: int
    hits: list[SenderHitResponse]


@router.post("/check", response_model=CheckSendersResponse)
def check_suspicious_senders(request: CheckSendersRequest):
    """
    **Check addresses for mailbox interaction.**

    Use this after a phishing or breach notice: returns which of the listed
    addresses appear in any FROM or TO header, with thread counts and the
    date of the latest message.
    """
    if not normalize_addresses(request.addresses):
        raise HTTPException(status_code=400, detail="No valid addresses provided")

    try:
        service = get_gmail_service()
        report = check_senders(
            request.addresses,
            service,
            RateLimiter(settings.query_spacing_seconds),
        )
    except FileNotFoundError as e:
        raise HTTPException(status_code=401, detail=str(e))

    return CheckSendersResponse(**report.to_dict())
