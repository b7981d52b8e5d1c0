"""
Name resolution API endpoints for mailmatch.

Resolves display names to email addresses through the mailbox and
calendar search cascade.
"""
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from api.services.email_resolver import get_email_resolver
from api.services.row_driver import (
    CollectingSink,
    NoInputError,
    RowInput,
    resolve_row,
    resolve_rows,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/resolve", tags=["resolve"])

MAX_BATCH_NAMES = 100


class ResolveRequest(BaseModel):
    """Request to resolve one name."""
    name: str
    prior_email: Optional[str] = None
    prior_confidence: Optional[str] = None


class ResolveResponse(BaseModel):
    """Outcome for one name."""
    name: str
    skipped: bool = False
    email: str = ""
    status: str = ""
    alternates: str = ""
    confidence: str = ""
    phases_searched: list[str] = []


class BatchResolveRequest(BaseModel):
    """Request to resolve several names in order."""
    names: list[str] = Field(max_length=MAX_BATCH_NAMES)


class BatchResolveResponse(BaseModel):
    """Outcomes plus run counts."""
    results: list[ResolveResponse]
    total: int
    found: int
    not_found: int
    empty: int
    errors: int


def _get_resolver():
    try:
        return get_email_resolver()
    except FileNotFoundError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to initialize resolver: {e}")


def _to_response(row: RowInput, sink: CollectingSink) -> ResolveResponse:
    outcome = sink.outcomes.get(row.row_number)
    phases = [tag.value for number, tag in sink.progress if number == row.row_number]
    if outcome is None:
        return ResolveResponse(name=row.name, skipped=True, email=row.prior_email,
                               confidence=row.prior_confidence)
    return ResolveResponse(name=row.name, phases_searched=phases, **outcome.to_dict())


@router.post("", response_model=ResolveResponse)
def resolve_name(request: ResolveRequest):
    """
    **Resolve a display name** to the most likely email address.

    Searches FROM, TO, CC and BCC headers, then calendar guests, then message
    bodies, stopping at the first source that yields a match.

    Pass `prior_email` and `prior_confidence` from an earlier run to skip
    names that were already resolved with a score of 10 or more.
    """
    resolver = _get_resolver()
    row = RowInput(
        row_number=1,
        name=request.name,
        prior_email=request.prior_email or "",
        prior_confidence=request.prior_confidence or "",
    )
    sink = CollectingSink()
    resolve_row(row, resolver, sink)
    return _to_response(row, sink)


@router.post("/batch", response_model=BatchResolveResponse)
def resolve_batch(request: BatchResolveRequest):
    """
    **Resolve several names** in order.

    A failure on one name is reported in that name's status and does not
    stop the batch.
    """
    resolver = _get_resolver()
    rows = [RowInput(row_number=i + 1, name=name) for i, name in enumerate(request.names)]
    sink = CollectingSink()

    try:
        summary = resolve_rows(rows, resolver, sink)
    except NoInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return BatchResolveResponse(
        results=[_to_response(row, sink) for row in rows],
        total=summary.total,
        found=summary.found,
        not_found=summary.not_found,
        empty=summary.empty,
        errors=summary.errors,
    )
