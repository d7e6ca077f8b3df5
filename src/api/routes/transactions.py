"""Transaction listing, lookup, review, export and analytics endpoints."""

import csv
import io
import json
import math
from collections.abc import Iterator
from datetime import datetime
from typing import Literal

import structlog
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ValidationError

from src.api.auth import get_principal, require_admin
from src.domains.fraud.errors import InvalidQuery
from src.domains.fraud.models import Pagination, Principal, Transaction, TransactionFilter
from src.domains.fraud.redaction import redact
from src.domains.fraud.store import as_utc
from src.runtime import Runtime

logger = structlog.get_logger()
router = APIRouter(prefix="/api/v1/transactions", tags=["transactions"])

MAX_PAGE_SIZE = 500

EXPORT_COLUMNS = [
    "ID",
    "Timestamp",
    "Amount",
    "Currency",
    "Customer",
    "Location",
    "Merchant",
    "Payment Method",
    "Risk Score",
    "Flagged",
    "Status",
    "Reviewed",
]


class ExportRequest(BaseModel):
    date_from: datetime | None = None
    date_to: datetime | None = None
    format: Literal["json", "csv"] = "json"


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime


def _build_filter(**values) -> TransactionFilter:
    try:
        flt = TransactionFilter(**values)
    except ValidationError as exc:
        raise InvalidQuery(exc.errors()[0]["msg"]) from None
    if flt.date_from and flt.date_to and as_utc(flt.date_from) > as_utc(flt.date_to):
        raise InvalidQuery("date_from must not be after date_to")
    return flt


@router.get("")
async def list_transactions(
    page: int = 1,
    page_size: int = 50,
    sort_by: str = "timestamp",
    sort_order: str = "desc",
    min_risk_score: int | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    flagged_only: bool = False,
    principal: Principal = Depends(get_principal),  # noqa: B008
    runtime: Runtime = Depends(get_runtime),  # noqa: B008
) -> dict:
    if page_size > MAX_PAGE_SIZE:
        raise InvalidQuery(f"page_size must be <= {MAX_PAGE_SIZE}")
    flt = _build_filter(
        date_from=date_from,
        date_to=date_to,
        min_risk_score=min_risk_score,
        flagged_only=flagged_only,
    )

    events, total = await runtime.store.list_transactions(
        flt,
        sort_by=sort_by,
        sort_order=sort_order.lower(),
        page=page,
        page_size=page_size,
    )
    pagination = Pagination(
        page=page,
        page_size=page_size,
        total=total,
        total_pages=math.ceil(total / page_size) if total else 0,
    )
    return {
        "transactions": [redact(e, principal.role) for e in events],
        "pagination": pagination.model_dump(),
    }


@router.get("/stats")
async def transaction_stats(
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    principal: Principal = Depends(get_principal),  # noqa: B008
    runtime: Runtime = Depends(get_runtime),  # noqa: B008
) -> dict:
    flt = _build_filter(date_from=date_from, date_to=date_to)
    snapshot = await runtime.stats.compute(flt)
    return snapshot.model_dump(mode="json")


@router.post("/export")
async def export_transactions(
    body: ExportRequest,
    principal: Principal = Depends(require_admin),  # noqa: B008
    runtime: Runtime = Depends(get_runtime),  # noqa: B008
) -> StreamingResponse:
    flt = _build_filter(date_from=body.date_from, date_to=body.date_to)
    events = await runtime.store.export(flt)

    logger.info(
        "transactions_exported",
        user_id=principal.user_id,
        export_format=body.format,
        count=len(events),
    )

    if body.format == "csv":
        return StreamingResponse(
            _csv_rows(events),
            media_type="text/csv",
            headers={"Content-Disposition": "attachment; filename=transactions.csv"},
        )
    return StreamingResponse(
        _json_chunks(events),
        media_type="application/json",
        headers={"Content-Disposition": "attachment; filename=transactions.json"},
    )


@router.get("/{transaction_id}")
async def get_transaction(
    transaction_id: str,
    principal: Principal = Depends(get_principal),  # noqa: B008
    runtime: Runtime = Depends(get_runtime),  # noqa: B008
) -> dict:
    event = await runtime.store.get(transaction_id)
    return redact(event, principal.role)


@router.patch("/{transaction_id}/review")
async def review_transaction(
    transaction_id: str,
    principal: Principal = Depends(require_admin),  # noqa: B008
    runtime: Runtime = Depends(get_runtime),  # noqa: B008
) -> dict:
    event = await runtime.store.mark_reviewed(transaction_id, principal.user_id)
    runtime.hub.publish_reviewed(event, reviewer_name=principal.display_name)
    return {
        "message": "Transaction marked as reviewed",
        "transaction": event.model_dump(mode="json"),
    }


def _json_chunks(events: list[Transaction]) -> Iterator[str]:
    yield "["
    for i, event in enumerate(events):
        if i:
            yield ","
        yield json.dumps(event.model_dump(mode="json"))
    yield "]"


def _csv_rows(events: list[Transaction]) -> Iterator[str]:
    buffer = io.StringIO()
    writer = csv.writer(buffer)

    def flush() -> str:
        value = buffer.getvalue()
        buffer.seek(0)
        buffer.truncate(0)
        return value

    writer.writerow(EXPORT_COLUMNS)
    yield flush()
    for event in events:
        writer.writerow(
            [
                event.transaction_id,
                event.timestamp.isoformat(),
                str(event.amount),
                event.currency,
                event.customer.name,
                event.customer.location,
                event.merchant,
                event.payment_method.value,
                event.risk_score,
                "Yes" if event.is_flagged else "No",
                event.status.value,
                "Yes" if event.is_reviewed else "No",
            ]
        )
        yield flush()
