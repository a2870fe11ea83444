from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from gearlocker.config import Settings, get_settings
from gearlocker.db import get_session
from gearlocker.schemas import (
    CheckoutCreate,
    CheckoutListResponse,
    CheckoutRead,
    CheckoutReturn,
    CheckoutStats,
    CheckoutUpdate,
)
from gearlocker.services import ledger

router = APIRouter(prefix="/api/checkouts", tags=["checkouts"])


@router.get("", response_model=CheckoutListResponse)
def list_checkouts(
        status: Optional[str] = Query(None, description="OUT (or active) / RETURNED / overdue / all"),
        limit: int = Query(50, ge=1, le=200),
        offset: int = Query(0, ge=0),
        session: Session = Depends(get_session),
        settings: Settings = Depends(get_settings),
):
    items, total = ledger.list_checkouts(
        session, status, limit=limit, offset=offset, due_soon_days=settings.due_soon_days
    )
    return {"items": items, "total": total, "limit": limit, "offset": offset}


@router.get("/stats", response_model=CheckoutStats)
def checkout_stats(
        session: Session = Depends(get_session),
        settings: Settings = Depends(get_settings),
):
    return ledger.checkout_stats(session, due_soon_days=settings.due_soon_days)


@router.post("", response_model=CheckoutRead, status_code=201)
def create_checkout(
        data: CheckoutCreate,
        session: Session = Depends(get_session),
        settings: Settings = Depends(get_settings),
):
    return ledger.record_checkout(session, data, due_soon_days=settings.due_soon_days)


@router.get("/{checkout_id}", response_model=CheckoutRead)
def get_checkout(
        checkout_id: int,
        session: Session = Depends(get_session),
        settings: Settings = Depends(get_settings),
):
    return ledger.get_checkout(session, checkout_id, due_soon_days=settings.due_soon_days)


@router.patch("/{checkout_id}", response_model=CheckoutRead)
def update_checkout(
        checkout_id: int,
        body: CheckoutUpdate,
        session: Session = Depends(get_session),
        settings: Settings = Depends(get_settings),
):
    return ledger.extend_checkout(
        session, checkout_id, body.expected_return_date, due_soon_days=settings.due_soon_days
    )


@router.put("/{checkout_id}/return", response_model=CheckoutRead)
def return_checkout(
        checkout_id: int,
        body: CheckoutReturn,
        session: Session = Depends(get_session),
        settings: Settings = Depends(get_settings),
):
    return ledger.record_return(session, checkout_id, body, due_soon_days=settings.due_soon_days)
