from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from gearlocker.config import Settings, get_settings
from gearlocker.db import get_session
from gearlocker.schemas import (
    AvailabilityCheck,
    AvailabilityResult,
    Category,
    CheckoutRead,
    Condition,
    EquipmentCreate,
    EquipmentListResponse,
    EquipmentRead,
    EquipmentUpdate,
)
from gearlocker.services import catalog, ledger

router = APIRouter(prefix="/api/equipment", tags=["equipment"])


@router.get("", response_model=EquipmentListResponse)
def list_equipment(
        category: Optional[Category] = Query(None),
        condition: Optional[Condition] = Query(None),
        available: bool = Query(False, description="Only items with quantity_available > 0"),
        q: Optional[str] = Query(None, max_length=100, description="Search name / item number"),
        limit: int = Query(50, ge=1, le=200),
        offset: int = Query(0, ge=0),
        session: Session = Depends(get_session),
):
    items, total = catalog.list_items(
        session,
        category=category,
        condition=condition,
        only_available=available,
        q=q,
        limit=limit,
        offset=offset,
    )
    return {"items": items, "total": total, "limit": limit, "offset": offset}


@router.post("", response_model=EquipmentRead, status_code=201)
def create_equipment(data: EquipmentCreate, session: Session = Depends(get_session)):
    return catalog.create_item(session, data)


@router.post("/check-availability", response_model=AvailabilityResult)
def check_availability(data: AvailabilityCheck, session: Session = Depends(get_session)):
    return catalog.check_availability(session, data.sku, data.quantity)


@router.get("/{item_id}", response_model=EquipmentRead)
def get_equipment(item_id: int, session: Session = Depends(get_session)):
    return catalog.get_item(session, item_id)


@router.put("/{item_id}", response_model=EquipmentRead)
def update_equipment(
        item_id: int,
        data: EquipmentUpdate,
        session: Session = Depends(get_session),
):
    return catalog.update_item(session, item_id, data)


@router.delete("/{item_id}")
def delete_equipment(item_id: int, session: Session = Depends(get_session)):
    catalog.delete_item(session, item_id)
    return {"ok": True}


@router.get("/{item_id}/history", response_model=list[CheckoutRead])
def equipment_history(
        item_id: int,
        session: Session = Depends(get_session),
        settings: Settings = Depends(get_settings),
):
    return ledger.item_history(session, item_id, due_soon_days=settings.due_soon_days)
