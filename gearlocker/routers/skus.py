from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from gearlocker.db import get_session
from gearlocker.error import DuplicateKey, NotFound
from gearlocker.models import SkuRecord
from gearlocker.schemas import SkuCreate, SkuRead

router = APIRouter(prefix="/api/skus", tags=["skus"])


@router.get("", response_model=list[SkuRead])
def list_skus(session: Session = Depends(get_session)):
    return session.exec(select(SkuRecord).order_by(SkuRecord.item_name.asc())).all()


@router.post("", response_model=SkuRead, status_code=201)
def create_sku(data: SkuCreate, session: Session = Depends(get_session)):
    sku = SkuRecord(item_name=data.item_name, sku_number=data.sku_number)
    session.add(sku)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise DuplicateKey("SKU number already exists")
    session.refresh(sku)
    return sku


@router.delete("/{sku_id}")
def delete_sku(sku_id: int, session: Session = Depends(get_session)):
    sku = session.get(SkuRecord, sku_id)
    if not sku:
        raise NotFound("SKU not found")
    session.delete(sku)
    session.commit()
    return {"ok": True}
