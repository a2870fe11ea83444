from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import date, datetime, timezone


def utcnow() -> datetime:
    # naive UTC, matching what the columns store
    return datetime.now(timezone.utc).replace(tzinfo=None)


class EquipmentItem(SQLModel, table=True):
    __tablename__ = "equipment"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    item_number: str = Field(index=True, unique=True)   # SKU
    category: str = Field(index=True)
    description: Optional[str] = None

    quantity_total: int = Field(default=0)
    condition: str = Field(default="Good", index=True)
    location: Optional[str] = None

    requires_inspection: bool = Field(default=False)
    last_inspection_date: Optional[date] = None
    purchase_price: Optional[float] = None
    purchase_date: Optional[date] = Field(default_factory=date.today)
    notes: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Checkout(SQLModel, table=True):
    __tablename__ = "checkouts"

    id: Optional[int] = Field(default=None, primary_key=True)

    equipment_id: int = Field(foreign_key="equipment.id", index=True)

    checked_out_by: str = Field(index=True)
    checked_out_by_adult: Optional[str] = None
    event_trip_name: Optional[str] = None

    checkout_date: datetime = Field(default_factory=utcnow)
    expected_return_date: date = Field(index=True)
    quantity_checked_out: int
    condition_out: str

    status: str = Field(default="OUT", index=True)      # OUT / RETURNED

    # set only on return
    actual_return_date: Optional[datetime] = None
    condition_in: Optional[str] = None
    return_notes: Optional[str] = None


class SkuRecord(SQLModel, table=True):
    __tablename__ = "skus"

    id: Optional[int] = Field(default=None, primary_key=True)
    item_name: str = Field(index=True)
    sku_number: str = Field(index=True, unique=True)
