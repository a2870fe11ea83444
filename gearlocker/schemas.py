from typing import Optional
from enum import Enum
from pydantic import BaseModel, Field
from datetime import date, datetime


class Condition(str, Enum):
    EXCELLENT = "Excellent"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"
    NEEDS_REPAIR = "Needs Repair"
    RETIRED = "Retired"
    DAMAGED = "Damaged"


class Category(str, Enum):
    TENTS = "Tents & Shelter"
    SLEEPING = "Sleeping Gear"
    BACKPACKS = "Backpacks"
    COOKING = "Cooking Equipment"
    STOVES = "Backpacking Stoves"
    COOKWARE = "Cookware"
    COOLERS = "Coolers & Storage"
    WATER = "Water & Hydration"
    LIGHTING = "Lighting"
    SAFETY = "Safety Equipment"
    WINTER = "Winter Gear"
    HIKING = "Hiking Accessories"
    TOOLS = "Tools & Repair"
    OTHER = "Other"


class CheckoutStatus(str, Enum):
    OUT = "OUT"
    RETURNED = "RETURNED"


class DisplayStatus(str, Enum):
    active = "active"
    due_soon = "due_soon"
    overdue = "overdue"
    returned = "returned"


# ---------- equipment ----------

class EquipmentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    item_number: str = Field(..., min_length=1, max_length=64)
    category: Category
    description: Optional[str] = None
    quantity_total: int = Field(0, ge=0, le=100000)
    condition: Condition = Condition.GOOD
    location: Optional[str] = None
    requires_inspection: bool = False
    last_inspection_date: Optional[date] = None
    purchase_price: Optional[float] = Field(None, ge=0)
    purchase_date: Optional[date] = None
    notes: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "name": "REI Half Dome 2 Tent",
                    "item_number": "TENT-001",
                    "category": "Tents & Shelter",
                    "quantity_total": 6,
                    "condition": "Good",
                    "location": "Cage A",
                }
            ]
        }
    }


class EquipmentUpdate(BaseModel):
    """Partial update: only the fields present in the request body are applied."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    category: Optional[Category] = None
    description: Optional[str] = None
    quantity_total: Optional[int] = Field(None, ge=0, le=100000)
    condition: Optional[Condition] = None
    location: Optional[str] = None
    requires_inspection: Optional[bool] = None
    last_inspection_date: Optional[date] = None
    notes: Optional[str] = None


class EquipmentRead(BaseModel):
    id: int
    name: str
    item_number: str
    category: str
    description: Optional[str] = None
    quantity_total: int
    quantity_available: int
    condition: Condition
    location: Optional[str] = None
    requires_inspection: bool
    last_inspection_date: Optional[date] = None
    purchase_price: Optional[float] = None
    purchase_date: Optional[date] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class EquipmentListResponse(BaseModel):
    items: list[EquipmentRead]
    total: int
    limit: int
    offset: int


class AvailabilityCheck(BaseModel):
    sku: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1)


class AvailabilityResult(BaseModel):
    sku: str
    name: str
    requested: int
    available: int
    can_fulfill: bool
    status: str
    condition: Condition
    location: Optional[str] = None
    requires_inspection: bool


# ---------- checkouts ----------

class CheckoutCreate(BaseModel):
    equipment_id: int = Field(..., ge=1)
    checked_out_by: str = Field(..., min_length=1, max_length=100)
    checked_out_by_adult: Optional[str] = None
    event_trip_name: Optional[str] = None
    expected_return_date: date
    quantity_checked_out: int = Field(1, ge=1, le=100000)
    condition_out: Optional[Condition] = Field(None, description="Defaults to the item's current condition")


class CheckoutReturn(BaseModel):
    condition_in: Condition
    return_notes: Optional[str] = None


class CheckoutUpdate(BaseModel):
    expected_return_date: date


class CheckoutRead(BaseModel):
    id: int
    equipment_id: int
    item_name: Optional[str] = None
    item_number: Optional[str] = None
    checked_out_by: str
    checked_out_by_adult: Optional[str] = None
    event_trip_name: Optional[str] = None
    checkout_date: datetime
    expected_return_date: date
    quantity_checked_out: int
    condition_out: Condition
    status: CheckoutStatus
    actual_return_date: Optional[datetime] = None
    condition_in: Optional[Condition] = None
    return_notes: Optional[str] = None
    display_status: DisplayStatus
    days_until_due: Optional[int] = None


class CheckoutListResponse(BaseModel):
    items: list[CheckoutRead]
    total: int
    limit: int
    offset: int


class CheckoutStats(BaseModel):
    active: int
    due_soon: int
    overdue: int
    returned: int


# ---------- sku registry ----------

class SkuCreate(BaseModel):
    item_name: str = Field(..., min_length=1, max_length=200)
    sku_number: str = Field(..., min_length=1, max_length=64)


class SkuRead(BaseModel):
    id: int
    item_name: str
    sku_number: str
