"""
Pydantic Models for Repository Input/Output and Request Validation

Field names match the stored document fields. Read models are lenient
(legacy documents carry strings, structured timestamps and missing fields);
create models validate what callers send.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from phoneshop.models.enums import SettlementStatus, SettlementType
from phoneshop.services.financials import derive_total_part_cost, to_number
from phoneshop.services.timestamps import to_datetime


def _optional_number(value: Any) -> Optional[float]:
    return None if value is None else to_number(value)


def _strict_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    parsed = to_datetime(value)
    if parsed is None:
        raise ValueError(f"Unrecognized date: {value!r}")
    return parsed


# =============================================================================
# Maintenance jobs
# =============================================================================

class JobPart(BaseModel):
    """One replaced part as stored; rep_id None means no representative gets credit"""
    model_config = ConfigDict(extra="allow")

    part_name: Optional[str] = None
    part_cost: float = 0.0
    rep_id: Optional[str] = None
    rep_name: Optional[str] = None

    @field_validator("part_cost", mode="before")
    @classmethod
    def _coerce_cost(cls, v):
        return to_number(v)

    @field_validator("part_name", "rep_id", "rep_name", mode="before")
    @classmethod
    def _coerce_text(cls, v):
        return None if v is None else str(v)


class JobPartInput(JobPart):
    """Part sent by a caller; costs may not be negative"""
    part_cost: float = Field(default=0.0, ge=0)


class LegacyAttribution(BaseModel):
    """Older job shape: one representative and one part cost per job"""
    kind: Literal["legacy"] = "legacy"
    rep_id: Optional[str] = None
    rep_name: Optional[str] = None
    part_name: Optional[str] = None
    part_cost: float = 0.0

    @field_validator("rep_id", "rep_name", "part_name", mode="before")
    @classmethod
    def _coerce_text(cls, v):
        return None if v is None else str(v)


class PartsAttribution(BaseModel):
    """Current job shape: each part carries its own representative"""
    kind: Literal["parts"] = "parts"
    parts: List[JobPart] = Field(default_factory=list)


Attribution = Union[LegacyAttribution, PartsAttribution]


class MaintenanceJobCreate(BaseModel):
    """New repair visit. Derived financials and status are set by the repository."""
    model_config = ConfigDict(extra="allow")

    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    device_model: Optional[str] = None
    device_serial: Optional[str] = None
    issue: Optional[str] = None
    visit_date: Optional[datetime] = None
    amount_charged: float = Field(default=0.0, ge=0)
    tech_id: Optional[str] = None
    tech_name: Optional[str] = None
    tech_percent: Optional[float] = Field(default=None, ge=0, le=1)
    # New shape
    parts: Optional[List[JobPartInput]] = None
    # Legacy shape
    rep_id: Optional[str] = None
    rep_name: Optional[str] = None
    part_name: Optional[str] = None
    part_cost: Optional[float] = Field(default=None, ge=0)
    total_part_cost: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None

    @field_validator("amount_charged", mode="before")
    @classmethod
    def _coerce_amount(cls, v):
        return to_number(v)

    @field_validator("tech_percent", "part_cost", "total_part_cost", mode="before")
    @classmethod
    def _coerce_optional_numbers(cls, v):
        return _optional_number(v)

    @field_validator("visit_date", mode="before")
    @classmethod
    def _parse_visit_date(cls, v):
        return _strict_datetime(v)


class MaintenanceJobUpdate(MaintenanceJobCreate):
    """Partial update: only fields explicitly set are written"""
    amount_charged: Optional[float] = Field(default=None, ge=0)
    status: Optional[str] = None

    @field_validator("amount_charged", mode="before")
    @classmethod
    def _coerce_amount(cls, v):
        return _optional_number(v)


class MaintenanceJob(BaseModel):
    """Stored maintenance job as returned by the repository"""
    model_config = ConfigDict(extra="allow")

    id: str
    status: Optional[str] = None
    customer_name: Optional[str] = None
    device_model: Optional[str] = None
    visit_date: Optional[datetime] = None
    amount_charged: float = 0.0
    tech_id: Optional[str] = None
    tech_name: Optional[str] = None
    tech_percent: Optional[float] = None
    attribution: Attribution = Field(default_factory=LegacyAttribution, discriminator="kind")
    total_part_cost: float = 0.0
    profit: float = 0.0
    tech_commission: float = 0.0
    shop_profit: float = 0.0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("amount_charged", "total_part_cost", "profit", "tech_commission", "shop_profit", mode="before")
    @classmethod
    def _coerce_numbers(cls, v):
        return to_number(v)

    @field_validator("tech_percent", mode="before")
    @classmethod
    def _coerce_percent(cls, v):
        return _optional_number(v)

    @field_validator("visit_date", "created_at", "updated_at", mode="before")
    @classmethod
    def _lenient_dates(cls, v):
        return to_datetime(v)

    @field_validator("status", "tech_id", mode="before")
    @classmethod
    def _stringify(cls, v):
        return None if v is None else str(v)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "MaintenanceJob":
        """Build from a raw stored document, tagging which attribution shape it uses"""
        data = dict(record)
        if data.get("total_part_cost") is None:
            # Older documents only carry part_cost / parts
            data["total_part_cost"] = derive_total_part_cost(record)
        parts = data.pop("parts", None)
        legacy = {
            "rep_id": data.pop("rep_id", None),
            "rep_name": data.pop("rep_name", None),
            "part_name": data.pop("part_name", None),
            "part_cost": data.pop("part_cost", None),
        }

        if isinstance(parts, list) and len(parts) > 0:
            attribution: Attribution = PartsAttribution(
                parts=[JobPart.model_validate(p) for p in parts if isinstance(p, dict)]
            )
        else:
            attribution = LegacyAttribution(
                rep_id=legacy["rep_id"],
                rep_name=legacy["rep_name"],
                part_name=legacy["part_name"],
                part_cost=to_number(legacy["part_cost"]) or to_number(data.get("total_part_cost")),
            )

        data["attribution"] = attribution
        return cls.model_validate(data)


class JobFilters(BaseModel):
    """Optional, combinable filters for listing jobs"""
    status: Optional[str] = None
    tech_id: Optional[str] = None
    rep_id: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None

    @field_validator("date_from", "date_to", mode="before")
    @classmethod
    def _parse_dates(cls, v):
        return _strict_datetime(v)

    @property
    def has_date_range(self) -> bool:
        return self.date_from is not None or self.date_to is not None


# =============================================================================
# Settlements
# =============================================================================

class SettlementCreate(BaseModel):
    """Payout owed to a representative or technician"""
    model_config = ConfigDict(extra="allow")

    type: SettlementType
    entity_id: str
    entity_name: Optional[str] = None
    amount: float = Field(default=0.0, ge=0)
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    notes: Optional[str] = None

    @field_validator("date_from", "date_to", mode="before")
    @classmethod
    def _parse_dates(cls, v):
        return _strict_datetime(v)


class Settlement(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    type: Optional[str] = None
    status: Optional[str] = None
    entity_id: Optional[str] = None
    entity_name: Optional[str] = None
    amount: float = 0.0
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    notes: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, v):
        return to_number(v)

    @field_validator("date_from", "date_to", "paid_at", "created_at", "updated_at", mode="before")
    @classmethod
    def _lenient_dates(cls, v):
        return to_datetime(v)


class MarkPaidRequest(BaseModel):
    notes: str = ""


# =============================================================================
# Staff
# =============================================================================

class RepCreate(BaseModel):
    """Parts representative"""
    model_config = ConfigDict(extra="allow")

    name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    notes: Optional[str] = None


class RepUpdate(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    active: Optional[bool] = None


class TechnicianCreate(RepCreate):
    default_commission_percent: Optional[float] = Field(default=None, ge=0, le=1)


class TechnicianUpdate(RepUpdate):
    default_commission_percent: Optional[float] = Field(default=None, ge=0, le=1)


class StaffMember(BaseModel):
    """Rep or technician as stored"""
    model_config = ConfigDict(extra="allow")

    id: str
    name: Optional[str] = None
    phone: Optional[str] = None
    active: bool = True
    default_commission_percent: Optional[float] = None


# =============================================================================
# Inventory
# =============================================================================

class PhoneCreate(BaseModel):
    """Phone in stock; phone_number is the 6-digit barcode"""
    model_config = ConfigDict(extra="allow")

    phone_number: Union[str, int]
    brand: Optional[str] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None
    phone_color: Optional[str] = None
    phone_memory: Optional[str] = None
    description: Optional[str] = None
    purchase_price: Optional[float] = Field(default=None, ge=0)
    sale_price: Optional[float] = Field(default=None, ge=0)


class Phone(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    phone_number: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None

    @field_validator("phone_number", mode="before")
    @classmethod
    def _stringify(cls, v):
        return None if v is None else str(v)


class IdResponse(BaseModel):
    id: str
