"""Tax obligation models and workflow vocabulary."""
from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from tms.models.stations import StationSummary

TaxType = Literal["acquisition", "property", "local", "other"]
TaxStatus = Literal["accounting_review", "payment_scheduled", "payment_completed"]

TAX_TYPE_LABELS = {
    "acquisition": "취득세",
    "property": "재산세",
    "local": "지방세",
    "other": "기타세",
    # legacy codes still present in older rows
    "income": "소득세",
    "corporate": "법인세",
    "vat": "부가가치세",
}

TAX_STATUS_LABELS = {
    "accounting_review": "회계사 검토",
    "payment_scheduled": "납부 예정",
    "payment_completed": "납부 완료",
}

ACQUISITION_STEPS: List[str] = ["accounting_review", "payment_scheduled", "payment_completed"]
DEFAULT_STEPS: List[str] = ["payment_scheduled", "payment_completed"]


class TaxObligation(BaseModel):
    """A single tax liability tied to a charging station."""
    id: str = Field(..., alias="_id")
    station_id: Optional[str] = None
    tax_type: str
    tax_amount: float = 0
    due_date: Optional[date] = None
    tax_notice_number: Optional[str] = None
    tax_year: Optional[int] = None
    tax_period: Optional[str] = None
    notes: Optional[str] = None
    status: TaxStatus = "payment_scheduled"
    payment_date: Optional[date] = None
    station: Optional[StationSummary] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class TaxCreate(BaseModel):
    station_id: str
    tax_type: TaxType
    tax_amount: float = Field(..., ge=0)
    due_date: date
    tax_notice_number: Optional[str] = None
    tax_year: Optional[int] = Field(None, ge=1900, le=2200)
    tax_period: Optional[str] = None
    notes: Optional[str] = None


class TaxUpdate(BaseModel):
    station_id: Optional[str] = None
    tax_type: Optional[TaxType] = None
    tax_amount: Optional[float] = Field(None, ge=0)
    due_date: Optional[date] = None
    tax_notice_number: Optional[str] = None
    tax_year: Optional[int] = Field(None, ge=1900, le=2200)
    tax_period: Optional[str] = None
    notes: Optional[str] = None


class TaxStatusChange(BaseModel):
    status: TaxStatus


class WorkflowStep(BaseModel):
    status: str
    label: str
    completed: bool
    current: bool


class Workflow(BaseModel):
    steps: List[WorkflowStep]
    next_status: Optional[str] = None
    prev_status: Optional[str] = None
