"""Charging station models."""
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

StationStatus = Literal["operating", "maintenance", "planned", "terminated"]

STATION_STATUS_LABELS = {
    "operating": "운영중",
    "maintenance": "점검중",
    "planned": "운영예정",
    "terminated": "운영종료",
}


class ChargingStation(BaseModel):
    """Charging station as stored in `charging_stations`."""
    id: str = Field(..., alias="_id")
    station_name: str
    location: str
    address: Optional[str] = None
    status: StationStatus = "operating"
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class StationCreate(BaseModel):
    station_name: str = Field(..., min_length=1, description="충전소 이름 또는 브랜드명")
    location: str = Field(..., min_length=1, description="도시, 구역, 지역명")
    address: Optional[str] = Field(None, description="상세 주소")
    status: StationStatus = "operating"


class StationUpdate(BaseModel):
    station_name: Optional[str] = Field(None, min_length=1)
    location: Optional[str] = Field(None, min_length=1)
    address: Optional[str] = None
    status: Optional[StationStatus] = None


class StationSummary(BaseModel):
    """Station fields embedded into tax and reminder reads."""
    id: str
    station_name: str
    location: Optional[str] = None
    address: Optional[str] = None


class StationImageAnalysis(BaseModel):
    """Structured guess returned by the vision model for a station photo."""
    station_name: str = ""
    location: str = ""
    address: Optional[str] = None
    status: Literal["operating", "maintenance", "planned"] = "operating"
