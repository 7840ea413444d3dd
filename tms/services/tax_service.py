"""
Tax Service
Stores tax obligations and walks them through the approval workflow.
"""
import logging
import re
from collections import defaultdict
from datetime import date
from typing import Any, Dict, List, Optional
from uuid import uuid4

from tms.config import _now_utc
from tms.db import get_collection
from tms.models.stations import StationSummary
from tms.models.taxes import (
    ACQUISITION_STEPS,
    DEFAULT_STEPS,
    TAX_STATUS_LABELS,
    TaxCreate,
    TaxObligation,
    TaxUpdate,
    Workflow,
    WorkflowStep,
)
from tms.services.date_utils import today_and_now_hm
from tms.services.errors import InvalidTransitionError, NotFoundError
from tms.services.station_service import station_service

logger = logging.getLogger(__name__)

COMPLETED = "payment_completed"


def workflow_steps(tax_type: str) -> List[str]:
    return ACQUISITION_STEPS if tax_type == "acquisition" else DEFAULT_STEPS


def initial_status(tax_type: str) -> str:
    return workflow_steps(tax_type)[0]


def build_workflow(tax_type: str, status: Optional[str]) -> Workflow:
    steps = workflow_steps(tax_type)
    effective = status if status in steps else steps[0]
    current_index = steps.index(effective)
    return Workflow(
        steps=[
            WorkflowStep(
                status=step,
                label=TAX_STATUS_LABELS[step],
                completed=index < current_index,
                current=index == current_index,
            )
            for index, step in enumerate(steps)
        ],
        next_status=steps[current_index + 1] if current_index < len(steps) - 1 else None,
        prev_status=steps[current_index - 1] if current_index > 0 else None,
    )


def check_transition(tax_type: str, current: Optional[str], new: str) -> None:
    """Only single steps forward or back along the type's workflow are allowed."""
    steps = workflow_steps(tax_type)
    if new not in steps:
        raise InvalidTransitionError(f"'{new}' is not a step of the {tax_type} workflow")
    if current not in steps:
        return
    distance = steps.index(new) - steps.index(current)
    if abs(distance) != 1:
        raise InvalidTransitionError(f"Cannot move {tax_type} tax from '{current}' to '{new}'")


def _serialize_dates(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: (v.isoformat() if isinstance(v, date) else v) for k, v in data.items()}


class TaxService:
    @property
    def collection(self):
        return get_collection("taxes")

    async def _with_stations(self, docs: List[Dict[str, Any]]) -> List[TaxObligation]:
        stations = await station_service.get_stations_by_ids(
            [d["station_id"] for d in docs if d.get("station_id")]
        )
        result = []
        for doc in docs:
            station = stations.get(doc.get("station_id"))
            if station:
                doc = {
                    **doc,
                    "station": StationSummary(
                        id=station.id,
                        station_name=station.station_name,
                        location=station.location,
                        address=station.address,
                    ),
                }
            result.append(TaxObligation.model_validate(doc))
        return result

    async def list_taxes(
        self,
        tax_type: Optional[str] = None,
        status: Optional[str] = None,
        station_id: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[TaxObligation]:
        query: Dict[str, Any] = {}
        if tax_type:
            query["tax_type"] = tax_type
        if status:
            query["status"] = status
        if station_id:
            query["station_id"] = station_id
        docs = await self.collection.find(query).sort("due_date", 1).to_list(length=None)
        taxes = await self._with_stations(docs)
        if search:
            needle = search.strip().lower()
            taxes = [
                t for t in taxes
                if needle in (t.tax_notice_number or "").lower()
                or needle in (t.notes or "").lower()
                or (t.station and needle in t.station.station_name.lower())
            ]
        return taxes

    async def get_tax(self, tax_id: str) -> TaxObligation:
        doc = await self.collection.find_one({"_id": tax_id})
        if not doc:
            raise NotFoundError(f"Tax {tax_id} not found")
        return (await self._with_stations([doc]))[0]

    async def create_tax(self, data: TaxCreate, user_id: Optional[str] = None) -> TaxObligation:
        await station_service.get_station(data.station_id)
        now = _now_utc()
        doc = {
            "_id": str(uuid4()),
            **_serialize_dates(data.model_dump()),
            "status": initial_status(data.tax_type),
            "payment_date": None,
            "created_by": user_id,
            "updated_by": user_id,
            "created_at": now,
            "updated_at": now,
        }
        await self.collection.insert_one(doc)
        return await self.get_tax(doc["_id"])

    async def update_tax(self, tax_id: str, data: TaxUpdate, user_id: Optional[str] = None) -> TaxObligation:
        current = await self.get_tax(tax_id)
        update_data = _serialize_dates(data.model_dump(exclude_unset=True))
        if data.station_id:
            await station_service.get_station(data.station_id)
        # A type change can leave the status outside the new workflow
        new_type = update_data.get("tax_type", current.tax_type)
        if current.status not in workflow_steps(new_type):
            update_data["status"] = initial_status(new_type)
        update_data["updated_by"] = user_id
        update_data["updated_at"] = _now_utc()
        await self.collection.update_one({"_id": tax_id}, {"$set": update_data})
        return await self.get_tax(tax_id)

    async def change_status(self, tax_id: str, new_status: str, user_id: Optional[str] = None) -> TaxObligation:
        tax = await self.get_tax(tax_id)
        check_transition(tax.tax_type, tax.status, new_status)
        update_data: Dict[str, Any] = {
            "status": new_status,
            "updated_by": user_id,
            "updated_at": _now_utc(),
        }
        if new_status == COMPLETED:
            today, _ = today_and_now_hm()
            update_data["payment_date"] = today.isoformat()
        else:
            update_data["payment_date"] = None
        await self.collection.update_one({"_id": tax_id}, {"$set": update_data})
        logger.info("Tax %s moved %s -> %s", tax_id, tax.status, new_status)
        return await self.get_tax(tax_id)

    async def delete_tax(self, tax_id: str) -> None:
        result = await self.collection.delete_one({"_id": tax_id})
        if result.deleted_count == 0:
            raise NotFoundError(f"Tax {tax_id} not found")

    async def list_open_obligations(self) -> List[TaxObligation]:
        """Obligations with a due date that are not yet paid."""
        docs = await self.collection.find(
            {"due_date": {"$ne": None}, "status": {"$ne": COMPLETED}}
        ).to_list(length=None)
        return await self._with_stations(docs)

    async def list_open_due_on(self, due: date) -> List[TaxObligation]:
        docs = await self.collection.find(
            {"due_date": due.isoformat(), "status": {"$ne": COMPLETED}}
        ).to_list(length=None)
        return await self._with_stations(docs)

    async def get_calendar(self, year: int, month: int) -> Dict[str, List[TaxObligation]]:
        """Obligations due in the given month, grouped by due date."""
        first = date(year, month, 1)
        after = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
        docs = await self.collection.find(
            {"due_date": {"$gte": first.isoformat(), "$lt": after.isoformat()}}
        ).sort("due_date", 1).to_list(length=None)
        grouped: Dict[str, List[TaxObligation]] = defaultdict(list)
        for tax in await self._with_stations(docs):
            grouped[tax.due_date.isoformat()].append(tax)
        return dict(grouped)


tax_service = TaxService()
