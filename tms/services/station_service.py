"""
Station Service
CRUD for charging stations.
"""
import logging
import re
from typing import Dict, List, Optional
from uuid import uuid4

from tms.config import _now_utc
from tms.db import get_collection
from tms.models.stations import ChargingStation, StationCreate, StationUpdate
from tms.services.errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


class StationService:
    @property
    def collection(self):
        return get_collection("charging_stations")

    @property
    def taxes_collection(self):
        return get_collection("taxes")

    async def list_stations(
        self,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[ChargingStation]:
        query: Dict = {}
        if status:
            query["status"] = status
        if search:
            pattern = re.escape(search.strip())
            query["$or"] = [
                {"station_name": {"$regex": pattern, "$options": "i"}},
                {"location": {"$regex": pattern, "$options": "i"}},
                {"address": {"$regex": pattern, "$options": "i"}},
            ]
        cursor = self.collection.find(query).sort("created_at", -1)
        docs = await cursor.to_list(length=None)
        return [ChargingStation.model_validate(d) for d in docs]

    async def get_station(self, station_id: str) -> ChargingStation:
        doc = await self.collection.find_one({"_id": station_id})
        if not doc:
            raise NotFoundError(f"Station {station_id} not found")
        return ChargingStation.model_validate(doc)

    async def get_stations_by_ids(self, station_ids: List[str]) -> Dict[str, ChargingStation]:
        if not station_ids:
            return {}
        cursor = self.collection.find({"_id": {"$in": list(set(station_ids))}})
        docs = await cursor.to_list(length=None)
        return {d["_id"]: ChargingStation.model_validate(d) for d in docs}

    async def create_station(self, data: StationCreate, user_id: Optional[str] = None) -> ChargingStation:
        now = _now_utc()
        doc = {
            "_id": str(uuid4()),
            **data.model_dump(),
            "created_by": user_id,
            "created_at": now,
            "updated_at": now,
        }
        await self.collection.insert_one(doc)
        return ChargingStation.model_validate(doc)

    async def update_station(self, station_id: str, data: StationUpdate) -> ChargingStation:
        update_data = data.model_dump(exclude_unset=True)
        update_data["updated_at"] = _now_utc()
        result = await self.collection.update_one({"_id": station_id}, {"$set": update_data})
        if result.matched_count == 0:
            raise NotFoundError(f"Station {station_id} not found")
        return await self.get_station(station_id)

    async def delete_station(self, station_id: str) -> None:
        """Delete a station; refused while any tax still references it."""
        linked = await self.taxes_collection.find_one({"station_id": station_id}, {"_id": 1})
        if linked:
            raise ConflictError("Station has registered taxes")
        result = await self.collection.delete_one({"_id": station_id})
        if result.deleted_count == 0:
            raise NotFoundError(f"Station {station_id} not found")
        logger.info("Deleted station %s", station_id)

    async def count_by_status(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        docs = await self.collection.find({}, {"status": 1}).to_list(length=None)
        for doc in docs:
            status = doc.get("status", "operating")
            counts[status] = counts.get(status, 0) + 1
        return counts


station_service = StationService()
