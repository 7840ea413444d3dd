"""
Charging Station API Routes
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from tms.models.stations import StationCreate, StationStatus, StationUpdate
from tms.models.users import Session
from tms.routes.auth.permissions import MANAGE_STATIONS, VIEW, require_capability
from tms.routes.responses import DOMAIN_ERRORS, success, to_http_error
from tms.services.audit_service import audit_service
from tms.services.errors import ConflictError
from tms.services.station_service import station_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["stations"])


@router.get("/")
async def list_stations(
    status_filter: Optional[StationStatus] = Query(None, alias="status"),
    search: Optional[str] = None,
    session: Session = Depends(require_capability(VIEW)),
):
    try:
        stations = await station_service.list_stations(status=status_filter, search=search)
        return success(stations)
    except Exception as exc:
        logger.exception("Failed to list stations")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="충전소 목록을 불러오는 중 오류가 발생했습니다.",
        ) from exc


@router.get("/{station_id}")
async def get_station(station_id: str, session: Session = Depends(require_capability(VIEW))):
    try:
        return success(await station_service.get_station(station_id))
    except DOMAIN_ERRORS as exc:
        raise to_http_error(exc, "충전소를 찾을 수 없습니다.") from exc


@router.post("/")
async def create_station(body: StationCreate, session: Session = Depends(require_capability(MANAGE_STATIONS))):
    try:
        station = await station_service.create_station(body, user_id=session.user_id)
    except Exception as exc:
        logger.exception("Failed to create station")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="충전소 등록 중 오류가 발생했습니다.",
        ) from exc

    await audit_service.log(
        session,
        menu="충전소 관리",
        action="create",
        description=f"충전소 등록: {station.station_name}",
        target_table="charging_stations",
        target_id=station.id,
        changes=body.model_dump(),
    )
    return success(station, status_code=status.HTTP_201_CREATED)


@router.put("/{station_id}")
async def update_station(
    station_id: str,
    body: StationUpdate,
    session: Session = Depends(require_capability(MANAGE_STATIONS)),
):
    try:
        station = await station_service.update_station(station_id, body)
    except DOMAIN_ERRORS as exc:
        raise to_http_error(exc, "충전소를 찾을 수 없습니다.") from exc
    except Exception as exc:
        logger.exception("Failed to update station %s", station_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="충전소 수정 중 오류가 발생했습니다.",
        ) from exc

    await audit_service.log(
        session,
        menu="충전소 관리",
        action="update",
        description=f"충전소 수정: {station.station_name}",
        target_table="charging_stations",
        target_id=station_id,
        changes=body.model_dump(exclude_unset=True),
    )
    return success(station)


@router.delete("/{station_id}")
async def delete_station(station_id: str, session: Session = Depends(require_capability(MANAGE_STATIONS))):
    try:
        station = await station_service.get_station(station_id)
        await station_service.delete_station(station_id)
    except ConflictError as exc:
        raise to_http_error(exc, "등록된 세금 정보가 있는 충전소는 삭제할 수 없습니다.") from exc
    except DOMAIN_ERRORS as exc:
        raise to_http_error(exc, "충전소를 찾을 수 없습니다.") from exc
    except Exception as exc:
        logger.exception("Failed to delete station %s", station_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="충전소 삭제 중 오류가 발생했습니다.",
        ) from exc

    await audit_service.log(
        session,
        menu="충전소 관리",
        action="delete",
        description=f"충전소 삭제: {station.station_name}",
        target_table="charging_stations",
        target_id=station_id,
    )
    return success(message="충전소가 삭제되었습니다.")
