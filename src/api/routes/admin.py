"""
Admin / observability endpoints
===============================

GET /api/v1/admin/active-trips -- active trip per kind with polling state
GET /api/v1/admin/health       -- simple health check
"""

from fastapi import APIRouter, Depends

from src.api.dependencies import get_controllers
from src.api.schemas import ActiveTripSummary, HealthResponse
from src.services.factory import TripControllers

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/active-trips",
    response_model=list[ActiveTripSummary],
    summary="List active trips and their synchronizer state",
)
async def get_active_trips(controllers: TripControllers = Depends(get_controllers)):
    result: list[ActiveTripSummary] = []
    for kind, controller in controllers.by_kind.items():
        snapshot = controller.current_trip()
        if snapshot is None:
            continue
        sync = controller.synchronizer
        result.append(
            ActiveTripSummary(
                kind=kind.value,
                trip_id=snapshot.id,
                status=snapshot.status.value,
                polling=bool(sync and sync.running),
                consecutive_failures=sync.consecutive_failures if sync else 0,
            )
        )
    return result


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
