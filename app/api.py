"""HTTP route definitions for the service."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import PlainTextResponse

from app.schemas import DeleteResponse, HistoryPageResponse, StatsResponse, StatusResponse
from services.dashboard import DashboardController, build_default_controller
from services.errors import StoreUnavailable
from services.presentation import DEFAULT_PAGE_SIZE, compute_stats, export_filename, paginate, to_csv

router = APIRouter()


def get_controller() -> DashboardController:
    return build_default_controller()


@router.get(
    "/status",
    response_model=StatusResponse,
    summary="Current reading and connection state.",
)
def get_status(controller: DashboardController = Depends(get_controller)) -> StatusResponse:
    return StatusResponse.from_state(controller.state)


@router.post(
    "/refresh",
    response_model=StatusResponse,
    summary="Re-read the store and return the new state.",
)
def refresh(controller: DashboardController = Depends(get_controller)) -> StatusResponse:
    return StatusResponse.from_state(controller.refresh())


@router.get(
    "/history",
    response_model=HistoryPageResponse,
    summary="A page of historical readings, newest first.",
)
def get_history(
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=500),
    controller: DashboardController = Depends(get_controller),
) -> HistoryPageResponse:
    history = controller.state.snapshot.history
    return HistoryPageResponse.from_page(paginate(history, page=page, page_size=page_size))


@router.get(
    "/stats",
    response_model=StatsResponse,
    summary="Averages and ranges over the full history.",
)
def get_stats(controller: DashboardController = Depends(get_controller)) -> StatsResponse:
    return StatsResponse.from_stats(compute_stats(controller.state.snapshot.history))


@router.get(
    "/export.csv",
    response_class=PlainTextResponse,
    summary="Download the history as CSV.",
)
def export_csv(controller: DashboardController = Depends(get_controller)) -> PlainTextResponse:
    body = to_csv(controller.state.snapshot.history)
    return PlainTextResponse(
        body,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
    )


@router.delete(
    "/readings",
    response_model=DeleteResponse,
    summary="Delete every reading from the store.",
)
def delete_all_readings(controller: DashboardController = Depends(get_controller)) -> DeleteResponse:
    try:
        controller.service.delete_all()
    except StoreUnavailable as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(exc),
        ) from exc
    controller.refresh()
    return DeleteResponse()


@router.delete(
    "/readings/{timestamp}",
    response_model=DeleteResponse,
    summary="Delete one reading by its entry key.",
)
def delete_reading(
    timestamp: str,
    controller: DashboardController = Depends(get_controller),
) -> DeleteResponse:
    try:
        controller.service.delete_one(timestamp)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except StoreUnavailable as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(exc),
        ) from exc
    controller.refresh()
    return DeleteResponse(key=timestamp)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /ui for the dashboard and /status for JSON."}
