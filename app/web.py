from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from app.schemas import ReadingOut
from services.classifier import badge_class_for
from services.dashboard import DashboardController, build_default_controller
from services.presentation import DEFAULT_PAGE_SIZE, compute_stats, paginate


templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))
templates.env.globals["badge_class_for"] = badge_class_for


def get_controller() -> DashboardController:
    return build_default_controller()


router = APIRouter(include_in_schema=False)


@router.get("/ui", name="ui_index", response_class=HTMLResponse)
def ui_index(
    request: Request,
    page: int = Query(1, ge=1),
    controller: DashboardController = Depends(get_controller),
) -> HTMLResponse:
    state = controller.state
    history = state.snapshot.history
    return templates.TemplateResponse(
        request,
        "ui/index.html",
        {
            "state": state,
            "current": ReadingOut.from_reading(state.snapshot.current),
            "stats": compute_stats(history),
            "page": paginate(history, page=page, page_size=DEFAULT_PAGE_SIZE),
        },
    )


@router.post("/ui/refresh", name="ui_refresh")
def ui_refresh(
    request: Request,
    controller: DashboardController = Depends(get_controller),
) -> RedirectResponse:
    controller.refresh()
    return RedirectResponse(str(request.url_for("ui_index")), status_code=303)
