from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))

router = APIRouter(include_in_schema=False)


# PUBLIC_INTERFACE
@router.get("/", response_class=HTMLResponse)
def task_page(request: Request) -> HTMLResponse:
    """Serve the single-page task board."""
    return templates.TemplateResponse(
        request,
        "index.html",
        {"api_base": request.url_for("list_tasks").path},
    )
