# community_gate/api/routers/pages.py
"""
Page-serving routes for the admin frontend (rate-limited).
"""
from pathlib import Path

from fastapi import APIRouter, Depends, Request
from fastapi.responses import FileResponse, RedirectResponse

from community_gate.api.deps import page_rate_limit

STATIC_DIR = Path(__file__).resolve().parents[2] / "static"

router = APIRouter(tags=["pages"], dependencies=[Depends(page_rate_limit)])


def _admin_page(request: Request):
    if not request.session.get("userId"):
        return RedirectResponse("/login.html", status_code=302)
    return FileResponse(STATIC_DIR / "index.html")


@router.get("/", include_in_schema=False)
async def root(request: Request):
    return _admin_page(request)


@router.get("/index.html", include_in_schema=False)
async def index(request: Request):
    return _admin_page(request)


@router.get("/login.html", include_in_schema=False)
async def login_page():
    return FileResponse(STATIC_DIR / "login.html")
