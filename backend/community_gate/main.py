# community_gate/main.py
import logging

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.middleware.sessions import SessionMiddleware

from community_gate.config import settings
from community_gate.storage import StorageError, create_store
from community_gate.core.bootstrap import ensure_superuser
from community_gate.core.debounce import AccessDebouncer
from community_gate.core.ratelimit import FixedWindowRateLimiter
from community_gate.services.sweeper import ExpiredCodeSweeper

from community_gate.api.deps import verify_csrf
from community_gate.api.routers import access_logs, addresses, auth, communities, feed, pages, users
from community_gate.api.routers.pages import STATIC_DIR

logger = logging.getLogger("uvicorn.error")

app = FastAPI(title=settings.APP_NAME)

# Process-local state; tests replace these on app.state
app.state.store = create_store(settings)
app.state.debouncer = AccessDebouncer(window_seconds=settings.access_debounce_seconds)
app.state.page_limiter = FixedWindowRateLimiter(settings.page_rate_limit, settings.page_rate_window_seconds)
app.state.sweeper = None

# CORS (with Cookie)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Signed cookie session: userId / username / userRole / csrfToken
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.session_secret,
    session_cookie="session",
    max_age=settings.session_max_age,
    same_site="lax",
    https_only=settings.cookie_secure,
)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [{"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")} for e in exc.errors()]
    message = errors[0]["msg"] if errors else "Invalid request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": {"code": "BAD_REQUEST", "message": message, "errors": errors}},
    )


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    # Detail stays server-side
    logger.error("[storage] %s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": {"code": "INTERNAL_ERROR", "message": "Internal server error"}},
    )


@app.on_event("startup")
async def on_startup():
    store = app.state.store
    logger.info("[storage] backend=%s", store.name)
    await store.init()
    # Ensure there's a superuser account on first run
    await ensure_superuser(store)
    app.state.sweeper = ExpiredCodeSweeper(store, settings.sweep_interval_seconds)
    app.state.sweeper.start()


@app.on_event("shutdown")
async def on_shutdown():
    if app.state.sweeper is not None:
        await app.state.sweeper.stop()
    await app.state.store.close()


csrf = [Depends(verify_csrf)]

# Pages (rate-limited) and static assets
app.include_router(pages.router)
app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

# REST
app.include_router(auth.router, dependencies=csrf)
app.include_router(communities.router, dependencies=csrf)
app.include_router(addresses.router, dependencies=csrf)
app.include_router(access_logs.router, dependencies=csrf)
app.include_router(users.router, dependencies=csrf)
# Game-server endpoints: no session, so no CSRF check
app.include_router(access_logs.ingest_router)
app.include_router(feed.router)


@app.get("/healthz")
def healthz():
    return {"ok": True}
