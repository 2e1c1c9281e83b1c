import asyncio
import contextlib
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .background import spawn
from .broker import ChapterPublisher
from .database import init_db, engine
from .errors import PagesyError, TransientError
from .hub import EventHub
from .routers import chapters, library, notifications, ws
from .settings.config import settings

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Pagesy", version="1.0.0")

# Enable CORS if needed
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Update for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ----------------------
# Route Includes
# ----------------------
app.include_router(chapters.router)
app.include_router(library.router)
app.include_router(notifications.router)
app.include_router(ws.router)


# -----------------------------------------------------
# Every failure on the API is rendered as {"error": "..."}
# -----------------------------------------------------
@app.exception_handler(PagesyError)
async def _pagesy_error_handler(request: Request, exc: PagesyError):
    if isinstance(exc, TransientError):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
        return JSONResponse(status_code=500, content={"error": "internal server error"})
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def _http_error_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg')}"
        for err in exc.errors()
    )
    return JSONResponse(status_code=400, content={"error": f"invalid data, {problems}"})


@app.exception_handler(Exception)
async def _unhandled_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "internal server error"})


@app.get("/healthz")
async def healthz():
    return {"status": "healthy"}


# ----------------------
# Lifecycle: hub task, lazy queue publisher
# ----------------------
@app.on_event("startup")
async def on_startup():
    from . import models  # noqa: F401  Required for SQLAlchemy model detection
    await init_db()
    app.state.hub = EventHub()
    app.state.hub_task = spawn(app.state.hub.run(), name="event-hub")
    app.state.publisher = ChapterPublisher(settings.RABBIT_MQ_CONN)
    logger.info("Pagesy API started")


@app.on_event("shutdown")
async def on_shutdown():
    # let queued frames reach the outboxes before tearing the hub down
    with contextlib.suppress(asyncio.TimeoutError):
        await asyncio.wait_for(app.state.hub.join(), timeout=1.0)
    app.state.hub_task.cancel()
    await app.state.publisher.close()
    await engine.dispose()
    logger.info("Pagesy API stopped")
