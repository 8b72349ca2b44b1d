from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from stickyboard.config import get_settings
from stickyboard.database import engine, Base
from stickyboard.exceptions import (
    StickyBoardError,
    CredentialExpired,
    CredentialInvalid,
    Forbidden,
    NotFound,
    ValidationFailed,
)
from stickyboard.logging_config import configure_logging
from stickyboard.auth import HTTP_TOKEN_EXPIRED
from stickyboard.routers import auth as auth_router
from stickyboard.routers import boards, notes, realtime
import stickyboard.models  # noqa: F401  registers tables on Base.metadata

settings = get_settings()
configure_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    # Shutdown
    await engine.dispose()


app = FastAPI(
    title="Sticky Board",
    description="Collaborative sticky-note boards with live updates",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class NoCacheMiddleware(BaseHTTPMiddleware):
    """Middleware to add no-cache headers so boards are always read fresh."""
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, proxy-revalidate, max-age=0"
        response.headers["Expires"] = "0"
        response.headers["Pragma"] = "no-cache"
        return response


app.add_middleware(NoCacheMiddleware)

ERROR_STATUS = {
    CredentialExpired: HTTP_TOKEN_EXPIRED,
    CredentialInvalid: 403,
    Forbidden: 403,
    NotFound: 404,
    ValidationFailed: 400,
}


@app.exception_handler(StickyBoardError)
async def board_error_handler(request: Request, exc: StickyBoardError):
    status_code = ERROR_STATUS.get(type(exc), 500)
    return JSONResponse(status_code=status_code, content={"error": exc.reason, "detail": exc.reason})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # Malformed bodies are rejected as 400 like every other input check
    fields = [".".join(str(part) for part in err.get("loc", ())) for err in exc.errors()]
    return JSONResponse(status_code=400, content={"error": "Invalid request body", "fields": fields})


app.include_router(auth_router.router, tags=["Auth"])
app.include_router(boards.router, tags=["Boards"])
app.include_router(notes.router, tags=["Notes"])
app.include_router(realtime.router, tags=["Realtime"])


@app.get("/api/health")
async def health_check():
    return {"status": "healthy", "service": "stickyboard"}
