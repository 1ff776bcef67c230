import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlmodel import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from arena.database import engine, init_db
from arena.routes import bracket, matches, realtime, scheduler, stages, teams, tournaments
from arena.services.broadcast import BracketBroadcaster
from arena.services.status_sweeper import StatusSweeper

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

STATUS_SWEEP_ENABLED = os.getenv("STATUS_SWEEP_ENABLED", "true").lower() in ("true", "1", "yes")
STATUS_SWEEP_INTERVAL_SECONDS = float(os.getenv("STATUS_SWEEP_INTERVAL_SECONDS", "60"))


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    app.state.broadcaster = BracketBroadcaster()
    app.state.sweeper = StatusSweeper(lambda: Session(engine), interval_seconds=STATUS_SWEEP_INTERVAL_SECONDS)
    if STATUS_SWEEP_ENABLED:
        app.state.sweeper.start()
    logger.info("Clash Arena API started")
    yield
    await app.state.sweeper.stop()
    logger.info("Clash Arena API stopped")


app = FastAPI(title="Clash Arena Tournament API", lifespan=lifespan)

_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_extra = os.getenv("CORS_ORIGINS", "")
if _extra:
    _cors_origins.extend(o.strip() for o in _extra.split(",") if o.strip())

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(status_code=400, content={"error": f"{location}: {message}" if location else message})


# Include routers
app.include_router(tournaments.router, prefix="/api", tags=["tournaments"])
app.include_router(teams.router, prefix="/api", tags=["teams"])
app.include_router(stages.router, prefix="/api", tags=["stages"])
app.include_router(bracket.router, prefix="/api", tags=["bracket"])
app.include_router(matches.router, prefix="/api", tags=["matches"])
app.include_router(scheduler.router, prefix="/api", tags=["scheduler"])
app.include_router(realtime.router, prefix="/api", tags=["realtime"])


@app.get("/api/health")
def health_check():
    """Liveness plus sweeper and WebSocket state"""
    return {
        "app_name": "Clash Arena Tournament API",
        "status": "healthy",
        "status_sweep_running": app.state.sweeper.is_running,
        "websocket_connections": app.state.broadcaster.connection_count(),
    }
