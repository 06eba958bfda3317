import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from .api.routes import workspaces, bookings, credits, payments, misc
from .db.session import Base, engine
from .config import get_settings
from .workers.scheduler import get_scheduler

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="Cowork Booking API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(workspaces.router, prefix="/api/v1")
app.include_router(bookings.router, prefix="/api/v1")
app.include_router(credits.router, prefix="/api/v1")
app.include_router(payments.router, prefix="/api/v1")
app.include_router(misc.router, prefix="/api/v1")


@app.on_event("startup")
async def startup_event() -> None:
    Base.metadata.create_all(bind=engine)
    settings = get_settings()
    if settings.scheduler_enabled:
        scheduler = get_scheduler()
        scheduler.start()
        app.state.scheduler = scheduler
        logger.info("Scheduler started")


@app.on_event("shutdown")
async def shutdown_event() -> None:
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler is not None:
        scheduler.shutdown(wait=False)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info("Incoming request", extra={"method": request.method, "path": request.url.path})
    return await call_next(request)
