# tms/main.py
import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# load .env before settings are read
load_dotenv()

from tms.config import settings
from tms.db import close_client, create_indexes
from tms.routes.analysis import router as analysis_router
from tms.routes.audit_logs import router as audit_logs_router
from tms.routes.auth.auth import router as auth_router
from tms.routes.channels import router as channels_router
from tms.routes.dashboard import router as dashboard_router
from tms.routes.jobs import router as jobs_router
from tms.routes.notify import router as notify_router
from tms.routes.recipients import router as recipients_router
from tms.routes.reminders import router as reminders_router
from tms.routes.schedules import router as schedules_router
from tms.routes.stations import router as stations_router
from tms.routes.taxes import router as taxes_router

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    description="Tax management backend for EV charging stations",
    version=settings.app_version,
)

# CORS - tighten in production
if settings.allowed_origins == "*":
    cors_origins = ["*"]
else:
    cors_origins = [o.strip() for o in settings.allowed_origins.split(",")]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router, prefix="/auth")
app.include_router(stations_router, prefix="/stations")
app.include_router(taxes_router, prefix="/taxes")
app.include_router(schedules_router, prefix="/notification-schedules")
app.include_router(channels_router, prefix="/teams-channels")
app.include_router(recipients_router, prefix="/email-recipients")
app.include_router(reminders_router, prefix="/notifications")
app.include_router(notify_router, prefix="/notify")
app.include_router(dashboard_router, prefix="/dashboard")
app.include_router(audit_logs_router, prefix="/audit-logs")
app.include_router(jobs_router, prefix="/api")
app.include_router(analysis_router, prefix="/api")


@app.on_event("startup")
async def on_startup():
    await create_indexes()
    logger.info("%s %s started", settings.app_name, settings.app_version)


@app.on_event("shutdown")
async def on_shutdown():
    close_client()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Welcome to TMS Backend",
        "status": "running",
        "version": settings.app_version,
    }
