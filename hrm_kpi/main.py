import structlog
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from hrm_kpi.config import settings
from hrm_kpi.core.error_handlers import (
    engine_exception_handler,
    repository_exception_handler,
    validation_exception_handler,
)
from hrm_kpi.core.exceptions import KpiEngineError, RepositoryException
from hrm_kpi.core.logging_config import configure_logging

# IMPORT ROUTERS
from hrm_kpi.routers.health import router as health_router
from hrm_kpi.routers.weeks import router as weeks_router
from hrm_kpi.routers.months import router as months_router
from hrm_kpi.routers.funds import router as funds_router
from hrm_kpi.routers.cron import router as cron_router

configure_logging()
logger = structlog.get_logger(__name__)


# SWAGGER UI — tag display order
_OPENAPI_TAGS = [
    {"name": "Root"},
    {"name": "Health"},
    {"name": "Weeks"},
    {"name": "Months"},
    {"name": "Funds"},
    {"name": "Cron"},
]

# FASTAPI APPLICATION CONFIGURATION
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    openapi_tags=_OPENAPI_TAGS,
)

app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

# REGISTER EXCEPTION HANDLERS
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(KpiEngineError, engine_exception_handler)
app.add_exception_handler(RepositoryException, repository_exception_handler)

# REGISTER ROUTERS (order matches _OPENAPI_TAGS / Swagger UI display order)
app.include_router(health_router)   # Health
app.include_router(weeks_router)    # Weeks
app.include_router(months_router)   # Months
app.include_router(funds_router)    # Funds
app.include_router(cron_router)     # Cron


# ROOT ENDPOINT
@app.get("/", tags=["Root"], summary="Root endpoint")
async def root():
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": {
            "swagger": "/docs",
            "redoc": "/redoc"
        },
        "status": "running"
    }


# STARTUP EVENT
@app.on_event("startup")
async def startup_event():
    logger.info(
        "app_starting",
        app=settings.APP_NAME,
        env=settings.APP_ENV,
        timezone=settings.ORG_TIMEZONE,
        notifier="webhook" if settings.NOTIFY_WEBHOOK_URL else "log",
    )


# SHUTDOWN EVENT
@app.on_event("shutdown")
async def shutdown_event():
    logger.info("app_stopping", app=settings.APP_NAME)


# RUN WITH UVICORN
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "hrm_kpi.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
