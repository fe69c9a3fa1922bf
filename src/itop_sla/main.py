"""
iTop SLA Exporter - Main Application
=====================================

Prometheus exporter for iTop ticket SLA compliance.

Background jobs pull tickets and holidays from iTop, score every ticket's
response and resolution times against its SLA targets (raw and
business-hour), and the HTTP layer exposes the latest pass.

Clean Architecture Layers:
- Interfaces: FastAPI controllers (Prometheus and JSON)
- Application: Monitor, compliance and deadline resolution services
- Domain: Tickets, calendar, business-hour calculation
- Infrastructure: iTop client, sources, config watcher, scheduler, collectors
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import FastAPI, Request

# Configuration and Core
from itop_sla.config import DETAIL_ENDPOINTS, DeadlineSource, Settings, settings
from itop_sla.core import ConfigurationException

# SLA Module
from itop_sla.sla.application import (
    ComplianceService,
    DeadlineResolver,
    IDeadlineProvider,
    SLAMonitorService,
)
from itop_sla.sla.infrastructure import (
    ConfigTableDeadlineProvider,
    ExporterRegistries,
    FileHolidaySource,
    ITopClient,
    ITopHolidaySource,
    ITopSLTProvider,
    ITopTicketSource,
    SLAConfigManager,
    SLAScheduler,
)

# Module Routers
from itop_sla.sla.interfaces import metrics_router, sla_router

# Logging
from itop_sla.shared.infrastructure.logging import setup_logging, get_logger
from itop_sla.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    global_exception_handler
)

logger = get_logger(__name__)


def resolve_timezone(name: Optional[str]):
    """Zone attached to iTop's naive timestamps, or ``None`` to keep them naive."""
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigurationException(f"Unknown ITOP_TIMEZONE {name!r}", {"timezone": name}) from e


def build_deadline_provider(
    app_settings: Settings,
    client: ITopClient,
    config_manager: SLAConfigManager
) -> IDeadlineProvider:
    """Deadline provider selected by ``DEADLINE_SOURCE``."""
    if app_settings.deadline_source == DeadlineSource.CONFIG:
        return ConfigTableDeadlineProvider(config_manager)
    return ITopSLTProvider(client)


def build_monitor(
    app_settings: Settings,
    client: ITopClient,
    config_manager: SLAConfigManager
) -> SLAMonitorService:
    """Wire sources, resolver and compliance service into a monitor."""
    tz = resolve_timezone(app_settings.itop_timezone)

    holiday_sources = [ITopHolidaySource(client)]
    if app_settings.holidays_file:
        holiday_sources.insert(0, FileHolidaySource(app_settings.holidays_file))

    resolver = DeadlineResolver(build_deadline_provider(app_settings, client, config_manager))

    return SLAMonitorService(
        ticket_source=ITopTicketSource(client, app_settings.ticket_statuses, tz),
        holiday_sources=holiday_sources,
        config_provider=config_manager,
        compliance_service=ComplianceService(resolver),
        ticket_classes=app_settings.ticket_classes,
    )


def build_scheduler(monitor: SLAMonitorService, app_settings: Settings) -> SLAScheduler:
    """One refresh job per ticket class, plus holiday sync and recompute."""
    scheduler = SLAScheduler()
    for ticket_class in monitor.ticket_classes:
        scheduler.add_job(
            monitor.refresh_tickets,
            app_settings.ticket_refresh_interval,
            job_id=f"refresh_tickets_{ticket_class.lower()}",
            name=f"Refresh {ticket_class} tickets",
            args=[ticket_class],
        )
    scheduler.add_job(
        monitor.refresh_holidays,
        app_settings.holiday_sync_interval,
        job_id="refresh_holidays",
        name="Sync holidays",
    )
    scheduler.add_job(
        monitor.recompute,
        app_settings.metrics_refresh_interval,
        job_id="recompute_compliance",
        name="Recompute SLA compliance",
    )
    return scheduler


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Load business-hours configuration and watch it
    3. Create iTop client, sources and monitor
    4. Start background jobs

    SHUTDOWN:
    1. Stop scheduler
    2. Stop config watcher
    3. Close iTop client
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting iTop SLA exporter", extra={
        "version": settings.app_version,
        "environment": settings.environment,
        "deadline_source": settings.deadline_source,
        "ticket_classes": settings.ticket_classes
    })

    logger.info("Loading business hours configuration")
    config_manager = SLAConfigManager()
    config_manager.load(settings.business_hours_config_path)
    config_manager.start_watching()

    client = ITopClient.from_settings(settings)
    if not settings.itop_configured:
        logger.warning("iTop API not configured - exporting empty metrics")

    monitor = build_monitor(settings, client, config_manager)
    scheduler = build_scheduler(monitor, settings)
    await scheduler.start()

    # Store services in app state for dependency injection
    app.state.settings = settings
    app.state.config_manager = config_manager
    app.state.itop_client = client
    app.state.monitor = monitor
    app.state.scheduler = scheduler
    app.state.registries = ExporterRegistries(monitor, monitor.ticket_classes)

    logger.info("iTop SLA exporter started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down iTop SLA exporter")

    await scheduler.stop()
    config_manager.stop_watching()
    await client.close()

    logger.info("iTop SLA exporter shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="iTop SLA Exporter",
    description="""
    ## iTop SLA Compliance Exporter

    Scores iTop Incidents and UserRequests against their SLA targets and
    exposes the results to Prometheus.

    ---

    ### Prometheus

    - `GET /metrics` - `itop_ticket_count`, `itop_ticket_sla_compliance`
    - `GET /incidents` - `itop_ticket_detail_info` for Incidents
    - `GET /userrequests` - `itop_ticket_detail_info` for UserRequests

    ### JSON

    - `GET /sla/dashboard` - Comply/violate totals per regime and metric
    - `GET /sla/tickets/{ref}` - One ticket's elapsed times and verdicts

    ---

    ### Compliance

    A ticket complies for a metric when its target is positive, the
    milestone was reached after the start, and the elapsed time (raw or
    counted in business hours only) does not exceed the target.
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === Custom Middleware (from shared) ===
app.add_middleware(
    LoggingMiddleware,
    quiet_paths=["/metrics", "/health", *DETAIL_ENDPOINTS.values()]
)
app.add_middleware(CorrelationIDMiddleware)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(metrics_router)
app.include_router(sla_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service is healthy",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {
                        "itop_api": "configured",
                        "scheduler": "running",
                        "last_compliance_pass": "2024-01-15T10:00:10+00:00",
                        "holidays": 12
                    }
                }
            }
        }
    }
})
async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Reports iTop configuration, scheduler state and the age of the
    latest compliance pass.
    """
    state = request.app.state
    client = getattr(state, "itop_client", None)
    scheduler = getattr(state, "scheduler", None)
    monitor = getattr(state, "monitor", None)

    generated_at = monitor.report.generated_at if monitor else None

    checks = {
        "itop_api": "configured" if client and client.is_configured else "not_configured",
        "scheduler": "running" if scheduler and scheduler.is_running else "stopped",
        "last_compliance_pass": generated_at.isoformat() if generated_at else None,
        "holidays": len(monitor.holidays) if monitor else 0
    }

    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/health",
        "metrics": ["/metrics", *DETAIL_ENDPOINTS.values()],
        "endpoints": [
            "GET /sla/dashboard - Compliance totals",
            "GET /sla/tickets/{ref} - Ticket compliance"
        ]
    }


def run() -> None:
    """Console entry point."""
    import uvicorn

    uvicorn.run(
        "itop_sla.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development" and settings.debug,
        log_level=settings.log_level.lower()
    )


# === Development Entry Point ===

if __name__ == "__main__":
    run()
