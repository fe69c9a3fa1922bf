"""
SLA Controllers (API Routes)
=============================

FastAPI routes for the exporter:

- Prometheus scrape endpoints (``/metrics`` and one detail endpoint per
  ticket class)
- JSON views of the latest compliance pass under ``/sla``

Controllers are thin - they read the monitor snapshot held on app state.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from itop_sla.config import DETAIL_ENDPOINTS
from itop_sla.sla.application import (
    DashboardResponse,
    SeriesSummary,
    SLAMonitorService,
    TicketComplianceResponse,
)
from itop_sla.sla.infrastructure.metrics import ExporterRegistries
from itop_sla.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

metrics_router = APIRouter(tags=["Prometheus"])
router = APIRouter(prefix="/sla", tags=["SLA Compliance"])


# ========== Example payloads for Swagger ==========

DASHBOARD_RESPONSE_EXAMPLE = {
    "generated_at": "2024-01-15T10:00:10Z",
    "ticket_class": "Incident",
    "total_tickets": 2,
    "resolution_failures": 0,
    "series": [
        {
            "regime": "business-hour",
            "metric": "response",
            "comply": 1,
            "violate": 1,
            "compliance_rate": 50.0
        }
    ]
}

TICKET_COMPLIANCE_EXAMPLE = {
    "ref": "I-000123",
    "ticket_class": "Incident",
    "priority": "High",
    "service": "Email",
    "deadline": {"tto_seconds": 14400.0, "ttr_seconds": 86400.0},
    "compliance": [
        {
            "regime": "business-hour",
            "metric": "response",
            "elapsed_seconds": 18000.0,
            "verdict": "violate"
        },
        {
            "regime": "raw",
            "metric": "response",
            "elapsed_seconds": 10800.0,
            "verdict": "comply"
        }
    ]
}


# ========== Dependencies ==========

def get_monitor(request: Request) -> SLAMonitorService:
    """Monitor created during application startup."""
    return request.app.state.monitor


def get_registries(request: Request) -> ExporterRegistries:
    """Prometheus registries created during application startup."""
    return request.app.state.registries


# ========== Prometheus endpoints ==========

@metrics_router.get(
    "/metrics",
    summary="Summary metrics",
    description="`itop_ticket_count` and `itop_ticket_sla_compliance` for all ticket classes.",
    response_class=Response
)
async def summary_metrics(registries: ExporterRegistries = Depends(get_registries)):
    return Response(content=registries.render_summary(), media_type=registries.content_type)


def _detail_endpoint(ticket_class: str):
    async def detail_metrics(registries: ExporterRegistries = Depends(get_registries)):
        try:
            body = registries.render_detail(ticket_class)
        except KeyError:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Ticket class {ticket_class} is not exported"
            )
        return Response(content=body, media_type=registries.content_type)

    detail_metrics.__name__ = f"detail_metrics_{ticket_class.lower()}"
    return detail_metrics


for _ticket_class, _path in DETAIL_ENDPOINTS.items():
    metrics_router.add_api_route(
        _path,
        _detail_endpoint(_ticket_class),
        methods=["GET"],
        summary=f"{_ticket_class} detail metrics",
        description=(
            "`itop_ticket_detail_info`: four series per ticket "
            "(raw/business-hour x response/resolve), value 1."
        ),
        response_class=Response,
    )


# ========== JSON endpoints ==========

@router.get(
    "/dashboard",
    response_model=DashboardResponse,
    summary="Get SLA compliance dashboard",
    description="""
    Comply/violate totals from the latest compliance pass.

    **Query Parameters:**
    - `ticket_class`: Restrict to one class (`Incident`, `UserRequest`)

    **Series:** one entry per regime (`raw`, `business-hour`) and metric
    (`response`, `resolve`). Tickets without a target, or that never reached
    the milestone, count as violations.
    """,
    responses={
        200: {
            "description": "Dashboard data",
            "content": {"application/json": {"example": DASHBOARD_RESPONSE_EXAMPLE}}
        },
        400: {"description": "Unknown ticket class"}
    }
)
async def get_dashboard(
    ticket_class: Optional[str] = Query(None, description="Filter by ticket class"),
    monitor: SLAMonitorService = Depends(get_monitor)
):
    if ticket_class and ticket_class not in monitor.ticket_classes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown ticket class {ticket_class}"
        )

    report = monitor.report
    results = report.for_class(ticket_class) if ticket_class else report.results

    return DashboardResponse(
        generated_at=report.generated_at,
        ticket_class=ticket_class,
        total_tickets=len(results),
        resolution_failures=report.resolution_failures,
        series=[SeriesSummary(**row) for row in report.summarize(ticket_class)]
    )


@router.get(
    "/tickets/{ref}",
    response_model=TicketComplianceResponse,
    summary="Get ticket SLA compliance",
    description="Elapsed times, resolved deadline and the four verdicts of one ticket.",
    responses={
        200: {
            "description": "Ticket compliance",
            "content": {"application/json": {"example": TICKET_COMPLIANCE_EXAMPLE}}
        },
        404: {"description": "Ticket not in the latest compliance pass"}
    }
)
async def get_ticket_compliance(
    ref: str,
    monitor: SLAMonitorService = Depends(get_monitor)
):
    result = monitor.report.find(ref)
    if result is None:
        logger.debug("Ticket not in latest report", extra={"ref": ref})
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Ticket {ref} not found"
        )
    return TicketComplianceResponse(**result.to_dict())


# Export router for inclusion in main app
sla_router = router
