"""
SLA Application Layer
======================

Application layer for SLA compliance.

Contains:
- Services: Deadline resolution, compliance passes, refresh cycles
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and source interfaces,
but not on concrete infrastructure implementations.
"""

from itop_sla.sla.application.dto import (
    DashboardResponse,
    DeadlineResponse,
    SeriesSummary,
    TicketComplianceResponse,
    VerdictResponse,
)
from itop_sla.sla.application.services import (
    ComplianceReport,
    ComplianceService,
    DeadlineCache,
    DeadlineKey,
    DeadlineResolver,
    IDeadlineProvider,
    IHolidaySource,
    ISLAConfigProvider,
    ITicketSource,
    SLAMonitorService,
)

__all__ = [
    # DTOs
    "DashboardResponse",
    "DeadlineResponse",
    "SeriesSummary",
    "TicketComplianceResponse",
    "VerdictResponse",
    # Services
    "ComplianceReport",
    "ComplianceService",
    "DeadlineCache",
    "DeadlineKey",
    "DeadlineResolver",
    "SLAMonitorService",
    # Source Interfaces
    "IDeadlineProvider",
    "IHolidaySource",
    "ISLAConfigProvider",
    "ITicketSource",
]
