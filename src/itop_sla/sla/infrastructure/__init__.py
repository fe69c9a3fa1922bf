"""
SLA Infrastructure Layer
=========================

Infrastructure implementations for SLA compliance:
- iTop client: REST/JSON webservice access
- Parser: iTop objects to ticket entities
- Repositories: Ticket, holiday and deadline sources
- External: Config watcher and scheduler
- Metrics: Prometheus collectors and registries
"""

from itop_sla.sla.infrastructure.itop_client import ITopClient, oql_quote
from itop_sla.sla.infrastructure.parser import parse_itop_date, parse_ticket, parse_tickets
from itop_sla.sla.infrastructure.repositories import (
    ConfigTableDeadlineProvider,
    FileHolidaySource,
    ITopHolidaySource,
    ITopSLTProvider,
    ITopTicketSource,
    oql_priority,
)
from itop_sla.sla.infrastructure.external import SLAConfigManager, SLAScheduler
from itop_sla.sla.infrastructure.metrics import (
    ExporterRegistries,
    SummaryCollector,
    TicketDetailCollector,
)

__all__ = [
    "ITopClient",
    "oql_quote",
    "parse_itop_date",
    "parse_ticket",
    "parse_tickets",
    "ConfigTableDeadlineProvider",
    "FileHolidaySource",
    "ITopHolidaySource",
    "ITopSLTProvider",
    "ITopTicketSource",
    "oql_priority",
    "SLAConfigManager",
    "SLAScheduler",
    "ExporterRegistries",
    "SummaryCollector",
    "TicketDetailCollector",
]
