"""
SLA Domain Layer
================

Domain layer for SLA compliance.

Contains:
- Entities: Ticket, TicketCompliance, metric label keys
- Value Objects: WorkCalendar, SLTDeadline, BusinessHoursConfig
- Domain Services: BusinessHourCalculator, ComplianceClassifier

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from itop_sla.sla.domain.entities import (
    Ticket,
    TicketCompliance,
    TicketCountKey,
    ComplianceKey,
    priority_label,
)
from itop_sla.sla.domain.value_objects import (
    BusinessHourCalculator,
    BusinessHoursConfig,
    ComplianceClassifier,
    DeadlineTargetConfig,
    SLTDeadline,
    WorkCalendar,
    WorkHoursConfig,
    elapsed_between,
    parse_duration_string,
    parse_slt_duration,
)

__all__ = [
    # Entities
    "Ticket",
    "TicketCompliance",
    "TicketCountKey",
    "ComplianceKey",
    "priority_label",
    # Value Objects & Services
    "BusinessHourCalculator",
    "BusinessHoursConfig",
    "ComplianceClassifier",
    "DeadlineTargetConfig",
    "SLTDeadline",
    "WorkCalendar",
    "WorkHoursConfig",
    "elapsed_between",
    "parse_duration_string",
    "parse_slt_duration",
]
