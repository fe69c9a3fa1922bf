"""Shared fixtures for the exporter tests."""

from datetime import datetime
from typing import Dict, List

import pytest

from itop_sla.sla.application import (
    IDeadlineProvider,
    IHolidaySource,
    ISLAConfigProvider,
    ITicketSource,
)
from itop_sla.sla.domain import BusinessHoursConfig, SLTDeadline, Ticket, WorkCalendar


def make_ticket(**overrides) -> Ticket:
    """Ticket with sensible defaults; override any field by keyword."""
    fields = {
        "id": "1",
        "ref": "I-000001",
        "title": "Mail server down",
        "status": "resolved",
        "ticket_class": "Incident",
        "priority": "2",
        "urgency": "3",
        "impact": "1",
        "service": "Email",
        "service_subcategory": "Outlook",
        "agent": "Dian Sastro",
        "team": "Service Desk",
        "start_date": datetime(2024, 1, 8, 10, 0),
        "assignment_date": datetime(2024, 1, 8, 11, 0),
        "resolution_date": datetime(2024, 1, 8, 15, 0),
    }
    fields.update(overrides)
    return Ticket(**fields)


class StaticTicketSource(ITicketSource):
    def __init__(self, tickets: Dict[str, List[Ticket]]):
        self.tickets = tickets
        self.error = None

    async def fetch_tickets(self, ticket_class: str) -> List[Ticket]:
        if self.error is not None:
            raise self.error
        return list(self.tickets.get(ticket_class, []))


class StaticHolidaySource(IHolidaySource):
    def __init__(self, dates: List[str]):
        self.dates = dates
        self.error = None

    async def fetch_holidays(self) -> List[str]:
        if self.error is not None:
            raise self.error
        return list(self.dates)


class StaticConfigProvider(ISLAConfigProvider):
    def __init__(self, config: BusinessHoursConfig = None):
        self.config = config or BusinessHoursConfig()

    def get_config(self) -> BusinessHoursConfig:
        return self.config


class CountingProvider(IDeadlineProvider):
    """Returns a fixed deadline and records every call."""

    def __init__(self, deadline: SLTDeadline, cacheable: bool = True):
        self.deadline = deadline
        self.cacheable = cacheable
        self.calls = []
        self.errors = []

    async def get_deadline(self, ticket_class, priority, service_name):
        self.calls.append((ticket_class, priority, service_name))
        if self.errors:
            raise self.errors.pop(0)
        return self.deadline


@pytest.fixture
def calendar():
    """09:00-17:00, no holidays."""
    return WorkCalendar()


@pytest.fixture
def ticket():
    return make_ticket()
