"""
SLA Domain Entities
====================

Pure Python domain entities for SLA compliance.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterator, Optional, Tuple

from itop_sla.config import PRIORITY_LABELS, Regime, SLAMetric, Verdict, VALID_REGIMES, VALID_SLA_METRICS
from itop_sla.sla.domain.value_objects import (
    ComplianceClassifier,
    SLTDeadline,
    WorkCalendar,
    elapsed_between,
)


def priority_label(code: str) -> str:
    """Map iTop codes 1-4 to Critical/High/Medium/Low; other values pass through."""
    return PRIORITY_LABELS.get(code, code)


@dataclass(frozen=True)
class Ticket:
    """
    Ticket entity representing an iTop Incident or UserRequest.

    Unset instants are ``None``; an unassigned ticket is never confused
    with one assigned at the epoch.
    """

    # Core attributes
    id: str
    ref: str
    title: str
    status: str
    ticket_class: str
    priority: str = ""
    urgency: str = ""
    impact: str = ""

    # Service catalog
    service: str = ""
    service_subcategory: str = ""
    service_id: str = ""

    # People
    agent_id: str = ""
    agent: str = ""
    team_id: str = ""
    team: str = ""
    caller: str = ""
    origin: str = ""

    # Timestamps
    start_date: Optional[datetime] = None
    assignment_date: Optional[datetime] = None
    resolution_date: Optional[datetime] = None

    # SLA state as reported by iTop itself
    tto_deadline: Optional[datetime] = None
    ttr_deadline: Optional[datetime] = None
    sla_tto_passed: str = ""
    sla_ttr_passed: str = ""

    @property
    def priority_label(self) -> str:
        return priority_label(self.priority)

    @property
    def urgency_label(self) -> str:
        return priority_label(self.urgency)

    @property
    def time_to_response(self) -> Optional[timedelta]:
        """Calendar time from start to assignment, if both happened."""
        if self.start_date is None or self.assignment_date is None:
            return None
        return elapsed_between(self.start_date, self.assignment_date)

    @property
    def time_to_resolve(self) -> Optional[timedelta]:
        """Calendar time from start to resolution, if both happened."""
        if self.start_date is None or self.resolution_date is None:
            return None
        return elapsed_between(self.start_date, self.resolution_date)


@dataclass(frozen=True)
class TicketCountKey:
    """Label set of the per-ticket count gauge."""
    status: str
    ticket_class: str
    service: str
    service_subcategory: str
    team: str
    agent: str
    priority: str
    urgency: str

    @classmethod
    def for_ticket(cls, ticket: Ticket) -> "TicketCountKey":
        return cls(
            status=ticket.status,
            ticket_class=ticket.ticket_class,
            service=ticket.service,
            service_subcategory=ticket.service_subcategory,
            team=ticket.team,
            agent=ticket.agent,
            priority=ticket.priority_label,
            urgency=ticket.urgency_label,
        )


@dataclass(frozen=True)
class ComplianceKey:
    """Label set of the compliance-rate gauge."""
    ticket_class: str
    priority: str
    urgency: str
    regime: str
    metric: str
    verdict: str


@dataclass
class TicketCompliance:
    """
    Compliance of one ticket against its deadline.

    Holds the four elapsed durations and the four verdicts, each
    addressable by ``(regime, metric)``.
    """

    ticket: Ticket
    deadline: SLTDeadline
    elapsed: Dict[Tuple[str, str], timedelta] = field(default_factory=dict)
    verdicts: Dict[Tuple[str, str], str] = field(default_factory=dict)

    @classmethod
    def evaluate(
        cls,
        ticket: Ticket,
        deadline: SLTDeadline,
        calendar: WorkCalendar
    ) -> "TicketCompliance":
        """Compute raw and business-hour verdicts for both milestones."""
        milestones = {
            SLAMetric.RESPONSE: (ticket.assignment_date, deadline.tto),
            SLAMetric.RESOLVE: (ticket.resolution_date, deadline.ttr),
        }

        elapsed: Dict[Tuple[str, str], timedelta] = {}
        verdicts: Dict[Tuple[str, str], str] = {}
        for metric, (milestone, target) in milestones.items():
            elapsed[(Regime.RAW, metric)] = ComplianceClassifier.raw_elapsed(
                ticket.start_date, milestone
            )
            elapsed[(Regime.BUSINESS_HOUR, metric)] = ComplianceClassifier.business_elapsed(
                ticket.start_date, milestone, calendar
            )
            for regime in VALID_REGIMES:
                verdicts[(regime, metric)] = ComplianceClassifier.verdict(
                    elapsed[(regime, metric)], target
                )

        return cls(ticket=ticket, deadline=deadline, elapsed=elapsed, verdicts=verdicts)

    def elapsed_for(self, regime: str, metric: str) -> timedelta:
        return self.elapsed[(regime, metric)]

    def verdict_for(self, regime: str, metric: str) -> str:
        return self.verdicts[(regime, metric)]

    def complies(self, regime: str, metric: str) -> bool:
        return self.verdicts[(regime, metric)] == Verdict.COMPLY

    def series(self) -> Iterator[Tuple[str, str]]:
        """All (regime, metric) pairs, business-hour first."""
        for regime in (Regime.BUSINESS_HOUR, Regime.RAW):
            for metric in VALID_SLA_METRICS:
                yield regime, metric

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "ref": self.ticket.ref,
            "ticket_class": self.ticket.ticket_class,
            "priority": self.ticket.priority_label,
            "service": self.ticket.service,
            "deadline": {
                "tto_seconds": self.deadline.tto.total_seconds(),
                "ttr_seconds": self.deadline.ttr.total_seconds(),
            },
            "compliance": [
                {
                    "regime": regime,
                    "metric": metric,
                    "elapsed_seconds": self.elapsed_for(regime, metric).total_seconds(),
                    "verdict": self.verdict_for(regime, metric),
                }
                for regime, metric in self.series()
            ],
        }
