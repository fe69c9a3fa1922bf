"""
Prometheus Exposition
=====================

Custom collectors that render the monitor's latest snapshots in the
Prometheus text format:

- ``itop_ticket_count`` and ``itop_ticket_sla_compliance`` on the summary
  registry (``/metrics``)
- ``itop_ticket_detail_info`` on one registry per ticket class
  (``/incidents``, ``/userrequests``)

Collectors read the report at scrape time, so each scrape sees exactly one
compliance pass and stale label sets disappear on their own.
"""

from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional

from prometheus_client import CollectorRegistry, CONTENT_TYPE_LATEST, generate_latest
from prometheus_client.core import GaugeMetricFamily
from prometheus_client.registry import Collector

from itop_sla.config import SLAMetric
from itop_sla.sla.application import SLAMonitorService
from itop_sla.sla.domain import TicketCompliance

COUNT_LABELS = [
    "status", "class", "service", "service_subcategory",
    "team", "agent", "priority", "urgency",
]

COMPLIANCE_LABELS = [
    "class", "priority", "urgency", "sla_type", "sla_metric", "status",
]

DETAIL_LABELS = [
    "id", "ref", "class", "title", "status", "priority", "urgency", "impact",
    "service_name", "servicesubcategory_name",
    "agent_id_friendlyname", "team_id_friendlyname",
    "start_date", "assignment_date", "resolution_date",
    "time_to_response", "time_to_resolve",
    "type", "sla_metric", "sla_compliance",
]


def unix_label(value: Optional[datetime]) -> str:
    """Unix seconds of an instant, naive values read as UTC; unset gives ``""``."""
    if value is None:
        return ""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return str(int(value.timestamp()))


def detail_label_sets(result: TicketCompliance) -> Iterator[List[str]]:
    """The four label sets one ticket contributes to the detail gauge."""
    ticket = result.ticket
    common = [
        ticket.id,
        ticket.ref,
        ticket.ticket_class,
        ticket.title,
        ticket.status,
        ticket.priority_label,
        ticket.urgency_label,
        ticket.impact,
        ticket.service,
        ticket.service_subcategory,
        ticket.agent,
        ticket.team,
        unix_label(ticket.start_date),
        unix_label(ticket.assignment_date),
        unix_label(ticket.resolution_date),
    ]
    for regime, metric in result.series():
        response = result.elapsed_for(regime, SLAMetric.RESPONSE).total_seconds()
        resolve = result.elapsed_for(regime, SLAMetric.RESOLVE).total_seconds()
        yield common + [
            "%.0f" % response,
            "%.0f" % resolve,
            regime,
            metric,
            result.verdict_for(regime, metric),
        ]


class SummaryCollector(Collector):
    """Ticket counts and comply/violate samples across all classes."""

    def __init__(self, monitor: SLAMonitorService):
        self._monitor = monitor

    def collect(self):
        report = self._monitor.report

        count = GaugeMetricFamily(
            "itop_ticket_count",
            "Number of iTop tickets by status, class, service, team, agent, priority and urgency",
            labels=COUNT_LABELS,
        )
        for key, value in report.ticket_counts.items():
            count.add_metric(
                [
                    key.status, key.ticket_class, key.service, key.service_subcategory,
                    key.team, key.agent, key.priority, key.urgency,
                ],
                value,
            )
        yield count

        compliance = GaugeMetricFamily(
            "itop_ticket_sla_compliance",
            "SLA comply/violate ticket counts by class, priority, urgency, regime and metric",
            labels=COMPLIANCE_LABELS,
        )
        for key, value in report.compliance.items():
            compliance.add_metric(
                [key.ticket_class, key.priority, key.urgency, key.regime, key.metric, key.verdict],
                value,
            )
        yield compliance


class TicketDetailCollector(Collector):
    """One info series per ticket, regime and metric for a single class."""

    def __init__(self, monitor: SLAMonitorService, ticket_class: str):
        self._monitor = monitor
        self._ticket_class = ticket_class

    def collect(self):
        detail = GaugeMetricFamily(
            "itop_ticket_detail_info",
            "Per-ticket SLA detail; value is always 1",
            labels=DETAIL_LABELS,
        )
        for result in self._monitor.report.for_class(self._ticket_class):
            for labels in detail_label_sets(result):
                detail.add_metric(labels, 1)
        yield detail


class ExporterRegistries:
    """Separate registries for the summary endpoint and each detail endpoint."""

    def __init__(self, monitor: SLAMonitorService, ticket_classes: List[str]):
        self.summary = CollectorRegistry(auto_describe=False)
        self.summary.register(SummaryCollector(monitor))

        self.details: Dict[str, CollectorRegistry] = {}
        for ticket_class in ticket_classes:
            registry = CollectorRegistry(auto_describe=False)
            registry.register(TicketDetailCollector(monitor, ticket_class))
            self.details[ticket_class] = registry

    content_type = CONTENT_TYPE_LATEST

    def render_summary(self) -> bytes:
        return generate_latest(self.summary)

    def render_detail(self, ticket_class: str) -> bytes:
        """
        Raises:
            KeyError: If the class is not exported.
        """
        return generate_latest(self.details[ticket_class])
