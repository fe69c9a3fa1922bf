"""
SLA Application Services
=========================

Application services orchestrate business logic and coordinate between
domain entities and the ticket/holiday/deadline sources.

Following SOLID principles:
- Single Responsibility: Each service has one clear purpose
- Dependency Inversion: Depend on abstractions (sources, providers), not concrete implementations
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from itop_sla.config import Verdict, VALID_REGIMES, VALID_SLA_METRICS
from itop_sla.core import ApplicationException, ResolutionFetchError
from itop_sla.sla.domain import (
    BusinessHoursConfig,
    ComplianceKey,
    SLTDeadline,
    Ticket,
    TicketCompliance,
    TicketCountKey,
    WorkCalendar,
)
from itop_sla.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)


# ========== Source Interfaces (Dependency Inversion) ==========

class ITicketSource(ABC):
    """Interface for ticket retrieval."""

    @abstractmethod
    async def fetch_tickets(self, ticket_class: str) -> List[Ticket]:
        """Get the current tickets of one class."""


class IHolidaySource(ABC):
    """Interface for holiday dates."""

    @abstractmethod
    async def fetch_holidays(self) -> List[str]:
        """Get holiday dates as ISO (YYYY-MM-DD) strings."""


class IDeadlineProvider(ABC):
    """Interface for SLA deadline lookups."""

    # Providers whose answers can change while the process runs opt out of caching.
    cacheable: bool = True

    @abstractmethod
    async def get_deadline(
        self,
        ticket_class: str,
        priority: str,
        service_name: str
    ) -> SLTDeadline:
        """
        Resolve TTO/TTR targets.

        Raises:
            ResolutionFetchError: If the lookup itself failed.
        """


class ISLAConfigProvider(ABC):
    """Interface for business-hours configuration access."""

    @abstractmethod
    def get_config(self) -> BusinessHoursConfig:
        """Get current business-hours configuration."""


# ========== Deadline resolution ==========

@dataclass(frozen=True)
class DeadlineKey:
    """Cache key; matched exactly as received from the ticket."""
    ticket_class: str
    priority: str
    service_name: str


class DeadlineCache:
    """
    Process-lifetime deadline cache.

    Entries are only ever added. Lock scope is a single get or put, so two
    concurrent misses on one key may both resolve; the last write wins.
    """

    def __init__(self):
        self._entries: Dict[DeadlineKey, SLTDeadline] = {}
        self._lock = threading.Lock()

    def get(self, key: DeadlineKey) -> Optional[SLTDeadline]:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: DeadlineKey, deadline: SLTDeadline) -> None:
        with self._lock:
            self._entries[key] = deadline

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class DeadlineResolver:
    """
    Memoizing front for a deadline provider.

    Only successful resolutions are cached (including empty ones, so a
    service without an SLA is not re-queried every cycle); failures
    propagate and are retried on the next evaluation that needs the key.
    """

    def __init__(
        self,
        provider: IDeadlineProvider,
        cache: Optional[DeadlineCache] = None
    ):
        self._provider = provider
        self._cache = cache if cache is not None else DeadlineCache()

    @property
    def cache(self) -> DeadlineCache:
        return self._cache

    async def resolve(
        self,
        ticket_class: str,
        priority: str,
        service_name: str
    ) -> SLTDeadline:
        """Cached deadline for (class, priority, service)."""
        key = DeadlineKey(ticket_class, priority, service_name)

        if self._provider.cacheable:
            cached = self._cache.get(key)
            if cached is not None:
                return cached

        deadline = await self._provider.get_deadline(ticket_class, priority, service_name)

        if self._provider.cacheable:
            self._cache.put(key, deadline)
            logger.info(
                "SLT deadline cached",
                extra={
                    "ticket_class": ticket_class,
                    "priority": priority,
                    "service_name": service_name,
                    "tto_seconds": deadline.tto.total_seconds(),
                    "ttr_seconds": deadline.ttr.total_seconds(),
                }
            )
        return deadline


# ========== Compliance ==========

@dataclass
class ComplianceReport:
    """
    Result of one compliance pass.

    ``compliance`` holds, per series, the comply sample and its complement
    under the violate verdict, so rates are plain sums downstream.
    """

    generated_at: Optional[datetime] = None
    results: List[TicketCompliance] = field(default_factory=list)
    ticket_counts: Dict[TicketCountKey, int] = field(default_factory=dict)
    compliance: Dict[ComplianceKey, float] = field(default_factory=dict)
    resolution_failures: int = 0

    def add(self, result: TicketCompliance) -> None:
        """Fold one ticket into the aggregates."""
        ticket = result.ticket

        count_key = TicketCountKey.for_ticket(ticket)
        self.ticket_counts[count_key] = self.ticket_counts.get(count_key, 0) + 1

        for regime, metric in result.series():
            comply = 1.0 if result.complies(regime, metric) else 0.0
            for verdict, value in ((Verdict.COMPLY, comply), (Verdict.VIOLATE, 1.0 - comply)):
                key = ComplianceKey(
                    ticket_class=ticket.ticket_class,
                    priority=ticket.priority_label,
                    urgency=ticket.urgency_label,
                    regime=regime,
                    metric=metric,
                    verdict=verdict,
                )
                self.compliance[key] = self.compliance.get(key, 0.0) + value

        self.results.append(result)

    def for_class(self, ticket_class: str) -> List[TicketCompliance]:
        return [r for r in self.results if r.ticket.ticket_class == ticket_class]

    def find(self, ref: str) -> Optional[TicketCompliance]:
        for result in self.results:
            if result.ticket.ref == ref:
                return result
        return None

    def summarize(self, ticket_class: Optional[str] = None) -> List[dict]:
        """Comply/violate totals and rate per (regime, metric)."""
        totals: Dict[Tuple[str, str], Dict[str, float]] = {
            (regime, metric): {Verdict.COMPLY: 0.0, Verdict.VIOLATE: 0.0}
            for regime in VALID_REGIMES
            for metric in VALID_SLA_METRICS
        }
        for key, value in self.compliance.items():
            if ticket_class and key.ticket_class != ticket_class:
                continue
            totals[(key.regime, key.metric)][key.verdict] += value

        summary = []
        for (regime, metric), counts in totals.items():
            total = counts[Verdict.COMPLY] + counts[Verdict.VIOLATE]
            summary.append({
                "regime": regime,
                "metric": metric,
                "comply": int(counts[Verdict.COMPLY]),
                "violate": int(counts[Verdict.VIOLATE]),
                "compliance_rate": (counts[Verdict.COMPLY] / total * 100) if total > 0 else 0.0,
            })
        return summary


class ComplianceService:
    """
    Scores tickets against their resolved deadlines.

    Per-ticket evaluation is pure apart from the resolver's cache.
    """

    def __init__(self, resolver: DeadlineResolver):
        self._resolver = resolver

    async def evaluate_ticket(
        self,
        ticket: Ticket,
        calendar: WorkCalendar
    ) -> Tuple[TicketCompliance, bool]:
        """
        Evaluate one ticket.

        Returns:
            Tuple of (compliance, resolution_failed). A failed resolution
            scores the ticket with no targets for this pass.
        """
        try:
            deadline = await self._resolver.resolve(
                ticket.ticket_class, ticket.priority, ticket.service
            )
            failed = False
        except ResolutionFetchError as e:
            logger.warning(
                "SLT resolution failed, scoring ticket without targets",
                extra={"ref": ticket.ref, "error": e.message, **e.details}
            )
            deadline = SLTDeadline.none()
            failed = True

        return TicketCompliance.evaluate(ticket, deadline, calendar), failed

    async def evaluate(
        self,
        tickets: Iterable[Ticket],
        calendar: WorkCalendar
    ) -> ComplianceReport:
        """Evaluate all tickets against one calendar snapshot."""
        report = ComplianceReport(generated_at=datetime.now(timezone.utc))

        for ticket in tickets:
            result, failed = await self.evaluate_ticket(ticket, calendar)
            report.add(result)
            if failed:
                report.resolution_failures += 1

        return report


# ========== Monitor ==========

class SLAMonitorService:
    """
    Holds the latest ticket, holiday and report snapshots.

    Each public coroutine is one refresh cycle; the scheduler runs them on
    intervals and tests await them directly.
    """

    def __init__(
        self,
        ticket_source: ITicketSource,
        holiday_sources: List[IHolidaySource],
        config_provider: ISLAConfigProvider,
        compliance_service: ComplianceService,
        ticket_classes: List[str]
    ):
        self._ticket_source = ticket_source
        self._holiday_sources = holiday_sources
        self._config_provider = config_provider
        self._compliance_service = compliance_service
        self._ticket_classes = list(ticket_classes)

        self._lock = threading.Lock()
        self._tickets: Dict[str, List[Ticket]] = {c: [] for c in self._ticket_classes}
        self._holidays: Tuple[str, ...] = ()
        self._report = ComplianceReport()

    @property
    def ticket_classes(self) -> List[str]:
        return list(self._ticket_classes)

    @property
    def report(self) -> ComplianceReport:
        with self._lock:
            return self._report

    @property
    def holidays(self) -> Tuple[str, ...]:
        with self._lock:
            return self._holidays

    def tickets(self, ticket_class: Optional[str] = None) -> List[Ticket]:
        """Copy of the ticket snapshot, for one class or all."""
        with self._lock:
            if ticket_class is not None:
                return list(self._tickets.get(ticket_class, []))
            return [t for c in self._ticket_classes for t in self._tickets[c]]

    async def refresh_tickets(self, ticket_class: str) -> int:
        """Re-fetch one class; on failure the previous snapshot stays."""
        try:
            tickets = await self._ticket_source.fetch_tickets(ticket_class)
        except ApplicationException as e:
            logger.error(
                "Ticket refresh failed, keeping previous snapshot",
                extra={"ticket_class": ticket_class, "error": e.message}
            )
            return len(self.tickets(ticket_class))

        with self._lock:
            self._tickets[ticket_class] = tickets
        logger.info(
            "Tickets refreshed",
            extra={"ticket_class": ticket_class, "count": len(tickets)}
        )
        return len(tickets)

    async def refresh_holidays(self) -> int:
        """Re-read all holiday sources; on any failure the previous snapshot stays."""
        dates: List[str] = []
        for source in self._holiday_sources:
            try:
                dates.extend(await source.fetch_holidays())
            except ApplicationException as e:
                logger.error(
                    "Holiday sync failed, keeping previous snapshot",
                    extra={"source": type(source).__name__, "error": e.message}
                )
                return len(self.holidays)

        snapshot = tuple(sorted(set(dates)))
        with self._lock:
            self._holidays = snapshot
        logger.info("Holidays refreshed", extra={"count": len(snapshot)})
        return len(snapshot)

    def build_calendar(self) -> WorkCalendar:
        """Immutable calendar for one compliance pass."""
        work_hours = self._config_provider.get_config().work_hours
        return WorkCalendar.build(work_hours.start, work_hours.end, self.holidays)

    async def recompute(self) -> ComplianceReport:
        """Run one compliance pass over the current snapshots."""
        calendar = self.build_calendar()
        tickets = self.tickets()

        with log_latency(logger, "compliance_pass", ticket_count=len(tickets)):
            report = await self._compliance_service.evaluate(tickets, calendar)

        with self._lock:
            self._report = report

        logger.info(
            "Compliance recomputed",
            extra={
                "ticket_count": len(report.results),
                "resolution_failures": report.resolution_failures,
            }
        )
        return report
