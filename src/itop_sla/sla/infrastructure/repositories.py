"""
SLA Infrastructure Repositories
=================================

Concrete implementations of the source and provider interfaces.

This layer contains the data access logic - how tickets, holidays and SLA
targets are read from iTop, local files and the YAML configuration.
"""

from datetime import tzinfo
from pathlib import Path
from typing import Any, Dict, List, Optional

from itop_sla.config import REQUEST_TYPES, SLTMetricTag
from itop_sla.core import ConfigurationException, ITopException, ResolutionFetchError
from itop_sla.sla.application import (
    IDeadlineProvider,
    IHolidaySource,
    ISLAConfigProvider,
    ITicketSource,
)
from itop_sla.sla.domain import SLTDeadline, Ticket, parse_slt_duration, priority_label
from itop_sla.sla.infrastructure.itop_client import ITopClient, oql_quote
from itop_sla.sla.infrastructure.parser import TICKET_OUTPUT_FIELDS, object_fields, parse_tickets
from itop_sla.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class ITopTicketSource(ITicketSource):
    """Fetches tickets of one class from iTop, filtered by status."""

    def __init__(
        self,
        client: ITopClient,
        statuses: List[str],
        tz: Optional[tzinfo] = None
    ):
        self._client = client
        self._statuses = list(statuses)
        self._tz = tz

    def build_query(self, ticket_class: str) -> str:
        statuses = ",".join(oql_quote(s) for s in self._statuses)
        return f"SELECT {ticket_class} WHERE status IN ({statuses})"

    async def fetch_tickets(self, ticket_class: str) -> List[Ticket]:
        """Get current tickets; an unconfigured client yields none."""
        if not self._client.is_configured:
            logger.warning(
                "iTop API not configured, no tickets fetched",
                extra={"ticket_class": ticket_class}
            )
            return []

        objects = await self._client.core_get(
            ticket_class, self.build_query(ticket_class), TICKET_OUTPUT_FIELDS
        )
        tickets = parse_tickets(objects, ticket_class, self._tz)
        logger.debug(
            "Parsed tickets from iTop",
            extra={"ticket_class": ticket_class, "count": len(tickets)}
        )
        return tickets


class ITopHolidaySource(IHolidaySource):
    """Reads ``Holiday`` objects from iTop."""

    def __init__(self, client: ITopClient):
        self._client = client

    async def fetch_holidays(self) -> List[str]:
        if not self._client.is_configured:
            logger.warning("iTop API not configured, no holidays fetched")
            return []

        objects = await self._client.core_get("Holiday", "SELECT Holiday", "date")
        holidays = []
        for obj in objects.values():
            fields = object_fields(obj) or {}
            if fields.get("date"):
                holidays.append(str(fields["date"]))
        return sorted(holidays)


class FileHolidaySource(IHolidaySource):
    """Static holiday list, one YYYY-MM-DD per line."""

    def __init__(self, path: Path):
        self._path = Path(path)

    async def fetch_holidays(self) -> List[str]:
        if not self._path.exists():
            logger.warning("Holidays file not found", extra={"path": str(self._path)})
            return []
        try:
            text = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationException(
                f"Cannot read holidays file {self._path}: {e}",
                {"path": str(self._path)}
            ) from e
        return [line.strip() for line in text.splitlines() if line.strip()]


def oql_priority(priority: str) -> str:
    """Priority as an OQL literal; iTop stores the numeric codes unquoted."""
    if priority.isascii() and priority.isdigit():
        return priority
    return oql_quote(priority)


class ITopSLTProvider(IDeadlineProvider):
    """
    Resolves deadlines through the iTop service catalog.

    Stage 1 maps the service to its SLA via the customer contracts;
    stage 2 reads the SLT records for the priority and request type and
    keeps those attached to that SLA.
    """

    cacheable = True

    def __init__(self, client: ITopClient):
        self._client = client

    async def get_deadline(
        self,
        ticket_class: str,
        priority: str,
        service_name: str
    ) -> SLTDeadline:
        if not self._client.is_configured:
            return SLTDeadline.none()

        try:
            contracts = await self._client.core_get(
                "CustomerContract", "SELECT CustomerContract", "services_list"
            )
            sla_name = self.find_sla_name(contracts, service_name)
            if not sla_name:
                logger.debug(
                    "No SLA mapped to service",
                    extra={"service_name": service_name, "ticket_class": ticket_class}
                )
                return SLTDeadline.none()

            request_type = REQUEST_TYPES.get(ticket_class, "")
            slts = await self._client.core_get(
                "SLT",
                f"SELECT SLT WHERE priority = {oql_priority(priority)} "
                f"AND request_type = {oql_quote(request_type)}",
                "*"
            )
        except ITopException as e:
            raise ResolutionFetchError(ticket_class, priority, service_name, e.message) from e

        return self.collect_targets(slts, sla_name)

    @staticmethod
    def find_sla_name(contracts: Dict[str, Dict[str, Any]], service_name: str) -> str:
        """SLA of the first contract service matching case-insensitively."""
        wanted = service_name.casefold()
        for obj in contracts.values():
            services = (object_fields(obj) or {}).get("services_list")
            if not isinstance(services, list):
                continue
            for service in services:
                if not isinstance(service, dict):
                    continue
                if str(service.get("service_name", "")).casefold() == wanted:
                    return str(service.get("sla_name") or "")
        return ""

    @staticmethod
    def collect_targets(slts: Dict[str, Dict[str, Any]], sla_name: str) -> SLTDeadline:
        """Pick the tto/ttr records linked to ``sla_name``."""
        tto = ttr = None
        for obj in slts.values():
            fields = object_fields(obj) or {}
            links = fields.get("slas_list")
            if not isinstance(links, list):
                continue
            linked = {str(link.get("sla_name")) for link in links if isinstance(link, dict)}
            if sla_name not in linked:
                continue
            duration = parse_slt_duration(fields.get("value"), fields.get("unit"))
            if fields.get("metric") == SLTMetricTag.TTO:
                tto = duration
            elif fields.get("metric") == SLTMetricTag.TTR:
                ttr = duration

        empty = SLTDeadline.none()
        return SLTDeadline(
            tto=tto if tto is not None else empty.tto,
            ttr=ttr if ttr is not None else empty.ttr,
        )


class ConfigTableDeadlineProvider(IDeadlineProvider):
    """
    Deadlines from the YAML ``sla_deadlines`` table.

    Not cached: the table is hot-reloaded, so every lookup reads the
    current configuration.
    """

    cacheable = False

    def __init__(self, config_provider: ISLAConfigProvider):
        self._config_provider = config_provider

    async def get_deadline(
        self,
        ticket_class: str,
        priority: str,
        service_name: str
    ) -> SLTDeadline:
        config = self._config_provider.get_config()
        return config.get_deadline(ticket_class, priority_label(priority))
