"""
iTop ticket parsing.

Turns ``core/get`` objects into ``Ticket`` entities. Dates that are empty,
zero (``0000-00-00 ...``) or unparseable become ``None``.
"""

from datetime import datetime, tzinfo
from typing import Any, Dict, List, Optional

from itop_sla.sla.domain import Ticket
from itop_sla.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

DATE_LAYOUTS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
)

TICKET_OUTPUT_FIELDS = ",".join([
    "id", "ref", "title", "status", "priority", "urgency", "impact",
    "service_id", "service_name", "servicesubcategory_name",
    "agent_id", "agent_id_friendlyname", "team_id", "team_id_friendlyname",
    "caller_id_friendlyname", "origin",
    "start_date", "assignment_date", "resolution_date",
    "tto_deadline", "ttr_deadline", "sla_tto_passed", "sla_ttr_passed",
])


def parse_itop_date(value: Optional[str], tz: Optional[tzinfo] = None) -> Optional[datetime]:
    """
    Parse an iTop timestamp.

    Naive values get ``tz`` attached when one is given. Offset-aware ISO
    values are kept as wall-clock when no ``tz`` is configured, so every
    instant of a ticket shares one kind.
    """
    if not value:
        return None
    text = str(value).strip()

    parsed = None
    for layout in DATE_LAYOUTS:
        try:
            parsed = datetime.strptime(text, layout)
            break
        except ValueError:
            continue

    if parsed is None:
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            logger.debug("Unparseable iTop date", extra={"value": text})
            return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=tz) if tz is not None else parsed
    if tz is None:
        return parsed.replace(tzinfo=None)
    return parsed.astimezone(tz)


def _text(fields: Dict[str, Any], name: str) -> str:
    value = fields.get(name)
    return "" if value is None else str(value)


def object_fields(obj: Any) -> Optional[Dict[str, Any]]:
    """``fields`` of one ``core/get`` object, or ``None`` when the entry is malformed."""
    if not isinstance(obj, dict):
        return None
    fields = obj.get("fields")
    return fields if isinstance(fields, dict) else None


def parse_ticket(fields: Dict[str, Any], ticket_class: str, tz: Optional[tzinfo] = None) -> Ticket:
    """Build one ticket from a ``fields`` document."""
    return Ticket(
        id=_text(fields, "id"),
        ref=_text(fields, "ref"),
        title=_text(fields, "title"),
        status=_text(fields, "status"),
        ticket_class=ticket_class,
        priority=_text(fields, "priority"),
        urgency=_text(fields, "urgency"),
        impact=_text(fields, "impact"),
        service=_text(fields, "service_name"),
        service_subcategory=_text(fields, "servicesubcategory_name"),
        service_id=_text(fields, "service_id"),
        agent_id=_text(fields, "agent_id"),
        agent=_text(fields, "agent_id_friendlyname"),
        team_id=_text(fields, "team_id"),
        team=_text(fields, "team_id_friendlyname"),
        caller=_text(fields, "caller_id_friendlyname"),
        origin=_text(fields, "origin"),
        start_date=parse_itop_date(fields.get("start_date"), tz),
        assignment_date=parse_itop_date(fields.get("assignment_date"), tz),
        resolution_date=parse_itop_date(fields.get("resolution_date"), tz),
        tto_deadline=parse_itop_date(fields.get("tto_deadline"), tz),
        ttr_deadline=parse_itop_date(fields.get("ttr_deadline"), tz),
        sla_tto_passed=_text(fields, "sla_tto_passed"),
        sla_ttr_passed=_text(fields, "sla_ttr_passed"),
    )


def parse_tickets(
    objects: Dict[str, Dict[str, Any]],
    ticket_class: str,
    tz: Optional[tzinfo] = None
) -> List[Ticket]:
    """
    Parse every object of a ``core/get`` response, ordered by ticket id.

    Entries without a ``fields`` document are skipped.
    """
    tickets = []
    for key, obj in objects.items():
        fields = object_fields(obj)
        if fields is None:
            logger.warning(
                "Skipping malformed iTop object",
                extra={"object_key": key, "ticket_class": ticket_class}
            )
            continue
        tickets.append(parse_ticket(fields, ticket_class, tz))
    # iTop keys objects as "<Class>::<id>"; map order is not meaningful
    tickets.sort(key=lambda t: (len(t.id), t.id))
    return tickets
