"""
SLA Value Objects
==================

Immutable value objects and stateless calculators for the SLA domain.

Value objects are defined by their attributes rather than an identity.
They are immutable and can be freely shared between concurrent
compliance evaluations.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, FrozenSet, Iterable, Optional, Tuple, Union

from pydantic import BaseModel, Field, field_validator

from itop_sla.config import Verdict
from itop_sla.core import CalendarParseError
from itop_sla.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

ZERO = timedelta(0)


def elapsed_between(start: datetime, end: datetime) -> timedelta:
    """
    Absolute time from ``start`` to ``end``.

    Aware instants are compared in UTC; subtracting two values that share a
    zone object would otherwise use wall-clock time and miss DST shifts.
    """
    if start.tzinfo is not None and end.tzinfo is not None:
        return end.astimezone(timezone.utc) - start.astimezone(timezone.utc)
    return end - start


# ========== Duration parsing ==========

_DURATION_UNITS_US = {
    "ns": 0.001,
    "us": 1,
    "µs": 1,
    "μs": 1,
    "ms": 1_000,
    "s": 1_000_000,
    "m": 60_000_000,
    "h": 3_600_000_000,
}
_DURATION_PART = r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)"
_DURATION_RE = re.compile(rf"([+-]?)((?:{_DURATION_PART})+)")
_DURATION_PART_RE = re.compile(_DURATION_PART)


def parse_duration_string(value: str) -> timedelta:
    """
    Parse a Go-style duration string such as ``"4h"``, ``"30m"`` or ``"1h30m"``.

    Raises:
        ValueError: If the string does not follow the grammar.
    """
    text = value.strip()
    if text in ("0", "+0", "-0"):
        return ZERO

    match = _DURATION_RE.fullmatch(text)
    if not match:
        raise ValueError(f"invalid duration string: {value!r}")

    micros = 0.0
    for number, unit in _DURATION_PART_RE.findall(match.group(2)):
        micros += float(number) * _DURATION_UNITS_US[unit]

    duration = timedelta(microseconds=micros)
    return -duration if match.group(1) == "-" else duration


_SLT_UNITS = {
    "seconds": timedelta(seconds=1),
    "second": timedelta(seconds=1),
    "s": timedelta(seconds=1),
    "minutes": timedelta(minutes=1),
    "minute": timedelta(minutes=1),
    "m": timedelta(minutes=1),
    "hours": timedelta(hours=1),
    "hour": timedelta(hours=1),
    "h": timedelta(hours=1),
    "days": timedelta(days=1),
    "day": timedelta(days=1),
    "d": timedelta(days=1),
}


def parse_slt_duration(value: Union[int, float, str, None], unit: Optional[str]) -> timedelta:
    """Convert an iTop SLT (value, unit) pair; unknown units or values give zero."""
    step = _SLT_UNITS.get(str(unit or ""))
    if step is None:
        return ZERO
    try:
        return step * int(float(value))
    except (TypeError, ValueError, OverflowError):
        return ZERO


# ========== Deadlines ==========

@dataclass(frozen=True)
class SLTDeadline:
    """
    Response (TTO) and resolution (TTR) targets for one ticket.

    A zero duration means no target is configured.
    """
    tto: timedelta = ZERO
    ttr: timedelta = ZERO

    @classmethod
    def none(cls) -> "SLTDeadline":
        """Deadline with no targets."""
        return cls()

    @property
    def is_empty(self) -> bool:
        return self.tto <= ZERO and self.ttr <= ZERO


# ========== Calendar ==========

@dataclass(frozen=True)
class WorkCalendar:
    """
    Daily work window plus holiday dates.

    Built once per compliance pass and shared read-only by every
    ticket evaluation in that pass.
    """
    work_start: str = "09:00"
    work_end: str = "17:00"
    holidays: FrozenSet[date] = frozenset()

    @classmethod
    def build(
        cls,
        work_start: str,
        work_end: str,
        holiday_dates: Iterable[Union[str, date]] = ()
    ) -> "WorkCalendar":
        """Create a calendar from ISO date strings, skipping malformed ones."""
        holidays = set()
        for item in holiday_dates:
            if isinstance(item, date):
                holidays.add(item)
                continue
            try:
                holidays.add(date.fromisoformat(item.strip()))
            except ValueError:
                logger.warning("Ignoring malformed holiday date", extra={"holiday": item})
        return cls(work_start=work_start, work_end=work_end, holidays=frozenset(holidays))

    def work_window(self) -> Tuple[time, time]:
        """
        Parse the daily bounds.

        Raises:
            CalendarParseError: If either bound is not HH:MM.
        """
        try:
            opening = datetime.strptime(self.work_start, "%H:%M").time()
            closing = datetime.strptime(self.work_end, "%H:%M").time()
        except (TypeError, ValueError):
            raise CalendarParseError(str(self.work_start), str(self.work_end))
        return opening, closing

    def is_working_day(self, day: date) -> bool:
        """Weekdays that are not holidays."""
        return day.weekday() < 5 and day not in self.holidays


class BusinessHourCalculator:
    """
    Elapsed work time between two instants.

    Stateless; the result depends only on the arguments.
    """

    @staticmethod
    def duration(start: datetime, end: datetime, calendar: WorkCalendar) -> timedelta:
        """
        Work time between ``start`` and ``end`` under ``calendar``.

        Walks day by day: holidays and weekends contribute nothing, time
        before the daily opening is skipped, time after closing rolls to
        the next opening. Never negative and never longer than ``end - start``.

        Falls back to plain calendar time when the work-hour bounds cannot be
        parsed, and to zero when the window is empty or inverted.
        """
        if elapsed_between(start, end) < ZERO:
            return ZERO

        try:
            opening, closing = calendar.work_window()
        except CalendarParseError as e:
            logger.warning(
                "Falling back to calendar time",
                extra={"error": e.message, **e.details}
            )
            return elapsed_between(start, end)

        if opening >= closing:
            logger.warning(
                "Empty work window, counting no business time",
                extra={"work_start": calendar.work_start, "work_end": calendar.work_end}
            )
            return ZERO

        total = ZERO
        cursor = start
        while cursor < end:
            day = cursor.date()
            if not calendar.is_working_day(day):
                cursor = _next_opening(cursor, opening)
                continue

            day_start = datetime.combine(day, opening, tzinfo=cursor.tzinfo)
            day_end = datetime.combine(day, closing, tzinfo=cursor.tzinfo)
            if cursor < day_start:
                cursor = day_start
            if cursor >= day_end:
                cursor = _next_opening(cursor, opening)
                continue
            if cursor >= end:
                break

            boundary = min(day_end, end)
            total += elapsed_between(cursor, boundary)
            cursor = boundary
            if cursor < end:
                cursor = _next_opening(cursor, opening)

        return max(total, ZERO)


def _next_opening(cursor: datetime, opening: time) -> datetime:
    return datetime.combine(cursor.date() + timedelta(days=1), opening, tzinfo=cursor.tzinfo)


class ComplianceClassifier:
    """Pure comply/violate decisions."""

    @staticmethod
    def verdict(elapsed: timedelta, target: timedelta) -> str:
        """
        Comply only when a target exists, the milestone happened, and it
        happened within the target.
        """
        if target > ZERO and elapsed > ZERO and elapsed <= target:
            return Verdict.COMPLY
        return Verdict.VIOLATE

    @staticmethod
    def raw_elapsed(start: Optional[datetime], milestone: Optional[datetime]) -> timedelta:
        """Calendar time to a milestone, zero when either instant is unset."""
        if start is None or milestone is None:
            return ZERO
        return elapsed_between(start, milestone)

    @staticmethod
    def business_elapsed(
        start: Optional[datetime],
        milestone: Optional[datetime],
        calendar: WorkCalendar
    ) -> timedelta:
        """Work time to a milestone, zero when either instant is unset."""
        if start is None or milestone is None:
            return ZERO
        return BusinessHourCalculator.duration(start, milestone, calendar)


# ========== YAML configuration ==========

class WorkHoursConfig(BaseModel):
    """Daily work window as HH:MM strings."""
    start: str = Field(default="09:00", description="Work day start (HH:MM)")
    end: str = Field(default="17:00", description="Work day end (HH:MM)")

    @field_validator("start", "end", mode="before")
    @classmethod
    def coerce_sexagesimal(cls, v):
        """YAML 1.1 reads unquoted 17:00 as the integer 1020."""
        if isinstance(v, int) and not isinstance(v, bool):
            return f"{v // 60:02d}:{v % 60:02d}"
        return v


class DeadlineTargetConfig(BaseModel):
    """Response/resolve targets as duration strings ("4h", "30m")."""
    response: str = Field(default="", description="Time-to-respond target")
    resolve: str = Field(default="", description="Time-to-resolve target")

    @field_validator("response", "resolve")
    @classmethod
    def validate_duration(cls, v: str) -> str:
        """Reject strings that are not durations."""
        if v:
            parse_duration_string(v)
        return v

    def to_deadline(self) -> SLTDeadline:
        return SLTDeadline(
            tto=parse_duration_string(self.response) if self.response else ZERO,
            ttr=parse_duration_string(self.resolve) if self.resolve else ZERO,
        )


class BusinessHoursConfig(BaseModel):
    """
    Business-hours configuration loaded from YAML.

    ``sla_deadlines`` is keyed by ticket class, then lowercase priority
    label (``critical``, ``high``, ...).
    """
    work_hours: WorkHoursConfig = Field(default_factory=WorkHoursConfig)
    sla_deadlines: Dict[str, Dict[str, DeadlineTargetConfig]] = Field(
        default_factory=dict,
        description="Static deadline table by class and priority label"
    )

    @field_validator("sla_deadlines")
    @classmethod
    def lowercase_priorities(
        cls, v: Dict[str, Dict[str, DeadlineTargetConfig]]
    ) -> Dict[str, Dict[str, DeadlineTargetConfig]]:
        return {
            ticket_class: {label.lower(): target for label, target in targets.items()}
            for ticket_class, targets in v.items()
        }

    def get_deadline(self, ticket_class: str, priority_label: str) -> SLTDeadline:
        """Look up the static deadline; absent entries have no targets."""
        target = self.sla_deadlines.get(ticket_class, {}).get(priority_label.lower())
        if target is None:
            return SLTDeadline.none()
        return target.to_deadline()
