"""Tests for verdicts, per-ticket compliance and report aggregation."""

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from conftest import make_ticket
from itop_sla.config import Regime, SLAMetric, Verdict
from itop_sla.sla.application import ComplianceReport
from itop_sla.sla.domain import (
    ComplianceClassifier,
    ComplianceKey,
    SLTDeadline,
    TicketCompliance,
    TicketCountKey,
)

HOUR = timedelta(hours=1)


class TestVerdict:

    @pytest.mark.parametrize(
        "elapsed,target,expected",
        [
            (HOUR, 2 * HOUR, Verdict.COMPLY),
            (2 * HOUR, 2 * HOUR, Verdict.COMPLY),
            (3 * HOUR, 2 * HOUR, Verdict.VIOLATE),
            (timedelta(0), 2 * HOUR, Verdict.VIOLATE),
            (HOUR, timedelta(0), Verdict.VIOLATE),
            (-HOUR, 2 * HOUR, Verdict.VIOLATE),
        ],
    )
    def test_verdict(self, elapsed, target, expected):
        assert ComplianceClassifier.verdict(elapsed, target) == expected

    def test_unset_milestone_has_zero_elapsed(self, calendar):
        start = datetime(2024, 1, 8, 10)
        assert ComplianceClassifier.raw_elapsed(start, None) == timedelta(0)
        assert ComplianceClassifier.business_elapsed(None, start, calendar) == timedelta(0)


class TestTicketCompliance:

    def test_regimes_judged_independently(self):
        target = 4 * HOUR
        assert ComplianceClassifier.verdict(3 * HOUR, target) == Verdict.COMPLY
        assert ComplianceClassifier.verdict(5 * HOUR, target) == Verdict.VIOLATE

    def test_in_window_span_same_in_both_regimes(self, calendar):
        ticket = make_ticket(
            start_date=datetime(2024, 1, 8, 9),
            assignment_date=datetime(2024, 1, 8, 12),
        )
        result = TicketCompliance.evaluate(ticket, SLTDeadline(tto=4 * HOUR), calendar)
        assert result.elapsed_for(Regime.RAW, SLAMetric.RESPONSE) == 3 * HOUR
        assert result.elapsed_for(Regime.BUSINESS_HOUR, SLAMetric.RESPONSE) == 3 * HOUR
        assert result.complies(Regime.RAW, SLAMetric.RESPONSE)
        assert result.complies(Regime.BUSINESS_HOUR, SLAMetric.RESPONSE)

    def test_overnight_business_complies_raw_violates(self, calendar):
        # Mon 16:00 -> Tue 10:00: 18h raw, 2h business
        ticket = make_ticket(
            start_date=datetime(2024, 1, 8, 16),
            assignment_date=datetime(2024, 1, 9, 10),
        )
        result = TicketCompliance.evaluate(ticket, SLTDeadline(tto=4 * HOUR), calendar)
        assert result.verdict_for(Regime.RAW, SLAMetric.RESPONSE) == Verdict.VIOLATE
        assert result.verdict_for(Regime.BUSINESS_HOUR, SLAMetric.RESPONSE) == Verdict.COMPLY

    def test_raw_elapsed_across_spring_forward(self, calendar):
        berlin = ZoneInfo("Europe/Berlin")
        ticket = make_ticket(
            start_date=datetime(2024, 3, 30, 12, tzinfo=berlin),
            assignment_date=datetime(2024, 3, 31, 12, tzinfo=berlin),
            resolution_date=datetime(2024, 3, 31, 12, 30, tzinfo=berlin),
        )
        assert ticket.time_to_response == 23 * HOUR
        assert ticket.time_to_resolve == 23 * HOUR + timedelta(minutes=30)

        result = TicketCompliance.evaluate(ticket, SLTDeadline(tto=23 * HOUR, ttr=23 * HOUR), calendar)
        assert result.elapsed_for(Regime.RAW, SLAMetric.RESPONSE) == 23 * HOUR
        assert result.verdict_for(Regime.RAW, SLAMetric.RESPONSE) == Verdict.COMPLY
        assert result.verdict_for(Regime.RAW, SLAMetric.RESOLVE) == Verdict.VIOLATE

    def test_no_deadline_violates_everything(self, ticket, calendar):
        result = TicketCompliance.evaluate(ticket, SLTDeadline.none(), calendar)
        assert {result.verdict_for(r, m) for r, m in result.series()} == {Verdict.VIOLATE}

    def test_unresolved_ticket_violates_resolve(self, calendar):
        ticket = make_ticket(resolution_date=None, status="assigned")
        result = TicketCompliance.evaluate(
            ticket, SLTDeadline(tto=4 * HOUR, ttr=8 * HOUR), calendar
        )
        assert result.complies(Regime.RAW, SLAMetric.RESPONSE)
        assert not result.complies(Regime.RAW, SLAMetric.RESOLVE)
        assert not result.complies(Regime.BUSINESS_HOUR, SLAMetric.RESOLVE)
        assert result.elapsed_for(Regime.RAW, SLAMetric.RESOLVE) == timedelta(0)

    def test_series_order(self, ticket, calendar):
        result = TicketCompliance.evaluate(ticket, SLTDeadline.none(), calendar)
        assert list(result.series()) == [
            (Regime.BUSINESS_HOUR, SLAMetric.RESPONSE),
            (Regime.BUSINESS_HOUR, SLAMetric.RESOLVE),
            (Regime.RAW, SLAMetric.RESPONSE),
            (Regime.RAW, SLAMetric.RESOLVE),
        ]

    def test_to_dict(self, ticket, calendar):
        result = TicketCompliance.evaluate(ticket, SLTDeadline(tto=2 * HOUR, ttr=8 * HOUR), calendar)
        data = result.to_dict()
        assert data["ref"] == "I-000001"
        assert data["priority"] == "High"
        assert data["deadline"] == {"tto_seconds": 7200.0, "ttr_seconds": 28800.0}
        assert data["compliance"][0] == {
            "regime": "business-hour",
            "metric": "response",
            "elapsed_seconds": 3600.0,
            "verdict": "comply",
        }


class TestComplianceReport:

    def test_aggregates_counts_and_complements(self, calendar):
        report = ComplianceReport()
        deadline = SLTDeadline(tto=2 * HOUR, ttr=8 * HOUR)
        report.add(TicketCompliance.evaluate(make_ticket(id="1", ref="I-1"), deadline, calendar))
        report.add(TicketCompliance.evaluate(
            make_ticket(id="2", ref="I-2", assignment_date=None), deadline, calendar
        ))

        count_key = TicketCountKey.for_ticket(make_ticket())
        assert report.ticket_counts == {count_key: 2}

        def sample(regime, metric, verdict):
            return report.compliance[ComplianceKey("Incident", "High", "Medium", regime, metric, verdict)]

        assert sample(Regime.RAW, SLAMetric.RESPONSE, Verdict.COMPLY) == 1.0
        assert sample(Regime.RAW, SLAMetric.RESPONSE, Verdict.VIOLATE) == 1.0
        assert sample(Regime.RAW, SLAMetric.RESOLVE, Verdict.COMPLY) == 2.0
        assert sample(Regime.RAW, SLAMetric.RESOLVE, Verdict.VIOLATE) == 0.0

    def test_comply_plus_violate_equals_ticket_count(self, calendar):
        report = ComplianceReport()
        for i in range(5):
            report.add(TicketCompliance.evaluate(
                make_ticket(id=str(i), ref=f"I-{i}"), SLTDeadline(tto=HOUR / 2), calendar
            ))
        for row in report.summarize():
            assert row["comply"] + row["violate"] == 5

    def test_summarize_and_find(self, calendar):
        report = ComplianceReport()
        deadline = SLTDeadline(tto=2 * HOUR, ttr=8 * HOUR)
        report.add(TicketCompliance.evaluate(make_ticket(), deadline, calendar))
        report.add(TicketCompliance.evaluate(
            make_ticket(id="7", ref="R-7", ticket_class="UserRequest"), SLTDeadline.none(), calendar
        ))

        incident_rows = {(r["regime"], r["metric"]): r for r in report.summarize("Incident")}
        assert incident_rows[("raw", "response")]["compliance_rate"] == 100.0

        all_rows = {(r["regime"], r["metric"]): r for r in report.summarize()}
        assert all_rows[("raw", "response")]["compliance_rate"] == 50.0

        assert report.find("R-7").ticket.ticket_class == "UserRequest"
        assert report.find("missing") is None
        assert len(report.for_class("UserRequest")) == 1

    def test_empty_summary_has_zero_rate(self):
        rows = ComplianceReport().summarize()
        assert len(rows) == 4
        assert all(r["compliance_rate"] == 0.0 for r in rows)
