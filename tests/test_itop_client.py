"""Tests for the iTop client and the iTop-backed sources."""

import json
import logging
from datetime import timedelta
from urllib.parse import parse_qs

import httpx
import pytest

from conftest import StaticConfigProvider
from itop_sla.core import ConfigurationException, ITopException, ResolutionFetchError
from itop_sla.sla.domain import BusinessHoursConfig, SLTDeadline
from itop_sla.sla.infrastructure import (
    ConfigTableDeadlineProvider,
    FileHolidaySource,
    ITopClient,
    ITopHolidaySource,
    ITopSLTProvider,
    ITopTicketSource,
    oql_priority,
    oql_quote,
)

URL = "https://itop.example.com/webservices/rest.php"


def decode(request: httpx.Request) -> dict:
    form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
    form["json_data"] = json.loads(form["json_data"])
    return form


def make_client(handler) -> ITopClient:
    return ITopClient(URL, "exporter", "s3cret", transport=httpx.MockTransport(handler))


def ok(objects=None) -> httpx.Response:
    return httpx.Response(200, json={"code": 0, "message": "", "objects": objects})


CONTRACTS = {
    "CustomerContract::1": {
        "fields": {
            "services_list": [
                {"service_name": "Printing", "sla_name": "Bronze"},
                {"service_name": "EMAIL", "sla_name": "Gold"},
            ]
        }
    }
}

SLTS = {
    "SLT::1": {"fields": {"metric": "tto", "value": "30", "unit": "minutes", "slas_list": [{"sla_name": "Gold"}]}},
    "SLT::2": {"fields": {"metric": "ttr", "value": "4", "unit": "hours", "slas_list": [{"sla_name": "Gold"}]}},
    "SLT::3": {"fields": {"metric": "tto", "value": "2", "unit": "hours", "slas_list": [{"sla_name": "Bronze"}]}},
}


class TestITopClient:

    @pytest.mark.asyncio
    async def test_request_form(self):
        seen = []

        def handler(request):
            seen.append(decode(request))
            return ok({})

        client = make_client(handler)
        await client.core_get("Incident", "SELECT Incident", "id,ref")

        form = seen[0]
        assert form["version"] == "1.3"
        assert form["auth_user"] == "exporter"
        assert form["auth_pwd"] == "s3cret"
        assert form["json_data"] == {
            "operation": "core/get",
            "class": "Incident",
            "key": "SELECT Incident",
            "output_fields": "id,ref",
        }

    @pytest.mark.asyncio
    async def test_request_latency_logged(self, caplog):
        caplog.set_level(logging.DEBUG, logger="itop_sla.sla.infrastructure.itop_client")
        client = make_client(lambda request: ok({}))

        await client.core_get("SLT", "SELECT SLT")

        record = next(r for r in caplog.records if r.getMessage() == "itop_request completed")
        assert record.operation == "itop_request"
        assert record.itop_operation == "core/get"
        assert record.oql_class == "SLT"

    @pytest.mark.asyncio
    async def test_non_mapping_objects_rejected(self):
        client = make_client(lambda request: ok(["Incident::1"]))
        with pytest.raises(ITopException, match="malformed objects"):
            await client.core_get("Incident", "SELECT Incident")

    @pytest.mark.asyncio
    async def test_null_objects_is_empty(self):
        client = make_client(lambda request: ok(None))
        assert await client.core_get("Holiday", "SELECT Holiday") == {}

    @pytest.mark.asyncio
    async def test_api_error_code(self):
        client = make_client(
            lambda request: httpx.Response(200, json={"code": 1, "message": "Invalid login"})
        )
        with pytest.raises(ITopException, match="Invalid login"):
            await client.core_get("Incident", "SELECT Incident")

    @pytest.mark.asyncio
    async def test_http_error(self):
        client = make_client(lambda request: httpx.Response(502, text="bad gateway"))
        with pytest.raises(ITopException):
            await client.core_get("Incident", "SELECT Incident")

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        client = make_client(lambda request: httpx.Response(200, text="<html>login</html>"))
        with pytest.raises(ITopException):
            await client.core_get("Incident", "SELECT Incident")

    @pytest.mark.asyncio
    async def test_unconfigured_client_refuses(self):
        client = ITopClient(None, None, None)
        assert not client.is_configured
        with pytest.raises(ConfigurationException):
            await client.post("core/get", {})

    def test_oql_quote(self):
        assert oql_quote("it's") == "'it\\'s'"


class TestITopTicketSource:

    @pytest.mark.asyncio
    async def test_fetch_tickets(self):
        seen = []

        def handler(request):
            seen.append(decode(request)["json_data"])
            return ok({
                "Incident::12": {"fields": {"id": "12", "ref": "I-000012", "status": "assigned", "priority": "1",
                                            "start_date": "2024-01-08 09:00:00", "assignment_date": ""}},
                "Incident::3": {"fields": {"id": "3", "ref": "I-000003", "status": "closed", "priority": "4",
                                           "start_date": "2024-01-05 10:00:00",
                                           "resolution_date": "2024-01-05 12:00:00"}},
            })

        source = ITopTicketSource(make_client(handler), ["assigned", "resolved", "closed"])
        tickets = await source.fetch_tickets("Incident")

        assert seen[0]["key"] == "SELECT Incident WHERE status IN ('assigned','resolved','closed')"
        assert [t.ref for t in tickets] == ["I-000003", "I-000012"]
        assert tickets[1].assignment_date is None
        assert tickets[1].priority_label == "Critical"
        assert tickets[0].time_to_resolve == timedelta(hours=2)

    @pytest.mark.asyncio
    async def test_malformed_objects_skipped(self):
        client = make_client(lambda request: ok({
            "Incident::1": "oops",
            "Incident::2": {"fields": None},
            "Incident::3": {"fields": ["id", "3"]},
            "Incident::4": {"fields": {"id": "4", "ref": "I-000004", "status": "assigned"}},
        }))
        tickets = await ITopTicketSource(client, ["assigned"]).fetch_tickets("Incident")
        assert [t.ref for t in tickets] == ["I-000004"]

    @pytest.mark.asyncio
    async def test_unconfigured_source_returns_nothing(self):
        source = ITopTicketSource(ITopClient(None, None, None), ["assigned"])
        assert await source.fetch_tickets("Incident") == []


class TestHolidaySources:

    @pytest.mark.asyncio
    async def test_itop_holidays(self):
        client = make_client(lambda request: ok({
            "Holiday::1": {"fields": {"date": "2024-12-25"}},
            "Holiday::2": {"fields": {"date": "2024-01-01"}},
            "Holiday::3": {"fields": {"date": ""}},
        }))
        assert await ITopHolidaySource(client).fetch_holidays() == ["2024-01-01", "2024-12-25"]

    @pytest.mark.asyncio
    async def test_malformed_holidays_skipped(self):
        client = make_client(lambda request: ok({
            "Holiday::1": {"fields": {"date": "2024-12-25"}},
            "Holiday::2": None,
            "Holiday::3": {"fields": "2024-05-01"},
        }))
        assert await ITopHolidaySource(client).fetch_holidays() == ["2024-12-25"]

    @pytest.mark.asyncio
    async def test_file_holidays(self, tmp_path):
        path = tmp_path / "holidays.txt"
        path.write_text("2024-01-01\n\n 2024-12-25 \n")
        assert await FileHolidaySource(path).fetch_holidays() == ["2024-01-01", "2024-12-25"]

    @pytest.mark.asyncio
    async def test_missing_file_is_empty(self, tmp_path):
        assert await FileHolidaySource(tmp_path / "nope.txt").fetch_holidays() == []


class TestITopSLTProvider:

    @pytest.mark.asyncio
    async def test_two_stage_lookup(self):
        queries = []

        def handler(request):
            data = decode(request)["json_data"]
            queries.append(data)
            return ok(CONTRACTS if data["class"] == "CustomerContract" else SLTS)

        deadline = await ITopSLTProvider(make_client(handler)).get_deadline("Incident", "2", "Email")

        assert deadline == SLTDeadline(tto=timedelta(minutes=30), ttr=timedelta(hours=4))
        assert queries[0]["output_fields"] == "services_list"
        assert queries[1]["key"] == "SELECT SLT WHERE priority = 2 AND request_type = 'incident'"

    @pytest.mark.asyncio
    async def test_user_request_type(self):
        queries = []

        def handler(request):
            data = decode(request)["json_data"]
            queries.append(data)
            return ok(CONTRACTS if data["class"] == "CustomerContract" else {})

        deadline = await ITopSLTProvider(make_client(handler)).get_deadline("UserRequest", "3", "Printing")

        assert deadline.is_empty
        assert queries[1]["key"].endswith("request_type = 'service_request'")

    @pytest.mark.asyncio
    async def test_unmapped_service_has_no_targets(self):
        calls = []

        def handler(request):
            calls.append(request)
            return ok(CONTRACTS)

        deadline = await ITopSLTProvider(make_client(handler)).get_deadline("Incident", "1", "Telephony")

        assert deadline.is_empty
        assert len(calls) == 1

    def test_oql_priority(self):
        assert oql_priority("2") == "2"
        assert oql_priority("high") == "'high'"
        assert oql_priority("1 OR 1=1") == "'1 OR 1=1'"
        assert oql_priority("") == "''"

    def test_malformed_contract_services_skipped(self):
        contracts = {
            "CustomerContract::1": {"fields": {"services_list": ["Email"]}},
            "CustomerContract::2": {"fields": {"services_list": "Email"}},
            "CustomerContract::3": "Email",
            "CustomerContract::4": {"fields": {"services_list": [{"service_name": "email", "sla_name": "Gold"}]}},
        }
        assert ITopSLTProvider.find_sla_name(contracts, "Email") == "Gold"
        assert ITopSLTProvider.find_sla_name({"CustomerContract::1": {"fields": {"services_list": ["x"]}}}, "Email") == ""

    def test_malformed_slt_links_skipped(self):
        slts = {
            "SLT::1": {"fields": {"metric": "tto", "value": "1", "unit": "hours", "slas_list": ["Gold"]}},
            "SLT::2": {"fields": {"metric": "ttr", "value": "8", "unit": "hours", "slas_list": "Gold"}},
            "SLT::3": [],
            "SLT::4": {"fields": {"metric": "ttr", "value": "4", "unit": "hours",
                                  "slas_list": ["Gold", {"sla_name": "Gold"}]}},
        }
        assert ITopSLTProvider.collect_targets(slts, "Gold") == SLTDeadline(ttr=timedelta(hours=4))

    @pytest.mark.asyncio
    async def test_malformed_response_becomes_resolution_error(self):
        with pytest.raises(ResolutionFetchError):
            await ITopSLTProvider(make_client(lambda request: ok("nothing"))).get_deadline("Incident", "2", "Email")

    @pytest.mark.asyncio
    async def test_transport_failure_becomes_resolution_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ResolutionFetchError) as exc_info:
            await ITopSLTProvider(make_client(handler)).get_deadline("Incident", "1", "Email")
        assert exc_info.value.details == {"ticket_class": "Incident", "priority": "1", "service_name": "Email"}


class TestConfigTableDeadlineProvider:

    @pytest.mark.asyncio
    async def test_reads_current_config(self):
        provider_config = StaticConfigProvider(BusinessHoursConfig(
            sla_deadlines={"Incident": {"high": {"response": "1h", "resolve": "8h"}}}
        ))
        provider = ConfigTableDeadlineProvider(provider_config)

        assert not provider.cacheable
        assert await provider.get_deadline("Incident", "2", "Email") == SLTDeadline(
            tto=timedelta(hours=1), ttr=timedelta(hours=8)
        )

        provider_config.config = BusinessHoursConfig()
        assert (await provider.get_deadline("Incident", "2", "Email")).is_empty
