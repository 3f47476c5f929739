"""Tests for DefinitiveDirectoryClient against a mocked transport."""

import httpx
import pytest

from src.enrichment.directory import DefinitiveDirectoryClient
from src.enrichment.exceptions import TransientFetchError

BASE_URL = "https://directory.test/v4"

MERCY_ROW = {
    "Id": 101,
    "Name": "Mercy Health",
    "FirmType": "IDN",
    "WebSite": "https://mercy.com",
    "HQCity": "Cincinnati",
    "State": "OH",
    "Zip": 45237,
    "NetPatientRev": 5200000000.5,
    "NumBeds": 4500,
    "EMRVendorAmbulatory": "Epic",
    "DHCProfile": "https://www.defhc.com/hospitals/101",
    "Unmapped": "ignored",
}


class DirectoryServer:
    """Scripted OData endpoint that records every request."""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.requests: list[httpx.Request] = []
        self.token_requests = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path.endswith("/token"):
            self.token_requests += 1
            return httpx.Response(200, json={"access_token": f"token-{self.token_requests}"})
        if self.responses:
            response = self.responses.pop(0)
        else:
            response = httpx.Response(200, json={"value": []})
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def data_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if not r.url.path.endswith("/token")]


def make_client(server, **kwargs):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(server), base_url=BASE_URL)
    kwargs.setdefault("retry_max_attempts", 1)
    return DefinitiveDirectoryClient(
        "svc-user", "svc-pass", base_url=BASE_URL, http_client=http_client, **kwargs
    )


class TestSearch:
    @pytest.mark.asyncio
    async def test_contains_filter_and_parsing(self):
        server = DirectoryServer([httpx.Response(200, json={"value": [MERCY_ROW]})])
        client = make_client(server)

        [record] = await client.search_by_name_contains("St. Luke's", limit=20)

        request = server.data_requests[0]
        assert request.url.path == "/v4/odata-v4/Hospitals"
        assert request.url.params["$filter"] == "contains(Name, 'St. Luke''s')"
        assert request.url.params["$top"] == "20"
        assert request.url.params["$orderby"] == "Name asc"
        assert request.headers["Authorization"] == "Bearer token-1"

        assert record.id == 101
        assert record.name == "Mercy Health"
        assert record.zip == "45237"
        assert record.city == "Cincinnati"
        assert record.emr_vendor_ambulatory == "Epic"
        assert record.profile_url == "https://www.defhc.com/hospitals/101"

    @pytest.mark.asyncio
    async def test_token_request_uses_password_grant(self):
        server = DirectoryServer()
        client = make_client(server)

        await client.search_by_name_contains("Mercy")

        token_request = server.requests[0]
        assert token_request.method == "POST"
        body = token_request.content.decode()
        assert "grant_type=password" in body
        assert "username=svc-user" in body

    @pytest.mark.asyncio
    async def test_token_is_reused(self):
        server = DirectoryServer()
        client = make_client(server)

        await client.search_by_name_contains("Mercy")
        await client.search_by_name_contains("Health")

        assert server.token_requests == 1

    @pytest.mark.asyncio
    async def test_rejected_token_is_refreshed_once(self):
        server = DirectoryServer(
            [httpx.Response(401), httpx.Response(200, json={"value": [MERCY_ROW]})]
        )
        client = make_client(server)

        records = await client.search_by_name_contains("Mercy")

        assert len(records) == 1
        assert server.token_requests == 2
        assert server.data_requests[-1].headers["Authorization"] == "Bearer token-2"

    @pytest.mark.asyncio
    async def test_result_is_capped_at_limit(self):
        rows = [{**MERCY_ROW, "Id": i, "Name": f"Mercy {i}"} for i in range(5)]
        server = DirectoryServer([httpx.Response(200, json={"value": rows})])
        client = make_client(server)

        records = await client.search_by_name_contains("Mercy", limit=2)

        assert [r.id for r in records] == [0, 1]

    @pytest.mark.asyncio
    async def test_malformed_rows_are_skipped(self):
        rows = [{"Id": 1}, MERCY_ROW]
        server = DirectoryServer([httpx.Response(200, json={"value": rows})])
        client = make_client(server)

        records = await client.search_by_name_contains("Mercy")

        assert [r.id for r in records] == [101]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [{"value": None}, {"value": {"Id": 101}}, {"error": "unavailable"}, [MERCY_ROW]],
    )
    async def test_payload_without_record_list_raises_transient_fetch_error(self, payload):
        server = DirectoryServer([httpx.Response(200, json=payload)])
        client = make_client(server)

        with pytest.raises(TransientFetchError) as exc_info:
            await client.search_by_name_contains("Mercy")

        assert exc_info.value.service == "directory"


class TestFetch:
    @pytest.mark.asyncio
    async def test_get_all_paged(self):
        server = DirectoryServer([httpx.Response(200, json={"value": [MERCY_ROW]})])
        client = make_client(server)

        records = await client.get_all_paged(limit=7000)

        params = server.data_requests[0].url.params
        assert params["$top"] == "7000"
        assert params["$orderby"] == "Name asc"
        assert "$filter" not in params
        assert records[0].id == 101

    @pytest.mark.asyncio
    async def test_get_by_id(self):
        server = DirectoryServer([httpx.Response(200, json=MERCY_ROW)])
        client = make_client(server)

        record = await client.get_by_id(101)

        assert server.data_requests[0].url.path == "/v4/odata-v4/Hospitals(101)"
        assert record.name == "Mercy Health"

    @pytest.mark.asyncio
    async def test_get_by_id_malformed_record(self):
        server = DirectoryServer([httpx.Response(200, json={"Id": 101})])
        client = make_client(server)

        with pytest.raises(TransientFetchError):
            await client.get_by_id(101)


class TestFailures:
    @pytest.mark.asyncio
    async def test_server_error_is_retried(self):
        server = DirectoryServer(
            [httpx.Response(503), httpx.Response(200, json={"value": [MERCY_ROW]})]
        )
        client = make_client(server, retry_max_attempts=2)

        records = await client.get_all_paged()

        assert len(records) == 1
        assert len(server.data_requests) == 2

    @pytest.mark.asyncio
    async def test_persistent_server_error_raises_transient_fetch_error(self):
        server = DirectoryServer([httpx.Response(500)])
        client = make_client(server)

        with pytest.raises(TransientFetchError) as exc_info:
            await client.get_all_paged()

        assert exc_info.value.service == "directory"
        assert exc_info.value.code == "FETCH_FAILED"

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self):
        server = DirectoryServer([httpx.Response(400), httpx.Response(200, json={"value": []})])
        client = make_client(server, retry_max_attempts=3)

        with pytest.raises(TransientFetchError):
            await client.search_by_name_contains("Mercy")

        assert len(server.data_requests) == 1

    @pytest.mark.asyncio
    async def test_timeout_is_flagged(self):
        server = DirectoryServer([httpx.ReadTimeout("read timed out")])
        client = make_client(server)

        with pytest.raises(TransientFetchError) as exc_info:
            await client.get_all_paged()

        assert exc_info.value.timed_out is True
        assert exc_info.value.code == "FETCH_TIMEOUT"

    @pytest.mark.asyncio
    async def test_open_circuit_fails_fast(self):
        server = DirectoryServer([httpx.Response(500), httpx.Response(500)])
        client = make_client(server, circuit_failure_threshold=2)

        for _ in range(2):
            with pytest.raises(TransientFetchError):
                await client.get_all_paged()

        with pytest.raises(TransientFetchError, match="is open"):
            await client.get_all_paged()

        assert len(server.data_requests) == 2
        assert client.circuit_breaker_stats["state"] == "open"

    @pytest.mark.asyncio
    async def test_close_releases_client(self):
        server = DirectoryServer()
        client = make_client(server)

        await client.close()
        await client.close()
