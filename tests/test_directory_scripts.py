"""Tests for gateway/feed listings, run-script, show-task and feed scripts."""

import httpx
import pytest

from conftest import API_URL, FakeManagementApi, make_session

from cpfeedman.checkpoint.directory import list_feed_names, list_gateway_names
from cpfeedman.checkpoint.feeds import INVENTORY_SCRIPT, build_kick_script, kick_feed, run_inventory
from cpfeedman.checkpoint.scripts import run_script, show_tasks
from cpfeedman.checkpoint.session import CheckPointSession
from cpfeedman.errors import ApiError, DecodeError, TransportError


class TestDirectory:
    @pytest.mark.asyncio
    async def test_gateway_names(self, api: FakeManagementApi) -> None:
        api.on("show-simple-gateways", {"objects": [{"name": "gw1"}, {"name": "gw2"}], "total": 2})
        async with make_session(api) as session:
            names = await list_gateway_names(session)

        assert names == ["gw1", "gw2"]
        assert api.bodies("show-simple-gateways") == [{"limit": 500, "details-level": "standard"}]

    @pytest.mark.asyncio
    async def test_feed_names(self, api: FakeManagementApi) -> None:
        api.on("show-network-feeds", {"objects": [{"name": "feedA"}, {"name": "feedB"}], "total": 2})
        async with make_session(api) as session:
            names = await list_feed_names(session)

        assert names == ["feedA", "feedB"]
        assert api.commands == ["login", "show-network-feeds"]

    @pytest.mark.asyncio
    async def test_empty_listing_is_valid(self, api: FakeManagementApi) -> None:
        api.on("show-simple-gateways", {"objects": [], "total": 0})
        async with make_session(api) as session:
            assert await list_gateway_names(session) == []

    @pytest.mark.asyncio
    async def test_malformed_json_is_decode_error(self, api: FakeManagementApi) -> None:
        api.on("show-network-feeds", httpx.Response(200, text="{not json"))
        async with make_session(api) as session:
            with pytest.raises(DecodeError, match="feeds"):
                await list_feed_names(session)

    @pytest.mark.asyncio
    async def test_api_error_propagates(self, api: FakeManagementApi) -> None:
        api.on("show-simple-gateways", httpx.Response(500, text="internal"))
        async with make_session(api) as session:
            with pytest.raises(ApiError) as excinfo:
                await list_gateway_names(session)

        assert excinfo.value.status_code == 500
        assert str(excinfo.value).startswith("failed to show gateways: ")
        assert excinfo.value.body == "internal"


class TestScripts:
    @pytest.mark.asyncio
    async def test_run_script_payload_and_task_ids(self, api: FakeManagementApi) -> None:
        api.on("run-script", {"tasks": [{"target": "gw1", "task-id": "t1"}]})
        async with make_session(api) as session:
            response = await run_script(session, "hostname", "who", ["gw1"])

        assert response.task_ids() == ["t1"]
        assert api.bodies("run-script") == [{
            "script": "hostname",
            "targets": ["gw1"],
            "script-name": "who",
            "script-type": "one time",
        }]

    @pytest.mark.asyncio
    async def test_run_script_with_no_targets_is_sent(self, api: FakeManagementApi) -> None:
        api.on("run-script", {"tasks": []})
        async with make_session(api) as session:
            response = await run_script(session, "hostname", "who", [])

        assert response.task_ids() == []
        assert api.bodies("run-script")[0]["targets"] == []

    @pytest.mark.asyncio
    async def test_show_tasks_payload(self, api: FakeManagementApi) -> None:
        api.on("show-task", {"tasks": [{"task-id": "t1", "status": "in progress"}]})
        async with make_session(api) as session:
            response = await show_tasks(session, ["t1", "t2"])

        assert response.unfinished_task_ids() == ["t1"]
        assert api.bodies("show-task") == [{"task-id": ["t1", "t2"], "details-level": "full"}]


class TestFeeds:
    def test_kick_script(self) -> None:
        script = build_kick_script("feedA")
        assert script == (
            "(echo '---'; date; echo \"feedA\" ; dynamic_objects -efo_update \"feedA\" ) "
            "| tee -a /var/log/kicked.log"
        )

    @pytest.mark.asyncio
    async def test_kick_feed(self, api: FakeManagementApi) -> None:
        api.on("run-script", {"tasks": [{"target": "gw1", "task-id": "t1"}, {"target": "gw2", "task-id": "t2"}]})
        async with make_session(api) as session:
            response = await kick_feed(session, "feedA", ["gw1", "gw2"])

        assert response.task_ids() == ["t1", "t2"]
        body = api.bodies("run-script")[0]
        assert body["script-name"] == "kick feed feedA"
        assert body["targets"] == ["gw1", "gw2"]
        assert "dynamic_objects -efo_update \"feedA\"" in body["script"]

    @pytest.mark.asyncio
    async def test_run_inventory(self, api: FakeManagementApi) -> None:
        api.on("run-script", {"tasks": []})
        async with make_session(api) as session:
            await run_inventory(session, ["gw1"])

        body = api.bodies("run-script")[0]
        assert body["script"] == INVENTORY_SCRIPT
        assert body["script-name"] == "log date"

    @pytest.mark.asyncio
    async def test_kick_failure_names_the_feed(self, api: FakeManagementApi) -> None:
        api.on("run-script", httpx.Response(409, text="locked"))
        async with make_session(api) as session:
            with pytest.raises(ApiError, match="failed to kick feed feedA") as excinfo:
                await kick_feed(session, "feedA", ["gw1"])

        assert excinfo.value.status_code == 409
        assert isinstance(excinfo.value.__cause__, ApiError)

    @pytest.mark.asyncio
    async def test_transport_failure_keeps_its_type(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/login"):
                return httpx.Response(200, json={"sid": "s", "session-timeout": 3600})
            raise httpx.ConnectError("connection refused", request=request)

        session = CheckPointSession(API_URL, "key", transport=httpx.MockTransport(refuse))
        async with session:
            with pytest.raises(TransportError, match="failed to show feeds: .*connection refused"):
                await list_feed_names(session)
