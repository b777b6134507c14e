"""Shared fakes for the Check Point API and SQS."""

from __future__ import annotations

import json
from collections import defaultdict
from typing import Any, Callable

import httpx
import pytest

from cpfeedman.checkpoint.session import CheckPointSession
from cpfeedman.config import Settings

API_URL = "https://mgmt.example/web_api/"

Reply = dict[str, Any] | httpx.Response | Callable[[dict[str, Any]], Any]


class FakeClock:
    """Manually advanced clock returning epoch seconds."""

    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeManagementApi:
    """Scripted management API served through httpx.MockTransport.

    Replies queued with :meth:`on` are used in order; the last one repeats.
    ``login`` answers with a fresh sid unless scripted.
    """

    def __init__(self) -> None:
        self.requests: list[tuple[str, dict[str, Any], httpx.Headers]] = []
        self._replies: dict[str, list[Reply]] = defaultdict(list)
        self.login_count = 0

    def on(self, command: str, *replies: Reply) -> "FakeManagementApi":
        self._replies[command].extend(replies)
        return self

    @property
    def commands(self) -> list[str]:
        return [command for command, _, _ in self.requests]

    def bodies(self, command: str) -> list[dict[str, Any]]:
        return [body for cmd, body, _ in self.requests if cmd == command]

    def _handle(self, request: httpx.Request) -> httpx.Response:
        command = request.url.path.rsplit("/", 1)[-1]
        body = json.loads(request.content or b"{}")
        self.requests.append((command, body, request.headers))

        replies = self._replies.get(command)
        if not replies:
            if command == "login":
                self.login_count += 1
                return httpx.Response(200, json={"sid": f"sid-{self.login_count}", "session-timeout": 3600})
            if command == "logout":
                return httpx.Response(200, json={"message": "OK"})
            return httpx.Response(404, json={"code": "generic_err_command_not_found"})

        reply = replies.pop(0) if len(replies) > 1 else replies[0]
        if callable(reply):
            reply = reply(body)
        if isinstance(reply, httpx.Response):
            return reply
        return httpx.Response(200, json=reply)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)


def make_session(api: FakeManagementApi, clock: FakeClock | None = None) -> CheckPointSession:
    kwargs: dict[str, Any] = {"transport": api.transport()}
    if clock is not None:
        kwargs["clock"] = clock
    return CheckPointSession(API_URL, "test-key", **kwargs)


def make_settings(**overrides: Any) -> Settings:
    """Create a Settings instance with test defaults."""
    defaults: dict[str, Any] = {
        "checkpoint_server": "mgmt.example",
        "checkpoint_api_key": "test-key",
        "sqs_endpoint": "https://sqs.us-east-1.amazonaws.com/123456789012/cpfeedman",
        "task_poll_interval": 0.01,
        "inventory_on_startup": False,
        "aws_region": "",
    }
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)


def task(task_id: str, status: str, message: str = "") -> dict[str, Any]:
    """A show-task entry; ``message`` is the already-encoded response message."""
    details = [{"gatewayName": "gw", "responseMessage": message}] if message else []
    return {"task-id": task_id, "task-name": "t", "status": status, "task-details": details}


@pytest.fixture
def api() -> FakeManagementApi:
    return FakeManagementApi()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def sqs_message(body: str, n: int = 1) -> dict[str, Any]:
    return {
        "MessageId": f"m-{n}",
        "ReceiptHandle": f"rh-{n}",
        "Body": body,
        "Attributes": {"SentTimestamp": "1760000000000"},
    }


class FakeSqsClient:
    """Stands in for a boto3 SQS client.

    ``receives`` holds receive_message results in order: a list of message
    dicts, or an exception to raise. Once exhausted, empty results are
    returned.
    """

    def __init__(self, *receives: Any, delete_error: Exception | None = None) -> None:
        self.receives = list(receives)
        self.delete_error = delete_error
        self.receive_calls: list[dict[str, Any]] = []
        self.deleted: list[str] = []
        self.on_receive = None

    def receive_message(self, **kwargs: Any) -> dict[str, Any]:
        self.receive_calls.append(kwargs)
        if self.on_receive:
            self.on_receive()
        if not self.receives:
            return {}
        result = self.receives.pop(0)
        if isinstance(result, Exception):
            raise result
        return {"Messages": result} if result else {}

    def delete_message(self, **kwargs: Any) -> dict[str, Any]:
        if self.delete_error:
            raise self.delete_error
        self.deleted.append(kwargs["ReceiptHandle"])
        return {}
