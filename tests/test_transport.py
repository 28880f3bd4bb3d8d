"""Tests for GoogleTransport request shapes and error mapping."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from scriptsync.exceptions import ServiceUnavailableError
from scriptsync.transport import (
    APIError,
    AuthenticationError,
    GoogleTransport,
    NotFoundError,
    ScriptFile,
    TransportError,
)

Handler = Callable[[httpx.Request], httpx.Response]


def make_transport(handler: Handler) -> tuple[GoogleTransport, list[httpx.Request]]:
    requests: list[httpx.Request] = []

    def record(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    transport = GoogleTransport(
        "token-123", http_transport=httpx.MockTransport(record)
    )
    return transport, requests


def body(request: httpx.Request) -> Any:
    return json.loads(request.content)


@pytest.mark.asyncio
async def test_get_content_at_version() -> None:
    payload = {
        "files": [
            {"name": "Code", "type": "SERVER_JS", "source": "x"},
            {"name": "appsscript", "type": "JSON", "source": "{}"},
        ]
    }
    transport, requests = make_transport(lambda r: httpx.Response(200, json=payload))

    files = await transport.get_content("sid", version_number=4)

    assert files == (
        ScriptFile("Code", "SERVER_JS", "x"),
        ScriptFile("appsscript", "JSON", "{}"),
    )
    [request] = requests
    assert request.method == "GET"
    assert request.url.path == "/v1/projects/sid/content"
    assert request.url.params["versionNumber"] == "4"
    assert request.headers["Authorization"] == "Bearer token-123"


@pytest.mark.asyncio
async def test_update_content_sends_all_files() -> None:
    transport, requests = make_transport(lambda r: httpx.Response(200, json={}))

    await transport.update_content(
        "sid", [ScriptFile("Code", "SERVER_JS", "x", create_time="ignored")]
    )

    [request] = requests
    assert request.method == "PUT"
    assert body(request) == {
        "scriptId": "sid",
        "files": [{"name": "Code", "type": "SERVER_JS", "source": "x"}],
    }


@pytest.mark.asyncio
async def test_list_versions_follows_pages() -> None:
    pages = {
        None: {"versions": [{"versionNumber": 1}], "nextPageToken": "p2"},
        "p2": {"versions": [{"versionNumber": 2, "description": "b"}]},
    }
    transport, requests = make_transport(
        lambda r: httpx.Response(200, json=pages[r.url.params.get("pageToken")])
    )

    versions = await transport.list_versions("sid")

    assert [v.version_number for v in versions] == [1, 2]
    assert versions[1].description == "b"
    assert len(requests) == 2


@pytest.mark.asyncio
async def test_create_deployment_body() -> None:
    response = {
        "deploymentId": "dep",
        "deploymentConfig": {"versionNumber": 3, "description": "d"},
        "updateTime": "2024-01-01T00:00:00Z",
    }
    transport, requests = make_transport(lambda r: httpx.Response(200, json=response))

    deployment = await transport.create_deployment("sid", 3, "d")

    assert body(requests[0]) == {
        "versionNumber": 3,
        "manifestFileName": "appsscript",
        "description": "d",
    }
    assert deployment.deployment_id == "dep"
    assert deployment.version_label == "@3"


@pytest.mark.asyncio
async def test_update_deployment_wraps_config() -> None:
    response = {"deploymentId": "dep", "deploymentConfig": {"versionNumber": 5}}
    transport, requests = make_transport(lambda r: httpx.Response(200, json=response))

    await transport.update_deployment("sid", "dep", 5)

    assert requests[0].url.path == "/v1/projects/sid/deployments/dep"
    assert body(requests[0]) == {
        "deploymentConfig": {"versionNumber": 5, "manifestFileName": "appsscript"}
    }


@pytest.mark.asyncio
async def test_head_deployment_has_no_version() -> None:
    response = {
        "deployments": [{"deploymentId": "head", "deploymentConfig": {}}],
    }
    transport, _ = make_transport(lambda r: httpx.Response(200, json=response))

    [deployment] = await transport.list_deployments("sid")

    assert deployment.is_head


@pytest.mark.asyncio
async def test_delete_deployment_empty_body() -> None:
    transport, requests = make_transport(lambda r: httpx.Response(200))

    await transport.delete_deployment("sid", "dep")

    assert requests[0].method == "DELETE"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "error_type"),
    [
        (401, AuthenticationError),
        (403, AuthenticationError),
        (404, NotFoundError),
        (400, APIError),
        (500, APIError),
    ],
)
async def test_http_error_mapping(status: int, error_type: type[Exception]) -> None:
    error = {"error": {"code": status, "message": "Something went wrong"}}
    transport, _ = make_transport(lambda r: httpx.Response(status, json=error))

    with pytest.raises(error_type):
        await transport.get_content("sid")


@pytest.mark.asyncio
async def test_api_error_keeps_remote_message() -> None:
    error = {"error": {"code": 400, "message": "Syntax error: line 1"}}
    transport, _ = make_transport(lambda r: httpx.Response(400, json=error))

    with pytest.raises(APIError) as exc_info:
        await transport.update_content("sid", [])

    assert exc_info.value.status_code == 400
    assert "Syntax error: line 1" in str(exc_info.value)


@pytest.mark.asyncio
async def test_network_error() -> None:
    def fail(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    transport, _ = make_transport(fail)

    with pytest.raises(TransportError, match="Network error"):
        await transport.list_versions("sid")


@pytest.mark.asyncio
async def test_list_script_files() -> None:
    payload = {"files": [{"id": "f1", "name": "One"}, {"id": "f2", "name": "Two"}]}
    transport, requests = make_transport(lambda r: httpx.Response(200, json=payload))

    files = await transport.list_script_files(limit=1)

    assert [f.file_id for f in files] == ["f1"]
    assert requests[0].url.host == "www.googleapis.com"
    assert "application/vnd.google-apps.script" in requests[0].url.params["q"]


@pytest.mark.asyncio
async def test_list_script_files_without_payload() -> None:
    transport, _ = make_transport(lambda r: httpx.Response(200, json={}))

    with pytest.raises(ServiceUnavailableError):
        await transport.list_script_files()


@pytest.mark.asyncio
async def test_list_log_entries() -> None:
    payload = {
        "entries": [
            {
                "severity": "ERROR",
                "timestamp": "2024-01-01T00:00:00Z",
                "textPayload": "boom",
                "resource": {"labels": {"function_name": "main"}},
            },
            {
                "timestamp": "2024-01-01T00:00:01Z",
                "jsonPayload": {"message": "hello"},
            },
        ]
    }
    transport, requests = make_transport(lambda r: httpx.Response(200, json=payload))

    entries = await transport.list_log_entries("gcp-1", limit=10)

    assert body(requests[0])["resourceNames"] == ["projects/gcp-1"]
    assert [(e.severity, e.function_name, e.payload) for e in entries] == [
        ("ERROR", "main", "boom"),
        ("DEFAULT", "", "hello"),
    ]


@pytest.mark.asyncio
async def test_run_function() -> None:
    payload = {"done": True, "response": {"result": 42}}
    transport, requests = make_transport(lambda r: httpx.Response(200, json=payload))

    result = await transport.run_function("sid", "main", [1, 2])

    assert requests[0].url.path == "/v1/scripts/sid:run"
    assert body(requests[0]) == {
        "function": "main",
        "devMode": False,
        "parameters": [1, 2],
    }
    assert result.done
    assert result.return_value == 42
