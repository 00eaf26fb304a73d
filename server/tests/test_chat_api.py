import json

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import ChunkedStream, make_settings, upstream_frame
from studiodesk.api.chat import get_provider
from studiodesk.core.errors import CORS_HEADERS
from studiodesk.main import create_app
from studiodesk.providers.zhipu import ZhipuProvider


def make_client(settings=None, handler=None):
    settings = settings or make_settings()
    app = create_app(settings)
    if handler is not None:
        transport = httpx.MockTransport(handler)
        app.dependency_overrides[get_provider] = lambda: ZhipuProvider(settings, transport=transport)
    return TestClient(app)


def streaming_upstream(*frames, seen=None):
    def handler(request):
        if seen is not None:
            seen.append(request)
        body = ChunkedStream([f.encode("utf-8") for f in frames])
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, stream=body)

    return handler


def assert_cors(response):
    for name, value in CORS_HEADERS.items():
        assert response.headers[name] == value


def test_preflight_returns_cors_headers_without_body():
    client = make_client()
    response = client.options("/api/chat")
    assert response.status_code == 200
    assert response.content == b""
    assert_cors(response)


def test_missing_credential_is_a_500_json_error():
    client = make_client(make_settings(zhipu_api_key=None))
    response = client.post("/api/chat", json={"message": "hi"})
    assert response.status_code == 500
    assert response.headers["content-type"].startswith("application/json")
    assert "ZHIPU_API_KEY" in response.json()["error"]
    assert_cors(response)


def test_stream_is_relayed_as_normalized_sse():
    client = make_client(handler=streaming_upstream(
        upstream_frame("He"),
        upstream_frame("llo"),
        upstream_frame(" world", finish_reason="stop"),
    ))
    response = client.post("/api/chat", json={"message": "hi"})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"
    assert_cors(response)
    assert response.text == (
        'data: {"content": "He"}\n\n'
        'data: {"content": "llo"}\n\n'
        'data: {"content": " world"}\n\n'
        "data: [DONE]\n\n"
    )


def test_context_data_reaches_system_prompt():
    seen = []
    client = make_client(handler=streaming_upstream("data: [DONE]\n\n", seen=seen))
    response = client.post(
        "/api/chat",
        json={
            "message": "What have you built?",
            "contextData": {
                "projects": [{"title": "Lakeside Villa", "category": "Residential"}],
                "reviews": [{"content": "Great team"}],
                "stats": {"pending": 12},
            },
        },
    )
    assert response.status_code == 200
    system = json.loads(seen[0].content)["messages"][0]["content"]
    assert "  - Lakeside Villa (Residential, Unspecified location)" in system
    assert "  - Anonymous: Great team" in system
    assert "12" not in system


@pytest.mark.parametrize(
    "context, expected",
    [
        ({"projects": [{"category": "x"}]}, "  - Untitled (x, Unspecified location)"),
        ({"projects": [{"title": None}], "reviews": [{"name": 7}]}, "  - 7: "),
        ({"projects": [{"title": 42, "location": ["Suzhou"]}]}, "  - 42 (Uncategorized, ['Suzhou'])"),
    ],
)
def test_loosely_typed_context_rows_are_accepted(context, expected):
    seen = []
    client = make_client(handler=streaming_upstream("data: [DONE]\n\n", seen=seen))
    response = client.post("/api/chat", json={"message": "hi", "contextData": context})
    assert response.status_code == 200
    system = json.loads(seen[0].content)["messages"][0]["content"]
    assert expected in system


def test_upstream_rejection_mirrors_status():
    def handler(request):
        return httpx.Response(401, json={"error": {"message": "invalid api key"}})

    client = make_client(handler=handler)
    response = client.post("/api/chat", json={"message": "hi"})
    assert response.status_code == 401
    assert response.json() == {"error": "invalid api key"}
    assert_cors(response)


def test_unreachable_upstream_is_bad_gateway():
    def handler(request):
        raise httpx.ConnectError("connection refused")

    client = make_client(handler=handler)
    response = client.post("/api/chat", json={"message": "hi"})
    assert response.status_code == 502
    assert "connection refused" in response.json()["error"]


@pytest.mark.parametrize("body", [{}, {"message": ""}, {"contextData": {}}])
def test_message_is_required(body):
    client = make_client()
    response = client.post("/api/chat", json=body)
    assert response.status_code == 400
    assert "message" in response.json()["error"]
    assert_cors(response)


def test_unexpected_failure_is_reported_as_json():
    class Broken:
        id = "broken"

        async def open_stream(self, messages):
            raise RuntimeError("boom")

    app = create_app(make_settings())
    app.dependency_overrides[get_provider] = lambda: Broken()
    response = TestClient(app).post("/api/chat", json={"message": "hi"})
    assert response.status_code == 500
    assert response.json() == {"error": "boom"}


def test_rate_limit_returns_429():
    client = make_client(make_settings(zhipu_api_key=None, chat_rate_limit=1))
    assert client.post("/api/chat", json={"message": "hi"}).status_code == 500
    response = client.post("/api/chat", json={"message": "hi"})
    assert response.status_code == 429
    assert response.json() == {"error": "Rate limit exceeded"}
    assert int(response.headers["retry-after"]) >= 1
    assert_cors(response)


def test_wrong_method_is_json_with_cors_headers():
    client = make_client()
    response = client.get("/api/chat")
    assert response.status_code == 405
    assert response.json() == {"error": "Method Not Allowed"}
    assert_cors(response)


def test_service_routes():
    client = make_client()
    assert client.get("/healthz").json() == {"status": "ok"}
    assert client.get("/").json()["service"] == "studiodesk"
