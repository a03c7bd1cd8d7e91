"""Tests for the MCP tool implementations and server registration."""

import asyncio

import pytest
from mcp.server.fastmcp.exceptions import ToolError

from tanker.errors import NotFoundError, TransportError, ValidationError
from tanker.executor import BINARY_PLACEHOLDER
from tanker.mcp_server import Tools, _call, build_auth, create_server, format_response
from tanker.models import Request


@pytest.fixture
def tools(database, engine):
    return Tools(database, engine)


# ── build_auth ───────────────────────────────────────────────────────────


class TestBuildAuth:
    def test_no_auth(self):
        assert build_auth(None) is None
        assert build_auth("none") is None
        assert build_auth("NONE", token="ignored") is None

    def test_bearer(self):
        assert build_auth("bearer", token="t") == {"type": "bearer", "token": "t"}

    def test_api_key(self):
        assert build_auth("api-key", key="k") == {"type": "api-key", "key": "k"}


# ── Tools ────────────────────────────────────────────────────────────────


class TestCatalogTools:
    def test_list_requests(self, tools):
        assert tools.list_requests() == {
            "requests": [
                {"name": "get-example", "method": "GET", "url": "http://localhost:8080/get"},
                {"name": "post-example", "method": "POST", "url": "http://localhost:8080/post"},
            ],
        }

    def test_get_request(self, tools):
        data = tools.get_request("get-example")
        assert data["params"] == {"foo": "bar", "count": "42"}
        assert data["headers"] == {"Authorization": "secret"}

    def test_get_missing(self, tools):
        with pytest.raises(NotFoundError):
            tools.get_request("ghost")

    def test_save_and_delete(self, tools, database):
        msg = tools.save_request(
            "saved",
            "POST",
            "http://h",
            payload='{"a": 1}',
            headers='{"X": "y"}',
            auth={"type": "bearer", "token": "t"},
        )
        assert msg == "Request 'saved' saved successfully"
        stored = database.get("saved")
        assert stored.payload == {"a": 1}
        assert stored.auth.token == "t"

        assert tools.delete_request("saved") == "Request 'saved' deleted successfully"
        with pytest.raises(NotFoundError):
            database.get("saved")

    def test_save_overwrites(self, tools, database):
        tools.save_request("get-example", "GET", "http://other")
        assert database.get("get-example").url == "http://other"

    def test_save_invalid(self, tools):
        with pytest.raises(ValidationError):
            tools.save_request("bad", "GET", "http://h", params='{"n": 1}')

    def test_curl_command(self, tools):
        assert tools.curl_command("get-example").startswith("curl \\\n  -X GET")


class TestSendTools:
    def test_send_saved_request(self, tools, database, stub_server):
        tools.save_request("echo", "GET", f"{stub_server}/x", params='{"q": "1"}')
        result = tools.send_request("echo")
        assert result["statusCode"] == 200
        assert result["jsonBody"]["args"] == {"q": "1"}
        assert "executionTimeMillisec" in result

    def test_send_custom_request_not_saved(self, tools, database, stub_server):
        result = tools.send_custom_request("POST", stub_server, payload='{"k": "v"}')
        assert result["jsonBody"]["body"] == '{"k": "v"}'
        with pytest.raises(NotFoundError):
            database.get("custom-request")

    def test_binary_metadata_only(self, tools, stub_server, temp_dir, png_bytes):
        result = tools.send_custom_request("GET", f"{stub_server}/image.png")
        assert result["body"] == BINARY_PLACEHOLDER
        assert result["contentType"] == "image/png"
        assert result["bodySize"] == len(png_bytes)
        assert "savedTo" not in result
        assert list(temp_dir.iterdir()) == []

    def test_binary_saved_to_output_file(self, tools, stub_server, temp_dir, tmp_path):
        dest = tmp_path / "out" / "report.pdf"
        result = tools.send_custom_request("GET", f"{stub_server}/report", output_file=str(dest))
        assert result["savedTo"] == str(dest)
        assert dest.read_bytes() == b"%PDF-1.4 fake"
        assert list(temp_dir.iterdir()) == []

    def test_output_file_ignored_for_text(self, tools, stub_server, tmp_path):
        dest = tmp_path / "unused.txt"
        result = tools.send_custom_request("GET", f"{stub_server}/text", output_file=str(dest))
        assert result["body"] == "hello tanker"
        assert not dest.exists()

    def test_save_failure_reported(self, tools, stub_server, temp_dir, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        result = tools.send_custom_request(
            "GET",
            f"{stub_server}/image.png",
            output_file=str(blocker / "img.png"),
        )
        assert "saveError" in result
        assert list(temp_dir.iterdir()) == []

    def test_transport_error_raised(self, tools):
        with pytest.raises(TransportError):
            tools.send_custom_request("GET", "http://127.0.0.1:1/")


def test_format_response_text(engine, stub_server):
    response = engine.execute(Request(name="t", method="GET", url=f"{stub_server}/text"))
    assert format_response(response, output_file="/nonexistent/x")["body"] == "hello tanker"


# ── Server ───────────────────────────────────────────────────────────────


class TestServer:
    def test_tool_errors_converted(self):
        def fail():
            raise NotFoundError("ghost")

        with pytest.raises(ToolError, match="'ghost' not found"):
            _call(fail)

    def test_other_exceptions_propagate(self):
        def crash():
            raise RuntimeError("bug")

        with pytest.raises(RuntimeError):
            _call(crash)

    def test_registered_tools(self, tools):
        server = create_server(tools)
        listed = {t.name: t for t in asyncio.run(server.list_tools())}
        assert sorted(listed) == [
            "curl_command",
            "delete_request",
            "get_request",
            "list_requests",
            "save_request",
            "send_custom_request",
            "send_request",
        ]
        assert listed["list_requests"].annotations.readOnlyHint is True
        assert listed["delete_request"].annotations.destructiveHint is True
        assert "output_file" in listed["send_request"].inputSchema["properties"]
        assert listed["send_custom_request"].inputSchema["required"] == ["method", "url"]
