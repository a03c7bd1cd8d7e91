"""tanker mcp_server - the request workbench exposed as MCP tools over stdio."""

import logging
from typing import Any, Literal

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from mcp.types import ToolAnnotations

from tanker.core import curl_command
from tanker.errors import StateError, TankerError
from tanker.executor import HttpEngine, Response
from tanker.models import validate
from tanker.store import Database

logger = logging.getLogger(__name__)

Method = Literal["GET", "POST", "PUT", "DELETE", "PATCH"]

BINARY_HINT = (
    "For binary responses (images, PDFs, archives...), only metadata is returned. "
    "Use output_file to save binary content to disk."
)
OUTPUT_FILE_HELP = "File path to save binary response content (e.g. /tmp/image.png)."


def build_auth(
    auth_type: str | None,
    token: str | None = None,
    username: str | None = None,
    password: str | None = None,
    key: str | None = None,
    header: str | None = None,
) -> dict[str, str] | None:
    if not auth_type or auth_type.lower() == "none":
        return None
    data = {
        "type": auth_type,
        "token": token or "",
        "username": username or "",
        "password": password or "",
        "key": key or "",
        "header": header or "",
    }
    return {k: v for k, v in data.items() if v}


def format_response(response: Response, output_file: str | None = None) -> dict[str, Any]:
    """Response as a JSON-ready dict; binary bodies become metadata.

    With output_file the binary temp file is moved there. The temp file is
    always gone when this returns.
    """
    with response:
        result = response.to_dict()
        if response.is_binary and output_file:
            try:
                result["savedTo"] = str(response.save_to_file(output_file))
            except (OSError, StateError) as e:
                result["saveError"] = str(e)
        return result


class Tools:
    """Tool implementations, independent of the MCP transport."""

    def __init__(self, database: Database, engine: HttpEngine):
        self.database = database
        self.engine = engine

    def list_requests(self) -> dict[str, Any]:
        data = self.database.load()
        return {
            "requests": [
                {"name": r.name, "method": r.method, "url": r.url}
                for _, r in sorted(data.items())
            ],
        }

    def get_request(self, name: str) -> dict[str, Any]:
        return self.database.get(name).to_dict()

    def send_request(self, name: str, output_file: str | None = None) -> dict[str, Any]:
        request = self.database.get(name)
        return self._send(request, output_file)

    def send_custom_request(
        self,
        method: str,
        url: str,
        params: str | None = None,
        payload: str | None = None,
        headers: str | None = None,
        insecure: bool = False,
        output_file: str | None = None,
    ) -> dict[str, Any]:
        request = validate(
            {
                "name": "custom-request",
                "method": method,
                "url": url,
                "params": params,
                "payload": payload,
                "headers": headers,
                "insecure": insecure,
            },
        )
        return self._send(request, output_file)

    def save_request(
        self,
        name: str,
        method: str,
        url: str,
        params: str | None = None,
        payload: str | None = None,
        headers: str | None = None,
        insecure: bool = False,
        auth: dict[str, str] | None = None,
    ) -> str:
        request = validate(
            {
                "name": name,
                "method": method,
                "url": url,
                "params": params,
                "payload": payload,
                "headers": headers,
                "insecure": insecure,
                "auth": auth,
            },
        )
        self.database.put(request)
        return f"Request {request.name!r} saved successfully"

    def delete_request(self, name: str) -> str:
        self.database.delete(name)
        return f"Request {name!r} deleted successfully"

    def curl_command(self, name: str) -> str:
        return curl_command(self.database.get(name))

    def _send(self, request, output_file: str | None) -> dict[str, Any]:
        response = self.engine.execute(request)
        if response.error:
            raise response.error
        return format_response(response, output_file)


def _call(fn, *args, **kwargs):
    try:
        return fn(*args, **kwargs)
    except TankerError as e:
        logger.info("tool %s failed: %s", fn.__name__, e)
        raise ToolError(str(e)) from e


def create_server(tools: Tools) -> FastMCP:
    server = FastMCP("http-tanker")

    read_only = ToolAnnotations(readOnlyHint=True, destructiveHint=False, openWorldHint=False)
    network = ToolAnnotations(destructiveHint=False, openWorldHint=True)

    @server.tool(
        description="List all saved HTTP requests with their names, methods, and URLs",
        annotations=read_only,
    )
    def list_requests() -> dict[str, Any]:
        return _call(tools.list_requests)

    @server.tool(description="Get full details of a saved HTTP request by name", annotations=read_only)
    def get_request(name: str) -> dict[str, Any]:
        return _call(tools.get_request, name)

    @server.tool(
        description=f"Execute a saved HTTP request by name and return the response. {BINARY_HINT}",
        annotations=network,
    )
    def send_request(name: str, output_file: str | None = None) -> dict[str, Any]:
        return _call(tools.send_request, name, output_file)

    @server.tool(
        description=f"Execute an ad-hoc HTTP request without saving it. {BINARY_HINT} "
        "params, payload and headers are JSON object strings, e.g. {\"key\": \"value\"}. "
        f"{OUTPUT_FILE_HELP}",
        annotations=network,
    )
    def send_custom_request(
        method: Method,
        url: str,
        params: str | None = None,
        payload: str | None = None,
        headers: str | None = None,
        insecure: bool = False,
        output_file: str | None = None,
    ) -> dict[str, Any]:
        return _call(
            tools.send_custom_request,
            method,
            url,
            params=params,
            payload=payload,
            headers=headers,
            insecure=insecure,
            output_file=output_file,
        )

    @server.tool(
        description="Save a new HTTP request to the database, overwriting any request with the "
        "same name. Before calling this tool, ask the user whether they want query "
        "parameters (GET/DELETE), a JSON payload (POST/PUT/PATCH), headers and auth. "
        "params, payload and headers are JSON object strings. auth_type is one of "
        "none, bearer (auth_token), basic (auth_username, auth_password) or api-key "
        "(auth_key, auth_header, default X-API-Key).",
        annotations=ToolAnnotations(destructiveHint=False, openWorldHint=False),
    )
    def save_request(
        name: str,
        method: Method,
        url: str,
        params: str | None = None,
        payload: str | None = None,
        headers: str | None = None,
        insecure: bool = False,
        auth_type: Literal["none", "bearer", "basic", "api-key"] | None = None,
        auth_token: str | None = None,
        auth_username: str | None = None,
        auth_password: str | None = None,
        auth_key: str | None = None,
        auth_header: str | None = None,
    ) -> str:
        auth = build_auth(auth_type, auth_token, auth_username, auth_password, auth_key, auth_header)
        return _call(
            tools.save_request,
            name,
            method,
            url,
            params=params,
            payload=payload,
            headers=headers,
            insecure=insecure,
            auth=auth,
        )

    @server.tool(
        description="Delete a saved HTTP request by name",
        annotations=ToolAnnotations(destructiveHint=True, openWorldHint=False),
    )
    def delete_request(name: str) -> str:
        return _call(tools.delete_request, name)

    @server.tool(
        name="curl_command",
        description="Generate the equivalent cURL command for a saved HTTP request",
        annotations=read_only,
    )
    def curl_command_tool(name: str) -> str:
        return _call(tools.curl_command, name)

    return server


def serve(database: Database, engine: HttpEngine) -> None:
    """Run the MCP server on stdio until the client disconnects."""
    logger.info("starting MCP server on stdio")
    create_server(Tools(database, engine)).run()
