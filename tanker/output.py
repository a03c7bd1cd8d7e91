"""tanker output - terminal rendering of requests, responses and menus."""

from __future__ import annotations

import json

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from tanker import __version__
from tanker.executor import Response
from tanker.models import Request

BOX_WIDTH = 50

BANNER = r"""
  _     _   _                _              _
 | |__ | |_| |_ _ __        | |_ __ _ _ __ | | _____ _ __
 | '_ \| __| __| '_ \ _____ | __/ _` | '_ \| |/ / _ \ '__|
 | | | | |_| |_| |_) |_____|| || (_| | | | |   <  __/ |
 |_| |_|\__|\__| .__/        \__\__,_|_| |_|_|\_\___|_|
               |_|
"""

ABOUT = """\
http-tanker is a terminal workbench for HTTP requests.

Create named requests, run them, inspect the responses in your
editor, save binary downloads and copy the equivalent cURL command.
Requests are stored as JSON in the database directory (--db).

Run with --mcp to expose the same operations to an MCP client."""

METHOD_STYLES = {
    "GET": "cyan",
    "POST": "green",
    "PUT": "yellow",
    "PATCH": "magenta",
    "DELETE": "red",
}


def status_style(code: int) -> str:
    if 200 <= code < 300:
        return "green"
    if 300 <= code < 400:
        return "yellow"
    if code >= 400:
        return "red"
    return "white"


def method_style(method: str) -> str:
    return METHOD_STYLES.get(method.upper(), "white")


def _pretty(value) -> str:
    return json.dumps(value, indent=4)


def draw_box(console: Console, title: str, lines: list[str | Text] | None = None) -> None:
    """Title box, then each content line, then a bottom rule."""
    console.print(
        Panel(Text(title, style="blue"), width=BOX_WIDTH + 2, border_style="bright_black"),
    )
    for line in lines or []:
        text = line if isinstance(line, Text) else Text(line, style="white")
        console.print(Text(" ") + text, highlight=False)
    console.print(Text(" " + "─" * BOX_WIDTH, style="bright_black"))
    console.print()


def banner(console: Console) -> None:
    console.clear()
    rule = Text(" " + "─" * BOX_WIDTH, style="bright_black")
    console.print(rule)
    console.print(Text(BANNER), highlight=False)
    console.print(Text(f" version : {__version__}", style="bright_black"))
    console.print(rule)
    console.print()


def request_lines(request: Request) -> list[str | Text]:
    lines: list[str | Text] = [
        f"Name   : {request.name}",
        Text.assemble("Method : ", (request.method, method_style(request.method))),
        f"URL    : {request.url}",
    ]
    if request.params:
        lines.append(f"Params :\n{_pretty(request.params)}")
    if request.payload:
        lines.append(f"Payload :\n{_pretty(request.payload)}")
    if request.headers:
        lines.append(f"Headers :\n{_pretty(request.headers)}")
    if request.auth:
        lines.append(f"Auth   : {request.auth.type}")
    if request.insecure:
        lines.append("Insecure : true (TLS verification skipped)")
    return lines


def display_request(console: Console, request: Request) -> None:
    draw_box(console, "Request details", request_lines(request))


def response_lines(response: Response) -> list[str | Text]:
    style = status_style(response.status_code)
    lines: list[str | Text] = [
        Text.assemble("Status         : ", (response.status, style)),
        Text.assemble("Status code    : ", (str(response.status_code), style)),
        f"Protocol       : {response.protocol}",
    ]
    if response.headers:
        lines.append(f"Headers :\n{_pretty(response.headers)}")
    if response.is_binary:
        lines.append(f"Content type   : {response.content_type}")
        lines.append(f"Body size      : {response.body_size} bytes")
        lines.append("Body : [Binary content]")
    elif response.json_body is not None:
        lines.append(f"Body :\n{_pretty(response.json_body)}")
    elif response.body:
        lines.append(f"Body : {response.body}")
    lines.append(f"Execution time : {response.execution_time_ms} ms")
    return lines


def display_response(console: Console, response: Response) -> None:
    draw_box(console, "Response details", response_lines(response))


def curl_box(console: Console, command: str) -> None:
    draw_box(console, "cURL command", [command])


def error(console: Console, message: str) -> None:
    console.print(Text(f"ERROR : {message}", style="red"), highlight=False)


def success(console: Console, message: str) -> None:
    console.print()
    console.print(Text(message, style="green"), highlight=False)
    console.print()
