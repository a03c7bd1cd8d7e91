"""Shared fixtures for tanker scenario tests."""

import io
import json
import logging
import tempfile
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import parse_qsl, urlsplit

import pytest
from click.testing import CliRunner
from rich.console import Console

from tanker import core
from tanker.errors import PromptAborted
from tanker.executor import HttpEngine
from tanker.store import Database

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + bytes(range(256)) * 1024


class EchoHandler(BaseHTTPRequestHandler):
    """Echoes the request as JSON; a few paths serve fixed content types."""

    def _send(self, status, content_type, raw, extra_headers=()):
        self.send_response(status)
        if content_type:
            self.send_header("Content-Type", content_type)
        for key, value in extra_headers:
            self.send_header(key, value)
        self.send_header("Content-Length", str(len(raw)))
        self.end_headers()
        self.wfile.write(raw)

    def _handle(self):
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length).decode() if length else ""
        parts = urlsplit(self.path)

        if parts.path == "/image.png":
            self._send(200, "image/png", PNG_BYTES)
            return
        if parts.path == "/report":
            self._send(
                200,
                "application/pdf",
                b"%PDF-1.4 fake",
                [("Content-Disposition", 'attachment; filename="report.pdf"')],
            )
            return
        if parts.path == "/text":
            self._send(200, "text/plain; charset=utf-8", "hello tanker".encode())
            return
        if parts.path == "/bogus-charset":
            self._send(200, "text/plain; charset=bogus", "café".encode())
            return
        if parts.path == "/array":
            self._send(200, "application/json", b"[1, 2, 3]")
            return
        if parts.path == "/multi":
            self._send(
                200,
                "application/json",
                b"{}",
                [("Set-Cookie", "a=1"), ("Set-Cookie", "b=2")],
            )
            return
        if parts.path == "/slow":
            time.sleep(1.0)
        if parts.path == "/missing":
            self._send(404, "application/json", b'{"error": "not found"}')
            return

        data = {
            "method": self.command,
            "path": parts.path,
            "query": parts.query,
            "args": dict(parse_qsl(parts.query)),
            "headers": {k: v for k, v in self.headers.items()},
            "body": body,
        }
        self._send(200, "application/json", json.dumps(data).encode())

    do_GET = _handle
    do_POST = _handle
    do_PUT = _handle
    do_PATCH = _handle
    do_DELETE = _handle

    def log_message(self, format, *args):
        pass


@pytest.fixture
def stub_server():
    """Base URL of a threaded echo server on a free local port."""
    server = ThreadingHTTPServer(("127.0.0.1", 0), EchoHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


@pytest.fixture
def png_bytes():
    return PNG_BYTES


@pytest.fixture
def engine():
    e = HttpEngine(timeout=5)
    yield e
    e.close()


@pytest.fixture
def database(tmp_path):
    db = Database(tmp_path / "db")
    db.init_db()
    return db


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=120, force_terminal=False)


@pytest.fixture
def temp_dir(tmp_path, monkeypatch):
    """Redirect tempfile to a private directory so leaks can be counted."""
    d = tmp_path / "tmp"
    d.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(d))
    return d


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def global_tanker_dir(tmp_path, monkeypatch):
    """Override the global ~/.tanker directory and TANKER_* variables."""
    fake_global = tmp_path / "fake_home" / ".tanker"
    fake_global.mkdir(parents=True)
    monkeypatch.setattr(core, "GLOBAL_DIR", fake_global)
    monkeypatch.setattr(core, "GLOBAL_CONFIG", fake_global / "config.yaml")
    monkeypatch.setattr(core, "DEFAULT_DB_DIR", tmp_path / "fake_home" / "tanker")
    for var in (core.ENV_DB_DIR, core.ENV_TIMEOUT, core.ENV_LOG_LEVEL):
        monkeypatch.delenv(var, raising=False)
    return fake_global


@pytest.fixture(autouse=True)
def restore_tanker_logger():
    """The CLI reconfigures the 'tanker' logger; undo it after each test."""
    logger = logging.getLogger("tanker")
    saved = (list(logger.handlers), logger.level, logger.propagate)
    yield
    for handler in logger.handlers:
        if handler not in saved[0]:
            handler.close()
    logger.handlers[:], logger.level, logger.propagate = saved


class ScriptedPrompter:
    """Answers prompts from a fixed script and records every question.

    An exception instance in the script is raised instead of answered.
    A callable answer to edit() receives the editor text. When the script
    runs out, menus offering Exit answer Exit; anything else raises an
    end-of-input PromptAborted.
    """

    def __init__(self, answers=()):
        self.answers = list(answers)
        self.asked = []
        self.edited = []

    def _next(self, kind, message, choices=None):
        self.asked.append((kind, message, choices))
        if not self.answers:
            if choices and "Exit" in choices:
                return "Exit"
            raise PromptAborted("script exhausted", eof=True)
        answer = self.answers.pop(0)
        if isinstance(answer, BaseException):
            raise answer
        if choices is not None and answer not in choices:
            raise AssertionError(f"{answer!r} is not one of {choices!r} for {message!r}")
        return answer

    def select(self, message, choices, default=None):
        return self._next("select", message, list(choices))

    def text(self, message, default="", validate=None):
        answer = self._next("text", message)
        if validate is not None:
            validate(answer)
        return answer

    def password(self, message):
        return self._next("password", message)

    def confirm(self, message, default=False):
        return self._next("confirm", message)

    def edit(self, text, extension=".json"):
        self.edited.append(text)
        answer = self._next("edit", "editor")
        return answer(text) if callable(answer) else answer


@pytest.fixture
def make_prompter():
    return ScriptedPrompter


@pytest.fixture
def run_app():
    """Run App.run() on a thread and fail if it has not exited in time."""

    def _run(app, timeout=10):
        thread = threading.Thread(target=app.run, daemon=True)
        thread.start()
        thread.join(timeout)
        assert not thread.is_alive(), "App.run() did not reach Exit"

    return _run
