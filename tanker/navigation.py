"""tanker navigation - signal-driven menus and workflows.

The dispatcher (App.run) blocks on a single queue of Signals. Universal
transitions (home, browse, exit) are routed by the dispatcher itself; every
other signal starts a workflow on a worker thread and the dispatcher goes
straight back to the queue. A workflow returns exactly one Signal, which
the worker puts back on the queue. The dispatcher joins the previous worker
before starting the next, so at most one workflow is ever live.
"""

from __future__ import annotations

import json
import logging
import queue
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from rich.console import Console

from tanker import output
from tanker.content import suggest_filename
from tanker.core import curl_command
from tanker.errors import PromptAborted, StateError, TankerError, ValidationError
from tanker.executor import HttpEngine, Response
from tanker.models import (
    DEFAULT_API_KEY_HEADER,
    METHODS,
    QUERY_METHODS,
    Request,
    check_string_params,
    parse_json_object,
    validate,
)
from tanker.prompts import Prompter, required
from tanker.store import Database

logger = logging.getLogger(__name__)

SIG_HOME = "Home"
SIG_BACK_HOME = "Back to Home Menu"
SIG_BROWSE = "Browse requests"
SIG_BACK_REQUESTS = "Back to requests"
SIG_EXIT = "Exit"
SIG_CREATE = "Create request"
SIG_ABOUT = "About"
SIG_REQ_SELECT = "reqSelect"
SIG_REQ_CREATED = "reqCreate"
SIG_RUN = "Run"
SIG_CURL = "cURL"
SIG_EDIT = "Edit"
SIG_DELETE = "Delete"

AUTH_NONE = "None"
AUTH_BEARER = "Bearer Token"
AUTH_BASIC = "Basic Auth"
AUTH_API_KEY = "API Key"

PARAMS_MESSAGE = 'Params (Enter the string parameters in {"key": "value"} format , default = {}) :'
HEADERS_MESSAGE = 'Headers (Enter the headers in json format {"key": "value"}, default = {}) :'
DEFAULT_PAYLOAD = json.dumps({"foo": "bar"}, indent=4)


@dataclass(frozen=True)
class Signal:
    kind: str
    payload: str | None = None
    display: bool = False


def _validate_params(value: str) -> None:
    check_string_params(parse_json_object(value, "params"))


def _validate_headers(value: str) -> None:
    parse_json_object(value, "headers")


class Spinner:
    """Ticking indicator shown while a blocking call runs.

    The call runs on the caller's thread; the ticker runs on its own thread
    and stops as soon as the call's done event is set.
    """

    FRAMES = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"

    def __init__(self, console: Console, message: str = "Executing request...", interval: float = 0.08):
        self.console = console
        self.message = message
        self.interval = interval
        self.ticks = 0

    def run(self, fn: Callable[..., Any], *args: Any) -> Any:
        done = threading.Event()
        ticker = threading.Thread(target=self._tick, args=(done,), name="tanker-spinner", daemon=True)
        ticker.start()
        try:
            return fn(*args)
        finally:
            done.set()
            ticker.join()

    def _tick(self, done: threading.Event) -> None:
        out = self.console.file
        while not done.is_set():
            frame = self.FRAMES[self.ticks % len(self.FRAMES)]
            out.write(f"\r{frame} {self.message}")
            out.flush()
            self.ticks += 1
            done.wait(self.interval)
        out.write("\r\033[K")
        out.flush()


class App:
    def __init__(
        self,
        database: Database,
        engine: HttpEngine,
        prompter: Prompter | None = None,
        console: Console | None = None,
    ):
        self.database = database
        self.engine = engine
        self.prompter = prompter or Prompter()
        self.console = console or Console()
        self.spinner = Spinner(self.console)
        self.signals: queue.Queue[Signal] = queue.Queue()
        self._worker: threading.Thread | None = None
        self._routes: dict[str, Callable[[Signal], Signal]] = {
            SIG_CREATE: lambda sig: self.create(),
            SIG_ABOUT: lambda sig: self.about(),
            SIG_REQ_SELECT: lambda sig: self.request_menu(sig.payload, sig.display),
            SIG_REQ_CREATED: lambda sig: self.request_menu(sig.payload, sig.display),
            SIG_RUN: lambda sig: self.run_request(sig.payload),
            SIG_CURL: lambda sig: self.show_curl(sig.payload),
            SIG_EDIT: lambda sig: self.edit(sig.payload),
            SIG_DELETE: lambda sig: self.delete(sig.payload),
        }

    # ── Dispatcher ───────────────────────────────────────────────────────

    def run(self) -> None:
        """Consume signals until Exit."""
        self.signals.put(Signal(SIG_HOME))
        while True:
            sig = self.signals.get()
            logger.debug("signal %s (%s)", sig.kind, sig.payload)
            if sig.kind == SIG_EXIT:
                self._join_worker()
                self.console.clear()
                return
            self.dispatch(sig)

    def dispatch(self, sig: Signal) -> None:
        if sig.kind in (SIG_HOME, SIG_BACK_HOME):
            output.banner(self.console)
            self._launch(self.home)
        elif sig.kind in (SIG_BROWSE, SIG_BACK_REQUESTS):
            output.banner(self.console)
            self._launch(self.requests)
        elif sig.kind in self._routes:
            if sig.kind != SIG_ABOUT:
                output.banner(self.console)
            self._launch(self._routes[sig.kind], sig)
        else:
            logger.warning("unknown signal %r, going home", sig.kind)
            self._launch(self.home)

    def _launch(self, workflow: Callable[..., Signal], *args: Any) -> None:
        self._join_worker()
        worker = threading.Thread(
            target=self._work,
            args=(workflow, *args),
            name="tanker-workflow",
            daemon=True,
        )
        self._worker = worker
        worker.start()

    def _join_worker(self) -> None:
        if self._worker is not None:
            self._worker.join()
            self._worker = None

    def _work(self, workflow: Callable[..., Signal], *args: Any) -> None:
        try:
            sig = workflow(*args)
        except Exception as e:
            try:
                sig = self.error_handler(e)
            except Exception:
                logger.exception("error handler failed, exiting")
                sig = Signal(SIG_EXIT)
        self.signals.put(sig)

    def error_handler(self, err: Exception) -> Signal:
        """Show err and let the user pick where to go next."""
        if isinstance(err, TankerError):
            logger.info("workflow failed: %s", err)
        else:
            logger.exception("workflow crashed")
        if isinstance(err, PromptAborted) and err.eof:
            return Signal(SIG_EXIT)

        output.error(self.console, str(err) or type(err).__name__)
        try:
            choice = self.prompter.select("", [SIG_BACK_HOME, SIG_BACK_REQUESTS, SIG_EXIT])
        except PromptAborted as e:
            return Signal(SIG_EXIT if e.eof else SIG_HOME)
        return Signal(choice)

    # ── Menus ────────────────────────────────────────────────────────────

    def home(self) -> Signal:
        output.draw_box(self.console, "Home Menu")
        choice = self.prompter.select("Select :", [SIG_BROWSE, SIG_CREATE, SIG_ABOUT, SIG_EXIT])
        return Signal(choice)

    def requests(self) -> Signal:
        labels: dict[str, str] = {}
        for name, r in sorted(self.database.load().items()):
            labels[f"[{r.method}] {name} - {r.url}"] = name

        output.draw_box(self.console, "Requests")
        choice = self.prompter.select("Select :", [SIG_BACK_HOME, *labels])
        if choice in labels:
            return Signal(SIG_REQ_SELECT, labels[choice], display=True)
        return Signal(choice)

    def request_menu(self, name: str, display: bool) -> Signal:
        if display:
            output.display_request(self.console, self.database.get(name))
        choice = self.prompter.select(
            "Select :",
            [SIG_RUN, SIG_CURL, SIG_EDIT, SIG_DELETE, SIG_BACK_REQUESTS, SIG_EXIT],
        )
        return Signal(choice, name)

    def about(self) -> Signal:
        output.banner(self.console)
        self.console.print(output.ABOUT, markup=False, highlight=False)
        self.console.print()
        self.prompter.select("", [SIG_BACK_HOME])
        return Signal(SIG_HOME)

    # ── Workflows ────────────────────────────────────────────────────────

    def run_request(self, name: str) -> Signal:
        """Execute a saved request with a spinner, then show the response."""
        request = self.database.get(name)
        back = Signal(SIG_REQ_SELECT, name, display=True)

        response: Response = self.spinner.run(self.engine.execute, request)
        with response:
            if response.error:
                output.error(self.console, str(response.error))
                self.prompter.select("", [f"Back to {name} request"])
                return back

            output.display_response(self.console, response)
            if response.is_binary:
                self._offer_save(request, response)
            elif self.prompter.confirm("Inspect response in editor ?", default=False):
                self.prompter.edit(json.dumps(response.to_dict(), indent=4))
        return back

    def _offer_save(self, request: Request, response: Response) -> None:
        if not self.prompter.confirm("Save file locally ?", default=True):
            return
        default = suggest_filename(request.url, response.headers, response.content_type)
        path = self.prompter.text("Save to :", default=str(default), validate=required)
        try:
            saved = response.save_to_file(path.strip())
        except (OSError, StateError) as e:
            output.error(self.console, str(e))
        else:
            output.success(self.console, f"File saved to {saved}")

    def show_curl(self, name: str) -> Signal:
        output.curl_box(self.console, curl_command(self.database.get(name)))
        back_label = f"Back to {name} request"
        choice = self.prompter.select("", [back_label, SIG_BACK_REQUESTS, SIG_BACK_HOME])
        if choice == back_label:
            return Signal(SIG_REQ_SELECT, name, display=True)
        return Signal(choice)

    def create(self) -> Signal:
        draft: dict[str, Any] = {
            "name": self.prompter.text("Name :", validate=required),
            "method": self.prompter.select("Method :", list(METHODS)),
            "url": self.prompter.text("URL :", validate=required),
        }

        if draft["method"] in QUERY_METHODS:
            draft["params"] = self.prompter.text(PARAMS_MESSAGE, default="{}", validate=_validate_params)
        else:
            draft["payload"] = self._edit_until_valid(
                DEFAULT_PAYLOAD,
                lambda content: parse_json_object(content, "payload"),
            )

        draft["auth"] = self._ask_auth()
        draft["headers"] = self.prompter.text(HEADERS_MESSAGE, default="{}", validate=_validate_headers)
        draft["insecure"] = self.prompter.confirm("Skip TLS certificate verification ?", default=False)

        request = validate(draft)
        self.database.put(request)
        logger.info("created request %s", request.name)
        return Signal(SIG_REQ_CREATED, request.name, display=True)

    def _ask_auth(self) -> dict[str, str] | None:
        choice = self.prompter.select(
            "Authentication :",
            [AUTH_NONE, AUTH_BEARER, AUTH_BASIC, AUTH_API_KEY],
            default=AUTH_NONE,
        )
        if choice == AUTH_BEARER:
            return {"type": "bearer", "token": self.prompter.password("Token :")}
        if choice == AUTH_BASIC:
            username = self.prompter.text("Username :", validate=required)
            return {"type": "basic", "username": username, "password": self.prompter.password("Password :")}
        if choice == AUTH_API_KEY:
            header = self.prompter.text("Header name :", default=DEFAULT_API_KEY_HEADER, validate=required)
            return {"type": "api-key", "header": header, "key": self.prompter.password("API Key :")}
        return None

    def _edit_until_valid(self, content: str, parse: Callable[[str], Any]) -> Any:
        """Open content in the editor until parse() accepts it.

        The rejected text is re-opened so edits are not lost. Declining to
        edit again aborts the workflow.
        """
        while True:
            content = self.prompter.edit(content)
            try:
                return parse(content)
            except ValidationError as e:
                output.error(self.console, str(e))
                if not self.prompter.confirm("Edit again ?", default=True):
                    raise PromptAborted("edit cancelled") from e

    def edit(self, name: str) -> Signal:
        request = self.database.get(name)
        output.display_request(self.console, request)

        updated = self._edit_until_valid(
            json.dumps(request.to_dict(), indent=4),
            lambda content: validate(parse_json_object(content, "request")),
        )
        self.database.replace(name, updated)
        output.success(self.console, f"The request {name} has been edited successfully")
        return Signal(SIG_REQ_CREATED, updated.name, display=True)

    def delete(self, name: str) -> Signal:
        if self.prompter.confirm(f"This will delete the request : {name}. Continue ?", default=False):
            self.database.delete(name)
            output.success(self.console, f"The request {name} was successfully deleted")

        choice = self.prompter.select("", [SIG_BACK_HOME, SIG_BACK_REQUESTS, SIG_EXIT])
        return Signal(choice)
