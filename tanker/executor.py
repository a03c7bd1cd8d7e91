"""tanker executor - HTTP request execution."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any

import requests
import urllib3

from tanker.content import BinaryContent, classify, header_value
from tanker.core import DEFAULT_TIMEOUT, build_body, build_headers, build_url
from tanker.errors import StateError, StorageError, TankerError, TransportError, ValidationError
from tanker.models import Request

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
BINARY_PLACEHOLDER = "[Binary content not included]"

_PROTOCOLS = {9: "HTTP/0.9", 10: "HTTP/1.0", 11: "HTTP/1.1", 20: "HTTP/2"}


class Response:
    """Result of one execution.

    On success exactly one of body, json_body or binary is meaningful.
    A binary response owns a temp file: call save_to_file() or cleanup()
    (or use the response as a context manager) before dropping it.
    """

    def __init__(self):
        self.status: str = ""
        self.status_code: int = 0
        self.protocol: str = ""
        self.headers: dict[str, list[str]] = {}
        self.body: str | None = None
        self.json_body: dict[str, Any] | None = None
        self.binary: BinaryContent | None = None
        self.execution_time_ms: int = 0
        self.error: TankerError | None = None

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.cleanup()

    @property
    def content_type(self) -> str:
        if self.binary:
            return self.binary.content_type
        return header_value(self.headers, "Content-Type") or ""

    @property
    def is_binary(self) -> bool:
        return self.binary is not None

    @property
    def has_binary_content(self) -> bool:
        """True while the temp file is still waiting to be saved or cleaned up."""
        return self.binary is not None and self.binary.available

    @property
    def body_size(self) -> int:
        if self.binary:
            return self.binary.size
        if self.body is not None:
            return len(self.body.encode())
        return 0

    def save_to_file(self, destination: str | Path) -> Path:
        if self.binary is None:
            raise StateError("no binary content to save")
        return self.binary.save_to(destination)

    def cleanup(self) -> None:
        if self.binary is not None:
            self.binary.cleanup()

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "status": self.status,
            "statusCode": self.status_code,
            "proto": self.protocol,
            "headers": self.headers,
        }
        if self.binary is not None:
            data["contentType"] = self.binary.content_type
            data["bodySize"] = self.binary.size
            data["body"] = BINARY_PLACEHOLDER
        elif self.json_body is not None:
            data["jsonBody"] = self.json_body
        else:
            data["body"] = self.body or ""
        data["executionTimeMillisec"] = self.execution_time_ms
        return data


def _multi_headers(resp: requests.Response) -> dict[str, list[str]]:
    raw_headers = getattr(resp.raw, "headers", None)
    if raw_headers is not None and hasattr(raw_headers, "getlist"):
        return {key: list(raw_headers.getlist(key)) for key in raw_headers}
    return {key: [value] for key, value in resp.headers.items()}


def _protocol(resp: requests.Response) -> str:
    version = getattr(resp.raw, "version", None)
    return _PROTOCOLS.get(version, "HTTP/1.1")


class HttpEngine:
    """Runs requests on two long-lived sessions.

    The default session verifies TLS certificates; the insecure one is used
    only for requests flagged insecure. Both pool connections across calls.
    """

    def __init__(self, timeout: int = DEFAULT_TIMEOUT):
        self.timeout = timeout
        self.session = requests.Session()
        self.insecure_session = requests.Session()
        self.insecure_session.verify = False
        # insecure calls are logged by execute()
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    def close(self) -> None:
        self.session.close()
        self.insecure_session.close()

    def client_for(self, request: Request) -> requests.Session:
        return self.insecure_session if request.insecure else self.session

    def execute(self, request: Request, timeout: int | None = None) -> Response:
        """Execute request and return a Response.

        - Single attempt, no retry
        - Time is measured until the response headers arrive
        - Body classified as text (buffered) or binary (spooled to disk)
        - Never raises - failures are returned in Response.error
        """
        response = Response()
        timeout = timeout or self.timeout
        session = self.client_for(request)
        url = build_url(request)
        body = build_body(request)

        if request.insecure:
            logger.warning(
                "TLS certificate verification disabled for %s %s",
                request.method,
                url,
            )
        logger.debug("dispatching %s %s (timeout %ss)", request.method, url, timeout)

        try:
            start = time.monotonic()
            resp = session.request(
                method=request.method,
                url=url,
                headers=build_headers(request),
                data=body.encode("utf-8") if body is not None else None,
                timeout=timeout,
                stream=True,
                verify=session.verify,
            )
            response.execution_time_ms = int((time.monotonic() - start) * 1000)

            try:
                response.status_code = resp.status_code
                response.status = f"{resp.status_code} {resp.reason or ''}".strip()
                response.protocol = _protocol(resp)
                response.headers = _multi_headers(resp)

                outcome = classify(resp.headers, resp.iter_content(chunk_size=CHUNK_SIZE))
                response.body = outcome.text
                response.json_body = outcome.json_body
                response.binary = outcome.binary
            finally:
                resp.close()

        except requests.exceptions.Timeout as e:
            response.error = TransportError(f"Request timed out after {timeout}s", e)
        except requests.exceptions.ConnectionError as e:
            response.error = TransportError(f"Connection error: {e}", e)
        except requests.exceptions.RequestException as e:
            response.error = TransportError(f"Request failed: {e}", e)
        except (UnicodeError, ValueError) as e:
            response.error = ValidationError(f"Cannot encode request: {e}")
        except OSError as e:
            response.error = StorageError(f"Cannot store response body: {e}")

        if response.error:
            logger.info("%s %s failed: %s", request.method, url, response.error)
        else:
            logger.debug(
                "%s %s -> %s in %dms",
                request.method,
                url,
                response.status_code,
                response.execution_time_ms,
            )
        return response
