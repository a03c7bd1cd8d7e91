"""tanker content - text/binary classification of response bodies.

Text bodies are buffered and decoded. Binary bodies are streamed to a
private temporary file and never held in memory as a whole; the
BinaryContent handle owns that file until it is saved elsewhere or
cleaned up.
"""

from __future__ import annotations

import codecs
import errno
import json
import logging
import mimetypes
import os
import shutil
import tempfile
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from email.message import Message
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

from tanker.errors import StateError

logger = logging.getLogger(__name__)

TEMP_PREFIX = "tanker-"

TEXT_CONTENT_TYPES = frozenset(
    {
        "application/json",
        "application/xml",
        "application/javascript",
        "application/ecmascript",
        "application/xhtml+xml",
        "application/x-www-form-urlencoded",
        "application/graphql",
        "application/x-ndjson",
        "application/yaml",
        "application/x-yaml",
        "application/sql",
    },
)


def media_type(content_type: str | None) -> str:
    """Lower-cased media type with parameters stripped at the first ';'."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def is_text_content(content_type: str | None) -> bool:
    mt = media_type(content_type)
    if not mt:
        return True
    if mt.startswith("text/"):
        return True
    if mt in TEXT_CONTENT_TYPES:
        return True
    return mt.endswith("+json") or mt.endswith("+xml")


def header_value(headers: Mapping[str, Any], name: str) -> str | None:
    """Case-insensitive lookup; list values (multi-value headers) yield the first."""
    for key, value in headers.items():
        if key.lower() == name.lower():
            if isinstance(value, list | tuple):
                return value[0] if value else None
            return value
    return None


def _charset(content_type: str | None) -> str:
    if content_type:
        for param in content_type.split(";")[1:]:
            key, _, value = param.partition("=")
            charset = value.strip().strip('"')
            if key.strip().lower() == "charset" and charset:
                try:
                    return codecs.lookup(charset).name
                except LookupError:
                    logger.debug("unknown charset %r, decoding as utf-8", charset)
    return "utf-8"


class BinaryContent:
    """A binary body spooled to a temp file.

    path is None once the file has been moved by save_to() or removed by
    cleanup(); both are safe to call in any order afterwards.
    """

    def __init__(self, path: str | Path, content_type: str, size: int):
        self.path: Path | None = Path(path)
        self.content_type = content_type
        self.size = size

    @property
    def available(self) -> bool:
        return self.path is not None

    def save_to(self, destination: str | Path) -> Path:
        """Move the temp file to destination.

        Tries an atomic rename first and falls back to copy-then-delete
        across filesystems. Raises StateError when nothing is left to save.
        """
        if self.path is None:
            raise StateError("no binary content to save")

        dest = Path(destination).expanduser()
        dest.parent.mkdir(parents=True, exist_ok=True)

        try:
            os.replace(self.path, dest)
        except OSError as e:
            if e.errno != errno.EXDEV:
                raise
            shutil.copyfile(self.path, dest)
            os.remove(self.path)

        logger.info("saved %d bytes of %s to %s", self.size, self.content_type, dest)
        self.path = None
        return dest

    def cleanup(self) -> None:
        if self.path is None:
            return
        path, self.path = self.path, None
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        logger.debug("removed temp file %s", path)


@dataclass
class BodyOutcome:
    """Exactly one of text, json_body or binary is set (text may be "")."""

    text: str | None = None
    json_body: dict[str, Any] | None = None
    binary: BinaryContent | None = None


def classify(headers: Mapping[str, Any], chunks: Iterable[bytes]) -> BodyOutcome:
    """Classify a response body from its headers and a chunk iterator.

    Text: the chunks are joined, decoded and parsed as a JSON object when
    possible. Binary: each chunk is written straight to a new temp file.
    """
    content_type = header_value(headers, "Content-Type")

    if is_text_content(content_type):
        raw = b"".join(chunks)
        text = raw.decode(_charset(content_type), errors="replace")
        try:
            parsed = json.loads(text)
        except (json.JSONDecodeError, ValueError):
            parsed = None
        if isinstance(parsed, dict):
            return BodyOutcome(json_body=parsed)
        return BodyOutcome(text=text)

    return BodyOutcome(binary=spool_binary(content_type or "", chunks))


def spool_binary(content_type: str, chunks: Iterable[bytes]) -> BinaryContent:
    tmp = tempfile.NamedTemporaryFile(delete=False, prefix=TEMP_PREFIX)  # noqa: SIM115
    size = 0
    try:
        with tmp:
            for chunk in chunks:
                if chunk:
                    tmp.write(chunk)
                    size += len(chunk)
    except BaseException:
        os.remove(tmp.name)
        raise
    logger.debug("spooled %d bytes of %s to %s", size, content_type, tmp.name)
    return BinaryContent(tmp.name, content_type, size)


def suggest_filename(
    url: str,
    headers: Mapping[str, Any],
    content_type: str | None,
    downloads_dir: Path | None = None,
) -> Path:
    """Default destination for a binary save.

    Content-Disposition filename, else the last URL path segment, else
    "download" plus an extension guessed from the content type.
    """
    target_dir = downloads_dir or Path.home() / "Downloads"

    disposition = header_value(headers, "Content-Disposition")
    if disposition:
        msg = Message()
        msg["content-disposition"] = disposition
        filename = msg.get_filename()
        if filename:
            return target_dir / Path(filename).name

    base = Path(urlsplit(url).path).name
    if base:
        return target_dir / base

    ext = mimetypes.guess_extension(media_type(content_type)) or ""
    return target_dir / f"download{ext}"
