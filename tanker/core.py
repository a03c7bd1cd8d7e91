"""tanker core - config loading, auth headers, URL building, curl output."""

from __future__ import annotations

import base64
import json
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import urlencode, urlsplit, urlunsplit

import yaml
from dotenv import dotenv_values

from tanker.models import DEFAULT_API_KEY_HEADER, QUERY_METHODS, Auth, Request, carries_body

GLOBAL_DIR = Path.home() / ".tanker"
GLOBAL_CONFIG = GLOBAL_DIR / "config.yaml"
DEFAULT_DB_DIR = Path.home() / "tanker"
DEFAULT_TIMEOUT = 30

CWD_CONFIG_CANDIDATES = [
    ".tanker.yaml",
    ".tanker.yml",
    "tanker.yaml",
    "tanker.yml",
]

ENV_DB_DIR = "TANKER_DB_DIR"
ENV_TIMEOUT = "TANKER_TIMEOUT"
ENV_LOG_LEVEL = "TANKER_LOG_LEVEL"


# ── Config ───────────────────────────────────────────────────────────────


@dataclass
class Settings:
    db_dir: Path
    timeout: int = DEFAULT_TIMEOUT
    log_file: Path | None = None
    log_level: str = "INFO"

    @property
    def db_file(self) -> Path:
        return self.db_dir / "tanker-data.json"

    @property
    def resolved_log_file(self) -> Path:
        return self.log_file or self.db_dir / "tanker.log"


def resolve_path(
    candidates: list[Path],
    default: Path | None = None,
) -> Path | None:
    """Return the first existing path from candidates, else default."""
    for p in candidates:
        if p.exists():
            return p.resolve()
    return default


def resolve_config_path(config_file: str | None) -> Path | None:
    """Find the config file to use.

    Resolution order:
      1. Explicit -c flag (no fallthrough if missing)
      2. .tanker.yaml (variants) in CWD
      3. ~/.tanker/config.yaml
    """
    if config_file:
        return resolve_path([Path(config_file)])
    return resolve_path([Path(c) for c in CWD_CONFIG_CANDIDATES] + [GLOBAL_CONFIG])


def load_config(config_path: str | Path | None) -> dict:
    """Load YAML config file. Returns an empty defaults section if not found.

    Stores '_config_dir' in the returned dict so relative paths in the
    config resolve against the config file's directory.
    """
    if config_path is None:
        return {"defaults": {}, "_config_dir": None}
    path = Path(config_path)
    if not path.exists():
        return {"defaults": {}, "_config_dir": None}
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"{path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return {
        "defaults": data.get("defaults") or {},
        "_config_dir": path.resolve().parent,
    }


def load_env(env_file: str | None, base_dir: str | Path = ".") -> dict[str, str]:
    """Load .env file and merge it over os.environ."""
    env = dict(os.environ)
    if env_file:
        dotenv_path = Path(base_dir) / env_file
        if dotenv_path.exists():
            dotenv_vars = dotenv_values(str(dotenv_path))
            env.update({k: v for k, v in dotenv_vars.items() if v is not None})
    return env


def resolve_value(value: Any, env: dict[str, str]) -> Any:
    """Resolve $VAR and ${VAR} references in a config string value."""
    if not isinstance(value, str):
        return value

    def _replace(m: re.Match) -> str:
        var_name = m.group(1) or m.group(2)
        return env.get(var_name, m.group(0))

    return re.sub(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)", _replace, value)


def _config_relative(value: str, config_dir: Path | None) -> Path:
    p = Path(value).expanduser()
    if not p.is_absolute() and config_dir:
        p = Path(config_dir) / p
    return p


def resolve_settings(
    config: dict,
    env: dict[str, str],
    db_dir: str | None = None,
    timeout: int | None = None,
    debug: bool = False,
) -> Settings:
    """Merge CLI flags, environment and config defaults into Settings.

    Priority: CLI flag > TANKER_* environment variable > config > built-in.
    """
    defaults = config.get("defaults", {})
    config_dir = config.get("_config_dir")

    if db_dir:
        resolved_db = Path(db_dir).expanduser()
    elif env.get(ENV_DB_DIR):
        resolved_db = Path(env[ENV_DB_DIR]).expanduser()
    elif defaults.get("db_dir"):
        resolved_db = _config_relative(resolve_value(defaults["db_dir"], env), config_dir)
    else:
        resolved_db = DEFAULT_DB_DIR

    raw_timeout = timeout or env.get(ENV_TIMEOUT) or resolve_value(defaults.get("timeout"), env)
    try:
        resolved_timeout = int(raw_timeout) if raw_timeout else DEFAULT_TIMEOUT
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid timeout: {raw_timeout!r}") from e
    if resolved_timeout <= 0:
        raise ValueError(f"Invalid timeout: {raw_timeout!r}")

    log_file = defaults.get("log_file")
    log_level = "DEBUG" if debug else (
        env.get(ENV_LOG_LEVEL) or defaults.get("log_level") or "INFO"
    )

    return Settings(
        db_dir=resolved_db,
        timeout=resolved_timeout,
        log_file=_config_relative(resolve_value(log_file, env), config_dir) if log_file else None,
        log_level=str(log_level).upper(),
    )


# ── Request building ─────────────────────────────────────────────────────


def build_auth_headers(auth: Auth | None) -> dict[str, str]:
    """Build authentication headers from an auth config.

    Supports:
    - bearer: Authorization: Bearer <token>
    - api-key: custom header (default X-API-Key) with the key
    - basic: Authorization: Basic <b64>
    """
    if not auth:
        return {}

    if auth.type == "bearer":
        return {"Authorization": f"Bearer {auth.token}"}

    if auth.type == "api-key":
        return {auth.header or DEFAULT_API_KEY_HEADER: auth.key}

    if auth.type == "basic":
        credentials = base64.b64encode(f"{auth.username}:{auth.password}".encode()).decode()
        return {"Authorization": f"Basic {credentials}"}

    return {}


def query_pairs(params: dict[str, Any]) -> list[tuple[str, str]]:
    """String-valued params sorted by key. Non-string values are skipped."""
    return sorted((k, v) for k, v in params.items() if isinstance(v, str))


def build_url(request: Request) -> str:
    """Return the request URL with its params appended to the query string.

    Params only apply to GET/DELETE. An existing query string is kept.
    """
    if request.method not in QUERY_METHODS:
        return request.url
    pairs = query_pairs(request.params)
    if not pairs:
        return request.url
    parts = urlsplit(request.url)
    query = urlencode(pairs)
    if parts.query:
        query = f"{parts.query}&{query}"
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def build_headers(request: Request) -> dict[str, str]:
    """User headers (string values only) overlaid with auth headers.

    Basic auth is included here as an Authorization header.
    """
    headers = {k: v for k, v in request.headers.items() if isinstance(v, str)}
    auth_headers = build_auth_headers(request.auth)
    for key, value in auth_headers.items():
        for existing in [k for k in headers if k.lower() == key.lower()]:
            del headers[existing]
        headers[key] = value
    return headers


def build_body(request: Request) -> str | None:
    if not carries_body(request.method):
        return None
    return json.dumps(request.payload or {})


# ── curl ─────────────────────────────────────────────────────────────────


def _single_quote(s: str) -> str:
    return "'" + s.replace("'", "'\\''") + "'"


def curl_command(request: Request) -> str:
    """Return a shell-pasteable curl equivalent of request.

    Flag order: -k, -X, URL, -u (basic auth), -H per header, -d body.
    Parts are joined with a backslash line continuation.
    """
    parts = ["curl"]
    if request.insecure:
        parts.append("-k")
    parts.append(f"-X {request.method}")
    parts.append(_single_quote(build_url(request)))

    auth = request.auth
    if auth and auth.type == "basic":
        parts.append(f"-u {_single_quote(f'{auth.username}:{auth.password}')}")
        # -u owns the Authorization header
        headers = {
            k: v
            for k, v in request.headers.items()
            if isinstance(v, str) and k.lower() != "authorization"
        }
    else:
        headers = build_headers(request)

    for key, value in headers.items():
        parts.append(f"-H {_single_quote(f'{key}: {value}')}")

    body = build_body(request)
    if body is not None:
        parts.append(f"-d {_single_quote(body)}")

    return " \\\n  ".join(parts)
