"""tanker CLI - terminal workbench for HTTP requests."""

import logging
import sys
from pathlib import Path

import click

from tanker import __version__

TOOL_HELP = """\
http-tanker: terminal workbench for HTTP requests.

Create named requests, run them, inspect responses (binary downloads
included) and print the equivalent cURL command.

\b
MODES
─────
  Interactive:  tanker
  MCP server:   tanker --mcp
  One-shot:     tanker --list | tanker --curl NAME

\b
DATABASE
────────
  Requests are stored in <db_dir>/tanker-data.json. A new database is
  seeded with two examples (get-example, post-example).

  db_dir resolution:
    1. --db flag
    2. TANKER_DB_DIR environment variable
    3. db_dir from config (relative to the config file)
    4. ~/tanker

\b
CONFIG FILE FORMAT (.tanker.yaml)
─────────────────────────────────
  Config resolution order:
    1. -c/--config flag (explicit path)
    2. .tanker.yaml / .tanker.yml / tanker.yaml / tanker.yml in CWD
    3. ~/.tanker/config.yaml (global)

  \b
  defaults:
    db_dir: ~/tanker
    timeout: 30                 # seconds, per request
    env_file: .env              # loaded before ${VAR} resolution
    log_file: tanker.log        # default: <db_dir>/tanker.log
    log_level: INFO

\b
MCP TOOLS
─────────
  list_requests, get_request, send_request, send_custom_request,
  save_request, delete_request, curl_command
"""


def _setup_logging(log_file: Path, level: str) -> None:
    """Log to a file: stdout/stderr belong to the TUI or the MCP stream."""
    log_file.parent.mkdir(mode=0o750, parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file)
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"),
    )
    root = logging.getLogger("tanker")
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, level, logging.INFO))
    root.propagate = False


@click.command(
    cls=click.Command,
    help=TOOL_HELP,
    context_settings={"max_content_width": 88},
)
@click.option("--db", "db_dir", default=None, help="Database directory. Default: ~/tanker.")
@click.option(
    "-c",
    "--config",
    "config_file",
    default=None,
    help="Config file path. Default: .tanker.yaml in CWD, then ~/.tanker/config.yaml.",
)
@click.option("--timeout", type=int, default=None, help="Request timeout in seconds. Default: 30.")
@click.option("--mcp", "serve_mcp", is_flag=True, default=False, help="Serve MCP tools on stdio.")
@click.option("--curl", "curl_name", default=None, metavar="NAME", help="Print the cURL command for a request.")
@click.option("--list", "show_list", is_flag=True, default=False, help="List saved requests.")
@click.option("--debug", is_flag=True, default=False, help="Log at DEBUG level.")
@click.version_option(__version__, prog_name="http-tanker")
def main(db_dir, config_file, timeout, serve_mcp, curl_name, show_list, debug):
    """Run the interactive workbench or one of the one-shot modes."""
    from tanker.core import load_config, load_env, resolve_config_path, resolve_settings
    from tanker.errors import TankerError
    from tanker.executor import HttpEngine
    from tanker.store import Database

    # --- Load config ---
    config_path = resolve_config_path(config_file)
    if config_file and config_path is None:
        click.echo(f"ERROR: Config file not found: {config_file}", err=True)
        sys.exit(1)
    try:
        config = load_config(config_path)
        defaults = config.get("defaults", {})
        env = load_env(defaults.get("env_file"), base_dir=config.get("_config_dir") or ".")
        settings = resolve_settings(config, env, db_dir=db_dir, timeout=timeout, debug=debug)
    except (OSError, ValueError) as e:
        click.echo(f"ERROR: Invalid configuration: {e}", err=True)
        sys.exit(1)

    database = Database(settings.db_dir, settings.db_file)
    try:
        _setup_logging(settings.resolved_log_file, settings.log_level)
        database.init_db()
    except (TankerError, OSError) as e:
        click.echo(f"ERROR: {e}", err=True)
        sys.exit(1)

    # --- Dispatch ---

    if show_list:
        _cmd_list(database)
        return

    if curl_name:
        _cmd_curl(database, curl_name)
        return

    engine = HttpEngine(timeout=settings.timeout)
    try:
        if serve_mcp:
            from tanker.mcp_server import serve

            serve(database, engine)
        else:
            from tanker.navigation import App

            App(database, engine).run()
    finally:
        engine.close()


# ── Subcommand implementations ──────────────────────────────────────────


def _cmd_list(database):
    data = database.load()
    if not data:
        click.echo(f"No requests in: {database.db_file}")
        return
    click.echo(f"Requests from: {database.db_file}")
    click.echo(f"{len(data)} saved:\n")
    for name, r in sorted(data.items()):
        click.echo(f"  [{r.method}] {name} - {r.url}")


def _cmd_curl(database, name):
    from tanker.core import curl_command
    from tanker.errors import NotFoundError

    try:
        request = database.get(name)
    except NotFoundError as e:
        click.echo(f"ERROR: {e}", err=True)
        sys.exit(1)
    click.echo(curl_command(request))
