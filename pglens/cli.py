#!/usr/bin/env python3
"""pglens - A terminal browser for PostgreSQL."""

from __future__ import annotations

import argparse
import os
import sys

from .domains.connections.domain.config import DEFAULT_DATABASE, DEFAULT_PORT, SSL_MODES, ConnectionConfig, default_user


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pglens",
        description="A terminal browser for PostgreSQL",
        epilog="Without --host, pglens opens the connection dialog and scans local ports.",
    )
    parser.add_argument("--host", help="Connect to this host at startup")
    parser.add_argument("--port", type=int, default=None, help=f"Server port (default: {DEFAULT_PORT})")
    parser.add_argument("--database", help=f"Database name (default: {DEFAULT_DATABASE})")
    parser.add_argument("--user", help="User name (default: current user)")
    parser.add_argument("--sslmode", choices=SSL_MODES, default=None, help="SSL mode (default: prefer)")
    parser.add_argument(
        "--settings",
        metavar="PATH",
        help="Path to settings JSON file (overrides ~/.pglens/settings.json)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Write a debug log to ~/.pglens/pglens.log (also enabled by PGLENS_DEBUG=1).",
    )
    return parser


def build_startup_config(args: argparse.Namespace) -> ConnectionConfig | None:
    """Connection to open at startup, if any connection flag was given."""
    if not any((args.host, args.port, args.database, args.user)):
        return None
    return ConnectionConfig(
        host=args.host or "localhost",
        port=args.port or DEFAULT_PORT,
        database=args.database or DEFAULT_DATABASE,
        user=args.user or default_user(),
        password=os.environ.get("PGPASSWORD") or None,
        sslmode=args.sslmode or "prefer",
    )


def main(argv: list[str] | None = None) -> int:
    """Entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.settings:
        os.environ["PGLENS_SETTINGS_PATH"] = str(args.settings)

    from .shared.core.log_setup import setup_logging
    from .shared.core.store import CONFIG_DIR, ensure_config_dir

    try:
        config_dir = ensure_config_dir()
    except OSError as error:
        print(f"pglens: cannot create config directory {CONFIG_DIR}: {error}", file=sys.stderr)
        return 1
    setup_logging(config_dir, debug=args.debug)

    from .domains.shell.app.controller import Controller
    from .domains.shell.app.state import AppState
    from .domains.shell.store.settings import AppSettings
    from .domains.shell.ui.app import PglensApp

    settings = AppSettings.from_store()
    app = PglensApp(
        controller=Controller(AppState.create(settings)),
        initial_config=build_startup_config(args),
    )
    app.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
