"""
Mineclash CLI - Command-line interface for the server.

Usage:
    mineclash serve [--host HOST] [--port PORT]   Run the HTTP API
    mineclash reap [--database-url URL]           Run one reaper sweep
    mineclash presets                             Show difficulty presets

Settings come from MINECLASH_* environment variables; flags override them.
"""

import argparse
import sys


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Mineclash - Multiplayer Minesweeper Server",
        prog="mineclash",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Bind port")
    serve_parser.add_argument("--database-url", help="SQLAlchemy URL for the session store")
    serve_parser.add_argument("--log-level", help="Logging level (DEBUG, INFO, ...)")

    # Reap command
    reap_parser = subparsers.add_parser("reap", help="Run one reaper sweep and exit")
    reap_parser.add_argument("--database-url", help="SQLAlchemy URL for the session store")

    # Presets command
    subparsers.add_parser("presets", help="Show difficulty presets")

    args = parser.parse_args()

    if args.command == "serve":
        cmd_serve(args)
    elif args.command == "reap":
        cmd_reap(args)
    elif args.command == "presets":
        cmd_presets(args)
    else:
        parser.print_help()
        sys.exit(1)


def _load_settings(args):
    from .config import Settings

    try:
        settings = Settings.from_env()
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)
    if getattr(args, "database_url", None):
        settings.database_url = args.database_url
    if getattr(args, "log_level", None):
        settings.log_level = args.log_level.upper()
    return settings


def cmd_serve(args):
    """Run the API under uvicorn."""
    import uvicorn

    from .api.app import create_app
    from .logging_config import setup_logging

    settings = _load_settings(args)
    setup_logging(settings.log_level, settings.log_file)

    print(f"Starting Mineclash on http://{args.host}:{args.port} ({settings.env})")
    uvicorn.run(create_app(settings=settings), host=args.host, port=args.port)


def cmd_reap(args):
    """Run a single reaper sweep against a persistent store."""
    from .logging_config import setup_logging
    from .session.reaper import SessionReaper
    from .session.store import SqlSessionStore

    settings = _load_settings(args)
    setup_logging(settings.log_level, settings.log_file)

    if not settings.database_url:
        print("Error: reap needs --database-url or MINECLASH_DATABASE_URL")
        sys.exit(1)

    report = SessionReaper(SqlSessionStore(settings.database_url), settings).sweep()
    print(f"Deleted lobbies: {report.deleted_lobbies}")
    print(f"Timed-out games: {report.finished_games}")
    print(f"Deleted games:   {report.deleted_games}")


def cmd_presets(args):
    """Print the difficulty presets."""
    from .engine_core.generator import DIFFICULTY_PRESETS

    for difficulty, config in DIFFICULTY_PRESETS.items():
        print(f"{difficulty.value:<8} {config.rows}x{config.cols}, {config.mines} mines")


if __name__ == "__main__":
    main()
