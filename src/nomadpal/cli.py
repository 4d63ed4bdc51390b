"""CLI with subcommands.

Subcommands:
  migrate-db   Run Alembic schema migrations
  serve        Run the HTTP API under uvicorn
"""

from __future__ import annotations

import argparse
import logging

from nomadpal.config import settings
from nomadpal.db import migrate_db


def _build_parser() -> argparse.ArgumentParser:
    # Shared flags available to every subcommand
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-v", "--verbose", action="store_true")

    p = argparse.ArgumentParser(description="nomadpal CLI", parents=[common])
    sub = p.add_subparsers(dest="command")
    sub.default = "serve"

    sub.add_parser("migrate-db", help="Run schema migrations", parents=[common])

    sp = sub.add_parser("serve", help="Run the HTTP API", parents=[common])
    sp.add_argument("--host", default="0.0.0.0")
    sp.add_argument("--port", type=int, default=3000)
    sp.add_argument(
        "--migrate", action="store_true",
        help="Run schema migrations before starting",
    )
    return p


def _serve(host: str, port: int, migrate: bool) -> None:
    import uvicorn

    if migrate:
        migrate_db()
    logging.info("Starting NomadPal API on %s:%d", host, port)
    uvicorn.run("nomadpal.api:app", host=host, port=port, log_level=settings.log_level.lower())


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    cmd = args.command or "serve"
    if cmd == "migrate-db":
        migrate_db()
        logging.info("Schema is up to date")
        return

    _serve(
        getattr(args, "host", "0.0.0.0"),
        getattr(args, "port", 3000),
        getattr(args, "migrate", False),
    )


if __name__ == "__main__":
    main()
