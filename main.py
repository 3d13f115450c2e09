#!/usr/bin/env python3
"""
Auth service -- account registration and credential login over HTTP.

Usage:
  python main.py
  python main.py --port 9000
  python main.py --host 127.0.0.1 --reload

Environment variables (see core/config.py for the full list):
  HTTP_HOST / HTTP_PORT   Bind address (default 0.0.0.0:8080).
  JWT_SECRET              Token signing secret. Required when APP_ENV=production.
  DATABASE_URL / DB_*     User store location. SQLite file when unset.
  OTEL_ENABLED            Export spans and metrics to OTEL_ENDPOINT.
"""

import argparse

import uvicorn

from core.config import get_settings


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="auth-service",
        description="Run the auth service HTTP API.",
    )
    parser.add_argument(
        "--host",
        default=settings.http_host,
        help=f"Interface to bind (default: {settings.http_host})",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=settings.http_port,
        help=f"Port to listen on (default: {settings.http_port})",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Restart on code changes (development only)",
    )
    args = parser.parse_args()

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
